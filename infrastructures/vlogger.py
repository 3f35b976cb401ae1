# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_chat_id_var: ContextVar[str] = ContextVar("chat_id", default="-")
_factory_installed = False


def get_chat_id() -> str:
    return _chat_id_var.get()


@contextmanager
def chat_scope(chat_id: Optional[str]) -> Iterator[None]:
    """Tag every log record emitted inside the block with the chat id."""
    token = _chat_id_var.set(chat_id or "-")
    try:
        yield
    finally:
        _chat_id_var.reset(token)


def _install_record_factory() -> None:
    global _factory_installed
    if _factory_installed:
        return

    old_factory = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs):
        record = old_factory(*args, **kwargs)
        record.chat_id = get_chat_id()
        return record

    logging.setLogRecordFactory(record_factory)
    _factory_installed = True


def init_logging(level: str) -> None:
    valid = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
    lvl = level.upper().strip()
    if lvl not in valid:
        lvl = "INFO"

    _install_record_factory()

    logging.basicConfig(
        level=getattr(logging, lvl),
        format="%(asctime)s %(levelname)s %(name)s [chat=%(chat_id)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    # asyncio 的调试日志只保留 WARNING+
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    vlogger.info("logging initialized level=%s", lvl)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# records created before init_logging still need chat_id for custom formatters
_install_record_factory()

vlogger = get_logger("chat_engine")
