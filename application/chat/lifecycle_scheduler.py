# -*- coding: utf-8 -*-
# @File: application/chat/lifecycle_scheduler.py
# @Author: yaccii
# @Description: Time-delayed effects: delivery simulation, typing expiry, background saves

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional, Set, Tuple

from domains.chat_domain import MessageStatus, TypingIndicator
from domains.error_domain import SchedulerUnavailableError
from infrastructures.vlogger import chat_scope, get_logger

logger = get_logger(__name__)

# (chat_id, message_id, new_status) -> applied?
StatusSink = Callable[[str, str, MessageStatus], bool]
TypingListener = Callable[[str], None]


class LifecycleScheduler:
    """
    所有定时副作用都挂在同一个 event loop 上，回调与业务调用天然串行。

    - delivery: sending -> sent -> delivered，下一步只在上一步生效后才排队
    - typing: 每个 (chat_id, user_id) 至多一个过期定时器，重复 set 会重置
    - background: 持久化等后台任务，flush() 可等待全部完成
    """

    def __init__(
        self,
        *,
        sent_delay_ms: int = 300,
        delivered_delay_ms: int = 500,
        typing_ttl_ms: int = 3000,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.sent_delay = sent_delay_ms / 1000.0
        self.delivered_delay = delivered_delay_ms / 1000.0
        self.typing_ttl = typing_ttl_ms / 1000.0
        self._loop = loop

        self._delivery_handles: Set[asyncio.TimerHandle] = set()
        self._typing: Dict[str, List[TypingIndicator]] = {}
        self._typing_handles: Dict[Tuple[str, str], asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()

        self._typing_listener: Optional[TypingListener] = None

    def loop(self) -> asyncio.AbstractEventLoop:
        """
        The loop timers are scheduled on. A pinned loop that has since been closed
        (e.g. the asyncio.run() that built the engine returned) is replaced by the running one.
        """
        if self._loop is not None and not self._loop.is_closed():
            return self._loop
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise SchedulerUnavailableError(
                "lifecycle timers need a running event loop",
                details={"error": str(e)},
            ) from e
        return self._loop

    # ------------------------ delivery ------------------------

    def schedule_delivery(self, chat_id: str, message_id: str, sink: StatusSink) -> None:
        self._call_later(
            self.sent_delay,
            self._advance,
            chat_id,
            message_id,
            MessageStatus.sent,
            sink,
        )

    def _advance(self, chat_id: str, message_id: str, status: MessageStatus, sink: StatusSink) -> None:
        with chat_scope(chat_id):
            applied = sink(chat_id, message_id, status)
            if not applied:
                logger.debug("delivery step skipped message_id=%s status=%s", message_id, status.value)
                return
            if status == MessageStatus.sent:
                self._call_later(
                    self.delivered_delay,
                    self._advance,
                    chat_id,
                    message_id,
                    MessageStatus.delivered,
                    sink,
                )

    def _call_later(self, delay: float, fn, *args) -> None:
        handle: Optional[asyncio.TimerHandle] = None

        def _fire() -> None:
            self._delivery_handles.discard(handle)
            fn(*args)

        handle = self.loop().call_later(delay, _fire)
        self._delivery_handles.add(handle)

    def pending_deliveries(self) -> int:
        return len(self._delivery_handles)

    # ------------------------ typing ------------------------

    def on_typing_changed(self, listener: TypingListener) -> None:
        self._typing_listener = listener

    def typing(self, chat_id: str) -> List[TypingIndicator]:
        return list(self._typing.get(chat_id, []))

    def set_typing(self, chat_id: str, user_id: str, user_name: str) -> TypingIndicator:
        loop = self.loop()
        indicator = TypingIndicator(chat_id=chat_id, user_id=user_id, user_name=user_name)
        current = [t for t in self._typing.get(chat_id, []) if t.user_id != user_id]
        current.append(indicator)
        self._typing[chat_id] = current

        key = (chat_id, user_id)
        old = self._typing_handles.pop(key, None)
        if old is not None:
            old.cancel()
        self._typing_handles[key] = loop.call_later(self.typing_ttl, self._expire_typing, chat_id, user_id)

        self._emit_typing(chat_id)
        return indicator

    def clear_typing(self, chat_id: str, user_id: str) -> bool:
        handle = self._typing_handles.pop((chat_id, user_id), None)
        if handle is not None:
            handle.cancel()

        current = self._typing.get(chat_id, [])
        remaining = [t for t in current if t.user_id != user_id]
        if len(remaining) == len(current):
            return False

        if remaining:
            self._typing[chat_id] = remaining
        else:
            self._typing.pop(chat_id, None)
        self._emit_typing(chat_id)
        return True

    def _expire_typing(self, chat_id: str, user_id: str) -> None:
        # the handle has fired; drop it before clear_typing tries to cancel it
        self._typing_handles.pop((chat_id, user_id), None)
        with chat_scope(chat_id):
            if self.clear_typing(chat_id, user_id):
                logger.debug("typing expired user_id=%s", user_id)

    def _emit_typing(self, chat_id: str) -> None:
        if self._typing_listener is not None:
            self._typing_listener(chat_id)

    # ------------------------ background ------------------------

    def spawn(self, coro: Awaitable, *, name: Optional[str] = None) -> asyncio.Task:
        task = self.loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def flush(self) -> None:
        """Wait for every background task spawned so far (and the ones they spawn)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def shutdown(self) -> None:
        for h in list(self._delivery_handles):
            h.cancel()
        self._delivery_handles.clear()
        for h in self._typing_handles.values():
            h.cancel()
        self._typing_handles.clear()
        self._typing.clear()
        for t in list(self._tasks):
            t.cancel()
