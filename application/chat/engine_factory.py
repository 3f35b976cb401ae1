# -*- coding: utf-8 -*-
# @File: application/chat/engine_factory.py
# @Author: yaccii
# @Description: Startup wiring: config -> blob store -> persistence -> engine (one per process)

from __future__ import annotations

import asyncio
from typing import Optional

from application.chat.chat_store import ChatStore
from application.chat.conversation_engine import ConversationEngine
from application.chat.lifecycle_scheduler import LifecycleScheduler
from application.chat.seed_data import demo_seed, demo_users
from domains.error_domain import ValidationAppError
from infrastructures.persistence.chat_persistence import ChatPersistence
from infrastructures.storage.storage_base import BlobStore
from infrastructures.storage.storage_router import get_blob_store
from infrastructures.vconfig import VConfig, vconfig
from infrastructures.vlogger import get_logger

logger = get_logger(__name__)


async def build_engine(
    config: Optional[VConfig] = None,
    *,
    blob_store: Optional[BlobStore] = None,
) -> ConversationEngine:
    """
    在启动时调用一次，之后把返回的 engine 注入给各调用方。
    - 存储里有快照：以快照为准
    - 存储为空且 SEED_DEMO_DATA=true：装入演示数据
    """
    cfg = config or vconfig

    persistence = ChatPersistence(
        blob_store or get_blob_store(cfg),
        chats_key=cfg.chats_key,
        messages_key=cfg.messages_key,
    )
    chats, messages = await persistence.load()

    users = []
    if cfg.seed_demo_data:
        if chats:
            users = demo_users()
        else:
            users, chats, messages = demo_seed(cfg.current_user_id, cfg.current_user_name)
            logger.info("demo data seeded chats=%s", len(chats))

    try:
        store = ChatStore(chats=chats, messages_by_chat=messages, users=users)
    except ValidationAppError as e:
        logger.warning("stored snapshot violates invariants, starting empty: %s", e.message)
        store = ChatStore(users=users)
    scheduler = LifecycleScheduler(
        sent_delay_ms=cfg.sent_delay_ms,
        delivered_delay_ms=cfg.delivered_delay_ms,
        typing_ttl_ms=cfg.typing_ttl_ms,
        loop=asyncio.get_running_loop(),
    )
    engine = ConversationEngine(
        store=store,
        scheduler=scheduler,
        persistence=persistence,
        current_user_id=cfg.current_user_id,
        current_user_name=cfg.current_user_name,
    )
    logger.info(
        "conversation engine ready backend=%s chats=%s user=%s",
        cfg.store_backend,
        len(store.chats),
        cfg.current_user_id,
    )
    return engine
