# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: Shared fixtures: seeded engines with short lifecycle delays

from __future__ import annotations

from typing import Callable, Optional

import pytest

from application.chat.chat_store import ChatStore
from application.chat.conversation_engine import ConversationEngine
from application.chat.lifecycle_scheduler import LifecycleScheduler
from application.chat.seed_data import demo_seed
from domains.error_domain import PersistenceError
from infrastructures.persistence.chat_persistence import ChatPersistence
from infrastructures.storage.memory_storage import MemoryBlobStore

CHATS_KEY = "@test_chats"
MESSAGES_KEY = "@test_messages"


class FailingBlobStore:
    """Reads nothing, refuses every write."""

    def __init__(self) -> None:
        self.attempts = 0

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, value: str) -> None:
        self.attempts += 1
        raise PersistenceError(message="disk full", details={"key": key})


def make_persistence(store) -> ChatPersistence:
    return ChatPersistence(store, chats_key=CHATS_KEY, messages_key=MESSAGES_KEY)


def build_test_engine(
    *,
    persistence: Optional[ChatPersistence] = None,
    seed: bool = True,
    sent_delay_ms: int = 50,
    delivered_delay_ms: int = 200,
    typing_ttl_ms: int = 100,
) -> ConversationEngine:
    users, chats, messages = demo_seed() if seed else ([], [], {})
    store = ChatStore(chats=chats, messages_by_chat=messages, users=users)
    scheduler = LifecycleScheduler(
        sent_delay_ms=sent_delay_ms,
        delivered_delay_ms=delivered_delay_ms,
        typing_ttl_ms=typing_ttl_ms,
    )
    return ConversationEngine(store=store, scheduler=scheduler, persistence=persistence)


@pytest.fixture
def make_engine() -> Callable[..., ConversationEngine]:
    return build_test_engine


@pytest.fixture
def engine() -> ConversationEngine:
    # no persistence and no timers: safe outside an event loop for in-place edits
    return build_test_engine()


@pytest.fixture
def memory_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def failing_store() -> FailingBlobStore:
    return FailingBlobStore()


@pytest.fixture
def persistence_for() -> Callable[..., ChatPersistence]:
    return make_persistence
