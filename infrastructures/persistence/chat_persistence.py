# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: Chat + message snapshot persistence over a BlobStore (JSON, ISO timestamps)

from __future__ import annotations

from typing import Dict, List, Tuple

from pydantic import TypeAdapter

from domains.chat_domain import Chat, Message
from domains.error_domain import AppError
from infrastructures.storage.storage_base import BlobStore
from infrastructures.vlogger import get_logger

logger = get_logger(__name__)

_chats_adapter = TypeAdapter(List[Chat])
_messages_adapter = TypeAdapter(Dict[str, List[Message]])

ChatSnapshot = Tuple[List[Chat], Dict[str, List[Message]]]


class ChatPersistence:
    """
    整体快照读写：
    - save: 失败只记日志并返回 False，不回滚内存状态
    - load: 任何失败都降级为空仓库
    """

    def __init__(self, store: BlobStore, *, chats_key: str, messages_key: str) -> None:
        self.store = store
        self.chats_key = chats_key
        self.messages_key = messages_key

    def dump(self, chats: List[Chat], messages: Dict[str, List[Message]]) -> Dict[str, str]:
        # serialise synchronously so the blob reflects state at call time
        return {
            self.chats_key: _chats_adapter.dump_json(chats).decode("utf-8"),
            self.messages_key: _messages_adapter.dump_json(messages).decode("utf-8"),
        }

    async def write(self, blobs: Dict[str, str]) -> bool:
        try:
            for key, value in blobs.items():
                await self.store.set(key, value)
        except (AppError, OSError, ConnectionError) as e:
            logger.error("chat snapshot save failed: %s", e)
            return False
        logger.debug("chat snapshot saved keys=%s", list(blobs.keys()))
        return True

    async def save(self, chats: List[Chat], messages: Dict[str, List[Message]]) -> bool:
        return await self.write(self.dump(chats, messages))

    async def load(self) -> ChatSnapshot:
        try:
            raw_chats = await self.store.get(self.chats_key)
            raw_messages = await self.store.get(self.messages_key)

            chats = _chats_adapter.validate_json(raw_chats) if raw_chats else []
            messages = _messages_adapter.validate_json(raw_messages) if raw_messages else {}
        except (AppError, OSError, ConnectionError, ValueError) as e:
            # ValueError covers malformed JSON and pydantic ValidationError
            logger.warning("chat snapshot load failed, starting empty: %s", e)
            return [], {}

        logger.info(
            "chat snapshot loaded chats=%s messages=%s",
            len(chats),
            sum(len(v) for v in messages.values()),
        )
        return chats, messages
