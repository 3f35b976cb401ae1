# -*- coding: utf-8 -*-
# @File: application/chat/chat_store.py
# @Author: yaccii
# @Description: In-memory chats / messages / users with structural invariant checks

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from domains.chat_domain import Chat, ChatType, Message, MessageStatus, User
from domains.error_domain import ValidationAppError


class ChatStore:
    """
    Authoritative in-memory state. Only ConversationEngine writes to it;
    everything here is a lookup or a derived value.
    """

    def __init__(
        self,
        *,
        chats: Optional[Iterable[Chat]] = None,
        messages_by_chat: Optional[Dict[str, List[Message]]] = None,
        users: Optional[Iterable[User]] = None,
    ) -> None:
        self.chats: List[Chat] = list(chats or [])
        self.messages_by_chat: Dict[str, List[Message]] = {
            k: list(v) for k, v in (messages_by_chat or {}).items()
        }
        self.users: List[User] = list(users or [])
        self.check_invariants()

    # ------------------------ invariants ------------------------

    def check_invariants(self) -> None:
        seen_chats = set()
        for chat in self.chats:
            if chat.chat_id in seen_chats:
                raise ValidationAppError("duplicate chat id", details={"chat_id": chat.chat_id})
            seen_chats.add(chat.chat_id)
            self.check_chat(chat)

        for chat_id, messages in self.messages_by_chat.items():
            seen_msgs = set()
            for m in messages:
                if m.chat_id != chat_id:
                    raise ValidationAppError(
                        "message filed under a foreign chat",
                        details={"chat_id": chat_id, "message_id": m.message_id},
                    )
                if m.message_id in seen_msgs:
                    raise ValidationAppError(
                        "duplicate message id", details={"chat_id": chat_id, "message_id": m.message_id}
                    )
                seen_msgs.add(m.message_id)

    @staticmethod
    def check_chat(chat: Chat) -> None:
        if len(chat.participants) < 2:
            raise ValidationAppError("chat needs at least two participants", details={"chat_id": chat.chat_id})
        if len(set(chat.participants)) != len(chat.participants):
            raise ValidationAppError("duplicate participants", details={"chat_id": chat.chat_id})
        if chat.type in (ChatType.group, ChatType.channel) and not (chat.name or "").strip():
            raise ValidationAppError("group and channel chats need a name", details={"chat_id": chat.chat_id})

    # ------------------------ lookups ------------------------

    def find_chat(self, chat_id: str) -> Optional[Chat]:
        return next((c for c in self.chats if c.chat_id == chat_id), None)

    def find_message(self, chat_id: str, message_id: str) -> Optional[Message]:
        for m in self.messages_by_chat.get(chat_id, []):
            if m.message_id == message_id:
                return m
        return None

    def find_user(self, user_id: str) -> Optional[User]:
        return next((u for u in self.users if u.user_id == user_id), None)

    def find_direct_chat(self, self_id: str, other_id: str) -> Optional[Chat]:
        for c in self.chats:
            if c.type == ChatType.direct and set(c.participants) == {self_id, other_id}:
                return c
        return None

    def messages(self, chat_id: str) -> List[Message]:
        return self.messages_by_chat.setdefault(chat_id, [])

    def sorted_messages(self, chat_id: str) -> List[Message]:
        # sort is stable: equal timestamps keep insertion order
        return sorted(self.messages_by_chat.get(chat_id, []), key=lambda m: m.timestamp)

    # ------------------------ derived ------------------------

    def latest_visible_message(self, chat_id: str) -> Optional[Message]:
        latest: Optional[Message] = None
        for m in self.messages_by_chat.get(chat_id, []):
            if m.is_deleted:
                continue
            if latest is None or m.timestamp >= latest.timestamp:
                latest = m
        return latest

    def count_unread(self, chat_id: str, self_id: str) -> int:
        return sum(
            1
            for m in self.messages_by_chat.get(chat_id, [])
            if m.sender_id != self_id and not m.is_deleted and m.status != MessageStatus.read
        )

    def last_message(self, chat: Chat) -> Optional[Message]:
        if not chat.last_message_id:
            return None
        return self.find_message(chat.chat_id, chat.last_message_id)

    def refresh_last_message(self, chat: Chat) -> None:
        latest = self.latest_visible_message(chat.chat_id)
        if latest is None:
            chat.last_message_id = None
            return
        chat.last_message_id = latest.message_id
        chat.last_activity = latest.timestamp

    def refresh_all(self, self_id: str) -> None:
        for chat in self.chats:
            self.refresh_last_message(chat)
            chat.unread_count = self.count_unread(chat.chat_id, self_id)
