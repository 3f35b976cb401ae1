# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: Chat / Message / User / Typing contracts (data only, plus status ordering rules)

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from domains.domain_base import DomainModel, utc_now
from domains.error_domain import ErrorResponse
from domains.payload_domain import MessagePayload, MessageType, TextPayload

TOMBSTONE_TEXT = "This message was deleted"


# =========================
# Domain enums
# =========================

class ChatType(str, Enum):
    direct = "direct"
    group = "group"
    channel = "channel"


class MessageStatus(str, Enum):
    sending = "sending"
    sent = "sent"
    delivered = "delivered"
    read = "read"
    failed = "failed"


_STATUS_RANK: Dict[MessageStatus, int] = {
    MessageStatus.sending: 0,
    MessageStatus.sent: 1,
    MessageStatus.delivered: 2,
    MessageStatus.read: 3,
}

TERMINAL_STATUSES = frozenset({MessageStatus.read, MessageStatus.failed})


def can_transition(current: MessageStatus, new: MessageStatus) -> bool:
    """sending < sent < delivered < read; failed only from sending; read/failed are final."""
    if current in TERMINAL_STATUSES:
        return False
    if new == MessageStatus.failed:
        return current == MessageStatus.sending
    return _STATUS_RANK[new] > _STATUS_RANK[current]


class MutationStatus(str, Enum):
    ok = "ok"
    not_found = "not_found"
    permission_denied = "permission_denied"
    invalid = "invalid"


# =========================
# Domain models
# =========================

class User(DomainModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    display_name: str = Field(..., min_length=1, max_length=128)
    email: Optional[str] = Field(default=None, max_length=256)
    avatar_url: Optional[str] = Field(default=None, max_length=1024)
    is_online: bool = Field(default=False)
    last_seen: Optional[datetime] = Field(default=None)
    status_text: Optional[str] = Field(default=None, max_length=256)


class MessageAttachment(DomainModel):
    attachment_id: str = Field(..., min_length=1, max_length=64)
    type: str = Field(..., min_length=1, max_length=16)    # image / video / audio / document
    url: str = Field(..., min_length=1)
    thumbnail_url: Optional[str] = Field(default=None)
    file_name: Optional[str] = Field(default=None, max_length=255)
    file_size: Optional[int] = Field(default=None, ge=0)
    duration_ms: Optional[int] = Field(default=None, ge=0)
    width: Optional[int] = Field(default=None, ge=0)
    height: Optional[int] = Field(default=None, ge=0)


class MessageReaction(DomainModel):
    emoji: str = Field(..., min_length=1, max_length=16)
    user_id: str = Field(..., min_length=1, max_length=64)
    user_name: str = Field(default="", max_length=128)
    timestamp: datetime = Field(default_factory=utc_now)


class Message(DomainModel):
    message_id: str = Field(..., min_length=1, max_length=96)
    chat_id: str = Field(..., min_length=1, max_length=64)

    sender_id: str = Field(..., min_length=1, max_length=64)
    sender_name: str = Field(default="", max_length=128)
    sender_avatar: Optional[str] = Field(default=None, max_length=1024)

    payload: MessagePayload = Field(default_factory=TextPayload)
    timestamp: datetime = Field(default_factory=utc_now)
    type: MessageType = Field(default=MessageType.text)
    status: MessageStatus = Field(default=MessageStatus.sending)

    # reply_to_message is a snapshot taken at reply time, not a live reference
    reply_to: Optional[str] = Field(default=None, max_length=96)
    reply_to_message: Optional[Message] = Field(default=None)

    attachments: List[MessageAttachment] = Field(default_factory=list)
    reactions: List[MessageReaction] = Field(default_factory=list)

    is_edited: bool = Field(default=False)
    edited_at: Optional[datetime] = Field(default=None)

    is_forwarded: bool = Field(default=False)
    forwarded_from: Optional[str] = Field(default=None, max_length=128)

    is_deleted: bool = Field(default=False)
    deleted_at: Optional[datetime] = Field(default=None)

    @property
    def text(self) -> str:
        """What viewers see: tombstone once deleted, payload preview otherwise."""
        if self.is_deleted:
            return TOMBSTONE_TEXT
        return self.payload.preview()

    def snapshot(self) -> Message:
        # one level deep: a quoted message never carries its own quote
        return self.model_copy(update={"reply_to_message": None}, deep=True)


class Chat(DomainModel):
    chat_id: str = Field(..., min_length=1, max_length=64)
    type: ChatType = Field(default=ChatType.direct)
    name: Optional[str] = Field(default=None, max_length=128)

    participants: List[str] = Field(default_factory=list)
    participant_details: List[User] = Field(default_factory=list)

    last_message_id: Optional[str] = Field(default=None, max_length=96)
    last_activity: datetime = Field(default_factory=utc_now)
    created_at: datetime = Field(default_factory=utc_now)
    created_by: str = Field(default="", max_length=64)

    unread_count: int = Field(default=0, ge=0)

    is_archived: bool = Field(default=False)
    is_muted: bool = Field(default=False)
    is_pinned: bool = Field(default=False)

    # group / channel extras
    avatar_url: Optional[str] = Field(default=None, max_length=1024)
    description: Optional[str] = Field(default=None, max_length=1000)
    admin_ids: List[str] = Field(default_factory=list)

    def display_name(self, self_id: str) -> str:
        if self.name:
            return self.name
        for u in self.participant_details:
            if u.user_id != self_id:
                return u.display_name
        return next((p for p in self.participants if p != self_id), self.chat_id)


class TypingIndicator(DomainModel):
    chat_id: str = Field(..., min_length=1, max_length=64)
    user_id: str = Field(..., min_length=1, max_length=64)
    user_name: str = Field(default="", max_length=128)
    timestamp: datetime = Field(default_factory=utc_now)


# =========================
# Read models
# =========================

class ChatListItem(DomainModel):
    chat: Chat = Field(...)
    last_message: Optional[Message] = Field(default=None)
    unread_count: int = Field(default=0, ge=0)

    # direct chats only
    is_online: Optional[bool] = Field(default=None)
    last_seen: Optional[datetime] = Field(default=None)


class MessageInfo(DomainModel):
    message_id: str
    sender: str
    timestamp: datetime
    status: MessageStatus
    type: MessageType
    is_edited: bool = False
    edited_at: Optional[datetime] = None
    is_forwarded: bool = False
    forwarded_from: Optional[str] = None
    reply_to: Optional[str] = Field(default=None, description="Sender name of the quoted message")


class MutationResult(DomainModel):
    """Outcome of an engine mutation. Failures are values, never exceptions."""

    status: MutationStatus = Field(default=MutationStatus.ok)
    error: Optional[ErrorResponse] = Field(default=None)

    message: Optional[Message] = Field(default=None)
    chat: Optional[Chat] = Field(default=None)

    # forward_message only
    forwarded: List[Message] = Field(default_factory=list)
    skipped_chat_ids: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == MutationStatus.ok


Message.model_rebuild()
