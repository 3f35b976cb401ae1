# -*- coding: utf-8 -*-
# @File: application/chat/conversation_engine.py
# @Author: yaccii
# @Description: Chat mutations (send / reply / forward / edit / delete / react / read) + notifications

from __future__ import annotations

import asyncio
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from application.chat.chat_store import ChatStore
from application.chat.lifecycle_scheduler import LifecycleScheduler
from application.chat.notification_bus import ALL, EventBus, Unsubscribe
from domains.chat_domain import (
    TOMBSTONE_TEXT,
    Chat,
    ChatListItem,
    ChatType,
    Message,
    MessageInfo,
    MessageReaction,
    MessageStatus,
    MutationResult,
    MutationStatus,
    TypingIndicator,
    User,
    can_transition,
)
from domains.domain_base import new_id, utc_now
from domains.error_domain import (
    AppError,
    NotFoundError,
    PermissionDeniedError,
    SchedulerUnavailableError,
    ValidationAppError,
)
from domains.payload_domain import (
    MessagePayload,
    MessageType,
    TextPayload,
    coerce_payload,
    is_blank,
    message_type_for,
)
from infrastructures.persistence.chat_persistence import ChatPersistence
from infrastructures.vlogger import chat_scope, get_logger

logger = get_logger(__name__)

Content = Union[str, MessagePayload]

_STATUS_BY_CODE = {
    "NOT_FOUND": MutationStatus.not_found,
    "PERMISSION_DENIED": MutationStatus.permission_denied,
    "VALIDATION_ERROR": MutationStatus.invalid,
}


class ConversationEngine:
    """
    会话引擎：唯一持有 chats/messages 的内存状态。

    - 每个变更操作是一段同步代码（读 -> 判定 -> 写 -> 通知），在同一个 event loop 上天然串行
    - 失败（不存在 / 无权限 / 校验不过）以 MutationResult 返回，不向调用方抛异常
    - 持久化是后台任务，失败只记日志，内存状态为准
    """

    def __init__(
        self,
        *,
        store: ChatStore,
        scheduler: LifecycleScheduler,
        persistence: Optional[ChatPersistence] = None,
        current_user_id: str = "currentUser",
        current_user_name: str = "You",
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.persistence = persistence
        self.user_id = current_user_id
        self.user_name = current_user_name

        self.chat_events: EventBus[List[Chat]] = EventBus("chats")
        self.message_events: EventBus[List[Message]] = EventBus("messages")
        self.typing_events: EventBus[List[TypingIndicator]] = EventBus("typing")

        self._save_lock = asyncio.Lock()
        self.scheduler.on_typing_changed(self._notify_typing)
        self.store.refresh_all(self.user_id)

    # ======================== subscriptions ========================

    def on_chats_changed(self, callback: Callable[[List[Chat]], None]) -> Unsubscribe:
        return self.chat_events.subscribe(ALL, callback)

    def on_messages_changed(self, chat_id: str, callback: Callable[[List[Message]], None]) -> Unsubscribe:
        return self.message_events.subscribe(chat_id, callback)

    def on_typing_changed(self, chat_id: str, callback: Callable[[List[TypingIndicator]], None]) -> Unsubscribe:
        return self.typing_events.subscribe(chat_id, callback)

    # subscribers get copies; state only changes through the engine
    def _notify_chats(self) -> None:
        if not self.chat_events.subscriber_count(ALL):
            return
        chats = self._sorted_chats(include_archived=True)
        self.chat_events.publish(ALL, [c.model_copy(deep=True) for c in chats])

    def _notify_messages(self, chat_id: str) -> None:
        if not self.message_events.subscriber_count(chat_id):
            return
        messages = self.store.sorted_messages(chat_id)
        self.message_events.publish(chat_id, [m.model_copy(deep=True) for m in messages])

    def _notify_typing(self, chat_id: str) -> None:
        self.typing_events.publish(chat_id, [t.model_copy() for t in self.scheduler.typing(chat_id)])

    # ======================== queries ========================

    def _sorted_chats(self, *, include_archived: bool) -> List[Chat]:
        chats = [c for c in self.store.chats if include_archived or not c.is_archived]
        chats.sort(key=lambda c: c.last_activity, reverse=True)
        # stable: pinned first, activity order kept inside each group
        chats.sort(key=lambda c: 0 if c.is_pinned else 1)
        return chats

    def get_chats(self, *, include_archived: bool = True) -> List[ChatListItem]:
        items: List[ChatListItem] = []
        for chat in self._sorted_chats(include_archived=include_archived):
            item = ChatListItem(
                chat=chat,
                last_message=self.store.last_message(chat),
                unread_count=chat.unread_count,
            )
            if chat.type == ChatType.direct:
                other = self._direct_peer(chat)
                if other is not None:
                    item.is_online = other.is_online
                    item.last_seen = other.last_seen
            items.append(item)
        return items

    def _direct_peer(self, chat: Chat) -> Optional[User]:
        for u in chat.participant_details:
            if u.user_id != self.user_id:
                return u
        peer_id = next((p for p in chat.participants if p != self.user_id), None)
        return self.store.find_user(peer_id) if peer_id else None

    def get_chat(self, chat_id: str) -> Optional[Chat]:
        return self.store.find_chat(chat_id)

    def get_users(self) -> List[User]:
        return [u for u in self.store.users if u.user_id != self.user_id]

    def get_messages(self, chat_id: str) -> List[Message]:
        """Ascending by timestamp. Fetching for display marks the chat as read."""
        self.mark_messages_as_read(chat_id)
        return self.store.sorted_messages(chat_id)

    def find_message(self, chat_id: str, message_id: str) -> Optional[Message]:
        return self.store.find_message(chat_id, message_id)

    def get_typing_indicators(self, chat_id: str) -> List[TypingIndicator]:
        return self.scheduler.typing(chat_id)

    def search_messages(self, query: str) -> Dict[str, List[Message]]:
        q = (query or "").strip().lower()
        if not q:
            return {}

        results: Dict[str, List[Message]] = {}
        for chat_id, messages in self.store.messages_by_chat.items():
            hits = [
                m
                for m in messages
                if not m.is_deleted
                and (
                    q in m.text.lower()
                    or q in m.payload.copy_text().lower()
                    or q in m.sender_name.lower()
                )
            ]
            if hits:
                results[chat_id] = sorted(hits, key=lambda m: m.timestamp)
        return results

    @staticmethod
    def copy_message_text(message: Message) -> str:
        if message.is_deleted:
            return TOMBSTONE_TEXT
        return message.payload.copy_text()

    @staticmethod
    def get_message_info(message: Message) -> MessageInfo:
        return MessageInfo(
            message_id=message.message_id,
            sender=message.sender_name,
            timestamp=message.timestamp,
            status=message.status,
            type=message.type,
            is_edited=message.is_edited,
            edited_at=message.edited_at,
            is_forwarded=message.is_forwarded,
            forwarded_from=message.forwarded_from,
            reply_to=message.reply_to_message.sender_name if message.reply_to_message else None,
        )

    def chat_preview(self, chat: Chat) -> str:
        last = self.store.last_message(chat)
        if last is None:
            return "No messages yet"
        prefix = ""
        if last.sender_id == self.user_id:
            prefix = "You: "
        elif chat.type == ChatType.group and last.sender_name:
            prefix = f"{last.sender_name.split(' ')[0]}: "
        return f"{prefix}{last.text}"

    # ======================== plumbing ========================

    def _run(self, op: str, chat_id: Optional[str], fn: Callable[[], MutationResult]) -> MutationResult:
        with chat_scope(chat_id):
            try:
                return fn()
            except AppError as e:
                logger.info("%s rejected code=%s message=%s", op, e.code, e.message)
                return MutationResult(status=_STATUS_BY_CODE.get(e.code, MutationStatus.invalid), error=e.to_response())

    def _require_chat(self, chat_id: str) -> Chat:
        chat = self.store.find_chat(chat_id)
        if chat is None:
            raise NotFoundError("chat not found", details={"chat_id": chat_id})
        return chat

    def _require_message(self, chat_id: str, message_id: str) -> Message:
        self._require_chat(chat_id)
        message = self.store.find_message(chat_id, message_id)
        if message is None:
            raise NotFoundError("message not found", details={"chat_id": chat_id, "message_id": message_id})
        return message

    def _require_own(self, message: Message) -> None:
        if message.sender_id != self.user_id:
            raise PermissionDeniedError(
                "only the sender may change this message",
                details={"message_id": message.message_id},
            )

    @staticmethod
    def _require_content(payload: MessagePayload) -> None:
        if is_blank(payload):
            raise ValidationAppError("message text is empty")

    def _persist(self, sending: Iterable[Tuple[str, str]] = ()) -> None:
        if self.persistence is None:
            return
        try:
            self.scheduler.loop()
        except SchedulerUnavailableError as e:
            logger.error("chat snapshot not saved: %s", e.message)
            return
        blobs = self.persistence.dump(self.store.chats, self.store.messages_by_chat)
        self.scheduler.spawn(self._write_snapshot(blobs, list(sending)), name="chat-snapshot")

    async def _write_snapshot(self, blobs: Dict[str, str], sending: List[Tuple[str, str]]) -> None:
        async with self._save_lock:
            ok = await self.persistence.write(blobs)
        if ok:
            return
        # messages whose send could not be recorded fall off the happy path
        for chat_id, message_id in sending:
            self.mark_failed(chat_id, message_id)

    async def flush(self) -> None:
        await self.scheduler.flush()

    def shutdown(self) -> None:
        self.scheduler.shutdown()
        self.chat_events.clear()
        self.message_events.clear()
        self.typing_events.clear()

    # ======================== status lifecycle ========================

    def acknowledge(self, chat_id: str, message_id: str, status: MessageStatus) -> bool:
        """Apply a status step if it moves forward. Delivery timers and real transports both land here."""
        with chat_scope(chat_id):
            message = self.store.find_message(chat_id, message_id)
            if message is None or message.is_deleted:
                return False
            if not can_transition(message.status, status):
                return False
            message.status = status
            self._persist()
            self._notify_messages(chat_id)
            return True

    def mark_failed(self, chat_id: str, message_id: str) -> MutationResult:
        def _do() -> MutationResult:
            message = self._require_message(chat_id, message_id)
            if not self.acknowledge(chat_id, message_id, MessageStatus.failed):
                raise ValidationAppError(
                    "message can no longer fail",
                    details={"message_id": message_id, "status": message.status.value},
                )
            logger.warning("message marked failed message_id=%s", message_id)
            return MutationResult(message=message)

        return self._run("mark_failed", chat_id, _do)

    def mark_messages_as_read(self, chat_id: str) -> MutationResult:
        def _do() -> MutationResult:
            chat = self._require_chat(chat_id)
            changed = False
            for m in self.store.messages_by_chat.get(chat_id, []):
                if m.sender_id == self.user_id:
                    continue
                if can_transition(m.status, MessageStatus.read):
                    m.status = MessageStatus.read
                    changed = True

            unread = self.store.count_unread(chat_id, self.user_id)
            if unread != chat.unread_count:
                chat.unread_count = unread
                changed = True

            if changed:
                self._persist()
                self._notify_chats()
                self._notify_messages(chat_id)
            return MutationResult(chat=chat)

        return self._run("mark_messages_as_read", chat_id, _do)

    # ======================== outgoing ========================

    def _append_outgoing(
        self,
        chat: Chat,
        payload: MessagePayload,
        type: Optional[MessageType],
        **extra,
    ) -> Message:
        # no loop means no delivery timers: fail before the store is touched
        self.scheduler.loop()
        message = Message(
            message_id=new_id("msg"),
            chat_id=chat.chat_id,
            sender_id=self.user_id,
            sender_name=self.user_name,
            payload=payload,
            type=type or message_type_for(payload),
            status=MessageStatus.sending,
            **extra,
        )
        self.store.messages(chat.chat_id).append(message)
        self.store.refresh_last_message(chat)
        self.scheduler.schedule_delivery(chat.chat_id, message.message_id, self.acknowledge)
        return message

    def send_message(self, chat_id: str, content: Content, type: Optional[MessageType] = None) -> MutationResult:
        def _do() -> MutationResult:
            chat = self._require_chat(chat_id)
            payload = coerce_payload(content)
            self._require_content(payload)

            message = self._append_outgoing(chat, payload, type)
            logger.info("message sent message_id=%s type=%s", message.message_id, message.type.value)

            self._persist(sending=[(chat_id, message.message_id)])
            self._notify_messages(chat_id)
            self._notify_chats()
            return MutationResult(message=message, chat=chat)

        return self._run("send_message", chat_id, _do)

    def send_reply(
        self,
        chat_id: str,
        content: Content,
        reply_to_message: Message,
        type: Optional[MessageType] = None,
    ) -> MutationResult:
        def _do() -> MutationResult:
            chat = self._require_chat(chat_id)
            payload = coerce_payload(content)
            self._require_content(payload)

            if reply_to_message.chat_id != chat_id:
                raise ValidationAppError(
                    "reply target belongs to another chat",
                    details={"reply_to": reply_to_message.message_id},
                )
            target = self.store.find_message(chat_id, reply_to_message.message_id)
            if target is None:
                raise NotFoundError("reply target not found", details={"reply_to": reply_to_message.message_id})
            if target.is_deleted:
                raise ValidationAppError("cannot reply to a deleted message", details={"reply_to": target.message_id})

            message = self._append_outgoing(
                chat,
                payload,
                type,
                reply_to=target.message_id,
                reply_to_message=target.snapshot(),
            )
            logger.info("reply sent message_id=%s reply_to=%s", message.message_id, target.message_id)

            self._persist(sending=[(chat_id, message.message_id)])
            self._notify_messages(chat_id)
            self._notify_chats()
            return MutationResult(message=message, chat=chat)

        return self._run("send_reply", chat_id, _do)

    def forward_message(self, original: Message, target_chat_ids: Iterable[str]) -> MutationResult:
        def _do() -> MutationResult:
            if original.is_deleted:
                raise ValidationAppError("cannot forward a deleted message", details={"message_id": original.message_id})

            forwarded: List[Message] = []
            skipped: List[str] = []
            for chat_id in dict.fromkeys(target_chat_ids):
                chat = self.store.find_chat(chat_id)
                if chat is None:
                    logger.info("forward target missing chat_id=%s", chat_id)
                    skipped.append(chat_id)
                    continue
                forwarded.append(
                    self._append_outgoing(
                        chat,
                        original.payload.model_copy(deep=True),
                        original.type,
                        attachments=[a.model_copy(deep=True) for a in original.attachments],
                        is_forwarded=True,
                        forwarded_from=original.sender_name,
                    )
                )

            if not forwarded:
                return MutationResult(
                    status=MutationStatus.not_found,
                    error=NotFoundError("no forward target exists", details={"chat_ids": skipped}).to_response(),
                    skipped_chat_ids=skipped,
                )

            logger.info(
                "message forwarded message_id=%s targets=%s skipped=%s",
                original.message_id,
                [m.chat_id for m in forwarded],
                skipped,
            )
            self._persist(sending=[(m.chat_id, m.message_id) for m in forwarded])
            for m in forwarded:
                self._notify_messages(m.chat_id)
            self._notify_chats()
            return MutationResult(forwarded=forwarded, skipped_chat_ids=skipped)

        return self._run("forward_message", original.chat_id, _do)

    # ======================== in-place edits ========================

    def edit_message(self, chat_id: str, message_id: str, new_text: str) -> MutationResult:
        def _do() -> MutationResult:
            message = self._require_message(chat_id, message_id)
            self._require_own(message)
            if message.is_deleted:
                raise ValidationAppError("cannot edit a deleted message", details={"message_id": message_id})
            if not isinstance(message.payload, TextPayload):
                raise ValidationAppError("only text messages can be edited", details={"message_id": message_id})
            payload = TextPayload(body=new_text)
            self._require_content(payload)

            message.payload = payload
            message.is_edited = True
            message.edited_at = utc_now()

            chat = self.store.find_chat(chat_id)
            self._persist()
            self._notify_messages(chat_id)
            if chat is not None and chat.last_message_id == message_id:
                self._notify_chats()
            return MutationResult(message=message, chat=chat)

        return self._run("edit_message", chat_id, _do)

    def delete_message(self, chat_id: str, message_id: str) -> MutationResult:
        def _do() -> MutationResult:
            message = self._require_message(chat_id, message_id)
            self._require_own(message)
            chat = self._require_chat(chat_id)
            if message.is_deleted:
                return MutationResult(message=message, chat=chat)

            message.is_deleted = True
            message.deleted_at = utc_now()
            self.store.refresh_last_message(chat)
            logger.info("message deleted message_id=%s", message_id)

            self._persist()
            self._notify_messages(chat_id)
            self._notify_chats()
            return MutationResult(message=message, chat=chat)

        return self._run("delete_message", chat_id, _do)

    def add_reaction(
        self,
        chat_id: str,
        message_id: str,
        emoji: str,
        reactor_id: Optional[str] = None,
    ) -> MutationResult:
        def _do() -> MutationResult:
            message = self._require_message(chat_id, message_id)
            if not (emoji or "").strip():
                raise ValidationAppError("emoji is empty")
            if message.is_deleted:
                raise ValidationAppError("cannot react to a deleted message", details={"message_id": message_id})

            uid = reactor_id or self.user_id
            if uid == self.user_id:
                name = self.user_name
            else:
                user = self.store.find_user(uid)
                name = user.display_name if user else ""

            reactions = [r for r in message.reactions if r.user_id != uid]
            reactions.append(MessageReaction(emoji=emoji.strip(), user_id=uid, user_name=name))
            message.reactions = reactions

            self._persist()
            self._notify_messages(chat_id)
            return MutationResult(message=message)

        return self._run("add_reaction", chat_id, _do)

    # ======================== inbound ========================

    def receive_message(
        self,
        chat_id: str,
        sender_id: str,
        content: Content,
        type: Optional[MessageType] = None,
    ) -> MutationResult:
        """A message from another participant arrives (already delivered to this device)."""

        def _do() -> MutationResult:
            chat = self._require_chat(chat_id)
            if sender_id == self.user_id or sender_id not in chat.participants:
                raise ValidationAppError(
                    "sender is not another participant of this chat",
                    details={"sender_id": sender_id},
                )
            payload = coerce_payload(content)
            self._require_content(payload)

            sender = self.store.find_user(sender_id) or next(
                (u for u in chat.participant_details if u.user_id == sender_id), None
            )
            message = Message(
                message_id=new_id("msg"),
                chat_id=chat_id,
                sender_id=sender_id,
                sender_name=sender.display_name if sender else sender_id,
                sender_avatar=sender.avatar_url if sender else None,
                payload=payload,
                type=type or message_type_for(payload),
                status=MessageStatus.delivered,
            )
            self.store.messages(chat_id).append(message)
            self.store.refresh_last_message(chat)
            chat.unread_count = self.store.count_unread(chat_id, self.user_id)

            self._persist()
            self._notify_messages(chat_id)
            self._notify_chats()
            return MutationResult(message=message, chat=chat)

        return self._run("receive_message", chat_id, _do)

    # ======================== typing ========================

    def set_typing_indicator(self, chat_id: str, user_id: str, user_name: str) -> MutationResult:
        def _do() -> MutationResult:
            chat = self._require_chat(chat_id)
            self.scheduler.set_typing(chat_id, user_id, user_name)
            return MutationResult(chat=chat)

        return self._run("set_typing_indicator", chat_id, _do)

    def clear_typing_indicator(self, chat_id: str, user_id: str) -> bool:
        with chat_scope(chat_id):
            return self.scheduler.clear_typing(chat_id, user_id)

    # ======================== chats ========================

    def create_chat(self, recipient_id: str, recipient_name: Optional[str] = None) -> MutationResult:
        def _do() -> MutationResult:
            if recipient_id == self.user_id:
                raise ValidationAppError("cannot open a direct chat with yourself")
            existing = self.store.find_direct_chat(self.user_id, recipient_id)
            if existing is not None:
                return MutationResult(chat=existing)

            recipient = self.store.find_user(recipient_id) or User(
                user_id=recipient_id,
                display_name=recipient_name or recipient_id,
            )
            now = utc_now()
            chat = Chat(
                chat_id=new_id("chat"),
                type=ChatType.direct,
                participants=[self.user_id, recipient_id],
                participant_details=[recipient],
                last_activity=now,
                created_at=now,
                created_by=self.user_id,
            )
            self.store.check_chat(chat)
            self.store.chats.insert(0, chat)
            self.store.messages_by_chat[chat.chat_id] = []
            logger.info("direct chat created chat_id=%s recipient_id=%s", chat.chat_id, recipient_id)

            self._persist()
            self._notify_chats()
            return MutationResult(chat=chat)

        return self._run("create_chat", None, _do)

    def create_group(
        self,
        name: str,
        participant_ids: Iterable[str],
        *,
        description: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> MutationResult:
        def _do() -> MutationResult:
            others = [p for p in dict.fromkeys(participant_ids) if p != self.user_id]
            now = utc_now()
            chat = Chat(
                chat_id=new_id("chat"),
                type=ChatType.group,
                name=(name or "").strip() or None,
                participants=[self.user_id, *others],
                participant_details=[u for u in (self.store.find_user(p) for p in others) if u is not None],
                last_activity=now,
                created_at=now,
                created_by=self.user_id,
                description=description,
                avatar_url=avatar_url,
                admin_ids=[self.user_id],
            )
            self.store.check_chat(chat)
            self.store.chats.insert(0, chat)
            self.store.messages_by_chat[chat.chat_id] = []
            logger.info("group created chat_id=%s members=%s", chat.chat_id, len(chat.participants))

            self._persist()
            self._notify_chats()
            return MutationResult(chat=chat)

        return self._run("create_group", None, _do)

    def _set_flag(self, op: str, chat_id: str, field: str, value: bool) -> MutationResult:
        def _do() -> MutationResult:
            chat = self._require_chat(chat_id)
            if getattr(chat, field) != value:
                setattr(chat, field, value)
                self._persist()
                self._notify_chats()
            return MutationResult(chat=chat)

        return self._run(op, chat_id, _do)

    def archive_chat(self, chat_id: str, archived: bool = True) -> MutationResult:
        return self._set_flag("archive_chat", chat_id, "is_archived", archived)

    def mute_chat(self, chat_id: str, muted: bool = True) -> MutationResult:
        return self._set_flag("mute_chat", chat_id, "is_muted", muted)

    def pin_chat(self, chat_id: str, pinned: bool = True) -> MutationResult:
        return self._set_flag("pin_chat", chat_id, "is_pinned", pinned)
