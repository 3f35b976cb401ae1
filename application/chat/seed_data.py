# -*- coding: utf-8 -*-
# @File: application/chat/seed_data.py
# @Author: yaccii
# @Description: Demo directory / chats / messages for a fresh install (SEED_DEMO_DATA)

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from domains.chat_domain import Chat, ChatType, Message, MessageStatus, User
from domains.domain_base import utc_now
from domains.payload_domain import (
    DocumentPayload,
    ImagePayload,
    LocationPayload,
    MessagePayload,
    TextPayload,
    message_type_for,
)

SeedData = Tuple[List[User], List[Chat], Dict[str, List[Message]]]


def demo_users(now: Optional[datetime] = None) -> List[User]:
    now = now or utc_now()
    return [
        User(
            user_id="user1",
            display_name="Emma Johnson",
            email="emma@example.com",
            avatar_url="https://randomuser.me/api/portraits/women/1.jpg",
            is_online=True,
            status_text="Available for chat 💕",
        ),
        User(
            user_id="user2",
            display_name="Alex Smith",
            email="alex@example.com",
            avatar_url="https://randomuser.me/api/portraits/men/1.jpg",
            is_online=False,
            last_seen=now - timedelta(minutes=30),
            status_text="Busy with work",
        ),
        User(
            user_id="user3",
            display_name="Sarah Wilson",
            email="sarah@example.com",
            avatar_url="https://randomuser.me/api/portraits/women/2.jpg",
            is_online=True,
            status_text="Feeling great today! ✨",
        ),
        User(
            user_id="user4",
            display_name="Mike Davis",
            email="mike@example.com",
            avatar_url="https://randomuser.me/api/portraits/men/2.jpg",
            is_online=False,
            last_seen=now - timedelta(hours=2),
        ),
    ]


def demo_seed(self_id: str = "currentUser", self_name: str = "You") -> SeedData:
    now = utc_now()
    users = demo_users(now)
    by_id = {u.user_id: u for u in users}

    def ago(**kw) -> datetime:
        return now - timedelta(**kw)

    def msg(
        message_id: str,
        chat_id: str,
        sender_id: str,
        payload: MessagePayload,
        at: datetime,
        status: MessageStatus,
    ) -> Message:
        sender = by_id.get(sender_id)
        return Message(
            message_id=message_id,
            chat_id=chat_id,
            sender_id=sender_id,
            sender_name=sender.display_name if sender else self_name,
            sender_avatar=sender.avatar_url if sender else None,
            payload=payload,
            timestamp=at,
            status=status,
            type=message_type_for(payload),
        )

    chats = [
        Chat(
            chat_id="chat1",
            type=ChatType.direct,
            participants=[self_id, "user1"],
            participant_details=[by_id["user1"]],
            created_at=ago(days=7),
            created_by=self_id,
            is_pinned=True,
        ),
        Chat(
            chat_id="chat2",
            type=ChatType.direct,
            participants=[self_id, "user2"],
            participant_details=[by_id["user2"]],
            created_at=ago(days=3),
            created_by="user2",
        ),
        Chat(
            chat_id="chat3",
            type=ChatType.group,
            name="Love Connect Team",
            participants=[self_id, "user1", "user3", "user4"],
            participant_details=[by_id["user1"], by_id["user3"], by_id["user4"]],
            created_at=ago(days=14),
            created_by=self_id,
            avatar_url="https://randomuser.me/api/portraits/lego/2.jpg",
            description="Official team chat for Love Connect app development",
            admin_ids=[self_id, "user1"],
        ),
    ]

    read, delivered = MessageStatus.read, MessageStatus.delivered
    messages = {
        "chat1": [
            msg("msg1", "chat1", "user1", TextPayload(body="Hey! How are you doing today? 😊"), ago(hours=2), read),
            msg(
                "msg2", "chat1", self_id,
                TextPayload(body="Hi Emma! I'm doing great, thanks for asking! Just working on some exciting new features for our app 💻"),
                ago(minutes=90), read,
            ),
            msg(
                "msg10", "chat1", self_id,
                ImagePayload(uri="https://picsum.photos/400/300?random=123", filename="app_screenshot.png"),
                ago(minutes=75), read,
            ),
            msg(
                "msg3", "chat1", "user1",
                TextPayload(body="That sounds amazing! Can't wait to see what you've been working on 🎉"),
                ago(minutes=30), delivered,
            ),
            msg(
                "msg11", "chat1", "user1",
                DocumentPayload(uri="file:///documents/project_proposal.pdf", filename="project_proposal.pdf"),
                ago(minutes=20), delivered,
            ),
            msg("msg4", "chat1", "user1", TextPayload(body="Are we still on for lunch tomorrow?"), ago(minutes=5), delivered),
        ],
        "chat2": [
            msg("msg5", "chat2", "user2", TextPayload(body="Good morning! Hope you have a wonderful day ahead ☀️"), ago(hours=2), read),
            msg(
                "msg6", "chat2", self_id,
                TextPayload(body="Good morning Alex! You too! Thanks for the positive vibes 😊"),
                ago(minutes=90), read,
            ),
            msg(
                "msg7", "chat2", "user2",
                ImagePayload(uri="https://picsum.photos/400/300?random=456", filename="beautiful_sunset.jpg"),
                ago(minutes=60), read,
            ),
            msg(
                "msg8", "chat2", self_id,
                LocationPayload(lat=12.963783, lng=77.723612, address="Bengaluru, Karnataka, India"),
                ago(minutes=30), delivered,
            ),
            msg("msg9", "chat2", "user2", TextPayload(body="Wow, that location looks amazing! 📍"), ago(minutes=25), read),
        ],
        "chat3": [
            msg(
                "msg12", "chat3", "user3",
                TextPayload(body="Team meeting in 30 minutes! Don't forget to bring your laptops 💻"),
                ago(minutes=30), read,
            ),
            msg(
                "msg13", "chat3", "user1",
                TextPayload(body="I'll be there! Should I prepare the presentation slides?"),
                ago(minutes=25), read,
            ),
            msg(
                "msg14", "chat3", "user4",
                TextPayload(body="Yes please! Also, I've uploaded the latest design mockups to our shared folder 📁"),
                ago(minutes=20), read,
            ),
            msg(
                "msg15", "chat3", self_id,
                TextPayload(body="Awesome! I'll review them before the meeting. Great work everyone! 🚀"),
                ago(minutes=15), read,
            ),
            msg("msg16", "chat3", "user3", TextPayload(body="Perfect! See you all in the conference room 👋"), ago(minutes=10), delivered),
        ],
    }
    return users, chats, messages
