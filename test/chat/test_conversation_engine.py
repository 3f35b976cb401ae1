# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: Mutation surface on seeded data (no timers involved)

from __future__ import annotations

from typing import List

from domains.chat_domain import (
    TOMBSTONE_TEXT,
    Chat,
    ChatType,
    Message,
    MessageStatus,
    MutationStatus,
)
from domains.payload_domain import TextPayload


def test_get_chats_orders_pinned_then_recent(engine) -> None:
    items = engine.get_chats()
    assert [i.chat.chat_id for i in items] == ["chat1", "chat3", "chat2"]

    by_id = {i.chat.chat_id: i for i in items}
    assert by_id["chat1"].is_online is True
    assert by_id["chat2"].is_online is False
    assert by_id["chat2"].last_seen is not None
    assert by_id["chat3"].is_online is None
    assert by_id["chat1"].last_message.message_id == "msg4"


def test_unread_counts_come_from_message_list(engine) -> None:
    counts = {i.chat.chat_id: i.unread_count for i in engine.get_chats()}
    assert counts == {"chat1": 3, "chat2": 0, "chat3": 1}


def test_last_activity_matches_latest_message(engine) -> None:
    for chat in engine.store.chats:
        latest = engine.store.latest_visible_message(chat.chat_id)
        assert chat.last_message_id == latest.message_id
        assert chat.last_activity == latest.timestamp


def test_get_messages_marks_other_senders_read(engine) -> None:
    own_before = {
        m.message_id: m.status for m in engine.store.messages_by_chat["chat1"] if m.sender_id == engine.user_id
    }
    chat_events: List[List[Chat]] = []
    engine.on_chats_changed(chat_events.append)

    messages = engine.get_messages("chat1")

    assert [m.timestamp for m in messages] == sorted(m.timestamp for m in messages)
    for m in messages:
        if m.sender_id == engine.user_id:
            assert m.status == own_before[m.message_id]
        else:
            assert m.status == MessageStatus.read
    assert engine.get_chat("chat1").unread_count == 0
    assert len(chat_events) == 1


def test_mark_read_is_idempotent(engine) -> None:
    engine.mark_messages_as_read("chat1")
    snapshot = [m.model_dump() for m in engine.store.messages_by_chat["chat1"]]
    events: List[List[Message]] = []
    engine.on_messages_changed("chat1", events.append)

    result = engine.mark_messages_as_read("chat1")

    assert result.ok
    assert engine.get_chat("chat1").unread_count == 0
    assert [m.model_dump() for m in engine.store.messages_by_chat["chat1"]] == snapshot
    assert events == []


def test_get_messages_for_unknown_chat_is_empty(engine) -> None:
    assert engine.get_messages("nope") == []
    assert engine.mark_messages_as_read("nope").status == MutationStatus.not_found


def test_edit_own_text_message(engine) -> None:
    before = engine.find_message("chat1", "msg2")
    status, ts = before.status, before.timestamp

    result = engine.edit_message("chat1", "msg2", "Edited hello")

    assert result.ok
    m = engine.find_message("chat1", "msg2")
    assert m.text == "Edited hello"
    assert m.is_edited is True and m.edited_at is not None
    assert m.status == status and m.timestamp == ts


def test_edit_or_delete_foreign_message_is_a_no_op(engine) -> None:
    before = engine.find_message("chat1", "msg1").model_dump_json()

    edit = engine.edit_message("chat1", "msg1", "hijacked")
    delete = engine.delete_message("chat1", "msg1")

    assert edit.status == MutationStatus.permission_denied
    assert delete.status == MutationStatus.permission_denied
    assert edit.error.code == "PERMISSION_DENIED"
    assert engine.find_message("chat1", "msg1").model_dump_json() == before


def test_edit_rejects_blank_and_non_text(engine) -> None:
    assert engine.edit_message("chat1", "msg2", "   ").status == MutationStatus.invalid
    # msg10 is an image
    assert engine.edit_message("chat1", "msg10", "caption").status == MutationStatus.invalid
    assert engine.find_message("chat1", "msg2").is_edited is False


def test_missing_targets_report_not_found(engine) -> None:
    assert engine.edit_message("nope", "msg2", "x").status == MutationStatus.not_found
    assert engine.edit_message("chat1", "nope", "x").status == MutationStatus.not_found
    assert engine.delete_message("chat1", "nope").status == MutationStatus.not_found
    assert engine.add_reaction("chat1", "nope", "👍").status == MutationStatus.not_found


def test_delete_older_own_message_keeps_last_message(engine) -> None:
    result = engine.delete_message("chat1", "msg2")

    assert result.ok
    m = engine.find_message("chat1", "msg2")
    assert m.is_deleted and m.deleted_at is not None
    assert m.text == TOMBSTONE_TEXT
    assert isinstance(m.payload, TextPayload) and m.payload.body.startswith("Hi Emma")
    assert engine.get_chat("chat1").last_message_id == "msg4"

    # second delete changes nothing
    deleted_at = m.deleted_at
    assert engine.delete_message("chat1", "msg2").ok
    assert engine.find_message("chat1", "msg2").deleted_at == deleted_at


def test_deleted_message_cannot_be_edited_or_reacted_to(engine) -> None:
    engine.delete_message("chat1", "msg2")
    assert engine.edit_message("chat1", "msg2", "again").status == MutationStatus.invalid
    assert engine.add_reaction("chat1", "msg2", "👍").status == MutationStatus.invalid


def test_reaction_upsert_by_reactor(engine) -> None:
    engine.add_reaction("chat1", "msg1", "👍")
    engine.add_reaction("chat1", "msg1", "❤️")
    engine.add_reaction("chat1", "msg1", "😂", reactor_id="user1")

    reactions = engine.find_message("chat1", "msg1").reactions
    mine = [r for r in reactions if r.user_id == engine.user_id]
    assert len(mine) == 1 and mine[0].emoji == "❤️"
    assert len(reactions) == 2
    emma = next(r for r in reactions if r.user_id == "user1")
    assert emma.user_name == "Emma Johnson"


def test_reaction_rejects_blank_emoji(engine) -> None:
    assert engine.add_reaction("chat1", "msg1", " ").status == MutationStatus.invalid
    assert engine.find_message("chat1", "msg1").reactions == []


def test_search_is_case_insensitive_and_grouped(engine) -> None:
    hits = engine.search_messages("LUNCH")
    assert list(hits) == ["chat1"]
    assert [m.message_id for m in hits["chat1"]] == ["msg4"]

    by_sender = engine.search_messages("emma")
    assert set(by_sender) == {"chat1", "chat3"}

    assert [m.message_id for m in engine.search_messages("bengaluru")["chat2"]] == ["msg8"]
    assert engine.search_messages("   ") == {}


def test_search_skips_tombstones(engine) -> None:
    engine.delete_message("chat1", "msg2")
    assert "chat1" not in engine.search_messages("exciting new features")


def test_copy_message_text_projects_payloads(engine) -> None:
    assert engine.copy_message_text(engine.find_message("chat1", "msg10")) == "app_screenshot.png"
    assert engine.copy_message_text(engine.find_message("chat1", "msg11")) == "project_proposal.pdf"
    assert engine.copy_message_text(engine.find_message("chat2", "msg8")) == "Location: Bengaluru, Karnataka, India"
    assert engine.copy_message_text(engine.find_message("chat1", "msg4")) == "Are we still on for lunch tomorrow?"


def test_chat_preview_prefixes(engine) -> None:
    assert engine.chat_preview(engine.get_chat("chat1")) == "Are we still on for lunch tomorrow?"
    assert engine.chat_preview(engine.get_chat("chat3")) == "Sarah: Perfect! See you all in the conference room 👋"


def test_message_info(engine) -> None:
    info = engine.get_message_info(engine.find_message("chat2", "msg8"))
    assert info.sender == "You"
    assert info.type.value == "location"
    assert info.reply_to is None


def test_users_exclude_current_user(engine) -> None:
    assert {u.user_id for u in engine.get_users()} == {"user1", "user2", "user3", "user4"}


def test_pin_and_archive_flags(engine) -> None:
    events: List[List[Chat]] = []
    engine.on_chats_changed(events.append)

    engine.archive_chat("chat2")
    engine.pin_chat("chat3")
    engine.pin_chat("chat3")  # unchanged: no event

    assert [i.chat.chat_id for i in engine.get_chats()] == ["chat1", "chat3", "chat2"]
    assert [i.chat.chat_id for i in engine.get_chats(include_archived=False)] == ["chat1", "chat3"]
    assert len(events) == 2
    # chat list notifications and the default listing agree
    assert [c.chat_id for c in events[-1]] == [i.chat.chat_id for i in engine.get_chats()]
    assert events[-1][2].is_archived is True
    assert engine.mute_chat("nope").status == MutationStatus.not_found


def test_receive_message_counts_as_unread(engine) -> None:
    result = engine.receive_message("chat2", "user2", "are you there?")

    assert result.ok
    assert result.message.status == MessageStatus.delivered
    assert result.message.sender_name == "Alex Smith"
    chat = engine.get_chat("chat2")
    assert chat.unread_count == 1
    assert chat.last_message_id == result.message.message_id
    assert engine.chat_preview(chat) == "are you there?"


def test_receive_message_from_outsider_is_rejected(engine) -> None:
    assert engine.receive_message("chat2", "user3", "hi").status == MutationStatus.invalid
    assert engine.receive_message("chat2", engine.user_id, "hi").status == MutationStatus.invalid


def test_create_chat_reuses_existing_direct_chat(engine) -> None:
    result = engine.create_chat("user1", "Emma Johnson")
    assert result.chat.chat_id == "chat1"
    assert len(engine.store.chats) == 3


def test_create_chat_for_new_recipient(engine) -> None:
    result = engine.create_chat("user9", "Nina")

    assert result.ok
    chat = result.chat
    assert chat.type == ChatType.direct
    assert chat.participants == [engine.user_id, "user9"]
    assert chat.display_name(engine.user_id) == "Nina"
    assert engine.store.chats[0] is chat
    assert engine.store.messages_by_chat[chat.chat_id] == []
    assert engine.chat_preview(chat) == "No messages yet"

    assert engine.create_chat(engine.user_id).status == MutationStatus.invalid


def test_create_group(engine) -> None:
    result = engine.create_group("Hikers", ["user1", "user3", "user1"], description="weekend trips")

    assert result.ok
    chat = result.chat
    assert chat.type == ChatType.group
    assert chat.participants == [engine.user_id, "user1", "user3"]
    assert chat.admin_ids == [engine.user_id]
    assert [u.user_id for u in chat.participant_details] == ["user1", "user3"]

    assert engine.create_group("  ", ["user1"]).status == MutationStatus.invalid
    assert engine.create_group("Solo", [engine.user_id]).status == MutationStatus.invalid


def test_typing_for_unknown_chat_is_not_found(engine) -> None:
    assert engine.set_typing_indicator("nope", "user1", "Emma").status == MutationStatus.not_found
    assert engine.clear_typing_indicator("chat1", "user1") is False


def test_send_outside_event_loop_leaves_no_trace(engine) -> None:
    chat = engine.get_chat("chat1")
    count = len(engine.store.messages_by_chat["chat1"])
    last_id, last_activity = chat.last_message_id, chat.last_activity
    events: List[List[Message]] = []
    engine.on_messages_changed("chat1", events.append)

    sent = engine.send_message("chat1", "hi")
    reply = engine.send_reply("chat1", "re", engine.find_message("chat1", "msg4"))
    fwd = engine.forward_message(engine.find_message("chat2", "msg8"), ["chat1"])
    typing = engine.set_typing_indicator("chat1", "user1", "Emma Johnson")

    for result in (sent, reply, fwd, typing):
        assert result.status == MutationStatus.invalid
        assert result.error.code == "SCHEDULER_UNAVAILABLE"
    assert len(engine.store.messages_by_chat["chat1"]) == count
    assert (chat.last_message_id, chat.last_activity) == (last_id, last_activity)
    assert engine.get_typing_indicators("chat1") == []
    assert events == []


def test_save_outside_event_loop_is_skipped(make_engine, memory_store, persistence_for) -> None:
    engine = make_engine(persistence=persistence_for(memory_store))

    result = engine.edit_message("chat1", "msg2", "offline edit")

    assert result.ok
    assert engine.find_message("chat1", "msg2").text == "offline edit"
    assert memory_store.keys() == []


def test_subscribers_receive_copies(engine) -> None:
    def vandal_messages(batch: List[Message]) -> None:
        for m in batch:
            m.payload = TextPayload(body="tampered")

    def vandal_chats(batch: List[Chat]) -> None:
        for c in batch:
            c.is_pinned = False

    engine.on_messages_changed("chat1", vandal_messages)
    engine.on_chats_changed(vandal_chats)

    engine.get_messages("chat1")

    assert engine.find_message("chat1", "msg4").text == "Are we still on for lunch tomorrow?"
    assert engine.get_chat("chat1").is_pinned is True
