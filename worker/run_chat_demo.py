# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: Drives the engine once end-to-end against the configured blob store

from __future__ import annotations

import asyncio

from application.chat.engine_factory import build_engine
from domains.chat_domain import Message
from infrastructures.vconfig import vconfig
from infrastructures.vlogger import init_logging, vlogger


async def main() -> None:
    init_logging(vconfig.log_level)

    engine = await build_engine(vconfig)
    items = engine.get_chats(include_archived=False)
    if not items:
        vlogger.info("no chats stored; set SEED_DEMO_DATA=true for demo data")
        return

    chat = items[0].chat
    vlogger.info("demo chat_id=%s name=%s", chat.chat_id, chat.display_name(engine.user_id))

    def _on_messages(messages: list[Message]) -> None:
        last = messages[-1]
        vlogger.info("messages changed last=%s status=%s", last.message_id, last.status.value)

    unsubscribe = engine.on_messages_changed(chat.chat_id, _on_messages)

    result = engine.send_message(chat.chat_id, "hi")
    peer = next((p for p in chat.participants if p != engine.user_id), None)
    if peer is not None:
        engine.set_typing_indicator(chat.chat_id, peer, peer)

    wait_s = (vconfig.sent_delay_ms + vconfig.delivered_delay_ms) / 1000.0 + 0.1
    await asyncio.sleep(wait_s)

    if peer is not None and result.message is not None:
        engine.clear_typing_indicator(chat.chat_id, peer)
        engine.receive_message(chat.chat_id, peer, "got it")

    vlogger.info("preview: %s", engine.chat_preview(chat))
    unsubscribe()
    await engine.flush()
    engine.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
