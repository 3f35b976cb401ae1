# -*- coding: utf-8 -*-
# @File: application/chat/notification_bus.py
# @Author: yaccii
# @Description: Topic -> ordered handlers, synchronous fan-out

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, TypeVar

from infrastructures.vlogger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Unsubscribe = Callable[[], None]

ALL = "*"


@dataclass(eq=False)
class _Subscription(Generic[T]):
    handler: Callable[[T], None]
    active: bool = True


class EventBus(Generic[T]):
    """
    Dispatch rules:
    - handlers run synchronously in subscription order
    - a handler subscribed during dispatch misses the in-flight event
    - a handler unsubscribed during dispatch is skipped from that point on
    - a raising handler is logged; the remaining handlers still run
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._subs: Dict[str, List[_Subscription[T]]] = {}

    def subscribe(self, topic: str, handler: Callable[[T], None]) -> Unsubscribe:
        sub: _Subscription[T] = _Subscription(handler=handler)
        self._subs.setdefault(topic, []).append(sub)

        def unsubscribe() -> None:
            if not sub.active:
                return
            sub.active = False
            subs = self._subs.get(topic)
            if subs is None:
                return
            # rebind instead of in-place remove so an ongoing dispatch keeps its snapshot
            remaining = [s for s in subs if s is not sub]
            if remaining:
                self._subs[topic] = remaining
            else:
                self._subs.pop(topic, None)

        return unsubscribe

    def publish(self, topic: str, event: T) -> int:
        snapshot = list(self._subs.get(topic, ()))
        delivered = 0
        for sub in snapshot:
            if not sub.active:
                continue
            try:
                sub.handler(event)
            except Exception:
                logger.exception("%s handler failed topic=%s", self.name, topic)
                continue
            delivered += 1
        return delivered

    def subscriber_count(self, topic: str) -> int:
        return len(self._subs.get(topic, ()))

    def clear(self) -> None:
        for subs in self._subs.values():
            for s in subs:
                s.active = False
        self._subs.clear()
