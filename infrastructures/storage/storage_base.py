# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:  Blob store abstraction (string value by key) shared by chat persistence

from __future__ import annotations

from typing import Optional, Protocol


class BlobStore(Protocol):
    """最小 KV 接口：按 key 读写整段字符串。"""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...
