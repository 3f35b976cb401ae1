# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: Process-local blob store (tests / demo runs)

from __future__ import annotations

from typing import Dict, List, Optional

from infrastructures.storage.storage_base import BlobStore


class MemoryBlobStore(BlobStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def keys(self) -> List[str]:
        return list(self._data.keys())
