# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

import asyncio
import hashlib
import os
import re
from typing import Optional

from domains.error_domain import PersistenceError
from infrastructures.storage.storage_base import BlobStore

_filename_re = re.compile(r"[^0-9A-Za-z._-]+")


def _safe_filename(key: str) -> str:
    base = _filename_re.sub("_", (key or "blob").strip()).strip("._") or "blob"
    # 不同 key 清洗后可能撞名，追加短哈希区分
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:8]
    return f"{base[:160]}_{digest}.json"


class LocalBlobStore(BlobStore):
    """One file per key under base_dir; writes go through a temp file + rename."""

    def __init__(self, *, base_dir: str) -> None:
        self.base_dir = os.path.abspath(base_dir)
        os.makedirs(self.base_dir, exist_ok=True)

    def path_for(self, key: str) -> str:
        return os.path.join(self.base_dir, _safe_filename(key))

    async def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)

        def _read() -> Optional[str]:
            if not os.path.exists(path):
                return None
            with open(path, "r", encoding="utf-8") as f:
                return f.read()

        return await asyncio.to_thread(_read)

    async def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp_path = path + ".tmp"

        def _write() -> None:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_path, path)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise PersistenceError(
                message=f"failed to write blob key={key}",
                details={"path": path, "error": str(e)},
            ) from e
