# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:
from __future__ import annotations

from typing import Optional

from infrastructures.storage.local_storage import LocalBlobStore
from infrastructures.storage.memory_storage import MemoryBlobStore
from infrastructures.storage.redis_storage import RedisBlobStore
from infrastructures.storage.storage_base import BlobStore
from infrastructures.vconfig import VConfig, vconfig


def get_blob_store(config: Optional[VConfig] = None) -> BlobStore:
    cfg = config or vconfig
    if cfg.store_backend == "local":
        return LocalBlobStore(base_dir=cfg.store_dir)
    if cfg.store_backend == "redis":
        return RedisBlobStore(cfg.redis_url, timeout_seconds=cfg.redis_timeout_seconds)
    return MemoryBlobStore()
