# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: DomainModel 基类与公共工具（统一配置/时间戳/ID）

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    # ms prefix keeps ids roughly creation-ordered
    return f"{prefix}_{now_ms()}_{uuid.uuid4().hex[:8]}"


class DomainModel(BaseModel):
    # validate_assignment: 原地修改（状态推进/编辑）同样走字段约束
    model_config = ConfigDict(from_attributes=True, protected_namespaces=(), validate_assignment=True)

    def to_dict(self, *, exclude_none: bool = False) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=exclude_none)
