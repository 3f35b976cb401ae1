# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: Redis blob store (GET/SET over a short-lived RESP connection)
from __future__ import annotations

import asyncio
import socket
from dataclasses import dataclass
from typing import BinaryIO, List, Optional
from urllib.parse import unquote, urlparse

from domains.error_domain import PersistenceError
from infrastructures.storage.storage_base import BlobStore


def encode_command(*parts: str) -> bytes:
    """RESP array of bulk strings."""
    out = [b"*%d\r\n" % len(parts)]
    for p in parts:
        raw = p.encode("utf-8")
        out.append(b"$%d\r\n%s\r\n" % (len(raw), raw))
    return b"".join(out)


def read_reply(reader: BinaryIO) -> Optional[bytes]:
    """
    只处理本模块会遇到的回复类型：
    +OK / -ERR / $bulk / $-1 (nil)
    """
    line = reader.readline()
    if not line.endswith(b"\r\n"):
        raise ConnectionError("Redis connection closed")
    kind, body = line[:1], line[1:-2]

    if kind == b"+":
        return body
    if kind == b"-":
        raise ConnectionError(f"Redis error reply: {body.decode('utf-8', 'replace')}")
    if kind == b"$":
        size = int(body)
        if size < 0:
            return None
        data = reader.read(size + 2)
        if len(data) != size + 2:
            raise ConnectionError("Redis connection closed")
        return data[:-2]
    raise ConnectionError(f"Redis unexpected reply: {line!r}")


@dataclass(frozen=True)
class RedisTarget:
    host: str
    port: int
    db: int
    username: Optional[str]
    password: Optional[str]


def parse_redis_url(redis_url: str) -> RedisTarget:
    u = urlparse(redis_url)
    if u.scheme != "redis":
        raise ValueError("REDIS_URL must start with redis://")
    db_part = u.path.lstrip("/")
    return RedisTarget(
        host=u.hostname or "localhost",
        port=u.port or 6379,
        db=int(db_part) if db_part else 0,
        username=unquote(u.username) if u.username else None,
        password=unquote(u.password) if u.password else None,
    )


class RedisBlobStore(BlobStore):
    """One connection per call; blobs are small and writes are infrequent."""

    def __init__(self, redis_url: str, *, timeout_seconds: float = 3.0) -> None:
        self.target = parse_redis_url(redis_url)
        self.timeout_seconds = timeout_seconds

    def _handshake(self) -> List[bytes]:
        t = self.target
        cmds: List[bytes] = []
        if t.password:
            if t.username and t.username != "default":
                cmds.append(encode_command("AUTH", t.username, t.password))
            else:
                cmds.append(encode_command("AUTH", t.password))
        if t.db:
            cmds.append(encode_command("SELECT", str(t.db)))
        return cmds

    def execute(self, *parts: str) -> Optional[bytes]:
        """Blocking round trip: handshake commands, then the command itself."""
        t = self.target
        pipeline = self._handshake() + [encode_command(*parts)]
        with socket.create_connection((t.host, t.port), timeout=self.timeout_seconds) as sock:
            sock.sendall(b"".join(pipeline))
            with sock.makefile("rb") as reader:
                reply: Optional[bytes] = None
                for _ in pipeline:
                    reply = read_reply(reader)
        return reply

    async def get(self, key: str) -> Optional[str]:
        try:
            raw = await asyncio.to_thread(self.execute, "GET", key)
        except OSError as e:
            raise PersistenceError(message=f"redis GET failed key={key}", details={"error": str(e)}) from e
        return raw.decode("utf-8") if raw is not None else None

    async def set(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(self.execute, "SET", key, value)
        except OSError as e:
            raise PersistenceError(message=f"redis SET failed key={key}", details={"error": str(e)}) from e
