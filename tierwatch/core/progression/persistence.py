"""
Progression Persistence

The progression snapshot lives under one fixed key, either in a JSON file on
disk (default) or in Redis when ``REDIS_URL`` is configured.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..recovery import PersistenceError
from .models import ProgressionState

logger = logging.getLogger(__name__)

STATE_KEY = "token_progression_state"


def encode_state(state: ProgressionState) -> str:
    return json.dumps(state.to_dict(), separators=(",", ":"))


def decode_state(raw: Optional[str], *, backend: str) -> Optional[ProgressionState]:
    if not raw:
        return None
    try:
        return ProgressionState.from_dict(json.loads(raw))
    except (ValueError, KeyError, TypeError) as exc:
        raise PersistenceError(f"corrupt progression snapshot: {exc}", backend=backend) from exc


class ProgressionStore(ABC):
    """Durable slot for the progression snapshot."""

    name: str = "store"

    @abstractmethod
    async def load(self) -> Optional[ProgressionState]:
        """Stored snapshot, ``None`` when nothing has been saved yet.

        Raises:
            PersistenceError: the backend could not be read or the data is corrupt
        """

    @abstractmethod
    async def save(self, state: ProgressionState) -> None:
        """Raises PersistenceError when the write fails."""

    async def close(self) -> None:
        return None


class MemoryStore(ProgressionStore):
    """Keeps the serialized snapshot in memory. Used by tests and the CLI dry run."""

    name = "memory"

    def __init__(self, raw: Optional[str] = None) -> None:
        self.raw = raw
        self.save_count = 0

    async def load(self) -> Optional[ProgressionState]:
        return decode_state(self.raw, backend=self.name)

    async def save(self, state: ProgressionState) -> None:
        self.raw = encode_state(state)
        self.save_count += 1


class JsonFileStore(ProgressionStore):
    """JSON document ``{"token_progression_state": {...}}`` replaced atomically."""

    name = "file"

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        document: Dict[str, Any] = json.loads(self.path.read_text(encoding="utf-8"))
        state = document.get(STATE_KEY)
        return json.dumps(state) if state is not None else None

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(f'{{"{STATE_KEY}":{payload}}}', encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def load(self) -> Optional[ProgressionState]:
        try:
            raw = await asyncio.to_thread(self._read)
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"could not read {self.path}: {exc}", backend=self.name) from exc
        return decode_state(raw, backend=self.name)

    async def save(self, state: ProgressionState) -> None:
        payload = encode_state(state)
        try:
            await asyncio.to_thread(self._write, payload)
        except OSError as exc:
            raise PersistenceError(f"could not write {self.path}: {exc}", backend=self.name) from exc


class RedisStore(ProgressionStore):
    """Snapshot stored as a JSON string under ``token_progression_state``."""

    name = "redis"

    def __init__(self, url: Optional[str] = None, *, client: Optional[redis.Redis] = None) -> None:
        if client is None and not url:
            raise ValueError("RedisStore needs a url or a client")
        self._client = client or redis.from_url(url, encoding="utf-8", decode_responses=True)

    async def load(self) -> Optional[ProgressionState]:
        try:
            raw = await self._client.get(STATE_KEY)
        except (RedisError, OSError) as exc:
            raise PersistenceError(f"redis read failed: {exc}", backend=self.name) from exc
        return decode_state(raw, backend=self.name)

    async def save(self, state: ProgressionState) -> None:
        try:
            await self._client.set(STATE_KEY, encode_state(state))
        except (RedisError, OSError) as exc:
            raise PersistenceError(f"redis write failed: {exc}", backend=self.name) from exc

    async def close(self) -> None:
        await self._client.aclose()


def build_store(config) -> ProgressionStore:
    """Redis when configured, the JSON file otherwise."""
    if config.has_redis:
        logger.info("Progression state stored in Redis")
        return RedisStore(config.redis_url)
    logger.info("Progression state stored at %s", config.progression_state_path)
    return JsonFileStore(config.progression_state_path)
