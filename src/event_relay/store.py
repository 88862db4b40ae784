"""Holding area for events that have not been confirmed by the collector.

Stores perform no locking of their own. The dispatcher thread is the only
caller, so every implementation may assume single-threaded access.
"""

from __future__ import annotations

import abc
import base64
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union
from uuid import uuid4

from .errors import StoreError

logger = logging.getLogger(__name__)


@dataclass
class StoredEvent:
    identity: str
    payload: bytes
    attempted: bool = False
    attempts: int = 0
    last_attempt: Optional[datetime] = None

    def copy(self) -> "StoredEvent":
        return StoredEvent(
            identity=self.identity,
            payload=self.payload,
            attempted=self.attempted,
            attempts=self.attempts,
            last_attempt=self.last_attempt,
        )


class Store(abc.ABC):
    """Contract shared by every backing store.

    ``get_all`` returns copies in insertion order; callers persist changes
    through ``update``. ``update`` of an unknown identity raises
    :class:`StoreError` while ``remove`` of one is a no-op.
    """

    @abc.abstractmethod
    def set(self, payload: bytes) -> StoredEvent:
        raise NotImplementedError

    @abc.abstractmethod
    def update(self, event: StoredEvent) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def remove(self, event: StoredEvent) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def count(self) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    def get_all(self) -> List[StoredEvent]:
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - optional override
        return None


class MemoryStore(Store):
    def __init__(self) -> None:
        self._events: Dict[str, StoredEvent] = {}

    def set(self, payload: bytes) -> StoredEvent:
        event = StoredEvent(identity=uuid4().hex, payload=bytes(payload))
        self._events[event.identity] = event
        return event.copy()

    def update(self, event: StoredEvent) -> None:
        if event.identity not in self._events:
            raise StoreError(f"event {event.identity} not found")
        self._events[event.identity] = event.copy()

    def remove(self, event: StoredEvent) -> None:
        self._events.pop(event.identity, None)

    def count(self) -> int:
        return len(self._events)

    def get_all(self) -> List[StoredEvent]:
        return [event.copy() for event in self._events.values()]


class FileStore(MemoryStore):
    """Durable store persisted as NDJSON and reloaded on construction."""

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__()
        self._path = Path(path)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"cannot create store directory for {self._path}: {exc}") from exc
        self._load()
        if self._events:
            logger.info("FileStore reloaded %s pending events from %s", len(self._events), self._path)

    @property
    def path(self) -> Path:
        return self._path

    def set(self, payload: bytes) -> StoredEvent:
        event = super().set(payload)
        try:
            self._persist()
        except StoreError:
            self._events.pop(event.identity, None)
            raise
        return event

    def update(self, event: StoredEvent) -> None:
        previous = self._events.get(event.identity)
        super().update(event)
        try:
            self._persist()
        except StoreError:
            self._events[event.identity] = previous  # type: ignore[assignment]
            raise

    def remove(self, event: StoredEvent) -> None:
        previous = self._events.get(event.identity)
        if previous is None:
            return
        super().remove(event)
        try:
            self._persist()
        except StoreError:
            self._events[event.identity] = previous
            raise

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                lines = fh.readlines()
        except OSError as exc:
            raise StoreError(f"cannot read {self._path}: {exc}") from exc
        for number, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                event = self._decode(json.loads(line))
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Skipping corrupt store record %s:%s (%s)", self._path, number, exc)
                continue
            self._events[event.identity] = event

    def _persist(self) -> None:
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as fh:
                for event in self._events.values():
                    fh.write(json.dumps(self._encode(event), separators=(",", ":")) + "\n")
            os.replace(tmp, self._path)
        except OSError as exc:
            raise StoreError(f"cannot write {self._path}: {exc}") from exc

    @staticmethod
    def _encode(event: StoredEvent) -> dict:
        return {
            "identity": event.identity,
            "payload": base64.b64encode(event.payload).decode("ascii"),
            "attempted": event.attempted,
            "attempts": event.attempts,
            "last_attempt": event.last_attempt.isoformat() if event.last_attempt else None,
        }

    @staticmethod
    def _decode(record: dict) -> StoredEvent:
        last_attempt = record.get("last_attempt")
        return StoredEvent(
            identity=record["identity"],
            payload=base64.b64decode(record["payload"]),
            attempted=bool(record.get("attempted", False)),
            attempts=int(record.get("attempts", 0)),
            last_attempt=datetime.fromisoformat(last_attempt) if last_attempt else None,
        )


def build_store(path: Optional[str] = None) -> Store:
    return FileStore(path) if path else MemoryStore()


__all__ = ["StoredEvent", "Store", "MemoryStore", "FileStore", "build_store"]
