"""Bounded hand-off between producer threads and the dispatcher."""

from __future__ import annotations

import enum
import threading
import time
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Tuple

from .errors import ClientClosedError


class StimulusKind(enum.Enum):
    EVENT = "event"
    TICK = "tick"
    FLUSH = "flush"
    SHUTDOWN = "shutdown"


@dataclass
class Stimulus:
    kind: StimulusKind
    payload: Optional[bytes] = None
    waiters: List["Future[int]"] = field(default_factory=list)


class IngestionQueue:
    """FIFO of serialized events with a fixed capacity.

    ``put`` blocks while the queue is full. The dispatcher calls ``wait``,
    which blocks on the same lock until an event, a flush request, the
    shutdown signal or the tick deadline is available, and hands back exactly
    one of them. A flush request is only released once every event put
    before it has been handed out, so a forced flush covers everything the
    caller enqueued beforehand.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._capacity = capacity
        self._items: Deque[bytes] = deque()
        self._mutex = threading.Lock()
        self._not_empty = threading.Condition(self._mutex)
        self._not_full = threading.Condition(self._mutex)
        self._flush_requests: List[Tuple[int, "Future[int]"]] = []
        self._put_seq = 0
        self._get_seq = 0
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        with self._mutex:
            return self._closed

    def __len__(self) -> int:
        with self._mutex:
            return len(self._items)

    def put(self, payload: bytes) -> None:
        with self._not_full:
            while not self._closed and len(self._items) >= self._capacity:
                self._not_full.wait()
            if self._closed:
                raise ClientClosedError("client is closed; event not accepted")
            self._items.append(payload)
            self._put_seq += 1
            self._not_empty.notify()

    def request_flush(self) -> "Future[int]":
        waiter: "Future[int]" = Future()
        with self._mutex:
            if self._closed:
                raise ClientClosedError("client is closed; flush not scheduled")
            self._flush_requests.append((self._put_seq, waiter))
            self._not_empty.notify()
        return waiter

    def request_shutdown(self) -> None:
        with self._mutex:
            if self._closed:
                return
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()

    def wait(self, deadline: Optional[float] = None) -> Stimulus:
        """Block until the next stimulus; ``deadline`` is a ``time.monotonic`` value."""
        with self._not_empty:
            while True:
                if self._closed:
                    waiters = [waiter for _, waiter in self._flush_requests]
                    self._flush_requests.clear()
                    return Stimulus(StimulusKind.SHUTDOWN, waiters=waiters)

                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return Stimulus(StimulusKind.TICK)

                ready = [waiter for barrier, waiter in self._flush_requests if barrier <= self._get_seq]
                if ready:
                    self._flush_requests = [
                        (barrier, waiter) for barrier, waiter in self._flush_requests if barrier > self._get_seq
                    ]
                    return Stimulus(StimulusKind.FLUSH, waiters=ready)

                if self._items:
                    payload = self._items.popleft()
                    self._get_seq += 1
                    self._not_full.notify()
                    return Stimulus(StimulusKind.EVENT, payload=payload)

                self._not_empty.wait(remaining)

    def abandon(self) -> int:
        """Discard events still queued after shutdown and return how many there were."""
        with self._mutex:
            dropped = len(self._items)
            self._items.clear()
            self._not_full.notify_all()
            return dropped


__all__ = ["IngestionQueue", "Stimulus", "StimulusKind"]
