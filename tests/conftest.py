from __future__ import annotations

import threading
from typing import Callable, List, Optional

import httpx
import pytest

from event_relay.config import ClientConfig
from event_relay.emitter import Emitter
from event_relay.queue import IngestionQueue
from event_relay.store import MemoryStore
from event_relay.dispatcher import Dispatcher


class FakeCollector:
    """Records every request and answers with a scripted status code."""

    def __init__(self, status: int = 200) -> None:
        self.status = status
        self.requests: List[httpx.Request] = []
        self.fail_transport = False
        self.on_request: Optional[Callable[[httpx.Request], None]] = None
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        if self.on_request is not None:
            self.on_request(request)
        if self.fail_transport:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(self.status, text="ok" if self.status < 300 else "rejected")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def bodies(self) -> List[bytes]:
        with self._lock:
            return [request.content for request in self.requests]


def make_config(**overrides) -> ClientConfig:
    defaults = dict(
        collector_url="https://collector.example.com",
        api_key="test-key",
        queue_buffer=100,
        flush_interval=60.0,
        flush_count=100,
        max_retries=3,
    )
    defaults.update(overrides)
    return ClientConfig(**defaults)


@pytest.fixture()
def collector() -> FakeCollector:
    return FakeCollector()


@pytest.fixture()
def build_dispatcher(collector: FakeCollector):
    """Dispatcher wired to the fake collector; driven without a thread."""
    created: List[Emitter] = []

    def factory(validator=None, dead_letters=None, store=None, **overrides) -> Dispatcher:
        config = make_config(**overrides)
        emitter = Emitter(config, transport=collector.transport)
        created.append(emitter)
        return Dispatcher(
            config,
            store if store is not None else MemoryStore(),
            emitter,
            IngestionQueue(config.queue_buffer),
            validator=validator,
            dead_letters=dead_letters,
        )

    yield factory
    for emitter in created:
        emitter.close()
