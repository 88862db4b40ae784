"""Producer-facing client for the event relay."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Union

import httpx

from . import metrics
from .archive import DeadLetterWriter
from .config import ClientConfig
from .dispatcher import Dispatcher, Validator
from .emitter import Emitter
from .errors import ClientClosedError
from .events import Action, Event, EventContext, Group, Page, Session, User, validate_payload
from .queue import IngestionQueue
from .retry import RetryPolicy
from .store import Store, build_store

logger = logging.getLogger(__name__)

EventLike = Union[bytes, bytearray, str, Event]


class RelayClient:
    """Buffers events and hands them to a background dispatcher for delivery.

    ``enqueue`` blocks while the ingestion queue is full. ``flush`` asks the
    dispatcher for an immediate flush and waits for its result. ``close``
    performs one final flush and stops the dispatcher; callers must stop
    producing before closing.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        store: Optional[Store] = None,
        validator: Optional[Validator] = None,
        autostart: bool = True,
    ) -> None:
        self._config = config
        self._queue = IngestionQueue(config.queue_buffer)
        self._emitter = Emitter(config, transport=transport)
        self._store = store if store is not None else build_store(config.store_path)
        self._dispatcher = Dispatcher(
            config,
            self._store,
            self._emitter,
            self._queue,
            retry_policy=RetryPolicy(max_retries=config.max_retries),
            validator=validator or validate_payload,
            dead_letters=DeadLetterWriter.from_path(config.dead_letter_path),
        )
        self._context = EventContext()
        self._context_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._closed = False
        if autostart:
            self.start()

    def __enter__(self) -> "RelayClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def context(self) -> EventContext:
        with self._context_lock:
            return self._context

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        if self._closed:
            raise ClientClosedError("client is closed")
        self._dispatcher.start()

    # -- context --

    def set_context(self, **extra: Any) -> "RelayClient":
        return self._apply_context(EventContext(extra=extra))

    def set_user(self, user: User) -> "RelayClient":
        return self._apply_context(EventContext(user=user))

    def set_group(self, group: Group) -> "RelayClient":
        return self._apply_context(EventContext(group=group))

    def _apply_context(self, layer: EventContext) -> "RelayClient":
        with self._context_lock:
            self._context = self._context.merge(layer)
        return self

    # -- producer operations --

    def enqueue(self, event: EventLike) -> None:
        if self._closed:
            raise ClientClosedError("client is closed; event not accepted")
        self._queue.put(self._serialize(event))
        metrics.EVENTS_ENQUEUED.inc()

    def flush(self, timeout: Optional[float] = None) -> int:
        """Flush now and return how many events the collector confirmed."""
        if self._closed:
            raise ClientClosedError("client is closed; flush not scheduled")
        waiter = self._queue.request_flush()
        return waiter.result(timeout=timeout)

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        finished = self._dispatcher.stop(timeout=self._config.close_timeout)
        if not finished:
            logger.warning("Closing transport while the final flush is still running")
        self._emitter.close()
        self._store.close()

    def _serialize(self, event: EventLike) -> bytes:
        if isinstance(event, Event):
            return event.with_context(self.context).to_bytes()
        if isinstance(event, str):
            return event.encode("utf-8")
        return bytes(event)

    # -- event helpers --

    def track(self, event_type: str, **properties: Any) -> None:
        self.enqueue(Event(event_type=event_type, properties=properties))

    def action(self, action: Action, **properties: Any) -> None:
        props = {**action.model_dump(exclude_none=True), **properties}
        self.enqueue(Event(event_type="action", properties=props))

    def session(self, session: Session, **properties: Any) -> None:
        props = {**session.model_dump(mode="json", exclude_none=True), **properties}
        self.enqueue(Event(event_type="session", properties=props))

    def identify(self, user: User, **properties: Any) -> None:
        self.enqueue(Event(event_type="identify", properties=properties, context=EventContext(user=user)))

    def page(self, page: Page, **properties: Any) -> None:
        props = {**page.model_dump(exclude_none=True), **properties}
        self.enqueue(Event(event_type="pageview", properties=props))

    def screen(self, name: str, **properties: Any) -> None:
        self.enqueue(Event(event_type="screen", properties={"screen_name": name, **properties}))

    def group(self, group: Group, user: Optional[User] = None, **properties: Any) -> None:
        context = EventContext(user=user, group=group)
        self.enqueue(Event(event_type="group", properties=properties, context=context))

    def alias(self, previous_id: str, user: User, **properties: Any) -> None:
        props = {"previous_id": previous_id, **properties}
        self.enqueue(Event(event_type="alias", properties=props, context=EventContext(user=user)))

    def timing(self, category: str, variable: str, duration_ms: int, **properties: Any) -> None:
        props = {"category": category, "variable": variable, "duration_ms": duration_ms, **properties}
        self.enqueue(Event(event_type="timing", properties=props))


__all__ = ["RelayClient", "EventLike"]
