"""Background control loop that owns the store and drives delivery."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from typing import Callable, List, Optional

from . import metrics
from .archive import DeadLetterWriter
from .config import ClientConfig
from .emitter import Emitter
from .errors import DeliveryError, RetryExhausted, StoreError
from .events import validate_payload
from .logging import build_drop_record, log_debug, log_dropped
from .queue import IngestionQueue, Stimulus, StimulusKind
from .retry import RetryDecision, RetryPolicy
from .store import Store, StoredEvent

logger = logging.getLogger(__name__)

Validator = Callable[[bytes], bool]


class Dispatcher:
    """Single consumer of the ingestion queue and sole mutator of the store.

    Every stimulus (new event, timer tick, forced flush, shutdown) is handled
    to completion before the next one is taken, so flushes never overlap and
    the store needs no locking. ``handle`` and ``flush`` are public so the
    loop can be driven step by step without a thread.
    """

    def __init__(
        self,
        config: ClientConfig,
        store: Store,
        emitter: Emitter,
        queue: IngestionQueue,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        validator: Optional[Validator] = None,
        dead_letters: Optional[DeadLetterWriter] = None,
    ) -> None:
        self._config = config
        self._store = store
        self._emitter = emitter
        self._queue = queue
        self._retry = retry_policy or RetryPolicy(max_retries=config.max_retries)
        self._validator = validator or validate_payload
        self._dead_letters = dead_letters
        self._thread: Optional[threading.Thread] = None
        self._stopped = threading.Event()
        self._flushing = False

    @property
    def store(self) -> Store:
        return self._store

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="event-relay-dispatcher", daemon=True)
        self._thread.start()
        logger.info(
            "Dispatcher started (flush_interval=%.2fs, flush_count=%s, bulk=%s, max_retries=%s)",
            self._config.flush_interval,
            self._config.flush_count,
            self._config.bulk,
            self._config.max_retries,
        )

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Signal shutdown and wait for the final flush; False if the wait timed out."""
        self._queue.request_shutdown()
        if self._thread is None:
            # Never started: no other thread can touch the store.
            self.handle(self._queue.wait())
            return True
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Dispatcher did not finish its final flush within %ss", timeout)
            return False
        return True

    def _run(self) -> None:
        next_tick = time.monotonic() + self._config.flush_interval
        while not self._stopped.is_set():
            stimulus = self._queue.wait(deadline=next_tick)
            if stimulus.kind is StimulusKind.TICK:
                next_tick = time.monotonic() + self._config.flush_interval
            try:
                self.handle(stimulus)
            except Exception:
                logger.exception("Dispatcher failed to handle %s stimulus", stimulus.kind.value)

    def handle(self, stimulus: Stimulus) -> None:
        if stimulus.kind is StimulusKind.EVENT:
            if stimulus.payload is None:
                raise RuntimeError("event stimulus without a payload")
            self._admit(stimulus.payload)
        elif stimulus.kind is StimulusKind.TICK:
            self.flush()
        elif stimulus.kind is StimulusKind.FLUSH:
            self._flush_for(stimulus.waiters)
        elif stimulus.kind is StimulusKind.SHUTDOWN:
            try:
                self._flush_for(stimulus.waiters)
            finally:
                abandoned = self._queue.abandon()
                if abandoned:
                    logger.warning("Shutdown discarded %s events that were still queued", abandoned)
                self._stopped.set()

    def _admit(self, payload: bytes) -> None:
        if self._config.strict and not self._validator(payload):
            logger.warning("event failed validation; dropped")
            metrics.EVENTS_DROPPED.labels(reason="validation").inc()
            return

        try:
            self._store.set(payload)
        except StoreError as exc:
            logger.error("error storing event: %s", exc)
            metrics.EVENTS_DROPPED.labels(reason="store").inc()
            return

        count = self._store.count()
        metrics.STORE_SIZE.set(count)
        if count >= self._config.flush_count:
            self.flush()

    def _flush_for(self, waiters: List["Future[int]"]) -> None:
        try:
            delivered = self.flush()
        except Exception as exc:
            for waiter in waiters:
                if not waiter.cancelled():
                    waiter.set_exception(exc)
            raise
        if delivered > 0:
            log_debug(logger, self._config.debug, "emitted %d events", delivered)
        for waiter in waiters:
            if not waiter.cancelled():
                waiter.set_result(delivered)

    def flush(self) -> int:
        """Try to deliver everything in the store; returns the number delivered."""
        if self._flushing:
            raise RuntimeError("flush re-entered while another flush is in progress")
        if self._store.count() == 0:
            return 0

        mode = "bulk" if self._config.bulk else "single"
        self._flushing = True
        try:
            with metrics.FLUSH_LATENCY.labels(mode=mode).time():
                try:
                    snapshot = self._store.get_all()
                except StoreError as exc:
                    logger.error("error reading events from store: %s", exc)
                    return 0
                if self._config.bulk:
                    delivered = self._emit_bulk(snapshot)
                else:
                    delivered = self._emit_each(snapshot)
        finally:
            self._flushing = False
            metrics.STORE_SIZE.set(self._store.count())

        metrics.EVENTS_DELIVERED.inc(delivered)
        return delivered

    def _emit_each(self, snapshot: List[StoredEvent]) -> int:
        delivered = 0
        for event in snapshot:
            try:
                self._emitter.send_one(event.payload)
            except DeliveryError as exc:
                metrics.SEND_FAILURES.labels(mode="single").inc()
                self._send_failed(event, exc)
                continue
            self._remove(event)
            delivered += 1
        return delivered

    def _emit_bulk(self, snapshot: List[StoredEvent]) -> int:
        try:
            self._emitter.send_bulk([event.payload for event in snapshot])
        except DeliveryError as exc:
            metrics.SEND_FAILURES.labels(mode="bulk").inc()
            for event in snapshot:
                self._send_failed(event, exc)
            return 0

        for event in snapshot:
            self._remove(event)
        return len(snapshot)

    def _send_failed(self, event: StoredEvent, error: DeliveryError) -> None:
        log_debug(logger, self._config.debug, "event failed to send: %s", error)
        decision = self._retry.record_failure(event)
        if decision is RetryDecision.GIVE_UP:
            self._drop_exhausted(event, error)
            return
        try:
            self._store.update(event)
        except StoreError as exc:
            logger.error("error updating event %s: %s", event.identity, exc)

    def _drop_exhausted(self, event: StoredEvent, error: DeliveryError) -> None:
        exhausted = RetryExhausted(event.identity, event.attempts, cause=error)
        record = build_drop_record(event, reason="retry_exhausted", error=exhausted)
        log_dropped(record)
        metrics.EVENTS_DROPPED.labels(reason="retry_exhausted").inc()
        if self._dead_letters is not None:
            self._dead_letters.write([record])
        self._remove(event)

    def _remove(self, event: StoredEvent) -> None:
        try:
            self._store.remove(event)
        except StoreError as exc:
            logger.error("error removing event %s: %s", event.identity, exc)


__all__ = ["Dispatcher", "Validator"]
