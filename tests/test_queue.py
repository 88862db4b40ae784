from __future__ import annotations

import threading
import time

import pytest

from event_relay.errors import ClientClosedError
from event_relay.queue import IngestionQueue, StimulusKind


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        IngestionQueue(0)


def test_events_come_out_in_put_order() -> None:
    q = IngestionQueue(10)
    for n in range(3):
        q.put(str(n).encode())

    payloads = [q.wait().payload for _ in range(3)]

    assert payloads == [b"0", b"1", b"2"]
    assert len(q) == 0


def test_expired_deadline_yields_tick() -> None:
    q = IngestionQueue(10)

    stimulus = q.wait(deadline=time.monotonic() - 1)

    assert stimulus.kind is StimulusKind.TICK


def test_wait_times_out_into_tick() -> None:
    q = IngestionQueue(10)
    start = time.monotonic()

    stimulus = q.wait(deadline=start + 0.05)

    assert stimulus.kind is StimulusKind.TICK
    assert time.monotonic() - start >= 0.04


def test_put_blocks_while_full() -> None:
    q = IngestionQueue(1)
    q.put(b"first")
    admitted = threading.Event()

    def producer() -> None:
        q.put(b"second")
        admitted.set()

    thread = threading.Thread(target=producer)
    thread.start()

    assert not admitted.wait(0.1)
    assert q.wait().payload == b"first"
    assert admitted.wait(2.0)
    thread.join(2.0)
    assert q.wait().payload == b"second"


def test_flush_request_waits_for_earlier_events() -> None:
    q = IngestionQueue(10)
    q.put(b"a")
    q.put(b"b")
    waiter = q.request_flush()
    q.put(b"c")

    kinds = [q.wait().kind for _ in range(3)]

    assert kinds == [StimulusKind.EVENT, StimulusKind.EVENT, StimulusKind.FLUSH]
    assert not waiter.done()
    assert q.wait().payload == b"c"


def test_flush_requests_are_coalesced() -> None:
    q = IngestionQueue(10)
    first = q.request_flush()
    second = q.request_flush()

    stimulus = q.wait()

    assert stimulus.kind is StimulusKind.FLUSH
    assert stimulus.waiters == [first, second]


def test_shutdown_takes_precedence_and_rejects_producers() -> None:
    q = IngestionQueue(10)
    q.put(b"queued")
    pending = q.request_flush()
    q.request_shutdown()
    q.request_shutdown()

    stimulus = q.wait()

    assert stimulus.kind is StimulusKind.SHUTDOWN
    assert stimulus.waiters == [pending]
    assert q.closed
    with pytest.raises(ClientClosedError):
        q.put(b"late")
    with pytest.raises(ClientClosedError):
        q.request_flush()
    assert q.abandon() == 1


def test_shutdown_releases_blocked_producer() -> None:
    q = IngestionQueue(1)
    q.put(b"fill")
    errors: list[BaseException] = []

    def producer() -> None:
        try:
            q.put(b"blocked")
        except ClientClosedError as exc:
            errors.append(exc)

    thread = threading.Thread(target=producer)
    thread.start()
    time.sleep(0.05)
    q.request_shutdown()
    thread.join(2.0)

    assert not thread.is_alive()
    assert len(errors) == 1


def test_wait_wakes_on_put_from_other_thread() -> None:
    q = IngestionQueue(10)
    timer = threading.Timer(0.05, q.put, args=(b"late",))
    timer.start()

    stimulus = q.wait(deadline=time.monotonic() + 5)

    assert stimulus.kind is StimulusKind.EVENT
    assert stimulus.payload == b"late"
    timer.join()
