"""Prometheus collectors for the relay."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

EVENTS_ENQUEUED = Counter("event_relay_events_enqueued_total", "Events accepted by the ingestion queue")
EVENTS_DELIVERED = Counter("event_relay_events_delivered_total", "Events confirmed by the collector")
EVENTS_DROPPED = Counter("event_relay_events_dropped_total", "Events discarded without delivery", ["reason"])
SEND_FAILURES = Counter("event_relay_send_failures_total", "Failed collector requests", ["mode"])
STORE_SIZE = Gauge("event_relay_store_size", "Events held in the store after the last mutation")
FLUSH_LATENCY = Histogram("event_relay_flush_latency_seconds", "Duration of a flush", ["mode"])

__all__ = [
    "EVENTS_ENQUEUED",
    "EVENTS_DELIVERED",
    "EVENTS_DROPPED",
    "SEND_FAILURES",
    "STORE_SIZE",
    "FLUSH_LATENCY",
]
