"""HTTP delivery primitives for the relay."""

from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

import httpx

from .config import ClientConfig
from .errors import StatusError, TransportError
from .logging import log_debug

logger = logging.getLogger(__name__)

BULK_SEPARATOR = b"\n"
_BODY_EXCERPT = 512


class Emitter:
    """Posts stored payloads to the collector.

    Both send methods return ``None`` on success and raise a
    :class:`~event_relay.errors.DeliveryError` otherwise. A transport failure
    and a non-success status are separate causes: when the request itself
    fails there is no response to inspect.
    """

    def __init__(self, config: ClientConfig, *, transport: Optional[httpx.BaseTransport] = None) -> None:
        self._config = config
        self._client = httpx.Client(
            base_url=config.collector_url,
            timeout=config.request_timeout,
            transport=transport,
        )

    def send_one(self, payload: bytes) -> None:
        start = time.perf_counter()
        headers = self._config.client_headers()
        headers.setdefault("Content-Type", "application/json")
        self._post(self._config.api_path, content=payload, headers=headers)
        log_debug(logger, self._config.debug, "event send complete: dur=%dms", _elapsed_ms(start))

    def send_bulk(self, payloads: Sequence[bytes]) -> None:
        start = time.perf_counter()
        body = BULK_SEPARATOR.join(payloads)
        self._post(
            self._config.bulk_api_path,
            files={"file": ("file", body, "application/x-ndjson")},
            headers=self._config.client_headers(),
        )
        log_debug(
            logger,
            self._config.debug,
            "bulk send complete: events=%s dur=%dms",
            len(payloads),
            _elapsed_ms(start),
        )

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    def _post(self, path: str, **kwargs) -> None:
        if self._client.is_closed:
            raise TransportError(f"request to {path} skipped: emitter is closed")
        try:
            response = self._client.post(path, params=self._config.api_query_params(), **kwargs)
        except httpx.HTTPError as exc:
            log_debug(logger, self._config.debug, "error sending to %s: %s", path, exc)
            raise TransportError(f"request to {path} failed: {exc}", cause=exc) from exc
        except RuntimeError as exc:
            # httpx raises RuntimeError when the client is closed mid-flush.
            if not self._client.is_closed:
                raise
            raise TransportError(f"request to {path} failed: emitter closed", cause=exc) from exc

        if response.status_code > 299:
            body = response.text[:_BODY_EXCERPT]
            log_debug(logger, self._config.debug, "http response: code=%s body=%s", response.status_code, body)
            raise StatusError(response.status_code, body)

    def close(self) -> None:
        self._client.close()


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


__all__ = ["Emitter", "BULK_SEPARATOR"]
