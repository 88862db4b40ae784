"""Diagnostic logging helpers for the relay."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from .store import StoredEvent

logger = logging.getLogger("event_relay.drops")


def log_debug(log: logging.Logger, enabled: bool, msg: str, *args: Any) -> None:
    """Emit ``msg`` at INFO only when the client runs with ``debug`` on."""
    if enabled:
        log.info(msg, *args)


def build_drop_record(
    event: StoredEvent,
    reason: str,
    error: Optional[BaseException] = None,
) -> Dict[str, Any]:
    return {
        "identity": event.identity,
        "reason": reason,
        "attempts": event.attempts,
        "last_attempt": event.last_attempt.isoformat() if event.last_attempt else None,
        "error": str(error) if error else None,
        "payload": event.payload.decode("utf-8", errors="replace"),
    }


def log_dropped(record: Dict[str, Any]) -> None:
    logger.warning(json.dumps(record, ensure_ascii=False))


__all__ = ["log_debug", "build_drop_record", "log_dropped"]
