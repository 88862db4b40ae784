"""Retry bookkeeping for events whose delivery failed."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .store import StoredEvent


class RetryDecision(enum.Enum):
    RETRY = "retry"
    GIVE_UP = "give_up"


@dataclass(frozen=True)
class RetryPolicy:
    """Caps delivery attempts per event; ``max_retries == 0`` never gives up.

    A policy with ``max_retries = N`` allows one initial attempt plus ``N``
    retries. The failure that pushes ``attempts`` past ``N`` returns
    :attr:`RetryDecision.GIVE_UP` and the caller must remove the event.
    """

    max_retries: int = 3

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    @property
    def unlimited(self) -> bool:
        return self.max_retries == 0

    def record_failure(self, event: StoredEvent, now: Optional[datetime] = None) -> RetryDecision:
        event.attempted = True
        event.attempts += 1
        event.last_attempt = now or datetime.now(timezone.utc)

        if not self.unlimited and event.attempts > self.max_retries:
            return RetryDecision.GIVE_UP
        return RetryDecision.RETRY


__all__ = ["RetryDecision", "RetryPolicy"]
