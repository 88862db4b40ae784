"""Configuration objects for the event relay client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

ENV_PREFIX = "EVENT_RELAY_"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ClientConfig:
    collector_url: str
    api_key: str = ""
    api_path: str = "/api/v1/s2s/event"
    bulk_api_path: str = "/api/v1/events/bulk"
    queue_buffer: int = 1000
    flush_interval: float = 10.0
    flush_count: int = 100
    bulk: bool = False
    strict: bool = False
    max_retries: int = 3
    debug: bool = False
    request_timeout: float = 5.0
    close_timeout: float = 30.0
    user_agent: str = "event-relay-python/0.1.0"
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, str] = field(default_factory=dict)
    store_path: Optional[str] = None
    dead_letter_path: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.collector_url:
            raise ValueError("collector_url must be configured")
        if self.queue_buffer <= 0:
            raise ValueError("queue_buffer must be > 0")
        if self.flush_count <= 0:
            raise ValueError("flush_count must be > 0")
        if self.flush_interval <= 0:
            raise ValueError("flush_interval must be > 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0 (0 means unlimited)")

    @classmethod
    def from_env(cls, **overrides: Any) -> "ClientConfig":
        env = os.environ
        values: Dict[str, Any] = {
            "collector_url": env.get(ENV_PREFIX + "COLLECTOR_URL", ""),
            "api_key": env.get(ENV_PREFIX + "API_KEY", ""),
            "api_path": env.get(ENV_PREFIX + "API_PATH", cls.api_path),
            "bulk_api_path": env.get(ENV_PREFIX + "BULK_API_PATH", cls.bulk_api_path),
            "queue_buffer": int(env.get(ENV_PREFIX + "QUEUE_BUFFER", cls.queue_buffer)),
            "flush_interval": float(env.get(ENV_PREFIX + "FLUSH_INTERVAL", cls.flush_interval)),
            "flush_count": int(env.get(ENV_PREFIX + "FLUSH_COUNT", cls.flush_count)),
            "bulk": _env_bool("BULK", cls.bulk),
            "strict": _env_bool("STRICT", cls.strict),
            "max_retries": int(env.get(ENV_PREFIX + "MAX_RETRIES", cls.max_retries)),
            "debug": _env_bool("DEBUG", cls.debug),
            "request_timeout": float(env.get(ENV_PREFIX + "REQUEST_TIMEOUT", cls.request_timeout)),
            "close_timeout": float(env.get(ENV_PREFIX + "CLOSE_TIMEOUT", cls.close_timeout)),
            "store_path": env.get(ENV_PREFIX + "STORE_PATH") or None,
            "dead_letter_path": env.get(ENV_PREFIX + "DEAD_LETTER_PATH") or None,
        }
        values.update(overrides)
        return cls(**values)

    def with_options(self, **changes: Any) -> "ClientConfig":
        """Return a copy with ``changes`` applied; validation runs again."""
        return replace(self, **changes)

    def client_headers(self) -> Dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        headers.update(self.headers)
        return headers

    def api_query_params(self) -> Dict[str, str]:
        return dict(self.query_params)


__all__ = ["ClientConfig", "ENV_PREFIX"]
