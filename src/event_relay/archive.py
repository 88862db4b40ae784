"""Dead-letter archive for events dropped after exhausting retries."""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Deque, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class DeadLetterWriter:
    """Appends drop records as JSON lines; one file per client."""

    path: Path

    @classmethod
    def from_path(cls, path: Optional[str]) -> Optional["DeadLetterWriter"]:
        if not path:
            return None
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        return cls(path=target)

    def write(self, records: Iterable[Dict[str, Any]]) -> int:
        written = 0
        try:
            with self.path.open("a", encoding="utf-8") as handle:
                for record in records:
                    handle.write(json.dumps(record, ensure_ascii=False, separators=(",", ":")) + "\n")
                    written += 1
        except OSError as exc:
            logger.error("Failed to archive %s dropped events to %s: %s", written, self.path, exc)
        return written

    def tail(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent ``limit`` records, oldest first; corrupt lines are skipped."""
        if limit <= 0 or not self.path.exists():
            return []
        recent: Deque[str] = deque(maxlen=limit)
        with self.path.open("r", encoding="utf-8") as handle:
            for line in handle:
                if line.strip():
                    recent.append(line)
        records: List[Dict[str, Any]] = []
        for line in recent:
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return records


__all__ = ["DeadLetterWriter"]
