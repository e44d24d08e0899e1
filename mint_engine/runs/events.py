"""Append-only events stream."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

from ..utils import now_utc_iso, serialize


@dataclass
class EventWriter:
    path: Path | None
    pass_id: str
    keep: int = 500
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, init=False)
    _recent: list[dict[str, Any]] = field(default_factory=list, repr=False, init=False)

    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        event = {
            "type": event_type,
            "pass_id": self.pass_id,
            "ts": now_utc_iso(),
        }
        event.update(serialize(payload))
        line = f"{json.dumps(event)}\n"
        with self._lock:
            self._recent.append(event)
            if len(self._recent) > self.keep:
                del self._recent[: len(self._recent) - self.keep]
            if self.path is not None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as handle:
                    handle.write(line)
        return event

    def recent(self, event_type: str | None = None) -> list[dict[str, Any]]:
        with self._lock:
            events = list(self._recent)
        if event_type is None:
            return events
        return [event for event in events if event["type"] == event_type]


def emit(events: EventWriter | None, event_type: str, **payload: Any) -> None:
    if events is not None:
        events.emit(event_type, **payload)
