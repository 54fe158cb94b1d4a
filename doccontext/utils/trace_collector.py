"""In-memory trace collector keyed by trace_id.

Each ``select_context`` call runs under one trace id; the cascade records the
tiers it attempted, why it demoted, and what it finally returned. Events are
bounded per trace and expire after ``keep_seconds``.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional

from doccontext.config import config


@dataclass
class TraceEvent:
    timestamp: float
    component: str
    event: str
    details: Dict[str, Any]


class TraceCollector:
    def __init__(self, max_events_per_trace: int = 200, keep_seconds: int = 600):
        self._traces: Dict[str, Deque[TraceEvent]] = {}
        self._lock = threading.Lock()
        self._max_events = max_events_per_trace
        self._keep_seconds = keep_seconds

    def record(
        self, trace_id: Optional[str], component: str, event: str, details: Optional[Dict[str, Any]] = None
    ) -> None:
        if not trace_id:
            return
        ev = TraceEvent(time.time(), component, event, details or {})
        with self._lock:
            dq = self._traces.get(trace_id)
            if dq is None:
                dq = self._traces[trace_id] = deque(maxlen=self._max_events)
            dq.append(ev)

    def get_trace(self, trace_id: str) -> Optional[List[Dict[str, Any]]]:
        with self._lock:
            dq = self._traces.get(trace_id)
            if dq is None:
                return None
            now = time.time()
            return [
                {
                    "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(e.timestamp)),
                    "component": e.component,
                    "event": e.event,
                    "details": dict(e.details),
                }
                for e in dq
                if (now - e.timestamp) <= self._keep_seconds
            ]

    def events_named(self, trace_id: str, event: str) -> List[Dict[str, Any]]:
        return [e for e in (self.get_trace(trace_id) or []) if e["event"] == event]

    def clear_trace(self, trace_id: str) -> None:
        with self._lock:
            self._traces.pop(trace_id, None)


# Singleton
trace_collector = TraceCollector(
    max_events_per_trace=int(config.get("logging.trace_max_events", 200)),
    keep_seconds=int(config.get("logging.trace_keep_seconds", 600)),
)
