"""
Diagnostics channel for failures that are deliberately not raised.

Query analysis, query optimization and real-time validation are optional
enhancements: when they fail the primary action carries on. Every such
failure is logged and recorded here so callers and tests can observe it.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)

_MAX_EVENTS = 500

ANALYSIS_FAILED = "analysis_failed"
OPTIMIZATION_FAILED = "optimization_failed"
HYBRID_FALLBACK = "hybrid_fallback"
VALIDATION_FAILED = "validation_failed"
STALE_RESULT_DISCARDED = "stale_result_discarded"


@dataclass
class DiagnosticEvent:
    timestamp: float
    kind: str
    message: str
    error: str | None = None
    context: dict[str, Any] = field(default_factory=dict)


Listener = Callable[[DiagnosticEvent], None]


class Diagnostics:
    def __init__(self, max_events: int = _MAX_EVENTS):
        self._events: deque[DiagnosticEvent] = deque(maxlen=max_events)
        self._listeners: list[Listener] = []

    def record(self, kind: str, message: str, error: BaseException | None = None, **context) -> DiagnosticEvent:
        event = DiagnosticEvent(
            timestamp=time.time(),
            kind=kind,
            message=message,
            error=str(error) if error is not None else None,
            context=context,
        )
        self._events.append(event)

        if error is not None:
            logger.warning("%s: %s (%s)", kind, message, error)
        else:
            logger.warning("%s: %s", kind, message)

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Diagnostics listener failed for %s", kind)
        return event

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback; returns a function that removes it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def events(self, kind: str | None = None) -> list[DiagnosticEvent]:
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.kind == kind]

    def summary(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for event in self._events:
            counts[event.kind] = counts.get(event.kind, 0) + 1
        return counts

    def clear(self) -> None:
        self._events.clear()
