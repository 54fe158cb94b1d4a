"""In-process progress channel.

Long-running work (embedding a document) publishes ``ProgressEvent`` objects
on a channel instead of calling UI callbacks directly; subscribers decide what
to do with them. Publishing never raises: a failing subscriber is logged and
skipped.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from doccontext.utils.logger import logger


@dataclass(frozen=True)
class ProgressEvent:
    topic: str
    document_id: str
    current: int = 0
    total: int = 0
    details: Dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[ProgressEvent], None]


class ProgressChannel:
    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that removes it again."""
        self._subscribers.append(callback)

        def _unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, event: ProgressEvent) -> None:
        logger.debug(
            "progress %s doc=%s %d/%d", event.topic, event.document_id, event.current, event.total
        )
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Progress subscriber failed on {event.topic}: {e}")
