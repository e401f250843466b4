"""Domain events emitted after a progression transition."""
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskCompleted:
    task_id: str
    exp_gained: int


@dataclass(frozen=True)
class LeveledUp:
    new_level: int


@dataclass(frozen=True)
class BadgeEarned:
    badge_id: str


@dataclass(frozen=True)
class StreakRecord:
    new_streak: int


class EventBus:
    """Fire-and-forget dispatch to subscribers keyed by event type."""

    def __init__(self):
        self._handlers = defaultdict(list)

    def subscribe(self, event_type: type, handler: Callable) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Callable) -> None:
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    def publish(self, event) -> None:
        for handler in list(self._handlers[type(event)]):
            try:
                handler(event)
            except Exception:
                logger.exception("Handler %r failed for %r", handler, event)


class EventRecorder:
    """Subscriber that keeps every event it sees, in order."""

    def __init__(self, bus: EventBus):
        self.events = []
        for event_type in (TaskCompleted, LeveledUp, BadgeEarned, StreakRecord):
            bus.subscribe(event_type, self.events.append)
