"""
Typed events published by the analysis and export workers.

Consumers (a GUI, the CLI, tests) subscribe a callable to an `EventChannel`;
workers publish without knowing who is listening. Delivery happens on the
publishing thread, in publication order.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union


class TicketStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_WARNINGS = "succeeded-with-warnings"
    FAILED = "failed"


@dataclass(frozen=True)
class StatusEvent:
    ticket_index: int
    label: str
    status: TicketStatus
    path: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ProgressEvent:
    completed: int
    total: int

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return int(self.completed * 100 / self.total)


@dataclass(frozen=True)
class LogEvent:
    level: str
    message: str


@dataclass(frozen=True)
class AnalysisEvent:
    path: str
    record_sets: int
    error: Optional[str] = None


ForgeEvent = Union[StatusEvent, ProgressEvent, LogEvent, AnalysisEvent]


class EventChannel:
    def __init__(self) -> None:
        self._subscribers: list[Callable[[ForgeEvent], None]] = []
        self._lock = threading.RLock()

    def subscribe(self, callback: Callable[[ForgeEvent], None]) -> Callable[[], None]:
        """Register `callback`; returns a function that removes it again."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: ForgeEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
            for callback in subscribers:
                callback(event)


class EventRecorder:
    """Subscriber that keeps every event it sees; handy for the CLI and tests."""

    def __init__(self, channel: Optional[EventChannel] = None) -> None:
        self.events: list[ForgeEvent] = []
        if channel is not None:
            channel.subscribe(self)

    def __call__(self, event: ForgeEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list:
        return [event for event in self.events if isinstance(event, event_type)]
