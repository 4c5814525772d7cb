from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Set
from asyncio import Queue as AsyncQueue
import asyncio
import logging
import threading
import time

logger = logging.getLogger(__name__)


class EventType(Enum):
    TERMINAL_DATA = "terminal-data"
    TAB_CLOSED = "tab-closed"


@dataclass
class TerminalEvent:
    type: EventType
    tab_id: str
    data: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type.value, "tab_id": self.tab_id}
        if self.type is EventType.TERMINAL_DATA:
            out["data"] = self.data or ""
        return out


class OutputSink(Protocol):
    """Where reader threads deliver a tab's output.

    Both methods are called from reader threads, never from the event loop.
    """

    def terminal_data(self, tab_id: str, data: str) -> None: ...

    def tab_closed(self, tab_id: str) -> None: ...


class EventBus:
    """In-process asyncio fan-out of terminal events to subscribers."""

    def __init__(self) -> None:
        self._subscribers: Set[AsyncQueue[TerminalEvent]] = set()

    def subscribe(self) -> AsyncQueue[TerminalEvent]:
        q: AsyncQueue[TerminalEvent] = AsyncQueue()
        self._subscribers.add(q)
        return q

    def unsubscribe(self, q: AsyncQueue[TerminalEvent]) -> None:
        self._subscribers.discard(q)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish_nowait(self, event: TerminalEvent) -> None:
        for q in list(self._subscribers):
            q.put_nowait(event)

    async def publish(self, event: TerminalEvent) -> None:
        self.publish_nowait(event)


class EventBusSink:
    """OutputSink that hands reader-thread events to an EventBus on its loop.

    Events raised before ``bind()`` is called are dropped with a debug log.
    """

    def __init__(self, bus: EventBus, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self.bus = bus
        self._loop = loop
        self.listeners: List[Any] = []

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def _post(self, event: TerminalEvent) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Dropping %s for %s: no event loop bound", event.type.value, event.tab_id)
            return
        try:
            loop.call_soon_threadsafe(self._deliver, event)
        except RuntimeError:
            # Loop closed between the check and the call.
            logger.debug("Dropping %s for %s: event loop closed", event.type.value, event.tab_id)

    def _deliver(self, event: TerminalEvent) -> None:
        self.bus.publish_nowait(event)
        for listener in list(self.listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed for %s", event.tab_id)

    def terminal_data(self, tab_id: str, data: str) -> None:
        self._post(TerminalEvent(type=EventType.TERMINAL_DATA, tab_id=tab_id, data=data))

    def tab_closed(self, tab_id: str) -> None:
        self._post(TerminalEvent(type=EventType.TAB_CLOSED, tab_id=tab_id))


class RecordingSink:
    """Thread-safe OutputSink that keeps every event in memory.

    Useful for embedding without an event loop and for tests.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cond = threading.Condition(self._lock)
        self.events: List[TerminalEvent] = []

    def terminal_data(self, tab_id: str, data: str) -> None:
        self._append(TerminalEvent(type=EventType.TERMINAL_DATA, tab_id=tab_id, data=data))

    def tab_closed(self, tab_id: str) -> None:
        self._append(TerminalEvent(type=EventType.TAB_CLOSED, tab_id=tab_id))

    def _append(self, event: TerminalEvent) -> None:
        with self._cond:
            self.events.append(event)
            self._cond.notify_all()

    def output(self, tab_id: str) -> str:
        with self._lock:
            return "".join(
                e.data or "" for e in self.events
                if e.tab_id == tab_id and e.type is EventType.TERMINAL_DATA
            )

    def closed(self, tab_id: str) -> int:
        with self._lock:
            return sum(1 for e in self.events if e.tab_id == tab_id and e.type is EventType.TAB_CLOSED)

    def snapshot(self) -> List[TerminalEvent]:
        with self._lock:
            return list(self.events)

    def wait_for(self, predicate, timeout: float = 5.0) -> bool:
        """Block until ``predicate(self)`` holds or ``timeout`` elapses."""
        deadline = time.monotonic() + timeout
        while True:
            if predicate(self):
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            with self._cond:
                self._cond.wait(min(remaining, 0.1))
