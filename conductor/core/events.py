"""Fire-and-forget domain events.

Handlers are plain callables invoked synchronously. A failing handler is
logged and skipped; publishing never raises and offers no delivery guarantee.
"""

from collections import defaultdict
from collections.abc import Callable
from typing import Any

from loguru import logger

TASK_ASSIGNED = "task.assigned"
TASK_REASSIGNED = "task.reassigned"
TASK_STARTED = "task.started"
TASK_COMPLETED = "task.completed"
TASK_FAILED = "task.failed"
AGENT_SPAWN_REQUESTED = "agent.spawn_requested"
AGENT_SPAWN_SUCCEEDED = "agent.spawn_succeeded"
AGENT_SPAWN_FAILED = "agent.spawn_failed"
AGENT_SPAWN_BATCH_COMPLETE = "agent.spawn_batch_complete"

EventHandler = Callable[[str, dict[str, Any]], None]

WILDCARD = "*"


class EventBus:
    """
    Minimal in-process publish/subscribe bus.

    Example:
        >>> bus = EventBus()
        >>> seen = []
        >>> bus.subscribe(TASK_ASSIGNED, lambda name, payload: seen.append(payload))
        >>> bus.publish(TASK_ASSIGNED, {"task_id": "t1"})
        >>> seen
        [{'task_id': 't1'}]
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event: str, handler: EventHandler) -> None:
        """Register a handler for an event name, or ``"*"`` for all events."""
        self._handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        """Remove a handler."""
        if handler in self._handlers.get(event, []):
            self._handlers[event].remove(handler)

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        """Deliver an event to every matching handler."""
        handlers = [*self._handlers.get(event, []), *self._handlers.get(WILDCARD, [])]
        for handler in handlers:
            try:
                handler(event, payload)
            except Exception as e:
                logger.warning(f"Event handler error for {event}: {e}")


class EventRecorder:
    """Handler that keeps every event it sees, mostly for tests and the CLI."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, payload))

    def named(self, event: str) -> list[dict[str, Any]]:
        """Payloads of all recorded events with the given name."""
        return [payload for name, payload in self.events if name == event]
