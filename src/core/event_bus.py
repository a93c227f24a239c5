"""EventBus - synchronous notification channel between the engine and its collaborators

The engine never calls the presentation layer directly. It publishes what
changed (flags gained, choices consumed, loop transitions) and the UI, audio
or scene collaborators subscribe to what they care about.

Rules:
- events carry identifiers and small values only, never entity objects
- propagation depth is capped at MAX_DEPTH
- the same source may not emit the same event type twice in one chain
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Any, Set
from collections import defaultdict

from src.core.logging import get_logger

logger = get_logger(__name__)

MAX_DEPTH = 5  # max propagation depth within one player action


@dataclass
class GameEvent:
    """Event payload container

    Args:
        event_type: event name (see EventTypes)
        data: event data (ids, flag names, loop numbers)
        source: emitting component name
    """

    event_type: str
    data: Dict[str, Any]
    source: str

    # internal bookkeeping, not set by callers
    _depth: int = field(default=0, repr=False)


EventHandler = Callable[[GameEvent], None]


class EventBus:
    """Synchronous event bus

    Usage:
        bus = EventBus()
        bus.subscribe("loop_advanced", hud.on_loop_advanced)
        bus.emit(GameEvent(event_type="loop_advanced", data={"loop": 3}, source="loop"))
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._current_depth: int = 0
        self._emitted_in_chain: Set[str] = set()  # "source:event_type"

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)
        logger.debug(f"EventBus subscribe: {event_type} -> {handler.__qualname__}")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(
                    f"EventBus unsubscribe: {event_type} -> {handler.__qualname__}"
                )
            except ValueError:
                logger.warning(
                    f"Handler not subscribed: {event_type} -> {handler.__qualname__}"
                )

    def emit(self, event: GameEvent) -> None:
        """Publish an event, calling every subscribed handler in order.

        Guards:
        1. events beyond MAX_DEPTH are dropped
        2. a repeated source:event_type within one chain is dropped
        """
        if self._current_depth >= MAX_DEPTH:
            logger.warning(
                f"EventBus depth exceeded ({MAX_DEPTH}): "
                f"{event.source}:{event.event_type} dropped"
            )
            return

        chain_key = f"{event.source}:{event.event_type}"
        if chain_key in self._emitted_in_chain:
            logger.warning(f"EventBus duplicate blocked: {chain_key}")
            return

        self._emitted_in_chain.add(chain_key)
        event._depth = self._current_depth

        handlers = self._handlers.get(event.event_type, [])
        if not handlers:
            logger.debug(f"EventBus: no subscribers for {event.event_type}")
            return

        logger.info(
            f"EventBus emit: {event.event_type} (source={event.source}, "
            f"depth={self._current_depth}, handlers={len(handlers)})"
        )

        self._current_depth += 1
        try:
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        f"EventBus handler error: {handler.__qualname__} "
                        f"(event={event.event_type})"
                    )
        finally:
            self._current_depth -= 1

    def reset_chain(self) -> None:
        """Called after every player action. Clears duplicate tracking."""
        self._emitted_in_chain.clear()
        self._current_depth = 0

    def clear(self) -> None:
        """Drop all subscriptions (tests)"""
        self._handlers.clear()
        self.reset_chain()

    @property
    def handler_count(self) -> int:
        return sum(len(h) for h in self._handlers.values())
