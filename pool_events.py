# pool_events.py
"""
Structured event stream for the pool.

Events are the only observability channel an external indexer needs: every
insertion and every spend is appended here in the order it happened. An
indexer can rebuild the whole commitment tree from CommitmentInserted
records alone.

Example:
    log = EventLog()

    @log.subscribe(CommitmentInserted)
    def index(event):
        print(event.leaf_index, event.new_root)
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """Base class for all pool events."""

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["event_type"] = self.event_type
        return data


@dataclass(frozen=True)
class CommitmentInserted(Event):
    commitment: int
    leaf_index: int
    new_root: int


@dataclass(frozen=True)
class NullifierSpent(Event):
    nullifier: int
    marker: str


@dataclass(frozen=True)
class Shielded(Event):
    sender: str
    amount: int
    commitment: int
    leaf_index: int


@dataclass(frozen=True)
class Redeemed(Event):
    amount: int
    recipient: int
    nullifier: int


@dataclass(frozen=True)
class PartialRedeemed(Event):
    redeem_amount: int
    remaining_amount: int
    recipient: int
    nullifier: int
    new_commitment: int
    new_leaf_index: Optional[int] = None


EventHandler = Callable[[Event], None]


class EventHandlerError(Exception):
    """A subscriber raised while handling an event."""

    def __init__(self, event: Event, handler: EventHandler, error: Exception) -> None:
        self.event = event
        self.handler = handler
        self.error = error
        super().__init__(f"Handler {getattr(handler, '__name__', handler)!r} failed on "
                         f"{event.event_type}: {error}")


ErrorCallback = Callable[[EventHandlerError], None]


@dataclass
class _Subscription:
    handler: EventHandler
    event_types: Tuple[Type[Event], ...] = field(default_factory=tuple)

    def wants(self, event: Event) -> bool:
        return not self.event_types or isinstance(event, self.event_types)


class EventLog:
    """
    Append-only, in-memory event stream with synchronous subscribers.

    Handlers run in subscription order right after the record is appended.
    A handler that raises never reaches the caller of the mutating
    operation: the failure is logged, counted and passed to `on_error`,
    and the remaining handlers still run. Stores emit while they mutate,
    so a subscriber cannot leave a redemption half-applied.
    """

    def __init__(self, on_error: Optional[ErrorCallback] = None) -> None:
        self._records: List[Event] = []
        self._subscriptions: List[_Subscription] = []
        self._on_error = on_error
        self.error_count = 0

    def subscribe(self, *event_types: Type[Event]) -> Callable[[EventHandler], EventHandler]:
        """Decorator registering a handler for the given types (all if none)."""
        def decorator(handler: EventHandler) -> EventHandler:
            self._subscriptions.append(_Subscription(handler, tuple(event_types)))
            return handler
        return decorator

    def unsubscribe(self, handler: EventHandler) -> bool:
        before = len(self._subscriptions)
        self._subscriptions = [s for s in self._subscriptions if s.handler != handler]
        return len(self._subscriptions) < before

    def emit(self, event: Event) -> None:
        self._records.append(event)
        logger.debug("event #%d %s", len(self._records) - 1, event.event_type)
        for subscription in list(self._subscriptions):
            if subscription.wants(event):
                self._call_handler(subscription.handler, event)

    def _call_handler(self, handler: EventHandler, event: Event) -> None:
        try:
            handler(event)
        except Exception as e:
            self.error_count += 1
            logger.exception("Event handler failed on %s", event.event_type)
            if self._on_error is not None:
                self._on_error(EventHandlerError(event, handler, e))

    def records(self, event_type: Optional[Type[Event]] = None) -> List[Event]:
        if event_type is None:
            return list(self._records)
        return [r for r in self._records if isinstance(r, event_type)]

    def __len__(self) -> int:
        return len(self._records)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self._records]
