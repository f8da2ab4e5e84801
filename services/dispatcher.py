"""
Lead event dispatcher.

Routes created/updated events to the registered stage handlers. Delivery is
at-least-once: the dispatcher never deduplicates, the handlers are idempotent.
A failing handler is logged and reported in the DispatchResult, and the other
handlers still run, so the delivery mechanism can decide whether to redeliver.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Protocol

from domain.events import LeadCreatedEvent, LeadEvent, LeadUpdatedEvent

logger = logging.getLogger(__name__)

CreatedHandler = Callable[[LeadCreatedEvent], object]
UpdatedHandler = Callable[[LeadUpdatedEvent], object]


class EventSource(Protocol):
    def pop_events(self) -> List[LeadEvent]:  # pragma: no cover - protocol
        """Remove and return pending events."""


@dataclass
class DispatchResult:
    handled: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class LeadEventDispatcher:
    def __init__(self) -> None:
        self._created_handlers: List[CreatedHandler] = []
        self._updated_handlers: List[UpdatedHandler] = []

    def on_created(self, handler: CreatedHandler) -> CreatedHandler:
        self._created_handlers.append(handler)
        return handler

    def on_updated(self, handler: UpdatedHandler) -> UpdatedHandler:
        self._updated_handlers.append(handler)
        return handler

    def dispatch(self, event: LeadEvent) -> DispatchResult:
        result = DispatchResult()
        handlers: Iterable[Callable[..., object]]
        if isinstance(event, LeadCreatedEvent):
            handlers = self._created_handlers
        elif isinstance(event, LeadUpdatedEvent):
            handlers = self._updated_handlers
        else:
            raise TypeError(f"Unsupported event type: {type(event)!r}")

        for handler in handlers:
            name = getattr(handler, "__qualname__", repr(handler))
            try:
                handler(event)
                result.handled += 1
            except Exception as exc:
                logger.exception(
                    f"Handler {name} failed for lead {event.lead_id}",
                    extra={"owner_id": event.owner_id, "lead_id": event.lead_id},
                )
                result.errors.append(f"{name}: {exc}")
        return result

    def run_until_idle(self, source: EventSource, *, max_rounds: int = 100) -> DispatchResult:
        """
        Drain an event source, including events produced by the handlers themselves.

        Raises:
            RuntimeError: events are still being produced after max_rounds
                (a trigger loop)
        """

        total = DispatchResult()
        for _ in range(max_rounds):
            events = source.pop_events()
            if not events:
                return total
            for event in events:
                result = self.dispatch(event)
                total.handled += result.handled
                total.errors.extend(result.errors)
        raise RuntimeError(f"Lead events did not settle after {max_rounds} rounds")


__all__ = ["DispatchResult", "EventSource", "LeadEventDispatcher"]
