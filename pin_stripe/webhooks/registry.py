"""Webhook event dispatch registry.

Applications declare ``event type -> handler`` bindings once at startup and
freeze them into an ``EventDispatchRegistry``::

    builder = RegistryBuilder()

    @builder.on("customer.created")
    def customer_created(event):
        ...

    builder.handle("invoice.paid", invoice_handlers)   # object/module with handle_event()
    registry = builder.build()

Contract:
- Lookup is exact string match; ``"customer.*"`` is just a literal event type
- A later binding for the same event type shadows earlier ones (decided at build)
- Function handlers are called as ``handler(event)``; object and module
  handlers as ``handler.handle_event(event)``; both yield a ``DispatchOutcome``
- Unknown event types are a successful no-op, never an error
- The built registry is read-only and safe to share between threads
- Handler exceptions propagate to the caller (the gateway decides what to do)
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

__all__ = [
    "DispatchOutcome",
    "EventDispatchRegistry",
    "EventHandler",
    "HandlerBinding",
    "HandlerKind",
    "RegistryBuilder",
]


class HandlerKind(str, Enum):
    """How a bound handler is invoked."""

    FUNCTION = "function"
    MODULE = "module"


@runtime_checkable
class EventHandler(Protocol):
    """Module-style handler: anything exposing ``handle_event(event)``."""

    def handle_event(self, event: Any) -> Any: ...


@dataclass(frozen=True, slots=True)
class HandlerBinding:
    """One ``event_type -> handler`` association, normalized at creation."""

    event_type: str
    handler: Any
    kind: HandlerKind

    @classmethod
    def of(cls, event_type: str, handler: Any) -> HandlerBinding:
        if not isinstance(event_type, str) or not event_type:
            raise ValueError(f"event_type must be a non-empty string, got {event_type!r}")
        if callable(getattr(handler, "handle_event", None)):
            # A class only works when handle_event needs no instance.
            if inspect.isclass(handler) and not isinstance(
                inspect.getattr_static(handler, "handle_event"), (staticmethod, classmethod)
            ):
                raise TypeError(
                    f"Handler for {event_type!r} is the class {handler.__name__}; "
                    "register an instance or make handle_event a staticmethod"
                )
            return cls(event_type, handler, HandlerKind.MODULE)
        if callable(handler):
            return cls(event_type, handler, HandlerKind.FUNCTION)
        raise TypeError(
            f"Handler for {event_type!r} must be callable or expose handle_event(), "
            f"got {type(handler).__name__}"
        )

    def invoke(self, event: Any) -> Any:
        if self.kind is HandlerKind.MODULE:
            return self.handler.handle_event(event)
        return self.handler(event)


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """Normalized result of routing one event.

    ``handled`` is False for the default no-op; ``result`` is whatever the
    handler returned.
    """

    event_type: str
    handled: bool
    result: Any = None
    kind: HandlerKind | None = None


class EventDispatchRegistry:
    """Frozen exact-match table of event handlers."""

    def __init__(self, bindings: Iterable[HandlerBinding] = ()) -> None:
        table: dict[str, HandlerBinding] = {}
        for binding in bindings:
            if binding.event_type in table:
                logger.debug("Handler for %s replaced by a later binding", binding.event_type)
            table[binding.event_type] = binding
        self._table = MappingProxyType(table)

    @classmethod
    def builder(cls) -> RegistryBuilder:
        return RegistryBuilder()

    @property
    def event_types(self) -> frozenset[str]:
        return frozenset(self._table)

    def handler_for(self, event_type: str) -> HandlerBinding | None:
        return self._table.get(event_type)

    def dispatch(self, event_type: str, event: Any) -> DispatchOutcome:
        """Invoke the handler bound to *event_type*, or do nothing."""
        binding = self._table.get(event_type)
        if binding is None:
            return DispatchOutcome(event_type, handled=False)
        result = binding.invoke(event)
        return DispatchOutcome(event_type, handled=True, result=result, kind=binding.kind)

    def __contains__(self, event_type: object) -> bool:
        return event_type in self._table

    def __len__(self) -> int:
        return len(self._table)


class RegistryBuilder:
    """Collects bindings in declaration order; ``build()`` freezes them."""

    def __init__(self) -> None:
        self._bindings: list[HandlerBinding] = []

    def handle(self, event_type: str, handler: Any) -> RegistryBuilder:
        """Bind *handler* (callable or ``handle_event`` holder) to *event_type*."""
        self._bindings.append(HandlerBinding.of(event_type, handler))
        return self

    def on(self, event_type: str) -> Callable[[Callable[[Any], Any]], Callable[[Any], Any]]:
        """Decorator form of ``handle``; returns the function unchanged."""

        def decorator(fn: Callable[[Any], Any]) -> Callable[[Any], Any]:
            self.handle(event_type, fn)
            return fn

        return decorator

    @property
    def bindings(self) -> tuple[HandlerBinding, ...]:
        return tuple(self._bindings)

    def build(self) -> EventDispatchRegistry:
        registry = EventDispatchRegistry(self._bindings)
        logger.info(
            "Webhook registry built: %d binding(s), %d event type(s)",
            len(self._bindings),
            len(registry),
        )
        return registry
