"""Per-mapper lifecycle event hub.

Listeners run synchronously, in registration order, inside the emitting
operation. They may mutate the model and document carried by the event and
queue async work on the event's pending chain. Listener exceptions are not
caught.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from docmap.core.enums import LifecycleEvent

if TYPE_CHECKING:
    from docmap.core.pending import PendingChain


@dataclass
class MappingEvent:
    """Arguments passed to every listener.

    ``chain`` is the pending chain of the operation that emitted the event,
    or None when the event carries no deferred work (destroy events).
    """

    name: str
    model: Any = None
    doc: dict[str, Any] | None = None
    chain: PendingChain | None = None


Listener = Callable[[MappingEvent], None]


def _event_name(name: str | LifecycleEvent) -> str:
    return name.value if isinstance(name, LifecycleEvent) else name


class EventHub:
    """Named-event publish/subscribe scoped to one mapper."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, name: str | LifecycleEvent, listener: Listener | None = None) -> Any:
        """Subscribe ``listener`` to ``name``.

        Can be used as a decorator when ``listener`` is omitted:

            @hub.on("saving")
            def stamp(event): ...
        """
        key = _event_name(name)

        if listener is None:

            def decorator(fn: Listener) -> Listener:
                self._listeners.setdefault(key, []).append(fn)
                return fn

            return decorator

        self._listeners.setdefault(key, []).append(listener)
        return listener

    def off(self, name: str | LifecycleEvent, listener: Listener) -> None:
        """Remove a listener. Unknown listeners are ignored."""
        listeners = self._listeners.get(_event_name(name), [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event: MappingEvent) -> None:
        """Run every listener for ``event.name`` in registration order."""
        # Snapshot so listeners registered mid-emit only see the next event
        for listener in list(self._listeners.get(_event_name(event.name), [])):
            listener(event)

    def listeners(self, name: str | LifecycleEvent) -> list[Listener]:
        return list(self._listeners.get(_event_name(name), []))

    def clear(self) -> None:
        self._listeners.clear()
