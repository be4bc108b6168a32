"""Pending-resolution chain.

A chain is created per mapper operation and collects the deferred async
steps that relation bindings (or user listeners) queue during the
``built``/``saving``/``saved`` phases. It is drained once the primary store
operation has finished and before the operation returns.

Steps that need the owner's identity (writing children that point back at a
freshly inserted parent) are declared with ``requires_identity=True`` and
drain ahead of ordinary steps, each group keeping its own registration order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

Step = Callable[[Any], Awaitable[Any]]


@dataclass(frozen=True)
class PendingStep:
    step: Step
    requires_identity: bool = False
    label: str = ""


class PendingChain:
    """Ordered queue of deferred async steps for one operation."""

    def __init__(self) -> None:
        self._steps: list[PendingStep] = []

    def defer(self, step: Step, *, requires_identity: bool = False, label: str = "") -> None:
        """Queue ``step`` to run when the chain drains."""
        self._steps.append(PendingStep(step, requires_identity, label))

    def discard(self) -> None:
        """Drop every queued step without running it."""
        self._steps.clear()

    @property
    def steps(self) -> list[PendingStep]:
        """Queued steps in the order they will run."""
        dependent = [s for s in self._steps if s.requires_identity]
        independent = [s for s in self._steps if not s.requires_identity]
        return dependent + independent

    def __len__(self) -> int:
        return len(self._steps)

    async def drain(self, model: Any) -> Any:
        """Run queued steps one at a time and return the resolved model.

        Each step receives the current model and may return a replacement;
        returning None keeps the current model. The first exception stops
        the chain and propagates. Steps queued while draining run after the
        ones already queued.
        """
        while self._steps:
            index = next((i for i, s in enumerate(self._steps) if s.requires_identity), 0)
            pending = self._steps.pop(index)
            result = await pending.step(model)
            if result is not None:
                model = result
        return model


async def gather_all(*awaitables: Awaitable[Any]) -> list[Any]:
    """Run awaitables concurrently and return their results in order.

    Every awaitable finishes before the first failure is re-raised, so no
    sibling is still writing once the caller sees the error.
    """
    results = await asyncio.gather(*awaitables, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)
