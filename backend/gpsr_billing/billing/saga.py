"""Compensation list for multi-step billing flows.

Each completed side effect pushes an undo action. If a later step fails the
actions run newest-first; an undo that fails is logged and the rest still run.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

UndoAction = Callable[[], Awaitable[Any]]


class Compensation:
    """Ordered undo actions for a single request."""

    def __init__(self) -> None:
        self._actions: list[tuple[str, UndoAction]] = []

    def __len__(self) -> int:
        return len(self._actions)

    def push(self, description: str, action: UndoAction) -> None:
        self._actions.append((description, action))

    def clear(self) -> None:
        """Forget all undo actions (the flow committed or was handed off)."""
        self._actions.clear()

    async def run(self) -> None:
        """Run the undo actions in reverse order, never raising."""
        while self._actions:
            description, action = self._actions.pop()
            logger.info("Compensating: %s", description)
            try:
                await action()
            except Exception:
                logger.exception("Compensation step failed: %s", description)
