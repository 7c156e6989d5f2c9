from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Union

logger = logging.getLogger(__name__)

Undo = Callable[[], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class CompensatableAction:
    label: str
    undo: Undo


class CommitSaga:
    """Ordered record of side effects that can be undone after a failure.

    Each creation step records how to reverse itself right after it succeeds.
    ``compensate`` walks the record newest-first; an undo that fails is logged
    and skipped so the remaining undos still run.
    """

    def __init__(self) -> None:
        self._actions: list[CompensatableAction] = []

    def record(self, label: str, undo: Undo) -> None:
        self._actions.append(CompensatableAction(label=label, undo=undo))

    @property
    def labels(self) -> list[str]:
        return [action.label for action in self._actions]

    def __len__(self) -> int:
        return len(self._actions)

    async def compensate(self) -> list[str]:
        failed: list[str] = []
        for action in reversed(self._actions):
            try:
                result = action.undo()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Compensation step failed: %s", action.label)
                failed.append(action.label)
        self._actions.clear()
        return failed
