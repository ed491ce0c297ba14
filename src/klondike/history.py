from __future__ import annotations

from collections import deque
from dataclasses import replace
from typing import Deque, Optional

from klondike.state import GameState


class HistoryManager:
    """
    Undo/redo stacks of full state snapshots.

    The caller records the pre-mutation snapshot after each accepted change;
    undo and redo swap the live state with the top of the relevant stack.
    Snapshots are immutable, so the stacks hold them as-is.
    """

    def __init__(self, limit: Optional[int] = None):
        self._undo: Deque[GameState] = deque(maxlen=limit)
        self._redo: Deque[GameState] = deque(maxlen=limit)

    def __len__(self):
        return len(self._undo)

    def can_undo(self) -> bool:
        return len(self._undo) > 0

    def can_redo(self) -> bool:
        return len(self._redo) > 0

    def clear(self):
        self._undo.clear()
        self._redo.clear()

    def record(self, before: GameState):
        # Any new move erases redo history
        self._undo.append(before)
        self._redo.clear()

    def undo(self, current: GameState) -> Optional[GameState]:
        if not self._undo:
            return None
        self._redo.append(current)
        return self._undo.pop()

    def redo(self, current: GameState) -> Optional[GameState]:
        if not self._redo:
            return None
        self._undo.append(current)
        return self._redo.pop()

    def stamp(self, state: GameState) -> GameState:
        """Return ``state`` with can_undo/can_redo matching the stacks."""
        can_undo, can_redo = self.can_undo(), self.can_redo()
        if state.can_undo == can_undo and state.can_redo == can_redo:
            return state
        return replace(state, can_undo=can_undo, can_redo=can_redo)
