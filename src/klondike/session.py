"""Session controller: owns the live state, history, timer and collaborators.

Every public command returns a bool. Rule violations raised by
:mod:`klondike.rules` stop here and turn into ``False`` plus an ``invalid``
cue; they never reach the caller.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import replace
from enum import Enum
from typing import Callable, List, Optional, Sequence

from klondike import rules
from klondike.history import HistoryManager
from klondike.state import DRAW_COUNTS, GameState, MoveIntent, PileType, deal_new_state

log = logging.getLogger(__name__)

StateListener = Callable[[GameState], None]


class SessionInitError(RuntimeError):
    """A collaborator failed to start; the session accepts no input."""


class Cue(str, Enum):
    SHUFFLE = "shuffle"
    CARD_FLIP = "card_flip"
    CARD_PLACE = "card_place"
    INVALID = "invalid"
    UNDO = "undo"
    REDO = "redo"
    WIN = "win"


class KlondikeSession:
    """
    Orchestrates one game table.

    Collaborators are objects with ``initialize()`` and ``destroy()`` (an audio
    mixer, a renderer). ``timer`` is an object with ``start()`` and ``stop()``
    that arranges for :meth:`tick` to be called about once a second on the
    same event queue as user input.
    """

    def __init__(
        self,
        *,
        draw_count: int = 1,
        stock_cycles: Optional[int] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        timer=None,
        collaborators: Sequence = (),
    ):
        if draw_count not in DRAW_COUNTS:
            raise ValueError(f"draw_count must be one of {DRAW_COUNTS}, got {draw_count!r}")
        self.draw_count = draw_count
        self.stock_cycles = stock_cycles
        self._rng = rng or random.Random()
        self._clock = clock
        self._timer = timer
        self._timer_running = False
        self._collaborators = list(collaborators)
        self._started: List = []
        self._ready = False
        self._history = HistoryManager()
        self._state: Optional[GameState] = None
        self._opening: Optional[GameState] = None
        self._win_announced = False
        self._listeners: List[StateListener] = []
        self._win_listeners: List[Callable[[], None]] = []
        self._cue_listeners: List[Callable[[Cue], None]] = []

    # ---------- Lifecycle ----------
    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def state(self) -> Optional[GameState]:
        return self._state

    def initialize(self):
        if self._ready:
            return
        started = []
        for collaborator in self._collaborators:
            try:
                collaborator.initialize()
            except Exception as exc:
                log.error("Failed to initialize %r: %s", collaborator, exc)
                for done in reversed(started):
                    self._destroy(done)
                raise SessionInitError(f"could not initialize {type(collaborator).__name__}: {exc}") from exc
            started.append(collaborator)
        self._started = started
        self._ready = True
        log.info("Session ready (%d collaborators)", len(started))

    def teardown(self):
        """Stop the timer and release everything. Safe to call at any point."""
        self._stop_timer()
        for collaborator in reversed(self._started):
            self._destroy(collaborator)
        self._started = []
        self._ready = False
        self._history.clear()
        self._state = None
        self._opening = None
        self._listeners.clear()
        self._win_listeners.clear()
        self._cue_listeners.clear()
        log.info("Session torn down")

    @staticmethod
    def _destroy(collaborator):
        try:
            collaborator.destroy()
        except Exception:
            log.exception("Error destroying %r", collaborator)

    # ---------- Subscriptions ----------
    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register for state snapshots; returns a function that unsubscribes."""
        self._listeners.append(listener)
        return lambda: self._discard(self._listeners, listener)

    def on_win(self, listener: Callable[[], None]) -> Callable[[], None]:
        self._win_listeners.append(listener)
        return lambda: self._discard(self._win_listeners, listener)

    def on_cue(self, listener: Callable[[Cue], None]) -> Callable[[], None]:
        self._cue_listeners.append(listener)
        return lambda: self._discard(self._cue_listeners, listener)

    @staticmethod
    def _discard(listeners: list, listener):
        if listener in listeners:
            listeners.remove(listener)

    def _publish(self):
        for listener in list(self._listeners):
            listener(self._state)

    def _cue(self, cue: Cue):
        for listener in list(self._cue_listeners):
            listener(cue)

    # ---------- Timer ----------
    def _start_timer(self):
        self._timer_running = True
        if self._timer is not None:
            self._timer.start()

    def _stop_timer(self):
        if not self._timer_running:
            return
        self._timer_running = False
        if self._timer is not None:
            self._timer.stop()

    def tick(self, now: Optional[float] = None):
        """Refresh current_time from the clock; the only non-user mutation."""
        if not self._timer_running or self._state is None or self._state.start_time is None:
            return
        now = self._clock() if now is None else now
        elapsed = max(0, int(now - self._state.start_time))
        if elapsed != self._state.current_time:
            self._state = replace(self._state, current_time=elapsed)
            self._publish()

    # ---------- State transitions ----------
    def _accepting(self) -> bool:
        if not self._ready:
            log.debug("Input ignored: session not initialized")
            return False
        return self._state is not None

    def _set_state(self, state: GameState):
        self._state = self._history.stamp(state)
        self.draw_count = self._state.draw_count
        self._publish()
        if not self._win_announced and rules.check_for_win(self._state):
            self._win_announced = True
            log.info("Game won in %d moves, score %d", self._state.move_count, self._state.score)
            self._cue(Cue.WIN)
            for listener in list(self._win_listeners):
                listener()

    def _commit(self, new_state: GameState, cue: Optional[Cue] = None):
        self._history.record(self._state)
        self._set_state(new_state)
        if cue is not None:
            self._cue(cue)

    def _start_game(self, state: GameState):
        self._history.clear()
        self._win_announced = False
        self._state = None
        self._start_timer()
        self._set_state(state)
        self._cue(Cue.SHUFFLE)

    def deal_new_game(self, seed: Optional[int] = None) -> bool:
        if not self._ready:
            log.debug("deal_new_game ignored: session not initialized")
            return False
        rng = random.Random(seed) if seed is not None else self._rng
        draw_count = self._state.draw_count if self._state is not None else self.draw_count
        state = deal_new_state(
            rng,
            draw_count=draw_count,
            stock_cycle_limit=self.stock_cycles,
            start_time=self._clock(),
        )
        self._opening = state
        log.info("Dealt new game (draw %d)", draw_count)
        self._start_game(state)
        return True

    def load(self, state: GameState) -> bool:
        """Start a game from a prepared layout, e.g. a regression fixture."""
        if not self._ready:
            return False
        if not rules.is_conserved(state):
            raise ValueError("layout must hold each of the 52 cards exactly once")
        state = replace(state, start_time=self._clock(), current_time=0, can_undo=False, can_redo=False)
        self.draw_count = state.draw_count
        self._opening = state
        self._start_game(state)
        return True

    def restart(self) -> bool:
        """Replay the opening layout of the current deal."""
        if not self._accepting() or self._opening is None:
            return False
        draw_count = self._state.draw_count
        self._start_game(replace(self._opening, start_time=self._clock(), draw_count=draw_count))
        return True

    def move(self, intent: MoveIntent) -> bool:
        if not self._accepting():
            return False
        if intent.source_kind == PileType.STOCK and intent.target_kind == PileType.WASTE:
            return self.draw()
        if intent.source_kind == PileType.WASTE and intent.target_kind == PileType.STOCK:
            return self.recycle()
        try:
            new_state = rules.apply_move(self._state, intent)
        except rules.InvalidMove as exc:
            log.debug("Rejected %s: %s", intent, exc)
            self._cue(Cue.INVALID)
            return False
        self._commit(new_state, Cue.CARD_PLACE)
        return True

    def move_card(self, source_kind, source_index: int, card_offset: int, target_kind, target_index: int) -> bool:
        try:
            intent = MoveIntent(PileType(source_kind), source_index, card_offset, PileType(target_kind), target_index)
        except ValueError:
            log.debug("Rejected move with unknown pile kind %r -> %r", source_kind, target_kind)
            self._cue(Cue.INVALID)
            return False
        return self.move(intent)

    def draw(self) -> bool:
        """Draw from the stock, or recycle the waste when the stock is empty."""
        if not self._accepting():
            return False
        try:
            new_state = rules.draw_or_recycle(self._state)
        except rules.NoOpDraw as exc:
            log.debug("Draw ignored: %s", exc)
            return False
        self._commit(new_state, Cue.CARD_FLIP)
        return True

    def recycle(self) -> bool:
        if not self._accepting():
            return False
        try:
            new_state = rules.recycle(self._state)
        except rules.NoOpDraw as exc:
            log.debug("Recycle ignored: %s", exc)
            return False
        self._commit(new_state, Cue.CARD_FLIP)
        return True

    def set_draw_count(self, count: int) -> bool:
        """Switch between draw-1 and draw-3. Returns True when the state changed."""
        if count not in DRAW_COUNTS:
            log.debug("Ignoring draw count %r", count)
            return False
        self.draw_count = count
        if not self._accepting() or self._state.draw_count == count:
            return False
        self._commit(replace(self._state, draw_count=count))
        return True

    def _restored(self, snapshot: GameState) -> GameState:
        # The clock keeps running across undo/redo
        return replace(snapshot, start_time=self._state.start_time, current_time=self._state.current_time)

    def undo(self) -> bool:
        if not self._accepting():
            return False
        previous = self._history.undo(self._state)
        if previous is None:
            return False
        self._set_state(self._restored(previous))
        self._cue(Cue.UNDO)
        return True

    def redo(self) -> bool:
        if not self._accepting():
            return False
        following = self._history.redo(self._state)
        if following is None:
            return False
        self._set_state(self._restored(following))
        self._cue(Cue.REDO)
        return True

    # ---------- Queries / helpers ----------
    def check_for_win(self) -> bool:
        return self._state is not None and rules.check_for_win(self._state)

    def can_autofinish(self) -> bool:
        return self._state is not None and rules.can_autofinish(self._state)

    def auto_finish_step(self) -> bool:
        """Play one tableau card to a foundation once the deal is open and drawn."""
        if not self._accepting() or not rules.can_autofinish(self._state):
            return False
        intent = rules.next_auto_move(self._state)
        if intent is None:
            return False
        return self.move(intent)

    def auto_finish(self) -> int:
        moved = 0
        while self.auto_finish_step():
            moved += 1
        return moved
