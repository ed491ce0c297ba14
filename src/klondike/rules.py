"""Klondike rules: move validation, state deltas, scoring and the win check.

Every function here is pure. Transitions take a :class:`GameState` and return
a new one; a rejected transition raises :class:`InvalidMove` or
:class:`NoOpDraw` and leaves nothing behind. Callers that need a boolean
(the session controller) catch these at their boundary.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from typing import Optional, Sequence, Tuple

from klondike.cards import ACE, KING, Card, make_deck, opposite_color
from klondike.state import FOUNDATION_COUNT, TABLEAU_COUNT, GameState, MoveIntent, PileType


class MoveRejected(Exception):
    """Base for expected rule violations."""


class InvalidMove(MoveRejected):
    pass


class EmptySourceMove(InvalidMove):
    pass


class NoOpDraw(MoveRejected):
    pass


# Points per (source, target). Pairs not listed score nothing.
SCORE_TABLE = {
    (PileType.WASTE, PileType.FOUNDATION): 10,
    (PileType.WASTE, PileType.TABLEAU): 5,
    (PileType.TABLEAU, PileType.FOUNDATION): 10,
    (PileType.FOUNDATION, PileType.TABLEAU): -15,
}

# Turning over a face-down tableau card is not scored on its own.
EXPOSE_BONUS = 0


def score_delta(source: PileType, target: PileType, exposed: bool = False) -> int:
    return SCORE_TABLE.get((source, target), 0) + (EXPOSE_BONUS if exposed else 0)


# ---------- Group resolution ----------
def movable_group(state: GameState, kind: PileType, index: int, offset: int) -> Tuple[Card, ...]:
    """Return the cards that would travel together from the given source.

    Waste and foundations only ever give up their top card, so ``offset`` is
    ignored for them. A tableau group is the suffix from ``offset`` and must
    be entirely face-up.
    """
    if kind not in (PileType.WASTE, PileType.FOUNDATION, PileType.TABLEAU):
        raise InvalidMove(f"cannot move cards out of {kind!r}")
    pile = state.pile(kind, index)
    if pile is None:
        raise InvalidMove(f"no {kind.value} pile at index {index}")
    if not pile:
        raise EmptySourceMove(f"{kind.value} {index} is empty")
    if kind != PileType.TABLEAU:
        return pile[-1:]
    if offset < 0 or offset >= len(pile):
        raise EmptySourceMove(f"no card at offset {offset} of tableau {index}")
    group = pile[offset:]
    if not all(c.face_up for c in group):
        raise InvalidMove("cannot split a face-down run")
    return group


def can_accept(group: Sequence[Card], target_kind: PileType, target: Sequence[Card]) -> bool:
    if not group:
        return False
    bottom = group[0]
    if target_kind == PileType.FOUNDATION:
        if len(group) != 1:
            return False
        if not target:
            return bottom.rank == ACE
        top = target[-1]
        return bottom.suit == top.suit and bottom.rank == top.rank + 1
    if target_kind == PileType.TABLEAU:
        if not target:
            return bottom.rank == KING
        top = target[-1]
        if not top.face_up:
            return False
        return opposite_color(bottom, top) and bottom.rank == top.rank - 1
    return False


def validate_move(state: GameState, intent: MoveIntent) -> Tuple[Card, ...]:
    """Return the group ``intent`` would move, or raise if it is illegal."""
    if intent.target_kind not in (PileType.FOUNDATION, PileType.TABLEAU):
        raise InvalidMove(f"cannot drop cards on {intent.target_kind!r}")
    if (intent.source_kind, intent.source_index) == (intent.target_kind, intent.target_index):
        raise InvalidMove("source and target are the same pile")
    target = state.pile(intent.target_kind, intent.target_index)
    if target is None:
        raise InvalidMove(f"no {intent.target_kind.value} pile at index {intent.target_index}")
    group = movable_group(state, intent.source_kind, intent.source_index, intent.card_offset)
    if not can_accept(group, intent.target_kind, target):
        raise InvalidMove(f"{group[0]!r} cannot go on {intent.target_kind.value} {intent.target_index}")
    return group


def is_valid_move(state: GameState, intent: MoveIntent) -> bool:
    try:
        validate_move(state, intent)
    except InvalidMove:
        return False
    return True


# ---------- Transitions ----------
def apply_move(state: GameState, intent: MoveIntent) -> GameState:
    group = validate_move(state, intent)
    source = state.pile(intent.source_kind, intent.source_index)
    remaining = source[: len(source) - len(group)]
    exposed = False
    if intent.source_kind == PileType.TABLEAU and remaining and not remaining[-1].face_up:
        remaining = remaining[:-1] + (remaining[-1].turned(True),)
        exposed = True
    target = state.pile(intent.target_kind, intent.target_index)
    new = state.with_pile(intent.source_kind, intent.source_index, remaining)
    new = new.with_pile(intent.target_kind, intent.target_index, target + group)
    return replace(
        new,
        move_count=state.move_count + 1,
        score=state.score + score_delta(intent.source_kind, intent.target_kind, exposed),
    )


def draw(state: GameState) -> GameState:
    if not state.stock:
        raise NoOpDraw("stock is empty")
    count = min(state.draw_count, len(state.stock))
    drawn = tuple(c.turned(True) for c in state.stock[-count:])
    return replace(
        state,
        stock=state.stock[:-count],
        waste=state.waste + drawn,
        move_count=state.move_count + 1,
    )


def can_recycle(state: GameState) -> bool:
    if state.stock or not state.waste:
        return False
    limit = state.stock_cycle_limit
    return limit is None or state.stock_cycles_used < limit


def recycle(state: GameState) -> GameState:
    if state.stock:
        raise NoOpDraw("stock is not empty")
    if not state.waste:
        raise NoOpDraw("nothing to recycle")
    if not can_recycle(state):
        raise NoOpDraw("no more stock cycles")
    return replace(
        state,
        stock=tuple(c.turned(False) for c in reversed(state.waste)),
        waste=(),
        move_count=state.move_count + 1,
        stock_cycles_used=state.stock_cycles_used + 1,
    )


def draw_or_recycle(state: GameState) -> GameState:
    if state.stock:
        return draw(state)
    return recycle(state)


# ---------- Predicates ----------
def check_for_win(state: GameState) -> bool:
    return all(len(f) == 13 for f in state.foundations)


def is_conserved(state: GameState) -> bool:
    """True when the piles hold each of the 52 identities exactly once."""
    seen = Counter(c.identity for c in state.iter_cards())
    return seen == Counter(c.identity for c in make_deck())


def can_autofinish(state: GameState) -> bool:
    """Eligible when stock and waste are empty and every tableau card is face-up."""
    if state.stock or state.waste:
        return False
    return all(c.face_up for t in state.tableau for c in t)


def next_auto_move(state: GameState) -> Optional[MoveIntent]:
    """Find the next tableau->foundation move, or None."""
    for ti in range(TABLEAU_COUNT):
        column = state.tableau[ti]
        if not column:
            continue
        for fi in range(FOUNDATION_COUNT):
            intent = MoveIntent(PileType.TABLEAU, ti, len(column) - 1, PileType.FOUNDATION, fi)
            if is_valid_move(state, intent):
                return intent
    return None
