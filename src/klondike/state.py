"""Immutable game state snapshots and the opening deal.

A :class:`GameState` never changes once built. Every accepted transition
returns a new instance; untouched piles are shared between the old and new
snapshot, which is safe because piles are tuples of frozen cards.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator, List, NamedTuple, Optional, Sequence, Tuple

from klondike.cards import Card, make_deck, shuffle_deck

FOUNDATION_COUNT = 4
TABLEAU_COUNT = 7
DRAW_COUNTS = (1, 3)

Pile = Tuple[Card, ...]


class PileType(str, Enum):
    STOCK = "stock"
    WASTE = "waste"
    FOUNDATION = "foundation"
    TABLEAU = "tableau"


class MoveIntent(NamedTuple):
    """A not-yet-validated request to relocate a card group."""

    source_kind: PileType
    source_index: int
    card_offset: int
    target_kind: PileType
    target_index: int


def draw_intent() -> MoveIntent:
    return MoveIntent(PileType.STOCK, 0, 0, PileType.WASTE, 0)


def recycle_intent() -> MoveIntent:
    return MoveIntent(PileType.WASTE, 0, 0, PileType.STOCK, 0)


@dataclass(frozen=True)
class GameState:
    stock: Pile = ()
    waste: Pile = ()
    foundations: Tuple[Pile, ...] = ((),) * FOUNDATION_COUNT
    tableau: Tuple[Pile, ...] = ((),) * TABLEAU_COUNT
    move_count: int = 0
    score: int = 0
    start_time: Optional[float] = None
    current_time: int = 0
    draw_count: int = 1
    can_undo: bool = False
    can_redo: bool = False
    stock_cycle_limit: Optional[int] = None
    stock_cycles_used: int = 0

    def pile(self, kind: PileType, index: int = 0) -> Optional[Pile]:
        """Return the addressed pile, or None for an unknown kind/index."""
        if kind == PileType.STOCK:
            return self.stock
        if kind == PileType.WASTE:
            return self.waste
        if kind == PileType.FOUNDATION:
            return self.foundations[index] if 0 <= index < FOUNDATION_COUNT else None
        if kind == PileType.TABLEAU:
            return self.tableau[index] if 0 <= index < TABLEAU_COUNT else None
        return None

    def with_pile(self, kind: PileType, index: int, cards: Sequence[Card]) -> "GameState":
        cards = tuple(cards)
        if kind == PileType.STOCK:
            return replace(self, stock=cards)
        if kind == PileType.WASTE:
            return replace(self, waste=cards)
        if kind == PileType.FOUNDATION:
            piles = list(self.foundations)
            piles[index] = cards
            return replace(self, foundations=tuple(piles))
        if kind == PileType.TABLEAU:
            piles = list(self.tableau)
            piles[index] = cards
            return replace(self, tableau=tuple(piles))
        raise ValueError(f"Unknown pile kind: {kind!r}")

    def iter_cards(self) -> Iterator[Card]:
        yield from self.stock
        yield from self.waste
        for f in self.foundations:
            yield from f
        for t in self.tableau:
            yield from t

    def card_count(self) -> int:
        return sum(1 for _ in self.iter_cards())


def deal_tableau(deck: List[Card]) -> Tuple[Tuple[Pile, ...], Pile]:
    """Deal the triangular tableau from the end of ``deck``.

    Round ``row`` gives one card to each column ``row..6``; the card dealt to
    a column on its own round is its last one and the only face-up card.
    Returns (tableau, stock) with the leftover cards face-down in the stock.
    """
    deck = list(deck)
    columns: List[List[Card]] = [[] for _ in range(TABLEAU_COUNT)]
    for row in range(TABLEAU_COUNT):
        for col in range(row, TABLEAU_COUNT):
            card = deck.pop()
            columns[col].append(card.turned(col == row))
    stock = tuple(c.turned(False) for c in deck)
    return tuple(tuple(col) for col in columns), stock


def deal_new_state(
    rng: Optional[random.Random] = None,
    *,
    draw_count: int = 1,
    stock_cycle_limit: Optional[int] = None,
    start_time: Optional[float] = None,
) -> GameState:
    if draw_count not in DRAW_COUNTS:
        raise ValueError(f"draw_count must be one of {DRAW_COUNTS}, got {draw_count!r}")
    deck = shuffle_deck(make_deck(), rng)
    tableau, stock = deal_tableau(deck)
    return GameState(
        stock=stock,
        tableau=tableau,
        start_time=start_time,
        draw_count=draw_count,
        stock_cycle_limit=stock_cycle_limit,
    )
