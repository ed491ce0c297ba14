# cards.py - card identities, colours and the 52-card deck
from __future__ import annotations

import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional

ACE = 1
JACK = 11
QUEEN = 12
KING = 13

RANK_TO_TEXT = {ACE: "A", JACK: "J", QUEEN: "Q", KING: "K"}
for _r in range(2, 11):
    RANK_TO_TEXT[_r] = str(_r)


class Suit(str, Enum):
    CLUBS = "clubs"
    DIAMONDS = "diamonds"
    HEARTS = "hearts"
    SPADES = "spades"

    @property
    def is_red(self) -> bool:
        return self in (Suit.HEARTS, Suit.DIAMONDS)

    @property
    def symbol(self) -> str:
        return {
            Suit.CLUBS: "♣",
            Suit.DIAMONDS: "♦",
            Suit.HEARTS: "♥",
            Suit.SPADES: "♠",
        }[self]


@dataclass(frozen=True)
class Card:
    """A playing card. Identity is (suit, rank); face_up is the only varying part."""

    suit: Suit
    rank: int
    face_up: bool = False

    @property
    def identity(self):
        return (self.suit, self.rank)

    @property
    def is_red(self) -> bool:
        return self.suit.is_red

    def turned(self, face_up: bool) -> "Card":
        """Return this card with the given face, reusing self when unchanged."""
        if self.face_up == face_up:
            return self
        return replace(self, face_up=face_up)

    def __repr__(self):
        return f"{RANK_TO_TEXT[self.rank]}{self.suit.symbol}{'↑' if self.face_up else '↓'}"


def opposite_color(a: Card, b: Card) -> bool:
    return a.is_red != b.is_red


def make_deck() -> List[Card]:
    return [Card(suit, rank, False) for suit in Suit for rank in range(ACE, KING + 1)]


def shuffle_deck(deck: List[Card], rng: Optional[random.Random] = None) -> List[Card]:
    """Fisher-Yates in place; returns the same list for chaining."""
    rng = rng or random.Random()
    for i in range(len(deck) - 1, 0, -1):
        j = rng.randint(0, i)
        deck[i], deck[j] = deck[j], deck[i]
    return deck
