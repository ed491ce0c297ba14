"""Pointer gestures to move-intents.

:class:`InputResolver` is a two-state machine (idle/dragging). It never
touches game state: pointer-down picks up a group, pointer-up hit-tests the
drop zones and hands back a :class:`~klondike.state.MoveIntent` for the
session to validate. Clicking the stock bypasses dragging and yields the draw
or recycle intent straight away.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import pygame

from klondike import common as C
from klondike.cards import Card
from klondike.state import (
    FOUNDATION_COUNT,
    TABLEAU_COUNT,
    GameState,
    MoveIntent,
    PileType,
    draw_intent,
    recycle_intent,
)

Point = Tuple[int, int]


class PileSlot:
    """Screen placement of one pile. Cards come from the state being drawn."""

    def __init__(self, kind: PileType, index: int, x: int, y: int, fanned: bool = False):
        self.kind = kind
        self.index = index
        self.x, self.y = x, y
        self.fanned = fanned

    def base_rect(self) -> pygame.Rect:
        return pygame.Rect(self.x, self.y, C.CARD_W, C.CARD_H)

    def offset_for_index(self, cards: Sequence[Card], idx: int) -> int:
        if not self.fanned:
            return 0
        return sum(C.FAN_FACE_UP if c.face_up else C.FAN_FACE_DOWN for c in cards[:idx])

    def rect_for_index(self, cards: Sequence[Card], idx: int) -> pygame.Rect:
        return pygame.Rect(self.x, self.y + self.offset_for_index(cards, idx), C.CARD_W, C.CARD_H)

    def top_rect(self, cards: Sequence[Card]) -> pygame.Rect:
        if not cards:
            return self.base_rect()
        return self.rect_for_index(cards, len(cards) - 1)

    def hit(self, cards: Sequence[Card], pos: Point) -> Optional[int]:
        """Index of the topmost card under ``pos``; -1 for an empty pile's outline."""
        if not cards:
            return -1 if self.base_rect().collidepoint(pos) else None
        for i in reversed(range(len(cards))):
            if self.rect_for_index(cards, i).collidepoint(pos):
                return i
        return None

    def drop_zone(self, height: int) -> pygame.Rect:
        # Tableau columns grow downwards, so their zone runs to the bottom of the table
        if self.kind == PileType.TABLEAU:
            return pygame.Rect(self.x, self.y, C.CARD_W, max(C.CARD_H, height - self.y))
        return self.base_rect()


class TableLayout:
    def __init__(self, width: Optional[int] = None, height: Optional[int] = None, top: int = C.TOP_BAR_H):
        self.width = width
        self.height = height
        self.top = top
        self.stock: PileSlot
        self.waste: PileSlot
        self.foundations: List[PileSlot] = []
        self.tableau: List[PileSlot] = []
        self.compute_layout()

    def compute_layout(self):
        width = self.width or C.SCREEN_W
        pad = C.PILE_PADDING
        top = self.top + pad
        self.stock = PileSlot(PileType.STOCK, 0, pad, top)
        self.waste = PileSlot(PileType.WASTE, 0, pad + C.CARD_W + pad, top)
        self.foundations = [
            PileSlot(PileType.FOUNDATION, i, width - (C.CARD_W + pad) * (FOUNDATION_COUNT - i), top)
            for i in range(FOUNDATION_COUNT)
        ]
        tableau_top = top + C.CARD_H + pad
        self.tableau = [
            PileSlot(PileType.TABLEAU, i, pad + i * (C.CARD_W + pad), tableau_top, fanned=True)
            for i in range(TABLEAU_COUNT)
        ]

    @property
    def table_height(self) -> int:
        return self.height or C.SCREEN_H

    def slots(self) -> List[PileSlot]:
        return [self.stock, self.waste, *self.foundations, *self.tableau]

    def drop_target(self, pos: Point) -> Optional[PileSlot]:
        # Foundations win ties at shared edges
        for slot in self.foundations:
            if slot.drop_zone(self.table_height).collidepoint(pos):
                return slot
        for slot in self.tableau:
            if slot.drop_zone(self.table_height).collidepoint(pos):
                return slot
        return None


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass
class DragGroup:
    source_kind: PileType
    source_index: int
    card_offset: int
    cards: Tuple[Card, ...]
    grab_offset: Point
    pos: Point

    def card_topleft(self, i: int) -> Point:
        gx, gy = self.grab_offset
        return (self.pos[0] - gx, self.pos[1] - gy + i * C.FAN_FACE_UP)


class InputResolver:
    def __init__(self, layout: TableLayout):
        self.layout = layout
        self.drag: Optional[DragGroup] = None

    @property
    def state(self) -> DragState:
        return DragState.DRAGGING if self.drag is not None else DragState.IDLE

    def cancel(self):
        self.drag = None

    def pointer_down(self, pos: Point, state: GameState) -> Optional[MoveIntent]:
        """Start a drag, or return the draw/recycle intent for a stock click."""
        if self.drag is not None:
            return None
        layout = self.layout

        if layout.stock.base_rect().collidepoint(pos):
            return draw_intent() if state.stock else recycle_intent()

        # Waste and foundations: top card only
        for slot in [layout.waste, *layout.foundations]:
            cards = state.pile(slot.kind, slot.index)
            hi = slot.hit(cards, pos)
            if cards and hi == len(cards) - 1:
                self._pick_up(slot, cards, hi, pos)
                return None

        # Tableau: any face-up card and everything above it
        for slot in layout.tableau:
            cards = state.pile(slot.kind, slot.index)
            hi = slot.hit(cards, pos)
            if hi is None or hi == -1:
                continue
            if cards[hi].face_up:
                self._pick_up(slot, cards, hi, pos)
            return None
        return None

    def _pick_up(self, slot: PileSlot, cards: Sequence[Card], idx: int, pos: Point):
        r = slot.rect_for_index(cards, idx)
        self.drag = DragGroup(
            source_kind=slot.kind,
            source_index=slot.index,
            card_offset=idx,
            cards=tuple(cards[idx:]),
            grab_offset=(pos[0] - r.x, pos[1] - r.y),
            pos=pos,
        )

    def pointer_move(self, pos: Point):
        if self.drag is not None:
            self.drag.pos = pos

    def pointer_up(self, pos: Point) -> Optional[MoveIntent]:
        drag, self.drag = self.drag, None
        if drag is None:
            return None
        slot = self.layout.drop_target(pos)
        if slot is None:
            return None
        if (slot.kind, slot.index) == (drag.source_kind, drag.source_index):
            return None
        return MoveIntent(drag.source_kind, drag.source_index, drag.card_offset, slot.kind, slot.index)

    def handle_event(self, e, state: GameState) -> Optional[MoveIntent]:
        if e.type == pygame.MOUSEBUTTONDOWN and e.button == 1:
            return self.pointer_down(e.pos, state)
        if e.type == pygame.MOUSEMOTION:
            self.pointer_move(e.pos)
        elif e.type == pygame.MOUSEBUTTONUP and e.button == 1:
            return self.pointer_up(e.pos)
        return None
