import pygame
import pytest

from klondike import common as C
from klondike.cards import Card, Suit, make_deck
from klondike.scene import KlondikeGameScene
from klondike.session import KlondikeSession
from klondike.state import GameState


def _layout():
    # Waste 2 of clubs, tableau 0 holds the 5 of hearts, everything else in the stock
    waste_card = Card(Suit.CLUBS, 2, True)
    column_card = Card(Suit.HEARTS, 5, True)
    rest = tuple(c for c in make_deck() if c.identity not in (waste_card.identity, column_card.identity))
    tableau = [()] * 7
    tableau[0] = (column_card,)
    return GameState(stock=rest, waste=(waste_card,), tableau=tuple(tableau))


@pytest.fixture
def saved(monkeypatch):
    values = []
    monkeypatch.setattr(C, "save_settings", lambda new: values.append(new["draw_count"]))
    return values


@pytest.fixture
def scene(saved):
    session = KlondikeSession(clock=lambda: 100.0)
    session.initialize()
    session.load(_layout())
    s = KlondikeGameScene(None, session)
    yield s
    s.close()


def _mouse(kind, pos):
    return pygame.event.Event(kind, {"pos": pos, "button": 1})


def _key(key):
    return pygame.event.Event(pygame.KEYDOWN, {"key": key, "mod": 0})


def _grab_waste(scene):
    scene.handle_event(_mouse(pygame.MOUSEBUTTONDOWN, scene.layout.waste.base_rect().center))
    assert scene.resolver.drag is not None


def test_rejected_drop_leaves_state_and_history(scene):
    before = scene.session.state
    _grab_waste(scene)
    scene.handle_event(_mouse(pygame.MOUSEBUTTONUP, scene.layout.tableau[0].base_rect().center))

    after = scene.session.state
    assert after is before
    assert scene.snapshot is before
    assert (after.move_count, after.score, after.can_undo) == (0, 0, False)
    assert scene.resolver.drag is None
    assert scene.message == "Invalid move"
    assert scene.session.undo() is False


def test_empty_foundation_click_shows_no_message(scene):
    pos = scene.layout.foundations[0].base_rect().center
    scene.handle_event(_mouse(pygame.MOUSEBUTTONDOWN, pos))
    scene.handle_event(_mouse(pygame.MOUSEBUTTONUP, scene.layout.tableau[0].base_rect().center))
    assert scene.message == ""
    assert scene.session.state.move_count == 0


def test_draw_toggle_after_undo(scene, saved):
    scene.handle_event(_key(pygame.K_d))
    assert scene.snapshot.draw_count == 3
    scene.handle_event(_key(pygame.K_u))
    assert scene.snapshot.draw_count == 1
    assert scene.b_draw.text == "Draw: 1"

    scene.handle_event(_key(pygame.K_d))
    assert scene.snapshot.draw_count == 3
    assert scene.b_draw.text == "Draw: 3"
    assert saved == [3, 3]


@pytest.mark.parametrize("key", [pygame.K_u, pygame.K_y, pygame.K_r, pygame.K_d, pygame.K_SPACE, pygame.K_n])
def test_commands_cancel_a_drag_in_progress(scene, key):
    scene.handle_event(_key(pygame.K_SPACE))
    _grab_waste(scene)
    scene.handle_event(_key(key))
    assert scene.resolver.drag is None
