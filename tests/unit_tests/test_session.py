import random
from dataclasses import replace

import pytest

from klondike.cards import KING, Card, Suit
from klondike.session import Cue, KlondikeSession, SessionInitError
from klondike.state import GameState, MoveIntent, PileType


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeTimer:
    def __init__(self):
        self.calls = []

    def start(self):
        self.calls.append("start")

    def stop(self):
        self.calls.append("stop")


class Recorder:
    def __init__(self, session):
        self.states = []
        self.cues = []
        self.wins = 0
        session.subscribe(self.states.append)
        session.on_cue(self.cues.append)
        session.on_win(self._won)

    def _won(self):
        self.wins += 1


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timer():
    return FakeTimer()


@pytest.fixture
def session(clock, timer):
    s = KlondikeSession(rng=random.Random(5), clock=clock, timer=timer)
    s.initialize()
    s.deal_new_game(seed=11)
    yield s
    s.teardown()


def _without_flags(state):
    return replace(state, can_undo=False, can_redo=False)


def _near_won_layout():
    foundations = tuple(tuple(Card(s, r, True) for r in range(1, KING)) for s in Suit)
    tableau = [()] * 7
    for i, s in enumerate(Suit):
        tableau[i] = (Card(s, KING, True),)
    return GameState(foundations=foundations, tableau=tuple(tableau))


def _invalid_intent(state):
    # A non-Ace tableau top onto an empty foundation
    for ti, column in enumerate(state.tableau):
        if column[-1].rank != 1:
            return MoveIntent(PileType.TABLEAU, ti, len(column) - 1, PileType.FOUNDATION, 0)
    raise AssertionError("every tableau top is an Ace")


# ---------- Lifecycle ----------
def test_commands_before_initialize_are_ignored(clock):
    s = KlondikeSession(clock=clock)
    assert not s.ready
    assert s.deal_new_game() is False
    assert s.draw() is False
    assert s.undo() is False
    assert s.redo() is False
    assert s.move(MoveIntent(PileType.WASTE, 0, 0, PileType.TABLEAU, 0)) is False
    assert s.state is None


def test_teardown_is_safe_anywhere(clock, timer):
    s = KlondikeSession(clock=clock, timer=timer)
    s.teardown()
    s.initialize()
    s.teardown()
    s.teardown()
    assert timer.calls == []
    assert s.draw() is False


def test_teardown_stops_timer_and_drops_state(session, timer):
    session.teardown()
    assert timer.calls == ["start", "stop"]
    assert session.state is None
    assert session.draw() is False
    session.tick()


def test_initialize_failure_rolls_back(clock):
    events = []

    class Good:
        def initialize(self):
            events.append("good up")

        def destroy(self):
            events.append("good down")

    class Broken:
        def initialize(self):
            raise OSError("missing card art")

        def destroy(self):
            events.append("broken down")

    s = KlondikeSession(clock=clock, collaborators=[Good(), Broken()])
    with pytest.raises(SessionInitError):
        s.initialize()
    assert events == ["good up", "good down"]
    assert not s.ready
    assert s.deal_new_game() is False
    s.teardown()


def test_collaborators_destroyed_on_teardown(clock):
    events = []

    class Mixer:
        def initialize(self):
            events.append("init")

        def destroy(self):
            events.append("destroy")

    s = KlondikeSession(clock=clock, collaborators=[Mixer()])
    s.initialize()
    s.initialize()
    s.teardown()
    assert events == ["init", "destroy"]


def test_deal_publishes_fresh_state(clock):
    s = KlondikeSession(clock=clock)
    s.initialize()
    rec = Recorder(s)
    assert s.deal_new_game(seed=3)
    assert rec.states[-1] is s.state
    assert rec.cues == [Cue.SHUFFLE]
    assert s.state.start_time == clock.now
    assert not s.state.can_undo and not s.state.can_redo


def test_same_seed_same_layout(session):
    first = session.state
    session.deal_new_game(seed=11)
    assert _without_flags(session.state) == _without_flags(first)


# ---------- Moves ----------
def test_draw_is_undoable(session):
    before = session.state
    assert session.draw()
    assert session.state.move_count == 1
    assert len(session.state.waste) == 1
    assert session.state.can_undo
    assert session.undo()
    assert _without_flags(session.state) == _without_flags(before)
    assert session.state.can_redo and not session.state.can_undo


def test_invalid_move_changes_nothing(session):
    rec = Recorder(session)
    session.draw()
    before = session.state
    assert session.move(_invalid_intent(before)) is False
    after = session.state
    assert after is before
    assert (after.move_count, after.score, after.can_undo) == (before.move_count, before.score, before.can_undo)
    assert rec.cues[-1] == Cue.INVALID


def test_move_card_accepts_plain_strings(session):
    assert session.move_card("tableau", 0, 0, "tableau", 0) is False
    assert session.move_card("nowhere", 0, 0, "tableau", 1) is False


def test_stock_to_waste_intent_draws(session):
    assert session.move(MoveIntent(PileType.STOCK, 0, 0, PileType.WASTE, 0))
    assert len(session.state.waste) == 1


def test_undo_redo_inverse_law(session):
    history = [session.state]
    for _ in range(4):
        assert session.draw()
        history.append(session.state)
    assert session.set_draw_count(3)
    history.append(session.state)
    assert session.draw()
    history.append(session.state)

    latest = session.state
    for expected in reversed(history[:-1]):
        assert session.undo()
        assert _without_flags(session.state) == _without_flags(expected)
    assert session.undo() is False

    for _ in range(len(history) - 1):
        assert session.redo()
    assert session.state == latest
    assert session.redo() is False


def test_new_move_after_undo_clears_redo(session):
    session.draw()
    session.draw()
    session.undo()
    assert session.state.can_redo
    session.draw()
    assert not session.state.can_redo
    assert session.redo() is False


def test_set_draw_count(session):
    assert session.set_draw_count(1) is False
    assert session.set_draw_count(2) is False
    assert session.set_draw_count(3)
    assert session.state.draw_count == 3
    session.draw()
    assert len(session.state.waste) == 3
    session.undo()
    session.undo()
    assert session.state.draw_count == 1


def test_draw_count_follows_undo_and_redo(session):
    assert session.set_draw_count(3)
    assert session.undo()
    assert session.state.draw_count == 1
    assert session.draw_count == 1
    assert session.set_draw_count(3)
    assert session.state.draw_count == 3
    session.undo()
    assert session.redo()
    assert session.draw_count == 3


def test_draw_recycles_empty_stock(session):
    waste = tuple(c.turned(True) for c in session.state.stock)
    layout = replace(session.state, stock=(), waste=waste)
    session.load(layout)
    assert session.draw()
    assert session.state.waste == ()
    assert [c.identity for c in session.state.stock] == [c.identity for c in reversed(waste)]


def test_draw_with_nothing_left_is_silent(session):
    layout = _near_won_layout()
    session.load(layout)
    rec = Recorder(session)
    assert session.draw() is False
    assert session.recycle() is False
    assert rec.cues == []
    assert rec.states == []


def test_load_rejects_incomplete_layout(session):
    with pytest.raises(ValueError):
        session.load(GameState())


def test_restart_replays_opening(session):
    opening = session.state
    session.draw()
    session.draw()
    assert session.restart()
    assert session.state.stock == opening.stock
    assert session.state.tableau == opening.tableau
    assert session.state.move_count == 0
    assert not session.state.can_undo


# ---------- Win / timer ----------
def test_win_fires_once_per_game(session):
    rec = Recorder(session)
    session.load(_near_won_layout())
    assert session.can_autofinish()
    assert session.auto_finish() == 4
    assert session.check_for_win()
    assert rec.wins == 1
    assert Cue.WIN in rec.cues
    assert session.state.score == 40

    assert session.undo()
    assert not session.check_for_win()
    assert session.redo()
    assert session.check_for_win()
    assert rec.wins == 1

    session.load(_near_won_layout())
    session.auto_finish()
    assert rec.wins == 2


def test_auto_finish_step_needs_open_board(session):
    assert session.auto_finish_step() is False


def test_tick_updates_elapsed_time(session, clock):
    rec = Recorder(session)
    clock.now += 3.6
    session.tick()
    assert session.state.current_time == 3
    assert len(rec.states) == 1
    session.tick()
    assert len(rec.states) == 1


def test_clock_survives_undo(session, clock):
    session.draw()
    clock.now += 10
    session.tick()
    session.undo()
    assert session.state.current_time == 10


def test_unsubscribe(session):
    seen = []
    unsubscribe = session.subscribe(seen.append)
    session.draw()
    unsubscribe()
    session.draw()
    assert len(seen) == 1
