# scene.py - pygame front-end: renders session snapshots and forwards input
import logging
from typing import Callable, Optional

import pygame

from klondike import common as C
from klondike.cards import make_deck
from klondike.gestures import InputResolver, PileSlot, TableLayout
from klondike.session import Cue, KlondikeSession
from klondike.state import GameState

log = logging.getLogger(__name__)

TICK_EVENT = pygame.USEREVENT + 1

WIN_MESSAGE = "Congratulations! You won! Press N for a new game."


class PygameTicker:
    """Posts TICK_EVENT once a second through pygame's own event queue."""

    def __init__(self, event_type: int = TICK_EVENT, interval_ms: int = 1000):
        self.event_type = event_type
        self.interval_ms = interval_ms

    def start(self):
        pygame.time.set_timer(self.event_type, self.interval_ms)

    def stop(self):
        pygame.time.set_timer(self.event_type, 0)


class CardArtwork:
    """Pre-renders every card face and the back before the first frame."""

    def initialize(self):
        if C.FONT_UI is None:
            C.setup_fonts()
        C.invalidate_card_caches()
        C.get_back_surface()
        for card in make_deck():
            C.get_card_surface(card.turned(True))

    def destroy(self):
        C.invalidate_card_caches()


def format_clock(seconds: int) -> str:
    m, s = divmod(max(0, int(seconds)), 60)
    return f"{m:02d}:{s:02d}"


class KlondikeGameScene(C.Scene):
    def __init__(self, app, session: KlondikeSession, seed: Optional[int] = None):
        super().__init__(app)
        self.session = session
        self.layout = TableLayout()
        self.resolver = InputResolver(self.layout)
        self.snapshot: Optional[GameState] = session.state
        self.message = ""

        # Auto-finish pacing
        self.auto_play_active = False
        self.auto_elapsed_ms = 0
        self.auto_interval_ms = 180

        self._unsubscribe = [
            session.subscribe(self._on_state),
            session.on_win(self._on_win),
            session.on_cue(self._on_cue),
        ]

        self.b_new = C.Button("New", 0, 0)
        self.b_restart = C.Button("Restart", 0, 0)
        self.b_undo = C.Button("Undo", 0, 0)
        self.b_redo = C.Button("Redo", 0, 0)
        self.b_draw = C.Button(f"Draw: {session.draw_count}", 0, 0)
        self.b_auto = C.Button("Auto Finish", 0, 0)
        self.buttons = [
            (self.b_new, self.new_game, lambda: True),
            (self.b_restart, self.restart, lambda: True),
            (self.b_undo, self.undo, lambda: bool(self.snapshot and self.snapshot.can_undo)),
            (self.b_redo, self.redo, lambda: bool(self.snapshot and self.snapshot.can_redo)),
            (self.b_draw, self.toggle_draw_count, lambda: True),
            (self.b_auto, self.start_auto_finish, self.session.can_autofinish),
        ]
        self.compute_layout()

        if self.snapshot is None:
            self.session.deal_new_game(seed)

    # ---------- Session callbacks ----------
    def _on_state(self, state: GameState):
        self.snapshot = state
        self.b_draw.text = f"Draw: {state.draw_count}"

    def _on_win(self):
        self.auto_play_active = False
        self.message = WIN_MESSAGE

    def _on_cue(self, cue: Cue):
        if cue == Cue.SHUFFLE:
            self.message = ""
        elif cue == Cue.INVALID:
            self.message = "Invalid move"
        elif cue in (Cue.CARD_PLACE, Cue.CARD_FLIP, Cue.UNDO, Cue.REDO) and self.message != WIN_MESSAGE:
            self.message = ""

    # ---------- Commands ----------
    def new_game(self):
        self.auto_play_active = False
        self.resolver.cancel()
        self.session.deal_new_game()

    def undo(self):
        self.auto_play_active = False
        self.resolver.cancel()
        self.session.undo()

    def redo(self):
        self.resolver.cancel()
        self.session.redo()

    def restart(self):
        self.auto_play_active = False
        self.resolver.cancel()
        self.session.restart()

    def draw_card(self):
        self.resolver.cancel()
        self.session.draw()

    def toggle_draw_count(self):
        current = self.snapshot.draw_count if self.snapshot is not None else self.session.draw_count
        count = 1 if current == 3 else 3
        self.resolver.cancel()
        self.session.set_draw_count(count)
        self.b_draw.text = f"Draw: {count}"
        C.save_settings({"draw_count": count})

    def start_auto_finish(self):
        if not self.session.can_autofinish():
            return
        self.auto_play_active = True
        self.auto_elapsed_ms = 0

    # ---------- Layout ----------
    def compute_layout(self):
        self.layout.compute_layout()
        x = C.PILE_PADDING
        for button, _, _ in self.buttons:
            button.rect.topleft = (x, (C.TOP_BAR_H - button.rect.height) // 2)
            x += button.rect.width + 8

    # ---------- Event handling ----------
    def handle_event(self, e):
        if e.type == TICK_EVENT:
            self.session.tick()
            return
        if self.snapshot is None:
            return

        if e.type == pygame.MOUSEBUTTONDOWN and e.button == 1:
            for button, action, enabled in self.buttons:
                if button.hovered(e.pos):
                    if enabled():
                        action()
                    return

        if e.type in (pygame.MOUSEBUTTONDOWN, pygame.MOUSEBUTTONUP, pygame.MOUSEMOTION):
            if self.auto_play_active:
                return
            intent = self.resolver.handle_event(e, self.snapshot)
            if intent is not None:
                self.session.move(intent)
            return

        if e.type == pygame.KEYDOWN:
            if e.key == pygame.K_n:
                self.new_game()
            elif e.key == pygame.K_r:
                self.restart()
            elif e.key == pygame.K_u:
                self.undo()
            elif e.key == pygame.K_y:
                self.redo()
            elif e.key == pygame.K_d:
                self.toggle_draw_count()
            elif e.key == pygame.K_SPACE:
                self.draw_card()
            elif e.key == pygame.K_a:
                self.start_auto_finish()
            elif e.key == pygame.K_ESCAPE:
                if self.resolver.drag is not None:
                    self.resolver.cancel()
                else:
                    pygame.event.post(pygame.event.Event(pygame.QUIT))

    def update(self, dt):
        if not self.auto_play_active:
            return
        self.auto_elapsed_ms += int(dt * 1000)
        if self.auto_elapsed_ms < self.auto_interval_ms:
            return
        self.auto_elapsed_ms = 0
        if not self.session.auto_finish_step():
            self.auto_play_active = False

    def close(self):
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        self.session.teardown()

    # ---------- Drawing ----------
    def _visible_cards(self, slot: PileSlot):
        cards = self.snapshot.pile(slot.kind, slot.index)
        drag = self.resolver.drag
        if drag is not None and (drag.source_kind, drag.source_index) == (slot.kind, slot.index):
            return cards[:drag.card_offset]
        return cards

    def _draw_slot(self, screen, slot: PileSlot):
        cards = self._visible_cards(slot)
        if not cards:
            pygame.draw.rect(screen, (255, 255, 255), slot.base_rect(), width=2, border_radius=C.CARD_RADIUS)
            return
        if slot.fanned:
            for i, c in enumerate(cards):
                screen.blit(C.get_card_surface(c), slot.rect_for_index(cards, i).topleft)
        else:
            screen.blit(C.get_card_surface(cards[-1]), (slot.x, slot.y))

    def draw(self, screen):
        screen.fill(C.TABLE_BG)
        if self.snapshot is None:
            return
        state = self.snapshot

        mp = pygame.mouse.get_pos()
        for button, _, enabled in self.buttons:
            ok = enabled()
            button.draw(screen, hover=ok and button.hovered(mp), enabled=ok)

        hud = f"Score: {state.score}   Moves: {state.move_count}   Time: {format_clock(state.current_time)}"
        h = C.FONT_UI.render(hud, True, C.WHITE)
        screen.blit(h, (C.SCREEN_W - h.get_width() - 20, (C.TOP_BAR_H - h.get_height()) // 2))
        if state.stock_cycle_limit is not None:
            left = max(0, state.stock_cycle_limit - state.stock_cycles_used)
            sc = C.FONT_SMALL.render(f"Stock cycles left: {left}", True, C.WHITE)
            screen.blit(sc, (self.layout.stock.x, self.layout.stock.y + C.CARD_H + 4))

        for slot in self.layout.slots():
            self._draw_slot(screen, slot)

        drag = self.resolver.drag
        if drag is not None:
            for i, c in enumerate(drag.cards):
                screen.blit(C.get_card_surface(c), drag.card_topleft(i))

        if self.message:
            msg = C.FONT_UI.render(self.message, True, (255, 255, 180))
            screen.blit(msg, (C.SCREEN_W//2 - msg.get_width()//2, C.SCREEN_H - 40))


class InitErrorScene(C.Scene):
    """Shown when the session could not start; R retries, Esc quits."""

    def __init__(self, app, error: str, retry: Callable[[], C.Scene]):
        super().__init__(app)
        self.error = error
        self.retry = retry
        self.b_retry = C.Button("Retry", C.SCREEN_W//2, C.SCREEN_H//2 + 60, center=True)

    def handle_event(self, e):
        if e.type == pygame.MOUSEBUTTONDOWN and e.button == 1 and self.b_retry.hovered(e.pos):
            self.next_scene = self.retry()
        elif e.type == pygame.KEYDOWN:
            if e.key == pygame.K_r:
                self.next_scene = self.retry()
            elif e.key == pygame.K_ESCAPE:
                pygame.event.post(pygame.event.Event(pygame.QUIT))

    def draw(self, screen):
        screen.fill(C.TABLE_BG)
        title = C.FONT_TITLE.render("Could not start the game", True, C.WHITE)
        screen.blit(title, (C.SCREEN_W//2 - title.get_width()//2, C.SCREEN_H//2 - 80))
        detail = C.FONT_SMALL.render(self.error, True, C.LIGHT)
        screen.blit(detail, (C.SCREEN_W//2 - detail.get_width()//2, C.SCREEN_H//2 - 20))
        self.b_retry.draw(screen, hover=self.b_retry.hovered(pygame.mouse.get_pos()))
