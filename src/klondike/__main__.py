# __main__.py - entry point
import logging
import os
from typing import Optional

import pygame

from klondike import common as C
from klondike.scene import CardArtwork, InitErrorScene, KlondikeGameScene, PygameTicker
from klondike.session import KlondikeSession, SessionInitError

log = logging.getLogger(__name__)


def _initial_window_size():
    info = pygame.display.Info()
    # Keep a safety margin so the window never hides under taskbar
    margin_w, margin_h = 120, 140
    w = min(C.SCREEN_W, max(640, info.current_w - margin_w))
    h = min(C.SCREEN_H, max(480, info.current_h - margin_h))
    return w, h


def _env_int(name: str) -> Optional[int]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        log.warning("Ignoring non-integer %s=%r", name, raw)
        return None


def build_scene(seed: Optional[int] = None, draw_count: Optional[int] = None):
    """Start a session and its game scene, or an error scene that can retry."""
    settings = C.get_current_settings()
    if draw_count not in (1, 3):
        draw_count = settings["draw_count"]
    session = KlondikeSession(
        draw_count=draw_count,
        stock_cycles=settings["stock_cycles"],
        timer=PygameTicker(),
        collaborators=[CardArtwork()],
    )
    try:
        session.initialize()
    except SessionInitError as exc:
        log.error("Session failed to start: %s", exc)
        session.teardown()
        return InitErrorScene(None, str(exc), retry=lambda: build_scene(seed, draw_count))
    return KlondikeGameScene(None, session, seed=seed)


def main():
    logging.basicConfig(level=os.environ.get("KLONDIKE_LOG_LEVEL", "WARNING").upper())

    # Center window and init
    os.environ.setdefault("SDL_VIDEO_CENTERED", "1")
    pygame.init()

    card_size = os.environ.get("KLONDIKE_CARD_SIZE", "").strip().capitalize()
    if card_size in ("Small", "Medium", "Large"):
        C.apply_card_settings(size_name=card_size)
    else:
        C.apply_card_settings(size_name=C.get_current_settings()["card_size"])

    w, h = _initial_window_size()
    C.SCREEN_W, C.SCREEN_H = w, h
    screen = pygame.display.set_mode((w, h), pygame.RESIZABLE)
    pygame.display.set_caption("Klondike Solitaire")
    C.setup_fonts()
    clock = pygame.time.Clock()

    scene = build_scene(seed=_env_int("KLONDIKE_SEED"), draw_count=_env_int("KLONDIKE_DRAW_COUNT"))

    running = True
    while running:
        dt = clock.tick(60) / 1000.0
        for e in pygame.event.get():
            if e.type == pygame.QUIT:
                running = False
                break
            if e.type == pygame.VIDEORESIZE:
                C.SCREEN_W, C.SCREEN_H = e.size
                screen = pygame.display.set_mode((C.SCREEN_W, C.SCREEN_H), pygame.RESIZABLE)
                if hasattr(scene, "compute_layout"):
                    scene.compute_layout()
                continue
            scene.handle_event(e)
        if not running:
            break
        if scene.next_scene is not None:
            scene.close()
            scene = scene.next_scene
        scene.update(dt)
        scene.draw(screen)
        pygame.display.flip()
    scene.close()
    pygame.quit()


if __name__ == "__main__":
    main()
