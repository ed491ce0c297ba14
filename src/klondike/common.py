# common.py - settings, table geometry and drawing helpers shared by the front-end
import os
import json
import pygame
from typing import Optional

from klondike.cards import RANK_TO_TEXT, Card, Suit

# Defaults (may be overridden by persisted settings)
_DEFAULT_SETTINGS = {
    "card_size": "Medium",   # Small | Medium | Large
    "draw_count": 1,         # 1 | 3
    "stock_cycles": None,    # None (unlimited) | int
}

_CURRENT_SETTINGS = dict(_DEFAULT_SETTINGS)

def _settings_dir() -> str:
    # Prefer %APPDATA% on Windows, else ~/.klondike_solitaire
    base = os.environ.get("APPDATA")
    if base:
        return os.path.join(base, "KlondikeSolitaire")
    return os.path.join(os.path.expanduser("~"), ".klondike_solitaire")

def _settings_path() -> str:
    return os.path.join(_settings_dir(), "settings.json")

def _coerce_draw_count(value) -> int:
    try:
        value = int(value)
    except (TypeError, ValueError):
        return _DEFAULT_SETTINGS["draw_count"]
    return value if value in (1, 3) else _DEFAULT_SETTINGS["draw_count"]

def _coerce_stock_cycles(value) -> Optional[int]:
    if value is None:
        return None
    try:
        value = int(value)
    except (TypeError, ValueError):
        return None
    return value if value >= 0 else None

def get_current_settings():
    return dict(_CURRENT_SETTINGS)

def load_settings():
    global _CURRENT_SETTINGS
    try:
        with open(_settings_path(), "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return
    if isinstance(data, dict):
        _CURRENT_SETTINGS.update({
            "card_size": str(data.get("card_size", _CURRENT_SETTINGS["card_size"])),
            "draw_count": _coerce_draw_count(data.get("draw_count", _CURRENT_SETTINGS["draw_count"])),
            "stock_cycles": _coerce_stock_cycles(data.get("stock_cycles", _CURRENT_SETTINGS["stock_cycles"])),
        })

def save_settings(new_values: dict):
    # Merge and write to disk
    global _CURRENT_SETTINGS
    _CURRENT_SETTINGS.update({
        k: new_values[k] for k in ("card_size", "draw_count", "stock_cycles") if k in new_values
    })
    try:
        os.makedirs(_settings_dir(), exist_ok=True)
        with open(_settings_path(), "w", encoding="utf-8") as f:
            json.dump(_CURRENT_SETTINGS, f, indent=2)
    except OSError:
        pass

def _size_to_dims(size_name: str):
    size_name = (size_name or "Medium").capitalize()
    if size_name == "Small":
        return 75, 105
    if size_name == "Large":
        return 150, 210
    return 100, 140

def invalidate_card_caches():
    global _card_face_cache, _card_back_cache
    _card_face_cache = {}
    _card_back_cache = None

def apply_card_settings(size_name: str = None):
    global CARD_W, CARD_H
    if size_name is not None:
        CARD_W, CARD_H = _size_to_dims(size_name)
    invalidate_card_caches()

# Load any persisted settings now
load_settings()


# ---------- Configuration ----------
SCREEN_W, SCREEN_H = 1280, 800
TABLE_BG = (2, 100, 40)

CARD_W, CARD_H = _size_to_dims(_CURRENT_SETTINGS.get("card_size", "Medium"))
CARD_RADIUS = 10
PILE_PADDING = 20
FAN_FACE_UP = 30
FAN_FACE_DOWN = 15

TOP_BAR_H = 60

# Colors
BLACK = (20, 20, 20)
WHITE = (245, 245, 245)
RED = (200, 20, 20)
GOLD = (230, 190, 80)
LIGHT = (220, 220, 220)

# Fonts are initialized via setup_fonts() AFTER pygame.init() in __main__.py
FONT_NAME = None
FONT_SMALL = None
FONT_UI = None
FONT_TITLE = None
FONT_CORNER_RANK = None
FONT_CORNER_SUIT = None
FONT_CENTER_SUIT = None

def setup_fonts():
    global FONT_NAME, FONT_SMALL, FONT_UI, FONT_TITLE, FONT_CORNER_RANK, FONT_CORNER_SUIT, FONT_CENTER_SUIT
    FONT_NAME = pygame.font.get_default_font()
    FONT_SMALL = pygame.font.SysFont(FONT_NAME, 20, bold=True)
    FONT_UI = pygame.font.SysFont(FONT_NAME, 26, bold=True)
    FONT_TITLE = pygame.font.SysFont(FONT_NAME, 44, bold=True)
    FONT_CORNER_RANK = pygame.font.SysFont(FONT_NAME, 28, bold=True)
    # Suit glyphs need a Unicode-capable font
    FONT_CORNER_SUIT = pygame.font.SysFont("Segoe UI Symbol", 26, bold=True)
    FONT_CENTER_SUIT = pygame.font.SysFont("Segoe UI Symbol", 56, bold=True)


# ---------- Card surfaces ----------
_card_face_cache = {}
_card_back_cache = None

def draw_suit_shape(surface, center, suit: Suit, color, size=42):
    x, y = center
    if suit == Suit.DIAMONDS:
        half = size//2
        points = [(x, y - half), (x + half, y), (x, y + half), (x - half, y)]
        pygame.draw.polygon(surface, color, points)
    elif suit == Suit.HEARTS:
        r = size//3
        pygame.draw.circle(surface, color, (x - r, y - r), r)
        pygame.draw.circle(surface, color, (x + r, y - r), r)
        tri = [(x - 2*r, y - r), (x + 2*r, y - r), (x, y + 2*r)]
        pygame.draw.polygon(surface, color, tri)
    elif suit == Suit.SPADES:
        r = size//3
        pygame.draw.circle(surface, color, (x - r, y), r)
        pygame.draw.circle(surface, color, (x + r, y), r)
        tri = [(x - 2*r, y), (x + 2*r, y), (x, y - 2*r)]
        pygame.draw.polygon(surface, color, tri)
        stem_w = max(6, size//6)
        pygame.draw.rect(surface, color, (x - stem_w//2, y + r, stem_w, size//2))
    else:
        r = size//3
        pygame.draw.circle(surface, color, (x, y - r), r)
        pygame.draw.circle(surface, color, (x - r, y + r//3), r)
        pygame.draw.circle(surface, color, (x + r, y + r//3), r)
        stem_w = max(6, size//6)
        pygame.draw.rect(surface, color, (x - stem_w//2, y + r, stem_w, size//2))

def get_card_surface(card: Card):
    if not card.face_up:
        return get_back_surface()
    key = card.identity
    if key in _card_face_cache:
        return _card_face_cache[key]
    surf = pygame.Surface((CARD_W, CARD_H), pygame.SRCALPHA)
    pygame.draw.rect(surf, WHITE, (0,0,CARD_W,CARD_H), border_radius=CARD_RADIUS)
    pygame.draw.rect(surf, BLACK, (0,0,CARD_W,CARD_H), width=3, border_radius=CARD_RADIUS)
    color = RED if card.is_red else BLACK
    margin = 8
    rtxt = FONT_CORNER_RANK.render(RANK_TO_TEXT[card.rank], True, color)
    stxt = FONT_CORNER_SUIT.render(card.suit.symbol, True, color)
    surf.blit(rtxt, (margin, margin))
    surf.blit(stxt, (margin, margin + rtxt.get_height() - 2))
    draw_suit_shape(surf, (CARD_W//2, CARD_H//2 + 8), card.suit, color, size=CARD_W//2)
    _card_face_cache[key] = surf
    return surf

def get_back_surface():
    global _card_back_cache
    if _card_back_cache is not None:
        return _card_back_cache
    surf = pygame.Surface((CARD_W, CARD_H), pygame.SRCALPHA)
    pygame.draw.rect(surf, WHITE, (0,0,CARD_W,CARD_H), border_radius=CARD_RADIUS)
    pygame.draw.rect(surf, BLACK, (0,0,CARD_W,CARD_H), width=3, border_radius=CARD_RADIUS)
    inset = 8
    inner_rect = pygame.Rect(inset, inset, CARD_W-2*inset, CARD_H-2*inset)
    pygame.draw.rect(surf, (34,96,200), inner_rect, border_radius=8)
    for i in range(-CARD_H, CARD_W, 12):
        pygame.draw.line(surf, LIGHT, (i, 8), (i+CARD_H, CARD_H-8), 1)
    _card_back_cache = surf
    return surf


# ---------- UI ----------
class Button:
    def __init__(self, text, x, y, w=140, h=36, center=False):
        self.text = text
        self.rect = pygame.Rect(0, 0, w, h)
        if center:
            self.rect.center = (x, y)
        else:
            self.rect.topleft = (x, y)

    def draw(self, screen, hover=False, enabled=True):
        col = (160, 160, 165) if not enabled else (GOLD if hover else (200, 200, 200))
        pygame.draw.rect(screen, col, self.rect, border_radius=10)
        pygame.draw.rect(screen, BLACK, self.rect, 2, border_radius=10)
        t = FONT_SMALL.render(self.text, True, BLACK)
        screen.blit(t, (self.rect.centerx - t.get_width() // 2,
                        self.rect.centery - t.get_height() // 2))

    def hovered(self, mouse_pos):
        return self.rect.collidepoint(mouse_pos)


# ---------- Base Scene ----------
class Scene:
    def __init__(self, app):
        self.app = app
        self.next_scene = None
    def handle_event(self, e): pass
    def update(self, dt): pass
    def draw(self, screen): pass
    def close(self): pass
