"""Default values for the admin configuration document.

Pure data. Everything here is shared, so callers must never mutate these
objects; use the ``default_*`` helpers to get private deep copies.
"""

from __future__ import annotations

import copy

CURRENT_SCHEMA_VERSION = 3
STORAGE_KEY = "flipbook-admin-config"

FONT_MIN = 14
FONT_MAX = 22

# Per-theme appearance
LIGHT_DEFAULTS = {
    "coverBgStart": "#3a2d1f",
    "coverBgEnd": "#2a2016",
    "coverText": "#f2e9d8",
    "coverBgImage": None,
    "pageTexture": "default",
    "customTextureData": None,
    "bgPage": "#fdfcf8",
    "bgApp": "#e6e3dc",
}

DARK_DEFAULTS = {
    "coverBgStart": "#111111",
    "coverBgEnd": "#000000",
    "coverText": "#eaeaea",
    "coverBgImage": None,
    "pageTexture": "none",
    "customTextureData": None,
    "bgPage": "#1e1e1e",
    "bgApp": "#121212",
}

THEME_DEFAULTS = {"light": LIGHT_DEFAULTS, "dark": DARK_DEFAULTS}

DEFAULT_READING_FONTS = [
    {"id": "georgia", "label": "Georgia", "family": "Georgia, serif", "builtin": True, "enabled": True},
    {"id": "merriweather", "label": "Merriweather", "family": '"Merriweather", serif', "builtin": True, "enabled": True},
    {"id": "libre-baskerville", "label": "Libre Baskerville", "family": '"Libre Baskerville", serif', "builtin": True, "enabled": True},
    {"id": "inter", "label": "Inter", "family": "Inter, sans-serif", "builtin": True, "enabled": True},
    {"id": "roboto", "label": "Roboto", "family": "Roboto, sans-serif", "builtin": True, "enabled": True},
    {"id": "open-sans", "label": "Open Sans", "family": '"Open Sans", sans-serif', "builtin": True, "enabled": True},
]

DEFAULT_SETTINGS = {
    "font": "georgia",
    "fontSize": 18,
    "theme": "light",
    "soundEnabled": True,
    "soundVolume": 0.3,
    "ambientType": "none",
    "ambientVolume": 0.5,
}

DEFAULT_SOUNDS = {
    "pageFlip": "sounds/page-flip.mp3",
    "bookOpen": "sounds/cover-flip.mp3",
    "bookClose": "sounds/cover-flip.mp3",
}

DEFAULT_AMBIENTS = [
    {"id": "none", "label": "No sound", "shortLabel": "None", "icon": "✕", "file": None, "visible": True, "builtin": True},
    {"id": "rain", "label": "Rain", "shortLabel": "Rain", "icon": "🌧️", "file": "sounds/ambient/rain.mp3", "visible": True, "builtin": True},
    {"id": "fireplace", "label": "Fireplace", "shortLabel": "Fire", "icon": "🔥", "file": "sounds/ambient/fireplace.mp3", "visible": True, "builtin": True},
    {"id": "cafe", "label": "Cafe", "shortLabel": "Cafe", "icon": "☕", "file": "sounds/ambient/cafe.mp3", "visible": True, "builtin": True},
]

DEFAULT_SETTINGS_VISIBILITY = {
    "fontSize": True,
    "theme": True,
    "font": True,
    "fullscreen": True,
    "sound": True,
    "ambient": True,
}

# Everything a book carries besides its id, cover and chapters.
DEFAULT_BOOK_SETTINGS = {
    "defaultSettings": DEFAULT_SETTINGS,
    "appearance": {"light": LIGHT_DEFAULTS, "dark": DARK_DEFAULTS},
    "sounds": DEFAULT_SOUNDS,
    "ambients": DEFAULT_AMBIENTS,
    "decorativeFont": None,
}

BOOK_SETTING_KEYS = tuple(DEFAULT_BOOK_SETTINGS)

# Cover given to books added without one.
EMPTY_COVER = {
    "title": "",
    "author": "",
    "bg": "",
    "bgMobile": "",
    "bgMode": "default",
    "bgCustomData": None,
}

DEFAULT_COVER = {
    "title": "On Hobbits",
    "author": "J.R.R. Tolkien",
    "bg": "images/backgrounds/bg-cover.webp",
    "bgMobile": "images/backgrounds/bg-cover-mobile.webp",
    "bgMode": "default",
    "bgCustomData": None,
}

DEFAULT_CHAPTERS = [
    {
        "id": f"part_{n}",
        "file": f"content/part_{n}.html",
        "bg": f"images/backgrounds/part_{n}.webp",
        "bgMobile": f"images/backgrounds/part_{n}-mobile.webp",
    }
    for n in (1, 2, 3)
]

DEFAULT_BOOK = {
    "id": "default",
    "cover": DEFAULT_COVER,
    "chapters": DEFAULT_CHAPTERS,
    **DEFAULT_BOOK_SETTINGS,
}

DEFAULT_CONFIG = {
    "schemaVersion": CURRENT_SCHEMA_VERSION,
    "books": [DEFAULT_BOOK],
    "activeBookId": "default",
    # Global font-size range
    "fontMin": FONT_MIN,
    "fontMax": FONT_MAX,
    "readingFonts": DEFAULT_READING_FONTS,
    "settingsVisibility": DEFAULT_SETTINGS_VISIBILITY,
}


def default_config() -> dict:
    return copy.deepcopy(DEFAULT_CONFIG)


def default_book() -> dict:
    return copy.deepcopy(DEFAULT_BOOK)


def default_book_settings() -> dict:
    return copy.deepcopy(DEFAULT_BOOK_SETTINGS)
