"""Schema migration for saved admin configs.

Every saved shape the admin has ever written is a numbered schema version:

    v1  no version tag. A single book kept as ``cover``/``chapters`` at the
        root; sounds, ambients, reading defaults and appearance are global,
        and ``appearance`` may be one flat theme holding the font-size range.
    v2  ``books[]`` list, but per-book settings still global at the root and
        ``fontMin``/``fontMax`` still inside ``appearance``.
    v3  current. Settings live in each book, the font-size range at the root.

Each step takes a ``VersionedDocument`` and returns the next version without
touching its input. Steps only add and reshape fields. ``migrate`` chains the
steps and then ``normalize`` fills whatever a document of the current version
is still missing.
"""

from __future__ import annotations

import copy
import logging
import math
from typing import Any, Callable

from flipbook.library.defaults import (
    BOOK_SETTING_KEYS,
    CURRENT_SCHEMA_VERSION,
    DEFAULT_AMBIENTS,
    DEFAULT_BOOK,
    DEFAULT_READING_FONTS,
    DEFAULT_SETTINGS,
    DEFAULT_SETTINGS_VISIBILITY,
    DEFAULT_SOUNDS,
    EMPTY_COVER,
    FONT_MAX,
    FONT_MIN,
    THEME_DEFAULTS,
)
from flipbook.library.models import VersionedDocument

log = logging.getLogger(__name__)

FONT_BOUND_KEYS = ("fontMin", "fontMax")
ROOT_KEY_ORDER = (
    "schemaVersion",
    "books",
    "activeBookId",
    "fontMin",
    "fontMax",
    "readingFonts",
    "settingsVisibility",
)


def detect_version(raw: dict) -> int:
    """Schema version of a raw document; untagged documents are v1."""
    for key in ("schemaVersion", "_schemaVersion"):
        value = raw.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return max(1, min(value, CURRENT_SCHEMA_VERSION))
    return 1


def split_appearance(appearance: Any) -> dict:
    """Return ``{"light": ..., "dark": ...}`` with every theme key present.

    A legacy flat appearance becomes the light theme (minus the font-size
    range that used to live in it) and dark gets clean defaults.
    """
    if not isinstance(appearance, dict):
        appearance = {}

    if isinstance(appearance.get("light"), dict) or isinstance(
        appearance.get("dark"), dict
    ):
        themes = {}
        for name, defaults in THEME_DEFAULTS.items():
            given = appearance.get(name)
            themes[name] = {
                **copy.deepcopy(defaults),
                **(copy.deepcopy(given) if isinstance(given, dict) else {}),
            }
        return themes

    flat = {
        k: copy.deepcopy(v)
        for k, v in appearance.items()
        if k not in FONT_BOUND_KEYS and k not in THEME_DEFAULTS
    }
    return {
        "light": {**copy.deepcopy(THEME_DEFAULTS["light"]), **flat},
        "dark": copy.deepcopy(THEME_DEFAULTS["dark"]),
    }


def _setting_missing(book: dict, key: str) -> bool:
    # An explicit null decorative font is a choice, not a gap.
    if key == "decorativeFont":
        return key not in book
    return book.get(key) is None


# ── Steps ─────────────────────────────────────────────


def _v1_to_v2(doc: VersionedDocument) -> VersionedDocument:
    """Fold a root-level cover/chapters pair into ``books[]``."""
    data = copy.deepcopy(doc.data)
    books = data.get("books")
    if not (isinstance(books, list) and books):
        cover = data.pop("cover", None)
        chapters = data.pop("chapters", None)
        if cover or chapters:
            book = {
                "id": DEFAULT_BOOK["id"],
                "cover": {
                    **copy.deepcopy(DEFAULT_BOOK["cover"]),
                    **(cover if isinstance(cover, dict) else {}),
                },
                "chapters": (
                    chapters
                    if isinstance(chapters, list)
                    else copy.deepcopy(DEFAULT_BOOK["chapters"])
                ),
            }
        else:
            book = {
                key: copy.deepcopy(DEFAULT_BOOK[key])
                for key in ("id", "cover", "chapters")
            }
        data["books"] = [book]
    return VersionedDocument(2, data)


def _v2_to_v3(doc: VersionedDocument) -> VersionedDocument:
    """Move global per-book settings into each book and lift the font range."""
    data = copy.deepcopy(doc.data)

    appearance = data.get("appearance")
    if isinstance(appearance, dict):
        for key in FONT_BOUND_KEYS:
            if key not in data and key in appearance:
                data[key] = appearance[key]

    legacy = {key: data.pop(key) for key in BOOK_SETTING_KEYS if key in data}
    if "appearance" in legacy:
        legacy["appearance"] = split_appearance(legacy["appearance"])

    books = data.get("books")
    if isinstance(books, list):
        for book in books:
            if not isinstance(book, dict):
                continue
            for key, value in legacy.items():
                if _setting_missing(book, key):
                    book[key] = copy.deepcopy(value)
    return VersionedDocument(3, data)


MIGRATIONS: dict[int, Callable[[VersionedDocument], VersionedDocument]] = {
    1: _v1_to_v2,
    2: _v2_to_v3,
}


# ── Normalisation ─────────────────────────────────────


def ensure_book_settings(book: dict) -> dict:
    """Fill every per-book setting the book lacks from the defaults, in place."""
    cover = book.get("cover")
    book["cover"] = {
        **copy.deepcopy(EMPTY_COVER),
        **(cover if isinstance(cover, dict) else {}),
    }
    if not isinstance(book.get("chapters"), list):
        if "chapters" in book:
            log.warning(
                "Book %r: replacing malformed chapters %r",
                book.get("id"),
                type(book["chapters"]).__name__,
            )
        book["chapters"] = []

    for key, defaults in (
        ("defaultSettings", DEFAULT_SETTINGS),
        ("sounds", DEFAULT_SOUNDS),
    ):
        given = book.get(key)
        book[key] = {
            **copy.deepcopy(defaults),
            **(given if isinstance(given, dict) else {}),
        }

    book["appearance"] = split_appearance(book.get("appearance"))

    if not isinstance(book.get("ambients"), list):
        book["ambients"] = copy.deepcopy(DEFAULT_AMBIENTS)
    if not isinstance(book.get("decorativeFont"), dict):
        book["decorativeFont"] = None
    return book


def _finite(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def normalize(data: dict) -> dict:
    """Bring a document of the current schema version to its complete shape."""
    data = copy.deepcopy(data)
    data.pop("_schemaVersion", None)

    books = data.get("books")
    if not isinstance(books, list):
        books = [copy.deepcopy(DEFAULT_BOOK)]
    elif not all(isinstance(b, dict) for b in books):
        log.warning(
            "Dropping %d malformed book entries",
            sum(1 for b in books if not isinstance(b, dict)),
        )
        books = [b for b in books if isinstance(b, dict)]
    for book in books:
        ensure_book_settings(book)

    ids = [b.get("id") for b in books]
    active = data.get("activeBookId")
    if not books:
        active = ""
    elif not isinstance(active, str) or active not in ids:
        active = books[0].get("id") or ""

    font_min = data.get("fontMin")
    font_max = data.get("fontMax")
    fonts = data.get("readingFonts")
    visibility = data.get("settingsVisibility")

    result = {
        "schemaVersion": CURRENT_SCHEMA_VERSION,
        "books": books,
        "activeBookId": active,
        "fontMin": font_min if _finite(font_min) else FONT_MIN,
        "fontMax": font_max if _finite(font_max) else FONT_MAX,
        "readingFonts": (
            fonts if isinstance(fonts, list) else copy.deepcopy(DEFAULT_READING_FONTS)
        ),
        "settingsVisibility": {
            **copy.deepcopy(DEFAULT_SETTINGS_VISIBILITY),
            **(visibility if isinstance(visibility, dict) else {}),
        },
    }
    for key, value in data.items():
        if key not in ROOT_KEY_ORDER:
            result[key] = value
    return result


def migrate(raw: dict) -> dict:
    """Run every migration step from the document's version up, then normalize."""
    doc = VersionedDocument(detect_version(raw), raw)
    start = doc.version
    while doc.version < CURRENT_SCHEMA_VERSION:
        doc = MIGRATIONS[doc.version](doc)
    if start < CURRENT_SCHEMA_VERSION:
        log.info("Migrated config schema v%d -> v%d", start, CURRENT_SCHEMA_VERSION)
    return normalize(doc.data)
