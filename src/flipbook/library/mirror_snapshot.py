"""Derive the lightweight copy of a config document kept in the mirror tier.

The mirror is size-constrained, so inline chapter HTML and every embedded
binary (fonts, images, textures, sounds stored as data URLs) is removed and
replaced by a ``True`` marker. A reader of the mirror that needs the real
value fetches the full document from the durable tier.
"""

from __future__ import annotations

import copy
from typing import Any

MARKER = "_durable"

# appearance field -> marker key set on the theme
THEME_PAYLOADS = {
    "coverBgImage": "_durableCoverBgImage",
    "customTextureData": "_durableCustomTexture",
}


def is_data_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("data:")


def _strip_key(entry: Any, key: str, marker: str = MARKER, data_only: bool = False) -> None:
    if not isinstance(entry, dict) or key not in entry:
        return
    value = entry[key]
    if data_only and not is_data_url(value):
        return
    if not value:
        return
    del entry[key]
    entry[marker] = True


def _strip_book(book: dict) -> None:
    for chapter in book.get("chapters") or []:
        _strip_key(chapter, "htmlContent")

    _strip_key(book.get("cover"), "bgCustomData", "_durableBgCustomData", data_only=True)
    _strip_key(book.get("decorativeFont"), "dataUrl")

    for ambient in book.get("ambients") or []:
        _strip_key(ambient, "file", data_only=True)

    sounds = book.get("sounds")
    if isinstance(sounds, dict):
        for name in [k for k, v in sounds.items() if is_data_url(v)]:
            _strip_key(sounds, name, MARKER + name[:1].upper() + name[1:])

    appearance = book.get("appearance")
    if isinstance(appearance, dict):
        for theme in ("light", "dark"):
            for field, marker in THEME_PAYLOADS.items():
                _strip_key(appearance.get(theme), field, marker, data_only=True)


def strip_payloads(snapshot: dict) -> dict:
    """Return a copy of ``snapshot`` with large payloads swapped for markers."""
    mirror = copy.deepcopy(snapshot)
    for book in mirror.get("books") or []:
        if isinstance(book, dict):
            _strip_book(book)
    for font in mirror.get("readingFonts") or []:
        _strip_key(font, "dataUrl")
    return mirror


def has_payload_markers(mirror: Any) -> bool:
    """True if anything in ``mirror`` was stripped and lives only in the durable tier."""
    if isinstance(mirror, dict):
        if any(k.startswith(MARKER) and v is True for k, v in mirror.items()):
            return True
        return any(has_payload_markers(v) for v in mirror.values())
    if isinstance(mirror, list):
        return any(has_payload_markers(v) for v in mirror)
    return False
