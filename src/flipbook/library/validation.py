"""Structural checks for a merged config document."""

from __future__ import annotations

import math
from typing import Any


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def validate_schema(config: Any) -> list[str]:
    """Return human-readable violations; an empty list means the shape is valid.

    Never raises: callers log the result and keep using the document.
    """
    if not isinstance(config, dict):
        return ["config must be an object"]

    errors: list[str] = []

    books = config.get("books")
    if not isinstance(books, list):
        errors.append("books must be a list")
    else:
        for i, book in enumerate(books):
            if not isinstance(book, dict):
                errors.append(f"books[{i}] must be an object")
                continue
            if not book.get("id"):
                errors.append(f"books[{i}]: id is missing")
            if not isinstance(book.get("cover"), dict):
                errors.append(f"books[{i}]: cover is missing")
            if not isinstance(book.get("chapters"), list):
                errors.append(f"books[{i}]: chapters must be a list")

    if not isinstance(config.get("activeBookId"), str):
        errors.append("activeBookId must be a string")

    for key in ("fontMin", "fontMax"):
        if not _is_finite_number(config.get(key)):
            errors.append(f"{key} must be a finite number")

    if not isinstance(config.get("readingFonts"), list):
        errors.append("readingFonts must be a list")

    if not isinstance(config.get("settingsVisibility"), dict):
        errors.append("settingsVisibility must be an object")

    return errors
