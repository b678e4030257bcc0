"""Admin config store: the canonical multi-book configuration document.

The document lives in memory and is persisted to two tiers:

* the durable tier (``KeyValueStore``) holds the full document;
* the mirror tier (``MirrorStore``) holds a copy with large payloads replaced
  by markers, small enough for readers that cannot reach the durable tier.

Mutators change the in-memory document immediately and schedule a save. At
most one durable write runs at a time; mutations made while it runs are
coalesced into a single follow-up write of the newest state.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import time
from typing import Callable, Optional

from flipbook.config import AppConfig
from flipbook.library.defaults import (
    DEFAULT_AMBIENTS,
    DEFAULT_CHAPTERS,
    DEFAULT_COVER,
    DEFAULT_SETTINGS,
    DEFAULT_SOUNDS,
    EMPTY_COVER,
    STORAGE_KEY,
    THEME_DEFAULTS,
    default_config,
)
from flipbook.library.migration import ensure_book_settings, migrate
from flipbook.library.mirror_snapshot import strip_payloads
from flipbook.library.models import BookSummary, SaveState
from flipbook.library.validation import validate_schema
from flipbook.storage.kv_store import KeyValueStore, KeyValueStoreError
from flipbook.storage.mirror import MirrorStore

log = logging.getLogger(__name__)

ErrorListener = Callable[[str, BaseException], None]


class ConfigDocumentStore:
    """Owns the config document. Build it with ``await ConfigDocumentStore.create(...)``."""

    def __init__(self, durable: KeyValueStore, mirror: MirrorStore) -> None:
        self._durable = durable
        self._mirror = mirror
        self._config: dict = default_config()
        self._state = SaveState.IDLE
        self._version = 0
        self._save_task: Optional[asyncio.Task] = None
        self._error_listeners: list[ErrorListener] = []
        self.write_count = 0

    @classmethod
    async def create(cls, durable: KeyValueStore, mirror: MirrorStore) -> ConfigDocumentStore:
        store = cls(durable, mirror)
        await store._load()
        return store

    # ── Loading ────────────────────────────────────────

    async def _load(self) -> None:
        durable_ok = True
        saved = None
        try:
            saved = await self._durable.get(STORAGE_KEY)
        except (KeyValueStoreError, OSError) as e:
            durable_ok = False
            log.warning("Durable tier unavailable, falling back to mirror: %s", e)

        if isinstance(saved, dict):
            self._config = self._merge(saved)
            return
        if saved is not None:
            log.warning("Ignoring non-object config in durable tier")

        mirrored = self._read_mirror()
        if mirrored is not None:
            self._config = self._merge(mirrored)
            if durable_ok:
                # Durable tier is empty: seed it from the mirror copy.
                self._save()
            return

        self._config = default_config()

    def _read_mirror(self) -> Optional[dict]:
        try:
            raw = self._mirror.get_item(STORAGE_KEY)
            if raw is None:
                return None
            parsed = json.loads(raw)
        except (OSError, ValueError) as e:
            log.debug("Discarding unreadable mirror copy: %s", e)
            return None
        return parsed if isinstance(parsed, dict) else None

    def _merge(self, raw: dict) -> dict:
        merged = migrate(raw)
        errors = validate_schema(merged)
        if errors:
            log.warning("Config does not match the schema: %s", errors)
        return merged

    # ── Persistence ────────────────────────────────────

    @property
    def save_state(self) -> SaveState:
        return self._state

    @property
    def version(self) -> int:
        return self._version

    def subscribe_errors(self, listener: ErrorListener) -> Callable[[], None]:
        """Call ``listener(message, exc)`` on every failed durable write.

        Returns a function that removes the listener again.
        """
        self._error_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._error_listeners:
                self._error_listeners.remove(listener)

        return unsubscribe

    def _save(self) -> None:
        self._version += 1
        if self._state is SaveState.IDLE:
            self._state = SaveState.WRITING
            loop = asyncio.get_running_loop()
            self._save_task = loop.create_task(self._write_loop())
        else:
            self._state = SaveState.WRITING_AGAIN

    async def _write_loop(self) -> None:
        try:
            while True:
                written = self._version
                self._state = SaveState.WRITING
                await self._persist(copy.deepcopy(self._config))
                if self._state is SaveState.WRITING and self._version == written:
                    break
        finally:
            self._state = SaveState.IDLE

    async def _persist(self, snapshot: dict) -> None:
        self.write_count += 1
        put = asyncio.ensure_future(self._durable.put(STORAGE_KEY, snapshot))
        self._write_mirror(snapshot)
        try:
            await put
        except Exception as e:
            log.error("Failed to save config: %s", e)
            self._notify_error("Failed to save config", e)

    def _write_mirror(self, snapshot: dict) -> None:
        try:
            text = json.dumps(strip_payloads(snapshot), ensure_ascii=False)
            self._mirror.set_item(STORAGE_KEY, text)
        except (OSError, TypeError, ValueError) as e:
            log.warning("Mirror tier not updated: %s", e)

    def _notify_error(self, action: str, exc: BaseException) -> None:
        message = f"{action}: {exc}"
        for listener in list(self._error_listeners):
            try:
                listener(message, exc)
            except Exception:
                log.exception("Error listener %r failed", listener)

    async def wait_for_save(self) -> None:
        """Wait for the running write, and any follow-up it chains, to finish."""
        task = self._save_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    # ── Whole document ─────────────────────────────────

    def get_config(self) -> dict:
        return copy.deepcopy(self._config)

    def export_json(self) -> str:
        return json.dumps(self._config, indent=2, ensure_ascii=False)

    def import_json(self, text: str) -> None:
        """Replace the document with ``text``. Malformed JSON raises."""
        parsed = json.loads(text)
        if not isinstance(parsed, dict):
            raise ValueError("Imported config must be a JSON object")
        self._config = self._merge(parsed)
        self._save()

    def reset(self) -> None:
        self._config = default_config()
        self._save()

    async def clear(self) -> None:
        """Reset to defaults and wipe both storage tiers."""
        await self.wait_for_save()
        self._config = default_config()
        await self._durable.delete(STORAGE_KEY)
        self._mirror.remove_item(STORAGE_KEY)

    async def close(self) -> None:
        await self.wait_for_save()
        await self._durable.close()

    # ── Books ──────────────────────────────────────────

    def _find_book(self, book_id: str) -> Optional[dict]:
        return next((b for b in self._config["books"] if b.get("id") == book_id), None)

    def _active_book(self) -> Optional[dict]:
        books = self._config["books"]
        if not books:
            return None
        return self._find_book(self._config["activeBookId"]) or books[0]

    def _unique_book_id(self, base: str) -> str:
        book_id, n = base, 1
        while self._find_book(book_id) is not None:
            n += 1
            book_id = f"{base}_{n}"
        return book_id

    def get_books(self) -> list[BookSummary]:
        summaries = []
        for b in self._config["books"]:
            cover = b.get("cover") or {}
            summaries.append(
                BookSummary(
                    id=b.get("id", ""),
                    title=cover.get("title") or "Untitled",
                    author=cover.get("author") or "",
                    chapters_count=len(b.get("chapters") or []),
                )
            )
        return summaries

    def get_active_book_id(self) -> str:
        return self._config["activeBookId"]

    def set_active_book(self, book_id: str) -> None:
        if self._find_book(book_id) is None:
            return
        self._config["activeBookId"] = book_id
        self._save()

    def add_book(self, book: Optional[dict] = None) -> str:
        """Append a book with a full set of per-book defaults; returns its id."""
        data = copy.deepcopy(book) if book else {}
        book_id = self._unique_book_id(
            data.get("id") or f"book_{int(time.time() * 1000)}"
        )
        cover = data.get("cover")
        new_book = {
            **data,
            "id": book_id,
            "cover": {**EMPTY_COVER, **(cover if isinstance(cover, dict) else {})},
            "chapters": data.get("chapters") or [],
        }
        self._config["books"].append(ensure_book_settings(new_book))
        self._save()
        return book_id

    def remove_book(self, book_id: str) -> None:
        book = self._find_book(book_id)
        if book is None:
            return
        books = self._config["books"]
        books.remove(book)
        if self._config["activeBookId"] == book_id:
            self._config["activeBookId"] = books[0].get("id", "") if books else ""
        self._save()

    def update_book_meta(self, book_id: str, meta: dict) -> None:
        book = self._find_book(book_id)
        if book is None:
            return
        for key in ("title", "author"):
            if key in meta:
                book["cover"][key] = meta[key]
        self._save()

    # ── Cover (active book) ────────────────────────────

    def get_cover(self) -> dict:
        book = self._active_book()
        return copy.deepcopy(book["cover"] if book else DEFAULT_COVER)

    def update_cover(self, cover: dict) -> None:
        book = self._active_book()
        if book is None:
            return
        book["cover"] = {**book["cover"], **copy.deepcopy(cover)}
        self._save()

    # ── Ordered lists ──────────────────────────────────

    @staticmethod
    def _in_range(items: list, index: int) -> bool:
        return isinstance(index, int) and 0 <= index < len(items)

    def _list_add(self, items: Optional[list], entry: dict) -> None:
        if items is None:
            return
        items.append(copy.deepcopy(entry))
        self._save()

    def _list_update(
        self, items: Optional[list], index: int, data: dict, merge: bool = True
    ) -> None:
        if items is None or not self._in_range(items, index):
            return
        data = copy.deepcopy(data)
        items[index] = {**items[index], **data} if merge else data
        self._save()

    def _list_remove(self, items: Optional[list], index: int) -> None:
        if items is None or not self._in_range(items, index):
            return
        del items[index]
        self._save()

    def _list_move(self, items: Optional[list], from_index: int, to_index: int) -> None:
        if items is None:
            return
        if not (self._in_range(items, from_index) and self._in_range(items, to_index)):
            return
        items.insert(to_index, items.pop(from_index))
        self._save()

    def _active_list(self, key: str) -> Optional[list]:
        book = self._active_book()
        return book[key] if book else None

    # ── Chapters (active book) ─────────────────────────

    def get_chapters(self) -> list[dict]:
        book = self._active_book()
        return copy.deepcopy(book["chapters"] if book else DEFAULT_CHAPTERS)

    def add_chapter(self, chapter: dict) -> None:
        self._list_add(self._active_list("chapters"), chapter)

    def update_chapter(self, index: int, chapter: dict) -> None:
        self._list_update(self._active_list("chapters"), index, chapter, merge=False)

    def remove_chapter(self, index: int) -> None:
        self._list_remove(self._active_list("chapters"), index)

    def move_chapter(self, from_index: int, to_index: int) -> None:
        self._list_move(self._active_list("chapters"), from_index, to_index)

    # ── Ambients (active book) ─────────────────────────

    def get_ambients(self) -> list[dict]:
        book = self._active_book()
        return copy.deepcopy(book["ambients"] if book else DEFAULT_AMBIENTS)

    def add_ambient(self, ambient: dict) -> None:
        self._list_add(self._active_list("ambients"), ambient)

    def update_ambient(self, index: int, data: dict) -> None:
        self._list_update(self._active_list("ambients"), index, data)

    def remove_ambient(self, index: int) -> None:
        self._list_remove(self._active_list("ambients"), index)

    def move_ambient(self, from_index: int, to_index: int) -> None:
        self._list_move(self._active_list("ambients"), from_index, to_index)

    # ── Sounds, reading defaults, decorative font ──────

    def get_sounds(self) -> dict:
        book = self._active_book()
        return copy.deepcopy(book["sounds"] if book else DEFAULT_SOUNDS)

    def update_sounds(self, sounds: dict) -> None:
        book = self._active_book()
        if book is None:
            return
        book["sounds"] = {**book["sounds"], **copy.deepcopy(sounds)}
        self._save()

    def get_default_settings(self) -> dict:
        book = self._active_book()
        return copy.deepcopy(book["defaultSettings"] if book else DEFAULT_SETTINGS)

    def update_default_settings(self, settings: dict) -> None:
        book = self._active_book()
        if book is None:
            return
        book["defaultSettings"] = {**book["defaultSettings"], **copy.deepcopy(settings)}
        self._save()

    def get_decorative_font(self) -> Optional[dict]:
        book = self._active_book()
        return copy.deepcopy(book["decorativeFont"]) if book else None

    def set_decorative_font(self, font: Optional[dict]) -> None:
        book = self._active_book()
        if book is None:
            return
        book["decorativeFont"] = copy.deepcopy(font) if font else None
        self._save()

    # ── Appearance ─────────────────────────────────────

    def get_appearance(self) -> dict:
        """Both themes of the active book plus the global font-size range."""
        book = self._active_book()
        themes = book["appearance"] if book else THEME_DEFAULTS
        return {
            "fontMin": self._config["fontMin"],
            "fontMax": self._config["fontMax"],
            "light": copy.deepcopy(themes["light"]),
            "dark": copy.deepcopy(themes["dark"]),
        }

    def update_appearance_global(self, data: dict) -> None:
        changed = [key for key in ("fontMin", "fontMax") if key in data]
        if not changed:
            return
        for key in changed:
            self._config[key] = data[key]
        self._save()

    def update_appearance_theme(self, theme: str, data: dict) -> None:
        if theme not in THEME_DEFAULTS:
            return
        book = self._active_book()
        if book is None:
            return
        appearance = book["appearance"]
        appearance[theme] = {**appearance[theme], **copy.deepcopy(data)}
        self._save()

    # ── Reading fonts (global) ─────────────────────────

    def get_reading_fonts(self) -> list[dict]:
        return copy.deepcopy(self._config["readingFonts"])

    def add_reading_font(self, font: dict) -> None:
        self._list_add(self._config["readingFonts"], font)

    def update_reading_font(self, index: int, data: dict) -> None:
        self._list_update(self._config["readingFonts"], index, data)

    def remove_reading_font(self, index: int) -> None:
        self._list_remove(self._config["readingFonts"], index)

    def move_reading_font(self, from_index: int, to_index: int) -> None:
        self._list_move(self._config["readingFonts"], from_index, to_index)

    # ── Reader settings visibility (global) ────────────

    def get_settings_visibility(self) -> dict:
        return dict(self._config["settingsVisibility"])

    def update_settings_visibility(self, data: dict) -> None:
        self._config["settingsVisibility"] = {
            **self._config["settingsVisibility"],
            **data,
        }
        self._save()


async def open_store(config: AppConfig) -> ConfigDocumentStore:
    """Open both storage tiers under the configured data directory and load."""
    durable = KeyValueStore(
        config.db_path, version=config.db_version, idle_timeout=config.idle_timeout
    )
    mirror = MirrorStore(config.mirror_dir, quota_bytes=config.mirror_quota_bytes)
    return await ConfigDocumentStore.create(durable, mirror)
