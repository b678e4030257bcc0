"""Tests for schema migration and normalisation."""

from __future__ import annotations

import copy
import logging

from flipbook.library.defaults import (
    CURRENT_SCHEMA_VERSION,
    DARK_DEFAULTS,
    DEFAULT_AMBIENTS,
    DEFAULT_SETTINGS,
    DEFAULT_SOUNDS,
    LIGHT_DEFAULTS,
    default_config,
)
from flipbook.library.migration import (
    MIGRATIONS,
    detect_version,
    ensure_book_settings,
    migrate,
    normalize,
    split_appearance,
)
from flipbook.library.models import VersionedDocument


def _book(book_id: str = "b1", **extra) -> dict:
    return {"id": book_id, "cover": {"title": "T"}, "chapters": [], **extra}


class TestDetectVersion:
    def test_untagged_is_v1(self):
        assert detect_version({}) == 1

    def test_tagged(self):
        assert detect_version({"schemaVersion": 2}) == 2

    def test_legacy_tag_name(self):
        assert detect_version({"_schemaVersion": 2}) == 2

    def test_future_version_clamped(self):
        assert detect_version({"schemaVersion": 99}) == CURRENT_SCHEMA_VERSION

    def test_non_int_tag_ignored(self):
        assert detect_version({"schemaVersion": "3"}) == 1
        assert detect_version({"schemaVersion": True}) == 1
        assert detect_version({"schemaVersion": None}) == 1


class TestSplitAppearance:
    def test_none_gives_defaults(self):
        result = split_appearance(None)
        assert result == {"light": LIGHT_DEFAULTS, "dark": DARK_DEFAULTS}

    def test_flat_becomes_light(self):
        result = split_appearance(
            {"coverBgStart": "#abc", "fontMin": 10, "fontMax": 30}
        )
        assert result["light"]["coverBgStart"] == "#abc"
        assert "fontMin" not in result["light"]
        assert "fontMax" not in result["light"]
        assert result["dark"] == DARK_DEFAULTS

    def test_split_themes_filled_independently(self):
        result = split_appearance({"light": {"coverBgStart": "#ff0000"}})
        assert result["light"]["coverBgStart"] == "#ff0000"
        assert result["light"]["bgPage"] == LIGHT_DEFAULTS["bgPage"]
        assert result["dark"]["coverBgStart"] == "#111111"

    def test_does_not_share_defaults(self):
        result = split_appearance(None)
        result["light"]["bgPage"] = "#000"
        assert LIGHT_DEFAULTS["bgPage"] == "#fdfcf8"


class TestEnsureBookSettings:
    def test_adds_all_missing_settings(self):
        book = ensure_book_settings(_book())
        assert book["defaultSettings"] == DEFAULT_SETTINGS
        assert book["appearance"]["light"] == LIGHT_DEFAULTS
        assert book["appearance"]["dark"] == DARK_DEFAULTS
        assert book["sounds"] == DEFAULT_SOUNDS
        assert book["ambients"] == DEFAULT_AMBIENTS
        assert book["decorativeFont"] is None

    def test_partial_settings_completed(self):
        book = ensure_book_settings(_book(defaultSettings={"font": "inter"}))
        assert book["defaultSettings"]["font"] == "inter"
        assert book["defaultSettings"]["fontSize"] == 18

    def test_keeps_existing_decorative_font(self):
        book = ensure_book_settings(_book(decorativeFont={"name": "Existing"}))
        assert book["decorativeFont"] == {"name": "Existing"}

    def test_cover_completed(self):
        book = ensure_book_settings(_book())
        assert book["cover"]["title"] == "T"
        assert book["cover"]["bgMode"] == "default"

    def test_malformed_chapters_replaced(self, caplog):
        book = ensure_book_settings(_book(chapters="bad"))
        assert book["chapters"] == []
        assert "malformed chapters" in caplog.text


class TestV1ToV2:
    def test_flat_cover_and_chapters_become_book(self):
        raw = {
            "cover": {"title": "Old Title"},
            "chapters": [{"id": "c1", "file": "c1.html"}],
        }
        doc = MIGRATIONS[1](VersionedDocument(1, raw))
        assert doc.version == 2
        assert len(doc.data["books"]) == 1
        book = doc.data["books"][0]
        assert book["id"] == "default"
        assert book["cover"]["title"] == "Old Title"
        assert book["cover"]["author"] == "J.R.R. Tolkien"
        assert book["chapters"] == [{"id": "c1", "file": "c1.html"}]
        assert "cover" not in doc.data

    def test_cover_only_gets_default_chapters(self):
        doc = MIGRATIONS[1](VersionedDocument(1, {"cover": {"title": "X"}}))
        assert len(doc.data["books"][0]["chapters"]) == 3

    def test_nothing_gives_default_book(self):
        doc = MIGRATIONS[1](VersionedDocument(1, {}))
        assert doc.data["books"][0]["id"] == "default"
        assert "sounds" not in doc.data["books"][0]

    def test_existing_books_untouched(self):
        raw = {"books": [_book("mine")]}
        doc = MIGRATIONS[1](VersionedDocument(1, raw))
        assert doc.data["books"] == [_book("mine")]

    def test_input_not_mutated(self):
        raw = {"cover": {"title": "Old"}, "chapters": []}
        before = copy.deepcopy(raw)
        MIGRATIONS[1](VersionedDocument(1, raw))
        assert raw == before


class TestV2ToV3:
    def test_global_settings_moved_into_books(self):
        raw = {
            "books": [_book("a"), _book("b")],
            "sounds": {"pageFlip": "custom.mp3"},
            "defaultSettings": {"font": "inter", "fontSize": 20},
            "ambients": [{"id": "custom", "label": "Custom"}],
            "decorativeFont": {"name": "MyFont", "dataUrl": "data:abc"},
        }
        doc = MIGRATIONS[2](VersionedDocument(2, raw))
        assert doc.version == 3
        for book in doc.data["books"]:
            assert book["sounds"] == {"pageFlip": "custom.mp3"}
            assert book["defaultSettings"]["font"] == "inter"
            assert book["ambients"] == [{"id": "custom", "label": "Custom"}]
            assert book["decorativeFont"]["name"] == "MyFont"
        assert "sounds" not in doc.data
        assert "defaultSettings" not in doc.data

    def test_font_range_lifted_from_appearance(self):
        raw = {"books": [_book()], "appearance": {"fontMin": 10, "fontMax": 30}}
        doc = MIGRATIONS[2](VersionedDocument(2, raw))
        assert doc.data["fontMin"] == 10
        assert doc.data["fontMax"] == 30
        assert "fontMin" not in doc.data["books"][0]["appearance"]["light"]

    def test_root_font_range_wins(self):
        raw = {
            "books": [_book()],
            "fontMin": 12,
            "appearance": {"fontMin": 10, "fontMax": 30},
        }
        doc = MIGRATIONS[2](VersionedDocument(2, raw))
        assert doc.data["fontMin"] == 12
        assert doc.data["fontMax"] == 30

    def test_book_setting_wins_over_legacy(self):
        raw = {
            "books": [_book(sounds={"pageFlip": "book.mp3"})],
            "sounds": {"pageFlip": "legacy.mp3", "bookOpen": "legacy-open.mp3"},
        }
        doc = MIGRATIONS[2](VersionedDocument(2, raw))
        # Present at all means no merge with the legacy value.
        assert doc.data["books"][0]["sounds"] == {"pageFlip": "book.mp3"}

    def test_explicit_null_decorative_font_kept(self):
        raw = {
            "books": [_book(decorativeFont=None)],
            "decorativeFont": {"name": "Legacy"},
        }
        doc = MIGRATIONS[2](VersionedDocument(2, raw))
        assert doc.data["books"][0]["decorativeFont"] is None

    def test_legacy_flat_appearance_split(self):
        raw = {"books": [_book()], "appearance": {"coverBgStart": "#abc", "fontMin": 9}}
        doc = MIGRATIONS[2](VersionedDocument(2, raw))
        appearance = doc.data["books"][0]["appearance"]
        assert appearance["light"]["coverBgStart"] == "#abc"
        assert appearance["dark"] == DARK_DEFAULTS


class TestMigrate:
    def test_full_legacy_document(self):
        raw = {
            "cover": {"title": "Legacy"},
            "chapters": [{"id": "c1"}],
            "sounds": {"pageFlip": "flip.mp3"},
            "appearance": {"coverBgStart": "#123456", "fontMin": 11, "fontMax": 25},
            "readingFonts": [{"id": "georgia"}],
        }
        result = migrate(raw)
        assert result["schemaVersion"] == CURRENT_SCHEMA_VERSION
        assert result["activeBookId"] == "default"
        assert result["fontMin"] == 11
        assert result["fontMax"] == 25
        book = result["books"][0]
        assert book["cover"]["title"] == "Legacy"
        assert book["sounds"]["pageFlip"] == "flip.mp3"
        assert book["sounds"]["bookOpen"] == DEFAULT_SOUNDS["bookOpen"]
        assert book["appearance"]["light"]["coverBgStart"] == "#123456"
        assert book["appearance"]["dark"] == DARK_DEFAULTS
        assert result["readingFonts"] == [{"id": "georgia"}]
        assert "appearance" not in result
        assert "cover" not in result

    def test_current_document_unchanged(self):
        config = default_config()
        assert migrate(config) == config

    def test_current_document_fields_confirmed(self):
        config = default_config()
        del config["books"][0]["sounds"]
        del config["settingsVisibility"]["ambient"]
        result = migrate(config)
        assert result["books"][0]["sounds"] == DEFAULT_SOUNDS
        assert result["settingsVisibility"]["ambient"] is True

    def test_migration_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="flipbook.library.migration"):
            migrate({})
        assert "v1 -> v3" in caplog.text

    def test_current_version_not_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="flipbook.library.migration"):
            migrate(default_config())
        assert "Migrated" not in caplog.text

    def test_legacy_schema_tag_replaced(self):
        result = migrate({"_schemaVersion": 1})
        assert result["schemaVersion"] == CURRENT_SCHEMA_VERSION
        assert "_schemaVersion" not in result

    def test_stale_active_book_id(self):
        result = migrate(
            {"schemaVersion": 3, "books": [_book("x"), _book("y")], "activeBookId": "gone"}
        )
        assert result["activeBookId"] == "x"

    def test_missing_active_book_id(self):
        result = migrate({"schemaVersion": 3, "books": [_book("x")]})
        assert result["activeBookId"] == "x"

    def test_tagged_empty_books_kept(self):
        result = migrate({"schemaVersion": 3, "books": [], "activeBookId": "x"})
        assert result["books"] == []
        assert result["activeBookId"] == ""

    def test_untagged_empty_books_get_default(self):
        result = migrate({"books": []})
        assert [b["id"] for b in result["books"]] == ["default"]

    def test_non_finite_font_range_repaired(self):
        result = migrate({"schemaVersion": 3, "fontMin": float("nan"), "fontMax": "x"})
        assert result["fontMin"] == 14
        assert result["fontMax"] == 22

    def test_malformed_book_entries_dropped(self, caplog):
        result = migrate({"schemaVersion": 3, "books": ["junk", _book("ok")]})
        assert [b["id"] for b in result["books"]] == ["ok"]
        assert "malformed book" in caplog.text

    def test_unknown_root_keys_kept(self):
        result = migrate({"schemaVersion": 3, "books": [_book()], "extra": {"k": 1}})
        assert result["extra"] == {"k": 1}

    def test_input_not_mutated(self):
        raw = {"cover": {"title": "Old"}, "sounds": {"pageFlip": "x.mp3"}}
        before = copy.deepcopy(raw)
        migrate(raw)
        assert raw == before

    def test_normalize_idempotent(self):
        once = normalize(migrate({"cover": {"title": "A"}}))
        assert normalize(once) == once
