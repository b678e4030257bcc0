from __future__ import annotations

from typing import TYPE_CHECKING

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen, Screen
from textual.widgets import (
    Button,
    DataTable,
    Footer,
    Header,
    Input,
    Label,
    Static,
)

if TYPE_CHECKING:
    from flipbook.app import FlipbookAdminApp

ACTIVE_MARK = "●"


class AddBookScreen(ModalScreen[str | None]):
    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    DEFAULT_CSS = """
    AddBookScreen {
        align: center middle;
    }
    #add-book-dialog {
        width: 60;
        height: 11;
        background: $surface;
        border: solid $primary;
        padding: 1 2;
    }
    #add-book-title {
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }
    #add-book-buttons {
        align: center middle;
        height: 3;
    }
    #add-book-buttons Button {
        margin: 0 2;
    }
    """

    def compose(self) -> ComposeResult:
        with Vertical(id="add-book-dialog"):
            yield Label("New book title", id="add-book-title")
            yield Input(placeholder="Title", id="add-book-input")
            with Horizontal(id="add-book-buttons"):
                yield Button("Add", variant="primary", id="ab-add")
                yield Button("Cancel [Esc]", variant="default", id="ab-cancel")

    def on_mount(self) -> None:
        self.query_one("#add-book-input", Input).focus()

    @on(Input.Submitted, "#add-book-input")
    def on_title_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value.strip() or None)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "ab-add":
            value = self.query_one("#add-book-input", Input).value
            self.dismiss(value.strip() or None)
        else:
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)


class ConfirmScreen(ModalScreen[bool]):
    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("y", "confirm", "Yes"),
        Binding("n", "cancel", "No"),
    ]

    DEFAULT_CSS = """
    ConfirmScreen {
        align: center middle;
    }
    #confirm-dialog {
        width: 60;
        height: 9;
        background: $surface;
        border: solid $error;
        padding: 1 2;
    }
    #confirm-msg {
        text-align: center;
        margin: 1 0;
    }
    #confirm-buttons {
        align: center middle;
        height: 3;
    }
    #confirm-buttons Button {
        margin: 0 2;
    }
    """

    def __init__(self, message: str, action_label: str = "Delete") -> None:
        super().__init__()
        self._message = message
        self._action_label = action_label

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-dialog"):
            yield Label(self._message, id="confirm-msg")
            with Horizontal(id="confirm-buttons"):
                yield Button(f"{self._action_label} (y)", variant="error", id="cf-yes")
                yield Button("Cancel (n)", variant="default", id="cf-no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "cf-yes")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class BookshelfScreen(Screen):
    BINDINGS = [
        Binding("A", "add_book", "Add", priority=True),
        Binding("D", "delete_book", "Delete", priority=True),
        Binding("e", "export", "Export"),
        Binding("R", "reset", "Reset"),
        Binding("q", "quit_app", "Quit"),
    ]

    @property
    def fb(self) -> FlipbookAdminApp:
        return self.app  # type: ignore[return-value]

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static("", id="shelf-header")
        yield DataTable(id="book-table")
        yield Static("", id="book-details")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#book-table", DataTable)
        table.cursor_type = "row"
        table.add_columns("", "Title", "Author", "Chapters", "ID")
        self.refresh_books()
        table.focus()

    def on_screen_resume(self) -> None:
        self.refresh_books()

    def refresh_books(self) -> None:
        store = self.fb.store
        table = self.query_one("#book-table", DataTable)
        table.clear()

        active_id = store.get_active_book_id()
        books = store.get_books()
        for book in books:
            table.add_row(
                ACTIVE_MARK if book.id == active_id else "",
                book.title,
                book.author,
                str(book.chapters_count),
                book.id,
                key=book.id,
            )

        self.query_one("#shelf-header", Static).update(
            f" Flipbook Admin  ({len(books)} books)"
        )
        settings = store.get_default_settings()
        appearance = store.get_appearance()
        self.query_one("#book-details", Static).update(
            f"Font: {settings['font']} {settings['fontSize']}px  "
            f"Theme: {settings['theme']}  "
            f"Range: {appearance['fontMin']}-{appearance['fontMax']}px  "
            f"Chapters: {len(store.get_chapters())}"
        )

    def _selected_book_id(self) -> str | None:
        table = self.query_one("#book-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return str(row_key.value)

    # ── Add Book ────────────────────────────────

    def action_add_book(self) -> None:
        self.app.push_screen(AddBookScreen(), callback=self._on_title_entered)

    def _on_title_entered(self, title: str | None) -> None:
        if not title:
            return
        self.fb.store.add_book({"cover": {"title": title}})
        self.refresh_books()
        self.notify(f"Added: {title}")

    # ── Delete Book ─────────────────────────────

    def action_delete_book(self) -> None:
        book_id = self._selected_book_id()
        if book_id is None:
            return
        title = next(
            (b.title for b in self.fb.store.get_books() if b.id == book_id), book_id
        )
        self.app.push_screen(
            ConfirmScreen(f'Delete "{title}"?'),
            callback=lambda confirmed: self._on_delete_confirmed(confirmed, book_id),
        )

    def _on_delete_confirmed(self, confirmed: bool | None, book_id: str) -> None:
        if not confirmed:
            return
        self.fb.store.remove_book(book_id)
        self.refresh_books()
        self.notify(f"Removed: {book_id}")

    # ── Activate / Export / Reset / Quit ────────

    @on(DataTable.RowSelected, "#book-table")
    def on_row_selected(self, event: DataTable.RowSelected) -> None:
        self.fb.store.set_active_book(str(event.row_key.value))
        self.refresh_books()

    def action_export(self) -> None:
        path = self.fb.config.export_path
        try:
            path.write_text(self.fb.store.export_json(), encoding="utf-8")
        except OSError as e:
            self.notify(f"Export failed: {e}", severity="error")
            return
        self.notify(f"Exported to {path}")

    def action_reset(self) -> None:
        self.app.push_screen(
            ConfirmScreen("Reset every book and setting to defaults?", "Reset"),
            callback=self._on_reset_confirmed,
        )

    def _on_reset_confirmed(self, confirmed: bool | None) -> None:
        if confirmed:
            self.fb.store.reset()
            self.refresh_books()

    async def action_quit_app(self) -> None:
        await self.fb.action_quit()
