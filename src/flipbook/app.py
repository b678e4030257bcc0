"""Flipbook Admin - terminal editor for the reader's book configuration."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable, Optional

from textual.app import App

from flipbook.config import AppConfig, load_config
from flipbook.library.store import ConfigDocumentStore, open_store
from flipbook.ui.screens.bookshelf_screen import BookshelfScreen
from flipbook.ui.themes import APP_CSS

log = logging.getLogger(__name__)


class FlipbookAdminApp(App):
    """Edit books, chapters and reader defaults kept by the config store."""

    TITLE = "Flipbook Admin"
    CSS = APP_CSS

    def __init__(
        self,
        config: AppConfig | None = None,
        import_file: str | None = None,
        store: ConfigDocumentStore | None = None,
    ) -> None:
        super().__init__()
        self.config = config or load_config()
        self.store: ConfigDocumentStore = store  # type: ignore[assignment]
        self._import_file = import_file
        self._unsubscribe: Optional[Callable[[], None]] = None

    async def on_mount(self) -> None:
        if self.store is None:
            self.store = await open_store(self.config)
        self._unsubscribe = self.store.subscribe_errors(self._on_save_error)
        if self._import_file:
            self._import_config(self._import_file)
        self.push_screen(BookshelfScreen())

    def _on_save_error(self, message: str, exc: BaseException) -> None:
        self.notify(message, severity="error")

    def _import_config(self, file_path_str: str) -> None:
        file_path = Path(file_path_str).expanduser().resolve()
        if not file_path.exists():
            self.notify(f"File not found: {file_path}", severity="error")
            return

        try:
            self.store.import_json(file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            log.warning("Import of %s failed: %s", file_path, e)
            self.notify(f"Error importing: {e}", severity="error")
            return
        self.notify(f"Imported {file_path.name}")

    async def action_quit(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        if self.store is not None:
            await self.store.close()
        self.exit()


def _setup_logging(config: AppConfig) -> None:
    handler = logging.FileHandler(config.log_path, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root = logging.getLogger("flipbook")
    root.setLevel(config.log_level)
    root.addHandler(handler)


def main() -> None:
    config = load_config()
    _setup_logging(config)

    import_file: str | None = None
    if len(sys.argv) > 1:
        import_file = sys.argv[1]

    app = FlipbookAdminApp(config=config, import_file=import_file)
    app.run()


if __name__ == "__main__":
    main()
