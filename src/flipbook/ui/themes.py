"""Textual CSS themes for flipbook admin."""

APP_CSS = """
/* ── Global ────────────────────────────────── */
Screen {
    background: $surface;
}

/* ── Bookshelf Screen ──────────────────────── */
#shelf-header {
    dock: top;
    height: 3;
    padding: 1 2;
    background: $primary;
    color: $text;
    text-style: bold;
}

#book-table {
    height: 1fr;
}

#book-details {
    dock: bottom;
    height: 3;
    padding: 0 2;
    background: $surface-darken-1;
    color: $text;
}
"""
