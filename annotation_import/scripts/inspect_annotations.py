"""Dumps what the Apple Books stores hold for one book, to debug split or missing highlights."""
import sqlite3
import sys
from contextlib import closing
from typing import Optional

from annotation_import.core.reconcile import reconcile_annotations
from annotation_import.integrations.apple_books import (
    ANNOTATION_TABLE,
    LIBRARY_TABLE,
    AppleBooksStore,
)
from annotation_import.utils.paths import DatabaseNotFoundError


def _print_tables(label: str, db_path) -> None:
    with closing(sqlite3.connect(db_path)) as conn:
        tables = [t[0] for t in conn.execute("SELECT name FROM sqlite_master WHERE type='table';")]
    print(f"\n{'=' * 50}")
    print(f"{label}: {db_path}")
    print(f"{'=' * 50}")
    print(f"Tables found: {len(tables)}")
    for table in (ANNOTATION_TABLE, LIBRARY_TABLE):
        if table in tables:
            print(f"✅ Table '{table}' found!")


def inspect_book(search_term: str, store: Optional[AppleBooksStore] = None) -> int:
    store = store or AppleBooksStore()
    try:
        _print_tables("Library", store.library_db_path())
        _print_tables("Annotations", store.annotation_db_path())
    except DatabaseNotFoundError as e:
        print(f"❌ {e}")
        return 1

    needle = search_term.lower()
    matches = [b for b in store.get_book_details()
               if needle in b.asset_id.lower() or needle in (b.title or "").lower()]
    if not matches:
        print(f"No matching books found for '{search_term}'.")
        return 1

    for book in matches:
        raw = store.get_annotations_for_book(book.asset_id)
        print(f"\nBook: {book.display_title} ({book.asset_id})")
        print(f"Raw annotations count: {len(raw)}")
        for i, annotation in enumerate(raw):
            print(f"\n[{i}]")
            print(f"  Text: \"{annotation.selected_text}\"")
            print(f"  Text length: {len(annotation.selected_text)}")
            print(f"  Location: {annotation.location}")
            print(f"  Physical: {annotation.physical_location}")
            if annotation.note:
                print(f"  Note: {annotation.note}")
        reconciled = reconcile_annotations(raw)
        print(f"\nAfter reconciliation: {len(reconciled)} annotations")
        print("-" * 40)
    return 0


if __name__ == "__main__":
    term = sys.argv[1] if len(sys.argv) > 1 else ""
    sys.exit(inspect_book(term))
