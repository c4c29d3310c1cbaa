import logging
import sqlite3
import sys
from contextlib import closing
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from annotation_import.core.models import Annotation, BookMetadata
from annotation_import.utils.paths import (
    DatabaseNotFoundError,
    get_annotation_db_path,
    get_books_container_dir,
    get_library_db_path,
)

logger = logging.getLogger(__name__)

# Core Data stores timestamps as seconds since 2001-01-01 UTC
APPLE_EPOCH = datetime(2001, 1, 1, tzinfo=timezone.utc)

ANNOTATION_TABLE = "ZAEANNOTATION"
LIBRARY_TABLE = "ZBKLIBRARYASSET"

# Optional library columns -> BookMetadata field. Not every Books version has all of them.
LIBRARY_OPTIONAL_COLUMNS = {
    "ZTITLE": "title",
    "ZSORTTITLE": "sort_title",
    "ZAUTHOR": "author",
    "ZSORTAUTHOR": "sort_author",
    "ZBOOKDESCRIPTION": "description",
    "ZEPUBID": "epub_id",
    "ZPATH": "path",
    "ZGENRE": "genre",
    "ZGENRES": "genres",
    "ZYEAR": "year",
    "ZPAGECOUNT": "page_count",
    "ZRATING": "rating",
    "ZCOMMENTS": "comments",
    "ZREADINGPROGRESS": "reading_progress",
    "ZCREATIONDATE": "created_at",
    "ZLASTOPENDATE": "last_opened_at",
    "ZMODIFICATIONDATE": "modified_at",
}

NOT_DELETED_FILTER = " AND (ZANNOTATIONDELETED IS NULL OR ZANNOTATIONDELETED = 0)"

ANNOTATION_OPTIONAL_COLUMNS = {
    "ZANNOTATIONTYPE": "annotation_type",
    "ZANNOTATIONSTYLE": "style",
    "ZANNOTATIONISUNDERLINE": "is_underline",
    "ZANNOTATIONCREATIONDATE": "created_at",
    "ZANNOTATIONMODIFICATIONDATE": "modified_at",
    "ZANNOTATIONUUID": "uuid",
    "ZANNOTATIONREPRESENTATIVETEXT": "representative_text",
}


class LibraryFetchError(RuntimeError):
    """The library store could not be read."""


class AnnotationFetchError(RuntimeError):
    """Annotations for a book could not be read. Fatal for that book only."""


def from_core_data_timestamp(value) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return APPLE_EPOCH + timedelta(seconds=float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def _connect_readonly(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(f"{db_path.resolve().as_uri()}?mode=ro", uri=True)
    conn.row_factory = sqlite3.Row
    return conn


def _table_columns(conn: sqlite3.Connection, table: str) -> Set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}


def _text(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value)
    return value or None


def _decode_genres(value) -> Optional[str]:
    # ZGENRES is a BLOB in recent versions
    if isinstance(value, bytes):
        try:
            value = value.decode('utf-8')
        except UnicodeDecodeError:
            return None
    return _text(value)


class AppleBooksStore:
    """
    Read-only access to the Apple Books library (BKLibrary) and
    annotation (AEAnnotation) SQLite stores.
    """

    def __init__(self, container_dir: Optional[Path] = None):
        self.container_dir = Path(container_dir) if container_dir else None

    @property
    def base_dir(self) -> Path:
        return self.container_dir or get_books_container_dir()

    def annotation_db_path(self) -> Path:
        return get_annotation_db_path(self.base_dir)

    def library_db_path(self) -> Path:
        return get_library_db_path(self.base_dir)

    def check_database_access(self) -> Tuple[bool, Optional[str]]:
        """Returns (can_access, error message)."""
        if self.container_dir is None and sys.platform != "darwin":
            return False, "Apple Books Importer only works on macOS"
        try:
            self.annotation_db_path()
        except DatabaseNotFoundError:
            return False, "Apple Books annotation database not found"
        try:
            self.library_db_path()
        except DatabaseNotFoundError:
            return False, "Apple Books library database not found"
        return True, None

    # --- Library ---

    def get_book_details(self) -> List[BookMetadata]:
        """Returns one store-derived BookMetadata per library asset."""
        db_path = self.library_db_path()
        logger.info(f"Opening library database: {db_path}")
        try:
            with closing(_connect_readonly(db_path)) as conn:
                available = _table_columns(conn, LIBRARY_TABLE)
                if "ZASSETID" not in available:
                    raise LibraryFetchError(f"{LIBRARY_TABLE} has no ZASSETID column")
                columns = ["ZASSETID"] + [c for c in LIBRARY_OPTIONAL_COLUMNS if c in available]
                rows = conn.execute(f"SELECT {', '.join(columns)} FROM {LIBRARY_TABLE}").fetchall()
        except sqlite3.Error as e:
            raise LibraryFetchError(f"Failed to get book details: {e}") from e

        logger.info(f"Library rows found: {len(rows)}")
        books = []
        for row in rows:
            if row["ZASSETID"] is None:
                continue
            values = {LIBRARY_OPTIONAL_COLUMNS[c]: row[c] for c in row.keys() if c != "ZASSETID"}
            books.append(self._book_from_row(str(row["ZASSETID"]), values))
        return books

    @staticmethod
    def _book_from_row(asset_id: str, values: Dict) -> BookMetadata:
        page_count = values.get("page_count")
        rating = values.get("rating")
        progress = values.get("reading_progress")
        year = values.get("year")
        return BookMetadata(
            asset_id=asset_id,
            title=_text(values.get("title")) or _text(values.get("sort_title")) or "Unknown Title",
            author=_text(values.get("author")) or _text(values.get("sort_author")),
            description=_text(values.get("description")),
            epub_id=_text(values.get("epub_id")),
            path=_text(values.get("path")),
            genre=_text(values.get("genre")),
            genres=_decode_genres(values.get("genres")),
            year=str(year) if year else None,
            page_count=int(page_count) if page_count else None,
            rating=int(rating) if rating else None,
            comments=_text(values.get("comments")),
            reading_progress=float(progress) if progress is not None else None,
            created_at=from_core_data_timestamp(values.get("created_at")),
            last_opened_at=from_core_data_timestamp(values.get("last_opened_at")),
            modified_at=from_core_data_timestamp(values.get("modified_at")),
        )

    def get_books_with_highlights(self) -> List[str]:
        """Asset ids of library books that have at least one non-empty highlight."""
        try:
            with closing(_connect_readonly(self.library_db_path())) as conn:
                library_ids = {
                    str(row[0]) for row in conn.execute(f"SELECT ZASSETID FROM {LIBRARY_TABLE}")
                    if row[0] is not None
                }
        except sqlite3.Error as e:
            raise LibraryFetchError(f"Failed to get books with highlights: {e}") from e

        if not library_ids:
            logger.info("No book IDs found in library")
            return []

        query = f"""
            SELECT DISTINCT ZANNOTATIONASSETID
            FROM {ANNOTATION_TABLE}
            WHERE ZANNOTATIONASSETID IS NOT NULL
            AND ZANNOTATIONSELECTEDTEXT IS NOT NULL
            AND ZANNOTATIONSELECTEDTEXT != ''
        """
        try:
            with closing(_connect_readonly(self.annotation_db_path())) as conn:
                if "ZANNOTATIONDELETED" in _table_columns(conn, ANNOTATION_TABLE):
                    query += NOT_DELETED_FILTER
                rows = conn.execute(query).fetchall()
        except sqlite3.Error as e:
            raise LibraryFetchError(f"Failed to get books with highlights: {e}") from e

        seen = []
        for row in rows:
            asset_id = str(row[0])
            if asset_id in library_ids and asset_id not in seen:
                seen.append(asset_id)
        logger.info(f"Books with highlights: {len(seen)}")
        return seen

    # --- Annotations ---

    def get_annotations_for_book(self, asset_id: str) -> List[Annotation]:
        """
        Raw annotation rows for one book, in storage order.

        The order matters: split highlights are stored as position-less rows
        right before the row carrying the location.
        """
        try:
            with closing(_connect_readonly(self.annotation_db_path())) as conn:
                available = _table_columns(conn, ANNOTATION_TABLE)
                optional = [c for c in ANNOTATION_OPTIONAL_COLUMNS if c in available]
                columns = [
                    "ZANNOTATIONSELECTEDTEXT", "ZANNOTATIONNOTE",
                    "ZANNOTATIONLOCATION", "ZPLABSOLUTEPHYSICALLOCATION",
                ] + optional
                query = f"""
                    SELECT {', '.join(columns)}
                    FROM {ANNOTATION_TABLE}
                    WHERE ZANNOTATIONASSETID = ?
                    AND ZANNOTATIONSELECTEDTEXT IS NOT NULL
                    AND ZANNOTATIONSELECTEDTEXT != ''
                """
                if "ZANNOTATIONDELETED" in available:
                    query += NOT_DELETED_FILTER
                query += " ORDER BY ROWID"
                rows = conn.execute(query, (asset_id,)).fetchall()
        except (sqlite3.Error, DatabaseNotFoundError) as e:
            raise AnnotationFetchError(f"Failed to get annotations for book {asset_id}: {e}") from e

        return [self._annotation_from_row(row) for row in rows]

    @staticmethod
    def _annotation_from_row(row: sqlite3.Row) -> Annotation:
        keys = row.keys()

        def optional(column):
            return row[column] if column in keys else None

        physical = row["ZPLABSOLUTEPHYSICALLOCATION"]
        return Annotation(
            selected_text=row["ZANNOTATIONSELECTEDTEXT"] or "",
            note=_text(row["ZANNOTATIONNOTE"]),
            location=_text(row["ZANNOTATIONLOCATION"]),
            physical_location=int(physical) if physical is not None else None,
            annotation_type=optional("ZANNOTATIONTYPE"),
            style=optional("ZANNOTATIONSTYLE"),
            is_underline=bool(optional("ZANNOTATIONISUNDERLINE")),
            created_at=from_core_data_timestamp(optional("ZANNOTATIONCREATIONDATE")),
            modified_at=from_core_data_timestamp(optional("ZANNOTATIONMODIFICATIONDATE")),
            uuid=_text(optional("ZANNOTATIONUUID")),
            representative_text=_text(optional("ZANNOTATIONREPRESENTATIVETEXT")),
        )
