from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Iterable, Optional

import pytest

from annotation_import.config import ImporterSettings


def create_library_db(container: Path, books: Iterable[dict]) -> Path:
    db_path = container / "BKLibrary" / "BKLibrary-1-091020131601.sqlite"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with closing(sqlite3.connect(db_path)) as conn:
        conn.execute(
            """
            CREATE TABLE ZBKLIBRARYASSET (
                Z_PK INTEGER PRIMARY KEY,
                ZASSETID VARCHAR,
                ZTITLE VARCHAR,
                ZSORTTITLE VARCHAR,
                ZAUTHOR VARCHAR,
                ZSORTAUTHOR VARCHAR,
                ZBOOKDESCRIPTION VARCHAR,
                ZEPUBID VARCHAR,
                ZPATH VARCHAR,
                ZGENRE VARCHAR,
                ZRATING INTEGER,
                ZREADINGPROGRESS FLOAT,
                ZLASTOPENDATE TIMESTAMP
            )
            """
        )
        for book in books:
            conn.execute(
                """
                INSERT INTO ZBKLIBRARYASSET
                    (ZASSETID, ZTITLE, ZSORTTITLE, ZAUTHOR, ZSORTAUTHOR, ZBOOKDESCRIPTION,
                     ZEPUBID, ZPATH, ZGENRE, ZRATING, ZREADINGPROGRESS, ZLASTOPENDATE)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    book["asset_id"],
                    book.get("title"),
                    book.get("sort_title"),
                    book.get("author"),
                    book.get("sort_author"),
                    book.get("description"),
                    book.get("epub_id"),
                    book.get("path"),
                    book.get("genre"),
                    book.get("rating"),
                    book.get("reading_progress"),
                    book.get("last_opened"),
                ),
            )
        conn.commit()
    return db_path


def create_annotation_db(container: Path, rows: Iterable[dict]) -> Path:
    db_path = container / "AEAnnotation" / "AEAnnotation_v10312011_1727_local.sqlite"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with closing(sqlite3.connect(db_path)) as conn:
        conn.execute(
            """
            CREATE TABLE ZAEANNOTATION (
                Z_PK INTEGER PRIMARY KEY,
                ZANNOTATIONASSETID VARCHAR,
                ZANNOTATIONSELECTEDTEXT VARCHAR,
                ZANNOTATIONNOTE VARCHAR,
                ZANNOTATIONLOCATION VARCHAR,
                ZPLABSOLUTEPHYSICALLOCATION INTEGER,
                ZANNOTATIONSTYLE INTEGER,
                ZANNOTATIONISUNDERLINE INTEGER,
                ZANNOTATIONCREATIONDATE TIMESTAMP,
                ZANNOTATIONDELETED INTEGER
            )
            """
        )
        for row in rows:
            conn.execute(
                """
                INSERT INTO ZAEANNOTATION
                    (ZANNOTATIONASSETID, ZANNOTATIONSELECTEDTEXT, ZANNOTATIONNOTE, ZANNOTATIONLOCATION,
                     ZPLABSOLUTEPHYSICALLOCATION, ZANNOTATIONSTYLE, ZANNOTATIONISUNDERLINE,
                     ZANNOTATIONCREATIONDATE, ZANNOTATIONDELETED)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    row["asset_id"],
                    row.get("text"),
                    row.get("note"),
                    row.get("location"),
                    row.get("physical"),
                    row.get("style"),
                    row.get("underline", 0),
                    row.get("created"),
                    row.get("deleted", 0),
                ),
            )
        conn.commit()
    return db_path


def create_unpacked_epub(
    root: Path,
    *,
    title: Optional[str] = "Test Book",
    creator: Optional[str] = "Test Author",
    extra_metadata: str = "",
    manifest: str = "",
    opf_rel: str = "OEBPS/content.opf",
) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "META-INF").mkdir(exist_ok=True)
    (root / "META-INF" / "container.xml").write_text(
        '<?xml version="1.0"?>\n'
        '<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">'
        f'<rootfiles><rootfile full-path="{opf_rel}" media-type="application/oebps-package+xml"/></rootfiles>'
        "</container>",
        encoding="utf-8",
    )
    opf_path = root / opf_rel
    opf_path.parent.mkdir(parents=True, exist_ok=True)
    title_tag = f"<dc:title>{title}</dc:title>" if title else ""
    creator_tag = f"<dc:creator>{creator}</dc:creator>" if creator else ""
    opf_path.write_text(
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<package xmlns="http://www.idpf.org/2007/opf" version="2.0">'
        '<metadata xmlns:dc="http://purl.org/dc/elements/1.1/" xmlns:opf="http://www.idpf.org/2007/opf">'
        f"{title_tag}{creator_tag}{extra_metadata}"
        "</metadata>"
        f"<manifest>{manifest}</manifest>"
        "</package>",
        encoding="utf-8",
    )
    return root


@pytest.fixture
def settings() -> ImporterSettings:
    return ImporterSettings(
        output_folder="Books",
        include_covers=False,
        include_extended_frontmatter=False,
        include_extended_in_note=False,
        add_tags=False,
        create_author_pages=False,
        include_annotation_styles=False,
    )


@pytest.fixture
def container(tmp_path: Path) -> Path:
    path = tmp_path / "Documents"
    path.mkdir()
    return path
