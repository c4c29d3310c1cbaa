from __future__ import annotations

from dataclasses import asdict, fields

from annotation_import.core.metadata import merge_metadata
from annotation_import.core.models import BookMetadata


def _base() -> BookMetadata:
    return BookMetadata(
        asset_id="ASSET-1",
        title="Store Title",
        author="Store Author",
        description="From the library",
        path="/books/one.epub",
        language="en",
        subjects=["store subject"],
    )


def test_enrichment_wins_field_by_field() -> None:
    enrichment = BookMetadata(
        asset_id="OTHER",
        title="Container Title",
        isbn="9780000000002",
        publisher="Pub House",
        subjects=["History", "Essays"],
        cover=b"\xff\xd8\xff",
    )

    merged = merge_metadata(_base(), enrichment)

    assert merged.asset_id == "ASSET-1"
    assert merged.title == "Container Title"
    assert merged.isbn == "9780000000002"
    assert merged.publisher == "Pub House"
    assert merged.subjects == ["History", "Essays"]
    assert merged.cover == b"\xff\xd8\xff"
    # absent in the enrichment -> kept from base
    assert merged.author == "Store Author"
    assert merged.description == "From the library"
    assert merged.path == "/books/one.epub"
    assert merged.language == "en"


def test_empty_values_do_not_override() -> None:
    enrichment = BookMetadata(asset_id="ASSET-1", title="", author=None, subjects=[], cover=b"")

    merged = merge_metadata(_base(), enrichment)

    assert merged.title == "Store Title"
    assert merged.author == "Store Author"
    assert merged.subjects == ["store subject"]
    assert merged.cover is None


def test_missing_enrichment_returns_base_unchanged() -> None:
    base = _base()
    assert merge_metadata(base, None) is base


def test_inputs_are_not_mutated_or_aliased() -> None:
    base = _base()
    enrichment = BookMetadata(asset_id="X", publisher="P", subjects=["a"])
    base_before = asdict(base)
    enrichment_before = asdict(enrichment)

    merged = merge_metadata(base, enrichment)
    merged.subjects.append("added later")

    assert asdict(base) == base_before
    assert asdict(enrichment) == enrichment_before
    assert merged is not base


def test_every_field_follows_precedence() -> None:
    base = BookMetadata(asset_id="A", **{f.name: None for f in fields(BookMetadata) if f.name not in ("asset_id", "subjects")})
    enrichment = BookMetadata(asset_id="B", genre="Fiction", page_count=300, rating=4, reading_progress=0.5)

    merged = merge_metadata(base, enrichment)

    for f in fields(BookMetadata):
        if f.name == "asset_id":
            assert merged.asset_id == "A"
        elif getattr(enrichment, f.name) not in (None, "", [], b""):
            assert getattr(merged, f.name) == getattr(enrichment, f.name)
        else:
            assert getattr(merged, f.name) == getattr(base, f.name)
