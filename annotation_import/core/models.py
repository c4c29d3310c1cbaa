from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Optional


@dataclass
class Annotation:
    """Represents a single highlight or note read from the annotation store."""
    selected_text: str
    note: Optional[str] = None
    location: Optional[str] = None           # epubcfi(...) string
    physical_location: Optional[int] = None  # absolute position in the book
    annotation_type: Optional[int] = None
    style: Optional[int] = None              # highlight colour index
    is_underline: bool = False
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    uuid: Optional[str] = None
    representative_text: Optional[str] = None


@dataclass
class BookMetadata:
    """
    Book metadata from one provenance: the library store (sparse, always present)
    or the book container (richer, optional).
    """
    asset_id: str
    title: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    epub_id: Optional[str] = None
    path: Optional[str] = None
    isbn: Optional[str] = None
    language: Optional[str] = None
    publisher: Optional[str] = None
    publication_date: Optional[str] = None
    cover: Optional[bytes] = None
    genre: Optional[str] = None
    genres: Optional[str] = None
    year: Optional[str] = None
    page_count: Optional[int] = None
    rating: Optional[int] = None
    comments: Optional[str] = None
    reading_progress: Optional[float] = None  # 0.0 - 1.0
    created_at: Optional[datetime] = None
    last_opened_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    rights: Optional[str] = None
    subjects: List[str] = field(default_factory=list)

    @property
    def display_title(self) -> str:
        return self.title or "Unknown Title"


@dataclass
class BookWithAnnotations:
    """A book ready to be rendered: merged metadata plus reconciled annotations."""
    book: BookMetadata
    annotations: List[Annotation] = field(default_factory=list)


@dataclass
class BookListing:
    """Entry shown when choosing which books to import."""
    book: BookMetadata
    annotation_count: int


@dataclass
class ImportSummary:
    """Outcome of an import run."""
    imported: int = 0
    skipped: int = 0
    unchanged: int = 0
    interrupted: bool = False
    failures: Dict[str, str] = field(default_factory=dict)  # asset_id -> error message

    @property
    def message(self) -> str:
        msg = f"Import complete! {self.imported} books imported"
        if self.unchanged:
            msg += f", {self.unchanged} unchanged"
        if self.skipped:
            msg += f", {self.skipped} skipped"
        if self.interrupted:
            msg += " (interrupted)"
        return msg
