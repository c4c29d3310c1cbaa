"""
Import pipeline: store rows -> reconciled annotations -> merged metadata -> vault note.
One book at a time; a failing book is logged and skipped.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional

from annotation_import.config import ImporterSettings
from annotation_import.core.metadata import merge_metadata
from annotation_import.core.models import BookListing, BookMetadata, BookWithAnnotations, ImportSummary
from annotation_import.core.obsidian import SKIPPED_EXISTING, UNCHANGED, Vault
from annotation_import.core.reconcile import reconcile_annotations
from annotation_import.integrations.apple_books import AppleBooksStore
from annotation_import.integrations.epub_metadata import read_container_metadata

logger = logging.getLogger(__name__)

ContainerReader = Callable[[str, str], Optional[BookMetadata]]


class AnnotationImporter:

    def __init__(
        self,
        settings: ImporterSettings,
        store: AppleBooksStore,
        vault: Vault,
        container_reader: ContainerReader = read_container_metadata,
    ):
        self.settings = settings
        self.store = store
        self.vault = vault
        self.container_reader = container_reader

    def load_book(self, book: BookMetadata) -> BookWithAnnotations:
        """Fetches, reconciles and enriches one book. Store errors propagate."""
        raw = self.store.get_annotations_for_book(book.asset_id)
        annotations = reconcile_annotations(raw, self.settings.sort_annotations)
        logger.debug(f"{book.display_title}: {len(raw)} raw rows -> {len(annotations)} annotations")
        return BookWithAnnotations(book=self.enrich(book), annotations=annotations)

    def enrich(self, book: BookMetadata) -> BookMetadata:
        """Merges container metadata in when covers or extended metadata are wanted."""
        if not book.path or not self.settings.wants_container_metadata:
            return book
        try:
            enrichment = self.container_reader(book.path, book.asset_id)
        except Exception as e:
            logger.info(f"EPUB processing failed for {book.display_title}, continuing with basic metadata: {e}")
            return book
        if enrichment is not None:
            logger.info(f"Enhanced metadata for: {book.display_title}")
        return merge_metadata(book, enrichment)

    def list_books(self) -> List[BookListing]:
        """Books with highlights, with the number of annotations an import would produce."""
        books = self._books_by_id()
        listings = []
        for asset_id in self.store.get_books_with_highlights():
            book = books.get(asset_id)
            if book is None:
                continue
            try:
                raw = self.store.get_annotations_for_book(asset_id)
            except RuntimeError as e:
                logger.warning(f"Could not fetch annotation count for {book.display_title}: {e}")
                continue
            count = len(reconcile_annotations(raw, sort_enabled=False))
            if count:
                listings.append(BookListing(book=book, annotation_count=count))
        return listings

    def import_all_books(self) -> ImportSummary:
        asset_ids = self.store.get_books_with_highlights()
        if not asset_ids:
            logger.info("No books with highlights found in Apple Books")
            return ImportSummary()
        logger.info(f"Found {len(asset_ids)} books with highlights")
        return self._run(asset_ids, self._books_by_id())

    def import_selected_books(self, asset_ids: Iterable[str]) -> ImportSummary:
        return self._run(list(asset_ids), self._books_by_id())

    def _books_by_id(self) -> Dict[str, BookMetadata]:
        return {book.asset_id: book for book in self.store.get_book_details()}

    def _run(self, asset_ids: List[str], books: Dict[str, BookMetadata]) -> ImportSummary:
        summary = ImportSummary()
        for asset_id in asset_ids:
            book = books.get(asset_id)
            if book is None:
                logger.warning(f"Book details not found for asset ID: {asset_id}")
                summary.skipped += 1
                continue
            try:
                self._import_one(book, summary)
            except KeyboardInterrupt:
                logger.warning("Import interrupted")
                summary.interrupted = True
                break
            except Exception as e:
                logger.error(f"Error importing book {book.display_title} ({asset_id}): {e}")
                summary.skipped += 1
                summary.failures[asset_id] = str(e)
                continue

            done = summary.imported + summary.unchanged
            if done and done % 5 == 0:
                logger.info(f"Imported {done} of {len(asset_ids)} books...")

        logger.info(summary.message)
        return summary

    def _import_one(self, book: BookMetadata, summary: ImportSummary) -> None:
        entry = self.load_book(book)
        if not entry.annotations:
            logger.info(f"No valid annotations found for: {book.display_title}")
            summary.skipped += 1
            return

        outcome = self.vault.write_book(entry)
        if outcome == UNCHANGED:
            summary.unchanged += 1
        elif outcome == SKIPPED_EXISTING:
            summary.skipped += 1
        else:
            summary.imported += 1
