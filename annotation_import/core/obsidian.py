import hashlib
import logging
import re
from pathlib import Path
from typing import Optional

import yaml

from annotation_import.config import ImporterSettings
from annotation_import.core.markdown import HASH_KEY, note_file_name, render_full_note, render_note_body
from annotation_import.core.models import BookWithAnnotations
from annotation_import.utils.paths import ensure_dir_exists
from annotation_import.utils.text import sanitize_filename

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"
SKIPPED_EXISTING = "skipped"

_FRONTMATTER_RE = re.compile(r'\A---\n(.*?)\n---\n', re.DOTALL)


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def read_frontmatter(content: str) -> dict:
    """Parses the YAML frontmatter of a note. Invalid YAML gives an empty dict."""
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        # Hand-edited notes may not be valid YAML; the hash line is still usable
        hash_match = re.search(rf'^{HASH_KEY}:\s*(\S+)\s*$', match.group(1), re.MULTILINE)
        return {HASH_KEY: hash_match.group(1)} if hash_match else {}
    return data if isinstance(data, dict) else {}


class Vault:
    """Writes book notes, author pages and covers into an Obsidian vault."""

    def __init__(self, root: Path, settings: ImporterSettings):
        self.root = Path(root)
        self.settings = settings

    @property
    def books_dir(self) -> Path:
        folder = self.settings.output_folder.strip()
        return self.root / folder if folder else self.root

    @property
    def authors_dir(self) -> Path:
        return self.books_dir / "Authors"

    @property
    def attachments_dir(self) -> Path:
        return self.root / self.settings.attachment_folder.strip()

    def note_path(self, entry: BookWithAnnotations) -> Path:
        return self.books_dir / note_file_name(entry.book)

    def write_book(self, entry: BookWithAnnotations) -> str:
        """
        Renders and writes one book note, honouring the overwrite policy.
        Returns one of CREATED, UPDATED, UNCHANGED, SKIPPED_EXISTING.
        """
        book = entry.book
        cover_link = None
        if self.settings.include_covers and self.settings.save_cover_to_attachment_folder:
            cover_link = self.save_cover(entry)

        body = render_note_body(book, entry.annotations, self.settings, cover_link=cover_link)
        new_hash = content_hash(body)

        ensure_dir_exists(self.books_dir)
        path = self.note_path(entry)
        exists = path.exists()

        if exists:
            mode = self.settings.overwrite_existing
            if mode == "false":
                logger.info(f"Skipping existing file (overwrite setting is 'false'): {path}")
                return SKIPPED_EXISTING
            if mode == "smart":
                existing = read_frontmatter(path.read_text(encoding='utf-8'))
                if existing.get(HASH_KEY) == new_hash:
                    logger.info(f"No changes detected for {path}. Skipping.")
                    return UNCHANGED

        with open(path, "w", encoding="utf-8") as f:
            f.write(render_full_note(book, body, new_hash, self.settings))

        if book.author and self.settings.create_author_pages:
            self.ensure_author_page(book.author)

        return UPDATED if exists else CREATED

    def ensure_author_page(self, author: str) -> Optional[Path]:
        """Creates an author page with a dataview listing, unless it already exists."""
        try:
            ensure_dir_exists(self.authors_dir)
            path = self.authors_dir / f"{sanitize_filename(author)}.md"
            if path.exists():
                return path

            folder = self.settings.output_folder.strip()
            source = f'"{folder}"' if folder else ''
            content = f"""# {author}

## Books by this Author

```dataview
TABLE title as "Title", publication_date as "Published", tags as "Tags"
FROM {source}
WHERE author = "{author}"
SORT publication_date DESC
```

## Notes about {author}

<!-- Add your notes about this author here -->
"""
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
            logger.info(f"Created author page: {path}")
            return path
        except OSError as e:
            # An author page is a convenience; the book note is already written
            logger.error(f"Failed to create author page for {author}: {e}")
            return None

    def save_cover(self, entry: BookWithAnnotations) -> Optional[str]:
        """
        Saves the cover into the attachment folder, returns its vault-relative path.
        None means the note embeds the cover inline instead.
        """
        book = entry.book
        if not book.cover:
            return None
        path = self.attachments_dir / f"Cover - {sanitize_filename(book.display_title)}.jpg"
        try:
            link = path.resolve().relative_to(self.root.resolve()).as_posix()
        except ValueError:
            logger.warning(f"Attachment folder {self.attachments_dir} is outside the vault, embedding the cover instead")
            return None
        try:
            ensure_dir_exists(self.attachments_dir)
            if not path.exists() or self.settings.overwrite_existing != "false":
                path.write_bytes(book.cover)
            return link
        except OSError as e:
            logger.error(f"Failed to save cover for {book.display_title}: {e}")
            return None
