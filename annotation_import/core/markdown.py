"""Renders a book and its annotations into an Obsidian note."""

import base64
from typing import List, Optional

from annotation_import.config import ImporterSettings
from annotation_import.core.location import extract_chapter_label
from annotation_import.core.models import Annotation, BookMetadata
from annotation_import.utils.text import sanitize_filename, sanitize_frontmatter

HASH_KEY = "last-import-hash"

STYLE_MARKERS = {
    0: "🟡 ",  # yellow
    1: "🟢 ",  # green
    2: "🔵 ",  # blue
    3: "🟣 ",  # purple
    4: "🔴 ",  # red
}
UNDERLINE_MARKER = "📝 "


def note_file_name(book: BookMetadata) -> str:
    title = sanitize_filename(book.display_title)
    author = sanitize_filename(book.author or "Unknown Author")
    return f"{title} - {author}.md"


def author_link(author: str, settings: ImporterSettings) -> str:
    folder = settings.output_folder.strip()
    return f"{folder}/Authors/{author}" if folder else f"Authors/{author}"


def format_citation(book: BookMetadata, physical_location: Optional[int] = None) -> str:
    """'Author, *Title*, Publisher, 2020, loc. 42.'"""
    parts = []
    if book.author:
        parts.append(book.author)
    if book.title:
        parts.append(f"*{book.title}*")
    if book.publisher:
        parts.append(book.publisher)
    if book.publication_date:
        parts.append(book.publication_date[:4])
    if physical_location and physical_location > 0:
        parts.append(f"loc. {physical_location}")
    return ", ".join(parts) + "."


def _format_date(value) -> str:
    return value.strftime("%a %b %d %Y")


def _style_marker(annotation: Annotation) -> str:
    marker = STYLE_MARKERS.get(annotation.style, "") if annotation.style is not None else ""
    if annotation.is_underline:
        marker += UNDERLINE_MARKER
    return marker


def _metadata_lines(book: BookMetadata, settings: ImporterSettings) -> List[str]:
    lines = []
    extended = settings.include_extended_in_note

    if extended:
        lines.append(f"- **Asset ID:** {book.asset_id}")
    lines.append(f"- **Title:** {book.display_title}")
    if book.author:
        if settings.create_author_pages:
            lines.append(f"- **Author:** [[{author_link(book.author, settings)}]]")
        else:
            lines.append(f"- **Author:** {book.author}")

    if extended:
        if book.description:
            lines.append(f"- **Description:** {book.description}")
        if book.epub_id:
            lines.append(f"- **EPUB ID:** {book.epub_id}")
        if book.path:
            lines.append(f"- **Path:** [{book.path}](file://{book.path})")
        if book.isbn:
            lines.append(f"- **ISBN:** {book.isbn}")
        if book.language:
            lines.append(f"- **Language:** {book.language}")
        if book.publisher:
            lines.append(f"- **Publisher:** {book.publisher}")
        if book.publication_date:
            lines.append(f"- **Publication Date:** {book.publication_date}")
        if book.year and book.year != book.publication_date:
            lines.append(f"- **Year:** {book.year}")
        if book.genre:
            lines.append(f"- **Genre:** {book.genre}")
        if book.page_count:
            lines.append(f"- **Page Count:** {book.page_count}")
        if book.rating and book.rating > 0:
            lines.append(f"- **Rating:** {book.rating}/5 ⭐")
        if book.reading_progress and settings.include_reading_progress:
            lines.append(f"- **Reading Progress:** {round(book.reading_progress * 100)}%")
        if book.subjects:
            lines.append(f"- **Subjects:** {', '.join(book.subjects)}")
        if book.rights:
            lines.append(f"- **Rights:** {book.rights}")
        if book.last_opened_at:
            lines.append(f"- **Last Opened:** {_format_date(book.last_opened_at)}")
        if book.comments:
            lines.append(f"- **Comments:** {book.comments}")

    if settings.add_tags and settings.tags:
        lines.append(f"- **Tags:** {', '.join('#' + t for t in settings.tags)}")
    return lines


def render_note_body(
    book: BookMetadata,
    annotations: List[Annotation],
    settings: ImporterSettings,
    cover_link: Optional[str] = None,
) -> str:
    """
    Everything below the frontmatter. `annotations` are expected reconciled
    (see reconcile_annotations). `cover_link` is a vault path to embed
    instead of inlining the cover bytes.
    """
    out = []

    heading = f"# {book.display_title}"
    if book.author:
        heading += f" by {book.author}"
    out.append(heading + "\n\n")

    if settings.include_covers:
        if cover_link:
            out.append(f"![[{cover_link}|300]]\n\n")
        elif book.cover:
            encoded = base64.b64encode(book.cover).decode('ascii')
            out.append(f'<p align="center"><img src="data:image/jpeg;base64,{encoded}" width="50%"></p>\n\n')

    show_metadata = (
        settings.include_extended_in_note
        or (book.author and settings.create_author_pages)
        or (settings.add_tags and settings.tags)
    )
    if show_metadata:
        out.append("## Metadata\n\n")
        out.append("\n".join(_metadata_lines(book, settings)) + "\n\n")

    out.append("## Annotations\n\n")

    if not annotations:
        out.append("No annotations found for this book.\n\n")
        return "".join(out)

    current_chapter = None
    for annotation in annotations:
        if settings.include_chapter_info and annotation.location:
            chapter = extract_chapter_label(annotation.location)
            if chapter and chapter != current_chapter:
                current_chapter = chapter
                out.append(f"### {chapter}\n\n")

        marker = _style_marker(annotation) if settings.include_annotation_styles else ""
        # Keep inner indentation of each line
        for i, line in enumerate(annotation.selected_text.strip().split("\n")):
            out.append(f"> {marker if i == 0 else ''}{line}\n")
        out.append("\n")

        if settings.include_citations:
            citation = f"*{format_citation(book, annotation.physical_location)}*"
            if annotation.created_at and settings.include_annotation_dates:
                citation += f" *(Created: {_format_date(annotation.created_at)})*"
            out.append(citation + "\n\n")

        if annotation.note and annotation.note.strip():
            out.append(f"**Note:** {annotation.note.strip()}\n\n")

        out.append("---\n\n")

    return "".join(out)


def render_frontmatter(book: BookMetadata, content_hash: str, settings: ImporterSettings) -> str:
    lines = ["---", f"asset_id: {book.asset_id}", f"title: {sanitize_frontmatter(book.display_title)}"]
    if book.author:
        lines.append(f"author: {sanitize_frontmatter(book.author)}")

    if settings.include_extended_frontmatter:
        if book.description:
            lines.append(f"description: {sanitize_frontmatter(book.description)}")
        if book.epub_id:
            lines.append(f"epub_id: {sanitize_frontmatter(book.epub_id)}")
        if book.isbn:
            lines.append(f"isbn: '{book.isbn}'")
        if book.language:
            lines.append(f"language: {sanitize_frontmatter(book.language)}")
        if book.publisher:
            lines.append(f"publisher: {sanitize_frontmatter(book.publisher)}")
        if book.publication_date:
            lines.append(f"publication_date: '{sanitize_frontmatter(book.publication_date)}'")
        if book.year:
            lines.append(f"year: '{book.year}'")
        if book.genre:
            lines.append(f"genre: {sanitize_frontmatter(book.genre)}")
        if book.page_count:
            lines.append(f"page_count: {book.page_count}")
        if book.rating and book.rating > 0:
            lines.append(f"rating: {book.rating}")
        if book.reading_progress and settings.include_reading_progress:
            lines.append(f"reading_progress: {round(book.reading_progress * 100)}%")
        if book.subjects:
            subjects = ", ".join(f'"{sanitize_frontmatter(s)}"' for s in book.subjects)
            lines.append(f"subjects: [{subjects}]")
        if book.rights:
            lines.append(f"rights: {sanitize_frontmatter(book.rights)}")
        if book.last_opened_at:
            lines.append(f"last_opened: {book.last_opened_at.date().isoformat()}")

    if settings.add_tags and settings.tags:
        lines.append("tags:")
        lines.extend(f"  - {tag}" for tag in settings.tags)

    lines.append(f"{HASH_KEY}: {content_hash}")
    lines.append("---")
    return "\n".join(lines) + "\n\n"


def render_full_note(book: BookMetadata, body: str, content_hash: str, settings: ImporterSettings) -> str:
    return render_frontmatter(book, content_hash, settings) + body
