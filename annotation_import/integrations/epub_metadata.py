"""
Reads the richer metadata (ISBN, publisher, rights, subjects, cover) from the
book container itself. Apple Books keeps imported EPUBs unpacked as
directories; plain .epub archives are read with ebooklib.

Nothing in here raises: an unreadable container yields None, an unreadable
cover yields a record without a cover.
"""

import logging
import os
import plistlib
import re
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote

import ebooklib
from ebooklib import epub
from bs4 import BeautifulSoup

from annotation_import.core.models import BookMetadata

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.gif', '.webp')
COVER_NAMES = ('cover', 'thumbnail')
COVER_SEARCH_DIRS = ('', 'images', 'Images', 'OEBPS', 'OEBPS/images', 'OEBPS/Images',
                     'OPS', 'OPS/images', 'OPS/Images', 'Pictures')

_ISBN_RE = re.compile(r'^(97[89])?\d{9}[\dX]$')


def read_container_metadata(path, asset_id: str) -> Optional[BookMetadata]:
    """Entry point: dispatches on unpacked directory vs .epub archive."""
    if not path:
        return None
    container = Path(os.path.expanduser(str(path)))
    if not container.exists():
        logger.debug(f"Book container not found: {container}")
        return None

    try:
        if container.is_dir():
            return read_unpacked_epub(container, asset_id)
        if container.suffix.lower() == '.epub':
            return read_epub_archive(container, asset_id)
    except Exception as e:
        logger.debug(f"Could not read container metadata from {container}: {e}")
        return None

    logger.debug(f"Unsupported book container: {container}")
    return None


# --- Unpacked directory ---

def read_unpacked_epub(epub_dir: Path, asset_id: str) -> Optional[BookMetadata]:
    container_xml = epub_dir / 'META-INF' / 'container.xml'
    if not container_xml.exists():
        return read_itunes_plist(epub_dir, asset_id)

    opf_rel = find_opf_path(container_xml.read_text(encoding='utf-8', errors='ignore'))
    if not opf_rel:
        return None
    opf_path = epub_dir / unquote(opf_rel)
    if not opf_path.exists():
        logger.debug(f"OPF file missing: {opf_path}")
        return None

    try:
        opf_content = opf_path.read_text(encoding='utf-8', errors='ignore')
    except OSError as e:
        logger.debug(f"Could not read OPF {opf_path}: {e}")
        return None

    metadata = parse_opf_metadata(opf_content, asset_id)
    if metadata is None:
        return None

    cover_path = find_cover_image(epub_dir, opf_content, opf_path.parent)
    if cover_path:
        try:
            metadata.cover = cover_path.read_bytes()
        except OSError as e:
            logger.debug(f"Could not read cover {cover_path}: {e}")
    return metadata


def find_opf_path(container_xml: str) -> Optional[str]:
    soup = BeautifulSoup(container_xml, 'html.parser')
    rootfile = soup.find('rootfile')
    if not rootfile:
        return None
    return rootfile.get('full-path')


def parse_opf_metadata(opf_content: str, asset_id: str) -> Optional[BookMetadata]:
    """Dublin Core fields from an OPF package document. None if it holds none."""
    soup = BeautifulSoup(opf_content, 'html.parser')

    def get_list(key) -> List[str]:
        return [tag.get_text(strip=True) for tag in soup.find_all(f'dc:{key}') if tag.get_text(strip=True)]

    def get_one(key) -> Optional[str]:
        values = get_list(key)
        return values[0] if values else None

    title = get_one('title')
    creators = get_list('creator')
    if not title and not creators:
        return None

    description = get_one('description')
    if description:
        # Descriptions are often escaped HTML
        description = BeautifulSoup(description, 'html.parser').get_text(' ', strip=True)

    isbn = None
    for tag in soup.find_all('dc:identifier'):
        isbn = extract_isbn(tag.get_text(strip=True), tag.get('opf:scheme'))
        if isbn:
            break

    return BookMetadata(
        asset_id=asset_id,
        title=title,
        author=", ".join(creators) or None,
        description=description,
        isbn=isbn,
        language=get_one('language'),
        publisher=get_one('publisher'),
        publication_date=get_one('date'),
        rights=get_one('rights'),
        subjects=get_list('subject'),
    )


def extract_isbn(identifier: str, scheme: Optional[str] = None) -> Optional[str]:
    if not identifier:
        return None
    value = identifier.strip()
    if value.lower().startswith('urn:isbn:'):
        return value[len('urn:isbn:'):]
    if scheme and scheme.lower() == 'isbn':
        return value
    compact = value.replace('-', '').replace(' ', '').upper()
    if _ISBN_RE.match(compact):
        return value
    return None


def find_cover_image(epub_dir: Path, opf_content: str, opf_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Locates the cover: <meta name="cover">, then a 'cover-image' manifest
    item, then an item with id 'cover', then well-known file names.
    """
    opf_dir = opf_dir or epub_dir
    soup = BeautifulSoup(opf_content, 'html.parser')

    candidates = []
    meta = soup.find('meta', attrs={'name': 'cover'})
    if meta and meta.get('content'):
        item = soup.find('item', attrs={'id': meta['content']})
        if item and item.get('href'):
            candidates.append(item['href'])

    for item in soup.find_all('item'):
        if 'cover-image' in (item.get('properties') or '').split() and item.get('href'):
            candidates.append(item['href'])

    item = soup.find('item', attrs={'id': 'cover'})
    if item and item.get('href') and item['href'].lower().endswith(IMAGE_EXTENSIONS):
        candidates.append(item['href'])

    for href in candidates:
        for base in (opf_dir, epub_dir):
            path = base / unquote(href)
            if path.exists():
                return path

    for sub in COVER_SEARCH_DIRS:
        folder = epub_dir / sub if sub else epub_dir
        if not folder.is_dir():
            continue
        for name in sorted(os.listdir(folder)):
            stem, ext = os.path.splitext(name.lower())
            if ext in IMAGE_EXTENSIONS and stem.startswith(COVER_NAMES):
                return folder / name

    return None


def read_itunes_plist(epub_dir: Path, asset_id: str) -> Optional[BookMetadata]:
    """Fallback for containers that only ship an iTunesMetadata.plist."""
    plist_path = epub_dir / 'iTunesMetadata.plist'
    if not plist_path.exists():
        return None
    try:
        with open(plist_path, 'rb') as f:
            data = plistlib.load(f)
    except (OSError, plistlib.InvalidFileException, ValueError) as e:
        logger.debug(f"Could not parse {plist_path}: {e}")
        return None

    release = data.get('releaseDate')
    return BookMetadata(
        asset_id=asset_id,
        title=data.get('itemName'),
        author=data.get('artistName'),
        genre=data.get('genre'),
        publisher=data.get('publisherDisplayName') or data.get('playlistArtistName'),
        publication_date=str(release) if release else None,
    )


# --- .epub archive ---

def read_epub_archive(epub_path: Path, asset_id: str) -> Optional[BookMetadata]:
    book = epub.read_epub(str(epub_path), {"ignore_ncx": True})

    def get_list(key):
        data = book.get_metadata('DC', key)
        return [x[0] for x in data if x[0]] if data else []

    def get_one(key):
        values = get_list(key)
        return values[0] if values else None

    isbn = None
    for value, attrs in book.get_metadata('DC', 'identifier') or []:
        isbn = extract_isbn(value, (attrs or {}).get('{http://www.idpf.org/2007/opf}scheme'))
        if isbn:
            break

    creators = get_list('creator')
    return BookMetadata(
        asset_id=asset_id,
        title=get_one('title'),
        author=", ".join(creators) or None,
        description=get_one('description'),
        isbn=isbn,
        language=get_one('language'),
        publisher=get_one('publisher'),
        publication_date=get_one('date'),
        rights=get_one('rights'),
        subjects=get_list('subject'),
        cover=_archive_cover(book),
    )


def _archive_cover(book) -> Optional[bytes]:
    for _, attrs in book.get_metadata('OPF', 'cover') or []:
        item = book.get_item_with_id((attrs or {}).get('content'))
        if item is not None:
            return item.get_content()
    for item in book.get_items_of_type(ebooklib.ITEM_COVER):
        return item.get_content()
    for item in book.get_items_of_type(ebooklib.ITEM_IMAGE):
        if 'cover' in os.path.basename(item.get_name()).lower():
            return item.get_content()
    return None
