"""Importer settings, persisted as JSON, plus environment overrides read from .env."""
import json
import logging
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# .env lives at the project root (1 level up from the package)
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

logger = logging.getLogger(__name__)

OVERWRITE_MODES = ("true", "false", "smart")


@dataclass
class ImporterSettings:
    output_folder: str = "Books"
    include_covers: bool = True
    include_extended_frontmatter: bool = True
    include_extended_in_note: bool = True
    overwrite_existing: str = "true"  # 'true' | 'false' | 'smart'
    add_tags: bool = True
    custom_tags: str = "book/notes"
    include_chapter_info: bool = False
    sort_annotations: bool = True
    include_annotation_dates: bool = True
    include_annotation_styles: bool = True
    include_reading_progress: bool = True
    create_author_pages: bool = True
    include_citations: bool = False
    save_cover_to_attachment_folder: bool = False
    attachment_folder: str = "Attachments"

    def __post_init__(self):
        # Older settings files stored a boolean here
        if isinstance(self.overwrite_existing, bool):
            self.overwrite_existing = "true" if self.overwrite_existing else "false"
        if self.overwrite_existing not in OVERWRITE_MODES:
            raise ValueError(f"overwrite_existing must be one of {OVERWRITE_MODES}, got {self.overwrite_existing!r}")

    @property
    def wants_container_metadata(self) -> bool:
        return self.include_covers or self.include_extended_frontmatter or self.include_extended_in_note

    @property
    def tags(self) -> List[str]:
        """Custom tags without their leading '#'."""
        tags = [t.strip().lstrip('#').strip() for t in self.custom_tags.split(',')]
        return [t for t in tags if t]


def get_settings_path() -> Path:
    """Returns the settings file path (ANNOTATION_IMPORT_SETTINGS or ~/.annotation_import.json)."""
    custom = os.getenv("ANNOTATION_IMPORT_SETTINGS")
    if custom:
        return Path(os.path.expanduser(custom))
    return Path(os.path.expanduser("~/.annotation_import.json"))


def get_vault_dir() -> Path:
    """Returns the Obsidian vault the notes are written into."""
    vault = os.getenv("ANNOTATION_IMPORT_VAULT")
    if vault:
        return Path(os.path.expanduser(vault))
    return Path.cwd()


def get_container_root() -> Optional[Path]:
    """Optional override for the Apple Books data container (used for copies of the stores)."""
    root = os.getenv("APPLE_BOOKS_CONTAINER")
    return Path(os.path.expanduser(root)) if root else None


def load_settings(path: Optional[Path] = None) -> ImporterSettings:
    """Loads settings from JSON. Missing file means defaults; unknown keys are ignored."""
    path = path or get_settings_path()
    if not path.exists():
        return ImporterSettings()

    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    known = {f.name for f in fields(ImporterSettings)}
    ignored = sorted(set(data) - known)
    if ignored:
        logger.warning(f"Ignoring unknown settings in {path}: {', '.join(ignored)}")
    return ImporterSettings(**{k: v for k, v in data.items() if k in known})


def save_settings(settings: ImporterSettings, path: Optional[Path] = None) -> None:
    path = path or get_settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(asdict(settings), f, indent=2, ensure_ascii=False)
