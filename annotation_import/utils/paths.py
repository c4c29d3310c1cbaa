import glob
import os
from pathlib import Path
from typing import Optional

from annotation_import.config import get_container_root

ANNOTATION_DB_GLOB = "AEAnnotation/AEAnnotation*.sqlite"
LIBRARY_DB_GLOB = "BKLibrary/BKLibrary*.sqlite"


class DatabaseNotFoundError(RuntimeError):
    """Raised when an Apple Books store cannot be located."""


def get_books_container_dir() -> Path:
    """Returns the Apple Books data container on macOS (or the configured override)."""
    override = get_container_root()
    if override:
        return override
    return Path(os.path.expanduser("~/Library/Containers/com.apple.iBooksX/Data/Documents"))


def find_database(pattern: str, base: Optional[Path] = None) -> Path:
    """Returns the first store matching `pattern` below the container."""
    base = base or get_books_container_dir()
    matches = sorted(glob.glob(str(base / pattern)))
    if not matches:
        raise DatabaseNotFoundError(f"No database found matching pattern: {base / pattern}")
    return Path(matches[0])


def get_annotation_db_path(base: Optional[Path] = None) -> Path:
    return find_database(ANNOTATION_DB_GLOB, base)


def get_library_db_path(base: Optional[Path] = None) -> Path:
    return find_database(LIBRARY_DB_GLOB, base)


def ensure_dir_exists(path: Path) -> None:
    """Ensures that a directory exists."""
    if not path.exists():
        path.mkdir(parents=True, exist_ok=True)
