from dataclasses import fields, replace
from typing import Any, Optional

from annotation_import.core.models import BookMetadata

IDENTITY_FIELD = "asset_id"


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict)):
        return len(value) == 0
    return False


def merge_metadata(base: BookMetadata, enrichment: Optional[BookMetadata]) -> BookMetadata:
    """
    Overlays container metadata onto the library record.

    Field by field, a non-empty enrichment value wins and the base value is kept
    otherwise. The asset id always comes from `base`. Neither input is modified;
    list values are copied so the result shares no list with either record.
    """
    if enrichment is None:
        return base

    updates = {}
    for f in fields(BookMetadata):
        if f.name == IDENTITY_FIELD:
            continue
        value = getattr(enrichment, f.name)
        if _is_empty(value):
            value = getattr(base, f.name)
        if isinstance(value, list):
            value = list(value)
        updates[f.name] = value

    return replace(base, **updates)
