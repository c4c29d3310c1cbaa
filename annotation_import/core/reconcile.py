import logging
from typing import Iterable, List

from annotation_import.core.coalesce import coalesce_fragments
from annotation_import.core.models import Annotation
from annotation_import.core.ordering import sort_annotations

logger = logging.getLogger(__name__)


def has_text(annotation: Annotation) -> bool:
    return bool((annotation.selected_text or "").strip())


def reconcile_annotations(raw_annotations: Iterable[Annotation], sort_enabled: bool = True) -> List[Annotation]:
    """
    Raw rows (fetch order) -> annotations ready for rendering.

    1. fold unanchored fragments into their anchor
    2. drop anything whose text is blank
    3. optionally sort by position in the book
    """
    coalesced = coalesce_fragments(raw_annotations)
    annotations = [a for a in coalesced if has_text(a)]

    dropped = len(coalesced) - len(annotations)
    if dropped:
        logger.debug(f"Dropped {dropped} empty annotation(s)")

    if sort_enabled:
        annotations = sort_annotations(annotations)

    return annotations
