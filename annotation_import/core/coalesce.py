"""
Repairs highlights that the annotation store split into several rows.

Apple Books sometimes saves one logical highlight (typically a list or a
passage spanning several paragraphs) as a run of rows without any location,
followed by the row that carries the real position. Those position-less rows
are folded into the next positioned row so their text is kept.
"""

import logging
from dataclasses import replace
from typing import Iterable, List

from annotation_import.core.models import Annotation

logger = logging.getLogger(__name__)


def is_anchored(annotation: Annotation) -> bool:
    """True if the annotation has a CFI or a physical location."""
    return annotation.location is not None or annotation.physical_location is not None


def _join_texts(parts: List[Annotation]) -> str:
    return "\n".join(part.selected_text for part in parts)


def coalesce_fragments(raw_annotations: Iterable[Annotation]) -> List[Annotation]:
    """
    Merges runs of unanchored fragments into the following anchored record.

    Must be given the rows in fetch order. The merged record keeps every field
    of the anchor, with the fragment texts prepended line by line. A run left
    over at the end becomes one record built on its first fragment.
    """
    result: List[Annotation] = []
    pending: List[Annotation] = []

    for annotation in raw_annotations:
        if not is_anchored(annotation):
            pending.append(annotation)
            continue

        if pending:
            logger.debug(f"Merging {len(pending)} unanchored fragment(s) into {annotation.location!r}")
            result.append(replace(annotation, selected_text=_join_texts(pending + [annotation])))
            pending = []
        else:
            result.append(annotation)

    if pending:
        logger.debug(f"Keeping {len(pending)} trailing unanchored fragment(s) as one annotation")
        result.append(replace(pending[0], selected_text=_join_texts(pending)))

    return result
