from functools import cmp_to_key
from typing import Iterable, List

from annotation_import.core.location import parse_for_ordering
from annotation_import.core.models import Annotation


def compare_annotations(a: Annotation, b: Annotation) -> int:
    """
    Orders two annotations by their position in the book.

    The absolute physical location wins whenever both records have one.
    Otherwise the CFI strings are compared component by component, and on a
    tie over the common length the shorter path comes first.
    """
    if a.physical_location is not None and b.physical_location is not None:
        return a.physical_location - b.physical_location

    a_key = parse_for_ordering(a.location)
    b_key = parse_for_ordering(b.location)

    for a_part, b_part in zip(a_key, b_key):
        if a_part != b_part:
            return a_part - b_part

    return len(a_key) - len(b_key)


def sort_annotations(annotations: Iterable[Annotation]) -> List[Annotation]:
    """Returns a new list sorted with compare_annotations (stable for ties)."""
    return sorted(annotations, key=cmp_to_key(compare_annotations))
