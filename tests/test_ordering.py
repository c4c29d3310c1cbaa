from __future__ import annotations

from annotation_import.core.models import Annotation
from annotation_import.core.ordering import compare_annotations, sort_annotations


def _ann(text: str, location=None, physical=None) -> Annotation:
    return Annotation(selected_text=text, location=location, physical_location=physical)


def test_physical_location_wins_over_cfi() -> None:
    late = _ann("late", "epubcfi(/6/2!/4)", 45)
    early = _ann("early", "epubcfi(/6/40!/4)", 12)

    assert [a.selected_text for a in sort_annotations([late, early])] == ["early", "late"]


def test_cfi_used_when_physical_missing_on_either_side() -> None:
    a = _ann("a", "epubcfi(/6/10!/4)", 5)
    b = _ann("b", "epubcfi(/6/8!/4)", None)

    assert compare_annotations(a, b) > 0
    assert [x.selected_text for x in sort_annotations([a, b])] == ["b", "a"]


def test_cfi_compared_numerically_not_lexically() -> None:
    a = _ann("a", "epubcfi(/6/10!/4)")
    b = _ann("b", "epubcfi(/6/9!/4)")

    assert compare_annotations(b, a) < 0


def test_shorter_path_first_on_common_prefix_tie() -> None:
    short = _ann("short", "epubcfi(/6/4!/2)")
    long = _ann("long", "epubcfi(/6/4!/2/1)")

    assert compare_annotations(short, long) < 0
    assert compare_annotations(long, short) > 0


def test_equal_keys_compare_equal() -> None:
    assert compare_annotations(_ann("a", physical=3), _ann("b", physical=3)) == 0
    assert compare_annotations(_ann("a", "garbage"), _ann("b", None)) == 0


def test_sort_is_stable_for_identical_physical_location() -> None:
    first = _ann("first", "epubcfi(/6/20!/4)", 7)
    second = _ann("second", "epubcfi(/6/2!/4)", 7)

    assert [a.selected_text for a in sort_annotations([first, second])] == ["first", "second"]
    assert [a.selected_text for a in sort_annotations([second, first])] == ["second", "first"]


def test_sorting_sorted_input_is_unchanged() -> None:
    items = [
        _ann("1", "epubcfi(/6/2!/4)", 1),
        _ann("2", "epubcfi(/6/4!/4)", 2),
        _ann("3", "epubcfi(/6/6!/4)", 3),
    ]
    assert sort_annotations(items) == items


def test_sort_returns_new_list() -> None:
    items = [_ann("b", physical=2), _ann("a", physical=1)]
    result = sort_annotations(items)

    assert result is not items
    assert [a.selected_text for a in items] == ["b", "a"]


def test_malformed_location_sorts_with_zero_key() -> None:
    broken = _ann("broken", "not-a-cfi")
    valid = _ann("valid", "epubcfi(/6/2!/4)")

    assert [a.selected_text for a in sort_annotations([valid, broken])] == ["broken", "valid"]
