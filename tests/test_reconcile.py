from __future__ import annotations

from annotation_import.core.models import Annotation
from annotation_import.core.reconcile import reconcile_annotations


def _ann(text: str, location=None, physical=None) -> Annotation:
    return Annotation(selected_text=text, location=location, physical_location=physical)


def test_coalesce_then_sort() -> None:
    raw = [
        _ann("late", "epubcfi(/6/20!/4)", 45),
        _ann("frag"),
        _ann("early", "epubcfi(/6/4!/4)", 12),
    ]

    result = reconcile_annotations(raw, sort_enabled=True)

    assert [a.selected_text for a in result] == ["frag\nearly", "late"]


def test_sort_disabled_keeps_coalesced_order() -> None:
    raw = [
        _ann("late", "epubcfi(/6/20!/4)", 45),
        _ann("early", "epubcfi(/6/4!/4)", 12),
    ]

    result = reconcile_annotations(raw, sort_enabled=False)

    assert [a.selected_text for a in result] == ["late", "early"]


def test_blank_records_are_dropped() -> None:
    raw = [
        _ann("   ", "epubcfi(/6/2!/4)", 1),
        _ann("\n\t", physical=2),
        _ann("kept", physical=3),
    ]

    result = reconcile_annotations(raw, sort_enabled=True)

    assert [a.selected_text for a in result] == ["kept"]


def test_blank_fragments_do_not_blank_their_anchor() -> None:
    raw = [_ann(" "), _ann("text", physical=1)]

    result = reconcile_annotations(raw, sort_enabled=False)

    assert len(result) == 1
    assert result[0].selected_text.strip() == "text"


def test_malformed_locations_do_not_abort() -> None:
    raw = [
        _ann("b", "epubcfi(/6/4!/4)"),
        _ann("a", "epubcfi(broken"),
        _ann("c", None, None),
    ]

    result = reconcile_annotations(raw, sort_enabled=True)

    # Both unusable keys fall back to [0] and keep their fetch order
    assert [a.selected_text for a in result] == ["a", "c", "b"]
