"""
Helpers for EPUB CFI location strings as stored by Apple Books,
e.g. 'epubcfi(/6/12[chapter_4]!/4/10/1,:0,:4)'.
"""

import re
from typing import List, Optional

CFI_PREFIX = "epubcfi("

_LABEL_RE = re.compile(r'\[[^\]]*\]')
_FIRST_LABEL_RE = re.compile(r'\[([^\]]+)\]')
_DIGITS_RE = re.compile(r'\d+')


def parse_for_ordering(location: Optional[str]) -> List[int]:
    """
    Turns a CFI into a flat list of integers usable as a lexicographic sort key.

    Bracketed labels are stripped before extracting digits so that ids like
    '[chapter_4]' do not leak into the key. Anything that is not a wrapped
    'epubcfi(...)' string, or yields no digits, maps to [0].
    """
    if not isinstance(location, str):
        return [0]
    if not location.startswith(CFI_PREFIX) or not location.endswith(')'):
        return [0]

    try:
        content = location[len(CFI_PREFIX):-1]
        numbers = []
        # Labels go first: they may contain '!' themselves
        for part in _LABEL_RE.sub('', content).split('!'):
            numbers.extend(int(n) for n in _DIGITS_RE.findall(part))
        return numbers or [0]
    except (ValueError, TypeError):
        return [0]


def extract_chapter_label(location: Optional[str]) -> Optional[str]:
    """
    Guesses a readable chapter name from the first bracketed id of a CFI.

    'epubcfi(/6/12[chapter_4]!/4/10/1,:0,:4)' -> 'Chapter 4'
    'epubcfi(/6/24[c3.xhtml]!/4/188/2/1,:0,:1)' -> 'Chapter 3'
    """
    if not location or not isinstance(location, str):
        return None

    try:
        bracket_match = _FIRST_LABEL_RE.search(location)
        if not bracket_match:
            return None
        return _classify_label(bracket_match.group(1))
    except (re.error, AttributeError, TypeError, IndexError):
        return None


def _classify_label(chapter_id: str) -> str:
    lowered = chapter_id.lower()

    if 'chapter_' in lowered:
        match = re.search(r'chapter_(\d+)', lowered)
        if match:
            return f"Chapter {match.group(1)}"

    match = re.match(r'^c(\d+)', lowered)
    if match:
        return f"Chapter {match.group(1)}"

    if 'preface' in lowered or 'foreword' in lowered:
        return "Preface"

    if 'introduction' in lowered or 'intro' in lowered:
        return "Introduction"

    if 'appendix' in lowered:
        return "Appendix"

    if 'title' in lowered:
        return "Title Page"

    if 'text' in lowered:
        # Generic 'text-N' file names used by some publishers
        if 'text-2' in lowered:
            return "Preface"
        if 'text-3' in lowered:
            return "Preface (continued)"
        if 'text-5' in lowered:
            return "How to Begin"
        return "Text Section"

    cleaned = re.sub(r'[_-]', ' ', chapter_id)
    return cleaned[:1].upper() + cleaned[1:].lower()
