"""
Autolinker — substring scanning helpers (no regex on document text).

All positions are indices into the line being scanned. Terms are expected
to be lower-case already (dictionary keys are case-folded on build).
"""
from __future__ import annotations

from typing import Iterator, Optional

# Characters that delimit a word besides whitespace
_BOUNDARY_CHARS = frozenset(",.:;!?()[]{}\"'/-—–")


def is_word_boundary(ch: str) -> bool:
    return ch.isspace() or ch in _BOUNDARY_CHARS


def iter_entity_mentions(text: str, term: str) -> Iterator[int]:
    """Yields every case-insensitive, word-delimited occurrence of `term` in `text`."""
    n = len(term)
    if not n or n > len(text):
        return

    lower = text.lower()
    if len(lower) != len(text):
        # Case folding changed the length (e.g. "İ"); fall back to per-slice compare
        for idx in range(len(text) - n + 1):
            if text[idx:idx + n].lower() == term and _delimited(text, idx, n):
                yield idx
        return

    start = 0
    while start <= len(lower) - n:
        idx = lower.find(term, start)
        if idx == -1:
            return
        if _delimited(lower, idx, n):
            yield idx
        start = idx + 1


def find_entity_mention(text: str, term: str) -> int:
    """Returns the first word-delimited occurrence of `term`, or -1."""
    return next(iter_entity_mentions(text, term), -1)


def _delimited(text: str, idx: int, n: int) -> bool:
    before = text[idx - 1] if idx > 0 else " "
    after = text[idx + n] if idx + n < len(text) else " "
    return is_word_boundary(before) and is_word_boundary(after)


def is_inside_link(text: str, idx: int) -> bool:
    """True if `idx` sits in the text part of a markdown link: unmatched `[` before, `](` after."""
    depth = 0
    for i in range(idx - 1, -1, -1):
        ch = text[i]
        if ch == "]":
            depth += 1
        elif ch == "[":
            if depth > 0:
                depth -= 1
            else:
                return text.find("](", idx) != -1
    return False


def is_inside_link_target(text: str, idx: int) -> bool:
    """True if `idx` sits in a link destination, i.e. after `](` with no closing `)` yet."""
    depth = 0
    for i in range(idx - 1, -1, -1):
        ch = text[i]
        if ch == ")":
            depth += 1
        elif ch == "(":
            if depth > 0:
                depth -= 1
            else:
                return i > 0 and text[i - 1] == "]"
    return False


def is_inside_inline_code(text: str, idx: int) -> bool:
    """Odd number of backticks before `idx` means we are inside an inline code span."""
    return text.count("`", 0, idx) % 2 == 1


def is_linkable_position(text: str, idx: int) -> bool:
    return not (
        is_inside_link(text, idx)
        or is_inside_link_target(text, idx)
        or is_inside_inline_code(text, idx)
    )


def enclosing_link_target(text: str, idx: int) -> Optional[str]:
    """Destination of the markdown link whose text contains `idx`, if any."""
    if not is_inside_link(text, idx):
        return None
    start = text.find("](", idx) + 2
    end = text.find(")", start)
    if end == -1:
        return None
    return text[start:end]
