"""
Reconstruct chunk spans from the compound tags TreeTagger emits per token.

A compound tag looks like ``NN/B-NP`` (tag, boundary flag, category) or
``NN/NP`` (tag and category only). The decoder keeps at most one open span.
A new span starts whenever the category changes or the boundary flag is the
begin marker. Spans are committed only at the end of a sentence, so a failing
sentence never leaves partial annotations behind.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Tuple

from .errors import TagFormatError

NONE_FLAG = "NONE"
BEGIN_FLAG = "B"


def parse_compound_tag(tag: str) -> Tuple[str, str, str]:
    """
    Split a compound tag into ``(primary_tag, category, boundary_flag)``.

    The flag is ``NONE_FLAG`` when the tag carries no ``flag-`` prefix.
    """
    if tag is None or "/" not in tag:
        raise TagFormatError(f"Malformed compound tag {tag!r}: expected '<tag>/<category>'")
    primary, _, rest = tag.rpartition("/")
    parts = rest.split("-")
    if len(parts) == 1:
        flag, category = NONE_FLAG, parts[0]
    elif len(parts) == 2:
        flag, category = parts
    else:
        raise TagFormatError(f"Malformed compound tag {tag!r}: more than one '-' in {rest!r}")
    if not category or not flag:
        raise TagFormatError(f"Malformed compound tag {tag!r}: empty category or flag")
    return primary, category, flag


class DecodedSpan(NamedTuple):
    start: int
    end: int
    label: str


@dataclass
class _OpenSpan:
    category: str
    start: int
    end: int


class ChunkDecoder:
    """State machine turning a per-sentence tag stream into spans."""

    def __init__(
        self,
        *,
        outside_tag: Optional[str] = "O",
        intern_tags: bool = True,
        begin_flag: str = BEGIN_FLAG,
    ):
        self.outside_tag = outside_tag
        self.intern_tags = intern_tags
        self.begin_flag = begin_flag
        self._open: Optional[_OpenSpan] = None
        self._pending: List[DecodedSpan] = []

    @property
    def is_open(self) -> bool:
        return self._open is not None

    @property
    def pending(self) -> List[DecodedSpan]:
        return list(self._pending)

    def feed(self, begin: int, end: int, tag: str) -> None:
        """Consume the compound tag of one token covering ``[begin, end)``."""
        _, category, flag = parse_compound_tag(tag)

        if self._open is not None and (category != self._open.category or flag == self.begin_flag):
            self._finalize()

        if category == self.outside_tag:
            return

        if self._open is None:
            self._open = _OpenSpan(category=category, start=begin, end=end)
        self._open.end = end

    def end_sentence(self) -> List[DecodedSpan]:
        """Close any open span and hand over the spans of the finished sentence."""
        self._finalize()
        spans, self._pending = self._pending, []
        return spans

    def _finalize(self) -> None:
        if self._open is None:
            return
        label = sys.intern(self._open.category) if self.intern_tags else self._open.category
        self._pending.append(DecodedSpan(self._open.start, self._open.end, label))
        self._open = None
