"""
Line attribution for pattern matches.
"""

from bisect import bisect_right
from typing import List


def locate_line(content: str, matched_text: str) -> int:
    """
    Return the 1-based number of the first line containing matched_text.

    Falls back to 1 when no single line contains it (multi-line matches, or
    content that was re-normalised after matching).
    """
    if not matched_text:
        return 1
    for line_number, line in enumerate(content.split("\n"), start=1):
        if matched_text in line:
            return line_number
    return 1


class LineIndex:
    """Precomputed line-start offsets for O(log n) offset -> line lookups."""

    def __init__(self, content: str):
        self._starts: List[int] = [0]
        position = content.find("\n")
        while position != -1:
            self._starts.append(position + 1)
            position = content.find("\n", position + 1)

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def line_for_offset(self, offset: int) -> int:
        """1-based line containing the character at offset (clamped to the content)."""
        if offset <= 0:
            return 1
        return bisect_right(self._starts, offset)
