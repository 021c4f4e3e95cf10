"""
Fireside Backend — UTF-16 Offset Mapping
==========================================

What:  Converts between Python string indices (code points) and UTF-16 code-unit
       offsets, the unit browsers and the stored highlights use.
How:   One prefix-sum table per text; characters outside the BMP count as two
       units. An offset that lands inside a surrogate pair maps to the start of
       that character.
"""

from bisect import bisect_right
from typing import List


def utf16_len(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


class Utf16Text:
    """A string paired with its code-point → UTF-16 offset table."""

    def __init__(self, text: str):
        self.text = text
        units: List[int] = [0]
        acc = 0
        for ch in text:
            acc += 2 if ord(ch) > 0xFFFF else 1
            units.append(acc)
        self._units = units

    def __len__(self) -> int:
        return self._units[-1]

    def to_index(self, offset: int) -> int:
        """UTF-16 offset → code-point index, clamped to the text."""
        if offset <= 0:
            return 0
        if offset >= len(self):
            return len(self.text)
        return bisect_right(self._units, offset) - 1

    def to_offset(self, index: int) -> int:
        """Code-point index → UTF-16 offset, clamped to the text."""
        index = max(0, min(index, len(self.text)))
        return self._units[index]

    def slice(self, start: int, end: int) -> str:
        """Substring between two UTF-16 offsets."""
        return self.text[self.to_index(start):self.to_index(end)]
