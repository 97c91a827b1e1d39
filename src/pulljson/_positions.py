"""Byte offset to character offset mapping for documents given as str."""

from __future__ import annotations

from bisect import bisect_right
from typing import Final

ASCII_LIMIT: Final = 0x7F


class PositionMapper:
    """Maps UTF-8 byte offsets back to character offsets.

    Instead of storing the width of every character, the mapper records a
    checkpoint every ``checkpoint_interval`` characters and walks forward
    from the nearest checkpoint at or before the requested offset.
    """

    def __init__(self, text: str, checkpoint_interval: int = 256) -> None:
        """Initialize the mapper.

        Args:
            text: The decoded document
            checkpoint_interval: Characters between checkpoints (default 256)
        """
        if checkpoint_interval <= 0:
            raise ValueError("checkpoint_interval must be positive")

        self.text: Final = text
        self.checkpoint_interval: Final = checkpoint_interval
        self._byte_marks: list[int] = []
        self._char_marks: list[int] = []
        self._is_ascii_only: bool = text.isascii()

        if not self._is_ascii_only:
            self._build_checkpoints()

    def _build_checkpoints(self) -> None:
        byte_pos = 0

        for char_pos, char in enumerate(self.text):
            if char_pos % self.checkpoint_interval == 0:
                self._byte_marks.append(byte_pos)
                self._char_marks.append(char_pos)
            byte_pos += utf8_width(char)

        # Always store the end of the document
        self._byte_marks.append(byte_pos)
        self._char_marks.append(len(self.text))

    def byte_to_char(self, byte_pos: int) -> int:
        """Convert a byte offset to a character offset.

        Offsets that fall inside a multi-byte sequence round up to the next
        character boundary; offsets past the end clamp to ``len(text)``.
        """
        if self._is_ascii_only:
            return min(byte_pos, len(self.text))

        idx = max(bisect_right(self._byte_marks, byte_pos) - 1, 0)
        current_byte = self._byte_marks[idx]
        current_char = self._char_marks[idx]

        while current_byte < byte_pos and current_char < len(self.text):
            current_byte += utf8_width(self.text[current_char])
            current_char += 1

        return current_char


def utf8_width(char: str) -> int:
    """Number of bytes ``char`` occupies once encoded as UTF-8."""
    cp = ord(char)
    if cp <= ASCII_LIMIT:
        return 1
    if cp <= 0x7FF:
        return 2
    if cp <= 0xFFFF:
        return 3
    return 4
