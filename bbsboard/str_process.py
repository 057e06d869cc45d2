"""Display-width measurement and line splitting for terminal text.

Text is measured on its UTF-8 bytes: every multi-byte character takes two
columns, carriage returns and bells take none, and with ``skip_ctrl_seq`` set
the ``ESC [ ... m`` colour sequences take none either. Offsets are byte
offsets into the UTF-8 encoding.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

_ESC = 0x1B
_LBRACKET = 0x5B
_NEWLINE = 0x0A
_SKIPPED = (0x0D, 0x07)

_CTRL_SEQ_BYTES = re.compile(rb"\x1b\[[^m]*m?|[\r\x07]")
_PLAIN_BYTES = re.compile(rb"[\r\x07]")
_CTRL_SEQ_STR = re.compile(r"\x1b\[[^m]*m?|[\r\x07]")
_PLAIN_STR = re.compile(r"[\r\x07]")


@dataclass(frozen=True)
class LineSplit:
    """Result of cutting one display line from the front of a text."""

    length: int
    eol: bool
    display_len: int


def _as_bytes(data: str | bytes) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def _continuation_count(lead: int) -> int:
    count = 0
    for bit in (0x40, 0x20, 0x10):
        if not lead & bit:
            break
        count += 1
    return count


def _tokens(raw: bytes, start: int, skip_ctrl_seq: bool) -> Iterator[tuple[int, int, int]]:
    """Yield ``(start, end, width)`` for each displayed unit from ``start``."""
    i = start
    size = len(raw)
    while i < size:
        byte = raw[i]
        if byte in _SKIPPED:
            end, width = i + 1, 0
        elif skip_ctrl_seq and byte == _ESC and i + 1 < size and raw[i + 1] == _LBRACKET:
            found = raw.find(b"m", i + 2)
            end, width = (size if found < 0 else found + 1), 0
        elif byte & 0x80:
            end, width = min(size, i + 1 + _continuation_count(byte)), 2
        else:
            end, width = i + 1, 1
        yield i, end, width
        i = end


def str_length(data: str | bytes, skip_ctrl_seq: bool = True) -> int:
    """Return the number of terminal columns ``data`` occupies."""
    return sum(width for _, _, width in _tokens(_as_bytes(data), 0, skip_ctrl_seq))


def _split(raw: bytes, start: int, max_display_len: int, skip_ctrl_seq: bool) -> LineSplit:
    display_len = 0
    pos = start
    eol = False
    for token_start, token_end, width in _tokens(raw, start, skip_ctrl_seq):
        if width and display_len + width > max_display_len:
            pos = token_start
            break
        display_len += width
        pos = token_end
        if width == 1 and raw[token_start] == _NEWLINE:
            eol = True
            break
    return LineSplit(pos - start, eol, display_len)


def split_line(data: str | bytes, max_display_len: int, skip_ctrl_seq: bool = True) -> LineSplit:
    """Cut the longest leading part of ``data`` that fits ``max_display_len`` columns.

    A newline counts as one column and ends the line after itself.
    """
    return _split(_as_bytes(data), 0, max_display_len, skip_ctrl_seq)


def split_data_lines(
    data: str | bytes,
    max_display_len: int,
    max_lines: int,
    skip_ctrl_seq: bool = True,
) -> tuple[list[int], list[int]]:
    """Split ``data`` into display lines.

    Returns ``(offsets, widths)``: ``offsets`` holds the start of every line
    followed by the end of the last one, at most ``max_lines`` entries in all;
    ``widths`` holds the display width of every line.
    """
    if max_lines < 1:
        raise ValueError(f"max_lines must be at least 1, got {max_lines}")
    raw = _as_bytes(data)
    offsets = [0]
    widths: list[int] = []
    while True:
        if len(offsets) >= max_lines:
            return offsets, widths
        line = _split(raw, offsets[-1], max_display_len, skip_ctrl_seq)
        offsets.append(offsets[-1] + line.length)
        widths.append(line.display_len)
        if offsets[-1] >= len(raw):
            return offsets, widths


def str_filter(data: str | bytes, skip_ctrl_seq: bool = True) -> str | bytes:
    """Remove carriage returns, bells and, if asked, colour sequences."""
    if isinstance(data, str):
        pattern = _CTRL_SEQ_STR if skip_ctrl_seq else _PLAIN_STR
        return pattern.sub("", data)
    pattern = _CTRL_SEQ_BYTES if skip_ctrl_seq else _PLAIN_BYTES
    return pattern.sub(b"", bytes(data))