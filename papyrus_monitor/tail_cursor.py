# Copyright (c) 2026 Squig-AI (squig-ai.com) — MIT License
# See LICENSE file for details.
"""
Byte-offset tail reader for a log file owned by another process.

The game keeps Papyrus.0.log open for writing, may lock it for a moment,
truncate it, or delete and recreate it when a new session starts. The cursor
only ever opens the file read-only and treats any read failure as "try again
on the next change".
"""

import codecs
import logging
import os
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

EPOCH = 0

# (bom, codec) pairs, longest first
_BOMS = (
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)


def detect_encoding(filepath: str, fallback: str = "utf-8") -> Tuple[str, int]:
    """
    Sniff the byte-order mark of a file.

    Returns (codec name, BOM length in bytes). Files without a BOM, empty
    files and unreadable files use `fallback`.
    """
    try:
        with open(filepath, "rb") as f:
            head = f.read(4)
    except OSError:
        return fallback, 0
    for bom, codec in _BOMS:
        if head.startswith(bom):
            return codec, len(bom)
    return fallback, 0


def _file_id(stat: os.stat_result) -> Tuple[int, int]:
    return stat.st_dev, stat.st_ino


def _decode_lines(data: bytes, encoding: str) -> List[str]:
    return data.decode(encoding, errors="replace").splitlines()


def _complete_length(data: bytes, encoding: str) -> int:
    """Number of bytes up to and including the last line break in `data`."""
    newline = "\n".encode(encoding)
    end = data.rfind(newline)
    # Multi-byte encodings: only a match on a code unit boundary counts
    while end > 0 and end % len(newline):
        end = data.rfind(newline, 0, end)
    return end + len(newline) if end >= 0 else 0


def read_all_lines(filepath: str, fallback_encoding: str = "utf-8") -> Tuple[List[str], int]:
    """
    Read every complete line of the file in one pass.

    Returns (lines, bytes consumed including the BOM). An unterminated last
    line is left for a later read. A missing file reads as empty. Other
    OSErrors (e.g. the game holding a lock) propagate to the caller.
    """
    if not os.path.isfile(filepath):
        return [], 0
    encoding, bom_length = detect_encoding(filepath, fallback_encoding)
    with open(filepath, "rb") as f:
        data = f.read()
    body = data[bom_length:]
    complete = _complete_length(body, encoding)
    return _decode_lines(body[:complete], encoding), bom_length + complete


class TailCursor:
    """Tracks how far into a file we have read and yields only appended lines."""

    def __init__(self, fallback_encoding: str = "utf-8"):
        self._filepath = None
        self._offset = 0
        self._modified_ns = EPOCH
        self._file_id = None
        self._lines_read = 0
        self._reset_count = 0
        self._fallback_encoding = fallback_encoding

    @property
    def filepath(self) -> Optional[str]:
        return self._filepath

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def modified_ns(self) -> int:
        return self._modified_ns

    @property
    def lines_read(self) -> int:
        """Lines returned since the last (re)initialization or reset."""
        return self._lines_read

    @property
    def reset_count(self) -> int:
        """How many truncations or recreations have been detected."""
        return self._reset_count

    def initialize(self, filepath: str, start_at_end: bool = False):
        """Attach the cursor to a file, at its start or (optionally) its end."""
        if not filepath:
            raise ValueError("File path cannot be empty")

        self._filepath = filepath
        self._lines_read = 0
        stat = self._stat()
        if stat is None:
            self._offset = 0
            self._modified_ns = EPOCH
            self._file_id = None
        else:
            self._offset = stat.st_size if start_at_end else 0
            self._modified_ns = stat.st_mtime_ns
            self._file_id = _file_id(stat)
        logger.debug("Cursor on %s (offset: %d)", filepath, self._offset)

    def reset(self):
        """Go back to the beginning of the file."""
        self._offset = 0
        self._lines_read = 0
        stat = self._stat()
        if stat is None:
            self._modified_ns = EPOCH
            self._file_id = None
        else:
            self._modified_ns = stat.st_mtime_ns
            self._file_id = _file_id(stat)

    def fast_forward(self, offset: int, lines_read: Optional[int] = None):
        """Place the cursor at a byte offset already accounted for elsewhere."""
        if offset < 0:
            raise ValueError("Offset cannot be negative")
        self._offset = offset
        if lines_read is not None:
            self._lines_read = lines_read
        stat = self._stat()
        if stat is not None:
            self._modified_ns = stat.st_mtime_ns
            self._file_id = _file_id(stat)

    def has_new_content(self) -> bool:
        """Cheap stat-only check run before the actual read."""
        stat = self._stat()
        if stat is None:
            return False
        return (
            stat.st_size != self._offset
            or stat.st_mtime_ns > self._modified_ns
            or self._was_replaced(stat)
        )

    def read_new_lines(self) -> List[str]:
        """
        Return the complete lines appended since the previous read.

        A trailing line without a line break stays unread until the writer
        finishes it.
        """
        if not self._filepath:
            return []

        try:
            stat = os.stat(self._filepath)

            # File was truncated or recreated (new game session)
            if stat.st_size < self._offset or self._was_replaced(stat):
                logger.info("Log was truncated or recreated: %s", self._filepath)
                self._reset_count += 1
                self.reset()

            encoding, bom_length = detect_encoding(self._filepath, self._fallback_encoding)
            start = max(self._offset, bom_length)
            with open(self._filepath, "rb") as f:
                f.seek(start)
                data = f.read()
            stat = os.stat(self._filepath)

        except FileNotFoundError:
            return []
        except OSError as e:
            # Most likely the game holds the file; the next change retries
            logger.debug("Read skipped for %s: %s", self._filepath, e)
            return []

        complete = _complete_length(data, encoding)
        self._offset = start + complete
        self._modified_ns = stat.st_mtime_ns
        self._file_id = _file_id(stat)
        if not complete:
            return []
        lines = _decode_lines(data[:complete], encoding)
        self._lines_read += len(lines)
        return lines

    def _was_replaced(self, stat: os.stat_result) -> bool:
        return self._file_id is not None and _file_id(stat) != self._file_id

    def _stat(self) -> Optional[os.stat_result]:
        if not self._filepath:
            return None
        try:
            return os.stat(self._filepath)
        except OSError:
            return None
