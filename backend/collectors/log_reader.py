#!/usr/bin/env python3
"""
Log Reader - whole-file and incremental access to one growing log file

Whole-file reads are cached per reader until the file's mtime, size or
inode changes. Incremental reads start from a caller-owned cursor and
return the advanced cursor. Only complete (newline terminated) lines are
ever returned, so a line being written is picked up by the next read.
"""

import logging
import os
import threading
from typing import List, Optional, Tuple
from dataclasses import dataclass

from models import LogFileCursor

logger = logging.getLogger(__name__)


class LogFileUnavailable(Exception):
    """The log file cannot be opened or read"""

    def __init__(self, path: str, reason: Optional[BaseException] = None):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot open log file: {path}" + (f": {reason}" if reason else ""))


@dataclass(frozen=True)
class LogSnapshot:
    """Complete lines of the file at one point in time"""
    lines: Tuple[str, ...]
    size: int  # byte offset just past the last complete line
    mtime: float
    inode: int


def _complete_length(data: bytes) -> int:
    """Length of the prefix of data that ends with a newline"""
    end = data.rfind(b'\n')
    return end + 1 if end >= 0 else 0


def _decode_lines(data: bytes) -> List[str]:
    if not data:
        return []
    # data ends with a newline, so the last element is always empty
    return data.decode('utf-8', errors='replace').split('\n')[:-1]


class LogReader:
    """Reads one log file in whole-file (cached) or cursor-based mode"""

    def __init__(self, path: str):
        self.path = str(path)
        self.lock = threading.Lock()
        self._snapshot: Optional[LogSnapshot] = None
        self._snapshot_key = None
        self.cache_hits = 0
        self.cache_misses = 0

    def _open(self):
        try:
            return open(self.path, 'rb')
        except OSError as e:
            logger.warning(f"Cannot open log file {self.path}: {e}")
            raise LogFileUnavailable(self.path, e) from e

    def read_all(self) -> LogSnapshot:
        """All complete lines of the file, cached until the file changes"""
        with self._open() as f:
            st = os.fstat(f.fileno())
            key = (st.st_mtime_ns, st.st_size, st.st_ino)

            with self.lock:
                if self._snapshot is not None and self._snapshot_key == key:
                    self.cache_hits += 1
                    return self._snapshot

            try:
                data = f.read()
            except OSError as e:
                raise LogFileUnavailable(self.path, e) from e

        consumed = _complete_length(data)
        snapshot = LogSnapshot(
            lines=tuple(_decode_lines(data[:consumed])),
            size=consumed,
            mtime=st.st_mtime,
            inode=st.st_ino,
        )
        with self.lock:
            self._snapshot = snapshot
            self._snapshot_key = key
            self.cache_misses += 1

        logger.debug(f"Loaded {len(snapshot.lines)} lines from {self.path}")
        return snapshot

    def invalidate(self):
        with self.lock:
            self._snapshot = None
            self._snapshot_key = None

    def read_from(self, cursor: Optional[LogFileCursor]) -> Tuple[List[str], LogFileCursor]:
        """
        Read the complete lines appended since the cursor.

        A cursor from a different inode, or past the end of the file, means
        the file was rotated or truncated; reading restarts at byte 0.
        """
        offset = cursor.byte_offset if cursor and cursor.byte_offset and cursor.byte_offset > 0 else 0

        with self._open() as f:
            st = os.fstat(f.fileno())
            if cursor is not None and cursor.inode is not None and cursor.inode != st.st_ino:
                logger.info(f"{self.path} was rotated (inode {cursor.inode} -> {st.st_ino}), reading from start")
                offset = 0
            elif offset > st.st_size:
                logger.info(f"{self.path} was truncated ({st.st_size} < {offset}), reading from start")
                offset = 0

            try:
                f.seek(offset)
                data = f.read()
            except OSError as e:
                raise LogFileUnavailable(self.path, e) from e

        consumed = _complete_length(data)
        lines = _decode_lines(data[:consumed])
        new_cursor = LogFileCursor(file_path=self.path, byte_offset=offset + consumed, inode=st.st_ino)

        logger.debug(f"Read {len(lines)} new lines from {self.path} at offset {offset}")
        return lines, new_cursor
