"""Append-only chat history backed by a flat text file.

Each delivered message becomes one line::

    <timestamp> - [<username>]: <rendered text>

The whole file is loaded at startup so recent lines can be replayed to new
sessions or served by the status web app. Appends go through aiofiles and
are serialized by an asyncio lock, so concurrent writers never interleave
partial lines.
"""

from __future__ import annotations

import asyncio
import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import aiofiles

from CoolChat.core.server.exceptions import StorageFault

logger = logging.getLogger(__name__)

_LINE_RE = re.compile(r"^(?P<timestamp>.*?) - \[(?P<username>.*?)\]: (?P<text>.*)$")


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: str
    username: str
    text: str

    def to_line(self) -> str:
        return f"{self.timestamp} - [{self.username}]: {self.text}"

    @classmethod
    def from_line(cls, line: str) -> Optional[HistoryEntry]:
        """Parse a stored line; returns None for lines in an unknown format."""
        match = _LINE_RE.match(line.rstrip("\r\n"))
        if match is None:
            return None
        return cls(match["timestamp"], match["username"], match["text"])

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "username": self.username, "text": self.text}


class HistoryLog:
    """Durable, append-only record of delivered messages."""

    def __init__(self, path: str, time_format: str = "%Y-%m-%d %H:%M:%S"):
        self.path = Path(path)
        self.time_format = time_format
        self._entries: List[HistoryEntry] = []
        self._entries_lock = threading.Lock()
        self._write_lock = asyncio.Lock()
        self._file = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def format_timestamp(self, when: datetime) -> str:
        return when.strftime(self.time_format)

    async def open(self) -> int:
        """
        Load the existing history and open the file for appending.

        A file that cannot be opened leaves the log in degraded mode: the
        error is logged and every later append raises StorageFault.

        Returns:
            Number of entries loaded
        """
        loaded = await self.load()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = await aiofiles.open(self.path, mode="a", encoding="utf-8")
        except OSError as e:
            logger.error("Cannot open history file %s: %s", self.path, e)
            self._file = None
        return loaded

    async def load(self) -> int:
        """Read every stored entry into memory, replacing what was loaded before."""
        if not self.path.exists():
            logger.info("History file %s not found, starting empty", self.path)
            return 0

        entries: List[HistoryEntry] = []
        skipped = 0
        try:
            async with aiofiles.open(self.path, mode="r", encoding="utf-8", errors="replace") as f:
                async for line in f:
                    if not line.strip():
                        continue
                    entry = HistoryEntry.from_line(line)
                    if entry is None:
                        skipped += 1
                        continue
                    entries.append(entry)
        except OSError as e:
            logger.error("Cannot read history file %s: %s", self.path, e)
            return 0

        with self._entries_lock:
            self._entries = entries
        if skipped:
            logger.warning("Skipped %d malformed history lines in %s", skipped, self.path)
        logger.info("Loaded %d history entries from %s", len(entries), self.path)
        return len(entries)

    async def append(self, entry: HistoryEntry) -> None:
        """
        Append one entry and flush it to the file.

        Raises:
            StorageFault: The log is closed or the write failed
        """
        async with self._write_lock:
            if self._file is None:
                raise StorageFault(f"History file {self.path} is not open")
            try:
                await self._file.write(entry.to_line() + "\n")
                await self._file.flush()
            except (OSError, ValueError) as e:
                raise StorageFault(f"Cannot append to history file {self.path}: {e}") from e
            with self._entries_lock:
                self._entries.append(entry)

    def recent(self, limit: Optional[int] = None) -> List[HistoryEntry]:
        """Return a copy of the last ``limit`` entries (all when None)."""
        with self._entries_lock:
            if limit is None:
                return list(self._entries)
            if limit <= 0:
                return []
            return self._entries[-limit:]

    def __len__(self) -> int:
        with self._entries_lock:
            return len(self._entries)

    async def close(self) -> None:
        async with self._write_lock:
            if self._file is None:
                return
            try:
                await self._file.close()
            except OSError as e:
                logger.error("Error closing history file %s: %s", self.path, e)
            finally:
                self._file = None
        logger.debug("History file %s closed", self.path)
