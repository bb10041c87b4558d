"""
history_store.py — durable, newest-first log of past analyses.

The whole log is one JSON array stored under STORE_KEY in database.py's
key-value table. Every append rewrites the full array, so the persisted
copy is never shorter than what was visible in memory; at worst it is one
append behind if a write failed.

Loading never raises: anything that is not a JSON array of objects is
treated as corruption, logged, and reset to "[]".
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Iterable, Optional, Union

import config
import database as db

logger = logging.getLogger(__name__)

STORE_KEY = "scanHistory"

# Values some front ends write for "nothing stored yet"
_MISSING_SENTINELS = {"", "undefined", "null"}


@dataclass(frozen=True)
class HistoryRecord:
    id: Optional[Union[int, str]]
    image_src: Optional[str]        # storage encoding (data URI)
    analysis_result: Optional[str]
    timestamp: Optional[str]        # locale-formatted

    _FIELDS = (
        # (attribute, JSON key, accepted types)
        ("id", "id", (int, str)),
        ("image_src", "imageSrc", (str,)),
        ("analysis_result", "analysisResult", (str,)),
        ("timestamp", "timestamp", (str,)),
    )

    @classmethod
    def from_dict(cls, raw: dict) -> "HistoryRecord":
        """Decode one persisted object. Missing or wrongly-typed fields become None."""
        values = {}
        for attr, key, types in cls._FIELDS:
            value = raw.get(key)
            if isinstance(value, bool) or not isinstance(value, types):
                value = None
            values[attr] = value
        return cls(**values)

    def to_dict(self) -> dict:
        return {
            key: getattr(self, attr)
            for attr, key, _ in self._FIELDS
            if getattr(self, attr) is not None
        }

    @property
    def is_complete(self) -> bool:
        return bool(
            self.id not in (None, "")
            and self.image_src
            and self.analysis_result
            and self.timestamp
        )


HistoryLog = tuple[HistoryRecord, ...]


class PersistenceCorruption(ValueError):
    """Persisted history is not a JSON array of objects."""


def parse_history(raw: str) -> HistoryLog:
    """Decode the persisted JSON. Raises PersistenceCorruption on any shape mismatch."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PersistenceCorruption(f"not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise PersistenceCorruption(f"expected a JSON array, got {type(data).__name__}")
    records = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise PersistenceCorruption(f"element {i} is {type(item).__name__}, not an object")
        records.append(HistoryRecord.from_dict(item))
    return tuple(records)


def serialize_history(log: Iterable[HistoryRecord]) -> str:
    return json.dumps([r.to_dict() for r in log], ensure_ascii=False)


def visible_records(log: Iterable[HistoryRecord]) -> list[HistoryRecord]:
    """Records safe to display; malformed ones are skipped, not fatal."""
    return [r for r in log if r.is_complete]


class RecordIdGenerator:
    """
    Millisecond timestamps as ids, bumped so every id is strictly greater
    than the previous one even for captures in the same millisecond.
    """

    def __init__(self, clock=time.time):
        self._clock = clock
        self._last = 0

    def observe(self, log: Iterable[HistoryRecord]) -> None:
        """Make sure future ids sort after every integer id already in log."""
        for r in log:
            if isinstance(r.id, int) and r.id > self._last:
                self._last = r.id

    def next(self) -> int:
        candidate = int(self._clock() * 1000)
        self._last = max(candidate, self._last + 1)
        return self._last


class HistoryStore:
    """Single owner of the persisted history value."""

    def __init__(self, key: str = STORE_KEY, max_records: Optional[int] = None):
        self.key = key
        self.max_records = config.HISTORY_MAX_RECORDS if max_records is None else max_records
        self.last_write_failed = False

    async def load(self) -> HistoryLog:
        try:
            raw = await db.get_item(self.key)
        except Exception as exc:
            logger.error("history: could not read %r: %s", self.key, exc)
            return ()

        if raw is None or raw.strip() in _MISSING_SENTINELS:
            return ()

        try:
            log = parse_history(raw)
        except PersistenceCorruption as exc:
            logger.warning("history: corrupt value under %r (%s), resetting", self.key, exc)
            await self._write("[]")
            return ()

        logger.info("history: loaded %d record(s)", len(log))
        return log

    async def append(self, record: HistoryRecord, log: HistoryLog) -> HistoryLog:
        """Return a new log with record first, and persist all of it."""
        new_log = (record,) + tuple(log)
        if self.max_records > 0 and len(new_log) > self.max_records:
            logger.info("history: dropping %d oldest record(s)", len(new_log) - self.max_records)
            new_log = new_log[: self.max_records]
        await self._write(serialize_history(new_log))
        return new_log

    async def reset(self) -> HistoryLog:
        await self._write("[]")
        return ()

    async def _write(self, value: str) -> None:
        try:
            await db.set_item(self.key, value)
        except Exception as exc:
            # The next append rewrites the full log, which retries this write.
            self.last_write_failed = True
            logger.warning("history: write to %r failed: %s", self.key, exc)
        else:
            self.last_write_failed = False
