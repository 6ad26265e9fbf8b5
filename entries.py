"""
Client-held view of a user's time entries and the in-progress shift.

EntryList keeps entries in insertion order and persists every change to a
simple key-value store keyed by user id. ShiftTracker drives the
time-in / time-out / submit cycle that produces a new entry.
"""

import json
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, time
from enum import Enum
from typing import Iterator, List, MutableMapping, Optional

from errors import IndexOutOfRange, ShiftStateError
from timecalc import compute_totals, total_overtime, weekday_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeEntryRecord:
    date: date
    time_in: time
    time_out: time
    total_hours: float
    overtime: float
    reason: str = ""

    @property
    def day(self) -> str:
        return weekday_name(self.date)

    @classmethod
    def from_times(
        cls, day: date, time_in: time, time_out: time, reason: str = ""
    ) -> "TimeEntryRecord":
        hours, extra = compute_totals(time_in, time_out)
        return cls(day, time_in, time_out, hours, extra, reason)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "day": self.day,
            "timeIn": self.time_in.strftime("%H:%M"),
            "timeOut": self.time_out.strftime("%H:%M"),
            "totalHours": self.total_hours,
            "overtime": self.overtime,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TimeEntryRecord":
        return cls(
            date=date.fromisoformat(data["date"]),
            time_in=time.fromisoformat(data["timeIn"]),
            time_out=time.fromisoformat(data["timeOut"]),
            total_hours=float(data["totalHours"]),
            overtime=float(data["overtime"]),
            reason=data.get("reason") or "",
        )


class EntryStore:
    """Key-value backing store: one JSON list per user under entries_<id>."""

    def __init__(self, backend: Optional[MutableMapping[str, str]] = None):
        self._backend: MutableMapping[str, str] = {} if backend is None else backend

    @staticmethod
    def key_for(user_id: int) -> str:
        return f"entries_{user_id}"

    def load(self, user_id: int) -> List[TimeEntryRecord]:
        raw = self._backend.get(self.key_for(user_id))
        if not raw:
            return []
        return [TimeEntryRecord.from_dict(item) for item in json.loads(raw)]

    def save(self, user_id: int, records: List[TimeEntryRecord]) -> None:
        self._backend[self.key_for(user_id)] = json.dumps([r.to_dict() for r in records])

    def clear(self, user_id: int) -> None:
        self._backend.pop(self.key_for(user_id), None)


class EntryList:
    """Ordered entries for one user, supporting append, edit and remove."""

    def __init__(self, user_id: int, store: EntryStore):
        self.user_id = user_id
        self._store = store
        self._entries: List[TimeEntryRecord] = store.load(user_id)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> TimeEntryRecord:
        self._check_index(index)
        return self._entries[index]

    def __iter__(self) -> Iterator[TimeEntryRecord]:
        return iter(list(self._entries))

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._entries):
            raise IndexOutOfRange(index, len(self._entries))

    def _persist(self) -> None:
        self._store.save(self.user_id, self._entries)

    def append(self, entry: TimeEntryRecord) -> None:
        self._entries.append(entry)
        self._persist()

    def edit(
        self,
        index: int,
        new_time_in: time,
        new_time_out: time,
        new_reason: str,
        new_date: Optional[date] = None,
    ) -> TimeEntryRecord:
        self._check_index(index)
        hours, extra = compute_totals(new_time_in, new_time_out)
        current = self._entries[index]
        updated = replace(
            current,
            date=new_date or current.date,
            time_in=new_time_in,
            time_out=new_time_out,
            total_hours=hours,
            overtime=extra,
            reason=new_reason,
        )
        self._entries[index] = updated
        self._persist()
        return updated

    def remove(self, index: int) -> TimeEntryRecord:
        self._check_index(index)
        removed = self._entries.pop(index)
        self._persist()
        return removed

    def total_overtime(self) -> float:
        return total_overtime(self._entries)


class ShiftState(Enum):
    NO_TIME_IN = "no_time_in"
    TIMED_IN = "timed_in"
    TIMED_OUT = "timed_out"


class ShiftTracker:
    """
    The one shift in progress. Nothing is stored until submit(), which
    hands back the finished entry and resets to NO_TIME_IN.
    """

    def __init__(self):
        self.time_in_at: Optional[datetime] = None
        self.time_out_at: Optional[datetime] = None

    @property
    def state(self) -> ShiftState:
        if self.time_in_at is None:
            return ShiftState.NO_TIME_IN
        if self.time_out_at is None:
            return ShiftState.TIMED_IN
        return ShiftState.TIMED_OUT

    def time_in(self, now: Optional[datetime] = None) -> datetime:
        if self.state is not ShiftState.NO_TIME_IN:
            raise ShiftStateError("You already timed in!")
        self.time_in_at = now or datetime.now()
        return self.time_in_at

    def time_out(self, now: Optional[datetime] = None) -> datetime:
        if self.state is not ShiftState.TIMED_IN:
            if self.state is ShiftState.NO_TIME_IN:
                raise ShiftStateError("Please Time In first!")
            raise ShiftStateError("You already timed out!")
        now = now or datetime.now()
        # validates ordering before the transition happens
        compute_totals(self.time_in_at, now)
        self.time_out_at = now
        return now

    def needs_reason(self) -> bool:
        """True once timed out with overtime, when policy asks for a reason."""
        if self.state is not ShiftState.TIMED_OUT:
            return False
        _, extra = compute_totals(self.time_in_at, self.time_out_at)
        return extra > 0

    def submit(self, reason: str = "") -> TimeEntryRecord:
        if self.state is not ShiftState.TIMED_OUT:
            raise ShiftStateError("Please Time In and Time Out first.")
        hours, extra = compute_totals(self.time_in_at, self.time_out_at)
        entry = TimeEntryRecord(
            date=self.time_in_at.date(),
            time_in=self.time_in_at.time(),
            time_out=self.time_out_at.time(),
            total_hours=hours,
            overtime=extra,
            reason=reason,
        )
        logger.debug("Shift submitted: %.2f h, %.2f h overtime", hours, extra)
        self.time_in_at = None
        self.time_out_at = None
        return entry

    def reset(self) -> None:
        self.time_in_at = None
        self.time_out_at = None
