"""
Persisted time entries for one user.

Entries are addressed by their position in insertion order, the same way
the dashboard list addresses them. Derived totals are always recomputed
here from the stored times.
"""

import logging
from datetime import date, datetime, time
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import IndexOutOfRange, ShiftStateError, StorageError, ValidationError
from models import TimeEntry, User
from timecalc import compute_totals, total_overtime

logger = logging.getLogger(__name__)


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Time entry %s failed", action)
        raise StorageError("Internal server error") from exc


def _apply_times(entry: TimeEntry, time_in: time, time_out: time) -> None:
    hours, extra = compute_totals(time_in, time_out)
    entry.time_in = time_in
    entry.time_out = time_out
    entry.total_hours = hours
    entry.overtime = extra


def list_entries(db: Session, user: User) -> List[TimeEntry]:
    return (
        db.query(TimeEntry)
        .filter(TimeEntry.user_id == user.id)
        .order_by(TimeEntry.id.asc())
        .all()
    )


def entry_at(db: Session, user: User, index: int) -> TimeEntry:
    entries = list_entries(db, user)
    if not 0 <= index < len(entries):
        raise IndexOutOfRange(index, len(entries))
    return entries[index]


def summarize(db: Session, user: User) -> dict:
    entries = list_entries(db, user)
    return {
        "entries": [entry.to_dict() for entry in entries],
        "totalOvertime": round(total_overtime(entries), 2),
    }


def open_entry(db: Session, user: User) -> Optional[TimeEntry]:
    return (
        db.query(TimeEntry)
        .filter(TimeEntry.user_id == user.id, TimeEntry.time_out.is_(None))
        .order_by(TimeEntry.id.desc())
        .first()
    )


def add_entry(
    db: Session,
    user: User,
    time_in: time,
    time_out: time,
    reason: Optional[str] = None,
    day: Optional[date] = None,
) -> TimeEntry:
    """Record a finished shift."""
    entry = TimeEntry(user_id=user.id, date=day or date.today(), reason=reason or None)
    _apply_times(entry, time_in, time_out)
    db.add(entry)
    _commit(db, "create")
    db.refresh(entry)
    logger.info("User id=%s added entry id=%s (%.2f h)", user.id, entry.id, entry.total_hours)
    return entry


def clock_in(db: Session, user: User, now: Optional[datetime] = None) -> TimeEntry:
    """Open a shift. Only one shift may be open at a time."""
    if open_entry(db, user) is not None:
        raise ShiftStateError("You already timed in!")
    now = now or datetime.now()
    entry = TimeEntry(
        user_id=user.id,
        date=now.date(),
        time_in=now.time().replace(microsecond=0),
        total_hours=0.0,
        overtime=0.0,
    )
    db.add(entry)
    _commit(db, "time-in")
    db.refresh(entry)
    return entry


def clock_out(
    db: Session, user: User, reason: Optional[str] = None, now: Optional[datetime] = None
) -> TimeEntry:
    """Close the open shift and compute its totals."""
    entry = open_entry(db, user)
    if entry is None:
        raise ShiftStateError("Please Time In first!")
    now = now or datetime.now()
    started = datetime.combine(entry.date, entry.time_in)
    hours, extra = compute_totals(started, now)
    entry.time_out = now.time().replace(microsecond=0)
    entry.total_hours = hours
    entry.overtime = extra
    entry.reason = reason or None
    _commit(db, "time-out")
    db.refresh(entry)
    return entry


def edit_entry(
    db: Session,
    user: User,
    index: int,
    time_in: time,
    time_out: time,
    reason: Optional[str] = None,
    day: Optional[date] = None,
) -> TimeEntry:
    """Replace the times of the entry at `index`; totals follow the new times."""
    if time_in is None or time_out is None:
        raise ValidationError("Date, Time In, and Time Out are required!")
    entry = entry_at(db, user, index)
    _apply_times(entry, time_in, time_out)
    entry.reason = reason or None
    if day is not None:
        entry.date = day
    _commit(db, "edit")
    db.refresh(entry)
    return entry


def delete_entry(db: Session, user: User, index: int) -> None:
    entry = entry_at(db, user, index)
    db.delete(entry)
    _commit(db, "delete")
    logger.info("User id=%s deleted entry at position %s", user.id, index)
