from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class User(Base):
    """
    Registered employee.

    face_descriptor holds a JSON-encoded list of floats sampled from the
    registration frame; face_image holds that frame as a data URL.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("username", name="uq_user_username"),
        UniqueConstraint("email", name="uq_user_email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    password_hash = Column(String(256), nullable=False)
    face_descriptor = Column(Text, nullable=True)  # JSON-encoded vector
    face_image = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    entries = relationship(
        "TimeEntry",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TimeEntry.id",
    )

    def summary(self) -> dict:
        return {"id": self.id, "username": self.username, "email": self.email}


class TimeEntry(Base):
    """
    One shift. total_hours and overtime are derived from time_in/time_out
    and are only ever written by timesheet.py through timecalc.
    """

    __tablename__ = "time_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date = Column(Date, nullable=False)
    time_in = Column(Time, nullable=False)
    time_out = Column(Time, nullable=True)  # NULL while the shift is open
    total_hours = Column(Float, nullable=False, default=0.0)
    overtime = Column(Float, nullable=False, default=0.0)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="entries")

    @property
    def day(self) -> str:
        return self.date.strftime("%A")

    @property
    def is_open(self) -> bool:
        return self.time_out is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "day": self.day,
            "timeIn": self.time_in.strftime("%H:%M"),
            "timeOut": self.time_out.strftime("%H:%M") if self.time_out else None,
            "totalHours": round(self.total_hours, 2),
            "overtime": round(self.overtime, 2),
            "reason": self.reason,
        }
