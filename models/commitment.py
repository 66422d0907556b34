"""
Fixed Commitment Model
Calendar entries that block study time. Weekday and date lists, per-weekday
timings and per-occurrence edits are stored as JSON.
"""

from datetime import date, datetime
from typing import Any, Dict, Optional, TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from services import planning_domain as domain
from .base import Base, JSONBCompatible

if TYPE_CHECKING:
    from .user import User


class FixedCommitment(Base):
    __tablename__ = "fixed_commitments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(64), default="Other")
    location: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)

    recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    days_of_week: Mapped[list] = mapped_column(JSONBCompatible, default=list)  # [0..6], 0 = Sunday
    specific_dates: Mapped[list] = mapped_column(JSONBCompatible, default=list)  # ["YYYY-MM-DD", ...]
    start_time: Mapped[Optional[str]] = mapped_column(String(5))
    end_time: Mapped[Optional[str]] = mapped_column(String(5))
    is_all_day: Mapped[bool] = mapped_column(Boolean, default=False)
    is_fixed: Mapped[bool] = mapped_column(Boolean, default=True)
    range_start: Mapped[Optional[date]] = mapped_column(Date)
    range_end: Mapped[Optional[date]] = mapped_column(Date)
    counts_toward_daily_hours: Mapped[bool] = mapped_column(Boolean, default=True)

    use_day_specific_timing: Mapped[bool] = mapped_column(Boolean, default=False)
    day_specific_timings: Mapped[list] = mapped_column(JSONBCompatible, default=list)
    deleted_occurrences: Mapped[list] = mapped_column(JSONBCompatible, default=list)
    modified_occurrences: Mapped[dict] = mapped_column(JSONBCompatible, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    user: Mapped["User"] = relationship(back_populates="commitments")

    def __repr__(self):
        return f'<FixedCommitment {self.id}: {self.title}>'

    def to_domain(self) -> domain.FixedCommitment:
        date_range = None
        if self.range_start and self.range_end:
            date_range = {'start_date': self.range_start, 'end_date': self.range_end}
        return domain.FixedCommitment.from_dict({
            'id': self.id,
            'title': self.title,
            'recurring': self.recurring,
            'days_of_week': self.days_of_week,
            'specific_dates': self.specific_dates,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'category': self.category,
            'location': self.location,
            'description': self.description,
            'is_all_day': self.is_all_day,
            'is_fixed': self.is_fixed,
            'date_range': date_range,
            'counts_toward_daily_hours': self.counts_toward_daily_hours,
            'use_day_specific_timing': self.use_day_specific_timing,
            'day_specific_timings': self.day_specific_timings,
            'deleted_occurrences': self.deleted_occurrences,
            'modified_occurrences': self.modified_occurrences,
        })

    def apply_domain(self, commitment: domain.FixedCommitment) -> None:
        data = commitment.to_dict()
        for key in (
            'title', 'recurring', 'days_of_week', 'specific_dates', 'start_time', 'end_time',
            'category', 'location', 'description', 'is_all_day', 'is_fixed',
            'counts_toward_daily_hours', 'use_day_specific_timing', 'day_specific_timings',
            'deleted_occurrences', 'modified_occurrences',
        ):
            setattr(self, key, data[key])
        if commitment.date_range:
            self.range_start = commitment.date_range.start_date
            self.range_end = commitment.date_range.end_date
        else:
            self.range_start = self.range_end = None

    def to_dict(self) -> Dict[str, Any]:
        payload = self.to_domain().to_dict()
        payload.update({
            'id': self.id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        })
        return payload
