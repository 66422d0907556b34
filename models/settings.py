"""
User Settings Model
One row per user. Study-window overrides are stored as JSON.
"""

from datetime import datetime
from typing import Any, Dict, TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from services import planning_domain as domain
from .base import Base, JSONBCompatible

if TYPE_CHECKING:
    from .user import User

_DEFAULTS = domain.UserSettings()


class UserSettings(Base):
    __tablename__ = "user_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True
    )

    daily_available_hours: Mapped[float] = mapped_column(Float, default=_DEFAULTS.daily_available_hours)
    work_days: Mapped[list] = mapped_column(JSONBCompatible, default=lambda: list(_DEFAULTS.work_days))
    buffer_days: Mapped[int] = mapped_column(Integer, default=_DEFAULTS.buffer_days)
    min_session_length: Mapped[int] = mapped_column(Integer, default=_DEFAULTS.min_session_length)
    buffer_time_between_sessions: Mapped[int] = mapped_column(Integer, default=_DEFAULTS.buffer_time_between_sessions)
    short_break_duration: Mapped[int] = mapped_column(Integer, default=_DEFAULTS.short_break_duration)
    long_break_duration: Mapped[int] = mapped_column(Integer, default=_DEFAULTS.long_break_duration)
    max_consecutive_hours: Mapped[float] = mapped_column(Float, default=_DEFAULTS.max_consecutive_hours)
    study_window_start_hour: Mapped[int] = mapped_column(Integer, default=_DEFAULTS.study_window_start_hour)
    study_window_end_hour: Mapped[int] = mapped_column(Integer, default=_DEFAULTS.study_window_end_hour)
    study_plan_mode: Mapped[str] = mapped_column(String(16), default=_DEFAULTS.study_plan_mode.value)
    auto_complete_sessions: Mapped[bool] = mapped_column(Boolean, default=False)
    enable_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    date_specific_study_windows: Mapped[list] = mapped_column(JSONBCompatible, default=list)
    day_specific_study_windows: Mapped[list] = mapped_column(JSONBCompatible, default=list)

    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    user: Mapped["User"] = relationship(back_populates="settings")

    def __repr__(self):
        return f'<UserSettings user_id={self.user_id}>'

    @classmethod
    def for_user(cls, user_id: int) -> "UserSettings":
        """Return the user's row, creating it with defaults (unflushed) when missing."""
        row = cls.query.filter_by(user_id=user_id).first()
        if row is None:
            row = cls(user_id=user_id)
            row.apply_domain(domain.UserSettings())
        return row

    def to_domain(self) -> domain.UserSettings:
        return domain.UserSettings.from_dict({
            key: value for key, value in self._columns().items() if value is not None
        })

    def apply_domain(self, settings: domain.UserSettings) -> None:
        for key, value in settings.to_dict().items():
            setattr(self, key, value)

    def to_dict(self) -> Dict[str, Any]:
        return self.to_domain().to_dict()

    def _columns(self) -> Dict[str, Any]:
        return {key: getattr(self, key) for key in _DEFAULTS.to_dict()}
