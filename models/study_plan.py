"""
Study Plan Models
Per-day plans and their sessions, plus the repository that swaps a user's
whole plan set in one transaction.
"""

import logging
from datetime import date, datetime
from datetime import date as plan_date_type
from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, mapped_column, relationship

from services import planning_domain as domain
from .base import Base, JSONBCompatible, db

if TYPE_CHECKING:
    from .user import User

logger = logging.getLogger(__name__)


class StudyPlan(Base):
    __tablename__ = "study_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date: Mapped[plan_date_type] = mapped_column(Date, nullable=False)
    total_study_hours: Mapped[float] = mapped_column(Float, default=0.0)
    available_hours: Mapped[float] = mapped_column(Float, default=0.0)
    is_overloaded: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    user: Mapped["User"] = relationship(back_populates="study_plans")
    sessions: Mapped[List["StudySession"]] = relationship(
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="StudySession.start_time",
    )

    __table_args__ = (
        UniqueConstraint('user_id', 'date', name='uq_study_plans_user_date'),
    )

    def __repr__(self):
        return f'<StudyPlan {self.date} user_id={self.user_id}>'

    def to_domain(self) -> domain.StudyPlan:
        return domain.StudyPlan(
            date=self.date,
            planned_tasks=[s.to_domain() for s in self.sessions],
            total_study_hours=self.total_study_hours or 0.0,
            available_hours=self.available_hours or 0.0,
            is_overloaded=bool(self.is_overloaded),
        )

    @classmethod
    def from_domain(cls, user_id: int, plan: domain.StudyPlan) -> "StudyPlan":
        row = cls(
            user_id=user_id,
            date=plan.date,
            total_study_hours=plan.total_study_hours,
            available_hours=plan.available_hours,
            is_overloaded=plan.is_overloaded,
        )
        row.sessions = [StudySession.from_domain(s) for s in plan.planned_tasks]
        return row

    def to_dict(self) -> Dict[str, Any]:
        return self.to_domain().to_dict()


class StudySession(Base):
    __tablename__ = "study_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("study_plans.id", ondelete="CASCADE"), nullable=False)
    task_id: Mapped[int] = mapped_column(ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    session_number: Mapped[int] = mapped_column(Integer, default=1)

    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    allocated_hours: Mapped[float] = mapped_column(Float, nullable=False)
    is_flexible: Mapped[bool] = mapped_column(Boolean, default=True)
    is_manual_override: Mapped[bool] = mapped_column(Boolean, default=False)

    # Progress
    done: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(16), default="scheduled")
    actual_hours: Mapped[Optional[float]] = mapped_column(Float)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Rescheduling
    original_time: Mapped[Optional[str]] = mapped_column(String(5))
    original_date: Mapped[Optional[date]] = mapped_column(Date)
    rescheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    scheduling_metadata: Mapped[Optional[dict]] = mapped_column(JSONBCompatible)
    skip_metadata: Mapped[Optional[dict]] = mapped_column(JSONBCompatible)

    plan: Mapped["StudyPlan"] = relationship(back_populates="sessions")

    __table_args__ = (
        Index('ix_study_sessions_plan', 'plan_id'),
        Index('ix_study_sessions_task', 'task_id', 'session_number'),
    )

    def __repr__(self):
        return f'<StudySession task_id={self.task_id} #{self.session_number} {self.start_time}-{self.end_time}>'

    def to_domain(self) -> domain.StudySession:
        return domain.StudySession.from_dict({
            'task_id': self.task_id,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'allocated_hours': self.allocated_hours,
            'session_number': self.session_number,
            'is_flexible': self.is_flexible,
            'is_manual_override': self.is_manual_override,
            'done': self.done,
            'status': self.status,
            'actual_hours': self.actual_hours,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'original_time': self.original_time,
            'original_date': self.original_date,
            'rescheduled_at': self.rescheduled_at.isoformat() if self.rescheduled_at else None,
            'scheduling_metadata': self.scheduling_metadata,
            'skip_metadata': self.skip_metadata,
        })

    @classmethod
    def from_domain(cls, session: domain.StudySession) -> "StudySession":
        return cls(
            task_id=int(session.task_id),
            session_number=session.session_number,
            start_time=session.start_time,
            end_time=session.end_time,
            allocated_hours=session.allocated_hours,
            is_flexible=session.is_flexible,
            is_manual_override=session.is_manual_override,
            done=session.done,
            status=session.status.value,
            actual_hours=session.actual_hours,
            completed_at=session.completed_at,
            original_time=session.original_time,
            original_date=session.original_date,
            rescheduled_at=session.rescheduled_at,
            scheduling_metadata=session.scheduling_metadata.to_dict() if session.scheduling_metadata else None,
            skip_metadata=session.skip_metadata.to_dict() if session.skip_metadata else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.to_domain().to_dict()


class StudyPlanRepository:
    """Loads and replaces one user's study plans."""

    def __init__(self, user_id: int):
        self.user_id = user_id

    def load(self) -> List[domain.StudyPlan]:
        rows = (
            StudyPlan.query
            .filter_by(user_id=self.user_id)
            .order_by(StudyPlan.date)
            .all()
        )
        return [row.to_domain() for row in rows]

    def replace(self, plans: Iterable[domain.StudyPlan]) -> None:
        """Swap every stored plan for ``plans``; all or nothing."""
        plans = list(plans)
        try:
            for row in StudyPlan.query.filter_by(user_id=self.user_id).all():
                db.session.delete(row)
            db.session.flush()
            for plan in plans:
                db.session.add(StudyPlan.from_domain(self.user_id, plan))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to store study plans for user {self.user_id}: {e}")
            raise
        logger.info(f"Stored {len(plans)} study plans for user {self.user_id}")
