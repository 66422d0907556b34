"""
Task Model
Flexible work items that the planner breaks into study sessions.
"""

from datetime import date, datetime
from typing import Any, Dict, Optional, TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from services import planning_domain as domain
from .base import Base

if TYPE_CHECKING:
    from .user import User


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Task content
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[Optional[str]] = mapped_column(String(64))

    # Scheduling inputs
    estimated_hours: Mapped[float] = mapped_column(Float, nullable=False)
    deadline: Mapped[Optional[date]] = mapped_column(Date)
    importance: Mapped[bool] = mapped_column(Boolean, default=False)
    deadline_type: Mapped[str] = mapped_column(String(16), default="hard")  # hard, soft, none
    target_frequency: Mapped[Optional[str]] = mapped_column(String(16))  # daily, weekly, 3x-week, flexible
    respect_frequency_for_deadlines: Mapped[bool] = mapped_column(Boolean, default=True)
    min_work_block: Mapped[Optional[int]] = mapped_column(Integer)  # minutes
    max_session_length: Mapped[Optional[float]] = mapped_column(Float)  # hours
    preferred_session_duration: Mapped[Optional[float]] = mapped_column(Float)  # hours
    is_one_time_task: Mapped[bool] = mapped_column(Boolean, default=False)
    start_date: Mapped[Optional[date]] = mapped_column(Date)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(16), default="pending")  # pending, completed
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    user: Mapped["User"] = relationship(back_populates="tasks")

    __table_args__ = (
        Index('ix_tasks_user_status', 'user_id', 'status'),
        Index('ix_tasks_user_deadline', 'user_id', 'deadline'),
    )

    def __repr__(self):
        return f'<Task {self.id}: {self.title[:50]}>'

    @property
    def is_overdue(self) -> bool:
        if not self.deadline or self.status == domain.TaskStatus.COMPLETED.value:
            return False
        return self.deadline < date.today()

    @property
    def days_until_deadline(self) -> Optional[int]:
        if not self.deadline:
            return None
        return (self.deadline - date.today()).days

    def to_domain(self) -> domain.Task:
        return domain.Task.from_dict({
            'id': self.id,
            'title': self.title,
            'estimated_hours': self.estimated_hours,
            'deadline': self.deadline,
            'importance': self.importance,
            'status': self.status,
            'description': self.description,
            'category': self.category,
            'deadline_type': self.deadline_type,
            'target_frequency': self.target_frequency,
            'respect_frequency_for_deadlines': self.respect_frequency_for_deadlines,
            'min_work_block': self.min_work_block,
            'max_session_length': self.max_session_length,
            'preferred_session_duration': self.preferred_session_duration,
            'is_one_time_task': self.is_one_time_task,
            'start_date': self.start_date,
        })

    def apply_domain(self, task: domain.Task) -> None:
        """Copy the editable fields of a domain task onto this row."""
        previous_status = self.status
        self.title = task.title
        self.description = task.description
        self.category = task.category
        self.estimated_hours = task.estimated_hours
        self.deadline = task.deadline
        self.importance = task.importance
        self.deadline_type = task.deadline_type.value
        self.target_frequency = task.target_frequency.value if task.target_frequency else None
        self.respect_frequency_for_deadlines = task.respect_frequency_for_deadlines
        self.min_work_block = task.min_work_block
        self.max_session_length = task.max_session_length
        self.preferred_session_duration = task.preferred_session_duration
        self.is_one_time_task = task.is_one_time_task
        self.start_date = task.start_date
        self.status = task.status.value
        if self.status == domain.TaskStatus.COMPLETED.value and previous_status != self.status:
            self.completed_at = datetime.now()
        elif self.status != domain.TaskStatus.COMPLETED.value:
            self.completed_at = None

    def to_dict(self) -> Dict[str, Any]:
        payload = self.to_domain().to_dict()
        payload.update({
            'id': self.id,
            'is_overdue': self.is_overdue,
            'days_until_deadline': self.days_until_deadline,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        })
        return payload
