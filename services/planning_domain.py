"""
Planning Domain Types
Plain dataclasses shared by every scheduling service.

Routes convert ORM rows into these objects (``to_domain()``) before calling
the scheduling services, so the services never touch the database session.
Day-of-week numbers follow the client convention: 0 = Sunday ... 6 = Saturday.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
ALL_DAY_INTERVAL: Tuple[int, int] = (0, MINUTES_PER_DAY - 1)


class SessionStatus(Enum):
    """Stored lifecycle state of a study session."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    RESCHEDULED = "rescheduled"
    REDISTRIBUTED = "redistributed"
    FAILED_REDISTRIBUTION = "failed_redistribution"


class SessionDisplayStatus(Enum):
    """Status derived at read time from the stored state and the clock."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    MISSED = "missed"
    OVERDUE = "overdue"
    RESCHEDULED = "rescheduled"


class ConflictType(Enum):
    STRICT = "strict"
    OVERRIDE = "override"


class DeadlineType(Enum):
    HARD = "hard"
    SOFT = "soft"
    NONE = "none"


class StudyPlanMode(Enum):
    EISENHOWER = "eisenhower"
    EVEN = "even"
    BALANCED = "balanced"


class TargetFrequency(Enum):
    DAILY = "daily"
    THREE_PER_WEEK = "3x-week"
    WEEKLY = "weekly"
    FLEXIBLE = "flexible"


class TaskStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# -----------------------------
# Time helpers
# -----------------------------

def time_to_minutes(value: Optional[str]) -> int:
    """Convert ``HH:MM`` to minutes after midnight. Missing values count as 0."""
    if not value:
        return 0
    parts = value.split(":")
    hours = int(parts[0]) if parts[0] else 0
    minutes = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])


def day_of_week(value: date) -> int:
    """Sunday-based weekday index used by commitments and work days."""
    return (value.weekday() + 1) % 7


def round_to_minute(hours: float) -> float:
    """Round an hour amount to whole minutes, e.g. 1.3333 -> 80/60."""
    return round(hours * 60) / 60


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _enum_value(enum_cls, value, default):
    if value is None:
        return default
    if isinstance(value, enum_cls):
        return value
    return enum_cls(value)


# -----------------------------
# Commitments
# -----------------------------

@dataclass
class DateRange:
    """Inclusive date range bounding a recurring commitment."""
    start_date: date
    end_date: date

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def overlaps(self, other: "DateRange") -> bool:
        return not (self.end_date < other.start_date or self.start_date > other.end_date)

    def to_dict(self) -> Dict[str, str]:
        return {"start_date": self.start_date.isoformat(), "end_date": self.end_date.isoformat()}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["DateRange"]:
        if not data or not data.get("start_date") or not data.get("end_date"):
            return None
        return cls(start_date=parse_date(data["start_date"]), end_date=parse_date(data["end_date"]))


@dataclass
class OccurrenceOverride:
    """Per-date edit of a single commitment occurrence."""
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    title: Optional[str] = None
    category: Optional[str] = None
    is_all_day: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "title": self.title,
            "category": self.category,
            "is_all_day": self.is_all_day,
        }.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OccurrenceOverride":
        return cls(
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
            title=data.get("title"),
            category=data.get("category"),
            is_all_day=data.get("is_all_day"),
        )


@dataclass
class DaySpecificTiming:
    day_of_week: int
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_all_day: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day_of_week": self.day_of_week,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "is_all_day": self.is_all_day,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DaySpecificTiming":
        return cls(
            day_of_week=int(data["day_of_week"]),
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
            is_all_day=bool(data.get("is_all_day", False)),
        )


@dataclass
class FixedCommitment:
    """A non-movable calendar entry that blocks study time."""
    title: str
    recurring: bool
    id: Optional[str] = None
    days_of_week: List[int] = field(default_factory=list)
    specific_dates: List[date] = field(default_factory=list)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    category: str = "Other"
    location: Optional[str] = None
    description: Optional[str] = None
    is_all_day: bool = False
    is_fixed: bool = True
    date_range: Optional[DateRange] = None
    counts_toward_daily_hours: bool = True
    use_day_specific_timing: bool = False
    day_specific_timings: List[DaySpecificTiming] = field(default_factory=list)
    deleted_occurrences: List[date] = field(default_factory=list)
    modified_occurrences: Dict[date, OccurrenceOverride] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "recurring": self.recurring,
            "days_of_week": list(self.days_of_week),
            "specific_dates": [d.isoformat() for d in self.specific_dates],
            "start_time": self.start_time,
            "end_time": self.end_time,
            "category": self.category,
            "location": self.location,
            "description": self.description,
            "is_all_day": self.is_all_day,
            "is_fixed": self.is_fixed,
            "date_range": self.date_range.to_dict() if self.date_range else None,
            "counts_toward_daily_hours": self.counts_toward_daily_hours,
            "use_day_specific_timing": self.use_day_specific_timing,
            "day_specific_timings": [t.to_dict() for t in self.day_specific_timings],
            "deleted_occurrences": [d.isoformat() for d in self.deleted_occurrences],
            "modified_occurrences": {
                d.isoformat(): o.to_dict() for d, o in self.modified_occurrences.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FixedCommitment":
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            title=data.get("title", ""),
            recurring=bool(data.get("recurring", False)),
            days_of_week=[int(d) for d in data.get("days_of_week") or []],
            specific_dates=[parse_date(d) for d in data.get("specific_dates") or []],
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
            category=data.get("category") or "Other",
            location=data.get("location"),
            description=data.get("description"),
            is_all_day=bool(data.get("is_all_day", False)),
            is_fixed=bool(data.get("is_fixed", True)),
            date_range=DateRange.from_dict(data.get("date_range")),
            counts_toward_daily_hours=bool(data.get("counts_toward_daily_hours", True)),
            use_day_specific_timing=bool(data.get("use_day_specific_timing", False)),
            day_specific_timings=[
                DaySpecificTiming.from_dict(t) for t in data.get("day_specific_timings") or []
            ],
            deleted_occurrences=[parse_date(d) for d in data.get("deleted_occurrences") or []],
            modified_occurrences={
                parse_date(d): OccurrenceOverride.from_dict(o)
                for d, o in (data.get("modified_occurrences") or {}).items()
            },
        )


# -----------------------------
# Tasks
# -----------------------------

@dataclass
class Task:
    """A flexible work item broken into study sessions."""
    id: str
    title: str
    estimated_hours: float
    deadline: Optional[date] = None
    importance: bool = False
    status: TaskStatus = TaskStatus.PENDING
    description: str = ""
    category: Optional[str] = None
    deadline_type: DeadlineType = DeadlineType.HARD
    target_frequency: Optional[TargetFrequency] = None
    respect_frequency_for_deadlines: bool = True
    min_work_block: Optional[int] = None  # minutes
    max_session_length: Optional[float] = None  # hours
    preferred_session_duration: Optional[float] = None  # hours
    is_one_time_task: bool = False
    start_date: Optional[date] = None

    @property
    def has_deadline(self) -> bool:
        return self.deadline is not None and self.deadline_type != DeadlineType.NONE

    @property
    def is_pending(self) -> bool:
        return self.status == TaskStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "estimated_hours": self.estimated_hours,
            "deadline": _iso(self.deadline),
            "importance": self.importance,
            "status": self.status.value,
            "description": self.description,
            "category": self.category,
            "deadline_type": self.deadline_type.value,
            "target_frequency": self.target_frequency.value if self.target_frequency else None,
            "respect_frequency_for_deadlines": self.respect_frequency_for_deadlines,
            "min_work_block": self.min_work_block,
            "max_session_length": self.max_session_length,
            "preferred_session_duration": self.preferred_session_duration,
            "is_one_time_task": self.is_one_time_task,
            "start_date": _iso(self.start_date),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            estimated_hours=float(data.get("estimated_hours") or 0),
            deadline=parse_date(data.get("deadline")),
            importance=bool(data.get("importance", False)),
            status=_enum_value(TaskStatus, data.get("status"), TaskStatus.PENDING),
            description=data.get("description") or "",
            category=data.get("category"),
            deadline_type=_enum_value(DeadlineType, data.get("deadline_type"), DeadlineType.HARD),
            target_frequency=_enum_value(TargetFrequency, data.get("target_frequency"), None),
            respect_frequency_for_deadlines=bool(data.get("respect_frequency_for_deadlines", True)),
            min_work_block=data.get("min_work_block"),
            max_session_length=data.get("max_session_length"),
            preferred_session_duration=data.get("preferred_session_duration"),
            is_one_time_task=bool(data.get("is_one_time_task", False)),
            start_date=parse_date(data.get("start_date")),
        )


# -----------------------------
# Sessions and plans
# -----------------------------

@dataclass
class SlotRef:
    date: date
    start_time: str
    end_time: str

    def to_dict(self) -> Dict[str, str]:
        return {"date": self.date.isoformat(), "start_time": self.start_time, "end_time": self.end_time}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SlotRef":
        return cls(date=parse_date(data["date"]), start_time=data["start_time"], end_time=data["end_time"])


@dataclass
class RescheduleEntry:
    from_slot: SlotRef
    to_slot: SlotRef
    timestamp: datetime
    reason: str  # missed, manual, conflict, redistribution
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_slot.to_dict(),
            "to": self.to_slot.to_dict(),
            "timestamp": self.timestamp.isoformat(),
            "reason": self.reason,
            "success": self.success,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RescheduleEntry":
        return cls(
            from_slot=SlotRef.from_dict(data["from"]),
            to_slot=SlotRef.from_dict(data["to"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            reason=data.get("reason", "manual"),
            success=bool(data.get("success", True)),
        )


@dataclass
class SchedulingMetadata:
    original_slot: Optional[SlotRef] = None
    reschedule_history: List[RescheduleEntry] = field(default_factory=list)
    priority: Optional[float] = None
    failure_reasons: List[str] = field(default_factory=list)
    state: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_slot": self.original_slot.to_dict() if self.original_slot else None,
            "reschedule_history": [e.to_dict() for e in self.reschedule_history],
            "priority": self.priority,
            "failure_reasons": list(self.failure_reasons),
            "state": self.state,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["SchedulingMetadata"]:
        if not data:
            return None
        original = data.get("original_slot")
        return cls(
            original_slot=SlotRef.from_dict(original) if original else None,
            reschedule_history=[RescheduleEntry.from_dict(e) for e in data.get("reschedule_history") or []],
            priority=data.get("priority"),
            failure_reasons=list(data.get("failure_reasons") or []),
            state=data.get("state"),
        )


@dataclass
class SkipMetadata:
    skipped_at: datetime
    reason: str = "user_choice"  # user_choice, conflict, overload
    partial_hours: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "skipped_at": self.skipped_at.isoformat(),
            "reason": self.reason,
            "partial_hours": self.partial_hours,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["SkipMetadata"]:
        if not data:
            return None
        return cls(
            skipped_at=datetime.fromisoformat(data["skipped_at"]),
            reason=data.get("reason", "user_choice"),
            partial_hours=data.get("partial_hours"),
        )


@dataclass
class StudySession:
    task_id: str
    start_time: str
    end_time: str
    allocated_hours: float
    session_number: int = 1
    is_flexible: bool = True
    is_manual_override: bool = False
    done: bool = False
    status: SessionStatus = SessionStatus.SCHEDULED
    actual_hours: Optional[float] = None
    completed_at: Optional[datetime] = None
    original_time: Optional[str] = None
    original_date: Optional[date] = None
    rescheduled_at: Optional[datetime] = None
    scheduling_metadata: Optional[SchedulingMetadata] = None
    skip_metadata: Optional[SkipMetadata] = None

    @property
    def session_key(self) -> str:
        return f"{self.task_id}-{self.session_number}"

    @property
    def is_skipped(self) -> bool:
        return self.status == SessionStatus.SKIPPED

    @property
    def is_completed(self) -> bool:
        return self.done or self.status == SessionStatus.COMPLETED

    @property
    def interval(self) -> Tuple[int, int]:
        return time_to_minutes(self.start_time), time_to_minutes(self.end_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "allocated_hours": self.allocated_hours,
            "session_number": self.session_number,
            "is_flexible": self.is_flexible,
            "is_manual_override": self.is_manual_override,
            "done": self.done,
            "status": self.status.value,
            "actual_hours": self.actual_hours,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "original_time": self.original_time,
            "original_date": _iso(self.original_date),
            "rescheduled_at": self.rescheduled_at.isoformat() if self.rescheduled_at else None,
            "scheduling_metadata": self.scheduling_metadata.to_dict() if self.scheduling_metadata else None,
            "skip_metadata": self.skip_metadata.to_dict() if self.skip_metadata else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudySession":
        completed_at = data.get("completed_at")
        rescheduled_at = data.get("rescheduled_at")
        return cls(
            task_id=str(data["task_id"]),
            start_time=data["start_time"],
            end_time=data["end_time"],
            allocated_hours=float(data.get("allocated_hours") or 0),
            session_number=int(data.get("session_number") or 1),
            is_flexible=bool(data.get("is_flexible", True)),
            is_manual_override=bool(data.get("is_manual_override", False)),
            done=bool(data.get("done", False)),
            status=_enum_value(SessionStatus, data.get("status"), SessionStatus.SCHEDULED),
            actual_hours=data.get("actual_hours"),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
            original_time=data.get("original_time"),
            original_date=parse_date(data.get("original_date")),
            rescheduled_at=datetime.fromisoformat(rescheduled_at) if rescheduled_at else None,
            scheduling_metadata=SchedulingMetadata.from_dict(data.get("scheduling_metadata")),
            skip_metadata=SkipMetadata.from_dict(data.get("skip_metadata")),
        )


@dataclass
class StudyPlan:
    date: date
    planned_tasks: List[StudySession] = field(default_factory=list)
    total_study_hours: float = 0.0
    available_hours: float = 0.0
    is_overloaded: bool = False

    @property
    def id(self) -> str:
        return f"plan-{self.date.isoformat()}"

    def find_session(self, task_id: str, session_number: int) -> Optional[StudySession]:
        for session in self.planned_tasks:
            if session.task_id == task_id and session.session_number == session_number:
                return session
        return None

    def active_hours(self) -> float:
        return sum(
            s.allocated_hours for s in self.planned_tasks
            if not s.is_completed and not s.is_skipped
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "planned_tasks": [s.to_dict() for s in self.planned_tasks],
            "total_study_hours": self.total_study_hours,
            "available_hours": self.available_hours,
            "is_overloaded": self.is_overloaded,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudyPlan":
        return cls(
            date=parse_date(data["date"]),
            planned_tasks=[StudySession.from_dict(s) for s in data.get("planned_tasks") or []],
            total_study_hours=float(data.get("total_study_hours") or 0),
            available_hours=float(data.get("available_hours") or 0),
            is_overloaded=bool(data.get("is_overloaded", False)),
        )


# -----------------------------
# Settings
# -----------------------------

@dataclass
class DateSpecificStudyWindow:
    date: date
    start_hour: int
    end_hour: int
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "start_hour": self.start_hour,
            "end_hour": self.end_hour,
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DateSpecificStudyWindow":
        return cls(
            date=parse_date(data["date"]),
            start_hour=int(data["start_hour"]),
            end_hour=int(data["end_hour"]),
            is_active=bool(data.get("is_active", True)),
        )


@dataclass
class DaySpecificStudyWindow:
    day_of_week: int
    start_hour: int
    end_hour: int
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day_of_week": self.day_of_week,
            "start_hour": self.start_hour,
            "end_hour": self.end_hour,
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DaySpecificStudyWindow":
        return cls(
            day_of_week=int(data["day_of_week"]),
            start_hour=int(data["start_hour"]),
            end_hour=int(data["end_hour"]),
            is_active=bool(data.get("is_active", True)),
        )


@dataclass
class UserSettings:
    daily_available_hours: float = 6.0
    work_days: List[int] = field(default_factory=lambda: [0, 1, 2, 3, 4, 5, 6])
    buffer_days: int = 0
    min_session_length: int = 15  # minutes
    buffer_time_between_sessions: int = 0  # minutes
    short_break_duration: int = 5
    long_break_duration: int = 15
    max_consecutive_hours: float = 4.0
    study_window_start_hour: int = 6
    study_window_end_hour: int = 23
    study_plan_mode: StudyPlanMode = StudyPlanMode.EISENHOWER
    auto_complete_sessions: bool = False
    enable_notifications: bool = True
    date_specific_study_windows: List[DateSpecificStudyWindow] = field(default_factory=list)
    day_specific_study_windows: List[DaySpecificStudyWindow] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "daily_available_hours": self.daily_available_hours,
            "work_days": list(self.work_days),
            "buffer_days": self.buffer_days,
            "min_session_length": self.min_session_length,
            "buffer_time_between_sessions": self.buffer_time_between_sessions,
            "short_break_duration": self.short_break_duration,
            "long_break_duration": self.long_break_duration,
            "max_consecutive_hours": self.max_consecutive_hours,
            "study_window_start_hour": self.study_window_start_hour,
            "study_window_end_hour": self.study_window_end_hour,
            "study_plan_mode": self.study_plan_mode.value,
            "auto_complete_sessions": self.auto_complete_sessions,
            "enable_notifications": self.enable_notifications,
            "date_specific_study_windows": [w.to_dict() for w in self.date_specific_study_windows],
            "day_specific_study_windows": [w.to_dict() for w in self.day_specific_study_windows],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserSettings":
        defaults = cls()
        return cls(
            daily_available_hours=float(data.get("daily_available_hours", defaults.daily_available_hours)),
            work_days=[int(d) for d in data.get("work_days", defaults.work_days)],
            buffer_days=int(data.get("buffer_days", defaults.buffer_days)),
            min_session_length=int(data.get("min_session_length", defaults.min_session_length)),
            buffer_time_between_sessions=int(
                data.get("buffer_time_between_sessions", defaults.buffer_time_between_sessions)
            ),
            short_break_duration=int(data.get("short_break_duration", defaults.short_break_duration)),
            long_break_duration=int(data.get("long_break_duration", defaults.long_break_duration)),
            max_consecutive_hours=float(data.get("max_consecutive_hours", defaults.max_consecutive_hours)),
            study_window_start_hour=int(data.get("study_window_start_hour", defaults.study_window_start_hour)),
            study_window_end_hour=int(data.get("study_window_end_hour", defaults.study_window_end_hour)),
            study_plan_mode=_enum_value(StudyPlanMode, data.get("study_plan_mode"), defaults.study_plan_mode),
            auto_complete_sessions=bool(data.get("auto_complete_sessions", defaults.auto_complete_sessions)),
            enable_notifications=bool(data.get("enable_notifications", defaults.enable_notifications)),
            date_specific_study_windows=[
                DateSpecificStudyWindow.from_dict(w) for w in data.get("date_specific_study_windows") or []
            ],
            day_specific_study_windows=[
                DaySpecificStudyWindow.from_dict(w) for w in data.get("day_specific_study_windows") or []
            ],
        )


@dataclass
class TimeSlot:
    start: str
    end: str

    @property
    def duration_hours(self) -> float:
        return (time_to_minutes(self.end) - time_to_minutes(self.start)) / 60

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start, "end": self.end, "duration": round(self.duration_hours, 4)}


@dataclass
class UserReschedule:
    """A user's explicit move of one session, replayed over regenerated plans."""
    id: str
    task_id: str
    session_number: int
    original_plan_date: date
    original_start_time: str
    original_end_time: str
    new_plan_date: date
    new_start_time: str
    new_end_time: str
    rescheduled_at: datetime
    status: str = "active"  # active, obsolete

    @property
    def original_session_id(self) -> str:
        return f"{self.task_id}-{self.session_number}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "original_session_id": self.original_session_id,
            "task_id": self.task_id,
            "session_number": self.session_number,
            "original_plan_date": self.original_plan_date.isoformat(),
            "original_start_time": self.original_start_time,
            "original_end_time": self.original_end_time,
            "new_plan_date": self.new_plan_date.isoformat(),
            "new_start_time": self.new_start_time,
            "new_end_time": self.new_end_time,
            "rescheduled_at": self.rescheduled_at.isoformat(),
            "status": self.status,
        }
