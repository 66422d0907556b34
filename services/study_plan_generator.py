"""
Study Plan Generator
Turns pending tasks into a day-by-day study plan.

Three placement modes share the same day bookkeeping:

- eisenhower: walk the days in order and give each day to the most
  important, most urgent tasks first
- even: spread every task over the days before its (buffered) deadline
- balanced: order tasks by Eisenhower quadrant, then spread them evenly

Existing plans are not thrown away. Past days are kept as they are, and
finished, skipped and manually moved sessions on later days are carried
into the new plan as fixed constraints that count toward each task's hours.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from services.commitment_calendar import calculate_daily_available_hours
from services.planning_domain import (
    DeadlineType,
    FixedCommitment,
    SessionStatus,
    StudyPlan,
    StudyPlanMode,
    StudySession,
    TargetFrequency,
    Task,
    UserSettings,
    day_of_week,
    round_to_minute,
)
from services.slot_finder import find_next_available_time_slot

logger = logging.getLogger(__name__)

MAX_REDISTRIBUTION_ROUNDS = 10
MAX_SESSION_HOURS = 4.0
DEFAULT_NO_DEADLINE_SESSION_HOURS = 1.5
DEFAULT_MIN_WORK_BLOCK = 30  # minutes
NO_DEADLINE_HORIZON_DAYS = 30
URGENT_WITHIN_DAYS = 3
HOURS_EPSILON = 1 / 120


@dataclass
class UnscheduledTask:
    task_id: str
    task_title: str
    unscheduled_minutes: int
    importance: bool = False
    deadline: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'task_id': self.task_id,
            'task_title': self.task_title,
            'unscheduled_minutes': self.unscheduled_minutes,
            'importance': self.importance,
            'deadline': self.deadline.isoformat() if self.deadline else None,
        }


@dataclass
class PlanResult:
    plans: List[StudyPlan]
    suggestions: List[UnscheduledTask] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'plans': [p.to_dict() for p in self.plans],
            'suggestions': [s.to_dict() for s in self.suggestions],
        }


@dataclass
class FrequencyCheck:
    has_conflict: bool
    reason: Optional[str] = None
    recommended_frequency: Optional[str] = None


# -----------------------------
# Helpers
# -----------------------------

def _date_range(start: date, end: date) -> Iterable[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def _week_id(day: date) -> date:
    """Sunday that starts the week containing ``day``."""
    return day - timedelta(days=day_of_week(day))


def buffered_deadline(task: Task, settings: UserSettings) -> Optional[date]:
    if task.deadline is None:
        return None
    return task.deadline - timedelta(days=settings.buffer_days)


def task_window(task: Task, settings: UserSettings, days: Sequence[date], today: date) -> List[date]:
    """Days in ``days`` between the task's start and its buffered deadline."""
    first = max(today, task.start_date) if task.start_date else today
    last = buffered_deadline(task, settings)
    return [d for d in days if d >= first and (last is None or d <= last)]


def is_urgent(task: Task, today: date) -> bool:
    return task.deadline is not None and (task.deadline - today).days <= URGENT_WITHIN_DAYS


def split_tasks(tasks: Iterable[Task]):
    """Pending tasks split into (deadline tasks, no-deadline tasks), each in scheduling order."""
    pending = [t for t in tasks if t.is_pending and t.estimated_hours > 0]
    deadline_tasks = sorted(
        (t for t in pending if t.has_deadline),
        key=lambda t: (not t.importance, t.deadline),
    )
    no_deadline_tasks = sorted(
        (t for t in pending if not t.has_deadline),
        key=lambda t: (not t.importance, (t.title or '').lower()),
    )
    return deadline_tasks, no_deadline_tasks


def quadrant_order(tasks: Sequence[Task], today: date) -> List[Task]:
    """Urgent+important, important, urgent, then the rest; stable within each quadrant."""
    def quadrant(task: Task) -> int:
        urgent = is_urgent(task, today)
        if task.importance:
            return 0 if urgent else 1
        return 2 if urgent else 3
    return sorted(tasks, key=quadrant)


def check_frequency_deadline_conflict(task: Task, settings: UserSettings, today: Optional[date] = None) -> FrequencyCheck:
    """
    Check whether the task's preferred frequency still leaves enough sessions before its deadline.

    Soft deadlines and tasks without deadlines never conflict.
    """
    if not task.has_deadline or task.deadline_type == DeadlineType.SOFT:
        return FrequencyCheck(has_conflict=False)

    today = today or date.today()
    begin = max(today, task.start_date) if task.start_date else today
    last = buffered_deadline(task, settings)
    work_days = sum(1 for d in _date_range(begin, last) if day_of_week(d) in settings.work_days)

    min_session_hours = (task.min_work_block or DEFAULT_MIN_WORK_BLOCK) / 60
    per_session = max(min_session_hours, settings.daily_available_hours)
    sessions_needed = -(-task.estimated_hours // per_session) if per_session > 0 else 0

    gaps = {
        TargetFrequency.WEEKLY: 7,
        TargetFrequency.THREE_PER_WEEK: 2,
        TargetFrequency.FLEXIBLE: 3,
    }
    gap = gaps.get(task.target_frequency, 1)
    max_sessions = work_days // gap + 1

    if max_sessions >= sessions_needed:
        return FrequencyCheck(has_conflict=False)

    recommended = TargetFrequency.DAILY.value
    for name, days in ((TargetFrequency.THREE_PER_WEEK.value, 2), (TargetFrequency.DAILY.value, 1)):
        if work_days // days + 1 >= sessions_needed:
            recommended = name
            break

    frequency = task.target_frequency.value if task.target_frequency else TargetFrequency.DAILY.value
    return FrequencyCheck(
        has_conflict=True,
        reason=(
            f"Given your start date, your {frequency} frequency only allows {max_sessions} sessions, "
            f"but you need at least {int(sessions_needed)} sessions to complete this task before the deadline."
        ),
        recommended_frequency=recommended,
    )


def optimize_session_distribution(task: Task, total_hours: float, day_count: int, settings: UserSettings) -> List[float]:
    """
    Split ``total_hours`` into session lengths, preferring fewer and longer sessions.

    One-time tasks always get a single session. A preferred session duration
    is honoured when there are enough days for it.
    """
    min_session = (settings.min_session_length or 15) / 60
    max_session = min(MAX_SESSION_HOURS, settings.daily_available_hours)

    if task.is_one_time_task:
        return [total_hours]

    preferred = task.preferred_session_duration
    if preferred and preferred > 0:
        needed = int(-(-total_hours // preferred))
        if needed <= day_count:
            sessions = []
            remaining = total_hours
            for _ in range(needed):
                if remaining <= 0:
                    break
                length = min(preferred, remaining)
                if length >= min_session:
                    sessions.append(length)
                    remaining -= length
            return sessions

    session_count = min(day_count, int(total_hours // min_session)) if min_session > 0 else day_count
    if session_count == 0:
        session_count = day_count

    sessions = []
    remaining = total_hours
    for index in range(session_count):
        if remaining <= 0:
            break
        length = min(remaining / (session_count - index), max_session, remaining)
        if length >= min_session:
            sessions.append(length)
            remaining -= length

    if remaining > 0 and sessions:
        sessions[0] += remaining
    return sessions


def apply_frequency_preference(
    task: Task,
    days: List[date],
    remaining_hours: Dict[date, float],
    settings: UserSettings,
    today: date,
) -> List[date]:
    """Thin ``days`` out to the task's target frequency, favouring days with the most free hours."""
    frequency = task.target_frequency
    if frequency in (None, TargetFrequency.DAILY):
        return days

    start = task.start_date or today
    span = (task.deadline - start).days

    if frequency == TargetFrequency.WEEKLY and span < 14:
        return days[::7]

    if frequency == TargetFrequency.WEEKLY:
        per_week = 1
    elif frequency == TargetFrequency.THREE_PER_WEEK:
        per_week = 3
    else:
        per_week = 5 if task.importance else 4
        sessions_needed = -(-task.estimated_hours // 2)
        weeks = max(1, span / 7)
        if sessions_needed / weeks > per_week:
            per_week = 7

    by_availability = sorted(
        days,
        key=lambda d: remaining_hours.get(d) or settings.daily_available_hours,
        reverse=True,
    )
    used: Dict[date, int] = {}
    chosen = []
    for day in by_availability:
        week = _week_id(day)
        if used.get(week, 0) < per_week:
            chosen.append(day)
            used[week] = used.get(week, 0) + 1
    return sorted(chosen)


def combine_adjacent_sessions(plans: Iterable[StudyPlan]) -> None:
    """
    Merge back-to-back sessions of the same task on the same day.

    Skipped and completed sessions are left as they are.
    """
    for plan in plans:
        fixed = [s for s in plan.planned_tasks if s.is_skipped or s.is_completed]
        by_task: Dict[str, List[StudySession]] = {}
        for session in plan.planned_tasks:
            if session.is_skipped or session.is_completed:
                continue
            by_task.setdefault(session.task_id, []).append(session)

        combined = []
        for sessions in by_task.values():
            sessions.sort(key=lambda s: s.interval[0])
            current = sessions[0]
            for following in sessions[1:]:
                if (
                    following.start_time == current.end_time
                    and not following.is_manual_override
                    and not current.is_manual_override
                ):
                    current = replace(
                        current,
                        end_time=following.end_time,
                        allocated_hours=round_to_minute(current.allocated_hours + following.allocated_hours),
                    )
                else:
                    combined.append(current)
                    current = following
            combined.append(current)

        plan.planned_tasks = sorted(combined + fixed, key=lambda s: s.interval[0])


def get_unscheduled_minutes_for_tasks(
    tasks: Iterable[Task],
    scheduled_hours: Dict[str, float],
    settings: Optional[UserSettings] = None,
) -> List[UnscheduledTask]:
    """Pending tasks whose unscheduled hours exceed the minimum session length."""
    threshold = settings.min_session_length / 60 if settings and settings.min_session_length else 1 / 60
    result = []
    for task in tasks:
        if not task.is_pending:
            continue
        unscheduled = max(0.0, task.estimated_hours - scheduled_hours.get(task.id, 0.0))
        if unscheduled > threshold:
            result.append(UnscheduledTask(
                task_id=task.id,
                task_title=task.title,
                unscheduled_minutes=round(unscheduled * 60),
                importance=task.importance,
                deadline=task.deadline,
            ))
    return result


# -----------------------------
# Plan building
# -----------------------------

class _PlanBuilder:
    """Day bookkeeping shared by every placement mode."""

    def __init__(self, settings: UserSettings, commitments: Sequence[FixedCommitment], today: date):
        self.settings = settings
        self.commitments = list(commitments)
        self.today = today
        self.plans: Dict[date, StudyPlan] = {}
        self.remaining: Dict[date, float] = {}
        self.progress: Dict[str, float] = {}

    def ensure_day(self, day: date) -> StudyPlan:
        plan = self.plans.get(day)
        if plan is None:
            available = calculate_daily_available_hours(day, self.settings.daily_available_hours, self.commitments)
            plan = StudyPlan(date=day, available_hours=round_to_minute(available))
            self.plans[day] = plan
            self.remaining[day] = plan.available_hours
        return plan

    def carry_existing(self, existing_plans: Iterable[StudyPlan]) -> None:
        """Keep past days and fixed sessions from the previous plan."""
        for previous in existing_plans:
            if previous.date < self.today:
                self.plans[previous.date] = replace(
                    previous, planned_tasks=[replace(s) for s in previous.planned_tasks]
                )
                self.remaining[previous.date] = 0.0
                for session in previous.planned_tasks:
                    if session.is_completed or session.is_skipped:
                        self._count_progress(session)
                continue

            kept = [
                s for s in previous.planned_tasks
                if s.is_completed or s.is_skipped or s.is_manual_override
            ]
            if not kept:
                continue
            plan = self.ensure_day(previous.date)
            for session in kept:
                plan.planned_tasks.append(replace(session))
                self._count_progress(session)
                if not session.is_skipped:
                    self.remaining[previous.date] = round_to_minute(
                        self.remaining[previous.date] - session.allocated_hours
                    )

    def _count_progress(self, session: StudySession) -> None:
        self.progress[session.task_id] = self.progress.get(session.task_id, 0.0) + session.allocated_hours

    def remaining_task_hours(self, task: Task) -> float:
        return round_to_minute(max(0.0, task.estimated_hours - self.progress.get(task.id, 0.0)))

    def place(self, task: Task, day: date, hours: float) -> Optional[StudySession]:
        """Put a session of ``hours`` for ``task`` into the first free slot of ``day``."""
        hours = round_to_minute(hours)
        if hours <= 0:
            return None
        plan = self.ensure_day(day)
        slot = find_next_available_time_slot(
            hours,
            plan.planned_tasks,
            self.commitments,
            self.settings.study_window_start_hour,
            self.settings.study_window_end_hour,
            self.settings.buffer_time_between_sessions,
            target_date=day,
            settings=self.settings,
        )
        if slot is None:
            return None

        numbers = [s.session_number for s in plan.planned_tasks if s.task_id == task.id]
        session = StudySession(
            task_id=task.id,
            start_time=slot.start,
            end_time=slot.end,
            allocated_hours=hours,
            session_number=max(numbers, default=0) + 1,
            status=SessionStatus.SCHEDULED,
        )
        plan.planned_tasks.append(session)
        self.remaining[day] = round_to_minute(self.remaining[day] - hours)
        self._count_progress(session)
        return session

    def finish(self) -> List[StudyPlan]:
        combine_adjacent_sessions(p for d, p in self.plans.items() if d >= self.today)
        plans = []
        for day in sorted(self.plans):
            plan = self.plans[day]
            if not plan.planned_tasks:
                continue
            plan.planned_tasks.sort(key=lambda s: s.interval[0])
            if day >= self.today:
                plan.total_study_hours = round_to_minute(
                    sum(s.allocated_hours for s in plan.planned_tasks if not s.is_skipped)
                )
                plan.is_overloaded = plan.active_hours() > plan.available_hours + HOURS_EPSILON
            plans.append(plan)
        return plans


def _work_days(start: date, end: date, settings: UserSettings) -> List[date]:
    return [d for d in _date_range(start, end) if day_of_week(d) in settings.work_days]


def _schedule_eisenhower(builder: _PlanBuilder, tasks: List[Task], days: List[date]) -> None:
    settings = builder.settings
    windows = {t.id: set(task_window(t, settings, days, builder.today)) for t in tasks}

    for day in days:
        builder.ensure_day(day)
        for task in tasks:
            if builder.remaining[day] <= HOURS_EPSILON:
                break
            if day not in windows[task.id]:
                continue
            remaining = builder.remaining_task_hours(task)
            if remaining <= HOURS_EPSILON:
                continue

            untouched = builder.progress.get(task.id, 0.0) == 0
            if task.is_one_time_task and untouched:
                # One-time tasks need the whole block on a single day
                if remaining > builder.remaining[day]:
                    continue
                hours = remaining
            else:
                hours = min(remaining, builder.remaining[day])

            if builder.place(task, day, hours) is None:
                logger.debug(f"No slot for '{task.title}' ({hours}h) on {day}")


def _place_one_time(builder: _PlanBuilder, task: Task, days: List[date], hours: float) -> bool:
    # Important one-time tasks go as early as possible, others as close to the deadline as possible
    candidates = days if task.importance else list(reversed(days))
    for day in candidates:
        builder.ensure_day(day)
        if builder.remaining[day] + HOURS_EPSILON >= hours and builder.place(task, day, hours):
            return True
    return False


def _redistribute_leftover(builder: _PlanBuilder, task: Task, leftover: float, days: List[date]) -> float:
    """Spread hours that did not fit over days that still have room, in up to ten rounds."""
    min_session = (builder.settings.min_session_length or 15) / 60
    rounds = 0
    while leftover > HOURS_EPSILON and rounds < MAX_REDISTRIBUTION_ROUNDS:
        rounds += 1
        open_days = [d for d in days if builder.remaining.get(d, 0) > HOURS_EPSILON]
        if not open_days:
            break

        placed = 0.0
        lengths = optimize_session_distribution(task, leftover, len(open_days), builder.settings)
        for day, length in zip(open_days, lengths):
            hours = min(length, builder.remaining[day])
            if hours < min_session:
                continue
            session = builder.place(task, day, hours)
            if session is not None:
                placed += session.allocated_hours

        if placed <= 0:
            break
        leftover = round_to_minute(leftover - placed)
    return leftover


def _schedule_evenly(builder: _PlanBuilder, tasks: List[Task], days: List[date]) -> None:
    settings = builder.settings
    for day in days:
        builder.ensure_day(day)

    for task in tasks:
        task_days = task_window(task, settings, days, builder.today)
        if task.respect_frequency_for_deadlines and task.target_frequency:
            if not check_frequency_deadline_conflict(task, settings, builder.today).has_conflict:
                task_days = apply_frequency_preference(task, task_days, builder.remaining, settings, builder.today)
        if not task_days:
            logger.debug(f"Task '{task.title}' has no days before its deadline")
            continue

        total = builder.remaining_task_hours(task)
        if total <= HOURS_EPSILON:
            continue

        if task.is_one_time_task:
            if not _place_one_time(builder, task, task_days, total):
                logger.debug(f"One-time task '{task.title}' does not fit on any single day")
            continue

        leftover = 0.0
        lengths = optimize_session_distribution(task, total, len(task_days), settings)
        for day, length in zip(task_days, lengths):
            hours = min(length, builder.remaining[day])
            session = builder.place(task, day, hours) if hours > 0 else None
            placed = session.allocated_hours if session else 0.0
            leftover += length - placed

        if leftover > HOURS_EPSILON:
            leftover = _redistribute_leftover(builder, task, round_to_minute(leftover), task_days)
            if leftover > HOURS_EPSILON:
                logger.info(f"Task '{task.title}' still has {leftover}h unscheduled after redistribution")


def _schedule_no_deadline(builder: _PlanBuilder, tasks: List[Task], days: List[date]) -> None:
    """Fill spare capacity with tasks that have no deadline."""
    gaps = {
        TargetFrequency.WEEKLY: 7,
        TargetFrequency.THREE_PER_WEEK: 2,
    }
    for task in tasks:
        remaining = builder.remaining_task_hours(task)
        min_session = (task.min_work_block or DEFAULT_MIN_WORK_BLOCK) / 60
        gap = gaps.get(task.target_frequency, 1)
        if task.target_frequency == TargetFrequency.FLEXIBLE:
            gap = 2 if task.importance else 3

        candidates = [d for d in days if not task.start_date or d >= task.start_date]
        index = 0
        while remaining > HOURS_EPSILON and index < len(candidates):
            day = candidates[index]
            builder.ensure_day(day)
            available = builder.remaining[day]
            if available < min_session:
                index += 1
                continue

            max_hours = task.max_session_length or DEFAULT_NO_DEADLINE_SESSION_HOURS
            if task.target_frequency == TargetFrequency.WEEKLY:
                max_hours = min(max_hours * 2, remaining)
            elif task.target_frequency == TargetFrequency.DAILY:
                max_hours = min(max_hours * 0.75, remaining)

            untouched = builder.progress.get(task.id, 0.0) == 0
            if task.is_one_time_task and untouched:
                hours = remaining if remaining <= available else 0
            else:
                hours = min(remaining, available, max_hours)

            session = None
            if hours >= min_session:
                session = builder.place(task, day, hours)
            if session is not None:
                remaining = round_to_minute(remaining - session.allocated_hours)
                index += gap
            else:
                index += 1


def _scheduled_hours(plans: Iterable[StudyPlan], today: date) -> Dict[str, float]:
    """Done or skipped hours anywhere plus active hours from today on."""
    hours: Dict[str, float] = {}
    for plan in plans:
        for session in plan.planned_tasks:
            counts = session.is_completed or session.is_skipped or plan.date >= today
            if counts:
                hours[session.task_id] = hours.get(session.task_id, 0.0) + session.allocated_hours
    return hours


def generate_study_plan(
    tasks: Iterable[Task],
    settings: UserSettings,
    commitments: Sequence[FixedCommitment],
    existing_plans: Iterable[StudyPlan] = (),
    today: Optional[date] = None,
) -> PlanResult:
    """
    Build a study plan for all pending tasks.

    Args:
        tasks: All of the user's tasks; only pending tasks with hours are planned
        settings: Scheduling preferences (mode, daily hours, work days, windows)
        commitments: Fixed commitments that block time
        existing_plans: The current plan; progress and manual moves are kept
        today: First schedulable day, defaults to the current date

    Returns:
        PlanResult with the plans sorted by date and the tasks left (partly) unscheduled
    """
    today = today or date.today()
    existing_plans = list(existing_plans)
    deadline_tasks, no_deadline_tasks = split_tasks(tasks)

    builder = _PlanBuilder(settings, commitments, today)
    builder.carry_existing(existing_plans)

    latest = max((t.deadline for t in deadline_tasks), default=today)
    days = _work_days(today, latest, settings)

    mode = settings.study_plan_mode
    if mode == StudyPlanMode.EVEN:
        _schedule_evenly(builder, deadline_tasks, days)
    elif mode == StudyPlanMode.BALANCED:
        _schedule_evenly(builder, quadrant_order(deadline_tasks, today), days)
    else:
        _schedule_eisenhower(builder, deadline_tasks, days)

    if no_deadline_tasks:
        horizon = max(latest, today + timedelta(days=NO_DEADLINE_HORIZON_DAYS))
        _schedule_no_deadline(builder, no_deadline_tasks, _work_days(today, horizon, settings))

    plans = builder.finish()
    suggestions = get_unscheduled_minutes_for_tasks(
        deadline_tasks + no_deadline_tasks, _scheduled_hours(plans, today), settings
    )
    logger.info(
        f"Generated {mode.value} plan: {len(plans)} days, {len(suggestions)} tasks with unscheduled time"
    )
    return PlanResult(plans=plans, suggestions=suggestions)


def preserve_manual_schedules(new_plans: List[StudyPlan], existing_plans: Iterable[StudyPlan]) -> List[StudyPlan]:
    """
    Copy per-session state from the previous plan onto matching new sessions.

    Sessions match on date, task and session number. Done and skipped state
    is kept, manual moves keep their exact times, and other reschedules keep
    their original-slot metadata.
    """
    previous = {
        (plan.date, s.task_id, s.session_number): s
        for plan in existing_plans
        for s in plan.planned_tasks
    }
    for plan in new_plans:
        for session in plan.planned_tasks:
            prev = previous.get((plan.date, session.task_id, session.session_number))
            if prev is None or prev is session:
                continue
            if prev.done:
                session.done = True
                session.status = prev.status
                session.actual_hours = prev.actual_hours
                session.completed_at = prev.completed_at
            elif prev.is_skipped:
                session.status = SessionStatus.SKIPPED
                session.skip_metadata = prev.skip_metadata
            elif prev.original_time and prev.original_date:
                session.original_time = prev.original_time
                session.original_date = prev.original_date
                session.rescheduled_at = prev.rescheduled_at
                session.is_manual_override = prev.is_manual_override
                session.scheduling_metadata = prev.scheduling_metadata
                if prev.is_manual_override:
                    session.start_time = prev.start_time
                    session.end_time = prev.end_time
    return new_plans


def generate_study_plan_with_preservation(
    tasks: Iterable[Task],
    settings: UserSettings,
    commitments: Sequence[FixedCommitment],
    existing_plans: Iterable[StudyPlan] = (),
    today: Optional[date] = None,
) -> PlanResult:
    existing_plans = list(existing_plans)
    result = generate_study_plan(tasks, settings, commitments, existing_plans, today)
    result.plans = preserve_manual_schedules(result.plans, existing_plans)
    return result
