"""
Redistribution Service
Moves missed study sessions into free time before their task's deadline,
and handles the per-session operations around it: skip, move and replay of
user reschedules.
"""

import copy
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from services.commitment_calendar import calculate_daily_available_hours
from services.conflict_prevention import ConflictPreventionEngine, ConflictValidationResult
from services.errors import SessionNotFoundError
from services.planning_domain import (
    FixedCommitment,
    RescheduleEntry,
    SchedulingMetadata,
    SessionStatus,
    SkipMetadata,
    SlotRef,
    StudyPlan,
    StudySession,
    Task,
    UserReschedule,
    UserSettings,
    day_of_week,
    minutes_to_time,
    round_to_minute,
    time_to_minutes,
)
from services.slot_finder import find_next_available_time_slot
from services.study_plan_generator import PlanResult, buffered_deadline, generate_study_plan_with_preservation

logger = logging.getLogger(__name__)

IMPORTANCE_POINTS = 1000
MAX_AGE_POINTS = 200
MAX_SIZE_POINTS = 100


@dataclass
class RedistributionOptions:
    respect_daily_limits: bool = True
    max_redistribution_days: int = 14
    prioritize_important_tasks: bool = True
    enable_rollback: bool = True

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RedistributionOptions":
        data = data or {}
        defaults = cls()
        return cls(
            respect_daily_limits=bool(data.get('respect_daily_limits', defaults.respect_daily_limits)),
            max_redistribution_days=int(data.get('max_redistribution_days', defaults.max_redistribution_days)),
            prioritize_important_tasks=bool(
                data.get('prioritize_important_tasks', defaults.prioritize_important_tasks)
            ),
            enable_rollback=bool(data.get('enable_rollback', defaults.enable_rollback)),
        )


@dataclass
class RedistributionPriority:
    task_importance: float = 0
    deadline_urgency: float = 0
    session_age: float = 0
    session_size: float = 0

    @property
    def total(self) -> float:
        return self.task_importance + self.deadline_urgency + self.session_age + self.session_size


@dataclass
class MissedSession:
    session: StudySession
    plan_date: date
    task: Task
    priority: RedistributionPriority = field(default_factory=RedistributionPriority)


@dataclass
class RedistributionResult:
    success: bool
    message: str
    redistributed_sessions: List[StudySession] = field(default_factory=list)
    failed_sessions: List[StudySession] = field(default_factory=list)
    rollback_performed: bool = False
    reasons: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    @property
    def total_sessions_moved(self) -> int:
        return len(self.redistributed_sessions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'total_processed': len(self.redistributed_sessions) + len(self.failed_sessions),
            'successfully_moved': self.total_sessions_moved,
            'failed_to_move': len(self.failed_sessions),
            'rollback_performed': self.rollback_performed,
            'reasons': list(self.reasons),
            'suggestions': list(self.suggestions),
        }


@dataclass
class MoveResult:
    success: bool
    new_date: Optional[date] = None
    new_start_time: Optional[str] = None
    validation: Optional[ConflictValidationResult] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'moved': self.success,
            'new_date': self.new_date.isoformat() if self.new_date else None,
            'new_start_time': self.new_start_time,
        }
        if self.validation is not None:
            payload['validation'] = self.validation.to_dict()
        return payload


def find_plan(plans: Iterable[StudyPlan], plan_date: date) -> Optional[StudyPlan]:
    for plan in plans:
        if plan.date == plan_date:
            return plan
    return None


def find_session(plans: Iterable[StudyPlan], plan_date: date, task_id: str, session_number: int) -> StudySession:
    plan = find_plan(plans, plan_date)
    session = plan.find_session(task_id, session_number) if plan else None
    if session is None:
        raise SessionNotFoundError(
            'Session not found',
            {'date': plan_date.isoformat(), 'task_id': task_id, 'session_number': session_number},
        )
    return session


def _next_session_number(plan: StudyPlan, task_id: str) -> int:
    return max((s.session_number for s in plan.planned_tasks if s.task_id == task_id), default=0) + 1


def _record_move(session: StudySession, source: SlotRef, target: SlotRef, reason: str, now: datetime) -> SchedulingMetadata:
    previous = session.scheduling_metadata
    metadata = SchedulingMetadata(
        original_slot=previous.original_slot if previous and previous.original_slot else source,
        reschedule_history=list(previous.reschedule_history) if previous else [],
        priority=previous.priority if previous else None,
        failure_reasons=list(previous.failure_reasons) if previous else [],
        state=previous.state if previous else None,
    )
    metadata.reschedule_history.append(
        RescheduleEntry(from_slot=source, to_slot=target, timestamp=now, reason=reason)
    )
    return metadata


class RedistributionEngine:
    """Finds new slots for missed sessions, most urgent first."""

    def __init__(self, settings: UserSettings, commitments: Iterable[FixedCommitment]):
        self.settings = settings
        self.commitments = list(commitments)
        self.conflict_engine = ConflictPreventionEngine(settings, self.commitments)

    # -----------------------------
    # Missed sessions
    # -----------------------------

    def _should_redistribute(self, session: StudySession) -> bool:
        if session.is_completed or session.is_skipped or session.is_manual_override:
            return False
        return session.status not in (SessionStatus.REDISTRIBUTED, SessionStatus.FAILED_REDISTRIBUTION)

    def collect_missed_sessions(
        self,
        plans: Sequence[StudyPlan],
        tasks: Iterable[Task],
        today: date,
    ) -> List[MissedSession]:
        """Past sessions of pending tasks that were never done, skipped or moved."""
        tasks_by_id = {t.id: t for t in tasks}
        covered: Dict[str, float] = {}
        for plan in plans:
            for session in plan.planned_tasks:
                if session.is_completed or session.is_skipped or (plan.date >= today and not session.is_skipped):
                    covered[session.task_id] = covered.get(session.task_id, 0.0) + session.allocated_hours

        missed = []
        for plan in plans:
            if plan.date >= today:
                continue
            for session in plan.planned_tasks:
                if not self._should_redistribute(session):
                    continue
                task = tasks_by_id.get(session.task_id)
                if task is None or not task.is_pending:
                    continue
                if covered.get(task.id, 0.0) >= task.estimated_hours:
                    # A later plan already covers the task's hours
                    continue
                missed.append(MissedSession(session=session, plan_date=plan.date, task=task))
                covered[task.id] = covered.get(task.id, 0.0) + session.allocated_hours
        return missed

    def calculate_priority(self, item: MissedSession, today: date, options: RedistributionOptions) -> RedistributionPriority:
        priority = RedistributionPriority()
        if item.task.importance and options.prioritize_important_tasks:
            priority.task_importance = IMPORTANCE_POINTS

        if item.task.deadline is not None:
            days_left = (item.task.deadline - today).days
            if days_left < 0:
                priority.deadline_urgency = 500
            elif days_left <= 1:
                priority.deadline_urgency = 400
            elif days_left <= 3:
                priority.deadline_urgency = 300
            elif days_left <= 7:
                priority.deadline_urgency = 200
            else:
                priority.deadline_urgency = max(0, 100 - days_left)

        days_missed = (today - item.plan_date).days
        priority.session_age = min(MAX_AGE_POINTS, days_missed * 10)
        priority.session_size = min(MAX_SIZE_POINTS, item.session.allocated_hours * 20)
        return priority

    def _ensure_plan(self, plans: List[StudyPlan], target: date) -> StudyPlan:
        plan = find_plan(plans, target)
        if plan is None:
            available = calculate_daily_available_hours(target, self.settings.daily_available_hours, self.commitments)
            plan = StudyPlan(date=target, available_hours=round_to_minute(available))
            plans.append(plan)
            plans.sort(key=lambda p: p.date)
        return plan

    def _place(
        self,
        item: MissedSession,
        plans: List[StudyPlan],
        options: RedistributionOptions,
        today: date,
        now: datetime,
    ) -> Tuple[Optional[StudySession], Optional[str]]:
        session = item.session
        last_day = buffered_deadline(item.task, self.settings)

        for offset in range(options.max_redistribution_days):
            target = today + timedelta(days=offset)
            if last_day is not None and target > last_day:
                break
            if day_of_week(target) not in self.settings.work_days:
                continue

            existing = find_plan(plans, target)
            available = existing.available_hours if existing else calculate_daily_available_hours(
                target, self.settings.daily_available_hours, self.commitments
            )
            used = existing.active_hours() if existing else 0.0
            if options.respect_daily_limits and available - used < session.allocated_hours:
                continue

            slot = find_next_available_time_slot(
                session.allocated_hours,
                existing.planned_tasks if existing else [],
                self.commitments,
                self.settings.study_window_start_hour,
                self.settings.study_window_end_hour,
                self.settings.buffer_time_between_sessions,
                target_date=target,
                settings=self.settings,
            )
            if slot is None:
                continue

            plan = self._ensure_plan(plans, target)
            source = SlotRef(item.plan_date, session.start_time, session.end_time)
            destination = SlotRef(target, slot.start, slot.end)
            moved = replace(
                session,
                start_time=slot.start,
                end_time=slot.end,
                session_number=_next_session_number(plan, session.task_id),
                status=SessionStatus.REDISTRIBUTED,
                scheduling_metadata=_record_move(session, source, destination, 'redistribution', now),
            )
            moved.scheduling_metadata.priority = item.priority.total
            moved.scheduling_metadata.state = SessionStatus.REDISTRIBUTED.value

            origin = find_plan(plans, item.plan_date)
            origin.planned_tasks = [s for s in origin.planned_tasks if s is not session]
            plan.planned_tasks.append(moved)
            plan.planned_tasks.sort(key=lambda s: s.interval[0])
            return moved, None

        if last_day is not None and last_day < today:
            return None, 'Deadline has already passed'
        return None, 'No available time slots found within deadline'

    def redistribute_missed_sessions(
        self,
        plans: List[StudyPlan],
        tasks: Iterable[Task],
        options: Optional[RedistributionOptions] = None,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> RedistributionResult:
        """
        Move missed sessions forward, highest priority first.

        ``plans`` is updated in place on success. With rollback enabled, any
        conflict on a day that received sessions restores the original plans.
        """
        options = options or RedistributionOptions()
        today = today or date.today()
        now = now or datetime.now()
        tasks = list(tasks)

        missed = self.collect_missed_sessions(plans, tasks, today)
        if not missed:
            return RedistributionResult(success=True, message='No missed sessions found.')

        for item in missed:
            item.priority = self.calculate_priority(item, today, options)
        missed.sort(key=lambda item: item.priority.total, reverse=True)

        pre_check = self.conflict_engine.validate_before_redistribution(
            plans, [m.session for m in missed], today
        )
        for warning in pre_check.warnings:
            logger.info(f"Redistribution pre-check: {warning.message}")

        working = copy.deepcopy(plans)
        # Re-bind the missed items to the working copies
        for item in missed:
            item.session = find_plan(working, item.plan_date).find_session(
                item.session.task_id, item.session.session_number
            )

        redistributed, failed, reasons = [], [], []
        touched = set()
        for item in missed:
            moved, reason = self._place(item, working, options, today, now)
            if moved is not None:
                redistributed.append(moved)
                touched.add(moved.scheduling_metadata.reschedule_history[-1].to_slot.date)
            else:
                item.session.status = SessionStatus.FAILED_REDISTRIBUTION
                metadata = item.session.scheduling_metadata or SchedulingMetadata()
                metadata.failure_reasons.append(reason)
                item.session.scheduling_metadata = metadata
                failed.append(item.session)
                reasons.append(f"{item.task.title}: {reason}")

        post_check = self.conflict_engine.validate_after_redistribution(
            [p for p in working if p.date in touched]
        )
        if not post_check.is_valid and options.enable_rollback:
            messages = ', '.join(c.message for c in post_check.conflicts)
            logger.warning(f"Redistribution rolled back: {messages}")
            return RedistributionResult(
                success=False,
                message=f"Redistribution failed and was rolled back: Post-redistribution conflicts detected: {messages}",
                failed_sessions=[m.session for m in missed],
                rollback_performed=True,
                reasons=[messages],
                suggestions=['Review study plan conflicts and try again'],
            )

        plans[:] = working
        success = bool(redistributed)
        if success:
            message = f"Successfully redistributed {len(redistributed)} of {len(missed)} missed sessions"
        else:
            message = f"Failed to redistribute any of {len(missed)} missed sessions"
        logger.info(message)
        return RedistributionResult(
            success=success,
            message=message,
            redistributed_sessions=redistributed,
            failed_sessions=failed,
            reasons=reasons,
            suggestions=self._suggestions(failed, reasons),
        )

    def _suggestions(self, failed: List[StudySession], reasons: List[str]) -> List[str]:
        if not failed:
            return []
        suggestions = [
            'Consider increasing daily available hours',
            'Check if task deadlines are realistic',
            'Review fixed commitments for conflicts',
        ]
        if any('deadline' in r.lower() for r in reasons):
            suggestions.append('Extend task deadlines if possible')
        return suggestions

    # -----------------------------
    # Single-session operations
    # -----------------------------

    def skip_session(
        self,
        plans: List[StudyPlan],
        plan_date: date,
        session_number: int,
        task_id: str,
        partial_hours: Optional[float] = None,
        reason: str = 'user_choice',
        now: Optional[datetime] = None,
    ) -> StudySession:
        """
        Skip a session, or only its last ``partial_hours``.

        A partial skip shortens the session and records the cut-off tail as a
        separate skipped session, so the skipped hours still count as handled.
        """
        now = now or datetime.now()
        plan = find_plan(plans, plan_date)
        session = find_session(plans, plan_date, task_id, session_number)

        if partial_hours and 0 < partial_hours < session.allocated_hours:
            kept_hours = round_to_minute(session.allocated_hours - partial_hours)
            split_at = minutes_to_time(time_to_minutes(session.start_time) + round(kept_hours * 60))
            skipped = replace(
                session,
                start_time=split_at,
                end_time=session.end_time,
                allocated_hours=round_to_minute(partial_hours),
                session_number=_next_session_number(plan, task_id),
                status=SessionStatus.SKIPPED,
                skip_metadata=SkipMetadata(skipped_at=now, reason=reason, partial_hours=partial_hours),
            )
            session.allocated_hours = kept_hours
            session.end_time = split_at
            plan.planned_tasks.append(skipped)
            logger.info(f"Partially skipped {partial_hours}h of session {session.session_key} on {plan_date}")
            return skipped

        session.status = SessionStatus.SKIPPED
        session.skip_metadata = SkipMetadata(skipped_at=now, reason=reason)
        logger.info(f"Skipped session {session.session_key} on {plan_date}")
        return session

    def complete_session(
        self,
        plans: List[StudyPlan],
        plan_date: date,
        session_number: int,
        task_id: str,
        actual_hours: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> StudySession:
        session = find_session(plans, plan_date, task_id, session_number)
        session.done = True
        session.status = SessionStatus.COMPLETED
        session.actual_hours = actual_hours if actual_hours is not None else session.allocated_hours
        session.completed_at = now or datetime.now()
        return session

    def move_individual_session(
        self,
        plans: List[StudyPlan],
        plan_date: date,
        task_id: str,
        session_number: int,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> MoveResult:
        """Move a session into the first free slot of today, if today is a work day."""
        today = today or date.today()
        now = now or datetime.now()
        session = find_session(plans, plan_date, task_id, session_number)

        if day_of_week(today) not in self.settings.work_days:
            return MoveResult(success=False)

        today_plan = find_plan(plans, today)
        slot = find_next_available_time_slot(
            session.allocated_hours,
            today_plan.planned_tasks if today_plan else [],
            self.commitments,
            self.settings.study_window_start_hour,
            self.settings.study_window_end_hour,
            self.settings.buffer_time_between_sessions,
            target_date=today,
            settings=self.settings,
        )
        if slot is None:
            return MoveResult(success=False)

        self._relocate(plans, session, plan_date, today, slot.start, slot.end, 'missed', now, manual=False)
        return MoveResult(success=True, new_date=today, new_start_time=slot.start)

    def move_session_to_slot(
        self,
        plans: List[StudyPlan],
        plan_date: date,
        task_id: str,
        session_number: int,
        target_date: date,
        start_time: str,
        now: Optional[datetime] = None,
    ) -> MoveResult:
        """
        Manually move a session to ``target_date`` at ``start_time``.

        The slot is validated first; the move only happens when no high or
        critical conflict is found.
        """
        now = now or datetime.now()
        session = find_session(plans, plan_date, task_id, session_number)
        end_time = minutes_to_time(time_to_minutes(start_time) + round(session.allocated_hours * 60))

        target_plan = find_plan(plans, target_date)
        validation = self.conflict_engine.is_time_slot_available(
            target_date,
            start_time,
            end_time,
            target_plan.planned_tasks if target_plan else [],
            exclude_session_id=session.session_key if target_date == plan_date else None,
        )
        if not validation.can_proceed:
            return MoveResult(success=False, validation=validation)

        self._relocate(plans, session, plan_date, target_date, start_time, end_time, 'manual', now, manual=True)
        return MoveResult(success=True, new_date=target_date, new_start_time=start_time, validation=validation)

    def _relocate(
        self,
        plans: List[StudyPlan],
        session: StudySession,
        plan_date: date,
        target_date: date,
        start_time: str,
        end_time: str,
        reason: str,
        now: datetime,
        manual: bool,
    ) -> StudySession:
        source = SlotRef(plan_date, session.start_time, session.end_time)
        destination = SlotRef(target_date, start_time, end_time)
        session.scheduling_metadata = _record_move(session, source, destination, reason, now)
        session.original_time = session.original_time or session.start_time
        session.original_date = session.original_date or plan_date
        session.rescheduled_at = now
        session.is_manual_override = session.is_manual_override or manual
        session.status = SessionStatus.RESCHEDULED if manual else SessionStatus.SCHEDULED
        session.start_time = start_time
        session.end_time = end_time

        if target_date != plan_date:
            origin = find_plan(plans, plan_date)
            origin.planned_tasks = [s for s in origin.planned_tasks if s is not session]
            target_plan = self._ensure_plan(plans, target_date)
            session.session_number = _next_session_number(target_plan, session.task_id)
            target_plan.planned_tasks.append(session)
            target_plan.planned_tasks.sort(key=lambda s: s.interval[0])

        logger.info(f"Moved session {session.task_id} from {plan_date} to {target_date} {start_time} ({reason})")
        return session


# -----------------------------
# User reschedules
# -----------------------------

def create_user_reschedule(
    session: StudySession,
    original_date: date,
    new_date: date,
    new_start_time: str,
    new_end_time: str,
    now: Optional[datetime] = None,
) -> UserReschedule:
    return UserReschedule(
        id=uuid.uuid4().hex,
        task_id=session.task_id,
        session_number=session.session_number,
        original_plan_date=original_date,
        original_start_time=session.start_time,
        original_end_time=session.end_time,
        new_plan_date=new_date,
        new_start_time=new_start_time,
        new_end_time=new_end_time,
        rescheduled_at=now or datetime.now(),
    )


def validate_user_reschedules(reschedules: Iterable[UserReschedule]) -> Tuple[List[UserReschedule], List[UserReschedule]]:
    """Split reschedules into (complete, obsolete) by whether their target slot is fully specified."""
    valid, obsolete = [], []
    for reschedule in reschedules:
        if reschedule.original_plan_date and reschedule.new_plan_date and reschedule.new_start_time and reschedule.new_end_time:
            valid.append(reschedule)
        else:
            obsolete.append(reschedule)
    return valid, obsolete


def apply_user_reschedules(
    plans: List[StudyPlan],
    reschedules: Iterable[UserReschedule],
) -> Tuple[List[StudyPlan], List[UserReschedule], List[UserReschedule]]:
    """
    Replay user moves over a (re)generated plan.

    A reschedule whose original session no longer exists becomes obsolete.
    """
    applied, obsolete = [], []
    for reschedule in reschedules:
        origin = find_plan(plans, reschedule.original_plan_date)
        session = origin.find_session(reschedule.task_id, reschedule.session_number) if origin else None
        if session is None:
            reschedule.status = 'obsolete'
            obsolete.append(reschedule)
            continue

        target = find_plan(plans, reschedule.new_plan_date)
        if target is None:
            target = StudyPlan(date=reschedule.new_plan_date, available_hours=origin.available_hours)
            plans.append(target)
            plans.sort(key=lambda p: p.date)

        origin.planned_tasks = [s for s in origin.planned_tasks if s is not session]
        session.original_time = reschedule.original_start_time
        session.original_date = reschedule.original_plan_date
        session.start_time = reschedule.new_start_time
        session.end_time = reschedule.new_end_time
        session.rescheduled_at = reschedule.rescheduled_at
        session.status = SessionStatus.RESCHEDULED
        target.planned_tasks.append(session)
        applied.append(reschedule)
    return plans, applied, obsolete


def redistribute_after_task_deletion(
    tasks: Iterable[Task],
    settings: UserSettings,
    commitments: Sequence[FixedCommitment],
    existing_plans: Iterable[StudyPlan],
    today: Optional[date] = None,
) -> PlanResult:
    """Regenerate the plan without the sessions of tasks that no longer exist."""
    tasks = list(tasks)
    task_ids = {t.id for t in tasks}
    remaining_plans = []
    for plan in existing_plans:
        sessions = [s for s in plan.planned_tasks if s.task_id in task_ids]
        remaining_plans.append(replace(plan, planned_tasks=sessions))
    return generate_study_plan_with_preservation(tasks, settings, commitments, remaining_plans, today)
