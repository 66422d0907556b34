"""
Conflict Prevention Engine
Validates candidate time slots and whole plans around redistribution.
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from services.commitment_calendar import commitments_for_date, is_all_day_on, occurrence_interval
from services.commitment_conflicts import times_overlap
from services.planning_domain import (
    FixedCommitment,
    StudyPlan,
    StudySession,
    UserSettings,
    day_of_week,
    time_to_minutes,
)
from services.slot_finder import get_effective_study_window

logger = logging.getLogger(__name__)

HIGH_UTILIZATION = 0.9
TIGHT_CAPACITY = 0.8


class ConflictSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ConflictKind(Enum):
    SESSION_OVERLAP = "session_overlap"
    COMMITMENT_CONFLICT = "commitment_conflict"
    DAILY_LIMIT_EXCEEDED = "daily_limit_exceeded"
    INVALID_TIME_SLOT = "invalid_time_slot"
    ALL_DAY_CONFLICT = "all_day_conflict"


@dataclass
class ConflictDetails:
    type: ConflictKind
    message: str
    severity: ConflictSeverity
    session_id: Optional[str] = None
    conflicting_session_id: Optional[str] = None
    conflicting_commitment_id: Optional[str] = None
    suggestion: Optional[str] = None

    @property
    def is_blocking(self) -> bool:
        return self.severity in (ConflictSeverity.HIGH, ConflictSeverity.CRITICAL)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'type': self.type.value,
            'message': self.message,
            'severity': self.severity.value,
        }
        for key in ('session_id', 'conflicting_session_id', 'conflicting_commitment_id', 'suggestion'):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass
class ConflictValidationResult:
    conflicts: List[ConflictDetails] = field(default_factory=list)
    warnings: List[ConflictDetails] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.conflicts

    @property
    def can_proceed(self) -> bool:
        return not any(c.is_blocking for c in self.conflicts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'can_proceed': self.can_proceed,
            'conflicts': [c.to_dict() for c in self.conflicts],
            'warnings': [w.to_dict() for w in self.warnings],
            'suggestions': list(self.suggestions),
        }


def _occupies_time(session: StudySession) -> bool:
    return bool(session.start_time and session.end_time) and not session.is_completed and not session.is_skipped


class ConflictPreventionEngine:
    """Checks slots and plans against sessions, commitments, windows and daily limits."""

    def __init__(self, settings: UserSettings, commitments: Iterable[FixedCommitment]):
        self.settings = settings
        self.commitments = list(commitments)

    # -----------------------------
    # Single slot
    # -----------------------------

    def is_time_slot_available(
        self,
        target: date,
        start_time: str,
        end_time: str,
        existing_sessions: Iterable[StudySession],
        exclude_session_id: Optional[str] = None,
    ) -> ConflictValidationResult:
        """
        Validate a candidate slot on ``target``.

        Args:
            target: Day of the slot
            start_time: ``HH:MM`` start
            end_time: ``HH:MM`` end
            existing_sessions: Sessions already planned on ``target``
            exclude_session_id: ``<task_id>-<session_number>`` of the session being moved

        Returns:
            ConflictValidationResult; ``can_proceed`` is False on any high or critical conflict
        """
        existing_sessions = [
            s for s in existing_sessions
            if exclude_session_id is None or s.session_key != exclude_session_id
        ]
        result = ConflictValidationResult()
        start, end = time_to_minutes(start_time), time_to_minutes(end_time)

        if not (0 <= start < end <= 24 * 60):
            result.conflicts.append(ConflictDetails(
                type=ConflictKind.INVALID_TIME_SLOT,
                message='Invalid time range',
                severity=ConflictSeverity.HIGH,
            ))

        window_start, window_end = get_effective_study_window(target, self.settings)
        if start < window_start * 60 or end > window_end * 60:
            result.conflicts.append(ConflictDetails(
                type=ConflictKind.INVALID_TIME_SLOT,
                message=f"Time slot outside study window ({window_start}:00 - {window_end}:00)",
                severity=ConflictSeverity.HIGH,
            ))

        if day_of_week(target) not in self.settings.work_days:
            result.conflicts.append(ConflictDetails(
                type=ConflictKind.INVALID_TIME_SLOT,
                message='Date is not a work day',
                severity=ConflictSeverity.HIGH,
            ))

        result.conflicts.extend(self._session_overlaps(start, end, existing_sessions))
        result.conflicts.extend(self._commitment_conflicts(target, start, end))
        result.conflicts.extend(self._daily_limit(start, end, existing_sessions))

        if result.conflicts:
            result.suggestions.append('Find alternative time slot')
        return result

    def _session_overlaps(self, start: int, end: int, sessions: Iterable[StudySession]) -> List[ConflictDetails]:
        conflicts = []
        for session in sessions:
            if not _occupies_time(session):
                continue
            if times_overlap((start, end), session.interval):
                conflicts.append(ConflictDetails(
                    type=ConflictKind.SESSION_OVERLAP,
                    message=f"Overlaps with existing session ({session.start_time} - {session.end_time})",
                    severity=ConflictSeverity.HIGH,
                    conflicting_session_id=session.session_key,
                    suggestion='Choose a different time slot',
                ))
        return conflicts

    def _commitment_conflicts(self, target: date, start: int, end: int) -> List[ConflictDetails]:
        conflicts = []
        for commitment in commitments_for_date(self.commitments, target):
            if not commitment.is_fixed:
                continue
            if is_all_day_on(commitment, target):
                conflicts.append(ConflictDetails(
                    type=ConflictKind.ALL_DAY_CONFLICT,
                    message=f"Conflicts with all-day commitment: {commitment.title}",
                    severity=ConflictSeverity.HIGH,
                    conflicting_commitment_id=commitment.id,
                    suggestion='Choose a different day',
                ))
                continue
            interval = occurrence_interval(commitment, target)
            if interval is not None and times_overlap((start, end), interval):
                conflicts.append(ConflictDetails(
                    type=ConflictKind.COMMITMENT_CONFLICT,
                    message=f"Conflicts with {commitment.title} ({commitment.start_time} - {commitment.end_time})",
                    severity=ConflictSeverity.HIGH,
                    conflicting_commitment_id=commitment.id,
                    suggestion='Choose a different time slot',
                ))
        return conflicts

    def _daily_limit(self, start: int, end: int, sessions: Iterable[StudySession]) -> List[ConflictDetails]:
        planned = sum(s.allocated_hours for s in sessions if _occupies_time(s))
        total = planned + (end - start) / 60
        limit = self.settings.daily_available_hours
        if total > limit:
            return [ConflictDetails(
                type=ConflictKind.DAILY_LIMIT_EXCEEDED,
                message=f"Would exceed daily limit ({total:.1f}h > {limit}h)",
                severity=ConflictSeverity.MEDIUM,
                suggestion='Reduce session length or choose a different day',
            )]
        return []

    # -----------------------------
    # Whole plans
    # -----------------------------

    def validate_plan(self, plan: StudyPlan) -> ConflictValidationResult:
        """Session overlaps, commitment clashes and daily overload within one day."""
        result = ConflictValidationResult()
        sessions = [s for s in plan.planned_tasks if _occupies_time(s)]

        for index, first in enumerate(sessions):
            for second in sessions[index + 1:]:
                if times_overlap(first.interval, second.interval):
                    result.conflicts.append(ConflictDetails(
                        type=ConflictKind.SESSION_OVERLAP,
                        message=(
                            f"Sessions overlap: {first.start_time}-{first.end_time} "
                            f"and {second.start_time}-{second.end_time}"
                        ),
                        severity=ConflictSeverity.HIGH,
                        session_id=first.session_key,
                        conflicting_session_id=second.session_key,
                        suggestion='Adjust session times to avoid overlap',
                    ))

        for session in sessions:
            start, end = session.interval
            for conflict in self._commitment_conflicts(plan.date, start, end):
                conflict.session_id = session.session_key
                result.conflicts.append(conflict)

        total = sum(s.allocated_hours for s in sessions)
        limit = self.settings.daily_available_hours
        if total > limit:
            result.warnings.append(ConflictDetails(
                type=ConflictKind.DAILY_LIMIT_EXCEEDED,
                message=f"Day exceeds available hours: {total:.1f}h > {limit}h",
                severity=ConflictSeverity.MEDIUM,
                suggestion='Consider redistributing some sessions to other days',
            ))
        return result

    def validate_before_redistribution(
        self,
        plans: Iterable[StudyPlan],
        sessions_to_redistribute: Iterable[StudySession],
        today: Optional[date] = None,
    ) -> ConflictValidationResult:
        """Check there is future capacity for the sessions and report conflicts already present."""
        today = today or date.today()
        plans = list(plans)
        future = [p for p in plans if p.date >= today]
        result = ConflictValidationResult()

        if not future:
            result.conflicts.append(ConflictDetails(
                type=ConflictKind.INVALID_TIME_SLOT,
                message='No future study days available for redistribution',
                severity=ConflictSeverity.CRITICAL,
                suggestion='Add more study days to your schedule',
            ))

        needed = sum(s.allocated_hours for s in sessions_to_redistribute)
        capacity = sum(
            max(0.0, self.settings.daily_available_hours - p.active_hours()) for p in future
        )
        if needed > capacity:
            result.conflicts.append(ConflictDetails(
                type=ConflictKind.DAILY_LIMIT_EXCEEDED,
                message=f"Need {needed:.1f}h but only {capacity:.1f}h available",
                severity=ConflictSeverity.HIGH,
                suggestion='Consider increasing daily available hours or extending deadlines',
            ))
        elif capacity > 0 and needed > capacity * TIGHT_CAPACITY:
            result.warnings.append(ConflictDetails(
                type=ConflictKind.DAILY_LIMIT_EXCEEDED,
                message=f"Redistribution will use {needed / capacity * 100:.0f}% of available capacity",
                severity=ConflictSeverity.MEDIUM,
                suggestion='Schedule may become very tight',
            ))

        for plan in plans:
            result.conflicts.extend(self.validate_plan(plan).conflicts)
        return result

    def validate_after_redistribution(self, plans: Iterable[StudyPlan]) -> ConflictValidationResult:
        result = ConflictValidationResult()
        limit = self.settings.daily_available_hours

        for plan in plans:
            plan_result = self.validate_plan(plan)
            result.conflicts.extend(plan_result.conflicts)
            result.warnings.extend(plan_result.warnings)

            if limit > 0:
                utilization = plan.active_hours() / limit
                if utilization > HIGH_UTILIZATION:
                    result.warnings.append(ConflictDetails(
                        type=ConflictKind.DAILY_LIMIT_EXCEEDED,
                        message=f"Day {plan.date.isoformat()} is {utilization * 100:.0f}% utilized",
                        severity=ConflictSeverity.LOW,
                        suggestion='Consider spreading sessions across more days',
                    ))

        if result.conflicts:
            result.suggestions.append('Review and resolve scheduling conflicts before proceeding')
        if result.warnings:
            result.suggestions.append('Consider optimizing schedule for better balance')
        return result

    def rollback_on_conflict(self, original_plans: List[StudyPlan], working_plans: List[StudyPlan]) -> bool:
        """
        Restore ``working_plans`` in place from ``original_plans`` when they contain conflicts.

        Returns True when a rollback happened.
        """
        if self.validate_after_redistribution(working_plans).is_valid:
            return False
        working_plans[:] = copy.deepcopy(original_plans)
        logger.warning("Redistribution produced conflicts; plans rolled back")
        return True
