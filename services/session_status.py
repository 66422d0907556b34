"""
Session Status
Derives the display status of a study session from its stored state and the clock.

Skipped sessions count as finished work: they are excluded from active
session lists but included in progress totals so the planner does not try
to reschedule their hours.
"""

import logging
from datetime import date, datetime
from typing import Iterable, List, Optional

from services.planning_domain import (
    SessionDisplayStatus,
    SessionStatus,
    StudySession,
)

logger = logging.getLogger(__name__)


def check_session_status(
    session: StudySession,
    plan_date: date,
    now: Optional[datetime] = None,
) -> SessionDisplayStatus:
    """
    Classify a session as scheduled, in progress, completed, missed, overdue or rescheduled.

    Precedence:
    1. completed (done, completed or skipped)
    2. rescheduled (carries an original time and date)
    3. scheduled, when redistribution moved it onto ``plan_date``
    4. past day: manual overrides stay scheduled, otherwise missed
    5. today: compared against the session's start and end times
    """
    now = now or datetime.now()
    today = now.date()

    if session.is_completed:
        return SessionDisplayStatus.COMPLETED
    if session.is_skipped:
        return SessionDisplayStatus.COMPLETED

    if session.original_time and session.original_date:
        return SessionDisplayStatus.RESCHEDULED

    metadata = session.scheduling_metadata
    if metadata and metadata.reschedule_history:
        last_move = metadata.reschedule_history[-1]
        if last_move.to_slot.date == plan_date and last_move.reason == 'redistribution':
            return SessionDisplayStatus.SCHEDULED

    if plan_date < today:
        if session.is_manual_override:
            return SessionDisplayStatus.SCHEDULED
        if session.status == SessionStatus.RESCHEDULED:
            return SessionDisplayStatus.RESCHEDULED
        logger.debug(f"Session {session.session_key} on {plan_date} marked as missed")
        return SessionDisplayStatus.MISSED

    if plan_date == today:
        now_minutes = now.hour * 60 + now.minute
        start_minutes, end_minutes = session.interval
        if now_minutes < start_minutes:
            return SessionDisplayStatus.SCHEDULED
        if now_minutes <= end_minutes:
            return SessionDisplayStatus.IN_PROGRESS
        return SessionDisplayStatus.OVERDUE

    return SessionDisplayStatus.SCHEDULED


def is_missed_or_redistributed(session: StudySession, plan_date: date, now: Optional[datetime] = None) -> bool:
    status = check_session_status(session, plan_date, now)
    return (
        status == SessionDisplayStatus.MISSED
        or session.is_manual_override
        or bool(session.original_time and session.original_date)
    )


def calculate_total_study_hours(sessions: Iterable[StudySession]) -> float:
    """Hours of finished work in a plan; skipped sessions count as done."""
    return sum(s.allocated_hours for s in sessions if s.done or s.is_skipped)


def filter_skipped_sessions(sessions: Iterable[StudySession]) -> List[StudySession]:
    return [s for s in sessions if not s.is_skipped]
