"""
Slot Finder
First-fit placement of study sessions inside the daily study window.
"""

import logging
from datetime import date
from typing import Iterable, List, Optional, Tuple

from services.commitment_calendar import (
    busy_intervals_for_date,
    commitments_for_date,
    has_blocking_all_day_commitment,
    occurrence_interval,
)
from services.planning_domain import (
    ALL_DAY_INTERVAL,
    FixedCommitment,
    StudySession,
    TimeSlot,
    UserSettings,
    day_of_week,
    minutes_to_time,
    time_to_minutes,
)

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_START = 6
DEFAULT_WINDOW_END = 23


def get_effective_study_window(target: date, settings: UserSettings) -> Tuple[int, int]:
    """
    Study window ``(start_hour, end_hour)`` for a date.

    An active date-specific window wins over an active day-of-week window,
    which wins over the default window.
    """
    for window in settings.date_specific_study_windows:
        if window.is_active and window.date == target:
            return window.start_hour, window.end_hour

    weekday = day_of_week(target)
    for window in settings.day_specific_study_windows:
        if window.is_active and window.day_of_week == weekday:
            return window.start_hour, window.end_hour

    return (
        settings.study_window_start_hour or DEFAULT_WINDOW_START,
        settings.study_window_end_hour or DEFAULT_WINDOW_END,
    )


def _session_busy_intervals(sessions: Iterable[StudySession]) -> List[Tuple[int, int]]:
    # Finished or skipped sessions no longer hold their time
    return [s.interval for s in sessions if not s.is_completed and not s.is_skipped]


def _commitment_busy_intervals(
    commitments: Iterable[FixedCommitment],
    target_date: Optional[date],
) -> List[Tuple[int, int]]:
    if target_date is not None:
        return busy_intervals_for_date(commitments, target_date)

    intervals = []
    for commitment in commitments:
        if not commitment.is_fixed:
            continue
        if commitment.is_all_day:
            intervals.append(ALL_DAY_INTERVAL)
        elif commitment.start_time and commitment.end_time:
            intervals.append((time_to_minutes(commitment.start_time), time_to_minutes(commitment.end_time)))
    return intervals


def find_next_available_time_slot(
    required_hours: float,
    existing_sessions: Iterable[StudySession],
    commitments: Iterable[FixedCommitment],
    study_window_start_hour: int,
    study_window_end_hour: int,
    buffer_time_between_sessions: int = 0,
    target_date: Optional[date] = None,
    settings: Optional[UserSettings] = None,
) -> Optional[TimeSlot]:
    """
    Find the earliest gap that fits ``required_hours``.

    Args:
        required_hours: Session length in hours, rounded to whole minutes
        existing_sessions: Sessions already planned on the day
        commitments: Candidate commitments; filtered to ``target_date`` when given
        study_window_start_hour: Window start, overridden by ``settings`` for the date
        study_window_end_hour: Window end, overridden by ``settings`` for the date
        buffer_time_between_sessions: Minutes kept free after every busy interval
        target_date: Day being scheduled
        settings: Used to resolve date-specific study windows

    Returns:
        TimeSlot or None when the day has no room
    """
    commitments = list(commitments)
    if target_date is not None and has_blocking_all_day_commitment(commitments, target_date):
        return None

    start_hour, end_hour = study_window_start_hour, study_window_end_hour
    if settings is not None and target_date is not None:
        start_hour, end_hour = get_effective_study_window(target_date, settings)

    busy = _session_busy_intervals(existing_sessions)
    busy.extend(_commitment_busy_intervals(commitments, target_date))
    busy.sort(key=lambda interval: interval[0])

    required_minutes = round(required_hours * 60)
    current = start_hour * 60
    end_of_day = end_hour * 60

    for busy_start, busy_end in busy:
        gap = min(busy_start, end_of_day) - current
        if gap >= required_minutes:
            return TimeSlot(minutes_to_time(current), minutes_to_time(current + required_minutes))
        current = max(current, busy_end + buffer_time_between_sessions)

    if end_of_day - current >= required_minutes:
        return TimeSlot(minutes_to_time(current), minutes_to_time(current + required_minutes))

    if target_date is not None:
        logger.debug(f"No available slot for {required_hours}h on {target_date}")
    return None


def get_daily_available_time_slots(
    target: date,
    daily_hours: float,
    commitments: Iterable[FixedCommitment],
    settings: UserSettings,
) -> List[TimeSlot]:
    """Free gaps around the day's commitments, capped at ``daily_hours`` in total."""
    if day_of_week(target) not in settings.work_days:
        return []

    start_hour, end_hour = get_effective_study_window(target, settings)
    intervals = []
    for commitment in commitments_for_date(commitments, target):
        interval = occurrence_interval(commitment, target)
        if interval is not None:
            intervals.append(interval)
    intervals.sort(key=lambda interval: interval[0])

    budget = daily_hours * 60
    used = 0
    slots = []
    current = start_hour * 60
    end_of_window = end_hour * 60

    for busy_start, busy_end in intervals:
        gap_end = min(busy_start, end_of_window)
        if current < gap_end:
            duration = gap_end - current
            if used + duration <= budget:
                slots.append(TimeSlot(minutes_to_time(current), minutes_to_time(gap_end)))
                used += duration
        current = max(current, busy_end)

    if current < end_of_window:
        duration = min(end_of_window - current, budget - used)
        if duration > 0:
            slots.append(TimeSlot(minutes_to_time(current), minutes_to_time(int(current + duration))))

    return slots


def find_next_available_start_time(
    start_time: str,
    duration_minutes: int,
    existing_sessions: Iterable[StudySession],
    target: date,
    settings: UserSettings,
) -> str:
    """
    Push ``start_time`` past overlapping sessions.

    Falls back to the start of the study window when the pushed time no
    longer fits inside it.
    """
    window_start, window_end = get_effective_study_window(target, settings)
    candidate = time_to_minutes(start_time)

    for session in sorted(existing_sessions, key=lambda s: s.interval[0]):
        session_start, session_end = session.interval
        if candidate < session_end and candidate + duration_minutes > session_start:
            candidate = session_end

    if window_start * 60 <= candidate and candidate + duration_minutes <= window_end * 60:
        return minutes_to_time(candidate)
    return minutes_to_time(window_start * 60)


def validate_session_times(
    sessions: Iterable[StudySession],
    commitments: Iterable[FixedCommitment],
    target: date,
) -> bool:
    """True when no session overlaps another session or a commitment on ``target``."""
    intervals = []
    for commitment in commitments_for_date(commitments, target):
        interval = occurrence_interval(commitment, target)
        if interval is not None:
            intervals.append((interval, f"commitment-{commitment.title}"))
    for index, session in enumerate(sessions):
        intervals.append((session.interval, f"session-{index}"))

    intervals.sort(key=lambda item: item[0][0])
    for (current, current_source), (following, following_source) in zip(intervals, intervals[1:]):
        if current[1] > following[0]:
            logger.warning(
                f"Overlap detected on {target}: {current_source} {current} overlaps {following_source} {following}"
            )
            return False
    return True
