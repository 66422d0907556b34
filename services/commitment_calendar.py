"""
Commitment Calendar
Resolves which commitments occur on a given date and when.

Occurrence resolution order for a date:
1. deleted occurrences never apply
2. a modified occurrence overrides the commitment's times (or makes it all-day)
3. day-specific timings apply when ``use_day_specific_timing`` is enabled
4. otherwise the commitment's base times
"""

import logging
from datetime import date
from typing import Iterable, List, Optional, Tuple

from services.planning_domain import (
    ALL_DAY_INTERVAL,
    DaySpecificTiming,
    FixedCommitment,
    day_of_week,
    time_to_minutes,
)

logger = logging.getLogger(__name__)


def commitment_applies_to_date(commitment: FixedCommitment, target: date) -> bool:
    """Check if a commitment has an occurrence on ``target``."""
    if target in commitment.deleted_occurrences:
        return False

    if commitment.recurring:
        if day_of_week(target) not in commitment.days_of_week:
            return False
        # A bounded recurring commitment only applies inside its range
        if commitment.date_range is not None:
            return commitment.date_range.contains(target)
        return True

    return target in commitment.specific_dates


def _timing_for(commitment: FixedCommitment, target: date) -> Optional[DaySpecificTiming]:
    if not commitment.use_day_specific_timing:
        return None
    dow = day_of_week(target)
    for timing in commitment.day_specific_timings:
        if timing.day_of_week == dow:
            return timing
    return None


def occurrence_times(commitment: FixedCommitment, target: date) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Effective ``(is_all_day, start_time, end_time)`` of the occurrence on ``target``.

    Does not check applicability; call ``commitment_applies_to_date`` first.
    """
    is_all_day = commitment.is_all_day
    start_time = commitment.start_time
    end_time = commitment.end_time

    timing = _timing_for(commitment, target)
    if timing is not None:
        is_all_day = timing.is_all_day
        start_time = timing.start_time
        end_time = timing.end_time

    modified = commitment.modified_occurrences.get(target)
    if modified is not None:
        if modified.is_all_day is not None:
            is_all_day = modified.is_all_day
        start_time = modified.start_time or start_time
        end_time = modified.end_time or end_time

    return is_all_day, start_time, end_time


def occurrence_interval(commitment: FixedCommitment, target: date) -> Optional[Tuple[int, int]]:
    """Busy interval in minutes for the occurrence on ``target``, or None if it has no times."""
    is_all_day, start_time, end_time = occurrence_times(commitment, target)
    if is_all_day:
        return ALL_DAY_INTERVAL
    if not start_time or not end_time:
        return None
    return time_to_minutes(start_time), time_to_minutes(end_time)


def is_all_day_on(commitment: FixedCommitment, target: date) -> bool:
    return occurrence_times(commitment, target)[0]


def commitments_for_date(commitments: Iterable[FixedCommitment], target: date) -> List[FixedCommitment]:
    return [c for c in commitments if commitment_applies_to_date(c, target)]


def has_blocking_all_day_commitment(commitments: Iterable[FixedCommitment], target: date) -> bool:
    """True when a fixed all-day occurrence removes the whole day from scheduling."""
    return any(
        c.is_fixed and is_all_day_on(c, target)
        for c in commitments_for_date(commitments, target)
    )


def busy_intervals_for_date(commitments: Iterable[FixedCommitment], target: date) -> List[Tuple[int, int]]:
    """Busy intervals of the fixed commitments occurring on ``target``."""
    intervals = []
    for commitment in commitments_for_date(commitments, target):
        if not commitment.is_fixed:
            continue
        interval = occurrence_interval(commitment, target)
        if interval is not None:
            intervals.append(interval)
    return intervals


def calculate_daily_available_hours(
    target: date,
    base_available_hours: float,
    commitments: Iterable[FixedCommitment],
) -> float:
    """
    Study hours left on ``target`` after fixed commitments.

    A fixed all-day occurrence leaves nothing. Timed occurrences only reduce
    the budget when they count toward daily hours.
    """
    active = commitments_for_date(commitments, target)
    if any(c.is_fixed and is_all_day_on(c, target) for c in active):
        return 0.0

    blocked_minutes = 0
    for commitment in active:
        if not commitment.is_fixed or not commitment.counts_toward_daily_hours:
            continue
        interval = occurrence_interval(commitment, target)
        if interval is None:
            continue
        blocked_minutes += max(0, interval[1] - interval[0])

    return max(0.0, base_available_hours - blocked_minutes / 60)
