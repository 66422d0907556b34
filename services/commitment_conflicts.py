"""
Commitment Conflict Detection

Decides whether a new (or edited) commitment overlaps an existing one and,
if so, whether the overlap blocks saving or merely overrides:

- recurring vs recurring   -> STRICT   (same kind, both can't hold)
- one-time  vs one-time    -> STRICT
- recurring vs one-time    -> OVERRIDE (the one-time entry takes precedence
                                        on the dates where they meet)

All-day entries never conflict; they coexist with timed commitments.
Intervals that only touch (10:00-11:00 and 11:00-12:00) do not overlap.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from services.planning_domain import (
    ConflictType,
    FixedCommitment,
    day_of_week,
    time_to_minutes,
)

logger = logging.getLogger(__name__)


@dataclass
class ConflictResult:
    """Outcome of a conflict check against one existing commitment."""
    has_conflict: bool
    conflicting_commitment: Optional[FixedCommitment] = None
    conflict_type: Optional[ConflictType] = None
    conflicting_dates: List[date] = field(default_factory=list)

    @property
    def is_strict(self) -> bool:
        return self.has_conflict and self.conflict_type == ConflictType.STRICT

    def to_dict(self) -> Dict[str, Any]:
        payload = {'has_conflict': self.has_conflict}
        if self.has_conflict:
            payload.update({
                'conflict_type': self.conflict_type.value,
                'conflicting_commitment': {
                    'id': self.conflicting_commitment.id,
                    'title': self.conflicting_commitment.title,
                },
                'conflicting_dates': [d.isoformat() for d in self.conflicting_dates],
            })
        return payload


def times_overlap(first: Tuple[int, int], second: Tuple[int, int]) -> bool:
    """Half-open overlap test on minute intervals."""
    return not (first[1] <= second[0] or first[0] >= second[1])


def _base_interval(commitment: FixedCommitment) -> Tuple[int, int]:
    return time_to_minutes(commitment.start_time), time_to_minutes(commitment.end_time)


def _weekday_interval(commitment: FixedCommitment, weekday: int) -> Optional[Tuple[int, int]]:
    """
    Interval of a recurring commitment on ``weekday``.

    Returns None when that weekday is configured as all-day.
    """
    if commitment.use_day_specific_timing:
        for timing in commitment.day_specific_timings:
            if timing.day_of_week == weekday:
                if timing.is_all_day:
                    return None
                return time_to_minutes(timing.start_time), time_to_minutes(timing.end_time)
    return _base_interval(commitment)


def _recurring_covers(commitment: FixedCommitment, target: date) -> bool:
    """Weekday match first, then the optional inclusive date range."""
    if day_of_week(target) not in commitment.days_of_week:
        return False
    if commitment.date_range is not None:
        return commitment.date_range.contains(target)
    return True


def _date_ranges_overlap(new: FixedCommitment, existing: FixedCommitment) -> bool:
    # An unbounded recurring commitment overlaps any range
    if new.date_range is None or existing.date_range is None:
        return True
    return new.date_range.overlaps(existing.date_range)


def _check_recurring_pair(new: FixedCommitment, existing: FixedCommitment) -> ConflictResult:
    if existing.is_all_day:
        return ConflictResult(has_conflict=False)

    shared_days = [d for d in new.days_of_week if d in existing.days_of_week]
    if not shared_days or not _date_ranges_overlap(new, existing):
        return ConflictResult(has_conflict=False)

    for weekday in shared_days:
        new_interval = _weekday_interval(new, weekday)
        existing_interval = _weekday_interval(existing, weekday)
        if new_interval is None or existing_interval is None:
            continue
        if times_overlap(new_interval, existing_interval):
            return ConflictResult(
                has_conflict=True,
                conflicting_commitment=existing,
                conflict_type=ConflictType.STRICT,
            )
    return ConflictResult(has_conflict=False)


def _check_one_time_pair(new: FixedCommitment, existing: FixedCommitment) -> ConflictResult:
    if new.is_all_day or existing.is_all_day:
        return ConflictResult(has_conflict=False)

    shared_dates = [d for d in new.specific_dates if d in existing.specific_dates]
    if not shared_dates:
        return ConflictResult(has_conflict=False)

    if times_overlap(_base_interval(new), _base_interval(existing)):
        return ConflictResult(
            has_conflict=True,
            conflicting_commitment=existing,
            conflict_type=ConflictType.STRICT,
            conflicting_dates=shared_dates,
        )
    return ConflictResult(has_conflict=False)


def _check_mixed_pair(
    recurring: FixedCommitment,
    one_time: FixedCommitment,
    existing: FixedCommitment,
) -> ConflictResult:
    if recurring.is_all_day or one_time.is_all_day:
        return ConflictResult(has_conflict=False)

    one_time_interval = _base_interval(one_time)
    overlapping_dates = []
    for target in one_time.specific_dates:
        if not _recurring_covers(recurring, target):
            continue
        recurring_interval = _weekday_interval(recurring, day_of_week(target))
        if recurring_interval is None:
            continue
        if times_overlap(one_time_interval, recurring_interval):
            overlapping_dates.append(target)

    if overlapping_dates:
        return ConflictResult(
            has_conflict=True,
            conflicting_commitment=existing,
            conflict_type=ConflictType.OVERRIDE,
            conflicting_dates=overlapping_dates,
        )
    return ConflictResult(has_conflict=False)


def check_against(new: FixedCommitment, existing: FixedCommitment) -> ConflictResult:
    """Classify the overlap between ``new`` and a single ``existing`` commitment."""
    # Recurring all-day entries (holidays, vacations) coexist with everything
    if new.recurring and new.is_all_day:
        return ConflictResult(has_conflict=False)

    if new.recurring and existing.recurring:
        return _check_recurring_pair(new, existing)
    if not new.recurring and not existing.recurring:
        return _check_one_time_pair(new, existing)
    if new.recurring:
        return _check_mixed_pair(new, existing, existing)
    return _check_mixed_pair(existing, new, existing)


def check_commitment_conflicts(
    new_commitment: FixedCommitment,
    existing_commitments: Iterable[FixedCommitment],
    exclude_commitment_id: Optional[str] = None,
) -> ConflictResult:
    """
    Return the first conflict between ``new_commitment`` and ``existing_commitments``.

    Args:
        new_commitment: Commitment being created or edited
        existing_commitments: Saved commitments, scanned in order
        exclude_commitment_id: Id of the commitment being edited, skipped

    Returns:
        ConflictResult; ``has_conflict`` is False when nothing overlaps
    """
    for existing in existing_commitments:
        if exclude_commitment_id is not None and existing.id == exclude_commitment_id:
            continue
        result = check_against(new_commitment, existing)
        if result.has_conflict:
            logger.debug(
                f"Commitment '{new_commitment.title}' conflicts with '{existing.title}' "
                f"({result.conflict_type.value})"
            )
            return result
    return ConflictResult(has_conflict=False)


def find_all_commitment_conflicts(
    new_commitment: FixedCommitment,
    existing_commitments: Iterable[FixedCommitment],
    exclude_commitment_id: Optional[str] = None,
) -> List[ConflictResult]:
    """Every conflict, in the order of ``existing_commitments``."""
    conflicts = []
    for existing in existing_commitments:
        if exclude_commitment_id is not None and existing.id == exclude_commitment_id:
            continue
        result = check_against(new_commitment, existing)
        if result.has_conflict:
            conflicts.append(result)
    return conflicts
