"""
Request payload parsing for tasks and commitments.

Merges a JSON body over the current state, checks it and returns the domain
object. Failures raise ``TaskValidationError`` / ``CommitmentValidationError``
with a per-field ``details`` map.
"""

import re
from typing import Any, Dict, Optional

from services.errors import CommitmentValidationError, TaskValidationError
from services.planning_domain import (
    DeadlineType,
    FixedCommitment,
    TargetFrequency,
    Task,
    TaskStatus,
    parse_date,
    time_to_minutes,
)

TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')

TASK_FIELDS = (
    'title', 'estimated_hours', 'deadline', 'importance', 'status', 'description', 'category',
    'deadline_type', 'target_frequency', 'respect_frequency_for_deadlines', 'min_work_block',
    'max_session_length', 'preferred_session_duration', 'is_one_time_task', 'start_date',
)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _valid_date(value) -> bool:
    try:
        parse_date(value)
    except (AttributeError, TypeError, ValueError):
        return False
    return True


def parse_task_payload(payload: Dict[str, Any], current: Optional[Task] = None, task_id: str = 'new') -> Task:
    merged = current.to_dict() if current else {'id': task_id}
    merged.update({k: v for k, v in payload.items() if k in TASK_FIELDS})
    errors: Dict[str, str] = {}

    if not str(merged.get('title') or '').strip():
        errors['title'] = 'Title is required'

    hours = merged.get('estimated_hours')
    if not _is_number(hours) or hours <= 0:
        errors['estimated_hours'] = 'Must be a positive number of hours'

    for name in ('deadline', 'start_date'):
        if merged.get(name) is not None and not _valid_date(merged[name]):
            errors[name] = 'Must be an ISO date (YYYY-MM-DD)'

    choices = (
        ('status', TaskStatus),
        ('deadline_type', DeadlineType),
        ('target_frequency', TargetFrequency),
    )
    for name, enum_cls in choices:
        value = merged.get(name)
        if value is not None and value not in {e.value for e in enum_cls}:
            errors[name] = f"Must be one of {', '.join(e.value for e in enum_cls)}"

    min_block = merged.get('min_work_block')
    if min_block is not None and (not isinstance(min_block, int) or isinstance(min_block, bool) or min_block <= 0):
        errors['min_work_block'] = 'Must be a positive number of minutes'
    for name in ('max_session_length', 'preferred_session_duration'):
        value = merged.get(name)
        if value is not None and (not _is_number(value) or value <= 0):
            errors[name] = 'Must be a positive number of hours'

    if errors:
        raise TaskValidationError('Invalid task', errors)

    merged['title'] = merged['title'].strip()
    return Task.from_dict(merged)


def _check_time_range(start: Optional[str], end: Optional[str], label: str, errors: Dict[str, str]) -> None:
    if not start or not end or not TIME_PATTERN.match(start) or not TIME_PATTERN.match(end):
        errors[label] = 'start_time and end_time must be HH:MM'
    elif time_to_minutes(start) >= time_to_minutes(end):
        errors[label] = 'end_time must be after start_time'


def parse_commitment_payload(
    payload: Dict[str, Any],
    current: Optional[FixedCommitment] = None,
) -> FixedCommitment:
    merged = current.to_dict() if current else {}
    merged.update({k: v for k, v in payload.items() if k != 'id'})
    errors: Dict[str, str] = {}

    if not str(merged.get('title') or '').strip():
        errors['title'] = 'Title is required'

    if merged.get('recurring'):
        days = merged.get('days_of_week')
        if not isinstance(days, list) or not days:
            errors['days_of_week'] = 'Recurring commitments need at least one weekday'
        elif any(isinstance(d, bool) or not isinstance(d, int) or not 0 <= d <= 6 for d in days):
            errors['days_of_week'] = 'Weekdays must be between 0 (Sunday) and 6 (Saturday)'
    else:
        dates = merged.get('specific_dates')
        if not isinstance(dates, list) or not dates:
            errors['specific_dates'] = 'One-time commitments need at least one date'
        elif not all(_valid_date(d) for d in dates):
            errors['specific_dates'] = 'Dates must be ISO dates (YYYY-MM-DD)'

    if not merged.get('is_all_day'):
        if merged.get('use_day_specific_timing'):
            for index, timing in enumerate(merged.get('day_specific_timings') or []):
                if not timing.get('is_all_day'):
                    _check_time_range(
                        timing.get('start_time'), timing.get('end_time'),
                        f"day_specific_timings[{index}]", errors,
                    )
        else:
            _check_time_range(merged.get('start_time'), merged.get('end_time'), 'time', errors)

    date_range = merged.get('date_range')
    if date_range:
        start, end = date_range.get('start_date'), date_range.get('end_date')
        if not _valid_date(start) or not _valid_date(end) or start is None or end is None:
            errors['date_range'] = 'start_date and end_date must be ISO dates'
        elif parse_date(start) > parse_date(end):
            errors['date_range'] = 'start_date must not be after end_date'

    if errors:
        raise CommitmentValidationError('Invalid commitment', errors)

    merged['title'] = merged['title'].strip()
    if current is not None:
        merged['id'] = current.id
    try:
        return FixedCommitment.from_dict(merged)
    except (KeyError, TypeError, ValueError) as e:
        raise CommitmentValidationError(f"Invalid commitment: {e}") from e
