"""
Settings Validation
Range checks for submitted settings, and the impact of a settings change on
sessions the user moved by hand.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from services.errors import SettingsValidationError
from services.planning_domain import StudyPlan, StudyPlanMode, StudySession, UserSettings, day_of_week
from services.slot_finder import get_effective_study_window

logger = logging.getLogger(__name__)

# field -> (minimum, maximum), inclusive
NUMERIC_RANGES = {
    'daily_available_hours': (0.25, 24),
    'buffer_days': (0, 30),
    'min_session_length': (5, 240),
    'buffer_time_between_sessions': (0, 120),
    'short_break_duration': (0, 120),
    'long_break_duration': (0, 240),
    'max_consecutive_hours': (0.5, 24),
    'study_window_start_hour': (0, 23),
    'study_window_end_hour': (1, 24),
}


@dataclass
class SettingsConflict:
    type: str  # study_window_conflict, work_day_conflict
    session: StudySession
    plan_date: date
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'session_id': self.session.session_key,
            'plan_date': self.plan_date.isoformat(),
            'message': self.message,
        }


@dataclass
class SettingsChangeValidation:
    conflicts: List[SettingsConflict] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.conflicts

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'conflicts': [c.to_dict() for c in self.conflicts],
            'suggestions': list(self.suggestions),
        }


@dataclass
class SettingsChangeOptions:
    preserve_manual_reschedules: bool = True
    regenerate_auto_sessions: bool = True
    handle_conflicts: str = 'preserve'  # warn, auto_fix, preserve

    def to_dict(self) -> Dict[str, Any]:
        return {
            'preserve_manual_reschedules': self.preserve_manual_reschedules,
            'regenerate_auto_sessions': self.regenerate_auto_sessions,
            'handle_conflicts': self.handle_conflicts,
        }


def validate_settings_change(
    plans: Iterable[StudyPlan],
    old_settings: UserSettings,
    new_settings: UserSettings,
) -> SettingsChangeValidation:
    """Check manually moved sessions against the new study window and work days."""
    result = SettingsChangeValidation()

    for plan in plans:
        for session in plan.planned_tasks:
            if not session.is_manual_override:
                continue

            window_start, window_end = get_effective_study_window(plan.date, new_settings)
            start, end = session.interval
            if start < window_start * 60 or end > window_end * 60:
                result.conflicts.append(SettingsConflict(
                    type='study_window_conflict',
                    session=session,
                    plan_date=plan.date,
                    message=(
                        f"Manually rescheduled session conflicts with new study window "
                        f"({window_start}:00-{window_end}:00)"
                    ),
                ))

            if day_of_week(plan.date) not in new_settings.work_days:
                result.conflicts.append(SettingsConflict(
                    type='work_day_conflict',
                    session=session,
                    plan_date=plan.date,
                    message='Manually rescheduled session is on a day you no longer want to study',
                ))

    if result.conflicts:
        result.suggestions.append(
            'Consider keeping your manual reschedules and only regenerating auto-scheduled sessions'
        )
        result.suggestions.append('Review conflicting sessions and manually adjust them to fit your new settings')
        kinds = {c.type for c in result.conflicts}
        if 'study_window_conflict' in kinds:
            result.suggestions.append('Expand your study window to accommodate existing manual reschedules')
        if 'work_day_conflict' in kinds:
            result.suggestions.append('Add back work days that have manually scheduled sessions, or move those sessions')
        logger.info(f"Settings change conflicts with {len(result.conflicts)} manually scheduled sessions")

    return result


def get_settings_change_recommendation(validation: SettingsChangeValidation) -> SettingsChangeOptions:
    return SettingsChangeOptions(handle_conflicts='preserve' if validation.is_valid else 'warn')


def create_settings_change_message(validation: SettingsChangeValidation, options: SettingsChangeOptions) -> str:
    if validation.is_valid:
        return 'Settings updated successfully. Your manually scheduled sessions have been preserved.'
    return (
        f"Settings updated with {len(validation.conflicts)} conflicts detected in your manually scheduled "
        f"sessions. Please review the highlighted sessions and adjust them manually if needed."
    )


def _check_window(window: Dict[str, Any], label: str, errors: Dict[str, str]) -> None:
    try:
        start, end = int(window['start_hour']), int(window['end_hour'])
    except (KeyError, TypeError, ValueError):
        errors[label] = 'start_hour and end_hour are required'
        return
    if not (0 <= start < end <= 24):
        errors[label] = 'Window start must be before its end, within 0-24'


def validate_settings_values(payload: Dict[str, Any], current: Optional[UserSettings] = None) -> UserSettings:
    """
    Merge ``payload`` over ``current`` and range-check the result.

    Raises:
        SettingsValidationError: with a per-field ``details`` map
    """
    current = current or UserSettings()
    merged = current.to_dict()
    merged.update({k: v for k, v in payload.items() if k in merged})
    errors: Dict[str, str] = {}

    for name, (minimum, maximum) in NUMERIC_RANGES.items():
        value = merged.get(name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            errors[name] = 'Must be a number'
        elif not minimum <= value <= maximum:
            errors[name] = f"Must be between {minimum} and {maximum}"

    if 'study_window_start_hour' not in errors and 'study_window_end_hour' not in errors:
        if merged['study_window_start_hour'] >= merged['study_window_end_hour']:
            errors['study_window_end_hour'] = 'Study window must end after it starts'

    work_days = merged.get('work_days')
    if not isinstance(work_days, list) or not work_days:
        errors['work_days'] = 'Select at least one work day'
    elif any(isinstance(d, bool) or not isinstance(d, int) or not 0 <= d <= 6 for d in work_days):
        errors['work_days'] = 'Work days must be between 0 (Sunday) and 6 (Saturday)'

    if merged.get('study_plan_mode') not in {m.value for m in StudyPlanMode}:
        errors['study_plan_mode'] = f"Must be one of {', '.join(m.value for m in StudyPlanMode)}"

    for index, window in enumerate(merged.get('date_specific_study_windows') or []):
        _check_window(window, f"date_specific_study_windows[{index}]", errors)
    for index, window in enumerate(merged.get('day_specific_study_windows') or []):
        _check_window(window, f"day_specific_study_windows[{index}]", errors)
        if isinstance(window, dict) and window.get('day_of_week') not in range(7):
            errors[f"day_specific_study_windows[{index}]"] = 'day_of_week must be between 0 and 6'

    if errors:
        raise SettingsValidationError('Invalid settings', errors)

    try:
        return UserSettings.from_dict(merged)
    except (KeyError, TypeError, ValueError) as e:
        raise SettingsValidationError(f"Invalid settings: {e}") from e
