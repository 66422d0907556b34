"""
Unit tests for settings range checks and settings-change impact.
"""
from datetime import date

import pytest

from services.errors import SettingsValidationError
from services.planning_domain import StudyPlan, StudyPlanMode, StudySession, UserSettings
from services.settings_validation import (
    create_settings_change_message,
    get_settings_change_recommendation,
    validate_settings_change,
    validate_settings_values,
)

MONDAY = date(2025, 1, 6)


def details_of(payload):
    with pytest.raises(SettingsValidationError) as exc:
        validate_settings_values(payload)
    return exc.value.context


@pytest.mark.unit
class TestValidateSettingsValues:

    def test_merges_over_current(self):
        current = UserSettings(daily_available_hours=3)
        result = validate_settings_values({'study_plan_mode': 'even', 'unknown_key': 1}, current)
        assert result.daily_available_hours == 3
        assert result.study_plan_mode == StudyPlanMode.EVEN

    def test_out_of_range_hours(self):
        assert 'daily_available_hours' in details_of({'daily_available_hours': 30})

    def test_non_numeric_value(self):
        assert details_of({'buffer_days': 'two'})['buffer_days'] == 'Must be a number'

    def test_window_must_end_after_start(self):
        errors = details_of({'study_window_start_hour': 18, 'study_window_end_hour': 9})
        assert errors['study_window_end_hour'] == 'Study window must end after it starts'

    @pytest.mark.parametrize('work_days', [[], [7], 'weekdays'])
    def test_bad_work_days(self, work_days):
        assert 'work_days' in details_of({'work_days': work_days})

    def test_unknown_mode(self):
        assert 'study_plan_mode' in details_of({'study_plan_mode': 'random'})

    def test_bad_day_specific_window(self):
        errors = details_of({'day_specific_study_windows': [{'day_of_week': 9, 'start_hour': 8, 'end_hour': 12}]})
        assert 'day_specific_study_windows[0]' in errors


@pytest.mark.unit
class TestSettingsChangeImpact:

    def plans(self, manual=True):
        early = StudySession(task_id='1', start_time='07:00', end_time='08:00', allocated_hours=1,
                             is_manual_override=manual)
        return [StudyPlan(date=MONDAY, planned_tasks=[early])]

    def test_manual_session_outside_new_window(self):
        result = validate_settings_change(self.plans(), UserSettings(), UserSettings(study_window_start_hour=8))
        assert [c.type for c in result.conflicts] == ['study_window_conflict']
        assert 'Expand your study window to accommodate existing manual reschedules' in result.suggestions

    def test_manual_session_on_removed_work_day(self):
        result = validate_settings_change(self.plans(), UserSettings(), UserSettings(work_days=[2, 3]))
        assert [c.type for c in result.conflicts] == ['work_day_conflict']

    def test_auto_sessions_are_ignored(self):
        result = validate_settings_change(self.plans(manual=False), UserSettings(), UserSettings(work_days=[2]))
        assert result.is_valid

    def test_messages(self):
        clean = validate_settings_change([], UserSettings(), UserSettings())
        options = get_settings_change_recommendation(clean)
        assert options.handle_conflicts == 'preserve'
        assert create_settings_change_message(clean, options).startswith('Settings updated successfully')

        conflicted = validate_settings_change(self.plans(), UserSettings(), UserSettings(work_days=[2]))
        options = get_settings_change_recommendation(conflicted)
        assert options.handle_conflicts == 'warn'
        assert 'with 1 conflicts detected' in create_settings_change_message(conflicted, options)
