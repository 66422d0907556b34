"""
Unit tests for study-window resolution and first-fit slot search.
"""
from datetime import date

import pytest

from services.planning_domain import (
    DateSpecificStudyWindow,
    DaySpecificStudyWindow,
    FixedCommitment,
    SessionStatus,
    StudySession,
    UserSettings,
)
from services.slot_finder import (
    find_next_available_start_time,
    find_next_available_time_slot,
    get_daily_available_time_slots,
    get_effective_study_window,
    validate_session_times,
)

MONDAY = date(2025, 1, 6)


def session(start, end, **extra):
    hours = (int(end[:2]) * 60 + int(end[3:]) - int(start[:2]) * 60 - int(start[3:])) / 60
    return StudySession(task_id='1', start_time=start, end_time=end, allocated_hours=hours, **extra)


def commitment(start, end, **extra):
    return FixedCommitment(id='c1', title='Class', recurring=True, days_of_week=[1],
                           start_time=start, end_time=end, **extra)


@pytest.mark.unit
class TestEffectiveStudyWindow:

    def test_default_window(self):
        assert get_effective_study_window(MONDAY, UserSettings()) == (6, 23)

    def test_day_specific_window(self):
        settings = UserSettings(day_specific_study_windows=[DaySpecificStudyWindow(1, 9, 17)])
        assert get_effective_study_window(MONDAY, settings) == (9, 17)

    def test_date_specific_window_wins(self):
        settings = UserSettings(
            day_specific_study_windows=[DaySpecificStudyWindow(1, 9, 17)],
            date_specific_study_windows=[DateSpecificStudyWindow(MONDAY, 12, 14)],
        )
        assert get_effective_study_window(MONDAY, settings) == (12, 14)

    def test_inactive_windows_are_ignored(self):
        settings = UserSettings(
            date_specific_study_windows=[DateSpecificStudyWindow(MONDAY, 12, 14, is_active=False)],
        )
        assert get_effective_study_window(MONDAY, settings) == (6, 23)


@pytest.mark.unit
class TestFindNextAvailableTimeSlot:

    def test_empty_day_starts_at_window_start(self):
        slot = find_next_available_time_slot(2, [], [], 8, 20)
        assert (slot.start, slot.end) == ('08:00', '10:00')
        assert slot.duration_hours == pytest.approx(2)

    def test_skips_sessions_and_commitments(self):
        slot = find_next_available_time_slot(
            1.5,
            [session('08:00', '09:00')],
            [commitment('09:30', '11:00')],
            8, 20,
            target_date=MONDAY,
        )
        assert (slot.start, slot.end) == ('11:00', '12:30')

    def test_buffer_is_kept_after_busy_intervals(self):
        slot = find_next_available_time_slot(1, [session('08:00', '09:00')], [], 8, 20, 15)
        assert slot.start == '09:15'

    def test_completed_and_skipped_sessions_free_their_time(self):
        sessions = [
            session('08:00', '09:00', done=True, status=SessionStatus.COMPLETED),
            session('09:00', '10:00', status=SessionStatus.SKIPPED),
        ]
        assert find_next_available_time_slot(2, sessions, [], 8, 20).start == '08:00'

    def test_all_day_commitment_blocks_day(self):
        holiday = FixedCommitment(id='h', title='Holiday', recurring=True, days_of_week=[1], is_all_day=True)
        assert find_next_available_time_slot(1, [], [holiday], 8, 20, target_date=MONDAY) is None

    def test_gap_is_clamped_to_window_end(self):
        assert find_next_available_time_slot(2, [], [commitment('19:00', '21:00')], 8, 10,
                                             target_date=MONDAY).start == '08:00'
        assert find_next_available_time_slot(3, [], [commitment('19:00', '21:00')], 8, 10,
                                             target_date=MONDAY) is None

    def test_settings_override_window_for_date(self):
        settings = UserSettings(date_specific_study_windows=[DateSpecificStudyWindow(MONDAY, 14, 18)])
        slot = find_next_available_time_slot(1, [], [], 8, 20, target_date=MONDAY, settings=settings)
        assert slot.start == '14:00'


@pytest.mark.unit
def test_daily_available_slots_are_capped_by_budget():
    settings = UserSettings(study_window_start_hour=8, study_window_end_hour=20)
    slots = get_daily_available_time_slots(MONDAY, 3, [commitment('10:00', '12:00')], settings)
    assert [(s.start, s.end) for s in slots] == [('08:00', '10:00'), ('12:00', '13:00')]


@pytest.mark.unit
def test_daily_available_slots_empty_on_rest_day():
    settings = UserSettings(work_days=[2, 3, 4])
    assert get_daily_available_time_slots(MONDAY, 3, [], settings) == []


@pytest.mark.unit
def test_next_available_start_time_pushes_past_overlaps():
    settings = UserSettings()
    sessions = [session('09:00', '10:00'), session('10:00', '11:00')]
    assert find_next_available_start_time('09:30', 60, sessions, MONDAY, settings) == '11:00'
    assert find_next_available_start_time('22:30', 60, [], MONDAY, settings) == '06:00'


@pytest.mark.unit
def test_validate_session_times_detects_commitment_overlap():
    assert validate_session_times([session('08:00', '09:00')], [commitment('09:00', '10:00')], MONDAY)
    assert not validate_session_times([session('08:30', '09:30')], [commitment('09:00', '10:00')], MONDAY)
