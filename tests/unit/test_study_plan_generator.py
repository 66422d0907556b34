"""
Unit tests for study plan generation.
"""
from datetime import date, datetime

import pytest

from services.planning_domain import (
    DeadlineType,
    FixedCommitment,
    SessionStatus,
    StudyPlan,
    StudyPlanMode,
    StudySession,
    TargetFrequency,
    Task,
    TaskStatus,
    UserSettings,
)
from services.study_plan_generator import (
    check_frequency_deadline_conflict,
    combine_adjacent_sessions,
    generate_study_plan,
    generate_study_plan_with_preservation,
    get_unscheduled_minutes_for_tasks,
    optimize_session_distribution,
    preserve_manual_schedules,
    quadrant_order,
)

MONDAY = date(2025, 1, 6)
TUESDAY = date(2025, 1, 7)
WEDNESDAY = date(2025, 1, 8)
THURSDAY = date(2025, 1, 9)


@pytest.fixture
def settings():
    return UserSettings(daily_available_hours=4, study_window_start_hour=8, study_window_end_hour=20)


def sessions_for(plans, task_id):
    return [(p.date, s) for p in plans for s in p.planned_tasks if s.task_id == task_id]


@pytest.mark.unit
class TestEisenhowerMode:

    def test_fills_days_up_to_daily_limit(self, settings):
        task = Task(id='1', title='Essay', estimated_hours=6, deadline=WEDNESDAY, importance=True)
        result = generate_study_plan([task], settings, [], today=MONDAY)

        placed = sessions_for(result.plans, '1')
        assert [(d, s.start_time, s.end_time) for d, s in placed] == [
            (MONDAY, '08:00', '12:00'),
            (TUESDAY, '08:00', '10:00'),
        ]
        assert result.suggestions == []
        assert result.plans[0].total_study_hours == pytest.approx(4)

    def test_important_tasks_are_scheduled_first(self, settings):
        urgent_minor = Task(id='b', title='Chores', estimated_hours=2, deadline=TUESDAY)
        important = Task(id='a', title='Thesis', estimated_hours=4, deadline=WEDNESDAY, importance=True)
        result = generate_study_plan([urgent_minor, important], settings, [], today=MONDAY)

        assert [d for d, _ in sessions_for(result.plans, 'a')] == [MONDAY]
        assert [d for d, _ in sessions_for(result.plans, 'b')] == [TUESDAY]

    def test_sessions_avoid_commitments(self, settings):
        lecture = FixedCommitment(id='c', title='Lecture', recurring=True, days_of_week=[1],
                                  start_time='08:00', end_time='10:00')
        task = Task(id='1', title='Lab report', estimated_hours=2, deadline=MONDAY)
        result = generate_study_plan([task], settings, [lecture], today=MONDAY)

        (day, session), = sessions_for(result.plans, '1')
        assert (session.start_time, session.end_time) == ('10:00', '12:00')
        assert result.plans[0].available_hours == pytest.approx(2)

    def test_reports_hours_that_do_not_fit(self, settings):
        task = Task(id='1', title='Cram', estimated_hours=10, deadline=MONDAY)
        result = generate_study_plan([task], settings, [], today=MONDAY)

        assert len(result.suggestions) == 1
        assert result.suggestions[0].task_id == '1'
        assert result.suggestions[0].unscheduled_minutes == 360

    def test_buffer_days_pull_the_deadline_forward(self, settings):
        settings.buffer_days = 1
        task = Task(id='1', title='Essay', estimated_hours=6, deadline=WEDNESDAY)
        result = generate_study_plan([task], settings, [], today=MONDAY)
        assert max(d for d, _ in sessions_for(result.plans, '1')) <= TUESDAY

    def test_completed_tasks_are_not_planned(self, settings):
        task = Task(id='1', title='Done', estimated_hours=2, deadline=TUESDAY)
        task.status = TaskStatus.COMPLETED
        assert generate_study_plan([task], settings, [], today=MONDAY).plans == []

    def test_rest_days_are_skipped(self, settings):
        settings.work_days = [2, 3]
        task = Task(id='1', title='Essay', estimated_hours=2, deadline=WEDNESDAY)
        result = generate_study_plan([task], settings, [], today=MONDAY)
        assert [p.date for p in result.plans] == [TUESDAY]


@pytest.mark.unit
def test_even_mode_spreads_hours_across_days():
    settings = UserSettings(daily_available_hours=6, study_window_start_hour=8, study_window_end_hour=20,
                            study_plan_mode=StudyPlanMode.EVEN)
    task = Task(id='1', title='Reading', estimated_hours=4, deadline=THURSDAY)
    result = generate_study_plan([task], settings, [], today=MONDAY)

    placed = sessions_for(result.plans, '1')
    assert [d for d, _ in placed] == [MONDAY, TUESDAY, WEDNESDAY, THURSDAY]
    assert all(s.allocated_hours == pytest.approx(1) for _, s in placed)


@pytest.mark.unit
def test_no_deadline_tasks_fill_spare_capacity(settings):
    task = Task(id='1', title='Side project', estimated_hours=3, deadline_type=DeadlineType.NONE)
    result = generate_study_plan([task], settings, [], today=MONDAY)

    placed = sessions_for(result.plans, '1')
    assert [(d, s.allocated_hours) for d, s in placed] == [(MONDAY, 1.5), (TUESDAY, 1.5)]


@pytest.mark.unit
def test_weekly_no_deadline_task_skips_a_week_between_sessions(settings):
    task = Task(id='1', title='Piano', estimated_hours=6, deadline_type=DeadlineType.NONE,
                target_frequency=TargetFrequency.WEEKLY)
    result = generate_study_plan([task], settings, [], today=MONDAY)

    days = [d for d, _ in sessions_for(result.plans, '1')]
    assert days == [MONDAY, date(2025, 1, 13)]


@pytest.mark.unit
def test_completed_progress_is_carried_over(settings):
    task = Task(id='1', title='Essay', estimated_hours=4, deadline=TUESDAY)
    done = StudySession(task_id='1', start_time='08:00', end_time='10:00', allocated_hours=2,
                        done=True, status=SessionStatus.COMPLETED)
    existing = [StudyPlan(date=MONDAY, planned_tasks=[done])]

    result = generate_study_plan([task], settings, [], existing, today=MONDAY)

    placed = sessions_for(result.plans, '1')
    assert sum(s.allocated_hours for _, s in placed if not s.done) == pytest.approx(2)
    assert any(s.done for _, s in placed)


@pytest.mark.unit
def test_past_days_are_kept_as_they_were(settings):
    task = Task(id='1', title='Essay', estimated_hours=2, deadline=TUESDAY)
    missed = StudySession(task_id='1', start_time='08:00', end_time='09:00', allocated_hours=1)
    existing = [StudyPlan(date=date(2025, 1, 3), planned_tasks=[missed])]

    result = generate_study_plan([task], settings, [], existing, today=MONDAY)
    assert result.plans[0].date == date(2025, 1, 3)
    assert result.plans[0].planned_tasks[0].start_time == '08:00'


@pytest.mark.unit
class TestPreserveManualSchedules:

    def test_manual_move_keeps_its_time(self):
        moved = StudySession(task_id='1', start_time='15:00', end_time='16:00', allocated_hours=1,
                             is_manual_override=True, original_time='08:00', original_date=MONDAY,
                             rescheduled_at=datetime(2025, 1, 5, 12, 0))
        fresh = StudySession(task_id='1', start_time='08:00', end_time='09:00', allocated_hours=1)

        plans = preserve_manual_schedules(
            [StudyPlan(date=MONDAY, planned_tasks=[fresh])],
            [StudyPlan(date=MONDAY, planned_tasks=[moved])],
        )
        session = plans[0].planned_tasks[0]
        assert (session.start_time, session.end_time) == ('15:00', '16:00')
        assert session.is_manual_override

    def test_done_state_is_copied(self):
        done = StudySession(task_id='1', start_time='08:00', end_time='09:00', allocated_hours=1,
                            done=True, status=SessionStatus.COMPLETED, actual_hours=0.75)
        fresh = StudySession(task_id='1', start_time='08:00', end_time='09:00', allocated_hours=1)

        plans = preserve_manual_schedules(
            [StudyPlan(date=MONDAY, planned_tasks=[fresh])],
            [StudyPlan(date=MONDAY, planned_tasks=[done])],
        )
        assert plans[0].planned_tasks[0].done
        assert plans[0].planned_tasks[0].actual_hours == 0.75

    def test_with_preservation_keeps_manual_session_in_generated_plan(self, settings):
        task = Task(id='1', title='Essay', estimated_hours=1, deadline=TUESDAY)
        moved = StudySession(task_id='1', start_time='15:00', end_time='16:00', allocated_hours=1,
                             is_manual_override=True, original_time='08:00', original_date=MONDAY)
        existing = [StudyPlan(date=MONDAY, planned_tasks=[moved])]

        result = generate_study_plan_with_preservation([task], settings, [], existing, today=MONDAY)
        placed = sessions_for(result.plans, '1')
        assert [(d, s.start_time) for d, s in placed] == [(MONDAY, '15:00')]


@pytest.mark.unit
class TestCombineAdjacentSessions:

    def test_back_to_back_sessions_merge(self):
        plan = StudyPlan(date=MONDAY, planned_tasks=[
            StudySession(task_id='1', start_time='08:00', end_time='09:00', allocated_hours=1, session_number=1),
            StudySession(task_id='1', start_time='09:00', end_time='10:30', allocated_hours=1.5, session_number=2),
        ])
        combine_adjacent_sessions([plan])
        assert len(plan.planned_tasks) == 1
        merged = plan.planned_tasks[0]
        assert (merged.start_time, merged.end_time, merged.allocated_hours) == ('08:00', '10:30', 2.5)

    def test_manual_and_completed_sessions_stay_apart(self):
        plan = StudyPlan(date=MONDAY, planned_tasks=[
            StudySession(task_id='1', start_time='08:00', end_time='09:00', allocated_hours=1,
                         is_manual_override=True),
            StudySession(task_id='1', start_time='09:00', end_time='10:00', allocated_hours=1, session_number=2),
            StudySession(task_id='1', start_time='10:00', end_time='11:00', allocated_hours=1, session_number=3,
                         done=True, status=SessionStatus.COMPLETED),
        ])
        combine_adjacent_sessions([plan])
        assert len(plan.planned_tasks) == 3


@pytest.mark.unit
class TestFrequencyDeadlineConflict:

    def test_weekly_frequency_too_sparse_for_deadline(self):
        settings = UserSettings(daily_available_hours=2)
        task = Task(id='1', title='Project', estimated_hours=10, deadline=date(2025, 1, 12),
                    target_frequency=TargetFrequency.WEEKLY)
        check = check_frequency_deadline_conflict(task, settings, MONDAY)
        assert check.has_conflict
        assert check.recommended_frequency == 'daily'

    def test_soft_deadline_never_conflicts(self):
        settings = UserSettings(daily_available_hours=2)
        task = Task(id='1', title='Project', estimated_hours=10, deadline=date(2025, 1, 12),
                    deadline_type=DeadlineType.SOFT, target_frequency=TargetFrequency.WEEKLY)
        assert not check_frequency_deadline_conflict(task, settings, MONDAY).has_conflict


@pytest.mark.unit
class TestSessionDistribution:

    def test_one_time_task_is_a_single_session(self):
        task = Task(id='1', title='Exam', estimated_hours=3, is_one_time_task=True)
        assert optimize_session_distribution(task, 3, 5, UserSettings()) == [3]

    def test_preferred_duration_is_honoured(self):
        task = Task(id='1', title='Reading', estimated_hours=3, preferred_session_duration=1.5)
        assert optimize_session_distribution(task, 3, 4, UserSettings()) == [1.5, 1.5]

    def test_sessions_are_capped_by_daily_hours(self):
        task = Task(id='1', title='Reading', estimated_hours=6)
        lengths = optimize_session_distribution(task, 6, 2, UserSettings(daily_available_hours=2))
        assert lengths[1] <= 2
        assert sum(lengths) == pytest.approx(6)


@pytest.mark.unit
def test_quadrant_order_puts_urgent_important_first():
    tasks = [
        Task(id='later', title='d', estimated_hours=1, deadline=date(2025, 2, 1)),
        Task(id='urgent', title='c', estimated_hours=1, deadline=TUESDAY),
        Task(id='important', title='b', estimated_hours=1, deadline=date(2025, 2, 1), importance=True),
        Task(id='both', title='a', estimated_hours=1, deadline=TUESDAY, importance=True),
    ]
    assert [t.id for t in quadrant_order(tasks, MONDAY)] == ['both', 'important', 'urgent', 'later']


@pytest.mark.unit
def test_unscheduled_minutes_ignore_tiny_remainders():
    tasks = [
        Task(id='1', title='a', estimated_hours=2),
        Task(id='2', title='b', estimated_hours=2),
    ]
    result = get_unscheduled_minutes_for_tasks(tasks, {'1': 1.9, '2': 1.0}, UserSettings(min_session_length=15))
    assert [(u.task_id, u.unscheduled_minutes) for u in result] == [('2', 60)]
