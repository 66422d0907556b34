"""
Unit tests for missed-session redistribution and single-session moves.
"""
from datetime import date, datetime

import pytest

from services.errors import SessionNotFoundError
from services.planning_domain import (
    FixedCommitment,
    SessionStatus,
    StudyPlan,
    StudySession,
    Task,
    TaskStatus,
    UserSettings,
)
from services.redistribution_service import (
    MissedSession,
    RedistributionEngine,
    RedistributionOptions,
    apply_user_reschedules,
    create_user_reschedule,
    find_plan,
    redistribute_after_task_deletion,
    validate_user_reschedules,
)

MONDAY = date(2025, 1, 6)
TUESDAY = date(2025, 1, 7)
WEDNESDAY = date(2025, 1, 8)
THURSDAY = date(2025, 1, 9)
NOW = datetime(2025, 1, 8, 7, 0)


def session(task_id='t1', start='08:00', end='10:00', hours=2, number=1):
    return StudySession(task_id=task_id, start_time=start, end_time=end, allocated_hours=hours,
                        session_number=number)


def monday_plans(*sessions):
    return [StudyPlan(date=MONDAY, planned_tasks=list(sessions) or [session()], available_hours=4)]


@pytest.fixture
def settings():
    return UserSettings(daily_available_hours=4, study_window_start_hour=8, study_window_end_hour=20)


@pytest.fixture
def engine(settings):
    return RedistributionEngine(settings, [])


@pytest.fixture
def task():
    return Task(id='t1', title='Algebra', estimated_hours=2, deadline=date(2025, 1, 10))


@pytest.mark.unit
class TestRedistributeMissedSessions:

    def test_moves_missed_session_to_first_free_day(self, engine, task):
        plans = monday_plans()

        result = engine.redistribute_missed_sessions(plans, [task], today=WEDNESDAY, now=NOW)

        assert result.success
        assert result.message == 'Successfully redistributed 1 of 1 missed sessions'
        assert find_plan(plans, MONDAY).planned_tasks == []
        moved = find_plan(plans, WEDNESDAY).planned_tasks[0]
        assert moved.start_time == '08:00'
        assert moved.status == SessionStatus.REDISTRIBUTED
        assert moved.scheduling_metadata.reschedule_history[-1].reason == 'redistribution'
        assert moved.scheduling_metadata.original_slot.date == MONDAY

    def test_nothing_missed(self, engine, task):
        result = engine.redistribute_missed_sessions([], [task], today=WEDNESDAY, now=NOW)
        assert result.success
        assert result.message == 'No missed sessions found.'

    def test_hours_already_covered_later_are_not_missed(self, engine, task):
        plans = monday_plans() + [StudyPlan(date=THURSDAY, planned_tasks=[session()], available_hours=4)]
        assert engine.collect_missed_sessions(plans, [task], WEDNESDAY) == []

    def test_completed_tasks_are_ignored(self, engine):
        done = Task(id='t1', title='Algebra', estimated_hours=2, status=TaskStatus.COMPLETED)
        assert engine.collect_missed_sessions(monday_plans(), [done], WEDNESDAY) == []

    def test_passed_deadline_marks_session_failed(self, engine):
        late = Task(id='t1', title='Algebra', estimated_hours=2, deadline=TUESDAY)
        plans = monday_plans()

        result = engine.redistribute_missed_sessions(plans, [late], today=WEDNESDAY, now=NOW)

        assert not result.success
        assert result.reasons == ['Algebra: Deadline has already passed']
        assert 'Extend task deadlines if possible' in result.suggestions
        failed = find_plan(plans, MONDAY).planned_tasks[0]
        assert failed.status == SessionStatus.FAILED_REDISTRIBUTION
        assert failed.scheduling_metadata.failure_reasons == ['Deadline has already passed']

    def test_conflicts_on_target_day_roll_back(self, engine, task):
        crowded = StudyPlan(date=WEDNESDAY, available_hours=4, planned_tasks=[
            session('x', '08:00', '09:00', 1, 1),
            session('x', '08:30', '09:30', 1, 2),
        ])
        plans = monday_plans() + [crowded]

        result = engine.redistribute_missed_sessions(plans, [task], today=WEDNESDAY, now=NOW)

        assert not result.success
        assert result.rollback_performed
        assert find_plan(plans, MONDAY).planned_tasks[0].status == SessionStatus.SCHEDULED
        assert len(find_plan(plans, WEDNESDAY).planned_tasks) == 2


@pytest.mark.unit
def test_priority_scoring(engine):
    important = Task(id='t1', title='Algebra', estimated_hours=2, deadline=THURSDAY, importance=True)
    item = MissedSession(session=session(), plan_date=MONDAY, task=important)

    assert engine.calculate_priority(item, WEDNESDAY, RedistributionOptions()).total == 1460
    no_importance = RedistributionOptions(prioritize_important_tasks=False)
    assert engine.calculate_priority(item, WEDNESDAY, no_importance).total == 460


@pytest.mark.unit
def test_options_from_request_payload():
    options = RedistributionOptions.from_dict({'max_redistribution_days': '3', 'enable_rollback': False})
    assert options.max_redistribution_days == 3
    assert not options.enable_rollback
    assert options.respect_daily_limits


@pytest.mark.unit
class TestSkipAndComplete:

    def test_full_skip(self, engine):
        plans = monday_plans()
        skipped = engine.skip_session(plans, MONDAY, 1, 't1', reason='overload', now=NOW)
        assert skipped.status == SessionStatus.SKIPPED
        assert skipped.skip_metadata.reason == 'overload'

    def test_partial_skip_splits_the_tail(self, engine):
        plans = monday_plans()
        tail = engine.skip_session(plans, MONDAY, 1, 't1', partial_hours=0.5, now=NOW)

        kept = find_plan(plans, MONDAY).find_session('t1', 1)
        assert (kept.start_time, kept.end_time, kept.allocated_hours) == ('08:00', '09:30', 1.5)
        assert (tail.start_time, tail.end_time, tail.allocated_hours) == ('09:30', '10:00', 0.5)
        assert tail.session_number == 2
        assert tail.status == SessionStatus.SKIPPED
        assert kept.status == SessionStatus.SCHEDULED

    def test_complete_defaults_to_allocated_hours(self, engine):
        plans = monday_plans()
        completed = engine.complete_session(plans, MONDAY, 1, 't1', now=NOW)
        assert completed.done
        assert completed.actual_hours == 2
        assert completed.status == SessionStatus.COMPLETED

    def test_unknown_session(self, engine):
        with pytest.raises(SessionNotFoundError):
            engine.complete_session(monday_plans(), MONDAY, 7, 't1')


@pytest.mark.unit
class TestMoves:

    def test_move_to_today(self, engine):
        plans = monday_plans()
        result = engine.move_individual_session(plans, MONDAY, 't1', 1, today=WEDNESDAY, now=NOW)

        assert result.success
        assert (result.new_date, result.new_start_time) == (WEDNESDAY, '08:00')
        moved = find_plan(plans, WEDNESDAY).planned_tasks[0]
        assert moved.original_time == '08:00'
        assert moved.original_date == MONDAY
        assert moved.status == SessionStatus.SCHEDULED
        assert find_plan(plans, MONDAY).planned_tasks == []

    def test_move_to_today_on_rest_day(self):
        engine = RedistributionEngine(UserSettings(work_days=[1]), [])
        result = engine.move_individual_session(monday_plans(), MONDAY, 't1', 1, today=WEDNESDAY, now=NOW)
        assert not result.success

    def test_move_to_chosen_slot(self, engine):
        plans = monday_plans()
        result = engine.move_session_to_slot(plans, MONDAY, 't1', 1, TUESDAY, '14:00', now=NOW)

        assert result.success
        moved = find_plan(plans, TUESDAY).planned_tasks[0]
        assert moved.end_time == '16:00'
        assert moved.is_manual_override
        assert moved.status == SessionStatus.RESCHEDULED

    def test_move_into_commitment_is_refused(self, settings):
        seminar = FixedCommitment(id='c1', title='Seminar', recurring=True, days_of_week=[2],
                                  start_time='14:30', end_time='15:30')
        engine = RedistributionEngine(settings, [seminar])
        plans = monday_plans()

        result = engine.move_session_to_slot(plans, MONDAY, 't1', 1, TUESDAY, '14:00', now=NOW)

        assert not result.success
        assert not result.validation.can_proceed
        assert find_plan(plans, MONDAY).planned_tasks[0].start_time == '08:00'


@pytest.mark.unit
class TestUserReschedules:

    def test_replayed_over_plans(self):
        plans = monday_plans()
        reschedule = create_user_reschedule(plans[0].planned_tasks[0], MONDAY, TUESDAY, '15:00', '17:00', now=NOW)

        plans, applied, obsolete = apply_user_reschedules(plans, [reschedule])

        assert applied == [reschedule]
        assert obsolete == []
        moved = find_plan(plans, TUESDAY).planned_tasks[0]
        assert (moved.start_time, moved.original_time) == ('15:00', '08:00')
        assert moved.status == SessionStatus.RESCHEDULED

    def test_missing_session_is_obsolete(self):
        stale = create_user_reschedule(session(number=9), MONDAY, TUESDAY, '15:00', '17:00', now=NOW)
        _, applied, obsolete = apply_user_reschedules(monday_plans(), [stale])
        assert applied == []
        assert obsolete[0].status == 'obsolete'

    def test_incomplete_reschedule_is_split_out(self):
        complete = create_user_reschedule(session(), MONDAY, TUESDAY, '15:00', '17:00', now=NOW)
        partial = create_user_reschedule(session(), MONDAY, TUESDAY, '', '', now=NOW)
        assert validate_user_reschedules([complete, partial]) == ([complete], [partial])


@pytest.mark.unit
def test_deleted_task_sessions_are_dropped(settings, task):
    existing = [StudyPlan(date=WEDNESDAY, available_hours=4, planned_tasks=[
        session('gone', '08:00', '09:00', 1),
        session('t1', '09:00', '11:00', 2),
    ])]

    result = redistribute_after_task_deletion([task], settings, [], existing, today=WEDNESDAY)

    task_ids = {s.task_id for plan in result.plans for s in plan.planned_tasks}
    assert 'gone' not in task_ids
    assert 't1' in task_ids
