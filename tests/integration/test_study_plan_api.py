"""
Integration tests for the study plan API: reading, session actions,
redistribution and slot validation.
"""
from datetime import date, timedelta

import pytest

from models import FixedCommitment
from services.planning_domain import StudyPlan, StudySession

TODAY = date.today()
YESTERDAY = TODAY - timedelta(days=1)
TOMORROW = TODAY + timedelta(days=1)
LATER = TODAY + timedelta(days=2)


def session(task_id, start='09:00', end='10:00', hours=1, number=1):
    return StudySession(task_id=str(task_id), start_time=start, end_time=end,
                        allocated_hours=hours, session_number=number)


def session_url(day, task_id, action, number=1):
    return f'/api/study-plan/sessions/{day.isoformat()}/{task_id}/{number}/{action}'


@pytest.fixture
def task(make_task):
    return make_task(title='Thermodynamics', estimated_hours=1, deadline=TODAY + timedelta(days=5))


@pytest.fixture
def tomorrow_plan(task, store_plans):
    store_plans([StudyPlan(date=TOMORROW, planned_tasks=[session(task.id)], available_hours=6)])
    return task


@pytest.mark.integration
class TestGetStudyPlan:

    def test_sessions_carry_display_status(self, authenticated_client, task, store_plans):
        store_plans([
            StudyPlan(date=YESTERDAY, planned_tasks=[session(task.id)], available_hours=6),
            StudyPlan(date=TOMORROW, planned_tasks=[session(task.id, number=2)], available_hours=6),
        ])
        response = authenticated_client.get('/api/study-plan')
        assert response.status_code == 200
        statuses = [p['planned_tasks'][0]['display_status'] for p in response.json['plans']]
        assert statuses == ['missed', 'scheduled']

    def test_unchanged_plan_returns_304(self, authenticated_client, tomorrow_plan):
        etag = authenticated_client.get('/api/study-plan').headers['ETag']
        response = authenticated_client.get('/api/study-plan', headers={'If-None-Match': etag})
        assert response.status_code == 304

    def test_generate(self, authenticated_client, make_task):
        task = make_task(title='Essay', estimated_hours=2, deadline=TODAY + timedelta(days=3), importance=True)
        response = authenticated_client.post('/api/study-plan/generate')
        assert response.status_code == 200
        planned = sum(s['allocated_hours'] for p in response.json['plans'] for s in p['planned_tasks']
                      if s['task_id'] == str(task.id))
        assert planned == pytest.approx(2)
        assert response.json['unscheduled'] == []


@pytest.mark.integration
class TestSessionActions:

    def test_complete(self, authenticated_client, tomorrow_plan):
        response = authenticated_client.post(
            session_url(TOMORROW, tomorrow_plan.id, 'complete'), json={'actual_hours': 0.75},
        )
        assert response.status_code == 200
        assert response.json['session']['done'] is True
        assert response.json['session']['actual_hours'] == 0.75
        assert authenticated_client.get('/api/study-plan').json['completed_hours'] == 1

    def test_partial_skip(self, authenticated_client, tomorrow_plan):
        response = authenticated_client.post(
            session_url(TOMORROW, tomorrow_plan.id, 'skip'), json={'partial_hours': 0.5, 'reason': 'overload'},
        )
        assert response.status_code == 200
        assert response.json['session']['status'] == 'skipped'
        assert response.json['session']['start_time'] == '09:30'

    def test_skip_rejects_negative_hours(self, authenticated_client, tomorrow_plan):
        response = authenticated_client.post(
            session_url(TOMORROW, tomorrow_plan.id, 'skip'), json={'partial_hours': -1},
        )
        assert response.status_code == 400

    def test_unknown_session(self, authenticated_client, tomorrow_plan):
        response = authenticated_client.post(session_url(TOMORROW, tomorrow_plan.id, 'complete', number=5))
        assert response.status_code == 404

    def test_bad_date(self, authenticated_client, tomorrow_plan):
        response = authenticated_client.post(f'/api/study-plan/sessions/soon/{tomorrow_plan.id}/1/complete')
        assert response.status_code == 400

    def test_manual_move(self, authenticated_client, tomorrow_plan):
        response = authenticated_client.post(
            session_url(TOMORROW, tomorrow_plan.id, 'move'),
            json={'target_date': LATER.isoformat(), 'start_time': '14:00'},
        )
        assert response.status_code == 200
        assert response.json['new_date'] == LATER.isoformat()
        assert response.json['session']['end_time'] == '15:00'
        reschedule = response.json['reschedule']
        assert reschedule['original_start_time'] == '09:00'
        assert reschedule['new_start_time'] == '14:00'

    def test_move_into_commitment_is_refused(self, authenticated_client, db_session, test_user, tomorrow_plan):
        db_session.add(FixedCommitment(
            user_id=test_user.id, title='Exam', recurring=False, specific_dates=[LATER.isoformat()],
            start_time='14:00', end_time='16:00',
        ))
        db_session.commit()
        response = authenticated_client.post(
            session_url(TOMORROW, tomorrow_plan.id, 'move'),
            json={'target_date': LATER.isoformat(), 'start_time': '14:30'},
        )
        assert response.status_code == 409
        assert response.json['moved'] is False
        assert response.json['validation']['can_proceed'] is False

    def test_move_with_bad_time(self, authenticated_client, tomorrow_plan):
        response = authenticated_client.post(
            session_url(TOMORROW, tomorrow_plan.id, 'move'),
            json={'target_date': LATER.isoformat(), 'start_time': '2pm'},
        )
        assert response.status_code == 400


@pytest.mark.integration
class TestRedistribute:

    def test_missed_session_is_moved_forward(self, authenticated_client, task, store_plans):
        store_plans([StudyPlan(date=YESTERDAY, planned_tasks=[session(task.id)], available_hours=6)])

        response = authenticated_client.post('/api/study-plan/redistribute', json={'options': {}})

        assert response.status_code == 200
        assert response.json['successfully_moved'] == 1
        stored = authenticated_client.get('/api/study-plan').json['plans']
        moved = [p for p in stored if p['date'] >= TODAY.isoformat() and p['planned_tasks']]
        assert moved[0]['planned_tasks'][0]['status'] == 'redistributed'

    def test_nothing_to_do(self, authenticated_client):
        response = authenticated_client.post('/api/study-plan/redistribute')
        assert response.status_code == 200
        assert response.json['message'] == 'No missed sessions found.'

    def test_bad_options(self, authenticated_client):
        response = authenticated_client.post('/api/study-plan/redistribute', json={'max_redistribution_days': 'many'})
        assert response.status_code == 400


@pytest.mark.integration
class TestValidateSlot:

    def test_overlap_unless_excluded(self, authenticated_client, tomorrow_plan):
        payload = {'date': TOMORROW.isoformat(), 'start_time': '09:30', 'end_time': '10:30'}
        response = authenticated_client.post('/api/study-plan/validate-slot', json=payload)
        assert response.status_code == 200
        assert [c['type'] for c in response.json['conflicts']] == ['session_overlap']

        payload['exclude_session_id'] = f'{tomorrow_plan.id}-1'
        response = authenticated_client.post('/api/study-plan/validate-slot', json=payload)
        assert response.json['is_valid'] is True

    def test_bad_times(self, authenticated_client):
        response = authenticated_client.post('/api/study-plan/validate-slot', json={
            'date': TOMORROW.isoformat(), 'start_time': '9', 'end_time': '10:00',
        })
        assert response.status_code == 400
