"""
Integration tests for the tasks API.
"""
from datetime import date, timedelta

import pytest


def in_days(days):
    return (date.today() + timedelta(days=days)).isoformat()


def planned_task_ids(client):
    plans = client.get('/api/study-plan').json['plans']
    return {s['task_id'] for plan in plans for s in plan['planned_tasks']}


@pytest.mark.integration
class TestCreateTask:

    def test_create_plans_the_task(self, authenticated_client):
        response = authenticated_client.post('/api/tasks', json={
            'title': 'Statistics revision', 'estimated_hours': 4, 'deadline': in_days(5), 'importance': True,
        })
        assert response.status_code == 201
        task = response.json['task']
        assert task['title'] == 'Statistics revision'
        assert str(task['id']) in planned_task_ids(authenticated_client)

    def test_invalid_payload(self, authenticated_client):
        response = authenticated_client.post('/api/tasks', json={'title': '', 'estimated_hours': 0})
        assert response.status_code == 400
        assert set(response.json['details']) == {'title', 'estimated_hours'}

    def test_infeasible_task_is_not_saved(self, authenticated_client):
        response = authenticated_client.post('/api/tasks', json={
            'title': 'Whole textbook', 'estimated_hours': 100, 'deadline': in_days(0), 'check_feasibility': True,
        })
        assert response.status_code == 422
        assert response.json['details']['feasibility']['blocks_new_task'] is True
        assert authenticated_client.get('/api/tasks').json['total'] == 0

    def test_feasibility_check_passes_for_small_task(self, authenticated_client):
        response = authenticated_client.post('/api/tasks?check_feasibility=true', json={
            'title': 'Flashcards', 'estimated_hours': 1, 'deadline': in_days(3),
        })
        assert response.status_code == 201


@pytest.mark.integration
class TestReadUpdateDelete:

    def test_list_supports_etag(self, authenticated_client, make_task):
        make_task(title='Essay')
        first = authenticated_client.get('/api/tasks')
        assert first.status_code == 200
        assert first.json['total'] == 1

        etag = first.headers['ETag']
        second = authenticated_client.get('/api/tasks', headers={'If-None-Match': etag})
        assert second.status_code == 304

    def test_list_filters_by_status(self, authenticated_client, make_task):
        make_task(title='Open')
        make_task(title='Finished', status='completed')
        tasks = authenticated_client.get('/api/tasks?status=completed').json['tasks']
        assert [t['title'] for t in tasks] == ['Finished']

    def test_other_users_task_is_not_found(self, authenticated_client):
        assert authenticated_client.get('/api/tasks/9999').status_code == 404

    def test_partial_update(self, authenticated_client, make_task):
        task = make_task(title='Essay', deadline=date.today() + timedelta(days=4))
        response = authenticated_client.patch(f'/api/tasks/{task.id}', json={'estimated_hours': 3.5})
        assert response.status_code == 200
        assert response.json['task']['estimated_hours'] == 3.5
        assert response.json['task']['title'] == 'Essay'

    def test_completing_a_task_records_the_time(self, authenticated_client, make_task):
        task = make_task(title='Essay')
        response = authenticated_client.put(f'/api/tasks/{task.id}', json={'status': 'completed'})
        assert response.status_code == 200
        assert response.json['task']['completed_at'] is not None

    def test_delete_drops_sessions(self, authenticated_client):
        created = authenticated_client.post('/api/tasks', json={
            'title': 'Lab report', 'estimated_hours': 2, 'deadline': in_days(2),
        }).json['task']
        assert str(created['id']) in planned_task_ids(authenticated_client)

        response = authenticated_client.delete(f"/api/tasks/{created['id']}")
        assert response.status_code == 200
        assert authenticated_client.get(f"/api/tasks/{created['id']}").status_code == 404
        assert str(created['id']) not in planned_task_ids(authenticated_client)
