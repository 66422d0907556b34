"""
Integration tests for the health probes.
"""
import pytest


@pytest.mark.integration
class TestHealthEndpoints:

    def test_liveness(self, client):
        response = client.get('/health/live')
        assert response.status_code == 200
        assert response.json['status'] == 'alive'

    def test_readiness(self, client):
        response = client.get('/health/ready')
        assert response.status_code == 200
        checks = response.json['checks']
        assert checks['database']['healthy'] is True
        assert checks['plan_cache']['enabled'] is False
        assert 'api_study_plan' in checks['blueprints']['loaded']

    def test_unknown_route_is_json(self, client):
        response = client.get('/nowhere')
        assert response.status_code == 404
        assert response.json['success'] is False


@pytest.mark.integration
def test_schema_check_sees_planner_tables(app):
    from models import db
    from utils.startup_validation import check_schema

    outcome = check_schema(db)
    assert outcome.ok, outcome.detail
