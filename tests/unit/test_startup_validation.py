"""
Unit tests for configuration and cache startup checks.
"""
import pytest

from utils.startup_validation import check_configuration, check_plan_cache, run_startup_validation


@pytest.mark.unit
class TestCheckConfiguration:

    def test_missing_values_only_block_in_production(self, monkeypatch):
        monkeypatch.delenv('SESSION_SECRET', raising=False)
        monkeypatch.delenv('DATABASE_URL', raising=False)

        assert all(o.ok for o in check_configuration(production=False))
        failed = [o.name for o in check_configuration(production=True) if not o.ok]
        assert failed == ['env:SESSION_SECRET', 'env:DATABASE_URL']

    def test_short_secret(self, monkeypatch):
        monkeypatch.setenv('SESSION_SECRET', 'too-short')
        monkeypatch.setenv('DATABASE_URL', 'sqlite://')
        outcomes = {o.name: o for o in check_configuration(production=True)}
        assert not outcomes['security:session_secret'].ok
        assert outcomes['security:session_secret'].blocking


@pytest.mark.unit
def test_plan_cache_is_optional(monkeypatch):
    monkeypatch.delenv('REDIS_URL', raising=False)
    assert check_plan_cache().ok


@pytest.mark.unit
def test_production_exits_on_blocking_failure(monkeypatch):
    monkeypatch.setenv('FLASK_ENV', 'production')
    monkeypatch.delenv('SESSION_SECRET', raising=False)
    monkeypatch.delenv('REDIS_URL', raising=False)
    with pytest.raises(SystemExit):
        run_startup_validation()


@pytest.mark.unit
def test_development_continues(monkeypatch):
    monkeypatch.setenv('FLASK_ENV', 'development')
    monkeypatch.delenv('SESSION_SECRET', raising=False)
    monkeypatch.delenv('REDIS_URL', raising=False)
    report = run_startup_validation()
    assert report.to_dict()['ready'] is True
