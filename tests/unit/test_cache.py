"""
Unit tests for the per-user plan cache.
"""
import pytest
import redis

from services.cache import PlanCache, plan_cache_key


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.expiry = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value
        self.expiry[key] = ex
        return True

    def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0


class BrokenRedis:
    def get(self, key):
        raise redis.ConnectionError('down')

    def set(self, key, value, ex=None):
        raise redis.ConnectionError('down')

    def delete(self, key):
        raise redis.ConnectionError('down')


@pytest.mark.unit
def test_round_trip_and_invalidate():
    client = FakeRedis()
    cache = PlanCache(client, ttl=60)
    payload = [{'date': '2025-01-06', 'planned_tasks': []}]

    cache.store_plans(7, payload)
    assert cache.get_plans(7) == payload
    assert client.expiry[plan_cache_key(7)] == 60

    cache.invalidate(7)
    assert cache.get_plans(7) is None


@pytest.mark.unit
def test_disabled_cache_always_misses():
    cache = PlanCache()
    cache.store_plans(7, [])
    assert not cache.enabled
    assert cache.get_plans(7) is None


@pytest.mark.unit
def test_redis_errors_are_misses():
    cache = PlanCache(BrokenRedis())
    cache.store_plans(7, [])
    cache.invalidate(7)
    assert cache.get_plans(7) is None
