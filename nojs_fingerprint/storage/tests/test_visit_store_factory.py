import pytest

from nojs_fingerprint.config.settings import Settings
from nojs_fingerprint.storage.in_memory_visit_store import InMemoryVisitStore
from nojs_fingerprint.storage.visit_store_factory import build_visit_store


def test_memory_backend_uses_configured_lifetime_and_bound():
    store = build_visit_store(Settings(STORAGE_BACKEND="memory", VISIT_LIFETIME_SECONDS=30, MAX_LIVE_VISITS=5))

    assert isinstance(store, InMemoryVisitStore)
    assert store.lifetime_seconds == 30
    assert store.max_visits == 5


def test_postgres_backend_requires_database_url():
    with pytest.raises(ValueError):
        build_visit_store(Settings(STORAGE_BACKEND="postgres", DATABASE_URL=None))


def test_unknown_backend_is_rejected():
    with pytest.raises(ValueError):
        build_visit_store(Settings(STORAGE_BACKEND="redis"))
