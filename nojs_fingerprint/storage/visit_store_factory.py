from nojs_fingerprint.config.settings import Settings
from nojs_fingerprint.storage.in_memory_visit_store import InMemoryVisitStore
from nojs_fingerprint.storage.postgres_visit_store import PostgresVisitStore
from nojs_fingerprint.storage.visit_store import VisitStore


def build_visit_store(config: Settings) -> VisitStore:
    backend = config.STORAGE_BACKEND.lower()
    if backend == "memory":
        return InMemoryVisitStore(
            lifetime_seconds=config.VISIT_LIFETIME_SECONDS,
            max_visits=config.MAX_LIVE_VISITS,
        )
    if backend == "postgres":
        if not config.DATABASE_URL:
            raise ValueError("DATABASE_URL is required for the postgres storage backend")
        return PostgresVisitStore.from_dsn(config.DATABASE_URL)
    raise ValueError(f"Unknown storage backend: {config.STORAGE_BACKEND}")
