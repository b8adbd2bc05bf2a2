import logging
from typing import Mapping, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from nojs_fingerprint.core.clock import Clock, SystemClock
from nojs_fingerprint.core.exceptions import StorageFailure
from nojs_fingerprint.observability.structured_logger import StructuredEventLogger
from nojs_fingerprint.signals.domain.signal_source import SignalCollection
from nojs_fingerprint.signals.fingerprint import get_fingerprint
from nojs_fingerprint.storage.visit_store import (
    VisitContext,
    VisitInfo,
    VisitStore,
    is_valid_visit_id,
    make_visit_id,
)

VISIT_ID_MAX_LENGTH = 32
VISITOR_USER_AGENT_MAX_LENGTH = 300
SIGNAL_VALUE_MAX_LENGTH = 250


class PostgresVisitStore(VisitStore):
    """
    Visit store backed by PostgreSQL.

    Lock protocol, identical order on both write paths:
      add_signals: visit row FOR SHARE, then row-exclusive on visit_signals (the upsert)
      finalize:    visit row FOR UPDATE, then visit_signals IN SHARE MODE
    so a finalize never reads the signals while an insert for the visit is in flight,
    and two finalizes of one visit are serialized on the row.
    """

    def __init__(
        self,
        engine: Engine,
        logger: Optional[StructuredEventLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self.engine = engine
        self._clock = clock or SystemClock()
        self._logger = logger or StructuredEventLogger(logging.getLogger(__name__))
        self.ensure_schema()

    @classmethod
    def from_dsn(cls, dsn: str) -> "PostgresVisitStore":
        engine = create_engine(dsn, pool_pre_ping=True, future=True)
        return cls(engine)

    def ensure_schema(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    CREATE TABLE IF NOT EXISTS visits (
                        id BIGSERIAL PRIMARY KEY,
                        public_id VARCHAR(32) NOT NULL UNIQUE,
                        visitor_ip TEXT NOT NULL,
                        visitor_user_agent VARCHAR(300) NOT NULL,
                        fingerprint TEXT NULL,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                        finalized_at TIMESTAMPTZ NULL
                    )
                    """
                )
            )
            conn.execute(
                text(
                    """
                    CREATE TABLE IF NOT EXISTS visit_signals (
                        id BIGSERIAL PRIMARY KEY,
                        visit_id BIGINT NOT NULL REFERENCES visits (id) ON DELETE CASCADE,
                        key TEXT NOT NULL,
                        value VARCHAR(250) NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                        CONSTRAINT visit_signals_visit_id_and_key UNIQUE (visit_id, key)
                    )
                    """
                )
            )
            conn.execute(
                text(
                    """
                    CREATE INDEX IF NOT EXISTS ix_visits_fingerprint
                    ON visits (fingerprint)
                    """
                )
            )

    def create_visit(self, context: VisitContext) -> str:
        try:
            with self.engine.begin() as conn:
                while True:
                    visit_id = make_visit_id()[:VISIT_ID_MAX_LENGTH]
                    # The insert is committed before the id leaves this method
                    row = conn.execute(
                        text(
                            """
                            INSERT INTO visits (public_id, visitor_ip, visitor_user_agent, created_at)
                            VALUES (:public_id, :visitor_ip, :visitor_user_agent, :created_at)
                            ON CONFLICT (public_id) DO NOTHING
                            RETURNING id
                            """
                        ),
                        {
                            "public_id": visit_id,
                            "visitor_ip": context.visitor_ip,
                            "visitor_user_agent": context.visitor_user_agent[:VISITOR_USER_AGENT_MAX_LENGTH],
                            "created_at": self._clock.now(),
                        },
                    ).first()
                    if row:
                        break
        except SQLAlchemyError as exc:
            raise StorageFailure("failed to create a visit") from exc

        self._logger.emit("VISIT_CREATED", level=logging.DEBUG, visit_id=visit_id)
        return visit_id

    def add_signals(self, visit_id: str, signals: Mapping[str, str]) -> None:
        if not signals or not is_valid_visit_id(visit_id):
            return
        try:
            with self.engine.begin() as conn:
                # Keeps the visit from being finalized until the new signals are committed
                row = conn.execute(
                    text(
                        """
                        SELECT id, fingerprint
                        FROM visits
                        WHERE public_id = :public_id
                        FOR SHARE
                        """
                    ),
                    {"public_id": visit_id},
                ).first()
                if not row or row.fingerprint is not None:
                    return

                conn.execute(
                    text(
                        """
                        INSERT INTO visit_signals (visit_id, key, value)
                        VALUES (:visit_id, :key, :value)
                        ON CONFLICT (visit_id, key)
                        DO UPDATE SET value = EXCLUDED.value
                        """
                    ),
                    [
                        {"visit_id": row.id, "key": key, "value": value[:SIGNAL_VALUE_MAX_LENGTH]}
                        for key, value in signals.items()
                    ],
                )
        except SQLAlchemyError as exc:
            raise StorageFailure("failed to add visit signals") from exc

    def finalize_and_get_visit(self, visit_id: str, include_signals: bool = False) -> Optional[VisitInfo]:
        if not is_valid_visit_id(visit_id):
            return None
        try:
            with self.engine.begin() as conn:
                row = conn.execute(
                    text(
                        """
                        SELECT id, fingerprint, finalized_at
                        FROM visits
                        WHERE public_id = :public_id
                        FOR UPDATE
                        """
                    ),
                    {"public_id": visit_id},
                ).first()
                if not row:
                    return None

                signals: Optional[SignalCollection] = None
                if row.fingerprint is not None and row.finalized_at is not None:
                    fingerprint = row.fingerprint
                    finalized_at = row.finalized_at
                else:
                    # Taken after the visit row, same order as add_signals
                    conn.execute(text("LOCK TABLE visit_signals IN SHARE MODE"))
                    signals = self._load_signals(conn, row.id)
                    fingerprint = get_fingerprint(signals)
                    finalized_at = self._clock.now()
                    conn.execute(
                        text(
                            """
                            UPDATE visits
                            SET fingerprint = :fingerprint, finalized_at = :finalized_at
                            WHERE id = :id
                            """
                        ),
                        {"fingerprint": fingerprint, "finalized_at": finalized_at, "id": row.id},
                    )
                    self._logger.emit("VISIT_FINALIZED", visit_id=visit_id, signal_count=len(signals))

                if include_signals and signals is None:
                    signals = self._load_signals(conn, row.id)
        except SQLAlchemyError as exc:
            raise StorageFailure("failed to finalize the visit") from exc

        return VisitInfo(
            finalized_at=finalized_at,
            fingerprint=fingerprint,
            signals=signals if include_signals else {},
        )

    def _load_signals(self, conn: Connection, visit_db_id: int) -> SignalCollection:
        rows = conn.execute(
            text(
                """
                SELECT key, value
                FROM visit_signals
                WHERE visit_id = :visit_id
                """
            ),
            {"visit_id": visit_db_id},
        )
        return {r.key: r.value for r in rows}
