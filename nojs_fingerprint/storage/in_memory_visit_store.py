import heapq
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from threading import Lock
from typing import Dict, List, Mapping, Optional, Tuple

from nojs_fingerprint.core.clock import Clock, SystemClock
from nojs_fingerprint.observability.structured_logger import StructuredEventLogger
from nojs_fingerprint.signals.domain.signal_source import SignalCollection
from nojs_fingerprint.signals.fingerprint import get_fingerprint
from nojs_fingerprint.storage.visit_store import VisitContext, VisitInfo, VisitStore, make_visit_id


@dataclass
class _Visit:
    context: VisitContext
    created_at: datetime
    signals: SignalCollection = field(default_factory=dict)
    finalized_at: Optional[datetime] = None
    fingerprint: Optional[str] = None


class InMemoryVisitStore(VisitStore):
    """
    Process-local visit store.

    Expiry is lazy: deadlines live in one heap and are checked on every store
    access instead of scheduling a timer per visit. With max_visits set, the
    heap never grows past it; the visit closest to expiry is dropped first.
    """

    def __init__(
        self,
        lifetime_seconds: Optional[float] = None,
        max_visits: Optional[int] = None,
        clock: Optional[Clock] = None,
        logger: Optional[StructuredEventLogger] = None,
    ):
        if max_visits is not None and max_visits < 1:
            raise ValueError("max_visits must be positive")
        self.lifetime_seconds = lifetime_seconds
        self.max_visits = max_visits
        self._clock = clock or SystemClock()
        self._logger = logger or StructuredEventLogger(logging.getLogger(__name__))
        self._visits: Dict[str, _Visit] = {}
        self._deadlines: List[Tuple[datetime, int, str]] = []
        # Breaks deadline ties in creation order
        self._sequence = itertools.count()
        self._lock = Lock()

    def create_visit(self, context: VisitContext) -> str:
        now = self._clock.now()
        with self._lock:
            self._evict_expired(now)
            visit_id = make_visit_id()
            while visit_id in self._visits:
                visit_id = make_visit_id()

            if self.max_visits is not None:
                while len(self._visits) >= self.max_visits:
                    self._evict_oldest()

            self._visits[visit_id] = _Visit(context=context, created_at=now)
            if self.lifetime_seconds is not None:
                deadline = now + timedelta(seconds=self.lifetime_seconds)
                heapq.heappush(self._deadlines, (deadline, next(self._sequence), visit_id))
            elif self.max_visits is not None:
                # Never expires, but still needs a place in the eviction order
                deadline = datetime.max.replace(tzinfo=now.tzinfo)
                heapq.heappush(self._deadlines, (deadline, next(self._sequence), visit_id))

        self._logger.emit("VISIT_CREATED", level=logging.DEBUG, visit_id=visit_id)
        return visit_id

    def add_signals(self, visit_id: str, signals: Mapping[str, str]) -> None:
        if not signals:
            return
        with self._lock:
            self._evict_expired(self._clock.now())
            visit = self._visits.get(visit_id)
            if visit is None or visit.finalized_at is not None:
                return
            visit.signals.update(signals)

    def finalize_and_get_visit(self, visit_id: str, include_signals: bool = False) -> Optional[VisitInfo]:
        now = self._clock.now()
        with self._lock:
            self._evict_expired(now)
            visit = self._visits.get(visit_id)
            if visit is None:
                return None
            if visit.finalized_at is None:
                visit.finalized_at = now
                visit.fingerprint = get_fingerprint(visit.signals)
                self._logger.emit("VISIT_FINALIZED", visit_id=visit_id, signal_count=len(visit.signals))
            return VisitInfo(
                finalized_at=visit.finalized_at,
                fingerprint=visit.fingerprint,
                signals=dict(visit.signals) if include_signals else {},
            )

    def live_visit_count(self) -> int:
        with self._lock:
            self._evict_expired(self._clock.now())
            return len(self._visits)

    def _evict_expired(self, now: datetime) -> None:
        while self._deadlines and self._deadlines[0][0] <= now:
            _, _, visit_id = heapq.heappop(self._deadlines)
            self._visits.pop(visit_id, None)

    def _evict_oldest(self) -> None:
        _, _, visit_id = heapq.heappop(self._deadlines)
        self._visits.pop(visit_id, None)
        self._logger.emit("VISIT_EVICTED", level=logging.DEBUG, visit_id=visit_id, reason="capacity")
