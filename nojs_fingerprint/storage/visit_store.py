import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional

from nojs_fingerprint.signals.domain.signal_source import SignalCollection

VISIT_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
VISIT_ID_LENGTH = 16


def make_visit_id(length: int = VISIT_ID_LENGTH) -> str:
    return "".join(secrets.choice(VISIT_ID_ALPHABET) for _ in range(length))


def is_valid_visit_id(visit_id: str) -> bool:
    """Whether the id could have come from make_visit_id. Ids arrive from URLs, so anything else is untrusted."""
    return len(visit_id) == VISIT_ID_LENGTH and all(char in VISIT_ID_ALPHABET for char in visit_id)


@dataclass(frozen=True)
class VisitContext:
    """Who opened the page. Recorded with the visit, never part of the fingerprint."""
    visitor_ip: str = ""
    visitor_user_agent: str = ""


@dataclass(frozen=True)
class VisitInfo:
    finalized_at: datetime
    fingerprint: str
    signals: SignalCollection = field(default_factory=dict)


class VisitStore(ABC):
    """
    Storage for visits and their signals.

    A visit is open from creation until the first finalize; after that its
    signals and fingerprint never change.
    """

    @abstractmethod
    def create_visit(self, context: VisitContext) -> str:
        """Stores a new open visit and returns its public id."""
        pass

    @abstractmethod
    def add_signals(self, visit_id: str, signals: Mapping[str, str]) -> None:
        """Merges signals into an open visit. Unknown or finalized visits are left untouched."""
        pass

    @abstractmethod
    def finalize_and_get_visit(self, visit_id: str, include_signals: bool = False) -> Optional[VisitInfo]:
        """
        Finalizes the visit on the first call and returns the frozen result.
        Returns None if there is no such visit.
        """
        pass
