import json
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence

import mmh3

from nojs_fingerprint.signals.domain.signal_source import SignalSource
from nojs_fingerprint.signals.registry import SCREEN_HEIGHT_KEY, SCREEN_WIDTH_KEY, SIGNAL_SOURCES

_UINT64_MASK = (1 << 64) - 1


@dataclass(frozen=True)
class SignalSummary:
    key: str
    title: str
    kind: str
    probe: str
    value: str
    is_discarded: bool


def canonicalize_signals(
    signals: Mapping[str, str],
    sources: Sequence[SignalSource] = SIGNAL_SOURCES,
) -> Dict[str, str]:
    """
    Reduces a visit's signals to the form that is hashed: registry order,
    unknown and discarded keys dropped, screen dimensions orientation-independent.
    """
    canonical: Dict[str, str] = {}
    for source in sources:
        if source.key in signals and not source.is_discarded(signals):
            canonical[source.key] = signals[source.key]

    # Android swaps the screen width and height when the device is rotated
    if SCREEN_WIDTH_KEY in canonical and SCREEN_HEIGHT_KEY in canonical:
        low, high = sorted((canonical[SCREEN_WIDTH_KEY], canonical[SCREEN_HEIGHT_KEY]))
        canonical[SCREEN_WIDTH_KEY] = low
        canonical[SCREEN_HEIGHT_KEY] = high

    return canonical


def hash_canonical(canonical: Mapping[str, str]) -> str:
    serialized = json.dumps(canonical, ensure_ascii=False, separators=(",", ":"))
    digest = mmh3.hash128(serialized.encode("utf-8"), 0, True, False)
    return f"{digest & _UINT64_MASK:016x}{digest >> 64:016x}"


def get_fingerprint(
    signals: Mapping[str, str],
    sources: Sequence[SignalSource] = SIGNAL_SOURCES,
) -> str:
    return hash_canonical(canonicalize_signals(signals, sources))


def describe_signals(
    signals: Mapping[str, str],
    sources: Sequence[SignalSource] = SIGNAL_SOURCES,
) -> List[SignalSummary]:
    return [
        SignalSummary(
            key=source.key,
            title=source.title,
            kind=source.kind,
            probe=source.describe_probe(),
            value=source.render_value(signals.get(source.key)),
            is_discarded=source.is_discarded(signals),
        )
        for source in sources
    ]
