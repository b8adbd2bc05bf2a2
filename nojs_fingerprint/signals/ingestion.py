import logging
from typing import Callable, Optional, Sequence

from nojs_fingerprint.observability.structured_logger import StructuredEventLogger
from nojs_fingerprint.signals.domain.signal_source import ResourceType, SignalCollection, SignalSource
from nojs_fingerprint.signals.registry import SIGNAL_SOURCES, find_source, header_sources
from nojs_fingerprint.storage.visit_store import VisitStore

HeaderGetter = Callable[[str], Optional[str]]

_logger = StructuredEventLogger(logging.getLogger(__name__))


def receive_signal(
    store: VisitStore,
    visit_id: str,
    signal_key: str,
    signal_value: str,
    sources: Sequence[SignalSource] = SIGNAL_SOURCES,
) -> None:
    """
    Records the signal carried by an activation URL.
    Anything the browser could have tampered with is dropped silently.
    """
    source = find_source(signal_key, sources)
    if source is None:
        _logger.emit("SIGNAL_DROPPED", level=logging.DEBUG, reason="unknown_key", signal_key=signal_key)
        return

    value = source.accept_activation(signal_value)
    if value is None:
        _logger.emit(
            "SIGNAL_DROPPED",
            level=logging.DEBUG,
            reason="rejected_value",
            signal_key=signal_key,
        )
        return

    store.add_signals(visit_id, {source.key: value})


def receive_headers(
    store: VisitStore,
    visit_id: str,
    resource_type: str,
    get_header: HeaderGetter,
    sources: Sequence[SignalSource] = SIGNAL_SOURCES,
) -> None:
    """
    Records the request headers of a subresource fetch. A header that wasn't
    sent is not recorded, an empty one is.
    """
    try:
        kind = ResourceType(resource_type)
    except ValueError:
        _logger.emit(
            "HEADERS_DROPPED",
            level=logging.DEBUG,
            reason="unknown_resource_type",
            resource_type=resource_type,
        )
        return

    signals: SignalCollection = {}
    for source in header_sources(kind, sources):
        header_value = get_header(source.header_name)
        if header_value is not None:
            signals[source.key] = source.value_from_header(header_value)

    if signals:
        store.add_signals(visit_id, signals)
