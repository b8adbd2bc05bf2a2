import pytest

from nojs_fingerprint.signals.ingestion import receive_headers, receive_signal
from nojs_fingerprint.storage.in_memory_visit_store import InMemoryVisitStore
from nojs_fingerprint.storage.visit_store import VisitContext


# --- Helpers ---

def _store_with_visit():
    store = InMemoryVisitStore()
    visit_id = store.create_visit(VisitContext("127.0.0.1", "pytest"))
    return store, visit_id


def _signals(store, visit_id):
    return store.finalize_and_get_visit(visit_id, include_signals=True).signals


def _headers(**values):
    normalized = {name.replace("_", "-").lower(): value for name, value in values.items()}
    return lambda name: normalized.get(name.lower())


# --- Activation ---

def test_css_and_font_activations_store_empty_value():
    store, visit_id = _store_with_visit()

    receive_signal(store, visit_id, "cssBlink", "ignored")
    receive_signal(store, visit_id, "robotoFontAbsence", "")

    assert _signals(store, visit_id) == {"cssBlink": "", "robotoFontAbsence": ""}


def test_media_enum_accepts_declared_values_only():
    store, visit_id = _store_with_visit()

    receive_signal(store, visit_id, "cssPointer", "coarse")
    receive_signal(store, visit_id, "cssHover", "sometimes")

    assert _signals(store, visit_id) == {"cssPointer": "coarse"}


@pytest.mark.parametrize("payload", ["100,200", ",200", "100,", "0.6,0.7"])
def test_media_number_accepts_well_formed_ranges_verbatim(payload):
    store, visit_id = _store_with_visit()

    receive_signal(store, visit_id, "cssScreenWidth", payload)

    assert _signals(store, visit_id) == {"cssScreenWidth": payload}


@pytest.mark.parametrize("payload", [",", "abc,5", "", "100", "1,2,3", "-1,2", "1.,2"])
def test_media_number_rejects_malformed_ranges(payload):
    store, visit_id = _store_with_visit()

    receive_signal(store, visit_id, "cssScreenWidth", payload)

    assert _signals(store, visit_id) == {}


def test_unknown_key_leaves_signals_unchanged():
    store, visit_id = _store_with_visit()
    receive_signal(store, visit_id, "cssBlink", "")

    receive_signal(store, visit_id, "noSuchSignal", "value")

    assert _signals(store, visit_id) == {"cssBlink": ""}


def test_header_sources_cannot_be_activated_by_url():
    store, visit_id = _store_with_visit()

    receive_signal(store, visit_id, "languageHeader", "en")

    assert _signals(store, visit_id) == {}


def test_activation_for_unknown_visit_is_ignored():
    store, _ = _store_with_visit()

    receive_signal(store, "missing", "cssBlink", "")

    assert store.finalize_and_get_visit("missing") is None


# --- Headers ---

def test_page_headers_are_recorded_with_transform():
    store, visit_id = _store_with_visit()

    receive_headers(
        store,
        visit_id,
        "page",
        _headers(accept_language="en-US,en;q=0.9", accept_encoding="gzip, br", accept="text/html"),
    )

    assert _signals(store, visit_id) == {
        "languageHeader": "en-US",
        "acceptEncodingHeader": "gzip, br",
        "pageAcceptHeader": "text/html",
    }


def test_headers_are_matched_by_resource_type():
    store, visit_id = _store_with_visit()

    receive_headers(store, visit_id, "image", _headers(accept="image/avif", accept_language="de"))

    assert _signals(store, visit_id) == {"imageAcceptHeader": "image/avif"}


def test_absent_header_is_not_recorded_but_empty_one_is():
    store, visit_id = _store_with_visit()

    receive_headers(store, visit_id, "page", _headers(accept=""))

    assert _signals(store, visit_id) == {"pageAcceptHeader": ""}


def test_unknown_resource_type_is_ignored():
    store, visit_id = _store_with_visit()

    receive_headers(store, visit_id, "font", _headers(accept="*/*"))

    assert _signals(store, visit_id) == {}
