from nojs_fingerprint.signals.domain.signal_source import (
    CssMediaEnumSignalSource,
    CssMediaNumberSignalSource,
    CssSignalSource,
    FontAbsenceSignalSource,
    HttpHeaderSignalSource,
    ResourceType,
)
from nojs_fingerprint.signals.numeric_ranges import breakpoint_ranges
from nojs_fingerprint.signals.probe_markup import make_probe_markup
from nojs_fingerprint.signals.registry import SIGNAL_SOURCES, client_hint_headers


def _url(visit_id: str, key: str, value: str) -> str:
    return f"/s/{visit_id}/{key}/{value}"


def test_css_source_is_gated_by_supports_rule():
    source = CssSignalSource(key="cssGecko", title="Gecko", supports_condition="-moz-appearance: inherit")

    markup = make_probe_markup("v1", _url, [source])

    assert markup.css == [
        "@supports(-moz-appearance: inherit) { .css_probe_1 { background: url('/s/v1/cssGecko/') } }"
    ]
    assert markup.html == ['<div class="css_probe_1"></div>']


def test_media_enum_emits_one_rule_per_value_in_order():
    source = CssMediaEnumSignalSource(
        key="cssPointer", title="Pointer", media_name="pointer", media_values=("none", "coarse", "fine")
    )

    markup = make_probe_markup("v1", _url, [source])

    assert markup.css == [
        "@media (pointer: none) { .css_probe_1 { background: url('/s/v1/cssPointer/none') } }",
        "@media (pointer: coarse) { .css_probe_1 { background: url('/s/v1/cssPointer/coarse') } }",
        "@media (pointer: fine) { .css_probe_1 { background: url('/s/v1/cssPointer/fine') } }",
    ]
    assert len(markup.html) == 1


def test_media_number_covers_every_range_with_reduced_upper_bounds():
    source = CssMediaNumberSignalSource(
        key="cssWidth",
        title="Width",
        media_name="device-width",
        get_range_breakpoints=lambda: [10, 20],
        vendor_prefix="-webkit-",
        value_unit="px",
    )

    markup = make_probe_markup("v1", _url, [source])

    assert markup.css == [
        "@media (-webkit-max-device-width: 9.99999px) { .css_probe_1 { background: url('/s/v1/cssWidth/,10') } }",
        "@media (-webkit-min-device-width: 10px) and (-webkit-max-device-width: 19.99999px) "
        "{ .css_probe_1 { background: url('/s/v1/cssWidth/10,20') } }",
        "@media (-webkit-min-device-width: 20px) { .css_probe_1 { background: url('/s/v1/cssWidth/20,') } }",
    ]


def test_font_absence_falls_back_to_remote_url():
    source = FontAbsenceSignalSource(key="arimoFontAbsence", title="Arimo", font_name="Arimo")

    markup = make_probe_markup("v1", _url, [source])

    assert markup.css == [
        "@font-face { font-family: 'Arimo'; "
        "src: local('Arimo'), url('/s/v1/arimoFontAbsence/') format('truetype') }"
    ]
    assert markup.html == ['<div style="font-family: &#x27;Arimo&#x27;">a</div>']


def test_header_sources_emit_no_markup_and_keep_class_numbering():
    sources = [
        HttpHeaderSignalSource(key="h", title="H", resource_type=ResourceType.PAGE, header_name="Accept"),
        CssSignalSource(key="c", title="C", supports_condition="x: y"),
    ]

    markup = make_probe_markup("v1", _url, sources)

    assert markup.html == ['<div class="css_probe_1"></div>']
    assert len(markup.css) == 1


def test_registry_markup_has_one_marker_per_probing_source():
    markup = make_probe_markup("visit", _url)

    probing = [s for s in SIGNAL_SOURCES if not isinstance(s, HttpHeaderSignalSource)]
    assert len(markup.html) == len(probing)

    expected_rules = 0
    for source in probing:
        if isinstance(source, CssMediaEnumSignalSource):
            expected_rules += len(source.media_values)
        elif isinstance(source, CssMediaNumberSignalSource):
            expected_rules += len(breakpoint_ranges(source.get_range_breakpoints()))
        else:
            expected_rules += 1
    assert len(markup.css) == expected_rules
    assert all("/visit/" in rule for rule in markup.css)


def test_registry_markup_is_deterministic():
    assert make_probe_markup("visit", _url) == make_probe_markup("visit", _url)


def test_client_hint_headers_lists_flagged_sources_only():
    sources = [
        HttpHeaderSignalSource(
            key="downlink", title="Downlink", resource_type=ResourceType.IMAGE, header_name="Downlink",
            is_client_hint=True,
        ),
        HttpHeaderSignalSource(key="accept", title="Accept", resource_type=ResourceType.IMAGE, header_name="Accept"),
    ]
    assert client_hint_headers(sources) == ["Downlink"]
