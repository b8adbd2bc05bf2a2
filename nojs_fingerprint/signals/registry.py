"""
Process-wide list of signal sources. Built once at import time and never
mutated; the order is significant for the fingerprint and the probe markup.
"""
import re
from typing import Dict, List, Optional, Sequence

from nojs_fingerprint.signals.domain.signal_source import (
    CssMediaEnumSignalSource,
    CssMediaNumberSignalSource,
    CssSignalSource,
    FontAbsenceSignalSource,
    HttpHeaderSignalSource,
    ResourceType,
    SignalSource,
)
from nojs_fingerprint.signals.numeric_ranges import exponential_sequence

SCREEN_WIDTH_KEY = "cssScreenWidth"
SCREEN_HEIGHT_KEY = "cssScreenHeight"

_DIGITS = tuple(str(n) for n in range(11))


def to_camel_case(text: str) -> str:
    words = re.split(r"\s+", text)
    return "".join(
        (word[:1].lower() if index == 0 else word[:1].upper()) + word[1:].lower()
        for index, word in enumerate(words)
    )


def _screen_breakpoints():
    # Width and height share breakpoints so that swapping them on rotation
    # keeps the values comparable
    return exponential_sequence(320, 2700, 1.1, 10)


def _first_language(header_value: str) -> str:
    # Chrome alters everything after the first language in incognito mode
    return header_value.split(",", 1)[0]


def _font_absence(font_name: str) -> FontAbsenceSignalSource:
    return FontAbsenceSignalSource(
        key=f"{to_camel_case(font_name)}FontAbsence",
        title=f"“{font_name}” font",
        font_name=font_name,
    )


SIGNAL_SOURCES: Sequence[SignalSource] = (
    CssSignalSource(
        key="cssBlink",
        title="CSS hack to tell Chromium-based browsers from other browsers",
        supports_condition="-webkit-app-region: inherit",
    ),
    CssSignalSource(
        key="cssGecko",
        title="CSS hack to tell Firefox from other browsers",
        supports_condition="-moz-appearance: inherit",
    ),
    CssSignalSource(
        key="cssWebkit",
        title="CSS hack to tell Safari from other browsers",
        supports_condition="-apple-pay-button-style: inherit",
    ),
    CssSignalSource(
        key="cssMobileWebkit",
        title="CSS hack to tell whether the Safari is mobile",
        supports_condition="-webkit-touch-callout: inherit",
    ),
    CssSignalSource(
        key="cssMacGecko",
        title="CSS hack to tell macOS Firefox from other Firefox versions",
        supports_condition="-moz-osx-font-smoothing: inherit",
    ),
    # Not a Tor-specific property: Tor's Gecko is just too old to have it
    CssSignalSource(
        key="cssTorGecko",
        title="CSS hack to tell Firefox from Tor",
        supports_condition="accent-color: inherit",
    ),
    CssMediaEnumSignalSource(
        key="cssAnyHover",
        title="Any hover",
        media_name="any-hover",
        media_values=("none", "hover"),
    ),
    CssMediaEnumSignalSource(
        key="cssHover",
        title="Hover",
        media_name="hover",
        media_values=("none", "hover"),
    ),
    CssMediaEnumSignalSource(
        key="cssAnyPointer",
        title="Any pointer",
        media_name="any-pointer",
        media_values=("none", "coarse", "fine"),
    ),
    CssMediaEnumSignalSource(
        key="cssPointer",
        title="Pointer",
        media_name="pointer",
        media_values=("none", "coarse", "fine"),
    ),
    CssMediaEnumSignalSource(
        key="cssColor",
        title="Color bitness",
        media_name="color",
        media_values=_DIGITS,
    ),
    CssMediaEnumSignalSource(
        key="cssColorGamut",
        title="Color gamut",
        media_name="color-gamut",
        # rec2020 includes p3, p3 includes srgb
        media_values=("srgb", "p3", "rec2020"),
    ),
    CssMediaEnumSignalSource(
        key="cssForcedColors",
        title="Forced colors",
        media_name="forced-colors",
        media_values=("none", "active"),
    ),
    CssMediaEnumSignalSource(
        key="cssInvertedColors",
        title="Inverted colors",
        media_name="inverted-colors",
        media_values=("none", "inverted"),
    ),
    CssMediaEnumSignalSource(
        key="cssMonochrome",
        title="Monochrome",
        media_name="monochrome",
        media_values=_DIGITS,
    ),
    CssMediaEnumSignalSource(
        key="cssPrefersColorScheme",
        title="Dark/light mode",
        media_name="prefers-color-scheme",
        media_values=("light", "dark"),
    ),
    CssMediaEnumSignalSource(
        key="cssPrefersContrast",
        title="Contrast preference",
        media_name="prefers-contrast",
        media_values=("no-preference", "high", "more", "low", "less", "forced"),
    ),
    CssMediaEnumSignalSource(
        key="cssPrefersReducedMotion",
        title="Reduced motion",
        media_name="prefers-reduced-motion",
        media_values=("no-preference", "reduce"),
    ),
    CssMediaEnumSignalSource(
        key="cssDynamicRange",
        title="Screen dynamic range",
        media_name="dynamic-range",
        media_values=("standard", "high"),
    ),
    CssMediaNumberSignalSource(
        key="cssResolution",
        title="Pixel density",
        media_name="device-pixel-ratio",
        get_range_breakpoints=lambda: exponential_sequence(0.5, 5, 1.15, 0.1),
        vendor_prefix="-webkit-",
    ),
    CssMediaNumberSignalSource(
        key=SCREEN_WIDTH_KEY,
        title="Screen width",
        media_name="device-width",
        get_range_breakpoints=_screen_breakpoints,
        value_unit="px",
    ),
    CssMediaNumberSignalSource(
        key=SCREEN_HEIGHT_KEY,
        title="Screen height",
        media_name="device-height",
        get_range_breakpoints=_screen_breakpoints,
        value_unit="px",
    ),
    _font_absence("Roboto"),  # Android and ChromeOS
    _font_absence("Ubuntu"),  # Ubuntu
    _font_absence("Calibri"),  # Windows
    _font_absence("MS UI Gothic"),  # Windows
    _font_absence("Gill Sans"),  # macOS
    _font_absence("Helvetica Neue"),  # macOS and iOS
    _font_absence("Arimo"),  # ChromeOS
    HttpHeaderSignalSource(
        key="languageHeader",
        title="Language",
        resource_type=ResourceType.PAGE,
        header_name="Accept-Language",
        get_significant_part=_first_language,
    ),
    HttpHeaderSignalSource(
        key="acceptEncodingHeader",
        title="Accepted encoding",
        resource_type=ResourceType.PAGE,
        header_name="Accept-Encoding",
    ),
    HttpHeaderSignalSource(
        key="pageAcceptHeader",
        title="Accept header for web page",
        resource_type=ResourceType.PAGE,
        header_name="Accept",
    ),
    HttpHeaderSignalSource(
        key="imageAcceptHeader",
        title="Accept header for image",
        resource_type=ResourceType.IMAGE,
        header_name="Accept",
    ),
    HttpHeaderSignalSource(
        key="styleAcceptHeader",
        title="Accept header for stylesheet",
        resource_type=ResourceType.STYLE,
        header_name="Accept",
    ),
)

_SOURCES_BY_KEY: Dict[str, SignalSource] = {source.key: source for source in SIGNAL_SOURCES}

if len(_SOURCES_BY_KEY) != len(SIGNAL_SOURCES):
    raise RuntimeError("signal source keys must be unique")


def find_source(key: str, sources: Sequence[SignalSource] = SIGNAL_SOURCES) -> Optional[SignalSource]:
    if sources is SIGNAL_SOURCES:
        return _SOURCES_BY_KEY.get(key)
    for source in sources:
        if source.key == key:
            return source
    return None


def header_sources(
    resource_type: ResourceType,
    sources: Sequence[SignalSource] = SIGNAL_SOURCES,
) -> List[HttpHeaderSignalSource]:
    return [
        source
        for source in sources
        if isinstance(source, HttpHeaderSignalSource) and source.resource_type == resource_type
    ]


def client_hint_headers(sources: Sequence[SignalSource] = SIGNAL_SOURCES) -> List[str]:
    return [
        source.header_name
        for source in sources
        if isinstance(source, HttpHeaderSignalSource) and source.is_client_hint
    ]
