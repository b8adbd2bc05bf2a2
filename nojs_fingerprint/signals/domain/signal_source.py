import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from html import escape
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from nojs_fingerprint.signals.numeric_ranges import (
    RANGE_EPSILON,
    breakpoint_ranges,
    format_number,
    range_payload,
)

# key -> value; keys are unique within a visit, the order carries no information
SignalCollection = Dict[str, str]

# (visit_id, signal_key, signal_value) -> URL the browser requests on activation
ActivationUrlFactory = Callable[[str, str, str], str]

DiscardPredicate = Callable[[Mapping[str, str]], bool]

_NUMERIC_RANGE_PATTERN = re.compile(r"(\d+(\.\d+)?)?,(\d+(\.\d+)?)?", re.ASCII)


class ResourceType(str, Enum):
    PAGE = "page"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    STYLE = "style"


@dataclass(frozen=True)
class ProbeFragment:
    css: List[str]
    html: Optional[str]


def _background_style(url: str) -> str:
    return f"background: url('{url}')"


def _marker_element(class_name: str) -> str:
    return f'<div class="{escape(class_name)}"></div>'


class SignalSource(ABC):
    """
    A browser property observable without scripts.

    Each variant knows how to provoke its own subrequest (probe_markup), how to
    validate the value carried by that subrequest (accept_activation) and how
    to present itself on the result page (describe_probe, render_value).
    """

    kind: str = ""
    # Average number of activation requests a browser sends for this source
    expected_requests: float = 0.0
    key: str
    title: str
    should_discard: Optional[DiscardPredicate]

    @abstractmethod
    def probe_markup(
        self,
        class_name: str,
        visit_id: str,
        get_activation_url: ActivationUrlFactory,
    ) -> Optional[ProbeFragment]:
        pass

    @abstractmethod
    def accept_activation(self, raw_value: str) -> Optional[str]:
        """Returns the value to store for an activation request, or None to drop it."""
        pass

    @abstractmethod
    def describe_probe(self) -> str:
        pass

    def render_value(self, value: Optional[str]) -> str:
        if value is None:
            return "(undefined)"
        return value or "(empty)"

    def is_discarded(self, signals: Mapping[str, str]) -> bool:
        return bool(self.should_discard and self.should_discard(signals))


@dataclass(frozen=True)
class CssSignalSource(SignalSource):
    """Applies the probe style only where an engine-specific property is supported."""

    key: str
    title: str
    supports_condition: str
    should_discard: Optional[DiscardPredicate] = None
    kind = "css"
    expected_requests = 0.5

    def css_rule(self, class_name: str, style: str) -> str:
        return f"@supports({self.supports_condition}) {{ .{class_name} {{ {style} }} }}"

    def probe_markup(self, class_name, visit_id, get_activation_url):
        style = _background_style(get_activation_url(visit_id, self.key, ""))
        return ProbeFragment(css=[self.css_rule(class_name, style)], html=_marker_element(class_name))

    def accept_activation(self, raw_value):
        return ""

    def describe_probe(self):
        return self.css_rule("selector", "")

    def render_value(self, value):
        return "No" if value is None else "Yes"


@dataclass(frozen=True)
class CssMediaEnumSignalSource(SignalSource):
    """
    A media feature with a fixed set of values. When several values match, the
    cascade keeps only the last declared rule, so at most one request fires.
    """

    key: str
    title: str
    media_name: str
    media_values: Tuple[str, ...]
    should_discard: Optional[DiscardPredicate] = None
    kind = "cssMediaEnum"
    expected_requests = 0.9

    def probe_markup(self, class_name, visit_id, get_activation_url):
        css = []
        for value in self.media_values:
            style = _background_style(get_activation_url(visit_id, self.key, value))
            css.append(f"@media ({self.media_name}: {value}) {{ .{class_name} {{ {style} }} }}")
        return ProbeFragment(css=css, html=_marker_element(class_name))

    def accept_activation(self, raw_value):
        if raw_value in self.media_values:
            return raw_value
        return None

    def describe_probe(self):
        return f"@media ({self.media_name}: ...) {{  }}"


@dataclass(frozen=True)
class CssMediaNumberSignalSource(SignalSource):
    """A numeric media feature encoded as a partition of ranges, one rule per range."""

    key: str
    title: str
    media_name: str
    get_range_breakpoints: Callable[[], Iterable[float]] = field(compare=False)
    vendor_prefix: str = ""
    value_unit: str = ""
    should_discard: Optional[DiscardPredicate] = None
    kind = "cssMediaNumber"
    expected_requests = 1.0

    def media_query(self, minimum: Optional[float], maximum: Optional[float]) -> str:
        conditions = []
        if minimum is not None:
            conditions.append(
                f"({self.vendor_prefix}min-{self.media_name}: {format_number(minimum)}{self.value_unit})"
            )
        if maximum is not None:
            conditions.append(
                f"({self.vendor_prefix}max-{self.media_name}: "
                f"{format_number(maximum - RANGE_EPSILON)}{self.value_unit})"
            )
        return " and ".join(conditions)

    def probe_markup(self, class_name, visit_id, get_activation_url):
        css = []
        for minimum, maximum in breakpoint_ranges(self.get_range_breakpoints()):
            url = get_activation_url(visit_id, self.key, range_payload(minimum, maximum))
            css.append(
                f"@media {self.media_query(minimum, maximum)} "
                f"{{ .{class_name} {{ {_background_style(url)} }} }}"
            )
        return ProbeFragment(css=css, html=_marker_element(class_name))

    def accept_activation(self, raw_value):
        if raw_value != "," and _NUMERIC_RANGE_PATTERN.fullmatch(raw_value):
            return raw_value
        return None

    def describe_probe(self):
        return (
            f"@media ({self.vendor_prefix}min-{self.media_name}: ...) "
            f"and ({self.vendor_prefix}max-{self.media_name}: ...) {{  }}"
        )

    def render_value(self, value):
        if value is None:
            return "(undefined)"
        minimum, _, maximum = value.partition(",")
        parts = []
        if minimum:
            parts.append(f"≥{minimum}{self.value_unit}")
        if maximum:
            parts.append(f"<{maximum}{self.value_unit}")
        return ", ".join(parts)


@dataclass(frozen=True)
class HttpHeaderSignalSource(SignalSource):
    """A request header read from a subresource fetch. Needs no markup of its own."""

    key: str
    title: str
    resource_type: ResourceType
    header_name: str
    get_significant_part: Optional[Callable[[str], str]] = field(default=None, compare=False)
    is_client_hint: bool = False
    should_discard: Optional[DiscardPredicate] = None
    kind = "httpHeader"
    expected_requests = 0.0

    def probe_markup(self, class_name, visit_id, get_activation_url):
        return None

    def accept_activation(self, raw_value):
        return None

    def value_from_header(self, header_value: str) -> str:
        if self.get_significant_part is None:
            return header_value
        return self.get_significant_part(header_value)

    def describe_probe(self):
        return f"HTTP header {self.header_name} of the {self.resource_type.value} request"


@dataclass(frozen=True)
class FontAbsenceSignalSource(SignalSource):
    """
    The remote font URL is fetched only when the local font can't be resolved,
    so an activation means the font is absent.
    """

    key: str
    title: str
    font_name: str
    should_discard: Optional[DiscardPredicate] = None
    kind = "fontAbsence"
    expected_requests = 0.8

    def probe_markup(self, class_name, visit_id, get_activation_url):
        url = get_activation_url(visit_id, self.key, "")
        font_face = (
            "@font-face { "
            f"font-family: '{self.font_name}'; "
            f"src: local('{self.font_name}'), url('{url}') format('truetype') }}"
        )
        style = f"font-family: '{self.font_name}'"
        element = f'<div style="{escape(style)}">a</div>'
        return ProbeFragment(css=[font_face], html=element)

    def accept_activation(self, raw_value):
        return ""

    def describe_probe(self):
        return f"Font name: {self.font_name}"

    def render_value(self, value):
        # An activation means the font is missing
        return "Yes" if value is None else "No"
