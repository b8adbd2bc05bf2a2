from dataclasses import dataclass, field
from typing import List, Sequence

from nojs_fingerprint.signals.domain.signal_source import ActivationUrlFactory, SignalSource
from nojs_fingerprint.signals.registry import SIGNAL_SOURCES


@dataclass
class ProbeMarkup:
    css: List[str] = field(default_factory=list)
    html: List[str] = field(default_factory=list)


def make_probe_markup(
    visit_id: str,
    get_activation_url: ActivationUrlFactory,
    sources: Sequence[SignalSource] = SIGNAL_SOURCES,
) -> ProbeMarkup:
    """
    Builds the CSS rules and marker elements that make the browser request
    activation URLs for the given visit. The rules must be placed in a single
    stylesheet in the returned order; the elements anywhere in the body.
    """
    markup = ProbeMarkup()
    probe_count = 0

    for source in sources:
        fragment = source.probe_markup(f"css_probe_{probe_count + 1}", visit_id, get_activation_url)
        if fragment is None:
            continue
        probe_count += 1
        markup.css.extend(fragment.css)
        if fragment.html is not None:
            markup.html.append(fragment.html)

    return markup
