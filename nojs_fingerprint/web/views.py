from html import escape
from typing import Iterable, List, Optional

from nojs_fingerprint.signals.fingerprint import SignalSummary
from nojs_fingerprint.signals.probe_markup import ProbeMarkup
from nojs_fingerprint.signals.registry import SIGNAL_SOURCES

_HEAD = """<meta name="viewport" content="width=device-width, initial-scale=1, maximum-scale=1, user-scalable=no" />
    <meta http-equiv="X-UA-Compatible" content="IE=edge" />"""

# One request per header probe resource type on top of the activations
_HEADER_PROBE_REQUESTS = 5
_DEFAULT_DOWNLINK_MBPS = 1.5

MEAN_SIGNAL_REQUEST_COUNT = _HEADER_PROBE_REQUESTS + sum(s.expected_requests for s in SIGNAL_SOURCES)


def render_main_page(
    probes: ProbeMarkup,
    style_probe_url: str,
    media_probe_urls: Iterable[str],
    result_frame_url: str,
) -> str:
    image_url, video_url, audio_url = (escape(url) for url in media_probe_urls)
    css = "\n".join(probes.css)
    markers = "\n".join(probes.html)
    return f"""<!DOCTYPE html>
<html lang="en">
  <head>
    {_HEAD}
    <title>No-JavaScript fingerprinting</title>
    <style>
{css}
    </style>
    <link rel="stylesheet" href="{escape(style_probe_url)}" />
  </head>
  <body>
    <h1>No-JS fingerprinting</h1>
    <p>
      Your fingerprint is calculated from properties of your browser such as the screen size
      and the installed fonts, without JavaScript and without cookies.
    </p>
    <div>
      <iframe src="{escape(result_frame_url)}"></iframe>
    </div>
    <div style="position: absolute; top: 0; left: -9999px;">
      <img src="{image_url}" alt="" />
      <video src="{video_url}"></video>
      <audio src="{audio_url}"></audio>
{markers}
    </div>
  </body>
</html>"""


def result_delay_seconds(downlink: Optional[str]) -> float:
    """
    Time to wait before offering the result, longer on slow connections so
    that more probe requests have a chance to land.
    """
    try:
        downlink_mbps = float(downlink) if downlink is not None else _DEFAULT_DOWNLINK_MBPS
    except ValueError:
        downlink_mbps = _DEFAULT_DOWNLINK_MBPS
    if not downlink_mbps > 0:
        downlink_mbps = _DEFAULT_DOWNLINK_MBPS
    return 1 + MEAN_SIGNAL_REQUEST_COUNT / 12 / downlink_mbps


def render_wait_frame(result_frame_url: str, delay_seconds: float) -> str:
    # The link is revealed by a CSS animation, no script involved
    return f"""<!DOCTYPE html>
<html lang="en">
  <head>
    {_HEAD}
    <style>
      @keyframes keepHidden {{
        from {{ visibility: hidden; position: absolute; top: 0; left: -9999px; }}
        to {{}}
      }}
      @keyframes keepVisible {{
        from {{ visibility: visible; position: static; }}
        to {{ visibility: visible; }}
      }}
      .resultDelay {{
        animation-duration: {delay_seconds:.2f}s;
        animation-timing-function: step-end;
      }}
      .resultPlaceholder {{
        animation-name: keepVisible;
        visibility: hidden;
        position: absolute;
        top: 0;
        left: -9999px;
      }}
      .resultBlock {{
        animation-name: keepHidden;
      }}
    </style>
  </head>
  <body>
    <div class="resultPlaceholder resultDelay">Collecting data, please wait...</div>
    <div class="resultBlock resultDelay">
      <a href="{escape(result_frame_url)}">See my fingerprint</a>
    </div>
  </body>
</html>"""


def render_result_frame(fingerprint: str, full_result_url: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
  <head>
    {_HEAD}
    <title>My fingerprint</title>
  </head>
  <body>
    <div>Your fingerprint:</div>
    <div class="fp-block__fingerprint">{escape(fingerprint)}</div>
    <div><a href="{escape(full_result_url)}" target="_top">See more details →</a></div>
  </body>
</html>"""


def _render_summary(summary: SignalSummary) -> str:
    style = ' style="text-decoration: line-through"' if summary.is_discarded else ""
    return (
        f"<li{style}>"
        f"<div>Title: {escape(summary.title)}</div>"
        f"<div>Type: {escape(summary.kind)}</div>"
        f"<div>Probe: {escape(summary.probe)}</div>"
        f"<div>Value: {escape(summary.value)}</div>"
        "</li>"
    )


def render_result_page(fingerprint: str, summaries: List[SignalSummary]) -> str:
    items = "\n      ".join(_render_summary(summary) for summary in summaries)
    return f"""<!DOCTYPE html>
<html lang="en">
  <head>
    {_HEAD}
    <title>No-JavaScript fingerprinting: result</title>
  </head>
  <body>
    <div><a href="/">Go to the start</a></div>
    <div>Fingerprint: {escape(fingerprint)}</div>
    <ul>
      {items}
    </ul>
  </body>
</html>"""


NOT_FOUND_BODY = "Visit is not found. Please try again."
