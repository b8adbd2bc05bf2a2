from typing import Optional
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, Response
import uvicorn

from nojs_fingerprint.config.settings import settings
from nojs_fingerprint.observability.structured_logger import StructuredEventLogger, configure_logging
from nojs_fingerprint.signals.domain.signal_source import ResourceType
from nojs_fingerprint.signals.fingerprint import describe_signals
from nojs_fingerprint.signals.ingestion import receive_headers, receive_signal
from nojs_fingerprint.signals.probe_markup import make_probe_markup
from nojs_fingerprint.signals.registry import client_hint_headers
from nojs_fingerprint.storage.in_memory_visit_store import InMemoryVisitStore
from nojs_fingerprint.storage.visit_store import VisitContext, VisitStore
from nojs_fingerprint.storage.visit_store_factory import build_visit_store
from nojs_fingerprint.web import views

# Client hints the wait frame needs on top of the ones collected as signals
WAIT_FRAME_CLIENT_HINTS = ("Downlink",)

_NO_CACHE = {"Cache-Control": "no-cache, must-revalidate"}

app = FastAPI()

# Dependencies (injected by setup_dependencies or run_server)
visit_store: VisitStore = InMemoryVisitStore()
runtime_logger = StructuredEventLogger()


def setup_dependencies(
    store: VisitStore,
    logger: Optional[StructuredEventLogger] = None,
):
    global visit_store, runtime_logger
    visit_store = store
    runtime_logger = logger or StructuredEventLogger()


def _quote(value: str) -> str:
    return quote(value, safe="")


def activation_url(visit_id: str, signal_key: str, signal_value: str) -> str:
    url = f"/signal/{_quote(visit_id)}/{_quote(signal_key)}"
    if signal_value:
        url += f"/{_quote(signal_value)}"
    return url


def header_probe_url(visit_id: str, resource_type: ResourceType) -> str:
    return f"/headers/{_quote(visit_id)}/{_quote(resource_type.value)}"


def wait_frame_url(visit_id: str) -> str:
    return f"/wait-result/{_quote(visit_id)}"


def result_frame_url(visit_id: str) -> str:
    return f"/result-frame/{_quote(visit_id)}"


def result_page_url(visit_id: str) -> str:
    return f"/result/{_quote(visit_id)}"


def _empty_response() -> Response:
    return Response(content=b"", status_code=200, headers=_NO_CACHE)


def _not_found() -> HTMLResponse:
    return HTMLResponse(content=views.NOT_FOUND_BODY, status_code=404)


@app.get("/")
def main_page(request: Request):
    context = VisitContext(
        visitor_ip=request.client.host if request.client else "",
        visitor_user_agent=request.headers.get("user-agent", ""),
    )
    visit_id = visit_store.create_visit(context)
    receive_headers(visit_store, visit_id, ResourceType.PAGE.value, request.headers.get)

    probes = make_probe_markup(visit_id, activation_url)
    body = views.render_main_page(
        probes,
        style_probe_url=header_probe_url(visit_id, ResourceType.STYLE),
        media_probe_urls=[
            header_probe_url(visit_id, resource_type)
            for resource_type in (ResourceType.IMAGE, ResourceType.VIDEO, ResourceType.AUDIO)
        ],
        result_frame_url=wait_frame_url(visit_id),
    )
    runtime_logger.emit("PAGE_RENDERED", visit_id=visit_id, probe_rules=len(probes.css))
    return HTMLResponse(
        content=body,
        headers={"Accept-CH": ", ".join([*WAIT_FRAME_CLIENT_HINTS, *client_hint_headers()])},
    )


@app.get("/signal/{visit_id}/{signal_key}")
@app.get("/signal/{visit_id}/{signal_key}/{signal_value}")
def signal_activation(visit_id: str, signal_key: str, signal_value: str = ""):
    receive_signal(visit_store, visit_id, signal_key, signal_value)
    return _empty_response()


@app.get("/headers/{visit_id}/{resource_type}")
def header_probe(visit_id: str, resource_type: str, request: Request):
    receive_headers(visit_store, visit_id, resource_type, request.headers.get)
    return _empty_response()


@app.get("/wait-result/{visit_id}")
def wait_result_frame(visit_id: str, request: Request):
    delay = views.result_delay_seconds(request.headers.get("downlink"))
    return HTMLResponse(
        content=views.render_wait_frame(result_frame_url(visit_id), delay),
        headers=_NO_CACHE,
    )


@app.get("/result-frame/{visit_id}")
def result_frame(visit_id: str):
    visit = visit_store.finalize_and_get_visit(visit_id)
    if visit is None:
        runtime_logger.emit("VISIT_NOT_FOUND", visit_id=visit_id, view="frame")
        return _not_found()
    return HTMLResponse(content=views.render_result_frame(visit.fingerprint, result_page_url(visit_id)))


@app.get("/result/{visit_id}")
def result_page(visit_id: str):
    visit = visit_store.finalize_and_get_visit(visit_id, include_signals=True)
    if visit is None:
        runtime_logger.emit("VISIT_NOT_FOUND", visit_id=visit_id, view="page")
        return _not_found()
    return HTMLResponse(
        content=views.render_result_page(visit.fingerprint, describe_signals(visit.signals)),
    )


def run_server(host: Optional[str] = None, port: Optional[int] = None):
    configure_logging(settings.LOG_LEVEL)
    setup_dependencies(build_visit_store(settings))
    uvicorn.run(app, host=host or settings.SERVER_HOST, port=port or settings.SERVER_PORT)


if __name__ == "__main__":
    run_server()
