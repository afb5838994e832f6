# /timelinemanager.py
# TimelineManager - chronological playlists for media universes
from __future__ import annotations

import socket
import time

import uvicorn
from fastapi import FastAPI, Request

from _logging import log as BASE_LOG
from api import register as register_api
from tm_platform.config_base import config_path, load_config, resolve_path

_log = BASE_LOG.child("APP")

app = FastAPI(title="TimelineManager")
register_api(app)


@app.middleware("http")
async def log_failed_requests(request: Request, call_next):
    """Log 4xx/5xx responses; uvicorn's access log covers the rest when runtime.debug_http is on."""
    started = time.perf_counter()
    code = 500
    try:
        resp = await call_next(request)
        code = resp.status_code
        return resp
    finally:
        quiet = bool((load_config().get("runtime") or {}).get("debug_http"))
        if code >= 400 and not quiet:
            peer = f"{request.client.host}:{request.client.port}" if request.client else "-"
            took = int((time.perf_counter() - started) * 1000)
            msg = f'{peer} "{request.method} {request.url.path}" {code} ({took} ms)'
            (_log.error if code >= 500 else _log.debug)(msg)


def _lan_ip() -> str:
    """Address other hosts can reach us on; no packet is sent by a UDP connect."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            sock.connect(("10.255.255.255", 1))
            return sock.getsockname()[0]
        except OSError:
            return "127.0.0.1"


def main(host: str | None = None, port: int | None = None) -> None:
    cfg = load_config()
    ui = cfg.get("ui") or {}
    rt = cfg.get("runtime") or {}
    bind_host = host or str(ui.get("host") or "0.0.0.0")
    bind_port = int(port or ui.get("port") or 8788)
    if rt.get("log_json"):
        BASE_LOG.enable_json(str(resolve_path(rt["log_json"])))

    print(
        "\nTimelineManager running:\n"
        f"  Local:   http://127.0.0.1:{bind_port}\n"
        f"  Network: http://{_lan_ip()}:{bind_port}\n"
        f"  Bind:    {bind_host}:{bind_port}\n"
        f"  Config:  {config_path()}\n"
    )
    uvicorn.run(
        app,
        host=bind_host,
        port=bind_port,
        log_level="debug" if rt.get("debug") else "warning",
        access_log=bool(rt.get("debug_http")),
    )


if __name__ == "__main__":
    main()
