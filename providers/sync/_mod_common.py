# /providers/sync/_mod_common.py
# HTTP plumbing for library adapters: a session that times and labels each call,
# bounded retries with backoff, and tolerant JSON decoding.
from __future__ import annotations

import json
import os
import time
from typing import Any, Callable, Mapping
from urllib.parse import urlparse

import requests

from _logging import log as BASE_LOG

__VERSION__ = "0.3.0"
__all__ = [
    "HitSession",
    "make_emitter",
    "build_session",
    "safe_json",
    "request_with_retries",
    "label_jellyfin",
]

EmitFn = Callable[[str, Mapping[str, Any]], None]
LabelFn = Callable[[str, str], str]

_log = BASE_LOG.child("HTTP")

RETRY_STATUSES: tuple[int, ...] = (429, 500, 502, 503, 504)


def make_emitter(ctx: Any) -> EmitFn:
    """emit(event, payload) over ``ctx.emit``, a plain callable, or nothing.

    A failing sink is logged and ignored; instrumentation never breaks a request.
    """
    target = getattr(ctx, "emit", None) if ctx is not None else None
    if not callable(target):
        target = ctx if callable(ctx) else None

    def emit(event: str, payload: Mapping[str, Any]) -> None:
        if target is None:
            return
        try:
            target(event, dict(payload))
        except Exception as e:  # sink is caller code
            _log.debug(f"event sink rejected {event}: {e}")

    return emit


def _path_parts(url: str) -> list[str]:
    return [s for s in (urlparse(url).path or "").split("/") if s]


def _generic_label(method: str, url: str) -> str:
    return "/".join(_path_parts(url)[:3]).lower() or "unknown"


# (first segment, third segment or None, method or None) -> feature
_JF_ROUTES: tuple[tuple[str, str | None, str | None, str], ...] = (
    ("Users", "Items", None, "library:items"),
    ("Users", "Views", None, "library:views"),
    ("Playlists", "Items", "GET", "playlists:entries"),
    ("Playlists", "Items", "POST", "playlists:add"),
    ("Playlists", "Items", "DELETE", "playlists:remove"),
    ("Playlists", None, "POST", "playlists:create"),
    ("System", None, None, "system"),
)


def label_jellyfin(method: str, url: str) -> str:
    parts = _path_parts(url)
    head = parts[0] if parts else ""
    third = parts[2] if len(parts) > 2 else None
    for first, sub, verb, feature in _JF_ROUTES:
        if head != first or (verb and verb != method.upper()):
            continue
        if sub is None or sub == third:
            return feature
    return _generic_label(method, url)


class HitSession(requests.Session):
    """Session that logs each call with its feature label and timing.

    With hit reporting on (``TM_API_HITS`` set, or ``report_hits=True``) every
    call is also sent to the emitter as an ``api:hit`` event.
    """

    def __init__(self, provider: str, emit: EmitFn, label: LabelFn | None = None, report_hits: bool | None = None):
        super().__init__()
        self.provider = provider
        self._emit = emit
        self._label = label or _generic_label
        self.report_hits = bool(os.getenv("TM_API_HITS")) if report_hits is None else report_hits

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:  # type: ignore[override]
        started = time.perf_counter()
        resp: requests.Response | None = None
        try:
            resp = super().request(method, url, **kwargs)
            return resp
        finally:
            hit = {
                "provider": self.provider,
                "feature": self._label(method, url),
                "status": resp.status_code if resp is not None else None,
                "ms": int((time.perf_counter() - started) * 1000),
            }
            _log.debug(f"{self.provider} {method.upper()} {hit['feature']} -> {hit['status']} ({hit['ms']}ms)")
            if self.report_hits:
                self._emit("api:hit", hit)


def build_session(provider: str, ctx: Any = None, *, label: LabelFn | None = None, report_hits: bool | None = None) -> HitSession:
    return HitSession(provider, make_emitter(ctx), label, report_hits)


def safe_json(resp: requests.Response) -> Any:
    """Decoded body; {} when the body is empty or not JSON."""
    body = resp.text or ""
    if not body.strip():
        return {}
    try:
        return json.loads(body)
    except ValueError:
        return {}


def _retry_after(resp: requests.Response) -> float:
    try:
        return max(0.0, float(resp.headers.get("Retry-After") or 0))
    except ValueError:
        return 0.0


def request_with_retries(
    session: requests.Session,
    method: str,
    url: str,
    *,
    timeout: float = 10.0,
    max_retries: int = 3,
    retry_on: tuple[int, ...] = RETRY_STATUSES,
    backoff_base: float = 0.5,
    **kwargs: Any,
) -> requests.Response:
    """Up to ``max_retries`` attempts with exponential backoff.

    Retryable statuses and connection/timeout errors trigger another attempt; a 429
    waits at least its Retry-After. When attempts run out the final response is
    returned as-is, or the final transport error is raised.
    """
    attempts = max(1, int(max_retries))
    for attempt in range(1, attempts + 1):
        delay = backoff_base * (2 ** (attempt - 1))
        last = attempt == attempts
        try:
            resp = session.request(method, url, timeout=timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            if last:
                raise
            _log.debug(f"{method} {url}: {e.__class__.__name__}, attempt {attempt}/{attempts}")
            time.sleep(delay)
            continue
        if last or resp.status_code not in retry_on:
            return resp
        if resp.status_code == 429:
            delay = max(delay, _retry_after(resp))
        _log.debug(f"{method} {url} -> {resp.status_code}, retrying in {delay:.1f}s")
        time.sleep(delay)
    raise requests.RequestException(f"no attempt made: {method} {url}")
