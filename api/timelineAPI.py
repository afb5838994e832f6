# api/timelineAPI.py
# TimelineManager - HTTP surface for universes: list, validate, synchronize, last status.
from __future__ import annotations

import threading
import time
from typing import Any

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from _logging import log as BASE_LOG

__all__ = ["router", "_is_timeline_running", "_last_result"]

router = APIRouter(prefix="/api/timeline", tags=["timeline"])

_log = BASE_LOG.child("API:timeline")

RUN_LOCK = threading.Lock()
_LAST: dict[str, Any] = {}
_EVENTS: list[dict[str, Any]] = []
_MAX_EVENTS = 200


def _env():
    from tm_platform.config_base import load_config, timeline_settings
    from tm_platform.universes import load_universes, select_universes
    return load_config, load_universes, select_universes, timeline_settings


def _make_library(cfg: dict[str, Any]):
    from providers.sync._mod_JELLYFIN import JellyfinLibrary
    return JellyfinLibrary(cfg)


def _is_timeline_running() -> bool:
    return RUN_LOCK.locked()


def _last_result() -> dict[str, Any]:
    return dict(_LAST)


def _on_event(line: str) -> None:
    _EVENTS.append({"ts": time.time(), "event": line})
    del _EVENTS[:-_MAX_EVENTS]


# Request bodies
class TimelineItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider_id: str = Field("", alias="providerId")
    provider: str = Field("", alias="providerName")
    kind: str = Field("", alias="type")
    season: int | None = None
    title: str | None = None


class UniverseIn(BaseModel):
    key: str = ""
    name: str = ""
    items: list[TimelineItemIn] = Field(default_factory=list)


class SyncIn(BaseModel):
    keys: list[str] | None = None
    dry_run: bool | None = None


@router.get("/universes")
def api_universes() -> dict[str, Any]:
    load_config, load_universes = _env()[:2]
    universes, errors = load_universes(load_config())
    return {
        "ok": not errors,
        "universes": [
            {
                "key": u.key,
                "name": u.name,
                "items": len(u.items),
                "file": u.source_file,
            }
            for u in universes
        ],
        "errors": errors,
    }


@router.post("/validate")
def api_validate(payload: UniverseIn = Body(...)) -> dict[str, Any]:
    from tm_platform.timeline import classify
    from tm_platform.universes import universe_from_dict, validate_universe_dict

    raw = payload.model_dump(by_alias=True)
    structural = validate_universe_dict(raw)
    out = classify(universe_from_dict(raw)).to_dict()
    if structural:
        out["valid"] = False
        out["errors"] = structural + list(out.get("errors") or [])
    return {"ok": bool(out["valid"]), "key": payload.key, "name": payload.name, "classification": out}


@router.post("/sync")
def api_sync(payload: SyncIn | None = Body(None)) -> JSONResponse:
    from tm_platform.timeline import TimelineSynchronizer

    if not RUN_LOCK.acquire(blocking=False):
        return JSONResponse({"ok": False, "error": "Timeline sync already running"}, status_code=409)
    try:
        load_config, load_universes, select_universes, timeline_settings = _env()
        cfg = load_config()
        tl = timeline_settings(cfg)
        body = payload or SyncIn()

        universes, load_errors = load_universes(cfg)
        chosen, unknown = select_universes(universes, body.keys)
        if unknown:
            return JSONResponse(
                {"ok": False, "error": "unknown universe key(s)", "unknown": unknown},
                status_code=404,
            )

        try:
            library = _make_library(cfg)
        except ValueError as e:
            _log.error(f"library not configured: {e}")
            return JSONResponse({"ok": False, "error": str(e)}, status_code=400)

        dry = tl["dry_run"] if body.dry_run is None else bool(body.dry_run)
        _EVENTS.clear()
        sync = TimelineSynchronizer(
            library,
            on_progress=_on_event,
            dry_run=dry,
            index_workers=tl["index_workers"],
        )
        batch = sync.synchronize_batch(chosen)
        result = batch.to_dict()
        result["load_errors"] = list(load_errors)
        _LAST.clear()
        _LAST.update(result)
        return JSONResponse(result)
    finally:
        RUN_LOCK.release()


@router.get("/library/health")
def api_library_health() -> JSONResponse:
    load_config = _env()[0]
    try:
        library = _make_library(load_config())
    except ValueError as e:
        return JSONResponse({"ok": False, "status": "not_configured", "error": str(e)}, status_code=400)
    return JSONResponse(dict(library.health()))


@router.get("/status")
def api_status() -> dict[str, Any]:
    if not _LAST:
        return {"ok": False, "status": "never_run", "running": _is_timeline_running()}
    out = _last_result()
    out["running"] = _is_timeline_running()
    out["events"] = list(_EVENTS)
    return out
