# TimelineManager test scripts
from __future__ import annotations

import json
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import FakeLibrary


@pytest.fixture()
def api(config_base: Path, library: FakeLibrary, monkeypatch: pytest.MonkeyPatch):
    from api import timelineAPI as t

    (config_base / "universes.json").write_text(json.dumps({"universes": [
        {
            "key": "mcu",
            "name": "Marvel Cinematic Universe",
            "items": [
                {"providerId": "1726", "providerName": "tmdb", "type": "movie"},
                {"providerId": "404", "providerName": "tmdb", "type": "movie"},
            ],
        },
        {"key": "docs", "name": "Docs", "items": [{"providerId": "1", "providerName": "tmdb", "type": "documentary"}]},
    ]}), encoding="utf-8")

    monkeypatch.setattr(t, "_make_library", lambda cfg: library)
    t._LAST.clear()

    app = FastAPI()
    app.include_router(t.router)
    return t, TestClient(app)


def test_status_before_first_run(api) -> None:
    _, client = api
    r = client.get("/api/timeline/status")
    assert r.status_code == 200
    assert r.json()["status"] == "never_run"


def test_list_universes(api) -> None:
    _, client = api
    data = client.get("/api/timeline/universes").json()
    assert data["ok"] is True
    assert [(u["key"], u["items"]) for u in data["universes"]] == [("mcu", 2), ("docs", 1)]


def test_validate_posted_universe(api) -> None:
    _, client = api
    r = client.post("/api/timeline/validate", json={
        "key": "t",
        "name": "T",
        "items": [
            {"providerId": "1", "providerName": "tmdb", "type": "movie"},
            {"providerId": "2", "providerName": "tmdb", "type": "documentary"},
        ],
    })
    data = r.json()
    assert r.status_code == 200
    assert data["ok"] is False
    assert data["classification"]["errors"] == ["item 2 (tmdb:2): unsupported content type 'documentary'"]


def test_validate_applies_loader_structure_rules(api) -> None:
    _, client = api
    items = [{"providerId": "1726", "providerName": "tmdb", "type": "movie"}]

    spaced = client.post("/api/timeline/validate", json={"key": "star wars", "name": "Star Wars", "items": items}).json()
    assert spaced["ok"] is False
    assert spaced["classification"]["errors"] == ["universe key 'star wars' must not contain whitespace"]

    keyless = client.post("/api/timeline/validate", json={"name": "Star Wars", "items": items}).json()
    assert keyless["ok"] is False
    assert keyless["classification"]["errors"] == ["universe key is required"]

    ok = client.post("/api/timeline/validate", json={"key": "sw", "name": "Star Wars", "items": items}).json()
    assert ok["ok"] is True


def test_sync_runs_batch_and_stores_status(api, library: FakeLibrary) -> None:
    _, client = api
    r = client.post("/api/timeline/sync", json={})
    data = r.json()

    assert r.status_code == 200
    assert data["status"] == "partial"
    assert data["succeeded"] == 1 and data["failed"] == 1
    assert library.create_calls == [("Marvel Cinematic Universe", ["jf-ironman"])]

    st = client.get("/api/timeline/status").json()
    assert st["status"] == "partial"
    assert st["running"] is False
    assert any(json.loads(e["event"])["event"] == "timeline:done" for e in st["events"])


def test_sync_selected_keys_dry_run(api, library: FakeLibrary) -> None:
    _, client = api
    data = client.post("/api/timeline/sync", json={"keys": ["MCU"], "dry_run": True}).json()
    assert data["status"] == "success"
    assert data["dry_run"] is True
    assert [u["universe"] for u in data["universes"]] == ["mcu"]
    assert library.writes == 0


def test_sync_unknown_key_is_404(api) -> None:
    _, client = api
    r = client.post("/api/timeline/sync", json={"keys": ["lotr"]})
    assert r.status_code == 404
    assert r.json()["unknown"] == ["lotr"]


def test_sync_conflict_while_running(api) -> None:
    t, client = api
    assert t.RUN_LOCK.acquire(blocking=False)
    try:
        r = client.post("/api/timeline/sync", json={})
        assert r.status_code == 409
    finally:
        t.RUN_LOCK.release()


def test_sync_without_library_config_is_400(config_base: Path) -> None:
    from api import timelineAPI as t

    app = FastAPI()
    app.include_router(t.router)
    r = TestClient(app).post("/api/timeline/sync", json={})
    assert r.status_code == 400
    assert "requires server" in r.json()["error"]


def test_app_registers_timeline_routes(config_base: Path) -> None:
    from timelinemanager import app

    r = TestClient(app).get("/api/timeline/universes")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "universes": [], "errors": []}
