# TimelineManager test scripts
from __future__ import annotations

import json
from pathlib import Path

from tm_platform.config_base import (
    CONFIG_BASE,
    config_path,
    load_config,
    resolve_path,
    save_config,
    timeline_settings,
)


def test_defaults_without_config_file(config_base: Path) -> None:
    cfg = load_config()
    assert CONFIG_BASE() == config_base
    assert cfg["jellyfin"]["page_size"] == 500
    assert cfg["timeline"]["universes_file"] == "universes.json"
    assert cfg["ui"]["port"] == 8788


def test_user_values_layer_over_defaults(config_base: Path) -> None:
    config_path().write_text(json.dumps({"jellyfin": {"server": "http://jf:8096", "libraries": ["a"]}}), encoding="utf-8")
    cfg = load_config()
    assert cfg["jellyfin"]["server"] == "http://jf:8096"
    assert cfg["jellyfin"]["libraries"] == ["a"]
    assert cfg["jellyfin"]["write_chunk_size"] == 100


def test_unreadable_config_falls_back_to_defaults(config_base: Path) -> None:
    config_path().write_text("{not json", encoding="utf-8")
    assert load_config()["timeline"]["dry_run"] is False
    config_path().write_text("[1, 2]", encoding="utf-8")
    assert load_config()["runtime"]["debug"] is False


def test_save_then_load_round_trip_leaves_no_temp_files(config_base: Path) -> None:
    cfg = load_config()
    cfg["timeline"]["dry_run"] = True
    save_config(cfg)
    assert load_config()["timeline"]["dry_run"] is True
    assert sorted(p.name for p in config_base.iterdir()) == ["config.json"]


def test_resolve_path_and_timeline_settings(config_base: Path) -> None:
    assert resolve_path("universes") == config_base / "universes"
    assert resolve_path("/abs/u.json") == Path("/abs/u.json")
    tl = timeline_settings({"timeline": {"index_workers": "0", "dry_run": 1}})
    assert tl == {"universes_file": "universes.json", "universes_dir": "universes", "index_workers": 1, "dry_run": True}
