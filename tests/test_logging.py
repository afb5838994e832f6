# TimelineManager test scripts
from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from _logging import Logger


def test_child_tags_lines_and_respects_level() -> None:
    buf = io.StringIO()
    root = Logger(stream=buf, level="warn", use_color=False, show_time=False)
    child = root.child("TIMELINE")

    child.info("hidden")
    child.warn("index", "empty")
    root.error("boom")

    assert buf.getvalue().splitlines() == ["[TIMELINE] WARN index empty", "ERROR boom"]


def test_debug_follows_env_flag(monkeypatch: pytest.MonkeyPatch, config_base: Path) -> None:
    buf = io.StringIO()
    lg = Logger(stream=buf, level="info", use_color=False, show_time=False)

    monkeypatch.setenv("TM_DEBUG", "1")
    lg.debug("visible")
    assert buf.getvalue() == "DEBUG visible\n"


def test_json_sink_enabled_after_children_exist(tmp_path: Path) -> None:
    root = Logger(stream=io.StringIO(), use_color=False, show_time=False)
    child = root.child("API:timeline")
    sink = tmp_path / "log.jsonl"
    root.enable_json(str(sink))

    child.success("synced", extra={"universe": "mcu"})

    rec = json.loads(sink.read_text(encoding="utf-8").splitlines()[0])
    assert rec["level"] == "SUCCESS"
    assert rec["msg"] == "synced"
    assert rec["tags"] == {"module": "API:timeline"}
    assert rec["extra"] == {"universe": "mcu"}
