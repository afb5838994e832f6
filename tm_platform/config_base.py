# tm_platform/config_base.py
# Config location, defaults and persistence for TimelineManager.
#  - config.json lives in CONFIG_BASE() and is layered over DEFAULT_CFG on every read.
#  - Universe files and the optional JSON log resolve relative to CONFIG_BASE().
from __future__ import annotations

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Mapping

from _logging import log as BASE_LOG

_log = BASE_LOG.child("CONFIG")


def CONFIG_BASE() -> Path:
    """Directory holding config.json and universe files.

    $CONFIG_BASE wins; inside the container image (/app present) it is /config;
    otherwise the project checkout itself.
    """
    env = (os.getenv("CONFIG_BASE") or "").strip()
    if env:
        return Path(env)
    return Path("/config") if Path("/app").exists() else Path(__file__).resolve().parents[1]


# Defaults; config.json only needs the keys it changes.
DEFAULT_CFG: Dict[str, Any] = {
    # --- Library -------------------------------------------------------------
    "jellyfin": {
        "server": "",                                   # http(s)://host:8096
        "access_token": "",                             # API key or user access token
        "user_id": "",                                  # Playlists are owned by this user
        "device_id": "timeline-manager",
        "verify_ssl": True,
        "timeout": 15.0,                                # HTTP timeout (seconds)
        "max_retries": 3,                               # Retry budget on 429/5xx
        "page_size": 500,                               # Items per page while scanning the library
        "scan_workers": 1,                              # Parallel page fetches while scanning (1 = sequential)
        "libraries": [],                                # Library ids to scan (empty = all)
        "playlist_public": False,                       # Create playlists as public
        "write_chunk_size": 100,                        # Ids per playlist add/remove call
    },

    # --- Timelines -----------------------------------------------------------
    "timeline": {
        "universes_file": "universes.json",             # {"universes": [...]} relative to CONFIG_BASE
        "universes_dir": "universes",                   # One universe per *.json file, relative to CONFIG_BASE
        "index_workers": 1,                             # Workers used while building the catalog index
        "dry_run": False,                               # Resolve and report, but never write playlists
    },

    # --- Runtime -------------------------------------------------------------
    "runtime": {
        "debug": False,                                 # Enables DEBUG log lines
        "debug_http": False,                            # uvicorn access log
        "log_json": "",                                 # Optional JSON-lines log file
    },

    "ui": {
        "host": "0.0.0.0",
        "port": 8788,
    },
}


def config_path() -> Path:
    return CONFIG_BASE() / "config.json"


def resolve_path(value: Any) -> Path:
    """Config paths are relative to CONFIG_BASE unless absolute."""
    p = Path(str(value or ""))
    return p if p.is_absolute() else CONFIG_BASE() / p


def _layer(base: Mapping[str, Any], over: Mapping[str, Any]) -> Dict[str, Any]:
    """Nested dicts merge key by key; anything else in ``over`` replaces the default."""
    out = copy.deepcopy(dict(base))
    for k, v in (over or {}).items():
        cur = out.get(k)
        out[k] = _layer(cur, v) if isinstance(v, Mapping) and isinstance(cur, Mapping) else copy.deepcopy(v)
    return out


def load_config() -> Dict[str, Any]:
    """DEFAULT_CFG with config.json layered on top; an unreadable file counts as empty."""
    p = config_path()
    user_cfg: Dict[str, Any] = {}
    if p.is_file():
        try:
            raw = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            _log.warn(f"ignoring unreadable {p.name}: {e}")
        else:
            if isinstance(raw, dict):
                user_cfg = raw
            else:
                _log.warn(f"ignoring {p.name}: top level must be a JSON object")
    return _layer(DEFAULT_CFG, user_cfg)


def save_config(cfg: Mapping[str, Any]) -> None:
    """Atomically replace config.json (temp file in the same directory, then rename)."""
    p = config_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".config.", suffix=".tmp", dir=str(p.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            json.dump(dict(cfg or {}), f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp, p)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    _log.debug(f"saved {p}")


def timeline_settings(cfg: Mapping[str, Any]) -> Dict[str, Any]:
    """The timeline section with its values coerced to the types the engine expects."""
    tl = dict((cfg or {}).get("timeline") or {})
    return {
        "universes_file": str(tl.get("universes_file") or "universes.json"),
        "universes_dir": str(tl.get("universes_dir") or "universes"),
        "index_workers": max(1, int(tl.get("index_workers") or 1)),
        "dry_run": bool(tl.get("dry_run", False)),
    }
