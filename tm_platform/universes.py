# tm_platform/universes.py
# Universe definitions: JSON loading and structural validation.
#  - universes.json holds {"universes": [...]}; universes/*.json hold one universe each.
#  - Items accept the authored camelCase keys (providerId/providerName/type) and snake_case aliases.
#  - Structural problems skip the universe and are reported; kind/provider checks belong to the classifier.

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from _logging import log as BASE_LOG

from .config_base import load_config, resolve_path, timeline_settings
from .id_map import normalize_id, normalize_source
from .timeline._types import TimelineItem, Universe

__all__ = [
    "item_from_dict", "universe_from_dict", "validate_universe_dict",
    "read_universes_file", "load_universes", "select_universes",
]

_log = BASE_LOG.child("UNIVERSES")

_WS = re.compile(r"\s")


def _first(d: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return None


def _int_or_none(v: Any) -> Optional[int]:
    try:
        return int(v) if v is not None and str(v).strip() != "" else None
    except (TypeError, ValueError):
        return None


def item_from_dict(d: Mapping[str, Any]) -> TimelineItem:
    source = normalize_source(_first(d, "providerName", "provider_name", "provider", "source"))
    raw_id = _first(d, "providerId", "provider_id", "id")
    pid = normalize_id(source, raw_id) if source else None
    return TimelineItem(
        provider_id=pid or str(raw_id or "").strip(),
        provider=source,
        kind=str(_first(d, "type", "kind") or ""),
        season=_int_or_none(_first(d, "season", "seasonNumber", "season_number")),
        title=(str(d.get("title")).strip() or None) if d.get("title") else None,
    )


def validate_universe_dict(d: Any, *, where: str = "") -> List[str]:
    at = f"{where}: " if where else ""
    if not isinstance(d, Mapping):
        return [f"{at}universe must be a JSON object"]
    errors: List[str] = []
    key = str(d.get("key") or "").strip()
    if not key:
        errors.append(f"{at}universe key is required")
    elif _WS.search(key):
        errors.append(f"{at}universe key '{key}' must not contain whitespace")
    if not str(d.get("name") or "").strip():
        errors.append(f"{at}universe '{key or '?'}' needs a display name")
    items = d.get("items", [])
    if items is not None and not isinstance(items, list):
        errors.append(f"{at}universe '{key or '?'}' items must be a list")
    elif any(not isinstance(x, Mapping) for x in (items or [])):
        errors.append(f"{at}universe '{key or '?'}' items must be JSON objects")
    return errors


def universe_from_dict(d: Mapping[str, Any], *, source_file: Optional[str] = None) -> Universe:
    return Universe(
        key=str(d.get("key") or "").strip(),
        name=str(d.get("name") or "").strip(),
        items=[item_from_dict(x) for x in (d.get("items") or [])],
        source_file=source_file,
    )


def _read_json(p: Path) -> Tuple[Any, Optional[str]]:
    try:
        return json.loads(p.read_text(encoding="utf-8")), None
    except json.JSONDecodeError as e:
        return None, f"{p.name}: invalid JSON at line {e.lineno}, column {e.colno}: {e.msg}"
    except OSError as e:
        return None, f"{p.name}: cannot read file: {e}"


def read_universes_file(p: Path) -> Tuple[List[Universe], List[str]]:
    """One file: either {"universes": [...]}, a bare list, or a single universe object."""
    data, err = _read_json(p)
    if err:
        return [], [err]
    if isinstance(data, Mapping) and isinstance(data.get("universes"), list):
        raw = list(data["universes"])
    elif isinstance(data, list):
        raw = data
    else:
        raw = [data]

    out: List[Universe] = []
    errors: List[str] = []
    for i, d in enumerate(raw):
        where = f"{p.name}[{i}]" if len(raw) > 1 else p.name
        problems = validate_universe_dict(d, where=where)
        if problems:
            errors.extend(problems)
            continue
        out.append(universe_from_dict(d, source_file=str(p)))
    return out, errors


def _candidate_files(cfg: Mapping[str, Any]) -> List[Path]:
    tl = timeline_settings(cfg)
    files: List[Path] = []
    main = resolve_path(tl["universes_file"])
    if main.is_file():
        files.append(main)
    d = resolve_path(tl["universes_dir"])
    if d.is_dir():
        files.extend(sorted(p for p in d.glob("*.json") if p.is_file()))
    return files


def load_universes(cfg: Optional[Mapping[str, Any]] = None) -> Tuple[List[Universe], List[str]]:
    """All configured universes (in file order) plus human-readable load errors.

    Universe keys are unique case-insensitively; later duplicates are rejected.
    """
    cfg = cfg if cfg is not None else load_config()
    universes: List[Universe] = []
    errors: List[str] = []
    seen: Dict[str, str] = {}

    files = _candidate_files(cfg)
    if not files:
        _log.warn("no universe files found")
    for p in files:
        found, errs = read_universes_file(p)
        errors.extend(errs)
        for u in found:
            k = u.key.lower()
            if k in seen:
                errors.append(f"{p.name}: duplicate universe key '{u.key}' (already defined in {seen[k]})")
                continue
            seen[k] = p.name
            universes.append(u)

    for e in errors:
        _log.error(e)
    _log.info(f"loaded {len(universes)} universe(s) from {len(files)} file(s)")
    return universes, errors


def select_universes(universes: Iterable[Universe], keys: Optional[Iterable[str]]) -> Tuple[List[Universe], List[str]]:
    """Filter by key (case-insensitive), keeping config order; returns (selected, unknown_keys)."""
    pool = list(universes)
    if not keys:
        return pool, []
    want = [str(k).strip() for k in keys if str(k).strip()]
    wanted = {k.lower() for k in want}
    have = {u.key.lower() for u in pool}
    return [u for u in pool if u.key.lower() in wanted], [k for k in want if k.lower() not in have]
