# /tm_platform/id_map.py
# Common ID handling for timeline items and library entries.
# - Normalize/clean external ids (tmdb, imdb, tvdb) from user config and library rows.
# - Normalize source and content-kind labels to one vocabulary.
# - Build the "source:id" reference string used in logs and diagnostics.

from __future__ import annotations
import re
from typing import Any, Dict, Mapping, Optional, Tuple

# External sources that feed the catalog index; tvdb ids are parsed but not indexed.
INDEXED_SOURCES: Tuple[str, ...] = ("tmdb", "imdb")

__all__ = [
    "INDEXED_SOURCES",
    "normalize_id", "normalize_source", "normalize_kind",
    "ids_from_jellyfin_providerids", "provider_ref",
]

# --- tiny utils ---------------------------------------------------------------

_CLEAN_SENTINELS = {"none", "null", "nan", "undefined", "unknown", "0", ""}

_SOURCE_ALIASES = {
    "tmdb": "tmdb", "themoviedb": "tmdb", "moviedb": "tmdb",
    "imdb": "imdb",
    "tvdb": "tvdb", "thetvdb": "tvdb",
}

_KIND_ALIASES = {
    "movie": "movie", "movies": "movie", "film": "movie", "films": "movie",
    "episode": "episode", "episodes": "episode",
    "series": "show", "show": "show", "shows": "show", "tv": "show",
}


def _norm_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def normalize_source(source: Any) -> str:
    """Lower-case source label; known aliases collapse onto their short name."""
    s = (_norm_str(source) or "").lower()
    return _SOURCE_ALIASES.get(s, s)


def normalize_kind(kind: Any) -> str:
    """Lower-case content kind; unknown kinds are kept verbatim so they can be rejected later."""
    k = (_norm_str(kind) or "").lower()
    return _KIND_ALIASES.get(k, k)


def normalize_id(source: str, val: Any) -> Optional[str]:
    """Normalize provider ids so config values and library values compare equal."""
    k = normalize_source(source)
    s = _norm_str(val)
    if not s or s.lower() in _CLEAN_SENTINELS:
        return None

    if k in ("tmdb", "tvdb"):
        digits = re.sub(r"\D+", "", s)
        if not digits:
            return None
        return str(int(digits)) if digits.strip("0") else None

    if k == "imdb":
        s = s.lower()
        m = re.search(r"(tt\d+)", s)
        if m:
            return m.group(1)
        digits = re.sub(r"\D+", "", s)
        return f"tt{digits}" if digits else None

    return s

# --- Jellyfin ProviderIds → ids -----------------------------------------------

_JF_MAP = {
    "imdb": "imdb",
    "tmdb": "tmdb",
    "tvdb": "tvdb",
}


def ids_from_jellyfin_providerids(pids: Mapping[str, Any] | None) -> Dict[str, str]:
    out: Dict[str, str] = {}
    if not isinstance(pids, Mapping):
        return out
    for k, v in pids.items():
        dst = _JF_MAP.get(str(k).strip().lower())
        if not dst:
            continue
        n = normalize_id(dst, v)
        if n:
            out[dst] = n
    return out


# --- references ---------------------------------------------------------------

def provider_ref(source: Any, provider_id: Any) -> str:
    """'tmdb:1771' style reference for logs and unmatched lists."""
    return f"{normalize_source(source) or '?'}:{_norm_str(provider_id) or '?'}"
