# /providers/sync/jellyfin/_common.py
# Jellyfin request helpers: library scoping, item paging, row -> LibraryEntry, playlist primitives.
from __future__ import annotations
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from _logging import log as BASE_LOG
from tm_platform.id_map import ids_from_jellyfin_providerids
from tm_platform.timeline import LibraryEntry

from .._mod_common import safe_json

_log = BASE_LOG.child("JELLYFIN:common")

# Jellyfin item Type -> timeline kind
_TYPE_MAP = {"Movie": "movie", "Episode": "episode", "Series": "show"}
SCAN_TYPES = "Movie,Episode"
SCAN_FIELDS = "ProviderIds,ProductionYear,ParentIndexNumber,IndexNumber,SeriesName"


# --- cfg helpers ----Library selection------------------------------------------
def _as_list_str(v: Any) -> List[str]:
    """Trimmed, de-duplicated, order-kept strings from a scalar or sequence."""
    raw = [] if v is None else (v if isinstance(v, (list, tuple, set)) else [v])
    return list(dict.fromkeys(s for s in (str(x).strip() for x in raw) if s))

def jf_library_scope(libraries: Any) -> Dict[str, Any]:
    """Item-query scope for the configured library ids; {} means the whole server."""
    libs = _as_list_str(libraries)
    if not libs:
        return {}
    if len(libs) == 1:
        return {"ParentId": libs[0]}
    return {"AncestorIds": ",".join(libs)}


# --- rows ---------------------------------------------------------------------
def kind_of(row: Mapping[str, Any]) -> str:
    t = str(row.get("Type") or "").strip()
    return _TYPE_MAP.get(t, t.lower())

def entry_from_row(row: Mapping[str, Any]) -> Optional[LibraryEntry]:
    iid = str(row.get("Id") or "").strip()
    if not iid:
        return None
    name = row.get("Name")
    if row.get("SeriesName") and row.get("IndexNumber") is not None:
        name = f"{row.get('SeriesName')} S{int(row.get('ParentIndexNumber') or 0):02d}E{int(row['IndexNumber']):02d}"
    return LibraryEntry(
        internal_id=iid,
        kind=kind_of(row),
        ids=ids_from_jellyfin_providerids(row.get("ProviderIds")),
        name=str(name) if name else None,
    )


# --- library paging -------------------------------------------------------------
def items_params(start: int, limit: int, libraries: Any = None) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "IncludeItemTypes": SCAN_TYPES,
        "Recursive": True,
        "Fields": SCAN_FIELDS,
        "StartIndex": max(0, int(start)),
        "Limit": max(1, int(limit)),
        "EnableTotalRecordCount": True,
        "EnableUserData": False,
        "SortBy": "SortName",
    }
    params.update(jf_library_scope(libraries))
    return params

def get_items_page(http, user_id: str, start: int, limit: int, libraries: Any = None) -> Dict[str, Any]:
    """One page of /Users/{id}/Items; non-2xx raises requests.HTTPError."""
    r = http.get(f"/Users/{user_id}/Items", params=items_params(start, limit, libraries))
    r.raise_for_status()
    data = safe_json(r) or {}
    data.setdefault("Items", [])
    data.setdefault("TotalRecordCount", len(data["Items"]))
    return data


# --- playlists ------------------------------------------------------------------
def find_playlist_id_by_name(http, user_id: str, name: str) -> Optional[str]:
    """Exact (case-insensitive, trimmed) name match among the user's playlists."""
    q = {"IncludeItemTypes": "Playlist", "Recursive": True, "SearchTerm": name}
    r = http.get(f"/Users/{user_id}/Items", params=q)
    r.raise_for_status()
    items = (safe_json(r) or {}).get("Items") or []
    name_l = (name or "").strip().lower()
    for it in items:
        if (it.get("Name") or "").strip().lower() == name_l and it.get("Id"):
            return str(it["Id"])
    if not items:
        # SearchTerm misses on some server versions; fall back to the full listing
        _log.debug(f"playlist search empty for {name!r}; listing all playlists")
        r = http.get(f"/Users/{user_id}/Items", params={"IncludeItemTypes": "Playlist", "Recursive": True})
        r.raise_for_status()
        for it in (safe_json(r) or {}).get("Items") or []:
            if (it.get("Name") or "").strip().lower() == name_l and it.get("Id"):
                return str(it["Id"])
    return None

def get_playlist_entries(http, playlist_id: str, user_id: str, start: int = 0, limit: int = 500) -> Dict[str, Any]:
    q = {"UserId": user_id, "StartIndex": max(0, int(start)), "Limit": max(1, int(limit)), "EnableUserData": False}
    r = http.get(f"/Playlists/{playlist_id}/Items", params=q)
    r.raise_for_status()
    data = safe_json(r) or {}
    data.setdefault("Items", [])
    data.setdefault("TotalRecordCount", len(data["Items"]))
    return data

def entry_ids_of(rows: Iterable[Mapping[str, Any]]) -> List[str]:
    """PlaylistItemId per row in playlist order; falls back to the item Id."""
    out: List[str] = []
    for it in rows or []:
        eid = str(it.get("PlaylistItemId") or it.get("Id") or "").strip()
        if eid:
            out.append(eid)
    return out


# --- utilities ----------------------------------------------------------------
def chunked(seq: Sequence[Any], n: int) -> Iterator[List[Any]]:
    step = max(1, int(n))
    for i in range(0, len(seq), step):
        yield list(seq[i:i + step])
