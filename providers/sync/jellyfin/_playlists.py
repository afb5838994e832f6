# /providers/sync/jellyfin/_playlists.py
# JELLYFIN playlist writes: find by name, create with ordered ids, replace membership.
from __future__ import annotations

from typing import Any, Sequence

import requests

from _logging import log as BASE_LOG
from tm_platform.timeline import CollectionWriteError

from .._mod_common import safe_json
from ._common import chunked, entry_ids_of, find_playlist_id_by_name, get_playlist_entries

_log = BASE_LOG.child("JELLYFIN:playlists")


def _check(r: requests.Response, what: str, ok: tuple[int, ...] = (200, 204)) -> None:
    code = getattr(r, "status_code", 0)
    if code not in ok:
        raise CollectionWriteError(f"{what} failed: HTTP {code}", status=code)


def find(adapter: Any, name: str) -> str | None:
    norm = (name or "").strip()
    if not norm:
        return None
    pid = find_playlist_id_by_name(adapter.client, adapter.cfg.user_id, norm)
    _log.debug(f"find '{norm}' -> {pid or 'none'}")
    return pid


def create(adapter: Any, name: str, ordered_ids: Sequence[str]) -> str:
    """POST /Playlists with the first chunk; any remaining ids are appended in order."""
    http, uid, cfg = adapter.client, adapter.cfg.user_id, adapter.cfg
    ids = [str(x) for x in ordered_ids if x]
    chunks = list(chunked(ids, cfg.write_chunk_size))
    body = {
        "Name": name,
        "UserId": uid,
        "MediaType": "Video",
        "Ids": chunks[0] if chunks else [],
        "IsPublic": bool(cfg.playlist_public),
    }
    r = http.post("/Playlists", json=body)
    _check(r, f"create playlist '{name}'", (200, 201, 204))
    data = safe_json(r) or {}
    pid = data.get("Id") or data.get("PlaylistId") or find(adapter, name)
    if not pid:
        raise CollectionWriteError(f"create playlist '{name}' returned no id")
    pid = str(pid)
    for part in chunks[1:]:
        _append(adapter, pid, part)
    _log.info(f"created playlist '{name}' ({pid}) with {len(ids)} item(s)")
    return pid


def _append(adapter: Any, playlist_id: str, ids: Sequence[str]) -> None:
    r = adapter.client.post(
        f"/Playlists/{playlist_id}/Items",
        params={"ids": ",".join(ids), "userId": adapter.cfg.user_id},
    )
    _check(r, f"add {len(ids)} item(s) to playlist {playlist_id}")


def current_entries(adapter: Any, playlist_id: str) -> list[str]:
    """Every PlaylistItemId currently in the playlist, in playlist order."""
    out: list[str] = []
    start, page = 0, max(1, int(adapter.cfg.page_size))
    while True:
        data = get_playlist_entries(adapter.client, playlist_id, adapter.cfg.user_id, start, page)
        rows = data.get("Items") or []
        out.extend(entry_ids_of(rows))
        start += len(rows)
        if not rows or start >= int(data.get("TotalRecordCount") or 0):
            break
    return out


def replace(adapter: Any, playlist_id: str, ordered_ids: Sequence[str]) -> bool:
    """Clear the playlist, then append ordered_ids; the result holds exactly those ids in order."""
    cfg = adapter.cfg
    ids = [str(x) for x in ordered_ids if x]
    try:
        entries = current_entries(adapter, playlist_id)
    except requests.HTTPError as e:
        code = getattr(e.response, "status_code", None)
        raise CollectionWriteError(f"reading playlist {playlist_id} failed: HTTP {code}", status=code) from e

    for part in chunked(entries, cfg.write_chunk_size):
        r = adapter.client.delete(f"/Playlists/{playlist_id}/Items", params={"entryIds": ",".join(part)})
        _check(r, f"remove {len(part)} entr(ies) from playlist {playlist_id}")
    for part in chunked(ids, cfg.write_chunk_size):
        _append(adapter, playlist_id, part)

    _log.info(f"replaced playlist {playlist_id}: -{len(entries)} +{len(ids)}")
    return True
