# /providers/sync/_mod_JELLYFIN.py
# Jellyfin library adapter for the timeline engine: config, authenticated client, scan + playlist ops.

from __future__ import annotations
__VERSION__ = "1.0.0"
__all__ = ["JFConfig", "JFClient", "JellyfinLibrary", "is_configured"]

import os, time, requests
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from _logging import log as BASE_LOG
from tm_platform.timeline import LibraryEntry

from .jellyfin._common import _as_list_str, entry_from_row, get_items_page
from .jellyfin import _playlists as feat_playlists
from ._mod_common import build_session, label_jellyfin, request_with_retries

_UA = os.environ.get("TM_UA", f"TimelineManager/{__VERSION__} (Jellyfin)")
_log = BASE_LOG.child("JELLYFIN")

_REQUIRED = ("server", "access_token", "user_id")


def _int(v: Any, default: int, floor: int = 1) -> int:
    try:
        return max(floor, int(v if v not in (None, "") else default))
    except (TypeError, ValueError):
        return default


@dataclass
class JFConfig:
    server: str
    access_token: str
    user_id: str
    device_id: str = "timeline-manager"
    verify_ssl: bool = True
    timeout: float = 15.0
    max_retries: int = 3
    page_size: int = 500
    scan_workers: int = 1
    libraries: List[str] = field(default_factory=list)  # empty = whole server
    playlist_public: bool = False
    write_chunk_size: int = 100

    @classmethod
    def from_cfg(cls, cfg: Mapping[str, Any]) -> "JFConfig":
        """Typed view of the ``jellyfin`` config section."""
        jf = dict((cfg or {}).get("jellyfin") or {})
        text = {k: str(jf.get(k) or "").strip() for k in _REQUIRED}
        return cls(
            **text,
            device_id=str(jf.get("device_id") or "timeline-manager"),
            verify_ssl=bool(jf.get("verify_ssl", True)),
            timeout=float(jf.get("timeout") or 15.0),
            max_retries=_int(jf.get("max_retries"), 3),
            page_size=_int(jf.get("page_size"), 500),
            scan_workers=_int(jf.get("scan_workers"), 1),
            libraries=_as_list_str(jf.get("libraries")),
            playlist_public=bool(jf.get("playlist_public", False)),
            write_chunk_size=_int(jf.get("write_chunk_size"), 100),
        )

    def missing(self) -> List[str]:
        return [k for k in _REQUIRED if not getattr(self, k)]


def is_configured(cfg: Mapping[str, Any]) -> bool:
    return not JFConfig.from_cfg(cfg).missing()


def _auth_header(cfg: JFConfig) -> str:
    fields = {
        "Client": "TimelineManager",
        "Device": "TimelineManager",
        "DeviceId": cfg.device_id,
        "Version": __VERSION__,
        "Token": cfg.access_token,
    }
    return "MediaBrowser " + ", ".join(f'{k}="{v}"' for k, v in fields.items())


class JFClient:
    """Thin authenticated wrapper; every call goes through request_with_retries."""

    def __init__(self, cfg: JFConfig, ctx: Any = None):
        missing = cfg.missing()
        if missing:
            raise ValueError(f"Jellyfin config requires server, access_token, user_id (missing: {', '.join(missing)})")
        self.cfg = cfg
        self.base = cfg.server.rstrip("/")
        self.session = build_session("JELLYFIN", ctx, label=label_jellyfin)
        self.session.verify = cfg.verify_ssl
        auth = _auth_header(cfg)
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": _UA,
            "Authorization": auth,
            "X-Emby-Authorization": auth,
            "X-MediaBrowser-Token": cfg.access_token,
        })

    def request(self, method: str, path: str, *, params: Optional[dict] = None, json: Any = None) -> requests.Response:
        url = f"{self.base}/{path.lstrip('/')}"
        return request_with_retries(
            self.session, method, url,
            params=params or {}, json=json,
            timeout=self.cfg.timeout, max_retries=self.cfg.max_retries,
        )

    def get(self, path: str, *, params: Optional[dict] = None) -> requests.Response:
        return self.request("GET", path, params=params)

    def post(self, path: str, *, params: Optional[dict] = None, json: Any = None) -> requests.Response:
        return self.request("POST", path, params=params, json=json)

    def delete(self, path: str, *, params: Optional[dict] = None) -> requests.Response:
        return self.request("DELETE", path, params=params)


class JellyfinLibrary:
    """The engine's library collaborator, bound to one Jellyfin user."""

    def __init__(self, cfg: Mapping[str, Any] | JFConfig, *, ctx: Any = None):
        self.cfg = cfg if isinstance(cfg, JFConfig) else JFConfig.from_cfg(cfg)
        self.client = JFClient(self.cfg, ctx)

    def _rows(self, start: int) -> List[Dict[str, Any]]:
        page = get_items_page(self.client, self.cfg.user_id, start, self.cfg.page_size, self.cfg.libraries)
        return list(page.get("Items") or [])

    def scan_all(self) -> Iterable[LibraryEntry]:
        """Movies and episodes visible to the user, in server order.

        The first page tells how many remain and how many rows the server really
        returns per page (it may cap below page_size). With scan_workers > 1 the
        following pages are fetched concurrently at that stride; any shortfall
        is then read sequentially, advancing by the rows actually received.
        """
        t0 = time.perf_counter()
        first = get_items_page(self.client, self.cfg.user_id, 0, self.cfg.page_size, self.cfg.libraries)
        total = int(first.get("TotalRecordCount") or 0)
        pages = [list(first.get("Items") or [])]
        got = len(pages[0])

        if got and got < total and self.cfg.scan_workers > 1:
            with ThreadPoolExecutor(max_workers=self.cfg.scan_workers) as ex:
                more = list(ex.map(self._rows, range(got, total, got)))  # map() keeps page order
            for rows in more:
                if not rows:
                    break
                pages.append(rows)
                got += len(rows)

        while got and got < total:
            rows = self._rows(got)
            if not rows:
                break
            pages.append(rows)
            got += len(rows)

        entries = [e for rows in pages for e in map(entry_from_row, rows) if e is not None]
        _log.info(
            f"scanned {len(entries)} item(s) in {len(pages)} page(s) "
            f"({int((time.perf_counter() - t0) * 1000)}ms, total={total})"
        )
        return entries

    def find_named_collection(self, name: str) -> Optional[str]:
        return feat_playlists.find(self, name)

    def create_named_collection(self, name: str, ordered_ids: Sequence[str]) -> Optional[str]:
        return feat_playlists.create(self, name, ordered_ids)

    def replace_collection_membership(self, collection_id: str, ordered_ids: Sequence[str]) -> bool:
        return feat_playlists.replace(self, collection_id, ordered_ids)

    def health(self) -> Mapping[str, Any]:
        """Probe /Users/{id}: ok, auth_failed (401/403) or down."""
        t0 = time.perf_counter()
        code: Optional[int] = None
        try:
            code = self.client.get(f"/Users/{self.cfg.user_id}").status_code
        except requests.RequestException as e:
            _log.warn(f"health probe failed: {e}")
        latency_ms = int((time.perf_counter() - t0) * 1000)

        status = "ok" if code == 200 else "auth_failed" if code in (401, 403) else "down"
        out: Dict[str, Any] = {"ok": status == "ok", "status": status, "latency_ms": latency_ms, "http_status": code}
        if status != "ok":
            out["reason"] = f"user:http:{code}" if code else "server_unreachable"
        _log.debug(f"health {status} in {latency_ms}ms")
        return out
