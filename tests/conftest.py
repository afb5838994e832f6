# TimelineManager test scripts
from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tm_platform.timeline import LibraryEntry  # noqa: E402


@dataclass
class FakeLibrary:
    """In-memory library: entries to scan plus named playlists, with every write recorded."""

    entries: list[LibraryEntry] = field(default_factory=list)
    playlists: dict[str, list[str]] = field(default_factory=dict)
    names: dict[str, str] = field(default_factory=dict)
    scan_calls: int = 0
    create_calls: list[tuple[str, list[str]]] = field(default_factory=list)
    replace_calls: list[tuple[str, list[str]]] = field(default_factory=list)
    scan_error: Exception | None = None
    write_errors: dict[str, Exception] = field(default_factory=dict)

    def scan_all(self) -> Iterable[LibraryEntry]:
        self.scan_calls += 1
        if self.scan_error is not None:
            raise self.scan_error
        return list(self.entries)

    def find_named_collection(self, name: str) -> str | None:
        return self.names.get(name)

    def create_named_collection(self, name: str, ordered_ids: Sequence[str]) -> str | None:
        if name in self.write_errors:
            raise self.write_errors[name]
        self.create_calls.append((name, list(ordered_ids)))
        cid = f"pl-{len(self.names) + 1}"
        self.names[name] = cid
        self.playlists[cid] = list(ordered_ids)
        return cid

    def replace_collection_membership(self, collection_id: str, ordered_ids: Sequence[str]) -> bool:
        for name, cid in self.names.items():
            if cid == collection_id and name in self.write_errors:
                raise self.write_errors[name]
        self.replace_calls.append((collection_id, list(ordered_ids)))
        self.playlists[collection_id] = list(ordered_ids)
        return True

    @property
    def writes(self) -> int:
        return len(self.create_calls) + len(self.replace_calls)


def movie(iid: str, *, tmdb: str | None = None, imdb: str | None = None, name: str | None = None) -> LibraryEntry:
    ids = {k: v for k, v in (("tmdb", tmdb), ("imdb", imdb)) if v}
    return LibraryEntry(internal_id=iid, kind="movie", ids=ids, name=name)


def episode(iid: str, *, tmdb: str | None = None, imdb: str | None = None, name: str | None = None) -> LibraryEntry:
    ids = {k: v for k, v in (("tmdb", tmdb), ("imdb", imdb)) if v}
    return LibraryEntry(internal_id=iid, kind="episode", ids=ids, name=name)


@pytest.fixture()
def config_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CONFIG_BASE", str(tmp_path))
    return tmp_path


@pytest.fixture()
def library() -> FakeLibrary:
    return FakeLibrary(
        entries=[
            movie("jf-ironman", tmdb="1726", imdb="tt0371746", name="Iron Man"),
            movie("jf-hulk", tmdb="1724", imdb="tt0800080", name="The Incredible Hulk"),
            movie("jf-ironman2", tmdb="10138", imdb="tt1228705", name="Iron Man 2"),
            episode("jf-wv-1", tmdb="1911481", imdb="tt9140560", name="WandaVision S01E01"),
            episode("jf-wv-2", tmdb="2488120", name="WandaVision S01E02"),
            LibraryEntry(internal_id="jf-home-video", kind="movie", ids={}, name="Holiday 2019"),
        ]
    )
