# TimelineManager test scripts
from __future__ import annotations

import pytest

from conftest import FakeLibrary, episode, movie
from tm_platform.timeline import CatalogIndex, IndexBuildError, InvalidStateError, LibraryEntry


def test_lookup_before_build_raises(library: FakeLibrary) -> None:
    idx = CatalogIndex(library)
    with pytest.raises(InvalidStateError):
        idx.lookup("1726", "tmdb", "movie")


def test_build_partitions_by_source_and_kind(library: FakeLibrary) -> None:
    idx = CatalogIndex(library).build()

    assert library.scan_calls == 1
    assert idx.lookup("1726", "tmdb", "movie") == "jf-ironman"
    assert idx.lookup("tt0371746", "imdb", "movie") == "jf-ironman"
    assert idx.lookup("1911481", "tmdb", "episode") == "jf-wv-1"
    # same id, other kind: separate partition
    assert idx.lookup("1726", "tmdb", "episode") is None
    # a tmdb number is never looked up in the imdb partition
    assert idx.lookup("1726", "imdb", "movie") is None

    st = idx.stats()
    assert st["built"] is True
    assert st["scanned"] == 6
    assert st["indexed"] == 5
    assert st["skipped"] == 1
    assert st["partitions"] == {"imdb:episode": 1, "imdb:movie": 3, "tmdb:episode": 2, "tmdb:movie": 3}


def test_lookup_normalizes_ids(library: FakeLibrary) -> None:
    idx = CatalogIndex(library).build()
    assert idx.lookup(" 001726 ", "TMDB", "Movies") == "jf-ironman"
    assert idx.lookup("0371746", "imdb", "movie") == "jf-ironman"


def test_unsupported_combination_is_not_found(library: FakeLibrary) -> None:
    idx = CatalogIndex(library).build()
    assert idx.lookup("1726", "tvdb", "movie") is None
    assert idx.lookup("1726", "tmdb", "documentary") is None


def test_duplicate_external_id_keeps_first_in_scan_order() -> None:
    lib = FakeLibrary(entries=[movie("a", tmdb="5"), movie("b", tmdb="005"), movie("c", imdb="tt9")])
    idx = CatalogIndex(lib).build()
    assert idx.lookup("5", "tmdb", "movie") == "a"
    assert idx.stats()["duplicates"] == 1


def test_rebuild_is_idempotent_and_reflects_library_changes(library: FakeLibrary) -> None:
    idx = CatalogIndex(library).build()
    first = dict(idx.partition("tmdb", "movie"))
    idx.build()
    assert dict(idx.partition("tmdb", "movie")) == first

    library.entries = [movie("only", tmdb="1")]
    idx.build()
    assert idx.lookup("1726", "tmdb", "movie") is None
    assert idx.lookup("1", "tmdb", "movie") == "only"
    assert len(idx) == 1


def test_parallel_build_matches_sequential(library: FakeLibrary) -> None:
    seq = CatalogIndex(library).build(workers=1)
    par = CatalogIndex(library).build(workers=4)
    for src in ("tmdb", "imdb"):
        for kind in ("movie", "episode"):
            assert dict(seq.partition(src, kind)) == dict(par.partition(src, kind))


def test_partitions_are_read_only(library: FakeLibrary) -> None:
    idx = CatalogIndex(library).build()
    with pytest.raises(TypeError):
        idx.partition("tmdb", "movie")["1"] = "x"  # type: ignore[index]


def test_scan_failure_raises_index_build_error() -> None:
    lib = FakeLibrary(scan_error=ConnectionError("server down"))
    idx = CatalogIndex(lib)
    with pytest.raises(IndexBuildError) as ei:
        idx.build()
    assert isinstance(ei.value.__cause__, ConnectionError)
    assert idx.is_built is False


def test_entries_without_kind_or_ids_are_skipped() -> None:
    lib = FakeLibrary(entries=[
        LibraryEntry(internal_id="x", kind="", ids={"tmdb": "1"}),
        LibraryEntry(internal_id="y", kind="movie", ids={"tvdb": "2"}),
        episode("z", imdb="tt3"),
    ])
    idx = CatalogIndex(lib).build()
    assert idx.stats()["indexed"] == 1
    assert idx.lookup("tt3", "imdb", "episode") == "z"
