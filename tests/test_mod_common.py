# TimelineManager test scripts
from __future__ import annotations

import pytest
import requests
import responses

from providers.sync._mod_common import build_session, label_jellyfin, request_with_retries, safe_json

URL = "http://jf.local:8096/System/Info"


@responses.activate
def test_retries_on_503_then_returns_success() -> None:
    responses.add(responses.GET, URL, status=503)
    responses.add(responses.GET, URL, json={"Version": "10.9"})

    r = request_with_retries(requests.Session(), "GET", URL, max_retries=3, backoff_base=0)

    assert r.status_code == 200
    assert len(responses.calls) == 2


@responses.activate
def test_last_retryable_response_is_returned() -> None:
    responses.add(responses.GET, URL, status=502)
    r = request_with_retries(requests.Session(), "GET", URL, max_retries=2, backoff_base=0)
    assert r.status_code == 502
    assert len(responses.calls) == 2


@responses.activate
def test_connection_error_raised_after_budget() -> None:
    responses.add(responses.GET, URL, body=requests.ConnectionError("refused"))
    with pytest.raises(requests.ConnectionError):
        request_with_retries(requests.Session(), "GET", URL, max_retries=2, backoff_base=0)
    assert len(responses.calls) == 2


@responses.activate
def test_session_reports_hits_to_context() -> None:
    responses.add(responses.POST, "http://jf.local:8096/Playlists/p1/Items", status=204)
    seen = []
    s = build_session("JELLYFIN", lambda event, payload: seen.append((event, payload)), label=label_jellyfin, report_hits=True)

    s.post("http://jf.local:8096/Playlists/p1/Items")

    assert seen[0][0] == "api:hit"
    assert seen[0][1]["feature"] == "playlists:add"
    assert seen[0][1]["status"] == 204


def test_jellyfin_labels() -> None:
    assert label_jellyfin("GET", "http://h/Users/u1/Items") == "library:items"
    assert label_jellyfin("DELETE", "http://h/Playlists/p/Items") == "playlists:remove"
    assert label_jellyfin("POST", "http://h/Playlists") == "playlists:create"
    assert label_jellyfin("GET", "http://h/Items/Counts") == "items/counts"


@responses.activate
def test_safe_json_tolerates_empty_and_text_bodies() -> None:
    responses.add(responses.GET, URL, body="")
    responses.add(responses.GET, URL, body="<html>")
    s = requests.Session()
    assert safe_json(s.get(URL)) == {}
    assert safe_json(s.get(URL)) == {}
