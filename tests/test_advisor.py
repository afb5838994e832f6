# TimelineManager test scripts
from __future__ import annotations

import pytest
import requests

from tm_platform.timeline import (
    CollectionWriteError,
    IndexBuildError,
    InvalidStateError,
    RecoveryAdvisor,
    UniverseValidationError,
    classify_error,
)
from tm_platform.timeline._advisor import max_severity


def _http_error(code: int) -> requests.HTTPError:
    resp = requests.Response()
    resp.status_code = code
    return requests.HTTPError(f"HTTP {code}", response=resp)


@pytest.mark.parametrize(
    "exc, kind",
    [
        (UniverseValidationError("x", ["bad"]), "invalid_input"),
        (InvalidStateError("not built"), "invalid_state"),
        (CollectionWriteError("denied", status=403), "permission_denied"),
        (_http_error(401), "permission_denied"),
        (_http_error(404), "item_not_found"),
        (_http_error(504), "timeout"),
        (requests.Timeout("slow"), "timeout"),
        (TimeoutError(), "timeout"),
        (PermissionError(), "permission_denied"),
        (NotImplementedError(), "unsupported_operation"),
        (KeyError("x"), "item_not_found"),
        (ValueError("x"), "invalid_input"),
        (RuntimeError("boom"), "unknown"),
    ],
)
def test_classify_error(exc: BaseException, kind: str) -> None:
    assert classify_error(exc) == kind


def test_wrapped_cause_is_classified() -> None:
    try:
        try:
            raise requests.Timeout("read timed out")
        except requests.Timeout as e:
            raise IndexBuildError("library scan failed") from e
    except IndexBuildError as wrapped:
        assert classify_error(wrapped) == "timeout"


def test_assess_maps_severity_and_strategy() -> None:
    adv = RecoveryAdvisor()
    rep = adv.assess(PermissionError("no"), universe_key="mcu", universe_name="MCU")
    assert (rep.kind, rep.severity, rep.strategy) == ("permission_denied", "high", "no_recovery")
    assert "MCU" in rep.message
    assert rep.should_continue is True

    fatal = adv.assess(ConnectionError("down"), universe_name="catalog index", fatal=True)
    assert fatal.severity == "critical"
    assert fatal.should_continue is False


def test_assess_carries_validation_errors() -> None:
    rep = RecoveryAdvisor().assess(UniverseValidationError("x", ["item 1: bad", "item 2: worse"]))
    assert rep.errors == ["item 1: bad", "item 2: worse"]
    assert rep.strategy == "skip_invalid_items"


def test_summarize_counts_and_recommends() -> None:
    adv = RecoveryAdvisor()
    reports = [
        adv.assess(PermissionError(), universe_key="a"),
        adv.assess(PermissionError(), universe_key="b"),
        adv.assess(UniverseValidationError("c", ["x"]), universe_key="c"),
    ]
    out = adv.summarize(reports, processed=10)
    assert out.total_errors == 3
    assert out.by_kind == {"permission_denied": 2, "invalid_input": 1}
    assert out.overall_severity == "high"
    assert out.critical == 0 and out.recoverable == 3
    assert any(r.startswith("2 universe(s) failed due to permission errors") for r in out.recommendations)
    assert not any("High failure rate" in r for r in out.recommendations)


def test_summarize_flags_high_failure_rate() -> None:
    adv = RecoveryAdvisor()
    reports = [adv.assess(RuntimeError(), universe_key=k) for k in ("a", "b")]
    out = adv.summarize(reports, processed=3)
    assert "High failure rate detected; review configuration and library status" in out.recommendations


def test_summarize_empty() -> None:
    out = RecoveryAdvisor().summarize([])
    assert out.total_errors == 0
    assert out.overall_severity == "none"
    assert out.recommendations == []


def test_max_severity() -> None:
    assert max_severity(["low", "high", "medium"]) == "high"
    assert max_severity([]) == "none"
