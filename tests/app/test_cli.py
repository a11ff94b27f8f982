from __future__ import annotations

import json
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import pytest

from profilekit.ui import cli as cli_module

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


def test_identity_command_prints_consensus(
    capsys: pytest.CaptureFixture[str],
    profile_document_payload: dict[str, Any],
    write_document: Callable[[str, object], Path],
) -> None:
    path = write_document("identity.json", profile_document_payload["identity"])

    cli_module.main(["identity", str(path)])

    output = json.loads(capsys.readouterr().out)
    assert output["master_identity"] == "loyalty-42"
    assert output["overall_confidence"] == pytest.approx(1.3 / 1.5)
    assert output["failed_strategies"] == []


def test_conflicts_command_prints_resolution(
    capsys: pytest.CaptureFixture[str],
    profile_document_payload: dict[str, Any],
    write_document: Callable[[str, object], Path],
) -> None:
    path = write_document("conflicts.json", profile_document_payload["conflicts"])

    cli_module.main(["conflicts", str(path)])

    output = json.loads(capsys.readouterr().out)
    assert output["resolved_profile"] == {
        "demographic": {"age": 34, "city": "NYC"},
        "transactional": {"income": 5000},
    }
    assert output["detected_conflicts"] == 2
    assert output["remaining_conflicts"] == []


def test_profile_command_writes_output_file(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    profile_document_payload: dict[str, Any],
    write_document: Callable[[str, object], Path],
) -> None:
    path = write_document("profile.json", profile_document_payload)
    output_path = tmp_path / "unified.json"

    cli_module.main(["profile", str(path), "--output", str(output_path)])

    assert capsys.readouterr().out == ""
    output = json.loads(output_path.read_text(encoding="utf-8"))
    assert output["customer_id"] == "web-visitor-1"
    assert output["linked_identities"] == ["loyalty-42", "pos-7"]
    assert output["metadata"]["profile_completeness"] == pytest.approx(0.4)
    assert [entry["attribute"] for entry in output["resolution_log"]] == ["age", "income"]


def test_conflicts_command_uses_environment_configuration(
    monkeypatch: pytest.MonkeyPatch,
    profile_document_payload: dict[str, Any],
    write_document: Callable[[str, object], Path],
) -> None:
    captured: dict[str, Any] = {}
    real_resolve = cli_module.resolve_conflicts

    def fake_resolve(profile: Any, **kwargs: Any) -> Any:  # noqa: ANN401
        captured.update(kwargs)
        return real_resolve(profile, **kwargs)

    monkeypatch.setattr(cli_module, "resolve_conflicts", fake_resolve)
    monkeypatch.setenv("PROFILEKIT_RECENCY_SCALE_DAYS", "7")
    monkeypatch.setenv("PROFILEKIT_SOURCE_RELIABILITY", "crm=0.8")
    path = write_document("conflicts.json", profile_document_payload["conflicts"])

    cli_module.main(["conflicts", str(path)])

    assert captured["config"].recency_scale == timedelta(days=7)
    assert captured["reliability"].score_for("crm") == 0.8
    assert captured["reliability"].score_for("bank") == 0.9


def test_invalid_document_exits_with_usage_error(
    profile_document_payload: dict[str, Any],
    write_document: Callable[[str, object], Path],
) -> None:
    payload = dict(profile_document_payload["identity"], sources={})
    path = write_document("identity.json", payload)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["identity", str(path)])

    assert excinfo.value.code == 2


def test_missing_document_exits_with_usage_error(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["conflicts", str(tmp_path / "missing.json")])

    assert excinfo.value.code == 2


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("PROFILEKIT_CONSENSUS_MIN_SOURCES", "1"),
        ("PROFILEKIT_RECENCY_SCALE_DAYS", "inf"),
        ("PROFILEKIT_DEFAULT_SOURCE_RELIABILITY", "nan"),
    ],
)
def test_invalid_configuration_exits_with_usage_error(
    monkeypatch: pytest.MonkeyPatch,
    profile_document_payload: dict[str, Any],
    write_document: Callable[[str, object], Path],
    name: str,
    value: str,
) -> None:
    monkeypatch.setenv(name, value)
    path = write_document("conflicts.json", profile_document_payload["conflicts"])

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["conflicts", str(path)])

    assert excinfo.value.code == 2


def test_resolution_failure_exits_with_error(
    monkeypatch: pytest.MonkeyPatch,
    profile_document_payload: dict[str, Any],
    write_document: Callable[[str, object], Path],
) -> None:
    def fake_resolve(*_: object, **__: object) -> None:
        raise RuntimeError("strategy pool exhausted")

    monkeypatch.setattr(cli_module, "resolve_identity", fake_resolve)
    path = write_document("identity.json", profile_document_payload["identity"])

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["identity", str(path)])

    assert excinfo.value.code == 1


def test_missing_command_is_rejected() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main([])

    assert excinfo.value.code == 2
