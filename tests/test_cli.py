"""Integration tests for the CLI."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from fleet_triage.cli import main

if TYPE_CHECKING:
    from pathlib import Path

    from pytest_httpx import HTTPXMock

REGRESSION_ARGS = [
    "score",
    "--severity", "CRITICAL",
    "--utilization", "90",
    "--route", "CRITICAL",
    "--repair-hours", "10",
    "--no-parts",
    "--hour", "8",
    "--day", "2",
]  # fmt: skip


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Point the default config path at an empty directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))


def test_score_text(capsys: pytest.CaptureFixture[str]) -> None:
    main(REGRESSION_ARGS)
    out = capsys.readouterr().out
    assert "HIGH (score 61)" in out
    assert "Parts not available: -10 points" in out
    assert out.splitlines()[-2].startswith("Action: Schedule within 4 hours")


def test_score_json(capsys: pytest.CaptureFixture[str]) -> None:
    main([*REGRESSION_ARGS, "--json"])
    result = json.loads(capsys.readouterr().out)
    assert result["score"] == 61
    assert result["priority"] == "HIGH"
    assert len(result["reasoning"]) == 6


def test_score_rejects_bad_hour() -> None:
    with pytest.raises(SystemExit):
        main(["score", "--severity", "LOW", "--hour", "24", "--day", "1"])


def test_rules_lists_defaults(capsys: pytest.CaptureFixture[str]) -> None:
    main(["rules", "--json"])
    rules = json.loads(capsys.readouterr().out)
    assert [r["id"] for r in rules] == [
        "critical-issue-alert",
        "repair-completed",
        "parts-needed-alert",
        "high-priority-update",
        "daily-summary",
    ]


def test_rules_table_output(capsys: pytest.CaptureFixture[str]) -> None:
    main(["rules"])
    out = capsys.readouterr().out
    assert "Critical Issue Alert" in out
    assert "email,sms,dashboard" in out


def test_rules_from_config_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_file = tmp_path / "custom.toml"
    config_file.write_text(
        "[[rules]]\nid = 'only'\nname = 'Only Rule'\ntrigger = 'parts_needed'\n"
        "template = '{fleetNumber}'\nchannels = ['dashboard']\npriority = 'LOW'\n"
    )
    main(["--config", str(config_file), "rules", "--json"])
    assert [r["id"] for r in json.loads(capsys.readouterr().out)] == ["only"]


def test_bad_config_exits(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_file = tmp_path / "broken.toml"
    config_file.write_text("[[rules\n")
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(config_file), "rules"])
    assert exc.value.code == 1
    assert "Invalid TOML" in capsys.readouterr().err


def test_dispatch_dry_run(capsys: pytest.CaptureFixture[str]) -> None:
    event = json.dumps({"fleetNumber": "412", "severity": "CRITICAL", "category": "Brakes"})
    main(["dispatch", "issue_created", event, "--dry-run"])
    payloads = json.loads(capsys.readouterr().out)
    assert [p["ruleId"] for p in payloads] == ["critical-issue-alert", "daily-summary"]
    assert payloads[0]["message"].startswith("CRITICAL ALERT: 412 - Brakes issue")


def test_dispatch_dry_run_no_match(capsys: pytest.CaptureFixture[str]) -> None:
    main(["dispatch", "critical_issue", "{}", "--dry-run"])
    assert capsys.readouterr().out.strip() == "No rules matched."


def test_dispatch_invalid_json_exits(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit):
        main(["dispatch", "issue_created", "{not json"])
    assert "Invalid event JSON" in capsys.readouterr().err


def test_dispatch_sends_and_reports(
    httpx_mock: HTTPXMock, capsys: pytest.CaptureFixture[str]
) -> None:
    httpx_mock.add_response(url="http://fleet.test/api/notifications/email", status_code=503)
    httpx_mock.add_response(url="http://fleet.test/api/notifications/dashboard")
    event = json.dumps({"fleetNumber": "305", "category": "Engine"})

    main(["--base-url", "http://fleet.test", "dispatch", "parts_needed", event])

    out = capsys.readouterr().out
    assert "❌ parts-needed-alert → email" in out
    assert "✅ parts-needed-alert → dashboard" in out
    assert "Sent: 1 ok, 1 failed" in out
