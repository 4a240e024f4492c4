"""Tests for the linguamarket CLI — proves CLI dispatches correctly."""

import json
import logging
import os

import pytest

from linguamarket.cli import build_parser, main


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for key in list(os.environ):
        if key.startswith("LINGUAMARKET_"):
            monkeypatch.delenv(key)


class TestCLIParsing:
    def test_status_command(self) -> None:
        args = build_parser().parse_args(["status"])
        assert args.command == "status"
        assert args.config is None

    def test_quote_royalty_command(self) -> None:
        args = build_parser().parse_args([
            "quote-royalty", "--total", "500", "--fee-bp", "100", "--verifiers", "3",
        ])
        assert args.total == 500
        assert args.fee_bp == 100
        assert args.verifiers == 3

    def test_simulate_defaults(self) -> None:
        args = build_parser().parse_args(["simulate"])
        assert args.bounty == 1_000_000
        assert args.verifiers == 2
        assert args.event_log is None


class TestCLIExecution:
    def test_no_command_shows_help(self, capsys) -> None:
        assert main([]) == 0

    def test_status_runs(self, capsys) -> None:
        assert main(["status"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["platform_fee_rate_bp"] == 500

    def test_status_from_config_file(self, tmp_path, capsys) -> None:
        path = tmp_path / "settlement.json"
        path.write_text(json.dumps({"platform_fee_rate_bp": 800}))
        assert main(["--config", str(path), "status"]) == 0
        assert json.loads(capsys.readouterr().out)["platform_fee_rate_bp"] == 800

    def test_bad_config_file(self, tmp_path, capsys) -> None:
        path = tmp_path / "settlement.json"
        path.write_text(json.dumps({"nonsense": 1}))
        assert main(["--config", str(path), "status"]) == 1
        assert "Unknown configuration keys" in capsys.readouterr().err

    def test_quote_royalty(self, capsys) -> None:
        assert main(["quote-royalty", "--total", "10000000", "--verifiers", "2"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["platform_share"] == 500_000
        assert data["translator_share"] == 6_650_000
        assert data["per_verifier_share"] == 1_425_000

    def test_quote_royalty_bad_rate(self, capsys) -> None:
        assert main(["quote-royalty", "--total", "100", "--fee-bp", "20000"]) == 1
        assert "invalid_fee_rate" in capsys.readouterr().err

    def test_simulate_e2e(self, tmp_path, capsys) -> None:
        log_path = tmp_path / "events.jsonl"
        assert main(["simulate", "--event-log", str(log_path)]) == 0
        data = json.loads(capsys.readouterr().out)
        balances = data["balances"]
        assert balances["translator"] == 1_000_000 + 6_650_000
        assert balances["verifier-1"] == 1_425_000
        assert balances["platform"] == 500_000
        assert balances["engine"] == 0
        assert data["status"]["distributions"] == 1

        assert main(["verify-log", "--path", str(log_path)]) == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["events"] == data["status"]["audit_events"]
        assert summary["by_kind"]["share_claimed"] == 3

    def test_simulate_reports_failed_step(self, capsys) -> None:
        assert main(["simulate", "--verifiers", "11"]) == 1
        assert "create_request" in capsys.readouterr().err

    def test_verify_log_missing(self, tmp_path, capsys) -> None:
        assert main(["verify-log", "--path", str(tmp_path / "none.jsonl")]) == 1

    def test_verify_log_tampered(self, tmp_path, capsys) -> None:
        log_path = tmp_path / "events.jsonl"
        main(["simulate", "--event-log", str(log_path)])
        lines = log_path.read_text(encoding="utf-8").splitlines()
        record = json.loads(lines[0])
        record["actor_id"] = "mallory"
        lines[0] = json.dumps(record)
        log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        assert main(["verify-log", "--path", str(log_path)]) == 1
        assert "Integrity check failed" in capsys.readouterr().err


class TestCLILogging:
    def test_level_from_environment(self, monkeypatch, capsys) -> None:
        monkeypatch.setenv("LINGUAMARKET_LOG_LEVEL", "ERROR")
        assert main(["status"]) == 0
        assert logging.getLogger().level == logging.ERROR

    def test_level_from_config_file(self, tmp_path, capsys) -> None:
        path = tmp_path / "settlement.json"
        path.write_text(json.dumps({"log_level": "warning"}))
        assert main(["--config", str(path), "status"]) == 0
        assert logging.getLogger().level == logging.WARNING

    def test_flag_overrides_configured_level(self, monkeypatch, capsys) -> None:
        monkeypatch.setenv("LINGUAMARKET_LOG_LEVEL", "ERROR")
        assert main(["--log-level", "DEBUG", "status"]) == 0
        assert logging.getLogger().level == logging.DEBUG

    def test_configured_level_filters_component_logs(self, monkeypatch, capsys) -> None:
        monkeypatch.setenv("LINGUAMARKET_LOG_LEVEL", "INFO")
        assert main(["simulate"]) == 0
        assert "request_created" in capsys.readouterr().err

        monkeypatch.setenv("LINGUAMARKET_LOG_LEVEL", "ERROR")
        assert main(["simulate"]) == 0
        assert "request_created" not in capsys.readouterr().err

    def test_unknown_configured_level(self, monkeypatch, capsys) -> None:
        monkeypatch.setenv("LINGUAMARKET_LOG_LEVEL", "CHATTY")
        assert main(["status"]) == 1
        assert "log_level" in capsys.readouterr().err
