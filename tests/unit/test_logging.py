from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from gatedoctor.config.settings import LOG_FORMAT_JSON, LOG_FORMAT_TEXT, LoggingSettings
from gatedoctor.infrastructure.logging import (
    attach_invocation_context,
    configure_logging,
    get_logger,
    log_check_event,
    log_event,
    log_probe_event,
)


def _settings(fmt: str, level: int = logging.INFO, file_path: str | None = None) -> LoggingSettings:
    return LoggingSettings(
        level=level,
        format=fmt,
        file_path=file_path,
        max_bytes=1024,
        backup_count=1,
    )


def test_text_logging_renders_structured_fields(capfd: pytest.CaptureFixture[str]) -> None:
    configure_logging(_settings(LOG_FORMAT_TEXT))
    capfd.readouterr()

    logger = get_logger("gatedoctor.test.text")
    logger.info("structured event", component="probe", status="ok")

    output = capfd.readouterr().err.strip()
    assert "structured event" in output
    assert "component=probe" in output
    assert "status=ok" in output


def test_json_logging_emits_valid_payload(capfd: pytest.CaptureFixture[str]) -> None:
    configure_logging(_settings(LOG_FORMAT_JSON))
    capfd.readouterr()

    logger = attach_invocation_context(
        get_logger("gatedoctor.test.json"), invocation_id="inv-1", command="doctor"
    )
    log_event(logger, "doctor.signals", exit_code=0, skipped=None)

    payload = json.loads(capfd.readouterr().err.strip().splitlines()[-1])
    assert payload["event"] == "doctor.signals"
    assert payload["event_name"] == "doctor.signals"
    assert payload["invocation_id"] == "inv-1"
    assert payload["command"] == "doctor"
    assert payload["exit_code"] == 0
    assert "skipped" not in payload
    assert payload["level"] == "info"


def test_debug_helpers_are_filtered_below_level(capfd: pytest.CaptureFixture[str]) -> None:
    configure_logging(_settings(LOG_FORMAT_JSON, level=logging.INFO))
    capfd.readouterr()

    logger = get_logger("gatedoctor.test.filtered")
    log_probe_event(logger, "settled", url="https://gw.test/health", status=200)
    log_check_event(logger, "check.classified", check="connectivity")

    assert capfd.readouterr().err.strip() == ""


def test_debug_helpers_prefix_event_names(capfd: pytest.CaptureFixture[str]) -> None:
    configure_logging(_settings(LOG_FORMAT_JSON, level=logging.DEBUG))
    capfd.readouterr()

    logger = get_logger("gatedoctor.test.debug")
    log_probe_event(logger, "settled", url="https://gw.test/health", method="GET")
    log_check_event(logger, "check.classified", check="pricing")

    lines = [json.loads(line) for line in capfd.readouterr().err.strip().splitlines()]
    assert [line["event"] for line in lines] == ["probe.settled", "doctor.check.classified"]
    assert lines[0]["url"] == "https://gw.test/health"
    assert lines[1]["check"] == "pricing"


def test_invocation_id_is_generated_when_missing(capfd: pytest.CaptureFixture[str]) -> None:
    configure_logging(_settings(LOG_FORMAT_JSON))
    capfd.readouterr()

    logger = attach_invocation_context(get_logger("gatedoctor.test.ids"))
    logger.info("hello")

    payload = json.loads(capfd.readouterr().err.strip())
    assert len(payload["invocation_id"]) == 32


def test_file_handler_receives_records(tmp_path: Path) -> None:
    log_file = tmp_path / "gatedoctor.log"
    configure_logging(_settings(LOG_FORMAT_TEXT, file_path=str(log_file)))

    get_logger("gatedoctor.test.file").warning("written to file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "written to file" in log_file.read_text(encoding="utf-8")


def test_reconfiguring_replaces_root_handlers(tmp_path: Path) -> None:
    configure_logging(_settings(LOG_FORMAT_TEXT, file_path=str(tmp_path / "first.log")))
    assert len(logging.getLogger().handlers) == 2

    configure_logging(_settings(LOG_FORMAT_JSON, level=logging.DEBUG))

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.level == logging.DEBUG
