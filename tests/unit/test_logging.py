"""Unit tests for structlog setup."""

from __future__ import annotations

import json

import pytest
import structlog

from kubeop.observability.logging import get_logger, setup_logging


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


class TestLogging:
    def test_json_output_carries_component_and_level(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("debug")
        get_logger("watch_session", scope="team-a").info("watch session active")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "watch session active"
        assert record["component"] == "watch_session"
        assert record["scope"] == "team-a"
        assert record["level"] == "info"
        assert "ts" in record

    def test_level_filters_lower_records(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("warning")
        log = get_logger("event_source")
        log.debug("hidden")
        log.warning("shown")

        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown" in err

    def test_console_renderer(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("info", json_output=False)
        get_logger("app").info("operator started")
        assert "operator started" in capsys.readouterr().err
