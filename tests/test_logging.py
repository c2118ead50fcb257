"""Tests for structured logging configuration."""

import json

from custody.logging import configure_logging, get_logger


class TestLogging:
    def test_json_output_goes_to_stderr(self, capsys) -> None:
        configure_logging(level="INFO", json_format=True, service="custody-test")
        get_logger("custody.test").info("disbursement_recorded", tenant=1, quantity=50)
        captured = capsys.readouterr()
        assert captured.out == ""
        record = json.loads(captured.err.strip().splitlines()[-1])
        assert record["event"] == "disbursement_recorded"
        assert record["tenant"] == 1
        assert record["service"] == "custody-test"
        assert record["level"] == "info"

    def test_level_filters(self, capsys) -> None:
        configure_logging(level="WARNING", json_format=True)
        get_logger().info("ignored")
        assert capsys.readouterr().err == ""
        configure_logging(level="INFO", json_format=True)
