"""Tests for logging configuration."""

import json
import logging
import sys
from unittest.mock import MagicMock

from lvs_pod_discovery.config import LoggingConfig, LVSConfig
from lvs_pod_discovery.discovery.membership_gate import MembershipGate
from lvs_pod_discovery.discovery.models import EventType, Member
from lvs_pod_discovery.logging_config import (
    JSONFormatter,
    TextFormatter,
    configure_logging,
    record_context,
)
from lvs_pod_discovery.lvs.config_codec import parse
from lvs_pod_discovery.lvs.ramp import RampController, RampRegistry, RampState
from lvs_pod_discovery.lvs.transaction import ConfigStore

BASE = "virtual = 10.0.0.1:80\n     protocol = TCP\n     scheduler = wrr\n\n"


def _record(msg="test", **context):
    record = logging.LogRecord(
        name="lvs_pod_discovery.lvs.ramp", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=(), exc_info=None,
    )
    for key, val in context.items():
        setattr(record, key, val)
    return record


def _ramp_records(tmp_path, caplog, progress):
    path = tmp_path / "lvs.conf"
    path.write_text(BASE)
    store = ConfigStore(parse(BASE), path)
    client = MagicMock()
    client.get_member.side_effect = lambda name, namespace: Member(name=name, namespace=namespace, phase="Running")
    controller = RampController(
        store, client, MembershipGate(client), RampRegistry(),
        LVSConfig(config_file_path=str(path), destination_port=8080, sleep_time=0),
    )
    member = Member(name="connector-0", namespace="default", phase="Running")
    with caplog.at_level(logging.INFO, logger="lvs_pod_discovery.lvs.ramp"):
        controller.run(member, progress)
    return [r for r in caplog.records if r.name == "lvs_pod_discovery.lvs.ramp"]


class TestRecordContext:
    def test_enums_reduced_to_values(self):
        record = _record(ramp_state=RampState.DONE, event_type=EventType.DELETED)
        assert record_context(record) == {"ramp_state": "done", "event_type": "DELETED"}

    def test_zero_weight_is_kept(self):
        assert record_context(_record(address="connector-0", weight=0)) == {
            "address": "connector-0", "weight": 0,
        }

    def test_unrelated_extras_ignored(self):
        assert record_context(_record(request_id="abc")) == {}


class TestJSONFormatter:
    def test_formats_as_json(self):
        parsed = json.loads(JSONFormatter().format(_record(address="connector-0", weight=40)))
        assert parsed["message"] == "test"
        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "lvs_pod_discovery.lvs.ramp"
        assert parsed["address"] == "connector-0"
        assert parsed["weight"] == 40
        assert "timestamp" in parsed

    def test_ramp_records_trace_one_backend(self, tmp_path, caplog):
        formatter = JSONFormatter()
        lines = [json.loads(formatter.format(r)) for r in _ramp_records(tmp_path, caplog, 40)]

        assert {line["address"] for line in lines} == {"connector-0"}
        written = [line["weight"] for line in lines if line["message"].startswith("Set weight")]
        assert written == [60, 80, 100]
        states = [line["ramp_state"] for line in lines if "ramp_state" in line]
        assert states == ["ramping", "done"]
        assert lines[0]["weight"] == 40

    def test_includes_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record(address="connector-0")
            record.exc_info = sys.exc_info()
        parsed = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in parsed["exception"]


class TestTextFormatter:
    def test_appends_context(self):
        text = TextFormatter().format(_record("Set weight", address="connector-0", weight=60))
        assert text.endswith("Set weight address=connector-0 weight=60")

    def test_plain_record_unchanged(self):
        assert TextFormatter().format(_record("Daemon started")).endswith("Daemon started")

    def test_ramp_completion_line(self, tmp_path, caplog):
        formatter = TextFormatter()
        lines = [formatter.format(r) for r in _ramp_records(tmp_path, caplog, 80)]
        assert lines[-1].endswith("address=connector-0 ramp_state=done")


class TestConfigureLogging:
    def test_json_format(self):
        configure_logging(LoggingConfig(level="DEBUG", format="json"))
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert any(isinstance(h.formatter, JSONFormatter) for h in root.handlers)

    def test_text_format(self):
        configure_logging(LoggingConfig(level="WARNING", format="text"))
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert any(isinstance(h.formatter, TextFormatter) for h in root.handlers)

    def test_suppresses_noisy_loggers(self):
        configure_logging(LoggingConfig())
        assert logging.getLogger("kubernetes").level >= logging.WARNING
        assert logging.getLogger("urllib3").level >= logging.WARNING
