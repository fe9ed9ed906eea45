"""Tests for the CLI entry point."""

from unittest.mock import patch

import yaml

from lvs_pod_discovery.cli import main
from lvs_pod_discovery.exceptions import MalformedEventError, NoMembersError

VALID = {
    "lvs": {"config_file_path": "/etc/lvs.conf"},
    "kubernetes": {"label_selector": "app=connector"},
    "logging": {"format": "text"},
}


def _write(tmp_path, data):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump(data))
    return str(config_path)


class TestCLI:
    def test_validate_valid_config(self, tmp_path):
        assert main(["--validate", "-c", _write(tmp_path, VALID)]) == 0

    def test_validate_invalid_config(self, tmp_path):
        assert main(["--validate", "-c", _write(tmp_path, {"lvs": {}})]) == 1

    def test_validate_empty_section(self, tmp_path):
        data = dict(VALID, lvs=None)
        assert main(["--validate", "-c", _write(tmp_path, data)]) == 1

    def test_validate_bad_watch_timeout(self, tmp_path):
        data = dict(VALID, kubernetes={"label_selector": "app=connector", "watch_timeout_seconds": "abc"})
        assert main(["--validate", "-c", _write(tmp_path, data)]) == 1

    def test_missing_config_file(self):
        assert main(["-c", "/nonexistent/config.yaml", "--validate"]) == 1

    @patch("lvs_pod_discovery.cli.Daemon")
    def test_once(self, MockDaemon, tmp_path):
        assert main(["--once", "-c", _write(tmp_path, VALID)]) == 0
        MockDaemon.return_value.run_once.assert_called_once()
        MockDaemon.return_value.run.assert_not_called()

    @patch("lvs_pod_discovery.cli.Daemon")
    def test_kubeconfig_flag_overrides(self, MockDaemon, tmp_path):
        main(["--once", "--kubeconfig", "/tmp/kc", "-c", _write(tmp_path, VALID)])
        config = MockDaemon.call_args[0][0]
        assert config.kubernetes.kubeconfig == "/tmp/kc"

    @patch("lvs_pod_discovery.cli.Daemon")
    def test_startup_error_exit_code(self, MockDaemon, tmp_path):
        MockDaemon.return_value.run.side_effect = NoMembersError("none")
        assert main(["-c", _write(tmp_path, VALID)]) == 1

    @patch("lvs_pod_discovery.cli.Daemon")
    def test_malformed_event_exit_code(self, MockDaemon, tmp_path):
        MockDaemon.return_value.run.side_effect = MalformedEventError("bad")
        assert main(["-c", _write(tmp_path, VALID)]) == 2
