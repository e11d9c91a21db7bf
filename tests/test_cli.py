"""
Tests for the command-line interface.

Tests argument handling, rc file use and the mapping of errors to a
single line on stderr and a non-zero exit code.
"""

import sys
from pathlib import Path
from unittest.mock import patch
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pacttap import cli
from pacttap.common.errors import ChildCrash


FULL_ARGS = [
    "proxy",
    "--path", "pact.json",
    "--port", "3002",
    "--target", "http://localhost:3000",
    "--name", "web",
    "--provider-name", "orders",
    "--ignore-config",
]


class TestArguments:
    """Test suite for argument parsing."""

    def test_short_flags(self):
        """Test the short flag aliases."""
        args = cli.build_parser().parse_args(
            ["proxy", "-p", "pact.json", "-o", "3002", "-t", "http://x", "-n", "web", "-m", "orders", "-i"]
        )

        assert args.path == "pact.json"
        assert args.port == "3002"
        assert args.target == "http://x"
        assert args.name == "web"
        assert args.provider_name == "orders"
        assert args.ignore_config is True

    def test_no_command_prints_help(self, capsys):
        """Test that running without a command prints help and fails."""
        assert cli.main([]) == 1
        assert "proxy" in capsys.readouterr().out


class TestProxyCommand:
    """Test suite for the proxy command."""

    @patch('pacttap.cli.ProxySession')
    def test_runs_session_with_resolved_settings(self, mock_session):
        """Test that flags become settings handed to the session."""
        mock_session.return_value.run.return_value = 0

        assert cli.main(FULL_ARGS) == 0

        settings = mock_session.call_args[0][0]
        assert settings.output_path == "pact.json"
        assert settings.port == "3002"
        assert settings.consumer_name == "web"
        assert settings.provider_name == "orders"
        mock_session.return_value.run.assert_called_once_with()

    def test_missing_flag(self, capsys):
        """Test that a missing required flag is a one-line error and exit code 1."""
        assert cli.main(["proxy", "--ignore-config"]) == 1

        err = capsys.readouterr().err.strip().splitlines()
        assert err == ["Error: No --path was provided. This is a required flag."]

    @patch('pacttap.cli.ProxySession')
    def test_session_failure(self, mock_session, capsys):
        """Test that a session error is reported on one line with exit code 1."""
        mock_session.return_value.run.side_effect = ChildCrash("recording engine exited early (exit code 3)", 3)

        assert cli.main(FULL_ARGS) == 1

        err = capsys.readouterr().err.strip().splitlines()
        assert err == ["Error: recording engine exited early (exit code 3)"]

    @patch('pacttap.cli.ProxySession')
    def test_rc_file_values(self, mock_session, tmp_path, monkeypatch):
        """Test that values missing from the flags come from .pacttaprc.yaml."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".pacttaprc.yaml").write_text(
            "proxy:\n"
            "  path: from-rc.json\n"
            "  port: 4000\n"
            "  target: http://localhost:3000\n"
            "  name: web\n"
            "  provider-name: orders\n"
        )
        mock_session.return_value.run.return_value = 0

        assert cli.main(["proxy", "--port", "5000"]) == 0

        settings = mock_session.call_args[0][0]
        assert settings.output_path == "from-rc.json"
        assert settings.port == "5000"

    @patch('pacttap.cli.ProxySession')
    def test_ignore_config(self, mock_session, tmp_path, monkeypatch, capsys):
        """Test that --ignore-config skips the rc file."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".pacttaprc.yaml").write_text("proxy:\n  path: from-rc.json\n")

        assert cli.main(["proxy", "--ignore-config"]) == 1

        mock_session.assert_not_called()
        assert "No --path was provided" in capsys.readouterr().err
