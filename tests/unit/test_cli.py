"""Unit tests for the CLI."""

import pytest
from unittest.mock import Mock, patch
from typer.testing import CliRunner

from egress import __version__
from egress.cli import app, _check_root
from egress.commands.apply import ApplySummary
from egress.core.config import FirewallConfig
from egress.core.exceptions import MetadataError, VerificationError


runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the default config lookup at an empty temp location."""
    monkeypatch.setenv("EGRESS_FW_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.delenv("EGRESS_FW_META_URL", raising=False)


class TestCheckRoot:
    """Tests for the root privilege check."""

    def test_allows_dry_run(self):
        mock_ctx = Mock()
        mock_ctx.dry_run = True

        with patch("os.geteuid", return_value=1000):
            _check_root(mock_ctx)

    def test_rejects_non_root(self):
        import typer

        mock_ctx = Mock()
        mock_ctx.dry_run = False

        with patch("os.geteuid", return_value=1000):
            with pytest.raises(typer.Exit) as exc_info:
                _check_root(mock_ctx)
            assert exc_info.value.exit_code == 6


class TestVersion:
    """Tests for --version."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"egress-fw version {__version__}" in result.output


class TestApplyCommand:
    """Tests for 'egress-fw apply'."""

    @patch("egress.commands.apply.run_apply")
    def test_no_arguments_applies(self, mock_apply):
        mock_apply.return_value = ApplySummary(host_network="10.0.5.0/24")

        with patch("os.geteuid", return_value=0):
            result = runner.invoke(app, [])

        assert result.exit_code == 0
        mock_apply.assert_called_once()
        assert isinstance(mock_apply.call_args.args[1], FirewallConfig)

    @patch("egress.commands.apply.run_apply")
    def test_apply_dry_run(self, mock_apply):
        mock_apply.return_value = ApplySummary()

        with patch("os.geteuid", return_value=1000):
            result = runner.invoke(app, ["apply", "--dry-run"])

        assert result.exit_code == 0
        assert mock_apply.call_args.args[0].dry_run is True

    @patch("egress.commands.apply.run_apply")
    def test_non_root_exits_6(self, mock_apply):
        with patch("os.geteuid", return_value=1000):
            result = runner.invoke(app, ["apply"])

        assert result.exit_code == 6
        mock_apply.assert_not_called()

    @patch("egress.commands.apply.run_apply")
    def test_metadata_failure_exit_code(self, mock_apply):
        mock_apply.side_effect = MetadataError("Failed to fetch GitHub IP ranges")

        with patch("os.geteuid", return_value=0):
            result = runner.invoke(app, ["apply"])

        assert result.exit_code == 20

    @patch("egress.commands.apply.run_apply")
    def test_uses_config_file(self, mock_apply, tmp_path):
        mock_apply.return_value = ApplySummary()
        path = tmp_path / "config.yaml"
        path.write_text("ipset_name: custom-set\n")

        with patch("os.geteuid", return_value=0):
            result = runner.invoke(app, ["apply", "--config", str(path)])

        assert result.exit_code == 0
        assert mock_apply.call_args.args[1].ipset_name == "custom-set"

    @patch("egress.commands.apply.run_apply")
    def test_bad_config_file_exit_code(self, mock_apply, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("probe_timeout: -1\n")

        with patch("os.geteuid", return_value=0):
            result = runner.invoke(app, ["apply", "--config", str(path)])

        assert result.exit_code == 2
        mock_apply.assert_not_called()


class TestVerifyCommand:
    """Tests for 'egress-fw verify'."""

    @patch("egress.commands.apply.run_verify")
    def test_verify_passes(self, mock_verify):
        mock_verify.return_value = []
        result = runner.invoke(app, ["verify"])
        assert result.exit_code == 0

    @patch("egress.commands.apply.run_verify")
    def test_verify_failure_exit_code(self, mock_verify):
        mock_verify.side_effect = VerificationError(
            "Firewall verification failed - was able to reach https://example.com"
        )
        result = runner.invoke(app, ["verify"])
        assert result.exit_code == 22


class TestConfigCommands:
    """Tests for 'egress-fw config'."""

    def test_show(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "allowed-domains" in result.output

    def test_init_writes_file(self, tmp_path):
        path = tmp_path / "config.yaml"

        result = runner.invoke(app, ["config", "init", "--config", str(path)])

        assert result.exit_code == 0
        assert FirewallConfig.load(path) == FirewallConfig()

    def test_init_refuses_existing(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("ipset_name: keep\n")

        result = runner.invoke(app, ["config", "init", "--config", str(path)])

        assert result.exit_code == 2
        assert path.read_text() == "ipset_name: keep\n"

    def test_init_force(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("ipset_name: keep\n")

        result = runner.invoke(app, ["config", "init", "--config", str(path), "--force"])

        assert result.exit_code == 0
        assert "allowed-domains" in path.read_text()
