"""
Tests for the command-line interface.
"""

from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock, Mock, patch

import yaml
from typer.testing import CliRunner

from plugin_host.main import cli

runner = CliRunner()


class TestConfigCommands:

    def test_init_config_yaml(self, tmp_path: Path) -> None:
        output = tmp_path / "config.yaml"

        result = runner.invoke(cli, ["init-config", "--output", str(output)])

        assert result.exit_code == 0
        assert f"Default configuration saved to {output}" in result.output
        data = yaml.safe_load(output.read_text())
        assert data["plugins"]["plugin_directory"] == "plugins"
        assert "config_file_path" not in data

    def test_init_config_unknown_format(self, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["init-config", "-o", str(tmp_path / "c.ini"), "-f", "ini"])

        assert result.exit_code == 1
        assert "Error saving configuration" in result.output

    def test_validate_config(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"name": "Edge Host", "plugins": {"plugin_directory": "p"}}))

        result = runner.invoke(cli, ["validate-config", str(path)])

        assert result.exit_code == 0
        assert "Application: Edge Host" in result.output
        assert "Plugin directory: p" in result.output

    def test_validate_config_invalid(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"api": {"port": 0}}))

        result = runner.invoke(cli, ["validate-config", str(path)])

        assert result.exit_code == 1
        assert "Configuration validation failed" in result.output


class TestCheckPlugins:

    def test_valid_directory(self, plugin_dir: Path, write_plugin: Callable[..., str]) -> None:
        write_plugin("greeter", allowed_topics=["greetings"])
        write_plugin("auditor", dependencies=["greeter"], allowed_tables=["audit_log"])

        result = runner.invoke(cli, ["check-plugins", str(plugin_dir)])

        assert result.exit_code == 0
        assert "auditor v1.0.0" in result.output
        assert "All plugins passed validation" in result.output

    def test_reports_every_problem(self, plugin_dir: Path,
                                   write_plugin: Callable[..., str]) -> None:
        write_plugin("auditor", dependencies=["greeter"])
        write_plugin("loner", dependencies=["loner"])
        write_plugin("shouty", allowed_tables=["Bad-Table"])
        (plugin_dir / "empty.py").write_text("x = 1\n")

        result = runner.invoke(cli, ["check-plugins", str(plugin_dir)])

        assert result.exit_code == 1
        assert "auditor: dependency 'greeter' not found" in result.output
        assert "loner: depends on itself" in result.output
        assert "shouty.py" in result.output
        assert "empty.py" in result.output

    def test_overrides_from_config(self, tmp_path: Path, plugin_dir: Path,
                                   write_plugin: Callable[..., str]) -> None:
        write_plugin("auditor", allowed_tables=["audit_log"])
        config = tmp_path / "config.yaml"
        config.write_text(yaml.safe_dump({
            "logging": {"file_enabled": False},
            "plugins": {"resource_overrides": {"auditor": {"allowed_tables": ["bad--name"]}}},
        }))

        result = runner.invoke(cli, ["check-plugins", str(plugin_dir), "--config", str(config)])

        assert result.exit_code == 1
        assert "auditor.py" in result.output


class TestStartCommand:

    @patch('plugin_host.main.setup_logging')
    @patch('plugin_host.main.run_application', new_callable=AsyncMock)
    def test_options_override_config(self, mock_run: AsyncMock, mock_setup: Mock) -> None:
        result = runner.invoke(cli, [
            "start", "--host", "127.0.0.1", "--port", "9001",
            "--plugins", "/srv/plugins", "--debug",
        ])

        assert result.exit_code == 0
        config = mock_run.await_args.args[0]
        assert config.api.host == "127.0.0.1"
        assert config.api.port == 9001
        assert config.plugins.plugin_directory == "/srv/plugins"
        assert config.logging.level == "DEBUG"
        mock_setup.assert_called_once_with(config.logging)

    @patch('plugin_host.main.setup_logging')
    @patch('plugin_host.main.run_application', new_callable=AsyncMock)
    def test_start_failure_exits(self, mock_run: AsyncMock, mock_setup: Mock) -> None:
        mock_run.side_effect = OSError("address in use")

        result = runner.invoke(cli, ["start"])

        assert result.exit_code == 1
