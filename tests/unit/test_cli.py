"""Unit tests for CLI interface."""

import os
from unittest.mock import AsyncMock, patch

import pytest

from olm_installer.cli import build_parser, main, run_command
from olm_installer.manager import DEFAULT_TIMEOUT, Manager
from olm_installer.utils.errors import VersionMismatchError
from tests.mocks import MockRemoteClient


class TestArgumentParser:
    """Test CLI argument parser."""

    def test_install_defaults(self, mock_client):
        manager = Manager(client=mock_client)
        args = build_parser(manager).parse_args(["install"])

        assert args.command == "install"
        assert args.olm_version is None
        assert args.verbose is False
        assert manager.timeout == DEFAULT_TIMEOUT

    def test_subcommand_version_and_timeout(self, mock_client):
        manager = Manager(client=mock_client)
        args = build_parser(manager).parse_args(
            ["uninstall", "--version", "0.28.0", "--timeout", "30s"]
        )

        assert args.command == "uninstall"
        assert args.olm_version == "0.28.0"
        assert manager.timeout == 30.0

    def test_global_flags(self, mock_client):
        manager = Manager(client=mock_client)
        args = build_parser(manager).parse_args(["-v", "--kubeconfig", "/tmp/kc", "status"])

        assert args.verbose is True
        assert args.kubeconfig == "/tmp/kc"
        assert args.command == "status"

    def test_command_required(self, mock_client):
        with pytest.raises(SystemExit):
            build_parser(Manager(client=mock_client)).parse_args([])

    def test_program_version(self, mock_client, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser(Manager(client=mock_client)).parse_args(["--version"])

        assert exc_info.value.code == 0
        assert "olm-installer" in capsys.readouterr().out


class TestRunCommand:
    """Test command dispatch."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("command", ["install", "uninstall", "status"])
    async def test_dispatch(self, command, mock_client):
        manager = Manager(client=mock_client)
        with patch.object(manager, command, AsyncMock()) as operation:
            await run_command(manager, command)

        operation.assert_awaited_once()


class TestMain:
    """Test the CLI entry point."""

    @pytest.fixture(autouse=True)
    def clean_env(self):
        with (
            patch.dict(os.environ, {}, clear=True),
            patch("olm_installer.config.load_dotenv"),
            patch("olm_installer.cli.setup_logging"),
        ):
            yield

    def test_success(self):
        with patch("olm_installer.cli.run_command", AsyncMock()) as run:
            main(["status", "--version", "0.28.0"])

        manager, command = run.call_args[0]
        assert command == "status"
        assert manager.version == "0.28.0"

    def test_env_version_used_without_flag(self):
        with (
            patch.dict(os.environ, {"OLM_VERSION": "0.27.0"}),
            patch("olm_installer.cli.run_command", AsyncMock()) as run,
        ):
            main(["uninstall"])

        assert run.call_args[0][0].version == "0.27.0"

    def test_installer_error_exits_1(self):
        error = VersionMismatchError("0.27.0", "0.28.0")
        with patch("olm_installer.cli.run_command", AsyncMock(side_effect=error)):
            with pytest.raises(SystemExit) as exc_info:
                main(["status", "--version", "0.28.0"])

        assert exc_info.value.code == 1

    def test_invalid_version_exits_1(self):
        with patch("olm_installer.cli.run_command", AsyncMock()) as run:
            with pytest.raises(SystemExit) as exc_info:
                main(["install", "--version", "latest"])

        assert exc_info.value.code == 1
        run.assert_not_called()

    def test_invalid_env_exits_1(self):
        with patch.dict(os.environ, {"OLM_TIMEOUT": "forever"}):
            with pytest.raises(SystemExit) as exc_info:
                main(["status"])

        assert exc_info.value.code == 1

