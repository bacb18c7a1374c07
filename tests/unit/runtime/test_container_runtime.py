"""
Unit tests for DockerComposeRuntime.

The subprocess layer is patched; tests check the issued docker commands and
the handling of exit codes and timeouts.
"""
import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cyberblue_deploy.models.errors import ContainerRuntimeError
from cyberblue_deploy.services.container_runtime import ContainerTarget, DockerComposeRuntime

MODULE = "cyberblue_deploy.services.container_runtime"


def _process(output: bytes = b"", returncode: int = 0) -> MagicMock:
    process = MagicMock()
    process.communicate = AsyncMock(return_value=(output, None))
    process.returncode = returncode
    process.wait = AsyncMock(return_value=returncode)
    return process


def _runtime(**kwargs) -> DockerComposeRuntime:
    kwargs.setdefault("targets", {
        "wazuh-indexer": ContainerTarget("wazuh.indexer", "wazuh-indexer"),
        "wazuh-cert-generator": ContainerTarget("generator", "wazuh-cert-genrator"),
    })
    return DockerComposeRuntime(project_dir=Path("/opt/cyberblue"), **kwargs)


class TestComposeCommands:
    """Unit tests for the issued commands."""

    @pytest.mark.unit
    async def test_start_uses_compose_service(self):
        process = _process()
        with patch(f"{MODULE}.shutil.which", return_value=None), \
                patch(f"{MODULE}.asyncio.create_subprocess_exec",
                      AsyncMock(return_value=process)) as exec_mock:
            await _runtime().start("wazuh-indexer")

        args, kwargs = exec_mock.await_args
        assert args == (
            "sudo", "docker", "compose", "-f", "docker-compose.yml", "up", "-d", "wazuh.indexer"
        )
        assert kwargs["cwd"] == Path("/opt/cyberblue")

    @pytest.mark.unit
    async def test_legacy_compose_binary_preferred(self):
        with patch(f"{MODULE}.shutil.which", return_value="/usr/local/bin/docker-compose"), \
                patch(f"{MODULE}.asyncio.create_subprocess_exec",
                      AsyncMock(return_value=_process())) as exec_mock:
            await _runtime(use_sudo=False).restart("wazuh-cert-generator")

        args, _ = exec_mock.await_args
        assert args == ("docker-compose", "-f", "docker-compose.yml", "restart", "generator")

    @pytest.mark.unit
    async def test_unknown_name_used_verbatim(self):
        with patch(f"{MODULE}.shutil.which", return_value=None), \
                patch(f"{MODULE}.asyncio.create_subprocess_exec",
                      AsyncMock(return_value=_process())) as exec_mock:
            await _runtime(use_sudo=False).start("cyberchef")

        args, _ = exec_mock.await_args
        assert args[-1] == "cyberchef"

    @pytest.mark.unit
    async def test_stop_uses_container_name_and_tolerates_failure(self):
        process = _process(b"Error: No such container", returncode=1)
        with patch(f"{MODULE}.asyncio.create_subprocess_exec",
                   AsyncMock(return_value=process)) as exec_mock:
            await _runtime(use_sudo=False).stop("wazuh-cert-generator")

        args, _ = exec_mock.await_args
        assert args == ("docker", "stop", "wazuh-cert-genrator")

    @pytest.mark.unit
    async def test_logs(self):
        with patch(f"{MODULE}.asyncio.create_subprocess_exec",
                   AsyncMock(return_value=_process(b"started\nready\n"))) as exec_mock:
            output = await _runtime(use_sudo=False).logs("wazuh-indexer", tail=2)

        args, _ = exec_mock.await_args
        assert args == ("docker", "logs", "--tail", "2", "wazuh-indexer")
        assert output == "started\nready\n"

    @pytest.mark.unit
    async def test_run_oneoff(self):
        with patch(f"{MODULE}.asyncio.create_subprocess_exec",
                   AsyncMock(return_value=_process(b"ok"))) as exec_mock:
            await _runtime(use_sudo=False).run_oneoff(
                "fleetdm/fleet:latest",
                ["fleet", "prepare", "db"],
                network="cyber-blue",
                env={"FLEET_MYSQL_ADDRESS": "fleet-mysql:3306"},
            )

        args, _ = exec_mock.await_args
        assert args == (
            "docker", "run", "--rm", "--network=cyber-blue",
            "-e", "FLEET_MYSQL_ADDRESS=fleet-mysql:3306",
            "fleetdm/fleet:latest", "fleet", "prepare", "db",
        )


class TestRunningState:
    """Unit tests for is_running."""

    @pytest.mark.unit
    async def test_running(self):
        with patch(f"{MODULE}.asyncio.create_subprocess_exec",
                   AsyncMock(return_value=_process(b"wazuh-indexer\n"))):
            assert await _runtime().is_running("wazuh-indexer")

    @pytest.mark.unit
    async def test_not_running(self):
        with patch(f"{MODULE}.asyncio.create_subprocess_exec",
                   AsyncMock(return_value=_process(b""))) as exec_mock:
            assert not await _runtime().is_running("wazuh-cert-generator")

        args, _ = exec_mock.await_args
        assert "name=^/?wazuh-cert-genrator$" in args


class TestCommandFailures:
    """Unit tests for exit codes and timeouts."""

    @pytest.mark.unit
    async def test_non_zero_exit_raises(self):
        process = _process(b"pull access denied\n", returncode=1)
        with patch(f"{MODULE}.shutil.which", return_value=None), \
                patch(f"{MODULE}.asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(ContainerRuntimeError) as exc_info:
                await _runtime().start("wazuh-indexer")

        assert exc_info.value.returncode == 1
        assert "pull access denied" in str(exc_info.value)

    @pytest.mark.unit
    async def test_timeout_kills_process(self):
        async def hang():
            await asyncio.sleep(10)

        process = _process()
        process.communicate = hang
        process.kill = MagicMock()
        with patch(f"{MODULE}.asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(ContainerRuntimeError) as exc_info:
                await _runtime(command_timeout=0.05).logs("wazuh-indexer")

        assert exc_info.value.returncode is None
        process.kill.assert_called_once()
        process.wait.assert_awaited_once()
