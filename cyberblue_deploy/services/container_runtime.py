"""Container-Runtime Collaborator.

Kapselt alle Docker/Compose-Aufrufe hinter start/stop/is_running/logs.
Jeder Aufruf ist durch ein Timeout begrenzt.
"""

import asyncio
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from ..models.errors import ContainerRuntimeError


class ContainerRuntime(ABC):
    """Schnittstelle zur Container-Orchestrierung."""

    @abstractmethod
    async def start(self, name: str) -> None:
        """Startet den Service (idempotent)."""

    @abstractmethod
    async def stop(self, name: str) -> None:
        """Stoppt den Service. Ein bereits gestoppter Service ist kein Fehler."""

    @abstractmethod
    async def is_running(self, name: str) -> bool:
        """True wenn der Container läuft."""

    @abstractmethod
    async def logs(self, name: str, tail: int = 50) -> str:
        """Die letzten `tail` Log-Zeilen des Containers."""

    async def restart(self, name: str) -> None:
        await self.stop(name)
        await self.start(name)


@dataclass(frozen=True)
class ContainerTarget:
    """Compose-Service und Container-Name eines Registry-Eintrags."""

    compose_service: str
    container_name: str


class DockerComposeRuntime(ContainerRuntime):
    """ContainerRuntime auf Basis von `docker compose` und `docker`."""

    def __init__(
        self,
        project_dir: Path,
        compose_file: str = "docker-compose.yml",
        targets: Optional[Mapping[str, ContainerTarget]] = None,
        use_sudo: bool = True,
        command_timeout: float = 180.0,
    ):
        """
        Initialisiert die Runtime.

        Args:
            project_dir: Verzeichnis mit der Compose-Datei
            compose_file: Name der Compose-Datei
            targets: Registry-Name -> Compose-Service/Container-Name
            use_sudo: Docker-Aufrufe mit sudo ausführen
            command_timeout: Timeout in Sekunden pro Aufruf
        """
        self.project_dir = Path(project_dir)
        self.compose_file = compose_file
        self.targets: Dict[str, ContainerTarget] = dict(targets or {})
        self.use_sudo = use_sudo
        self.command_timeout = command_timeout
        self._compose_cmd: Optional[List[str]] = None

    def target(self, name: str) -> ContainerTarget:
        return self.targets.get(name) or ContainerTarget(name, name)

    def _compose(self) -> List[str]:
        """`docker-compose` (v1) falls installiert, sonst das Plugin `docker compose`."""
        if self._compose_cmd is None:
            if shutil.which("docker-compose"):
                self._compose_cmd = ["docker-compose"]
            else:
                self._compose_cmd = ["docker", "compose"]
            self._compose_cmd += ["-f", self.compose_file]
        return list(self._compose_cmd)

    def _prefix(self, command: Sequence[str]) -> List[str]:
        return (["sudo"] if self.use_sudo else []) + list(command)

    async def run_command(
        self,
        command: Sequence[str],
        timeout: Optional[float] = None,
        check: bool = True,
    ) -> Tuple[int, str]:
        """
        Führt ein Kommando im Projektverzeichnis aus.

        Args:
            command: Kommando ohne sudo-Prefix
            timeout: Timeout in Sekunden (Default: command_timeout)
            check: Bei Exit-Code != 0 ContainerRuntimeError auslösen

        Returns:
            Tuple aus Exit-Code und kombinierter Ausgabe
        """
        full = self._prefix(command)
        limit = timeout or self.command_timeout
        logger.debug(f"exec: {' '.join(full)}")

        process = await asyncio.create_subprocess_exec(
            *full,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=self.project_dir,
        )
        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=limit)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ContainerRuntimeError(full, None, f"timed out after {limit}s")
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        output = stdout.decode("utf-8", errors="replace")
        if check and process.returncode != 0:
            raise ContainerRuntimeError(full, process.returncode, output)
        return process.returncode, output

    async def start(self, name: str) -> None:
        target = self.target(name)
        logger.info(f"Starting {name} (compose service {target.compose_service})")
        await self.run_command(self._compose() + ["up", "-d", target.compose_service])

    async def stop(self, name: str) -> None:
        target = self.target(name)
        returncode, output = await self.run_command(
            ["docker", "stop", target.container_name], check=False
        )
        if returncode != 0:
            logger.debug(f"docker stop {target.container_name}: {output.strip()}")

    async def restart(self, name: str) -> None:
        target = self.target(name)
        logger.info(f"Restarting {name}")
        await self.run_command(self._compose() + ["restart", target.compose_service])

    async def is_running(self, name: str) -> bool:
        target = self.target(name)
        _, output = await self.run_command(
            [
                "docker", "ps",
                "--filter", f"name=^/?{target.container_name}$",
                "--format", "{{.Names}}",
            ]
        )
        return target.container_name in output.split()

    async def logs(self, name: str, tail: int = 50) -> str:
        target = self.target(name)
        _, output = await self.run_command(
            ["docker", "logs", "--tail", str(tail), target.container_name], check=False
        )
        return output

    async def run_oneoff(
        self,
        image: str,
        args: Sequence[str],
        network: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Führt `docker run --rm` aus, z.B. für `fleet prepare db`."""
        command = ["docker", "run", "--rm"]
        if network:
            command += [f"--network={network}"]
        for key, value in (env or {}).items():
            command += ["-e", f"{key}={value}"]
        command += [image, *args]
        _, output = await self.run_command(command, timeout=timeout)
        return output
