"""Katalog idempotenter Recovery-Aktionen.

Jede Fabrik liefert eine parameterlose async-Funktion, die als
`ServiceDescriptor.recovery_action` deklariert wird. Die Aktionen fassen die
Remediation-Schritte der früheren Fix-Skripte (Wazuh-Zertifikate, Fleet-DB,
Arkime-PCAPs) je einmal zusammen.
"""

import asyncio
import time
from pathlib import Path
from typing import Mapping, Optional, Sequence

from loguru import logger

from ..models.errors import ContainerRuntimeError, RecoveryActionError
from ..models.service_descriptor import Action
from .certificate_store import CertificateDirectory, clear_directory
from .container_runtime import ContainerRuntime, DockerComposeRuntime


def restart_container(runtime: ContainerRuntime, name: str) -> Action:
    """Stoppt und startet den Container neu."""

    async def _restart() -> None:
        await runtime.restart(name)

    return _restart


def regenerate_certificates(
    runtime: ContainerRuntime,
    cert_dir: CertificateDirectory,
    generator: str,
    containers: Sequence[str] = (),
    restart: Sequence[str] = (),
    wait_timeout: float = 120.0,
    poll_interval: float = 2.0,
) -> Action:
    """
    Löscht und erzeugt die TLS-Zertifikate neu.

    Ablauf: laufende `containers` stoppen, Verzeichnis neu anlegen, Generator
    starten, auf die Pflichtdateien warten, Berechtigungen setzen, Generator
    stoppen, vorher laufende Container plus `restart` wieder starten. Schlägt
    die Erzeugung fehl, werden nur die vorher laufenden Container neu gestartet.

    Args:
        runtime: Container-Runtime
        cert_dir: Zertifikatsverzeichnis
        generator: Name des Zertifikats-Generators
        containers: Container, die die Zertifikate verwenden
        restart: Container, die danach in jedem Fall gestartet werden
        wait_timeout: Maximale Wartezeit auf die Zertifikate
        poll_interval: Prüfintervall beim Warten
    """

    async def _regenerate() -> None:
        was_running = [name for name in containers if await runtime.is_running(name)]
        for name in was_running:
            await runtime.stop(name)

        generated = False
        try:
            await asyncio.to_thread(cert_dir.recreate)
            await runtime.start(generator)

            deadline = time.monotonic() + wait_timeout
            while not cert_dir.has_certificates():
                if time.monotonic() >= deadline:
                    logs = await runtime.logs(generator, tail=20)
                    raise RecoveryActionError(
                        f"certificate generation failed, {cert_dir.path} incomplete:\n"
                        f"{logs.strip()}"
                    )
                await asyncio.sleep(poll_interval)

            await asyncio.to_thread(cert_dir.fix_permissions)
            logger.info("SSL certificates generated successfully")
            await runtime.stop(generator)
            generated = True
        finally:
            # Auch bei Fehler oder Abbruch: gestoppte Container wieder hochfahren
            targets = [*was_running, *restart] if generated else was_running
            if not generated and was_running:
                logger.warning(
                    f"Certificate regeneration aborted, restarting {', '.join(was_running)}"
                )
            for name in list(dict.fromkeys(targets)):
                await runtime.start(name)

    return _regenerate


def prepare_fleet_database(
    runtime: DockerComposeRuntime,
    server: str,
    image: str,
    network: str,
    env: Mapping[str, str],
    timeout: float = 300.0,
) -> Action:
    """
    Führt `fleet prepare db` aus und startet den Fleet-Server neu.

    Ein fehlgeschlagenes `prepare db` wird geloggt; Fleet initialisiert die
    Datenbank beim Start teilweise selbst, die anschliessende Probe entscheidet.
    """

    async def _prepare() -> None:
        await runtime.stop(server)
        try:
            output = await runtime.run_oneoff(
                image, ["fleet", "prepare", "db"], network=network, env=env, timeout=timeout
            )
            for line in output.strip().splitlines()[-5:]:
                logger.debug(f"Fleet DB: {line}")
            logger.info("Fleet database preparation completed")
        except ContainerRuntimeError as e:
            logger.warning(f"Fleet database preparation failed, relying on auto-init: {e}")
        await runtime.start(server)

    return _prepare


def run_command(command: Sequence[str], timeout: float = 60.0, cwd: Optional[Path] = None) -> Action:
    """Führt ein Kommando aus; Exit-Code != 0 ist ein RecoveryActionError."""

    async def _run() -> None:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=cwd,
        )
        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            process.kill()
            await process.wait()
            raise
        if process.returncode != 0:
            output = stdout.decode("utf-8", errors="replace").strip()
            raise RecoveryActionError(
                f"{' '.join(command)} exited {process.returncode}: {output[-500:]}"
            )

    return _run


def clear_stale_data(path: Path, pattern: str = "*") -> Action:
    """Leert ein Datenverzeichnis (z.B. alte Arkime-PCAPs)."""

    async def _clear() -> None:
        await asyncio.to_thread(clear_directory, path, pattern)

    return _clear


def chain(*actions: Action) -> Action:
    """Führt mehrere Aktionen nacheinander aus."""

    async def _chain() -> None:
        for action in actions:
            await action()

    return _chain
