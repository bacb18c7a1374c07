"""Deployment Controller.

Einstiegspunkt für CLI und HTTP-API: baut Runtime und Registry aus den
Settings, führt Deployment-Läufe aus, hält den letzten Report und beantwortet
Status- und Log-Abfragen pro Service.
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from .config.catalogue import build_runtime, load_registry
from .config.settings import DeploymentSettings
from .models.deployment_report import DeploymentReport
from .models.errors import DeploymentInProgressError
from .models.service_run import FailureInfo, RunState, ServiceRun
from .services.container_runtime import ContainerRuntime
from .services.health_probe import HealthProbe
from .services.recovery_executor import RecoveryExecutor
from .services.registry import Registry
from .services.scheduler import DependencyScheduler
from .services.status_reporter import StatusReporter
from .shared.logging_config import deployment_run_log


class DeploymentController:
    """Koordiniert Deployment-Läufe über eine validierte Registry."""

    def __init__(
        self,
        settings: DeploymentSettings,
        runtime: Optional[ContainerRuntime] = None,
        registry: Optional[Registry] = None,
        probe: Optional[HealthProbe] = None,
    ):
        """
        Initialisiert den Controller.

        Args:
            settings: Unveränderliche Deployment-Konfiguration
            runtime: Container-Runtime (Default: Docker Compose aus den Settings)
            registry: Registry (Default: CyberBlue-Katalog)
            probe: Health Probe (Default: Probe über `runtime`)

        Raises:
            ConfigError: wenn der Katalog ungültig ist
        """
        self.settings = settings
        self.runtime = runtime or build_runtime(settings)
        self.registry = registry or load_registry(settings, self.runtime)
        self.reporter = StatusReporter()
        self.scheduler = DependencyScheduler(
            probe=probe or HealthProbe(runtime=self.runtime),
            recovery=RecoveryExecutor(),
            reporter=self.reporter,
        )
        self.latest_report: Optional[DeploymentReport] = None
        self.latest_run_log: Optional[Path] = None
        self.current_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self.current_task is not None and not self.current_task.done()

    def select(self, only: Optional[Iterable[str]] = None) -> Registry:
        """Gesamte Registry oder die genannten Services plus Abhängigkeiten."""
        names = list(only or [])
        return self.registry.subset(names) if names else self.registry

    async def deploy(self, only: Optional[Iterable[str]] = None) -> DeploymentReport:
        """
        Führt einen Deployment-Lauf aus und schreibt den Report.

        Args:
            only: Optional nur diese Services (plus transitive Abhängigkeiten)

        Returns:
            DeploymentReport
        """
        return await self._deploy(self.select(only))

    def deploy_in_background(self, only: Optional[Iterable[str]] = None) -> asyncio.Task:
        """
        Startet einen Lauf als Task; für die HTTP-API.

        Raises:
            DeploymentInProgressError: wenn bereits ein Lauf aktiv ist
            ConfigError: bei unbekannten Service-Namen in `only`
        """
        if self.is_running:
            raise DeploymentInProgressError("a deployment is already in progress")

        registry = self.select(only)
        self.current_task = asyncio.create_task(self._deploy(registry), name="deployment")
        self.current_task.add_done_callback(self._log_task_result)
        return self.current_task

    async def _deploy(self, registry: Registry) -> DeploymentReport:
        run_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        with deployment_run_log(self.settings.log_dir, run_id) as log_path:
            report = await self.scheduler.run(registry)
        self.latest_run_log = log_path
        self.latest_report = report

        if self.settings.report_path is not None:
            path = self.settings.resolve(self.settings.report_path)
            await asyncio.to_thread(self.reporter.write_report, report, path)
        return report

    async def verify(self, only: Optional[Iterable[str]] = None) -> DeploymentReport:
        """
        Prüft einen bereits laufenden Stack, ohne etwas zu starten oder zu reparieren.

        Jede Health Probe wird genau einmal ausgeführt (z.B. nach einem Reboot).
        Das Ergebnis wird wie ein Deployment-Lauf klassifiziert, ersetzt aber
        nicht den letzten Deployment-Report.

        Args:
            only: Optional nur diese Services (plus transitive Abhängigkeiten)

        Returns:
            DeploymentReport
        """
        registry = self.select(only)
        runs = [ServiceRun(descriptor) for descriptor in registry]
        started_at = datetime.now(timezone.utc)

        await asyncio.gather(*(self._verify_service(run) for run in runs))

        report = self.reporter.summarize(runs, started_at=started_at)
        logger.info(
            f"Verification {report.outcome.value}: "
            f"{report.ready_count}/{report.total} services healthy"
        )
        return report

    async def _verify_service(self, run: ServiceRun) -> None:
        run.transition(RunState.PROBING)
        result = await self.scheduler.probe.check(run.descriptor.health_probe)
        if result.healthy:
            run.mark_ready()
        else:
            run.finish_unhealthy(FailureInfo(result.reason, result.detail))

    @staticmethod
    def _log_task_result(task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("Deployment task cancelled")
        elif task.exception() is not None:
            logger.opt(exception=task.exception()).error("Deployment task crashed")

    async def service_status(self, name: str) -> dict:
        """
        Live-Status eines Services: Zustand im aktuellen/letzten Lauf und ob
        der Container läuft.

        Raises:
            KeyError: wenn der Service nicht registriert ist
        """
        descriptor = self.registry.get(name)
        run = self.scheduler.runs.get(name)
        running = await self.runtime.is_running(name)

        return {
            "name": name,
            "description": descriptor.description,
            "criticality": descriptor.criticality.value,
            "dependencies": list(descriptor.dependencies),
            "port": descriptor.port,
            "probe": descriptor.health_probe.describe(),
            "state": run.state.value if run else None,
            "attempts": run.attempts if run else 0,
            "last_error": str(run.last_error) if run and run.last_error else None,
            "is_running": running,
        }

    async def service_logs(self, name: str, tail: int = 50) -> str:
        """Die letzten `tail` Log-Zeilen eines registrierten Services."""
        self.registry.get(name)
        return await self.runtime.logs(name, tail=tail)


async def run_deployment(
    settings: DeploymentSettings,
    runtime: Optional[ContainerRuntime] = None,
    only: Optional[Iterable[str]] = None,
) -> DeploymentReport:
    """
    Führt einen vollständigen Deployment-Lauf mit den gegebenen Settings aus.

    Args:
        settings: Deployment-Konfiguration
        runtime: Optionale Container-Runtime
        only: Optional nur diese Services (plus transitive Abhängigkeiten)

    Returns:
        DeploymentReport
    """
    controller = DeploymentController(settings, runtime=runtime)
    return await controller.deploy(only)
