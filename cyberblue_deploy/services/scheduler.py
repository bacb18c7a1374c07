"""Dependency Scheduler.

Bringt alle ServiceRuns von PENDING in einen Endzustand:

- In-Degree pro Service, Ready-Queue der startbereiten Services
- ein asyncio-Task pro laufendem Service (start -> probe -> recover)
- Worker melden ihr Ergebnis über eine einzige Queue; nur die
  Scheduler-Schleife verändert In-Degrees und Ready-Queue
- scheitert ein Service, werden alle transitiven Dependents ohne Start als
  FAILED(UpstreamFailure) markiert; unabhängige Zweige laufen weiter
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

from loguru import logger

from ..models.deployment_report import DeploymentReport
from ..models.service_run import FailureInfo, FailureReason, RunState, ServiceRun
from .health_probe import HealthProbe
from .recovery_executor import RecoveryExecutor
from .registry import Registry
from .status_reporter import StatusReporter


class DependencyScheduler:
    """Steuert einen Deployment-Lauf über die Registry."""

    def __init__(
        self,
        probe: HealthProbe,
        recovery: Optional[RecoveryExecutor] = None,
        reporter: Optional[StatusReporter] = None,
    ):
        """
        Initialisiert den Scheduler.

        Args:
            probe: Health Probe für alle Services
            recovery: Recovery Executor (Default: eigene Instanz)
            reporter: Status Reporter (Default: eigene Instanz)
        """
        self.probe = probe
        self.recovery = recovery or RecoveryExecutor()
        self.reporter = reporter or StatusReporter()
        self.runs: Dict[str, ServiceRun] = {}

    async def run(self, registry: Registry) -> DeploymentReport:
        """
        Führt einen vollständigen Deployment-Lauf aus.

        Args:
            registry: Validierte Registry

        Returns:
            DeploymentReport mit dem Endzustand jedes Services
        """
        started_at = datetime.now(timezone.utc)
        self.runs = {d.name: ServiceRun(d) for d in registry}
        in_degree = {d.name: len(d.dependencies) for d in registry}
        ready_queue: List[str] = [name for name, degree in in_degree.items() if degree == 0]
        results: asyncio.Queue = asyncio.Queue()
        in_flight: Dict[str, asyncio.Task] = {}

        logger.info(f"Deploying {len(registry)} services in {len(registry.plan().layers)} layers")

        try:
            while ready_queue or in_flight:
                # Gleich berechtigte Services starten in Registry-Reihenfolge
                ready_queue.sort(key=registry.position)
                for name in ready_queue:
                    run = self.runs[name]
                    if run.state != RunState.PENDING:
                        continue
                    in_flight[name] = asyncio.create_task(
                        self._drive(run, results), name=f"deploy:{name}"
                    )
                ready_queue.clear()

                if not in_flight:
                    break

                name = await results.get()
                await in_flight.pop(name)
                run = self.runs[name]

                if run.state == RunState.READY:
                    for dependent in registry.direct_dependents(name):
                        in_degree[dependent] -= 1
                        if in_degree[dependent] == 0:
                            ready_queue.append(dependent)
                else:
                    self._propagate_failure(registry, run)
        finally:
            for task in in_flight.values():
                task.cancel()
            if in_flight:
                await asyncio.gather(*in_flight.values(), return_exceptions=True)

        report = self.reporter.summarize(
            (self.runs[name] for name in registry.names), started_at=started_at
        )
        logger.info(
            f"Deployment {report.outcome.value}: {report.ready_count} ready, "
            f"{report.degraded_count} degraded, {report.failed_count} failed"
        )
        return report

    def _propagate_failure(self, registry: Registry, failed: ServiceRun) -> None:
        for dependent in registry.dependents_of(failed.name):
            run = self.runs[dependent]
            if run.state == RunState.PENDING:
                run.mark_upstream_failure(failed.name, failed.state)

    async def _drive(self, run: ServiceRun, results: asyncio.Queue) -> None:
        try:
            await self._bring_up(run)
        except Exception as e:
            logger.exception(f"{run.name}: unexpected error during deployment")
            if not run.state.is_terminal:
                run.finish_unhealthy(FailureInfo(FailureReason.START_FAILED, f"internal error: {e}"))
        finally:
            results.put_nowait(run.name)

    async def _start(self, run: ServiceRun) -> Optional[FailureInfo]:
        descriptor = run.descriptor
        try:
            await asyncio.wait_for(descriptor.start_action(), timeout=descriptor.start_timeout)
        except asyncio.TimeoutError:
            return FailureInfo(
                FailureReason.START_FAILED, f"start exceeded {descriptor.start_timeout}s"
            )
        except Exception as e:
            return FailureInfo(FailureReason.START_FAILED, str(e))
        return None

    async def _bring_up(self, run: ServiceRun) -> None:
        """start -> probe -> (recover -> probe)* bis READY oder Endzustand."""
        descriptor = run.descriptor

        run.transition(RunState.STARTING)
        failure = await self._start(run)

        while True:
            if failure is None:
                run.transition(RunState.PROBING)
                result = await self.probe.wait_until_healthy(descriptor.health_probe, run.name)
                if result.healthy:
                    run.mark_ready()
                    return
                failure = FailureInfo(result.reason, result.detail)

            run.last_error = failure

            if descriptor.recovery_action is None:
                run.finish_unhealthy(failure)
                return

            if not self.recovery.can_recover(run):
                run.finish_unhealthy(FailureInfo(
                    FailureReason.RECOVERY_EXHAUSTED,
                    f"{run.attempts} recovery attempt(s) used, last error: {failure}",
                ))
                return

            outcome = await self.recovery.recover(run)
            if not outcome.recovered:
                if outcome.reason == FailureReason.RECOVERY_TIMEOUT:
                    run.finish_unhealthy(FailureInfo(outcome.reason, outcome.detail))
                    return
                run.last_error = FailureInfo(outcome.reason, outcome.detail)
            failure = None
