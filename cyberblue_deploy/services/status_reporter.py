"""Status Reporter: fasst die Endzustände aller ServiceRuns zusammen."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from ..models.deployment_report import DeploymentOutcome, DeploymentReport, ServiceOutcome
from ..models.service_run import RunState, ServiceRun

STATE_ICONS = {
    RunState.READY: "OK",
    RunState.DEGRADED: "WARN",
    RunState.FAILED: "FAIL",
}


class StatusReporter:
    """Erzeugt den DeploymentReport und seine Textdarstellung."""

    def summarize(
        self,
        runs: Iterable[ServiceRun],
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
    ) -> DeploymentReport:
        """
        Klassifiziert einen Deployment-Lauf.

        FAILED wenn ein Required-Service nicht READY ist, DEGRADED wenn nur
        Optional-Services nicht READY sind, sonst SUCCESS.

        Args:
            runs: ServiceRuns in Registry-Reihenfolge
            started_at: Beginn des Laufs
            finished_at: Ende des Laufs (Default: jetzt)

        Returns:
            DeploymentReport
        """
        runs = list(runs)
        finished_at = finished_at or datetime.now(timezone.utc)
        started_at = started_at or min(
            (r.history[0].at for r in runs), default=finished_at
        )

        services = {}
        for run in runs:
            services[run.name] = ServiceOutcome(
                name=run.name,
                criticality=run.descriptor.criticality,
                state=run.state,
                attempts=run.attempts,
                error_reason=(
                    run.last_error.reason.value
                    if run.last_error and run.state != RunState.READY else None
                ),
                error=(
                    run.last_error.detail
                    if run.last_error and run.state != RunState.READY else None
                ),
                started_at=run.started_at,
                ready_at=run.ready_at,
                finished_at=run.finished_at,
            )

        required_failed = [
            r.name for r in runs
            if r.descriptor.is_required and r.state != RunState.READY
        ]
        optional_unready = [
            r.name for r in runs
            if not r.descriptor.is_required and r.state != RunState.READY
        ]

        if required_failed:
            outcome = DeploymentOutcome.FAILED
        elif optional_unready:
            outcome = DeploymentOutcome.DEGRADED
        else:
            outcome = DeploymentOutcome.SUCCESS

        return DeploymentReport(
            started_at=started_at,
            finished_at=finished_at,
            outcome=outcome,
            ready_count=sum(1 for r in runs if r.state == RunState.READY),
            degraded_count=sum(1 for r in runs if r.state == RunState.DEGRADED),
            failed_count=sum(1 for r in runs if r.state == RunState.FAILED),
            required_failed=required_failed,
            services=services,
        )

    def render_text(self, report: DeploymentReport, title: str = "Deployment") -> str:
        """Menschenlesbarer Report, eine Zeile pro Service."""
        width = max((len(name) for name in report.services), default=10)
        lines = [
            "=" * 60,
            f"  {title} {report.outcome.value}"
            f" ({report.duration_seconds:.1f}s)",
            "=" * 60,
        ]
        for outcome in report.services.values():
            icon = STATE_ICONS.get(outcome.state, "....")
            line = (
                f"  [{icon:<4}] {outcome.name:<{width}}  {outcome.state.value:<9}"
                f" {outcome.criticality.value:<8}"
            )
            if outcome.attempts:
                line += f" recoveries={outcome.attempts}"
            if outcome.error_reason:
                line += f"  {outcome.error_reason}"
                if outcome.error:
                    line += f": {outcome.error}"
            lines.append(line)
        lines.append("-" * 60)
        lines.append(
            f"  Ready: {report.ready_count}/{report.total}  "
            f"Degraded: {report.degraded_count}  Failed: {report.failed_count}"
        )
        if report.required_failed:
            lines.append(f"  Required services failed: {', '.join(report.required_failed)}")
        return "\n".join(lines)

    def write_report(self, report: DeploymentReport, path: Path) -> Path:
        """
        Schreibt den Report als JSON und daneben als Text (.txt).

        Args:
            report: DeploymentReport
            path: Zielpfad der JSON-Datei

        Returns:
            Pfad der JSON-Datei
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        path.with_suffix(".txt").write_text(self.render_text(report) + "\n", encoding="utf-8")
        logger.info(f"Deployment report written to {path}")
        return path
