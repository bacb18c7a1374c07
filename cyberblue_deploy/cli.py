"""
CyberBlue Deployment CLI

Usage:
    cyberblue-deploy deploy                       # Gesamten Stack deployen
    cyberblue-deploy deploy --only arkime,evebox  # Nur diese Services plus Abhängigkeiten
    cyberblue-deploy plan                         # Dry-Run: Startschichten anzeigen
    cyberblue-deploy status                       # Laufende Container
    cyberblue-deploy verify                       # Health Probes ohne Start/Recovery
    cyberblue-deploy logs wazuh-indexer --tail 100

Exit-Codes: 0 Success, 1 Failed, 2 Degraded, 3 Konfigurationsfehler.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .config.settings import DeploymentSettings
from .controller import DeploymentController
from .models.deployment_report import DeploymentOutcome
from .models.errors import ConfigError, ContainerRuntimeError
from .shared.logging_config import log_shutdown_info, log_startup_info, setup_logging
from .version import VERSION

EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_DEGRADED = 2
EXIT_CONFIG_ERROR = 3

OUTCOME_EXIT_CODES = {
    DeploymentOutcome.SUCCESS: EXIT_SUCCESS,
    DeploymentOutcome.FAILED: EXIT_FAILED,
    DeploymentOutcome.DEGRADED: EXIT_DEGRADED,
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="cyberblue-deploy",
        description="Deploy the CyberBlue SOC stack in dependency order with health probes",
    )
    parser.add_argument(
        "--project-dir",
        type=Path,
        help="Directory containing docker-compose.yml (default: CYBERBLUE_PROJECT_DIR or .)",
    )
    parser.add_argument("--log-level", type=str, help="Log level (default: from settings)")
    parser.add_argument("--log-dir", type=str, help="Log directory (default: from settings)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser("deploy", help="Start all services and wait until ready")
    deploy.add_argument(
        "--only",
        type=str,
        default="",
        help="Comma-separated list of services (their dependencies are included)",
    )
    deploy.add_argument("--report", type=Path, help="Path of the JSON report")

    subparsers.add_parser("plan", help="Print the start layers without deploying")
    subparsers.add_parser("status", help="Show which containers are running")

    verify = subparsers.add_parser(
        "verify", help="Run every health probe once without starting or recovering anything"
    )
    verify.add_argument(
        "--only", type=str, default="", help="Comma-separated list of services to verify"
    )

    logs = subparsers.add_parser("logs", help="Show container logs of a service")
    logs.add_argument("name", type=str, help="Service name")
    logs.add_argument("--tail", type=int, default=50, help="Number of lines (default: 50)")

    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> DeploymentSettings:
    overrides = {}
    if args.project_dir is not None:
        overrides["project_dir"] = args.project_dir
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    if args.log_dir:
        overrides["log_dir"] = args.log_dir
    if getattr(args, "report", None) is not None:
        overrides["report_path"] = args.report
    return DeploymentSettings(**overrides)


async def _deploy(controller: DeploymentController, only: List[str]) -> int:
    report = await controller.deploy(only)
    print(controller.reporter.render_text(report))
    return OUTCOME_EXIT_CODES[report.outcome]


async def _verify(controller: DeploymentController, only: List[str]) -> int:
    report = await controller.verify(only)
    print(controller.reporter.render_text(report, title="Verification"))
    return OUTCOME_EXIT_CODES[report.outcome]


async def _status(controller: DeploymentController) -> int:
    width = max(len(name) for name in controller.registry.names)
    for descriptor in controller.registry:
        running = await controller.runtime.is_running(descriptor.name)
        port = f":{descriptor.port}" if descriptor.port else ""
        print(
            f"  {'running' if running else 'stopped':<8} {descriptor.name:<{width}}"
            f"  {descriptor.criticality.value:<8} {port}"
        )
    return EXIT_SUCCESS


async def _logs(controller: DeploymentController, name: str, tail: int) -> int:
    print(await controller.service_logs(name, tail=tail), end="")
    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    settings = build_settings(args)
    setup_logging("cyberblue-deploy", settings.log_level, settings.log_dir)

    try:
        controller = DeploymentController(settings)
    except ConfigError as e:
        logger.error(f"Invalid service registry: {e}")
        return EXIT_CONFIG_ERROR

    if args.command == "plan":
        print(f"Deployment plan ({len(controller.registry)} services):")
        print(controller.registry.plan().describe())
        return EXIT_SUCCESS

    try:
        only = [s.strip() for s in getattr(args, "only", "").split(",") if s.strip()]
        if args.command == "deploy":
            log_startup_info(
                "cyberblue-deploy",
                VERSION,
                len(controller.select(only)),
                str(settings.project_dir / settings.compose_file),
            )
            code = asyncio.run(_deploy(controller, only))
            log_shutdown_info("cyberblue-deploy")
            return code
        if args.command == "verify":
            return asyncio.run(_verify(controller, only))
        if args.command == "status":
            return asyncio.run(_status(controller))
        return asyncio.run(_logs(controller, args.name, args.tail))
    except ConfigError as e:
        logger.error(f"Invalid service selection: {e}")
        return EXIT_CONFIG_ERROR
    except KeyError as e:
        logger.error(f"Unknown service {e}")
        return EXIT_CONFIG_ERROR
    except ContainerRuntimeError as e:
        logger.error(f"Container runtime error: {e}")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
