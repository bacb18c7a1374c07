"""Deployment API - HTTP-Zugang zum CyberBlue Deployment Controller."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from loguru import logger

from .api.routes import router
from .config.settings import settings
from .controller import DeploymentController
from .shared.logging_config import log_shutdown_info, log_startup_info, setup_logging
from .version import API_PREFIX, VERSION, get_version_info

# Global controller
controller: DeploymentController | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle management für die Deployment API."""
    global controller

    setup_logging("cyberblue-api", settings.log_level, settings.log_dir)
    controller = DeploymentController(settings)
    log_startup_info(
        "cyberblue-api", VERSION, len(controller.registry), f"port {settings.api_port}"
    )
    logger.info(f"Compose project: {settings.project_dir / settings.compose_file}")

    yield

    # Shutdown: laufendes Deployment abbrechen
    if controller and controller.is_running:
        controller.current_task.cancel()
        try:
            await controller.current_task
        except asyncio.CancelledError:
            logger.warning("Running deployment cancelled on shutdown")

    log_shutdown_info("cyberblue-api")


app = FastAPI(
    title="CyberBlue Deployment Controller",
    description="Startet den CyberBlue SOC-Stack in Abhängigkeitsreihenfolge mit Health-Probes und Recovery.",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.include_router(router, prefix=API_PREFIX)


@app.get("/health")
async def health_check():
    """Health-Check für den Controller selbst."""
    report = controller.latest_report if controller else None
    return {
        "service": "cyberblue-deploy",
        "status": "healthy",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services_registered": len(controller.registry) if controller else 0,
        "deployment_running": controller.is_running if controller else False,
        "last_outcome": report.outcome.value if report else None,
    }


@app.get("/version")
async def get_version():
    """Version und Release-Datum."""
    return get_version_info()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cyberblue_deploy.main:app",
        host="0.0.0.0",
        port=settings.api_port,
        reload=False
    )
