"""API Routes für den Deployment Controller."""

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from ..models.errors import ConfigError, ContainerRuntimeError, DeploymentInProgressError

router = APIRouter(tags=["Deployment"])


class DeploymentRequest(BaseModel):
    """Optionaler Body für POST /deployments."""

    only: List[str] = Field(
        default_factory=list,
        description="Nur diese Services (plus transitive Abhängigkeiten) deployen",
    )


def _get_controller():
    """Lazy import um zirkuläre Imports zu vermeiden."""
    from ..main import controller

    if controller is None:
        raise HTTPException(status_code=503, detail="Deployment controller not initialized")
    return controller


# ============ Plan & Deployments ============

@router.get("/plan")
async def get_plan():
    """Dry-Run: die Startschichten der Registry."""
    controller = _get_controller()
    plan = controller.registry.plan()
    return {
        "layers": [list(layer) for layer in plan.layers],
        "order": plan.order,
        "total": len(controller.registry),
    }


@router.post("/deployments", status_code=202)
async def start_deployment(request: Optional[DeploymentRequest] = None):
    """Startet einen Deployment-Lauf im Hintergrund."""
    controller = _get_controller()
    only = request.only if request else []

    try:
        controller.deploy_in_background(only)
    except DeploymentInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "status": "started",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": controller.select(only).names,
    }


@router.get("/deployments/latest")
async def get_latest_deployment():
    """Der Report des letzten abgeschlossenen Laufs."""
    controller = _get_controller()

    if controller.latest_report is None:
        raise HTTPException(status_code=404, detail="No deployment has finished yet")

    return {
        "running": controller.is_running,
        "report": controller.latest_report.model_dump(mode="json"),
    }


@router.post("/verifications")
async def verify_stack(request: Optional[DeploymentRequest] = None):
    """Prüft den laufenden Stack einmal pro Service, ohne Start und Recovery."""
    controller = _get_controller()

    try:
        report = await controller.verify(request.only if request else [])
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return report.model_dump(mode="json")


# ============ Services ============

@router.get("/services")
async def list_services():
    """Liste aller registrierten Services mit ihrem Zustand im aktuellen Lauf."""
    controller = _get_controller()
    runs = controller.scheduler.runs

    return {
        "running": controller.is_running,
        "services": [
            {
                "name": d.name,
                "criticality": d.criticality.value,
                "dependencies": list(d.dependencies),
                "port": d.port,
                "state": runs[d.name].state.value if d.name in runs else None,
            }
            for d in controller.registry
        ],
    }


@router.get("/services/{name}")
async def get_service_status(name: str):
    """Live-Status eines Services inkl. Container-Zustand."""
    controller = _get_controller()

    try:
        return await controller.service_status(name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown service '{name}'")
    except ContainerRuntimeError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/services/{name}/logs")
async def get_service_logs(
    name: str,
    tail: int = Query(default=50, ge=1, le=5000, description="Anzahl Log-Zeilen"),
):
    """Die letzten Log-Zeilen des Containers."""
    controller = _get_controller()

    try:
        logs = await controller.service_logs(name, tail=tail)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown service '{name}'")
    except ContainerRuntimeError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return {"name": name, "tail": tail, "logs": logs}
