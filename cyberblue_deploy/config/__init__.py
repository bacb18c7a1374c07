"""Configuration module for the CyberBlue Deployment Controller."""

from .settings import DeploymentSettings, settings
from .catalogue import (
    SERVICES,
    build_catalogue,
    build_runtime,
    container_targets,
    load_registry,
)

__all__ = [
    "DeploymentSettings",
    "settings",
    "SERVICES",
    "build_catalogue",
    "build_runtime",
    "container_targets",
    "load_registry",
]
