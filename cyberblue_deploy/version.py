"""Versionsinformationen; die Version wird nur in pyproject.toml gepflegt."""

import platform
from importlib.metadata import PackageNotFoundError, version

from .config.catalogue import SERVICES

PACKAGE_NAME = "cyberblue-deploy"
API_PREFIX = "/api/v1"

try:
    VERSION = version(PACKAGE_NAME)
except PackageNotFoundError:
    # Quellbaum ohne Installation
    VERSION = "0.0.0+unknown"


def get_version_info() -> dict:
    """Version des Controllers und Umfang des eingebauten Service-Katalogs."""
    return {
        "version": f"v{VERSION}",
        "package": PACKAGE_NAME,
        "api": API_PREFIX,
        "catalogue_services": len(SERVICES),
        "python": platform.python_version(),
    }
