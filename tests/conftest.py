"""
Global pytest fixtures for the CyberBlue deployment controller test suite.
"""
import pytest

from cyberblue_deploy.config.settings import DeploymentSettings
from cyberblue_deploy.services.health_probe import HealthProbe
from cyberblue_deploy.services.scheduler import DependencyScheduler

from fixtures import FakeRuntime


# ========== Fixtures ==========

@pytest.fixture
def fake_runtime() -> FakeRuntime:
    """Simulated container runtime with all services healthy."""
    return FakeRuntime()


@pytest.fixture
def probe(fake_runtime: FakeRuntime) -> HealthProbe:
    """Health probe bound to the simulated runtime."""
    return HealthProbe(runtime=fake_runtime)


@pytest.fixture
def scheduler(probe: HealthProbe) -> DependencyScheduler:
    return DependencyScheduler(probe)


@pytest.fixture
def settings(tmp_path) -> DeploymentSettings:
    """Settings rooted in a temporary project directory without report file."""
    return DeploymentSettings(project_dir=tmp_path, report_path=None, log_dir=str(tmp_path / "logs"))
