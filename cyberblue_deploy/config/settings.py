"""Konfiguration für den CyberBlue Deployment Controller.

Ersetzt die exportierten Umgebungsvariablen und die `.env`-Mutationen der
Installationsskripte durch ein einziges, unveränderliches Settings-Objekt.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class DeploymentSettings(BaseSettings):
    """Konfiguration für einen Deployment-Lauf."""

    # Compose-Projekt
    project_dir: Path = Field(
        default=Path("."),
        description="Verzeichnis mit docker-compose.yml"
    )
    compose_file: str = "docker-compose.yml"
    use_sudo: bool = True
    command_timeout_seconds: float = 180.0

    # Host für Health-Probes (Ports sind auf dem Host veröffentlicht)
    probe_host: str = "localhost"

    # Probe-Defaults (ersetzen die festen `sleep 10..45` der Skripte)
    probe_timeout_seconds: float = 5.0
    probe_interval_seconds: float = 10.0
    probe_max_interval_seconds: float = 60.0
    probe_max_attempts: int = 12

    # Recovery-Defaults
    max_recovery_attempts: int = 1
    recovery_timeout_seconds: float = 300.0
    recovery_backoff_seconds: float = 5.0

    # Wazuh
    wazuh_cert_dir: Path = Path("wazuh/config/wazuh_indexer_ssl_certs")
    wazuh_indexer_username: str = "admin"
    wazuh_indexer_password: str = "SecretPassword"
    wazuh_components_required: bool = True

    # Arkime
    arkime_pcap_dir: Path = Path("arkime/pcaps")

    # Fleet
    fleet_image: str = "fleetdm/fleet:latest"
    fleet_network: str = "cyber-blue"
    fleet_mysql_address: str = "fleet-mysql:3306"
    fleet_mysql_username: str = "fleet"
    fleet_mysql_password: str = "fleetpass"
    fleet_mysql_database: str = "fleet"
    fleet_prepare_timeout_seconds: float = 300.0

    # Report und Logging
    report_path: Path | None = Path("logs/deployment_report.json")
    log_level: str = "INFO"
    log_dir: str = "logs"

    # HTTP-API
    api_port: int = 3020

    model_config = {
        "env_file": ".env.cyberblue",
        "env_prefix": "CYBERBLUE_",
        "extra": "ignore",
        "frozen": True,
    }

    def resolve(self, path: Path) -> Path:
        """Löst einen relativen Pfad gegen das Projektverzeichnis auf."""
        return path if path.is_absolute() else self.project_dir / path


settings = DeploymentSettings()
