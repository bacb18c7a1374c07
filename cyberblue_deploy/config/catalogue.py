"""
CyberBlue Service Catalogue
===========================

Zentrale, feste Beschreibung aller Services des CyberBlue SOC-Stacks:
Compose-Service, Container-Name, Abhängigkeiten, Kritikalität, Health-Probe
und Recovery-Aktion.

Verwendung:
- `build_runtime()` erzeugt die Docker-Compose-Runtime mit den Container-Namen
- `build_catalogue()` erzeugt die ServiceDescriptors für die Registry
- `load_registry()` validiert den Katalog
"""

from typing import Dict, List, Optional

from ..models.service_descriptor import Backoff, Criticality, ProbeSpec, ServiceDescriptor
from ..services.certificate_store import CertificateDirectory
from ..services.container_runtime import ContainerTarget, DockerComposeRuntime
from ..services.recovery_actions import (
    chain,
    clear_stale_data,
    prepare_fleet_database,
    regenerate_certificates,
    restart_container,
)
from ..services.registry import Registry
from .settings import DeploymentSettings

WAZUH_CONTAINERS = ("wazuh-indexer", "wazuh-manager", "wazuh-dashboard")

# Registry-Reihenfolge = Reihenfolge in docker-compose.yml
SERVICES: Dict[str, dict] = {
    "wazuh-cert-generator": {
        "compose": "generator",
        "container": "wazuh-cert-genrator",
        "description": "Wazuh indexer TLS certificate generator",
        "wazuh": True,
        "dependencies": [],
        "probe": ("file", None),
        "recovery": "certificates",
    },
    "wazuh-indexer": {
        "compose": "wazuh.indexer",
        "description": "Wazuh Indexer",
        "port": 9200,
        "wazuh": True,
        "dependencies": ["wazuh-cert-generator"],
        "probe": ("indexer", "https://{host}:9200/_cluster/health"),
        "recovery": "certificates",
    },
    "wazuh-manager": {
        "compose": "wazuh.manager",
        "description": "Wazuh Manager",
        "port": 55000,
        "wazuh": True,
        "dependencies": ["wazuh-indexer"],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "wazuh-dashboard": {
        "compose": "wazuh.dashboard",
        "description": "Wazuh Dashboard",
        "port": 7001,
        "wazuh": True,
        "dependencies": ["wazuh-indexer", "wazuh-manager"],
        "probe": ("http", "http://{host}:7001", (200, 302)),
        "recovery": "restart",
    },
    "os01": {
        "description": "OpenSearch for Arkime",
        "dependencies": [],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "arkime": {
        "description": "Arkime full packet capture",
        "port": 7008,
        "dependencies": ["os01"],
        "probe": ("http", "http://{host}:7008", (200, 401)),
        "recovery": "pcap",
    },
    "suricata": {
        "description": "Suricata IDS",
        "dependencies": [],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "evebox": {
        "description": "EveBox Suricata event viewer",
        "port": 7015,
        "dependencies": ["suricata"],
        "probe": ("http", "http://{host}:7015", (200, 302)),
        "recovery": "restart",
    },
    "fleet-mysql": {
        "description": "Fleet MySQL",
        "dependencies": [],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "fleet-redis": {
        "description": "Fleet Redis",
        "dependencies": [],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "fleet-server": {
        "description": "Fleet osquery manager",
        "port": 7007,
        "dependencies": ["fleet-mysql", "fleet-redis"],
        "probe": ("http", "http://{host}:7007", (200, 302, 404)),
        "recovery": "fleet-db",
    },
    "misp-db": {
        "description": "MISP database",
        "dependencies": [],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "misp-redis": {
        "description": "MISP Redis",
        "dependencies": [],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "misp-modules": {
        "description": "MISP enrichment modules",
        "dependencies": ["misp-redis"],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "misp-mail": {
        "description": "MISP mail relay",
        "dependencies": [],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "misp-core": {
        "description": "MISP threat intelligence",
        "port": 7003,
        "dependencies": ["misp-db", "misp-redis"],
        "probe": ("https", "https://{host}:7003", (200, 302)),
        "recovery": "restart",
    },
    "elasticsearch": {
        "description": "Elasticsearch for TheHive/Cortex",
        "dependencies": [],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "thehive": {
        "description": "TheHive case management",
        "port": 7005,
        "dependencies": ["elasticsearch"],
        "probe": ("http", "http://{host}:7005", (200, 302)),
        "recovery": "restart",
    },
    "cortex": {
        "description": "Cortex analyzers",
        "port": 7006,
        "dependencies": ["elasticsearch"],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "shuffle-opensearch": {
        "description": "Shuffle OpenSearch",
        "dependencies": [],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "shuffle-backend": {
        "description": "Shuffle backend",
        "dependencies": ["shuffle-opensearch"],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "shuffle-frontend": {
        "description": "Shuffle SOAR",
        "port": 7002,
        "dependencies": ["shuffle-backend"],
        "probe": ("http", "http://{host}:7002", (200, 302)),
        "recovery": "restart",
    },
    "shuffle-orborus": {
        "description": "Shuffle worker orchestrator",
        "dependencies": ["shuffle-backend"],
        "probe": ("process", None),
        "recovery": "restart",
    },
    "velociraptor": {
        "description": "Velociraptor DFIR",
        "port": 7000,
        "dependencies": [],
        "probe": ("tcp", None),
        "recovery": "restart",
    },
    "cyberchef": {
        "description": "CyberChef",
        "port": 7004,
        "dependencies": [],
        "probe": ("http", "http://{host}:7004", (200,)),
        "recovery": "restart",
    },
    "mitre-navigator": {
        "description": "MITRE ATT&CK Navigator",
        "port": 7013,
        "dependencies": [],
        "probe": ("http", "http://{host}:7013", (200,)),
        "recovery": "restart",
    },
    "wireshark": {
        "description": "Wireshark web GUI",
        "port": 5500,
        "dependencies": [],
        "probe": ("tcp", None),
        "recovery": "restart",
    },
    "openvas": {
        "description": "OpenVAS vulnerability scanner",
        "port": 7014,
        "dependencies": [],
        "probe": ("tcp", None),
        "recovery": "restart",
    },
    "portainer": {
        "description": "Portainer",
        "port": 9443,
        "dependencies": [],
        "probe": ("tcp", None),
        "recovery": "restart",
    },
    "cyber-blue-portal": {
        "description": "CyberBlue portal",
        "port": 5443,
        "dependencies": [],
        "probe": ("https", "https://{host}:5443", (200, 302)),
        "recovery": "restart",
    },
    "caldera": {
        "description": "MITRE Caldera adversary emulation",
        "port": 7009,
        "dependencies": [],
        "probe": ("http", "http://{host}:7009", (200, 302)),
        "recovery": "restart",
    },
}


def container_targets() -> Dict[str, ContainerTarget]:
    """Registry-Name -> Compose-Service und Container-Name."""
    return {
        name: ContainerTarget(
            compose_service=entry.get("compose", name),
            container_name=entry.get("container", name),
        )
        for name, entry in SERVICES.items()
    }


def build_runtime(settings: DeploymentSettings) -> DockerComposeRuntime:
    return DockerComposeRuntime(
        project_dir=settings.project_dir,
        compose_file=settings.compose_file,
        targets=container_targets(),
        use_sudo=settings.use_sudo,
        command_timeout=settings.command_timeout_seconds,
    )


def _probe_for(name: str, entry: dict, settings: DeploymentSettings) -> ProbeSpec:
    kind, url, *rest = entry["probe"]
    accepted = rest[0] if rest else (200,)
    defaults = {
        "timeout": settings.probe_timeout_seconds,
        "interval": settings.probe_interval_seconds,
        "max_interval": settings.probe_max_interval_seconds,
        "max_attempts": settings.probe_max_attempts,
    }
    host = settings.probe_host

    if kind == "file":
        cert_dir = settings.resolve(settings.wazuh_cert_dir)
        return ProbeSpec.file(str(cert_dir / "admin.pem"), **defaults)
    if kind == "indexer":
        return ProbeSpec.http(
            url.format(host=host),
            accepted_codes=(200,),
            verify_tls=False,
            auth=(settings.wazuh_indexer_username, settings.wazuh_indexer_password),
            backoff=Backoff.EXPONENTIAL,
            **defaults,
        )
    if kind == "http":
        return ProbeSpec.http(url.format(host=host), accepted_codes=accepted, **defaults)
    if kind == "https":
        return ProbeSpec.http(
            url.format(host=host), accepted_codes=accepted, verify_tls=False, **defaults
        )
    if kind == "tcp":
        return ProbeSpec.tcp(host, entry["port"], **defaults)
    return ProbeSpec.process(name, **defaults)


def build_catalogue(
    settings: DeploymentSettings,
    runtime: DockerComposeRuntime,
) -> List[ServiceDescriptor]:
    """
    Erzeugt die ServiceDescriptors des CyberBlue-Stacks.

    Args:
        settings: Unveränderliche Deployment-Konfiguration
        runtime: Container-Runtime für Start- und Recovery-Aktionen

    Returns:
        ServiceDescriptors in Registry-Reihenfolge
    """
    cert_dir = CertificateDirectory(settings.resolve(settings.wazuh_cert_dir))
    pcap_dir = settings.resolve(settings.arkime_pcap_dir)
    wazuh_criticality = (
        Criticality.REQUIRED if settings.wazuh_components_required else Criticality.OPTIONAL
    )
    fleet_env = {
        "FLEET_MYSQL_ADDRESS": settings.fleet_mysql_address,
        "FLEET_MYSQL_USERNAME": settings.fleet_mysql_username,
        "FLEET_MYSQL_PASSWORD": settings.fleet_mysql_password,
        "FLEET_MYSQL_DATABASE": settings.fleet_mysql_database,
    }

    descriptors = []
    for name, entry in SERVICES.items():
        resources: tuple = ()
        recovery = entry["recovery"]

        if recovery == "certificates":
            recovery_action = regenerate_certificates(
                runtime,
                cert_dir,
                generator="wazuh-cert-generator",
                containers=WAZUH_CONTAINERS,
                restart=(name,) if name != "wazuh-cert-generator" else (),
            )
            resources = (str(cert_dir.path),)
        elif recovery == "fleet-db":
            recovery_action = prepare_fleet_database(
                runtime,
                server=name,
                image=settings.fleet_image,
                network=settings.fleet_network,
                env=fleet_env,
                timeout=settings.fleet_prepare_timeout_seconds,
            )
            resources = ("fleet-database",)
        elif recovery == "pcap":
            recovery_action = chain(
                clear_stale_data(pcap_dir, "*.pcap"),
                restart_container(runtime, name),
            )
            resources = (str(pcap_dir),)
        else:
            recovery_action = restart_container(runtime, name)

        descriptors.append(ServiceDescriptor(
            name=name,
            start_action=_start_action(runtime, name),
            health_probe=_probe_for(name, entry, settings),
            dependencies=tuple(entry["dependencies"]),
            criticality=wazuh_criticality if entry.get("wazuh") else Criticality.OPTIONAL,
            recovery_action=recovery_action,
            recovery_resources=resources,
            max_recovery_attempts=settings.max_recovery_attempts,
            recovery_timeout=settings.recovery_timeout_seconds,
            recovery_backoff=settings.recovery_backoff_seconds,
            start_timeout=settings.command_timeout_seconds,
            description=entry.get("description", ""),
            port=entry.get("port"),
        ))
    return descriptors


def _start_action(runtime: DockerComposeRuntime, name: str):
    async def _start() -> None:
        await runtime.start(name)

    return _start


def load_registry(
    settings: DeploymentSettings,
    runtime: Optional[DockerComposeRuntime] = None,
) -> Registry:
    """Baut und validiert die Registry aus dem Katalog."""
    return Registry.load(build_catalogue(settings, runtime or build_runtime(settings)))
