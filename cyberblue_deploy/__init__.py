"""CyberBlue Deployment Readiness Controller.

Startet den CyberBlue SOC-Stack in Abhängigkeitsreihenfolge, prüft jeden
Service per Health-Probe und führt bei Fehlern deklarierte Recovery-Aktionen aus.
"""

from .version import VERSION

__version__ = VERSION

__all__ = ["__version__"]
