"""
LOT 4: Connectivity

Module de suivi de la joignabilité réseau avec:
- Publication sur changement uniquement (STATUS_001)
- Sonde de liveness bornée dans le temps (STATUS_002-003)
- Arrêt propre (STATUS_004)
- Isolation des abonnés (STATUS_005)
- Signal plateforme (STATUS_006)

Invariants couverts:
- STATUS_001: Statut publié uniquement sur changement effectif
- STATUS_002: Échec/timeout de sonde = offline, jamais d'exception propagée
- STATUS_003: Sonde < degraded_threshold = online, sinon degraded
- STATUS_004: close() idempotent, timer arrêté et abonnés vidés
- STATUS_005: Un abonné en échec ne bloque pas les suivants
- STATUS_006: Signal plateforme déconnecté = offline sans sonde
"""

from .interfaces import (
    # Enums
    NetworkStatus,
    # Data classes
    ProbeConfig,
    # Types
    StatusListener,
    Unsubscribe,
    # Interfaces
    IProbe,
    IConnectivitySignal,
    IStatusTracker,
)
from .status_tracker import StatusTracker
from .probes import HttpProbe, PsutilConnectivitySignal

__all__ = [
    # Enums
    "NetworkStatus",
    # Data classes
    "ProbeConfig",
    # Types
    "StatusListener",
    "Unsubscribe",
    # Interfaces
    "IProbe",
    "IConnectivitySignal",
    "IStatusTracker",
    # Implementations
    "StatusTracker",
    "HttpProbe",
    "PsutilConnectivitySignal",
]
