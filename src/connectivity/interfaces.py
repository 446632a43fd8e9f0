"""
LOT 4: Connectivity - Interfaces

Interfaces pour le suivi de la joignabilité réseau:
- Statut réseau (online, offline, degraded, unknown)
- Sonde de liveness
- Signal de connectivité plateforme

Invariants:
    STATUS_001: Statut publié uniquement sur changement effectif
    STATUS_002: Échec/timeout de sonde = offline, jamais d'exception propagée
    STATUS_003: Sonde < degraded_threshold = online, sinon degraded
    STATUS_004: close() idempotent, timer arrêté et abonnés vidés
    STATUS_005: Un abonné en échec ne bloque pas les suivants
    STATUS_006: Signal plateforme déconnecté = offline sans sonde
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class NetworkStatus(Enum):
    """Statut de joignabilité (transitoire, jamais persisté)."""

    ONLINE = "online"
    OFFLINE = "offline"
    DEGRADED = "degraded"  # Joignable mais lent
    UNKNOWN = "unknown"  # Avant la première observation


@dataclass
class ProbeConfig:
    """
    Configuration de la sonde de liveness.

    Durées en secondes.
    """

    health_url: str = "/api/health"
    check_interval: float = 30.0
    timeout_threshold: float = 10.0  # Au-delà: offline
    degraded_threshold: float = 5.0  # Au-delà: degraded
    method: str = "HEAD"


# Type alias pour les abonnés
StatusListener = Callable[[NetworkStatus], None]
Unsubscribe = Callable[[], None]


class IProbe(ABC):
    """Sonde de liveness vers le serveur."""

    @abstractmethod
    async def probe(self) -> bool:
        """
        Interroge l'endpoint de liveness.

        Returns:
            True si réponse de succès (2xx)

        Raises:
            Exception: Erreur transport (gérée par le tracker)
        """
        pass


class IConnectivitySignal(ABC):
    """Signal de connectivité fourni par la plateforme."""

    @abstractmethod
    def is_connected(self) -> Optional[bool]:
        """
        Returns:
            True/False si connu, None si le signal est indisponible
        """
        pass


class IStatusTracker(ABC):
    """Interface du suivi de statut réseau."""

    @abstractmethod
    def current(self) -> NetworkStatus:
        """Statut courant, O(1)."""
        pass

    @abstractmethod
    async def check_now(self) -> NetworkStatus:
        """
        STATUS_002-003: Sonde immédiate; ne lève jamais.

        Returns:
            Statut après la sonde
        """
        pass

    @abstractmethod
    def handle_connectivity_change(self, connected: bool) -> None:
        """Évènement plateforme online/offline."""
        pass

    @abstractmethod
    def subscribe(self, listener: StatusListener) -> Unsubscribe:
        """
        Abonne un listener aux changements de statut.

        Returns:
            Fonction de désabonnement (idempotente)
        """
        pass

    @abstractmethod
    def is_online(self) -> bool:
        """True si online ou degraded."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """STATUS_004: Arrête le timer et vide les abonnés."""
        pass
