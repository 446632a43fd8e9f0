"""
LOT 6: Gateway - Interfaces

Interfaces pour le point d'entrée des appels réseau:
- Exécution immédiate avec retries bornés quand le réseau est joignable
- Mise en file quand il ne l'est pas
- Exposition du statut et des statistiques de file

Invariants:
    GATE_001: Offline = mise en file immédiate avec id, zéro appel réseau
    GATE_002: Passage offline pendant les retries = abandon immédiat
    GATE_003: Échec définitif toujours remonté à l'appelant, jamais avalé
    GATE_004: Pas de déduplication des appels concurrents identiques
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from src.connectivity import NetworkStatus, StatusListener, Unsubscribe
from src.network import RequestParams, RetryCallback, RetryPolicy
from src.queueing import Priority, QueueStats


class OutcomeKind(Enum):
    """Issue d'un appel issue()."""

    COMPLETED = "completed"  # Réponse de succès
    QUEUED = "queued"  # Mis en file (GATE_001)
    OFFLINE = "offline"  # Abandon en cours de retries (GATE_002)
    FAILED = "failed"  # Permanent ou retries épuisés (GATE_003)


@dataclass
class GatewayResult:
    """
    Résultat d'un appel issue().

    request_id n'est renseigné que pour QUEUED; response est la dernière
    réponse obtenue (éventuellement non-2xx pour FAILED).
    """

    kind: OutcomeKind
    response: Optional[httpx.Response] = None
    request_id: Optional[str] = None
    attempts: int = 0
    total_delay: float = 0.0
    error: Optional[BaseException] = None
    exhausted: bool = False
    correlation_id: Optional[str] = None
    delays: List[float] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.kind == OutcomeKind.COMPLETED

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None


class IResilientGateway(ABC):
    """Interface du point d'entrée résilient."""

    @abstractmethod
    async def issue(
        self,
        target: str,
        params: Optional[RequestParams] = None,
        context: Optional[Dict[str, Any]] = None,
        priority: Priority = Priority.NORMAL,
        on_retry: Optional[RetryCallback] = None,
    ) -> GatewayResult:
        """
        GATE_001-003: Exécute ou met en file une requête.

        Args:
            target: URL cible
            params: Paramètres de la requête
            context: Métadonnées conservées avec l'item en file
            priority: Priorité si mise en file
            on_retry: Callback avant chaque retry

        Returns:
            GatewayResult (jamais d'exception pour un échec réseau)
        """
        pass

    @abstractmethod
    def status(self) -> NetworkStatus:
        """Statut réseau courant."""
        pass

    @abstractmethod
    def subscribe(self, listener: StatusListener) -> Unsubscribe:
        """Abonnement aux changements de statut."""
        pass

    @abstractmethod
    def queue_stats(self) -> QueueStats:
        """Statistiques de la file."""
        pass

    @abstractmethod
    def replace_retry_policy(self, policy: RetryPolicy) -> None:
        """Remplace la politique de retry (gateway et file)."""
        pass
