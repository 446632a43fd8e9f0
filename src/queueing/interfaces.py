"""
LOT 5: Queueing - Interfaces

Interfaces pour la file de requêtes différées:
- Priorités (high en tête, normal/low en queue)
- File bornée avec éviction
- Concurrence de traitement bornée

Invariants:
    QUEUE_001: Taille de la file <= max_queue_size après chaque opération
    QUEUE_002: Débordement = éviction du plus ancien low, puis normal, puis high
    QUEUE_003: Requêtes en cours <= max_concurrent_requests
    QUEUE_004: Un item quitte l'ensemble en cours exactement une fois par tentative
    QUEUE_005: retry_count <= max_retries, au-delà l'item est abandonné
    QUEUE_006: Priorité high insérée en tête de file
    QUEUE_007: Vidage uniquement si statut online ou degraded
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from src.network import RequestParams


class Priority(Enum):
    """Priorité d'une requête différée."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class QueueOutcome(Enum):
    """Issue finale d'un item de la file."""

    COMPLETED = "completed"
    DROPPED = "dropped"  # Permanent ou retries épuisés
    EVICTED = "evicted"  # Débordement (QUEUE_002)


@dataclass
class QueueConfig:
    """
    Configuration de la file.

    flush_interval en secondes.
    """

    max_queue_size: int = 100
    flush_interval: float = 5.0
    max_concurrent_requests: int = 3


@dataclass
class QueuedItem:
    """
    Requête différée.

    sequence: ordre d'arrivée, conservé à la réinsertion (âge de l'item).
    """

    id: str
    target: str
    params: RequestParams
    retry_count: int = 0
    max_retries: int = 3
    enqueued_at: float = 0.0
    priority: Priority = Priority.NORMAL
    metadata: Dict[str, Any] = field(default_factory=dict)
    sequence: int = 0

    @property
    def correlation_id(self) -> Optional[str]:
        return self.metadata.get("correlation_id")


@dataclass
class QueueStats:
    """Statistiques de la file."""

    queue_size: int
    processing_count: int
    enqueued: int = 0
    completed: int = 0
    retried: int = 0
    dropped: int = 0
    evicted: int = 0


@dataclass
class QueueSettlement:
    """Notification de fin de vie d'un item (observateurs de la file)."""

    item_id: str
    outcome: QueueOutcome
    status_code: Optional[int] = None
    error: Optional[BaseException] = None


# Type alias pour les observateurs
SettlementListener = Callable[[QueueSettlement], None]


class IRequestQueue(ABC):
    """Interface de la file de requêtes."""

    @abstractmethod
    def enqueue(
        self,
        target: str,
        params: Optional[RequestParams] = None,
        priority: Priority = Priority.NORMAL,
        max_retries: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        QUEUE_001, QUEUE_002, QUEUE_006: Ajoute une requête.

        Returns:
            Identifiant opaque de l'item
        """
        pass

    @abstractmethod
    async def drain(self) -> int:
        """
        QUEUE_003, QUEUE_007: Lance le traitement des items en attente.

        Returns:
            Nombre d'items lancés
        """
        pass

    @abstractmethod
    def stats(self) -> QueueStats:
        """Retourne les statistiques."""
        pass

    @abstractmethod
    def items(self) -> List[QueuedItem]:
        """Snapshot des items en attente, tête en premier."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Annule timers et traitements, vide la file (idempotent)."""
        pass
