"""
LOT 5: Queueing

Module de file de requêtes différées avec:
- File bornée avec éviction par priorité (QUEUE_001-002)
- Concurrence bornée (QUEUE_003)
- Sortie unique de l'ensemble en cours (QUEUE_004)
- Retries bornés par item (QUEUE_005)
- Priorité high en tête (QUEUE_006)
- Vidage conditionné au statut (QUEUE_007)

Invariants couverts:
- QUEUE_001: Taille de la file <= max_queue_size après chaque opération
- QUEUE_002: Débordement = éviction du plus ancien low, puis normal, puis high
- QUEUE_003: Requêtes en cours <= max_concurrent_requests
- QUEUE_004: Un item quitte l'ensemble en cours exactement une fois par tentative
- QUEUE_005: retry_count <= max_retries, au-delà l'item est abandonné
- QUEUE_006: Priorité high insérée en tête de file
- QUEUE_007: Vidage uniquement si statut online ou degraded
"""

from .interfaces import (
    # Enums
    Priority,
    QueueOutcome,
    # Data classes
    QueueConfig,
    QueuedItem,
    QueueStats,
    QueueSettlement,
    # Types
    SettlementListener,
    # Interfaces
    IRequestQueue,
)
from .request_queue import RequestQueue, EVICTION_ORDER

__all__ = [
    # Enums
    "Priority",
    "QueueOutcome",
    # Data classes
    "QueueConfig",
    "QueuedItem",
    "QueueStats",
    "QueueSettlement",
    # Types
    "SettlementListener",
    # Interfaces
    "IRequestQueue",
    # Implementations
    "RequestQueue",
    "EVICTION_ORDER",
]
