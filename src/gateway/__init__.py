"""
LOT 6: Gateway

Module point d'entrée des appels réseau avec:
- Mise en file immédiate hors ligne (GATE_001)
- Abandon des retries au passage offline (GATE_002)
- Échecs toujours remontés (GATE_003)
- Helpers typés JSON / upload / lots

Invariants couverts:
- GATE_001: Offline = mise en file immédiate avec id, zéro appel réseau
- GATE_002: Passage offline pendant les retries = abandon immédiat
- GATE_003: Échec définitif toujours remonté à l'appelant, jamais avalé
- GATE_004: Pas de déduplication des appels concurrents identiques
"""

from .interfaces import (
    # Enums
    OutcomeKind,
    # Data classes
    GatewayResult,
    # Interfaces
    IResilientGateway,
)
from .resilient_gateway import ResilientGateway
from .helpers import (
    # Helpers
    unwrap,
    fetch_json,
    get_json,
    post_json,
    put_json,
    delete_json,
    upload_file,
    batch_requests,
    # Exceptions
    RequestQueuedError,
    NetworkOfflineError,
    RequestFailedError,
)

__all__ = [
    # Enums
    "OutcomeKind",
    # Data classes
    "GatewayResult",
    # Interfaces
    "IResilientGateway",
    # Implementations
    "ResilientGateway",
    # Helpers
    "unwrap",
    "fetch_json",
    "get_json",
    "post_json",
    "put_json",
    "delete_json",
    "upload_file",
    "batch_requests",
    # Exceptions
    "RequestQueuedError",
    "NetworkOfflineError",
    "RequestFailedError",
]
