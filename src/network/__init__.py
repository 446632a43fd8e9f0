"""
LOT 3: Network

Module d'exécution réseau résiliente avec:
- Retry avec backoff exponentiel borné (RETRY_001-002)
- Classification retryable / permanent (RETRY_003, RETRY_005)
- Nombre de tentatives borné (RETRY_004)
- Horloge injectable et timer périodique
- Exécuteur HTTP httpx

Invariants couverts:
- RETRY_001: Délai = min(base_delay * multiplier^n, max_delay)
- RETRY_002: Délai monotone croissant et borné par max_delay (sans jitter)
- RETRY_003: Retry uniquement sur status code ou signature d'erreur retryable
- RETRY_004: Nombre total de tentatives <= max_retries + 1
- RETRY_005: Signature d'erreur comparée en sous-chaîne insensible à la casse
"""

from .interfaces import (
    # Constantes
    DEFAULT_RETRYABLE_STATUS_CODES,
    DEFAULT_RETRYABLE_ERROR_SIGNATURES,
    # Enums
    FailureKind,
    # Data classes
    RetryPolicy,
    RequestParams,
    RetryResult,
    RetryCallback,
    # Interfaces
    IClock,
    IRequestExecutor,
    IRetryHandler,
)
from .clock import SystemClock
from .retry_handler import RetryHandler
from .timer import PeriodicTimer
from .transport import HttpxExecutor

__all__ = [
    # Constantes
    "DEFAULT_RETRYABLE_STATUS_CODES",
    "DEFAULT_RETRYABLE_ERROR_SIGNATURES",
    # Enums
    "FailureKind",
    # Data classes
    "RetryPolicy",
    "RequestParams",
    "RetryResult",
    "RetryCallback",
    # Interfaces
    "IClock",
    "IRequestExecutor",
    "IRetryHandler",
    # Implementations
    "SystemClock",
    "RetryHandler",
    "PeriodicTimer",
    "HttpxExecutor",
]
