"""
LOT 2: Logging

Journal structuré du noyau de résilience:
- Une ligne JSON par évènement réseau (LOG_001)
- Corrélation par appel issue(), request_id par item de file (LOG_002)
- Horodatage UTC à la milliseconde (LOG_003)
- Seuil de niveau issu de RecoveryConfig.log_level (LOG_004)
- Headers, corps et query strings masqués (LOG_005)

Invariants couverts:
- LOG_001: Format JSON structuré obligatoire
- LOG_002: Champs obligatoires: timestamp, level, correlation_id, component, message
- LOG_003: Timestamp format ISO 8601 avec timezone UTC
- LOG_004: Niveaux: DEBUG, INFO, WARN, ERROR, CRITICAL
- LOG_005: Headers et paramètres sensibles JAMAIS en clair (masqués)
"""

from .interfaces import (
    # Enums
    LogLevel,
    # Dataclasses
    LogEntry,
    LogConfig,
    # Interfaces
    IStructuredLogger,
    ISensitiveMasker,
)
from .sensitive_masker import SensitiveMasker
from .structured_logger import (
    StructuredLogger,
    ContextualLogger,
    parse_log_level,
    # Exceptions
    MissingRequiredFieldError,
    InvalidLogLevelError,
)

__all__ = [
    # Enums
    "LogLevel",
    # Dataclasses
    "LogEntry",
    "LogConfig",
    # Interfaces
    "IStructuredLogger",
    "ISensitiveMasker",
    # Implementations
    "SensitiveMasker",
    "StructuredLogger",
    "ContextualLogger",
    "parse_log_level",
    # Exceptions
    "MissingRequiredFieldError",
    "InvalidLogLevelError",
]
