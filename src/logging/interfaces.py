"""
LOT 2: Logging - Interfaces

Contrats du journal structuré partagé par le tracker, la file et la gateway.

Invariants:
    LOG_001: Format JSON structuré obligatoire
    LOG_002: Champs obligatoires: timestamp, level, correlation_id, component, message
    LOG_003: Timestamp format ISO 8601 avec timezone UTC
    LOG_004: Niveaux: DEBUG, INFO, WARN, ERROR, CRITICAL
    LOG_005: Headers et paramètres sensibles JAMAIS en clair (masqués)
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class LogLevel(Enum):
    """LOG_004: Niveaux, du moins au plus sévère."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def enabled_for(self, minimum: "LogLevel") -> bool:
        """True si ce niveau passe le seuil minimum."""
        return self.severity >= minimum.severity

    @classmethod
    def from_name(cls, name: str) -> "LogLevel":
        """
        Niveau depuis son nom (insensible à la casse, WARNING = WARN).

        Raises:
            ValueError: Si nom inconnu
        """
        normalized = (name or "").strip().upper()
        return cls("WARN" if normalized == "WARNING" else normalized)


_SEVERITY = {level: rank for rank, level in enumerate(LogLevel)}


@dataclass
class LogEntry:
    """
    LOG_002: Une ligne du journal.

    request_id est renseigné pour les lignes qui concernent un item de la
    file (mise en file, retry, abandon, éviction).
    """

    timestamp: str  # LOG_003
    level: LogLevel
    correlation_id: str
    component: str
    message: str
    request_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    logger_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "correlation_id": self.correlation_id,
            "component": self.component,
            "message": self.message,
        }
        if self.request_id is not None:
            data["request_id"] = self.request_id
        if self.logger_name and self.logger_name != self.component:
            data["logger"] = self.logger_name
        if self.extra:
            data["extra"] = self.extra
        return data

    def to_json(self) -> str:
        """LOG_001: Une ligne JSON (valeurs non sérialisables via str())."""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


@dataclass
class LogConfig:
    """Réglages d'un logger; min_level provient de RecoveryConfig.log_level."""

    min_level: LogLevel = LogLevel.INFO
    mask_sensitive: bool = True  # LOG_005
    default_component: Optional[str] = None
    max_entries: int = 1000


class IStructuredLogger(ABC):
    """
    Journal structuré d'un composant.

    Invariants:
        LOG_001-005
    """

    @abstractmethod
    def log(
        self,
        level: LogLevel,
        message: str,
        correlation_id: Optional[str] = None,
        component: Optional[str] = None,
        request_id: Optional[str] = None,
        **extra: Any,
    ) -> Optional[LogEntry]:
        """
        Émet une ligne si level passe min_level.

        Args:
            level: Niveau
            message: Message (obligatoire)
            correlation_id: Corrélation (uuid4 généré si absent)
            component: Composant (défaut: nom du logger)
            request_id: Item de file concerné
            **extra: Champs libres, masqués (LOG_005)

        Returns:
            LogEntry émise, None si filtrée
        """
        pass

    @abstractmethod
    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def get_entries(self) -> List[LogEntry]:
        """Lignes capturées, la plus ancienne en premier."""
        pass

    @abstractmethod
    def with_context(self, correlation_id: Optional[str] = None, component: Optional[str] = None, **bound: Any):
        """Logger lié à une corrélation (un appel issue())."""
        pass


class ISensitiveMasker(ABC):
    """
    Masquage des données de requête avant journalisation.

    Invariant:
        LOG_005: Headers et paramètres sensibles JAMAIS en clair
    """

    # Sous-chaînes recherchées dans les noms de headers, champs JSON et
    # paramètres de query string
    SENSITIVE_PATTERNS: List[str] = [
        # headers d'authentification
        "authorization",
        "cookie",
        "api-key",
        "session",
        "csrf",
        # champs et paramètres
        "token",
        "password",
        "passwd",
        "secret",
        "api_key",
        "apikey",
        "private_key",
        "credential",
        "signature",
        "credit_card",
        "cvv",
    ]

    MASK_VALUE: str = "***MASKED***"

    @abstractmethod
    def mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Copie de data avec les valeurs sensibles masquées."""
        pass

    @abstractmethod
    def mask_url(self, url: str) -> str:
        """URL avec les paramètres de query sensibles masqués."""
        pass

    @abstractmethod
    def is_sensitive_key(self, key: str) -> bool:
        pass

    @abstractmethod
    def add_pattern(self, pattern: str) -> None:
        pass
