"""
LOT 2: Logging - Structured Logger

Journal JSON des composants réseau: une ligne par évènement, corrélée à
l'appel issue() qui l'a produite.

Invariants:
    LOG_001: Format JSON structuré obligatoire
    LOG_002: Champs obligatoires: timestamp, level, correlation_id, component, message
    LOG_003: Timestamp format ISO 8601 avec timezone UTC
    LOG_004: Niveaux: DEBUG, INFO, WARN, ERROR, CRITICAL
    LOG_005: Headers et paramètres sensibles JAMAIS en clair (masqués)
"""

import sys
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from .interfaces import IStructuredLogger, ISensitiveMasker, LogConfig, LogEntry, LogLevel
from .sensitive_masker import SensitiveMasker


class MissingRequiredFieldError(Exception):
    """Champ obligatoire manquant - LOG_002."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Required field missing: {field_name} - LOG_002")


class InvalidLogLevelError(Exception):
    """Niveau de log invalide - LOG_004."""

    def __init__(self, level: str) -> None:
        self.level = level
        super().__init__(f"Invalid log level: {level} - LOG_004")


def parse_log_level(value: str) -> LogLevel:
    """
    LOG_004: Niveau textuel de la configuration YAML.

    Raises:
        InvalidLogLevelError: Si niveau inconnu
    """
    try:
        return LogLevel.from_name(value)
    except ValueError:
        raise InvalidLogLevelError(value)


def utc_timestamp() -> str:
    """LOG_003: 2024-12-04T14:30:00.123Z"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def _write_stderr(line: str) -> None:
    sys.stderr.write(line + "\n")


class StructuredLogger(IStructuredLogger):
    """
    Logger JSON d'un composant (status-tracker, request-queue, resilient-gateway).

    Les lignes sont écrites sur output_handler (stderr par défaut) et
    conservées dans un buffer borné, consultable par niveau, corrélation ou
    item de file.

    Invariants:
        LOG_001-005

    Example:
        logger = StructuredLogger("request-queue", LogConfig(min_level=LogLevel.DEBUG))
        logger.info("Request queued", request_id="req_1f3a", queue_size=4)
    """

    def __init__(
        self,
        name: str,
        config: Optional[LogConfig] = None,
        masker: Optional[ISensitiveMasker] = None,
        output_handler: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Args:
            name: Nom du logger, composant par défaut
            config: Réglages (niveau, masquage, taille du buffer)
            masker: Masquage LOG_005
            output_handler: Reçoit chaque ligne JSON

        Raises:
            ValueError: Si name vide
        """
        if not name or not name.strip():
            raise ValueError("Logger name cannot be empty")

        self._name = name.strip()
        self._config = config or LogConfig()
        self._masker = masker or SensitiveMasker()
        self._write = output_handler or _write_stderr
        self._entries: Deque[LogEntry] = deque(maxlen=self._config.max_entries)

    @property
    def name(self) -> str:
        return self._name

    @property
    def min_level(self) -> LogLevel:
        return self._config.min_level

    def set_min_level(self, level: LogLevel) -> None:
        self._config.min_level = level

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
        LOG_001-005: Construit, capture et écrit une ligne.

        Raises:
            MissingRequiredFieldError: Si message vide
        """
        if not level.enabled_for(self._config.min_level):
            return None
        if not message:
            raise MissingRequiredFieldError("message")

        if extra and self._config.mask_sensitive:
            extra = self._masker.mask(extra)

        entry = LogEntry(
            timestamp=utc_timestamp(),
            level=level,
            correlation_id=correlation_id or str(uuid.uuid4()),
            component=component or self._config.default_component or self._name,
            message=message,
            request_id=request_id,
            extra=dict(extra),
            logger_name=self._name,
        )
        self._entries.append(entry)
        self._write(entry.to_json())
        return entry

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.CRITICAL, message, **extra)

    def get_entries(self) -> List[LogEntry]:
        return list(self._entries)

    def get_entries_by_level(self, level: LogLevel) -> List[LogEntry]:
        return [e for e in self._entries if e.level == level]

    def get_entries_by_correlation(self, correlation_id: str) -> List[LogEntry]:
        """Lignes d'un même appel issue(), file comprise."""
        return [e for e in self._entries if e.correlation_id == correlation_id]

    def get_entries_by_request(self, request_id: str) -> List[LogEntry]:
        """Historique d'un item de file."""
        return [e for e in self._entries if e.request_id == request_id]

    def clear_entries(self) -> None:
        self._entries.clear()

    def with_context(
        self,
        correlation_id: Optional[str] = None,
        component: Optional[str] = None,
        **bound: Any,
    ) -> "ContextualLogger":
        """
        Logger lié à une corrélation.

        Args:
            correlation_id: Corrélation (uuid4 généré si absent)
            component: Composant forcé
            **bound: Champs ajoutés à chaque ligne (ex: target masquée)
        """
        return ContextualLogger(self, correlation_id or str(uuid.uuid4()), component, bound)


class ContextualLogger:
    """
    Vue d'un StructuredLogger pour un seul appel issue().

    Toutes les lignes portent le même correlation_id et les champs liés;
    les champs passés à l'appel priment sur les champs liés.
    """

    def __init__(
        self,
        logger: StructuredLogger,
        correlation_id: str,
        component: Optional[str] = None,
        bound: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._logger = logger
        self._correlation_id = correlation_id
        self._component = component
        self._bound = dict(bound or {})

    @property
    def correlation_id(self) -> str:
        return self._correlation_id

    def bind(self, **fields: Any) -> "ContextualLogger":
        """Nouvelle vue avec des champs liés supplémentaires."""
        return ContextualLogger(
            self._logger, self._correlation_id, self._component, {**self._bound, **fields}
        )

    def log(self, level: LogLevel, message: str, **extra: Any) -> Optional[LogEntry]:
        return self._logger.log(
            level,
            message,
            correlation_id=self._correlation_id,
            component=self._component,
            **{**self._bound, **extra},
        )

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, message, **extra)
