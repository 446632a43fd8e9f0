"""
Resilience Core - LOT 1 Core Interfaces
Contrats à implémenter pour le module Core (configuration).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from src.connectivity import ProbeConfig
from src.network import RetryPolicy
from src.queueing import QueueConfig


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class ValidationSeverity(Enum):
    BLOCKING = "blocking"
    WARNING = "warning"
    INFO = "info"


class ValidationError(BaseModel):
    """Erreur de validation d'un invariant."""

    rule_id: str
    message: str
    location: str
    value: Optional[str] = None
    severity: ValidationSeverity = ValidationSeverity.BLOCKING


class ValidationResult(BaseModel):
    """Résultat de validation d'une configuration."""

    valid: bool
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []
    checked_at: datetime


@dataclass
class FeatureFlags:
    """Activation des briques du noyau."""

    enable_retry: bool = True
    enable_queue: bool = True
    enable_offline_detection: bool = True


@dataclass
class RecoveryConfig:
    """Configuration complète du noyau de résilience."""

    version: str = "1.0"
    log_level: str = "INFO"
    features: FeatureFlags = field(default_factory=FeatureFlags)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    queue: QueueConfig = field(default_factory=QueueConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class IConfigLoader(ABC):
    """Charge la configuration depuis YAML et vérifie son intégrité."""

    @abstractmethod
    async def load(self, profile: str) -> RecoveryConfig:
        """
        Charge la config d'un profil.

        Raises:
            ConfigIntegrityError: Si fichier absent, YAML invalide,
                clé inconnue ou règle bloquante violée
        """
        pass

    @abstractmethod
    def parse(self, data: dict[str, Any]) -> RecoveryConfig:
        """Construit une config depuis un dictionnaire déjà chargé."""
        pass


class IConfigValidator(ABC):
    """Valide la configuration contre les invariants CFG."""

    @abstractmethod
    def validate(self, config: RecoveryConfig) -> ValidationResult:
        """
        Valide une config contre TOUS les invariants.
        Retourne TOUTES les erreurs (pas fail-fast).
        """
        pass

    @abstractmethod
    def validate_rule(self, rule_id: str, config: RecoveryConfig) -> Optional[ValidationError]:
        """Valide UNE règle spécifique."""
        pass
