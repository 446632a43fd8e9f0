"""
Resilience Core - Config Loader Implementation
Charge la configuration depuis fichiers YAML et vérifie son intégrité.
"""

from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from src.connectivity import ProbeConfig
from src.logging import InvalidLogLevelError, parse_log_level
from src.network import RetryPolicy
from src.queueing import QueueConfig

from .config_validator import ConfigValidator
from .interfaces import FeatureFlags, IConfigLoader, IConfigValidator, RecoveryConfig, ValidationResult


class ConfigIntegrityError(Exception):
    """Erreur d'intégrité de configuration."""

    pass


SECTIONS = {
    "features": FeatureFlags,
    "retry": RetryPolicy,
    "queue": QueueConfig,
    "probe": ProbeConfig,
}
TOP_LEVEL_KEYS = {"version", "log_level", *SECTIONS}


class ConfigLoader(IConfigLoader):
    """
    Chargement des configurations depuis fichiers YAML.

    Layout:
        version: "1.0"
        log_level: INFO
        features: {enable_retry, enable_queue, enable_offline_detection}
        retry: {max_retries, base_delay, max_delay, backoff_multiplier,
                retryable_status_codes, retryable_error_signatures, jitter}
        queue: {max_queue_size, flush_interval, max_concurrent_requests}
        probe: {health_url, check_interval, timeout_threshold,
                degraded_threshold, method}

    Sections absentes = valeurs par défaut. Durées en secondes.
    """

    def __init__(self, configs_path: str = "config", validator: Optional[IConfigValidator] = None):
        self.configs_path = Path(configs_path)
        self._validator = validator or ConfigValidator()
        self.last_validation: Optional[ValidationResult] = None

    async def load(self, profile: str) -> RecoveryConfig:
        """
        Charge la config d'un profil.

        Args:
            profile: Nom du profil (fichier <profile>.yaml)

        Returns:
            RecoveryConfig validée

        Raises:
            ConfigIntegrityError: Si fichier inexistant, structure invalide
                ou règle bloquante violée
        """
        config_file = self.configs_path / f"{profile}.yaml"

        if not config_file.exists():
            raise ConfigIntegrityError(f"Configuration not found for profile: {profile}")

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigIntegrityError(f"YAML parsing error: {e}")
        except OSError as e:
            raise ConfigIntegrityError(f"File read error: {e}")

        if data is None:
            data = {}

        return self.parse(data)

    def parse(self, data: Dict[str, Any]) -> RecoveryConfig:
        """
        Construit et valide une RecoveryConfig.

        Raises:
            ConfigIntegrityError: Structure invalide ou règle bloquante violée
        """
        if not isinstance(data, dict):
            raise ConfigIntegrityError("Configuration must be a YAML mapping")

        unknown = set(data) - TOP_LEVEL_KEYS
        if unknown:
            raise ConfigIntegrityError(f"Unknown configuration keys: {sorted(unknown)}")

        version = data.get("version", "1.0")
        if not isinstance(version, str):
            raise ConfigIntegrityError("version must be a string")

        log_level = data.get("log_level", "INFO")
        try:
            parse_log_level(str(log_level))
        except InvalidLogLevelError as e:
            raise ConfigIntegrityError(str(e))

        sections = {
            name: self._build_section(name, cls, data.get(name))
            for name, cls in SECTIONS.items()
        }
        config = RecoveryConfig(version=version, log_level=str(log_level).upper(), **sections)

        result = self._validator.validate(config)
        self.last_validation = result
        if not result.valid:
            rules = ", ".join(f"{e.rule_id} ({e.location})" for e in result.errors)
            raise ConfigIntegrityError(f"Configuration violates invariants: {rules}")

        return config

    def _build_section(self, name: str, cls: type, raw: Any) -> Any:
        """Construit une section; clés inconnues interdites."""
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            raise ConfigIntegrityError(f"Section '{name}' must be a mapping")

        allowed = {f.name for f in fields(cls)}
        unknown = set(raw) - allowed
        if unknown:
            raise ConfigIntegrityError(f"Unknown keys in '{name}': {sorted(unknown)}")

        values = dict(raw)
        if name == "retry":
            if "retryable_status_codes" in values:
                values["retryable_status_codes"] = frozenset(
                    self._as_list(name, "retryable_status_codes", values["retryable_status_codes"], int)
                )
            if "retryable_error_signatures" in values:
                values["retryable_error_signatures"] = frozenset(
                    s.lower()
                    for s in self._as_list(
                        name, "retryable_error_signatures", values["retryable_error_signatures"], str
                    )
                )

        for f in fields(cls):
            if f.name not in values or f.type not in (int, float, bool):
                continue
            values[f.name] = self._check_scalar(name, f.name, values[f.name], f.type)

        try:
            return cls(**values)
        except (TypeError, ValueError) as e:
            raise ConfigIntegrityError(f"Invalid section '{name}': {e}")

    @staticmethod
    def _as_list(section: str, key: str, value: Any, item_type: type) -> list:
        if not isinstance(value, list) or not all(
            isinstance(v, item_type) and not isinstance(v, bool) for v in value
        ):
            raise ConfigIntegrityError(
                f"{section}.{key} must be a list of {item_type.__name__}"
            )
        return value

    @staticmethod
    def _check_scalar(section: str, key: str, value: Any, expected: type) -> Any:
        kind = expected.__name__
        if kind == "bool":
            if not isinstance(value, bool):
                raise ConfigIntegrityError(f"{section}.{key} must be a boolean")
            return value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigIntegrityError(f"{section}.{key} must be a number")
        if kind == "int":
            if isinstance(value, float) and not value.is_integer():
                raise ConfigIntegrityError(f"{section}.{key} must be an integer")
            return int(value)
        return float(value)
