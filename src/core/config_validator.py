"""
Resilience Core - Config Validator Implementation
Valide la configuration contre les invariants CFG.
"""

from datetime import datetime
from typing import Optional

from ..invariants.rules import ALL_INVARIANTS, Severity
from .interfaces import IConfigValidator, RecoveryConfig, ValidationError, ValidationResult, ValidationSeverity


class ConfigValidator(IConfigValidator):
    """Validation des configurations contre les invariants CFG_001-010."""

    def __init__(self):
        self._validators = {
            "CFG_001": self._validate_cfg_001,
            "CFG_002": self._validate_cfg_002,
            "CFG_003": self._validate_cfg_003,
            "CFG_004": self._validate_cfg_004,
            "CFG_005": self._validate_cfg_005,
            "CFG_006": self._validate_cfg_006,
            "CFG_007": self._validate_cfg_007,
            "CFG_008": self._validate_cfg_008,
            "CFG_009": self._validate_cfg_009,
            "CFG_010": self._validate_cfg_010,
        }

    @property
    def rule_ids(self) -> list[str]:
        return list(self._validators)

    def validate(self, config: RecoveryConfig) -> ValidationResult:
        """
        Valide une config contre TOUS les invariants.
        Retourne TOUTES les erreurs (pas fail-fast).
        """
        errors = []
        warnings = []

        for rule_id in self._validators:
            error = self.validate_rule(rule_id, config)
            if error:
                if error.severity == ValidationSeverity.BLOCKING:
                    errors.append(error)
                elif error.severity == ValidationSeverity.WARNING:
                    warnings.append(error)

        return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings, checked_at=datetime.now())

    def validate_rule(self, rule_id: str, config: RecoveryConfig) -> Optional[ValidationError]:
        """Valide UNE règle spécifique."""
        if rule_id not in self._validators:
            return ValidationError(
                rule_id=rule_id,
                message=f"Unknown rule: {rule_id}",
                location="config",
                severity=ValidationSeverity.BLOCKING,
            )

        return self._validators[rule_id](config)

    def _error(self, rule_id: str, message: str, location: str, value: object) -> ValidationError:
        severity = (
            ValidationSeverity.WARNING
            if ALL_INVARIANTS[rule_id].severity == Severity.WARNING
            else ValidationSeverity.BLOCKING
        )
        return ValidationError(
            rule_id=rule_id,
            message=message,
            location=location,
            value=str(value),
            severity=severity,
        )

    def _validate_cfg_001(self, config: RecoveryConfig) -> Optional[ValidationError]:
        """CFG_001: max_retries >= 0."""
        if config.retry.max_retries < 0:
            return self._error(
                "CFG_001",
                f"max_retries must be >= 0, got {config.retry.max_retries}",
                "retry.max_retries",
                config.retry.max_retries,
            )
        return None

    def _validate_cfg_002(self, config: RecoveryConfig) -> Optional[ValidationError]:
        """CFG_002: 0 < base_delay <= max_delay."""
        retry = config.retry
        if retry.base_delay <= 0:
            return self._error(
                "CFG_002",
                f"base_delay must be > 0, got {retry.base_delay}",
                "retry.base_delay",
                retry.base_delay,
            )
        if retry.base_delay > retry.max_delay:
            return self._error(
                "CFG_002",
                f"base_delay {retry.base_delay} exceeds max_delay {retry.max_delay}",
                "retry.max_delay",
                retry.max_delay,
            )
        return None

    def _validate_cfg_003(self, config: RecoveryConfig) -> Optional[ValidationError]:
        """CFG_003: backoff_multiplier >= 1."""
        if config.retry.backoff_multiplier < 1:
            return self._error(
                "CFG_003",
                f"backoff_multiplier must be >= 1, got {config.retry.backoff_multiplier}",
                "retry.backoff_multiplier",
                config.retry.backoff_multiplier,
            )
        return None

    def _validate_cfg_004(self, config: RecoveryConfig) -> Optional[ValidationError]:
        """CFG_004: max_queue_size >= 1."""
        if config.queue.max_queue_size < 1:
            return self._error(
                "CFG_004",
                f"max_queue_size must be >= 1, got {config.queue.max_queue_size}",
                "queue.max_queue_size",
                config.queue.max_queue_size,
            )
        return None

    def _validate_cfg_005(self, config: RecoveryConfig) -> Optional[ValidationError]:
        """CFG_005: max_concurrent_requests >= 1."""
        if config.queue.max_concurrent_requests < 1:
            return self._error(
                "CFG_005",
                f"max_concurrent_requests must be >= 1, got {config.queue.max_concurrent_requests}",
                "queue.max_concurrent_requests",
                config.queue.max_concurrent_requests,
            )
        return None

    def _validate_cfg_006(self, config: RecoveryConfig) -> Optional[ValidationError]:
        """CFG_006: 0 < degraded_threshold < timeout_threshold."""
        probe = config.probe
        if not 0 < probe.degraded_threshold < probe.timeout_threshold:
            return self._error(
                "CFG_006",
                f"degraded_threshold {probe.degraded_threshold} must be > 0 "
                f"and below timeout_threshold {probe.timeout_threshold}",
                "probe.degraded_threshold",
                probe.degraded_threshold,
            )
        return None

    def _validate_cfg_007(self, config: RecoveryConfig) -> Optional[ValidationError]:
        """CFG_007: Intervalles strictement positifs."""
        if config.queue.flush_interval <= 0:
            return self._error(
                "CFG_007",
                f"flush_interval must be > 0, got {config.queue.flush_interval}",
                "queue.flush_interval",
                config.queue.flush_interval,
            )
        if config.probe.check_interval <= 0:
            return self._error(
                "CFG_007",
                f"check_interval must be > 0, got {config.probe.check_interval}",
                "probe.check_interval",
                config.probe.check_interval,
            )
        return None

    def _validate_cfg_008(self, config: RecoveryConfig) -> Optional[ValidationError]:
        """CFG_008: Status codes HTTP valides."""
        for code in sorted(config.retry.retryable_status_codes):
            if not 100 <= code <= 599:
                return self._error(
                    "CFG_008",
                    f"Retryable status code {code} is not a valid HTTP status",
                    "retry.retryable_status_codes",
                    code,
                )
        return None

    def _validate_cfg_009(self, config: RecoveryConfig) -> Optional[ValidationError]:
        """CFG_009: 0 <= jitter <= 1."""
        if not 0 <= config.retry.jitter <= 1:
            return self._error(
                "CFG_009",
                f"jitter must be within [0, 1], got {config.retry.jitter}",
                "retry.jitter",
                config.retry.jitter,
            )
        return None

    def _validate_cfg_010(self, config: RecoveryConfig) -> Optional[ValidationError]:
        """CFG_010 (warning): Sondes potentiellement superposées."""
        probe = config.probe
        if probe.check_interval < probe.timeout_threshold:
            return self._error(
                "CFG_010",
                f"check_interval {probe.check_interval} is shorter than "
                f"timeout_threshold {probe.timeout_threshold}",
                "probe.check_interval",
                probe.check_interval,
            )
        return None
