"""
LOT 3: Network - Retry Handler

Gestion des retries avec backoff exponentiel borné.

Invariants:
    RETRY_001: Délai = min(base_delay * multiplier^n, max_delay)
    RETRY_002: Délai monotone croissant et borné par max_delay (sans jitter)
    RETRY_003: Retry uniquement sur status code ou signature d'erreur retryable
    RETRY_004: Nombre total de tentatives <= max_retries + 1
    RETRY_005: Signature d'erreur comparée en sous-chaîne insensible à la casse
"""

import random
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from .clock import SystemClock
from .interfaces import (
    FailureKind,
    IClock,
    IRetryHandler,
    RetryCallback,
    RetryPolicy,
    RetryResult,
)


class RetryHandler(IRetryHandler):
    """
    Gestion retries avec backoff exponentiel.

    Le même handler sert la gateway (retries synchrones d'un appel) et la
    file (délai de réinsertion); l'état de backoff n'est jamais partagé,
    chaque appel calcule ses délais à partir de son propre compteur.

    Invariants:
        RETRY_001-005
    """

    def __init__(
        self,
        default_policy: Optional[RetryPolicy] = None,
        clock: Optional[IClock] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Initialise le gestionnaire de retries.

        Args:
            default_policy: Politique par défaut (optionnel)
            clock: Horloge pour les attentes de backoff
            rng: Générateur pour le jitter (optionnel)
        """
        self._default_policy = default_policy or RetryPolicy()
        self._clock = clock or SystemClock()
        self._rng = rng or random.Random()
        self._retry_stats: Dict[str, int] = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            "total_retries": 0,
            "successful_retries": 0,
            "failed_retries": 0,
            "aborted": 0,
        }

    @property
    def default_policy(self) -> RetryPolicy:
        """Retourne la politique par défaut."""
        return self._default_policy

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[Any]],
        policy: Optional[RetryPolicy] = None,
        should_abort: Optional[Callable[[], bool]] = None,
        on_retry: Optional[RetryCallback] = None,
    ) -> RetryResult:
        """
        Exécute operation avec max_retries + 1 tentatives.

        Séquence pour chaque retry:
            1. Calcul du délai (index du retry, 0-indexed)
            2. Attente via l'horloge
            3. should_abort() → abandon immédiat si True (GATE_002)
            4. Nouvelle tentative

        Backoff par défaut: 1s, 2s, 4s (plafonné à max_delay)

        Args:
            operation: Coroutine function sans argument
            policy: Politique optionnelle
            should_abort: Vérifié avant chaque retry
            on_retry: Callback (tentative suivante, dernier échec, délai)

        Returns:
            RetryResult (la dernière réponse est conservée même en échec)
        """
        retry_policy = policy or self._default_policy
        last_error: Optional[BaseException] = None
        last_response: Any = None
        total_delay: float = 0.0
        delays = []

        for attempt in range(retry_policy.max_attempts):
            if attempt > 0:
                delay = self.calculate_delay(attempt - 1, retry_policy)
                if on_retry is not None:
                    on_retry(attempt + 1, last_error if last_error is not None else last_response, delay)
                delays.append(delay)
                total_delay += delay
                await self._clock.sleep(delay)

                if should_abort is not None and should_abort():
                    self._retry_stats["aborted"] += 1
                    return RetryResult(
                        success=False,
                        result=last_response,
                        attempts=attempt,
                        total_delay=total_delay,
                        last_error=last_error,
                        failure=FailureKind.RETRYABLE,
                        aborted=True,
                        delays=delays,
                    )
                self._retry_stats["total_retries"] += 1

            try:
                last_response = await operation()
                last_error = None
                kind = self.classify(retry_policy, response=last_response)
            except Exception as e:
                last_response = None
                last_error = e
                kind = self.classify(retry_policy, error=e)

            if kind == FailureKind.NONE:
                if attempt > 0:
                    self._retry_stats["successful_retries"] += 1
                return RetryResult(
                    success=True,
                    result=last_response,
                    attempts=attempt + 1,
                    total_delay=total_delay,
                    last_error=None,
                    delays=delays,
                )

            if kind == FailureKind.PERMANENT:
                # RETRY_003: non retryable, échouer immédiatement
                return RetryResult(
                    success=False,
                    result=last_response,
                    attempts=attempt + 1,
                    total_delay=total_delay,
                    last_error=last_error,
                    failure=FailureKind.PERMANENT,
                    delays=delays,
                )

        self._retry_stats["failed_retries"] += 1

        return RetryResult(
            success=False,
            result=last_response,
            attempts=retry_policy.max_attempts,
            total_delay=total_delay,
            last_error=last_error,
            failure=FailureKind.RETRYABLE,
            delays=delays,
        )

    def calculate_delay(self, retry_index: int, policy: RetryPolicy) -> float:
        """
        Calcule délai backoff exponentiel.

        Formula: min(base_delay * (backoff_multiplier ^ retry_index), max_delay)
        - Retry 0: base_delay (1s)
        - Retry 1: base_delay * multiplier (2s)
        - Retry 2: base_delay * multiplier^2 (4s)

        Avec jitter > 0, le délai est tiré dans [d - d*jitter, d + d*jitter]
        puis replafonné: RETRY_002 ne vaut alors plus.

        Args:
            retry_index: Index du retry (0-indexed)
            policy: Politique de retry

        Returns:
            Délai en secondes
        """
        try:
            delay = min(
                policy.base_delay * (policy.backoff_multiplier ** max(retry_index, 0)),
                policy.max_delay,
            )
        except OverflowError:
            # Index très grand: plafond atteint
            delay = policy.max_delay
        if policy.jitter > 0:
            span = delay * policy.jitter
            delay = min(max(0.0, self._rng.uniform(delay - span, delay + span)), policy.max_delay)
        return delay

    def classify(
        self,
        policy: RetryPolicy,
        response: Optional[httpx.Response] = None,
        error: Optional[BaseException] = None,
    ) -> FailureKind:
        """
        RETRY_003: Classe le résultat d'une tentative.

        - error retryable (signature) → RETRYABLE, sinon PERMANENT
        - status 2xx/3xx → NONE
        - status dans retryable_status_codes → RETRYABLE
        - autre status → PERMANENT
        """
        if error is not None:
            if self.is_retryable_error(error, policy):
                return FailureKind.RETRYABLE
            return FailureKind.PERMANENT

        status_code = getattr(response, "status_code", None)
        if status_code is None or 200 <= status_code < 400:
            return FailureKind.NONE
        if self.is_retryable_status(status_code, policy):
            return FailureKind.RETRYABLE
        return FailureKind.PERMANENT

    def is_retryable_status(self, status_code: int, policy: RetryPolicy) -> bool:
        """Vérifie si le status code est retryable."""
        return status_code in policy.retryable_status_codes

    def is_retryable_error(self, error: BaseException, policy: RetryPolicy) -> bool:
        """
        RETRY_005: Vérifie si l'erreur correspond à une signature retryable.

        La comparaison porte sur "<types de la hiérarchie>: <message>" en
        minuscules: httpx.ConnectError (sous-classe de httpx.NetworkError)
        correspond à "network", httpx.ReadTimeout à "timeout".

        Args:
            error: Exception à vérifier
            policy: Politique de retry

        Returns:
            True si une signature est trouvée
        """
        names = " ".join(cls.__name__ for cls in type(error).__mro__)
        text = f"{names}: {error}".lower()
        return any(
            signature.lower() in text
            for signature in policy.retryable_error_signatures
            if signature
        )

    def get_retry_stats(self) -> Dict[str, int]:
        """
        Retourne les statistiques de retry.

        Returns:
            Dict avec total_retries, successful_retries, failed_retries, aborted
        """
        return dict(self._retry_stats)

    def reset_stats(self) -> None:
        """Remet les statistiques à zéro."""
        self._retry_stats = self._empty_stats()
