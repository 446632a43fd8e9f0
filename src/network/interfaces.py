"""
LOT 3: Network - Interfaces

Interfaces pour l'exécution réseau résiliente:
- Politique de retry avec backoff exponentiel borné
- Horloge injectable (tests déterministes)
- Exécuteur de requêtes HTTP

Invariants:
    RETRY_001: Délai = min(base_delay * multiplier^n, max_delay)
    RETRY_002: Délai monotone croissant et borné par max_delay (sans jitter)
    RETRY_003: Retry uniquement sur status code ou signature d'erreur retryable
    RETRY_004: Nombre total de tentatives <= max_retries + 1
    RETRY_005: Signature d'erreur comparée en sous-chaîne insensible à la casse
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional

import httpx

DEFAULT_RETRYABLE_STATUS_CODES: FrozenSet[int] = frozenset({408, 429, 500, 502, 503, 504})
DEFAULT_RETRYABLE_ERROR_SIGNATURES: FrozenSet[str] = frozenset(
    {"network", "timeout", "connection", "offline"}
)


class FailureKind(Enum):
    """Classification du résultat d'une tentative."""

    NONE = "none"  # Succès
    RETRYABLE = "retryable"  # Échec transitoire (RETRY_003)
    PERMANENT = "permanent"  # Tout autre échec


@dataclass(frozen=True)
class RetryPolicy:
    """
    Politique de retry, immuable par instance (remplacée en bloc).

    Délais en secondes.

    Invariants:
        RETRY_001: min(base_delay * backoff_multiplier^n, max_delay)
        RETRY_004: max_retries + 1 tentatives au total
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    retryable_status_codes: FrozenSet[int] = DEFAULT_RETRYABLE_STATUS_CODES
    retryable_error_signatures: FrozenSet[str] = DEFAULT_RETRYABLE_ERROR_SIGNATURES
    jitter: float = 0.0  # Fraction du délai (0 = pas de jitter)

    @property
    def max_attempts(self) -> int:
        """RETRY_004: Nombre total de tentatives."""
        return self.max_retries + 1


@dataclass
class RequestParams:
    """Paramètres d'une requête HTTP (équivalent de RequestInit)."""

    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    json: Any = None
    content: Optional[Any] = None
    data: Optional[Dict[str, Any]] = None  # Champs de formulaire
    files: Optional[Dict[str, Any]] = None
    timeout: Optional[float] = None

    def to_log_dict(self) -> Dict[str, Any]:
        """Vue journalisable (le masquage LOG_005 est appliqué par le logger)."""
        data: Dict[str, Any] = {"method": self.method}
        if self.headers:
            data["headers"] = dict(self.headers)
        if self.query:
            data["query"] = dict(self.query)
        if isinstance(self.json, dict):
            data["json"] = dict(self.json)
        if self.data:
            data["data"] = dict(self.data)
        if self.files:
            data["files"] = sorted(self.files)
        return data


@dataclass
class RetryResult:
    """Résultat d'une opération avec retry."""

    success: bool
    result: Optional[Any]  # Dernière réponse obtenue (même en échec)
    attempts: int
    total_delay: float
    last_error: Optional[BaseException]
    failure: FailureKind = FailureKind.NONE
    aborted: bool = False  # Interrompu par should_abort (GATE_002)
    delays: List[float] = field(default_factory=list)

    @property
    def retries(self) -> int:
        """Nombre de retries effectués (tentatives - 1)."""
        return max(self.attempts - 1, 0)

    @property
    def exhausted(self) -> bool:
        """True si échec transitoire après épuisement des tentatives."""
        return not self.success and not self.aborted and self.failure == FailureKind.RETRYABLE


# Type alias pour les callbacks de retry: (tentative suivante, erreur/réponse, délai)
RetryCallback = Callable[[int, Any, float], None]


class IClock(ABC):
    """
    Horloge injectable.

    Les composants ne lisent jamais time/asyncio directement: les tests
    substituent une horloge contrôlable.
    """

    @abstractmethod
    def monotonic(self) -> float:
        """Temps monotone en secondes."""
        pass

    @abstractmethod
    async def sleep(self, delay: float) -> None:
        """Suspend la coroutine courante pendant delay secondes."""
        pass


class IRequestExecutor(ABC):
    """Interface d'exécution d'une requête réseau."""

    @abstractmethod
    async def execute(self, target: str, params: RequestParams) -> httpx.Response:
        """
        Exécute une requête.

        Args:
            target: URL (absolue ou relative à la base de l'exécuteur)
            params: Paramètres de la requête

        Returns:
            Réponse HTTP, quel que soit son status

        Raises:
            httpx.HTTPError: Erreur transport (connexion, timeout...)
        """
        pass


class IRetryHandler(ABC):
    """Interface gestion retries."""

    @abstractmethod
    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[Any]],
        policy: Optional[RetryPolicy] = None,
        should_abort: Optional[Callable[[], bool]] = None,
        on_retry: Optional[RetryCallback] = None,
    ) -> RetryResult:
        """
        RETRY_001-004: Exécute avec retry et backoff exponentiel.

        Args:
            operation: Coroutine function sans argument
            policy: Politique optionnelle (défaut du handler sinon)
            should_abort: Vérifié avant chaque retry; True = abandon
            on_retry: Notifié avant chaque attente de backoff

        Returns:
            RetryResult avec succès/échec et détails
        """
        pass

    @abstractmethod
    def calculate_delay(self, retry_index: int, policy: RetryPolicy) -> float:
        """
        Calcule délai backoff exponentiel.

        Args:
            retry_index: Index du retry (0 = premier retry)
            policy: Politique de retry

        Returns:
            Délai en secondes
        """
        pass

    @abstractmethod
    def classify(
        self,
        policy: RetryPolicy,
        response: Optional[httpx.Response] = None,
        error: Optional[BaseException] = None,
    ) -> FailureKind:
        """
        RETRY_003: Classe le résultat d'une tentative.

        Args:
            policy: Politique de retry
            response: Réponse obtenue (si pas d'erreur)
            error: Exception levée (si pas de réponse)

        Returns:
            FailureKind
        """
        pass
