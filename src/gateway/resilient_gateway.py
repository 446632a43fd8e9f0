"""
LOT 6: Gateway - Resilient Gateway

Point d'entrée des appels réseau: exécution immédiate avec retries bornés
ou mise en file quand le réseau est coupé.

Invariants:
    GATE_001: Offline = mise en file immédiate avec id, zéro appel réseau
    GATE_002: Passage offline pendant les retries = abandon immédiat
    GATE_003: Échec définitif toujours remonté à l'appelant, jamais avalé
    GATE_004: Pas de déduplication des appels concurrents identiques
"""

import dataclasses
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import httpx

from src.connectivity import (
    HttpProbe,
    IConnectivitySignal,
    NetworkStatus,
    PsutilConnectivitySignal,
    StatusListener,
    StatusTracker,
    Unsubscribe,
)
from src.core.interfaces import FeatureFlags, RecoveryConfig
from src.logging import LogConfig, SensitiveMasker, StructuredLogger, parse_log_level
from src.network import (
    HttpxExecutor,
    IClock,
    IRequestExecutor,
    RequestParams,
    RetryCallback,
    RetryHandler,
    RetryPolicy,
    SystemClock,
)
from src.queueing import Priority, QueueStats, RequestQueue, SettlementListener

from .interfaces import GatewayResult, IResilientGateway, OutcomeKind


class ResilientGateway(IResilientGateway):
    """
    Point d'entrée résilient.

    Chaque appel issue() s'exécute sous un correlation_id propre, repris
    dans les métadonnées de l'item s'il est mis en file. Les appels
    concurrents identiques ne sont pas dédupliqués (GATE_004).

    Invariants:
        GATE_001-004

    Example:
        async with ResilientGateway.create(config, base_url="https://api.example.com") as gateway:
            result = await gateway.issue("/api/orders", RequestParams(method="POST", json=order))
            if result.kind == OutcomeKind.QUEUED:
                ...
    """

    def __init__(
        self,
        executor: IRequestExecutor,
        tracker: StatusTracker,
        queue: RequestQueue,
        retry_handler: Optional[RetryHandler] = None,
        policy: Optional[RetryPolicy] = None,
        features: Optional[FeatureFlags] = None,
        logger: Optional[StructuredLogger] = None,
        owned_executor: Optional[HttpxExecutor] = None,
    ) -> None:
        """
        Initialise la gateway.

        Args:
            executor: Exécuteur des requêtes
            tracker: Suivi du statut réseau
            queue: File des requêtes différées
            retry_handler: Gestionnaire de retries
            policy: Politique de retry (défaut: celle de la file)
            features: Activation retry / file / détection offline
            logger: Logger structuré
            owned_executor: Exécuteur fermé par close()
        """
        self._executor = executor
        self._tracker = tracker
        self._queue = queue
        self._retry_handler = retry_handler or RetryHandler()
        self._policy = policy or queue.retry_policy
        self._features = features or FeatureFlags()
        self._logger = logger or StructuredLogger("resilient-gateway")
        self._owned_executor = owned_executor
        self._masker = SensitiveMasker()
        self._closed = False

    @classmethod
    def create(
        cls,
        config: Optional[RecoveryConfig] = None,
        base_url: str = "",
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[IClock] = None,
        signal: Optional[IConnectivitySignal] = None,
    ) -> "ResilientGateway":
        """
        Compose une gateway complète depuis une RecoveryConfig.

        Un client httpx est créé (et possédé) si aucun n'est fourni. Le
        signal plateforme psutil n'est utilisé que si la détection offline
        est activée.

        Args:
            config: Configuration (défauts sinon)
            base_url: Base des URLs relatives
            client: Client httpx existant (non fermé par close())
            clock: Horloge
            signal: Signal de connectivité (défaut: psutil)

        Returns:
            ResilientGateway non démarrée

        Raises:
            ValueError: Si health_url est relative sans base_url (client
                fourni compris) alors que la détection offline est active
        """
        config = config or RecoveryConfig()
        if config.features.enable_offline_detection and not urlsplit(config.probe.health_url).scheme:
            effective_base = str(client.base_url) if client is not None else base_url
            if not effective_base:
                raise ValueError(
                    f"Relative health_url {config.probe.health_url!r} requires a base_url"
                )
        clock = clock or SystemClock()
        log_config = LogConfig(min_level=parse_log_level(config.log_level))

        executor = HttpxExecutor(client=client, base_url=base_url)
        if signal is None and config.features.enable_offline_detection:
            signal = PsutilConnectivitySignal(
                logger=StructuredLogger("connectivity-signal", dataclasses.replace(log_config))
            )

        tracker = StatusTracker(
            config.probe,
            probe=HttpProbe(executor.client, config.probe.health_url, config.probe.method),
            signal=signal,
            clock=clock,
            logger=StructuredLogger("status-tracker", dataclasses.replace(log_config)),
        )
        retry_handler = RetryHandler(config.retry, clock=clock)
        queue = RequestQueue(
            executor,
            tracker,
            config.queue,
            retry_handler=retry_handler,
            policy=config.retry,
            clock=clock,
            logger=StructuredLogger("request-queue", dataclasses.replace(log_config)),
        )
        return cls(
            executor,
            tracker,
            queue,
            retry_handler=retry_handler,
            policy=config.retry,
            features=config.features,
            logger=StructuredLogger("resilient-gateway", dataclasses.replace(log_config)),
            owned_executor=executor if client is None else None,
        )

    @property
    def tracker(self) -> StatusTracker:
        return self._tracker

    @property
    def queue(self) -> RequestQueue:
        return self._queue

    @property
    def features(self) -> FeatureFlags:
        return self._features

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._policy

    async def issue(
        self,
        target: str,
        params: Optional[RequestParams] = None,
        context: Optional[Dict[str, Any]] = None,
        priority: Priority = Priority.NORMAL,
        on_retry: Optional[RetryCallback] = None,
    ) -> GatewayResult:
        """
        GATE_001-003: Exécute ou met en file une requête.

        Processus:
            1. Offline + file activée → QUEUED sans appel réseau (GATE_001)
            2. Retry désactivé → une seule tentative
            3. Sinon max_retries + 1 tentatives, statut revérifié avant
               chaque retry; offline → OFFLINE (GATE_002)
            4. Permanent ou épuisé → FAILED (GATE_003)

        Returns:
            GatewayResult
        """
        request = params or RequestParams()
        log = self._logger.with_context(target=self._masker.mask_url(target))
        correlation_id = log.correlation_id

        if self._features.enable_queue and self._tracker.is_offline():
            metadata = dict(context or {})
            metadata["correlation_id"] = correlation_id
            request_id = self._queue.enqueue(
                target,
                request,
                priority=priority,
                max_retries=self._policy.max_retries,
                metadata=metadata,
            )
            log.info(
                "Network offline, request queued",
                request_id=request_id,
                priority=priority.value,
            )
            return GatewayResult(
                kind=OutcomeKind.QUEUED,
                request_id=request_id,
                correlation_id=correlation_id,
            )

        policy = self._policy
        if not self._features.enable_retry:
            policy = dataclasses.replace(policy, max_retries=0)

        log.debug(
            "Issuing request",
            params=request.to_log_dict(),
            max_attempts=policy.max_attempts,
        )

        def notify_retry(attempt: int, failure: Any, delay: float) -> None:
            log.warn(
                "Request failed, retrying",
                attempt=attempt,
                delay=delay,
                failure=self._describe(failure),
            )
            if on_retry is not None:
                on_retry(attempt, failure, delay)

        outcome = await self._retry_handler.execute_with_retry(
            lambda: self._executor.execute(target, request),
            policy,
            should_abort=self._tracker.is_offline,
            on_retry=notify_retry,
        )

        result = GatewayResult(
            kind=OutcomeKind.COMPLETED,
            response=outcome.result,
            attempts=outcome.attempts,
            total_delay=outcome.total_delay,
            error=outcome.last_error,
            correlation_id=correlation_id,
            delays=list(outcome.delays),
        )

        if outcome.success:
            log.debug("Request completed", attempts=outcome.attempts)
            return result

        if outcome.aborted:
            log.warn(
                "Network went offline, retries aborted",
                attempts=outcome.attempts,
            )
            result.kind = OutcomeKind.OFFLINE
            return result

        result.kind = OutcomeKind.FAILED
        result.exhausted = outcome.exhausted
        log.error(
            "Request failed",
            attempts=outcome.attempts,
            exhausted=outcome.exhausted,
            status_code=result.status_code,
            error=self._describe(outcome.last_error),
        )
        return result

    @staticmethod
    def _describe(failure: Any) -> Optional[str]:
        if failure is None:
            return None
        if isinstance(failure, BaseException):
            return f"{type(failure).__name__}: {failure}"
        status_code = getattr(failure, "status_code", None)
        return f"HTTP {status_code}" if status_code is not None else repr(failure)

    def status(self) -> NetworkStatus:
        return self._tracker.current()

    def subscribe(self, listener: StatusListener) -> Unsubscribe:
        return self._tracker.subscribe(listener)

    def queue_stats(self) -> QueueStats:
        return self._queue.stats()

    def on_settled(self, listener: SettlementListener) -> Unsubscribe:
        """Observateur de fin de vie des requêtes mises en file."""
        return self._queue.on_settled(listener)

    def replace_retry_policy(self, policy: RetryPolicy) -> None:
        self._policy = policy
        self._queue.set_retry_policy(policy)
        self._logger.info(
            "Retry policy replaced",
            max_retries=policy.max_retries,
            base_delay=policy.base_delay,
            max_delay=policy.max_delay,
        )

    def start(self) -> None:
        """
        Démarre la sonde (si détection offline activée) et le flush de file.

        Requiert une boucle asyncio en cours d'exécution.
        """
        if self._closed:
            raise RuntimeError("ResilientGateway is closed")
        if self._features.enable_offline_detection:
            self._tracker.start()
        if self._features.enable_queue:
            self._queue.start()

    async def close(self) -> None:
        """Arrête timers et traitements, ferme le client possédé (idempotent)."""
        if self._closed:
            return
        self._closed = True
        await self._queue.close()
        await self._tracker.close()
        if self._owned_executor is not None:
            await self._owned_executor.aclose()

    async def __aenter__(self) -> "ResilientGateway":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
