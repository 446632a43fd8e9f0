"""
LOT 5: Queueing - Request Queue

File bornée de requêtes différées pendant les coupures réseau.

Invariants:
    QUEUE_001: Taille de la file <= max_queue_size après chaque opération
    QUEUE_002: Débordement = éviction du plus ancien low, puis normal, puis high
    QUEUE_003: Requêtes en cours <= max_concurrent_requests
    QUEUE_004: Un item quitte l'ensemble en cours exactement une fois par tentative
    QUEUE_005: retry_count <= max_retries, au-delà l'item est abandonné
    QUEUE_006: Priorité high insérée en tête de file
    QUEUE_007: Vidage uniquement si statut online ou degraded
"""

import asyncio
import uuid
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Set

from src.connectivity import IStatusTracker, Unsubscribe
from src.logging import SensitiveMasker, StructuredLogger
from src.network import (
    FailureKind,
    IClock,
    IRequestExecutor,
    PeriodicTimer,
    RequestParams,
    RetryHandler,
    RetryPolicy,
    SystemClock,
)

from .interfaces import (
    IRequestQueue,
    Priority,
    QueueConfig,
    QueuedItem,
    QueueOutcome,
    QueueSettlement,
    QueueStats,
    SettlementListener,
)

# Ordre d'éviction (QUEUE_002)
EVICTION_ORDER = (Priority.LOW, Priority.NORMAL, Priority.HIGH)


class RequestQueue(IRequestQueue):
    """
    File de requêtes différées avec priorités et concurrence bornée.

    Le vidage n'est déclenché que par le timer de flush (start) ou par un
    appel explicite à drain(); un retour online ne vide pas la file à lui
    seul. L'appelant d'origine n'est jamais notifié: les observateurs
    on_settled reçoivent l'issue de chaque item.

    Invariants:
        QUEUE_001-007

    Example:
        queue = RequestQueue(executor, tracker)
        request_id = queue.enqueue("/api/orders", RequestParams(method="POST"))
        queue.start()
    """

    def __init__(
        self,
        executor: IRequestExecutor,
        tracker: IStatusTracker,
        config: Optional[QueueConfig] = None,
        retry_handler: Optional[RetryHandler] = None,
        policy: Optional[RetryPolicy] = None,
        clock: Optional[IClock] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        """
        Initialise la file.

        Args:
            executor: Exécuteur des requêtes
            tracker: Source du statut réseau (QUEUE_007)
            config: Configuration de la file
            retry_handler: Classification et calcul des délais
            policy: Politique de retry (défaut: celle du handler)
            clock: Horloge des délais de réinsertion
            logger: Logger structuré
        """
        self._executor = executor
        self._tracker = tracker
        self._config = config or QueueConfig()
        self._clock = clock or SystemClock()
        self._retry_handler = retry_handler or RetryHandler(clock=self._clock)
        self._policy = policy or self._retry_handler.default_policy
        self._logger = logger or StructuredLogger("request-queue")
        self._masker = SensitiveMasker()

        self._items: Deque[QueuedItem] = deque()
        self._processing: Dict[str, asyncio.Task] = {}
        self._requeue_tasks: Set[asyncio.Task] = set()
        self._observers: Dict[int, SettlementListener] = {}
        self._next_token = 0
        self._sequence = 0
        self._timer: Optional[PeriodicTimer] = None
        self._closed = False
        self._counters: Dict[str, int] = {
            "enqueued": 0,
            "completed": 0,
            "retried": 0,
            "dropped": 0,
            "evicted": 0,
        }

    @property
    def config(self) -> QueueConfig:
        return self._config

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._policy

    def set_retry_policy(self, policy: RetryPolicy) -> None:
        """Remplace la politique (items déjà en file compris)."""
        self._policy = policy

    @property
    def size(self) -> int:
        return len(self._items)

    @property
    def processing_count(self) -> int:
        return len(self._processing)

    @property
    def closed(self) -> bool:
        return self._closed

    def enqueue(
        self,
        target: str,
        params: Optional[RequestParams] = None,
        priority: Priority = Priority.NORMAL,
        max_retries: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        QUEUE_001, QUEUE_002, QUEUE_006: Ajoute une requête à la file.

        high en tête, normal/low en queue; la borne est appliquée ensuite
        par éviction (jamais signalée à l'appelant).

        Args:
            target: URL cible
            params: Paramètres de la requête
            priority: Priorité
            max_retries: Retries max (défaut: politique courante)
            metadata: Contexte libre (correlation_id...)

        Returns:
            Identifiant "req_<hex>"

        Raises:
            RuntimeError: Si la file est fermée
        """
        if self._closed:
            raise RuntimeError("RequestQueue is closed")

        self._sequence += 1
        item = QueuedItem(
            id=f"req_{uuid.uuid4().hex}",
            target=target,
            params=params or RequestParams(),
            retry_count=0,
            max_retries=self._policy.max_retries if max_retries is None else max_retries,
            enqueued_at=self._clock.monotonic(),
            priority=priority,
            metadata=dict(metadata or {}),
            sequence=self._sequence,
        )

        if priority == Priority.HIGH:
            self._items.appendleft(item)
        else:
            self._items.append(item)
        self._counters["enqueued"] += 1

        self._logger.info(
            "Request queued",
            correlation_id=item.correlation_id,
            request_id=item.id,
            target=self._masker.mask_url(target),
            priority=priority.value,
            queue_size=len(self._items),
        )

        self._enforce_bound()
        return item.id

    async def drain(self) -> int:
        """
        QUEUE_003, QUEUE_007: Lance jusqu'à la capacité restante.

        Sans effet si le statut n'est ni online ni degraded.

        Returns:
            Nombre d'items lancés
        """
        if self._closed or not self._tracker.is_online():
            return 0

        capacity = self._config.max_concurrent_requests - len(self._processing)
        dispatched = 0
        loop = asyncio.get_running_loop()
        while capacity > 0 and self._items:
            item = self._items.popleft()
            self._processing[item.id] = loop.create_task(
                self._process(item), name=f"queue-{item.id}"
            )
            capacity -= 1
            dispatched += 1

        if dispatched:
            self._logger.debug(
                "Queue drain dispatched",
                dispatched=dispatched,
                processing=len(self._processing),
                queue_size=len(self._items),
            )
        return dispatched

    async def _process(self, item: QueuedItem) -> None:
        """
        QUEUE_004, QUEUE_005: Une tentative, puis completed/retry/drop.

        Retry: délai = backoff(retry_count) puis retry_count += 1,
        réinsertion en tête après le délai.
        """
        policy = self._policy
        response = None
        error: Optional[BaseException] = None
        try:
            try:
                response = await self._executor.execute(item.target, item.params)
                kind = self._retry_handler.classify(policy, response=response)
            except Exception as e:
                error = e
                kind = self._retry_handler.classify(policy, error=e)
        finally:
            self._processing.pop(item.id, None)

        status_code = getattr(response, "status_code", None)

        if kind == FailureKind.NONE:
            self._counters["completed"] += 1
            self._logger.info(
                "Queued request completed",
                correlation_id=item.correlation_id,
                request_id=item.id,
                status_code=status_code,
                retry_count=item.retry_count,
            )
            self._notify(QueueSettlement(item.id, QueueOutcome.COMPLETED, status_code))
            return

        if kind == FailureKind.RETRYABLE and item.retry_count < item.max_retries:
            delay = self._retry_handler.calculate_delay(item.retry_count, policy)
            item.retry_count += 1
            self._counters["retried"] += 1
            self._logger.warn(
                "Queued request failed, retry scheduled",
                correlation_id=item.correlation_id,
                request_id=item.id,
                status_code=status_code,
                error=self._describe(error),
                retry_count=item.retry_count,
                delay=delay,
            )
            self._schedule_requeue(item, delay)
            return

        self._counters["dropped"] += 1
        self._logger.error(
            "Queued request dropped",
            correlation_id=item.correlation_id,
            request_id=item.id,
            target=self._masker.mask_url(item.target),
            status_code=status_code,
            error=self._describe(error),
            retry_count=item.retry_count,
            permanent=kind == FailureKind.PERMANENT,
        )
        self._notify(QueueSettlement(item.id, QueueOutcome.DROPPED, status_code, error))

    def _schedule_requeue(self, item: QueuedItem, delay: float) -> None:
        task = asyncio.get_running_loop().create_task(
            self._requeue_after(item, delay), name=f"requeue-{item.id}"
        )
        self._requeue_tasks.add(task)
        task.add_done_callback(self._requeue_tasks.discard)

    async def _requeue_after(self, item: QueuedItem, delay: float) -> None:
        await self._clock.sleep(delay)
        if self._closed:
            return
        self._items.appendleft(item)
        self._enforce_bound()

    def _enforce_bound(self) -> None:
        """QUEUE_001, QUEUE_002: Évince jusqu'à respecter la borne."""
        while len(self._items) > self._config.max_queue_size:
            victim = self._select_victim()
            self._items.remove(victim)
            self._counters["evicted"] += 1
            self._logger.warn(
                "Queue full, request evicted",
                correlation_id=victim.correlation_id,
                request_id=victim.id,
                priority=victim.priority.value,
                max_queue_size=self._config.max_queue_size,
            )
            self._notify(QueueSettlement(victim.id, QueueOutcome.EVICTED))

    def _select_victim(self) -> QueuedItem:
        for priority in EVICTION_ORDER:
            candidates = [item for item in self._items if item.priority == priority]
            if candidates:
                return min(candidates, key=lambda item: item.sequence)
        raise LookupError("No item to evict")

    def on_settled(self, listener: SettlementListener) -> Unsubscribe:
        """
        Abonne un observateur de fin de vie des items.

        Returns:
            Fonction de désabonnement (idempotente)
        """
        token = self._next_token
        self._next_token += 1
        self._observers[token] = listener

        def unsubscribe() -> None:
            self._observers.pop(token, None)

        return unsubscribe

    def _notify(self, settlement: QueueSettlement) -> None:
        for listener in list(self._observers.values()):
            try:
                listener(settlement)
            except Exception as e:
                self._logger.error(
                    "Settlement observer failed",
                    request_id=settlement.item_id,
                    outcome=settlement.outcome.value,
                    error=self._describe(e),
                )

    @staticmethod
    def _describe(error: Optional[BaseException]) -> Optional[str]:
        if error is None:
            return None
        return f"{type(error).__name__}: {error}"

    def stats(self) -> QueueStats:
        return QueueStats(
            queue_size=len(self._items),
            processing_count=len(self._processing),
            **self._counters,
        )

    def items(self) -> List[QueuedItem]:
        return list(self._items)

    def clear(self) -> int:
        """
        Vide la file d'attente (les requêtes en cours continuent).

        Returns:
            Nombre d'items retirés
        """
        count = len(self._items)
        self._items.clear()
        return count

    def start(self) -> None:
        """
        Démarre le timer de flush (idempotent).

        Raises:
            RuntimeError: Si la file est fermée
        """
        if self._closed:
            raise RuntimeError("RequestQueue is closed")
        if self._timer is not None and self._timer.running:
            return
        self._timer = PeriodicTimer(
            self._config.flush_interval,
            self.drain,
            clock=self._clock,
            name="queue-flush",
            logger=self._logger,
        )
        self._timer.start()

    async def wait_idle(self) -> None:
        """Attend la fin des traitements et réinsertions en cours."""
        while True:
            pending = [
                task
                for task in (*self._processing.values(), *self._requeue_tasks)
                if not task.done()
            ]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        """Arrête le timer, annule traitements et réinsertions, vide la file."""
        if self._closed:
            return
        self._closed = True

        if self._timer is not None:
            await self._timer.stop()
            self._timer = None

        pending = list(self._processing.values()) + list(self._requeue_tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self._processing.clear()
        self._requeue_tasks.clear()
        self._items.clear()
        self._observers.clear()
