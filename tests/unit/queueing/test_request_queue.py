"""
Tests unitaires pour LOT 5: Queueing - RequestQueue

Tests des invariants:
- QUEUE_001: Taille de la file <= max_queue_size après chaque opération
- QUEUE_002: Débordement = éviction du plus ancien low, puis normal, puis high
- QUEUE_003: Requêtes en cours <= max_concurrent_requests
- QUEUE_004: Un item quitte l'ensemble en cours exactement une fois par tentative
- QUEUE_005: retry_count <= max_retries, au-delà l'item est abandonné
- QUEUE_006: Priorité high insérée en tête de file
- QUEUE_007: Vidage uniquement si statut online ou degraded
"""

import asyncio
import json

import httpx
import pytest

from src.connectivity import StatusTracker
from src.logging import LogLevel
from src.network import RequestParams, RetryHandler, RetryPolicy
from src.queueing import (
    IRequestQueue,
    Priority,
    QueueConfig,
    QueueOutcome,
    QueueSettlement,
    RequestQueue,
)
from tests.fakes import FakeClock, ScriptedExecutor


class BlockingExecutor(ScriptedExecutor):
    """Exécuteur bloqué jusqu'à release()."""

    def __init__(self) -> None:
        super().__init__(200)
        self.gate = asyncio.Event()
        self.in_flight = 0
        self.max_in_flight = 0

    async def execute(self, target, params):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await self.gate.wait()
            return await super().execute(target, params)
        finally:
            self.in_flight -= 1

    def release(self) -> None:
        self.gate.set()


# ══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def executor() -> ScriptedExecutor:
    return ScriptedExecutor(200)


@pytest.fixture
def settlements() -> list:
    return []


@pytest.fixture
def make_queue(tracker: StatusTracker, clock: FakeClock, make_logger, settlements: list):
    created = []

    def factory(executor, config: QueueConfig = None, policy: RetryPolicy = None) -> RequestQueue:
        queue = RequestQueue(
            executor,
            tracker,
            config or QueueConfig(),
            retry_handler=RetryHandler(clock=clock),
            policy=policy,
            clock=clock,
            logger=make_logger("request-queue"),
        )
        queue.on_settled(settlements.append)
        created.append(queue)
        return queue

    return factory


@pytest.fixture
def queue(make_queue, executor: ScriptedExecutor) -> RequestQueue:
    return make_queue(executor)


def targets(queue: RequestQueue) -> list:
    return [item.target for item in queue.items()]


class TestQueueEnqueue:
    """Ajout en file."""

    def test_enqueue_returns_request_id(self, queue: RequestQueue, clock: FakeClock) -> None:
        request_id = queue.enqueue("/api/orders", RequestParams(method="POST"), metadata={"source": "form"})
        item = queue.items()[0]

        assert request_id.startswith("req_")
        assert item.id == request_id
        assert item.retry_count == 0
        assert item.max_retries == 3
        assert item.enqueued_at == clock.now
        assert item.priority == Priority.NORMAL
        assert item.metadata == {"source": "form"}

    def test_ids_are_unique(self, queue: RequestQueue) -> None:
        ids = {queue.enqueue(f"/api/{i}") for i in range(50)}

        assert len(ids) == 50

    def test_max_retries_override(self, queue: RequestQueue) -> None:
        queue.enqueue("/a", max_retries=1)

        assert queue.items()[0].max_retries == 1

    def test_enqueue_logs_masked_target(self, queue: RequestQueue, captured_lines: list) -> None:
        """LOG_005: Token de query string masqué dans le log d'ajout."""
        queue.enqueue("/api/files?token=abc123", metadata={"correlation_id": "corr-1"})

        entry = json.loads(captured_lines[-1])
        assert entry["message"] == "Request queued"
        assert entry["correlation_id"] == "corr-1"
        assert "abc123" not in captured_lines[-1]


class TestQUEUE006Priority:
    """Tests QUEUE_006: Priorité high en tête."""

    def test_QUEUE_006_high_inserted_at_head(self, queue: RequestQueue) -> None:
        """QUEUE_006: high en tête, normal/low en queue."""
        queue.enqueue("/normal")
        queue.enqueue("/low", priority=Priority.LOW)
        queue.enqueue("/high", priority=Priority.HIGH)

        assert targets(queue) == ["/high", "/normal", "/low"]

    def test_QUEUE_006_latest_high_first(self, queue: RequestQueue) -> None:
        queue.enqueue("/high-1", priority=Priority.HIGH)
        queue.enqueue("/high-2", priority=Priority.HIGH)

        assert targets(queue) == ["/high-2", "/high-1"]


class TestQUEUE001QUEUE002Bound:
    """Tests QUEUE_001/QUEUE_002: File bornée, éviction par priorité."""

    def test_QUEUE_001_size_never_exceeds_max(self, make_queue, executor) -> None:
        """QUEUE_001: Taille <= max après chaque ajout."""
        queue = make_queue(executor, QueueConfig(max_queue_size=5))
        priorities = [Priority.LOW, Priority.NORMAL, Priority.HIGH]

        for i in range(40):
            queue.enqueue(f"/r{i}", priority=priorities[i % 3])
            assert queue.size <= 5

    def test_QUEUE_002_oldest_low_evicted_first(self, make_queue, executor, settlements: list) -> None:
        """QUEUE_002: File pleine = plus ancien low évincé."""
        queue = make_queue(executor, QueueConfig(max_queue_size=3))
        evicted = queue.enqueue("/low-old", priority=Priority.LOW)
        queue.enqueue("/normal")
        queue.enqueue("/low-new", priority=Priority.LOW)

        queue.enqueue("/normal-2")

        assert targets(queue) == ["/normal", "/low-new", "/normal-2"]
        assert settlements == [QueueSettlement(evicted, QueueOutcome.EVICTED)]

    def test_QUEUE_002_falls_back_to_normal_then_high(self, make_queue, executor) -> None:
        """QUEUE_002: Sans low, plus ancien normal; sans normal, plus ancien high."""
        queue = make_queue(executor, QueueConfig(max_queue_size=2))
        queue.enqueue("/high-1", priority=Priority.HIGH)
        queue.enqueue("/normal-1")

        queue.enqueue("/high-2", priority=Priority.HIGH)
        assert targets(queue) == ["/high-2", "/high-1"]

        queue.enqueue("/high-3", priority=Priority.HIGH)
        assert targets(queue) == ["/high-3", "/high-2"]

    def test_QUEUE_002_incoming_low_can_be_evicted(self, make_queue, executor, settlements: list) -> None:
        """QUEUE_002: Nouveau low seul low de la file = évincé lui-même."""
        queue = make_queue(executor, QueueConfig(max_queue_size=1))
        queue.enqueue("/normal")

        request_id = queue.enqueue("/low", priority=Priority.LOW)

        assert targets(queue) == ["/normal"]
        assert settlements[-1].item_id == request_id

    def test_QUEUE_002_eviction_logged_as_warning(self, make_queue, executor) -> None:
        queue = make_queue(executor, QueueConfig(max_queue_size=1))
        queue.enqueue("/a", priority=Priority.LOW)
        queue.enqueue("/b")

        warnings = queue._logger.get_entries_by_level(LogLevel.WARN)
        assert [e.message for e in warnings] == ["Queue full, request evicted"]
        assert queue.stats().evicted == 1

    def test_QUEUE_002_full_of_low_drops_oldest_low(self, make_queue, executor, settlements: list) -> None:
        """QUEUE_002: File pleine de low + un low = le plus ancien disparaît."""
        queue = make_queue(executor, QueueConfig(max_queue_size=3))
        oldest = queue.enqueue("/low-1", priority=Priority.LOW)
        queue.enqueue("/low-2", priority=Priority.LOW)
        queue.enqueue("/low-3", priority=Priority.LOW)

        queue.enqueue("/low-4", priority=Priority.LOW)

        assert targets(queue) == ["/low-2", "/low-3", "/low-4"]
        assert settlements == [QueueSettlement(oldest, QueueOutcome.EVICTED)]

    @pytest.mark.asyncio
    async def test_QUEUE_002_eviction_leaves_processing_untouched(self, make_queue, settlements: list) -> None:
        """QUEUE_002/QUEUE_004: Évincer un item jamais lancé ne touche pas aux requêtes en cours."""
        executor = BlockingExecutor()
        queue = make_queue(executor, QueueConfig(max_queue_size=2, max_concurrent_requests=2))
        queue.enqueue("/in-flight-1")
        queue.enqueue("/in-flight-2")
        assert await queue.drain() == 2
        await asyncio.sleep(0)
        assert queue.processing_count == 2

        evicted = queue.enqueue("/low-old", priority=Priority.LOW)
        queue.enqueue("/normal-1")
        queue.enqueue("/normal-2")

        assert queue.processing_count == 2
        assert executor.in_flight == 2
        assert targets(queue) == ["/normal-1", "/normal-2"]
        assert settlements == [QueueSettlement(evicted, QueueOutcome.EVICTED)]

        executor.release()
        await queue.wait_idle()
        assert await queue.drain() == 2
        await queue.wait_idle()

        dispatched = sorted(target for target, _ in executor.calls)
        assert dispatched == ["/in-flight-1", "/in-flight-2", "/normal-1", "/normal-2"]
        assert queue.processing_count == 0
        assert [s.item_id for s in settlements].count(evicted) == 1


class TestQUEUE007DrainConditions:
    """Tests QUEUE_007: Vidage conditionné au statut."""

    @pytest.mark.asyncio
    async def test_QUEUE_007_offline_no_drain(self, queue: RequestQueue, tracker: StatusTracker, executor) -> None:
        """QUEUE_007: Offline = aucun lancement."""
        tracker.handle_connectivity_change(False)
        queue.enqueue("/a")

        assert await queue.drain() == 0
        assert queue.size == 1
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_QUEUE_007_unknown_no_drain(self, executor, clock: FakeClock) -> None:
        """QUEUE_007: Unknown = aucun lancement."""
        queue = RequestQueue(executor, StatusTracker(clock=clock), clock=clock)
        queue.enqueue("/a")

        assert await queue.drain() == 0

    @pytest.mark.asyncio
    async def test_QUEUE_007_reconnect_alone_does_not_drain(
        self, queue: RequestQueue, tracker: StatusTracker, executor
    ) -> None:
        """Retour online sans flush = file intacte."""
        tracker.handle_connectivity_change(False)
        queue.enqueue("/a")
        tracker.handle_connectivity_change(True)
        await asyncio.sleep(0)

        assert queue.size == 1
        assert executor.calls == []


class TestQUEUE003Concurrency:
    """Tests QUEUE_003: Concurrence bornée."""

    @pytest.mark.asyncio
    async def test_QUEUE_003_dispatch_limited_by_capacity(self, make_queue) -> None:
        """QUEUE_003: Au plus max_concurrent_requests en cours."""
        executor = BlockingExecutor()
        queue = make_queue(executor, QueueConfig(max_concurrent_requests=2))
        for i in range(5):
            queue.enqueue(f"/r{i}")

        assert await queue.drain() == 2
        await asyncio.sleep(0)
        assert queue.processing_count == 2
        assert await queue.drain() == 0
        assert queue.size == 3

        executor.release()
        await queue.wait_idle()
        assert await queue.drain() == 2
        await queue.wait_idle()
        assert await queue.drain() == 1
        await queue.wait_idle()

        assert executor.max_in_flight == 2
        assert queue.size == 0

    @pytest.mark.asyncio
    async def test_QUEUE_003_dispatch_order_follows_queue(self, make_queue) -> None:
        executor = ScriptedExecutor(200)
        queue = make_queue(executor, QueueConfig(max_concurrent_requests=1))
        queue.enqueue("/normal")
        queue.enqueue("/high", priority=Priority.HIGH)

        await queue.drain()
        await queue.wait_idle()

        assert [target for target, _ in executor.calls] == ["/high"]


class TestQUEUE004ProcessingExit:
    """Tests QUEUE_004: Sortie unique de l'ensemble en cours."""

    @pytest.mark.asyncio
    async def test_QUEUE_004_success_leaves_processing(self, queue: RequestQueue, settlements: list) -> None:
        """QUEUE_004: Succès = sortie de processing, completed."""
        request_id = queue.enqueue("/a")

        await queue.drain()
        await queue.wait_idle()

        assert queue.processing_count == 0
        assert queue.size == 0
        assert settlements == [QueueSettlement(request_id, QueueOutcome.COMPLETED, 200)]
        assert queue.stats().completed == 1

    @pytest.mark.asyncio
    async def test_QUEUE_004_failure_leaves_processing(self, make_queue, settlements: list) -> None:
        """QUEUE_004: Erreur = sortie de processing avant retry."""
        queue = make_queue(ScriptedExecutor(httpx.ConnectError("connection refused")))
        queue.enqueue("/a")

        await queue.drain()
        await queue.wait_idle()

        assert queue.processing_count == 0
        assert queue.size == 1
        assert queue.items()[0].retry_count == 1


class TestQUEUE005RetryBound:
    """Tests QUEUE_005: retry_count <= max_retries."""

    @pytest.mark.asyncio
    async def test_QUEUE_005_retry_then_drop(
        self, make_queue, clock: FakeClock, settlements: list
    ) -> None:
        """QUEUE_005: Délais 1s, 2s puis abandon après max_retries."""
        executor = ScriptedExecutor(503)
        queue = make_queue(executor)
        request_id = queue.enqueue("/a", max_retries=2)

        for expected_retry_count in (1, 2):
            await queue.drain()
            await queue.wait_idle()
            assert queue.items()[0].retry_count == expected_retry_count
            assert queue.items()[0].retry_count <= 2

        await queue.drain()
        await queue.wait_idle()

        assert len(executor.calls) == 3
        assert clock.sleeps == [1.0, 2.0]
        assert queue.size == 0
        assert settlements[-1].item_id == request_id
        assert settlements[-1].outcome == QueueOutcome.DROPPED
        assert settlements[-1].status_code == 503
        errors = queue._logger.get_entries_by_level(LogLevel.ERROR)
        assert [e.message for e in errors] == ["Queued request dropped"]

    @pytest.mark.asyncio
    async def test_QUEUE_005_permanent_failure_dropped_immediately(
        self, make_queue, clock: FakeClock, settlements: list
    ) -> None:
        """Permanent = abandon sans retry."""
        queue = make_queue(ScriptedExecutor(400))
        queue.enqueue("/a")

        await queue.drain()
        await queue.wait_idle()

        assert queue.size == 0
        assert clock.sleeps == []
        assert settlements[-1].outcome == QueueOutcome.DROPPED

    @pytest.mark.asyncio
    async def test_QUEUE_005_requeued_at_head(self, make_queue) -> None:
        """Retry réinséré en tête de file."""
        executor = ScriptedExecutor(503, 200)
        queue = make_queue(executor, QueueConfig(max_concurrent_requests=1))
        queue.enqueue("/first")
        queue.enqueue("/second")

        await queue.drain()
        await queue.wait_idle()

        assert targets(queue) == ["/first", "/second"]

    @pytest.mark.asyncio
    async def test_QUEUE_005_requeue_enforces_bound(self, make_queue, settlements: list) -> None:
        """QUEUE_001: Réinsertion dans une file pleine = éviction."""
        executor = BlockingExecutor()
        executor.steps = [503]
        queue = make_queue(executor, QueueConfig(max_queue_size=2, max_concurrent_requests=1))
        queue.enqueue("/retrying", priority=Priority.HIGH)
        await queue.drain()
        queue.enqueue("/low", priority=Priority.LOW)
        queue.enqueue("/normal")

        executor.release()
        await queue.wait_idle()

        assert targets(queue) == ["/retrying", "/normal"]
        assert settlements[-1].outcome == QueueOutcome.EVICTED

    @pytest.mark.asyncio
    async def test_QUEUE_005_policy_replacement(self, make_queue, clock: FakeClock) -> None:
        """Nouvelle politique appliquée aux retries suivants."""
        queue = make_queue(ScriptedExecutor(503))
        queue.enqueue("/a")
        queue.set_retry_policy(RetryPolicy(base_delay=0.25))

        await queue.drain()
        await queue.wait_idle()

        assert clock.sleeps == [0.25]
        assert queue.retry_policy.base_delay == 0.25


class TestQueueLifecycle:
    """start / close / clear."""

    @pytest.mark.asyncio
    async def test_flush_timer_drains(self, make_queue, executor, clock: FakeClock) -> None:
        queue = make_queue(executor, QueueConfig(flush_interval=5.0))
        queue.enqueue("/a")

        queue.start()
        for _ in range(10):
            await asyncio.sleep(0)
        await queue.wait_idle()
        await queue.close()

        assert len(executor.calls) == 1
        assert clock.sleeps[0] == 5.0

    @pytest.mark.asyncio
    async def test_close_cancels_in_flight(self, make_queue) -> None:
        executor = BlockingExecutor()
        queue = make_queue(executor)
        queue.enqueue("/a")
        queue.enqueue("/b")
        await queue.drain()
        await asyncio.sleep(0)

        await queue.close()
        await queue.close()

        assert queue.processing_count == 0
        assert queue.size == 0
        assert executor.in_flight == 0
        with pytest.raises(RuntimeError):
            queue.enqueue("/c")
        with pytest.raises(RuntimeError):
            queue.start()
        assert await queue.drain() == 0

    @pytest.mark.asyncio
    async def test_close_cancels_pending_requeue(self, tracker: StatusTracker, make_logger) -> None:
        """Réinsertion en attente annulée par close()."""

        class SlowClock(FakeClock):
            async def sleep(self, delay: float) -> None:
                self.sleeps.append(delay)
                await asyncio.sleep(3600)

        queue = RequestQueue(
            ScriptedExecutor(503),
            tracker,
            clock=SlowClock(),
            logger=make_logger("request-queue"),
        )
        queue.enqueue("/a")
        await queue.drain()
        for _ in range(5):
            await asyncio.sleep(0)
        assert len(queue._requeue_tasks) == 1

        await queue.close()

        assert queue.size == 0
        assert not queue._requeue_tasks

    def test_clear(self, queue: RequestQueue) -> None:
        queue.enqueue("/a")
        queue.enqueue("/b")

        assert queue.clear() == 2
        assert queue.size == 0

    def test_stats(self, queue: RequestQueue) -> None:
        queue.enqueue("/a")
        stats = queue.stats()

        assert stats.queue_size == 1
        assert stats.processing_count == 0
        assert stats.enqueued == 1

    def test_items_snapshot(self, queue: RequestQueue) -> None:
        queue.enqueue("/a")
        snapshot = queue.items()
        snapshot.clear()

        assert queue.size == 1


class TestSettlementObservers:
    """Observateurs on_settled."""

    def test_unsubscribe(self, make_queue, executor) -> None:
        queue = make_queue(executor, QueueConfig(max_queue_size=1))
        seen = []
        unsubscribe = queue.on_settled(seen.append)
        unsubscribe()
        unsubscribe()

        queue.enqueue("/a", priority=Priority.LOW)
        queue.enqueue("/b")

        assert seen == []

    def test_failing_observer_logged(self, make_queue, executor, settlements: list) -> None:
        queue = make_queue(executor, QueueConfig(max_queue_size=1))

        def broken(settlement: QueueSettlement) -> None:
            raise RuntimeError("observer down")

        queue.on_settled(broken)
        queue.enqueue("/a", priority=Priority.LOW)
        queue.enqueue("/b")

        assert len(settlements) == 1
        errors = queue._logger.get_entries_by_level(LogLevel.ERROR)
        assert [e.message for e in errors] == ["Settlement observer failed"]


class TestInterface:
    def test_implements_interface(self, queue: RequestQueue) -> None:
        assert isinstance(queue, IRequestQueue)
