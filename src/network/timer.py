"""
LOT 3: Network - Periodic Timer

Tâche asyncio périodique possédée par son composant (sonde de statut,
vidage de la file). Annulée sur tous les chemins de sortie.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from src.logging import StructuredLogger

from .clock import SystemClock
from .interfaces import IClock


class PeriodicTimer:
    """
    Appelle callback toutes les interval secondes.

    Une exception levée par callback est journalisée et la boucle continue;
    asyncio.CancelledError se propage toujours.

    Example:
        timer = PeriodicTimer(5.0, queue.drain, name="queue-flush")
        timer.start()
        ...
        await timer.stop()
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Awaitable[object]],
        clock: Optional[IClock] = None,
        name: str = "periodic-timer",
        logger: Optional[StructuredLogger] = None,
        run_immediately: bool = False,
    ) -> None:
        """
        Args:
            interval: Intervalle en secondes (> 0)
            callback: Coroutine function sans argument
            clock: Horloge (défaut: SystemClock)
            name: Nom de la tâche asyncio
            logger: Logger pour les échecs du callback
            run_immediately: Premier appel avant la première attente

        Raises:
            ValueError: Si interval <= 0
        """
        if interval <= 0:
            raise ValueError(f"Timer interval must be positive, got {interval}")

        self._interval = interval
        self._callback = callback
        self._clock = clock or SystemClock()
        self._name = name
        self._logger = logger or StructuredLogger(name)
        self._run_immediately = run_immediately
        self._task: Optional[asyncio.Task] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        """True si la tâche est active."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """
        Démarre la boucle (idempotent).

        Requiert une boucle asyncio en cours d'exécution.
        """
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)

    async def stop(self) -> None:
        """Annule la boucle et attend sa fin (idempotent)."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            # Ne propager que si c'est l'appelant lui-même qui est annulé
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise

    async def _run(self) -> None:
        if self._run_immediately:
            await self._tick()
        while True:
            await self._clock.sleep(self._interval)
            await self._tick()

    async def _tick(self) -> None:
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._logger.error(
                "Periodic callback failed",
                timer=self._name,
                error=f"{type(e).__name__}: {e}",
            )
