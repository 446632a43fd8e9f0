"""
LOT 4: Connectivity - Status Tracker

Suivi du statut réseau par sonde périodique et signal plateforme.

Invariants:
    STATUS_001: Statut publié uniquement sur changement effectif
    STATUS_002: Échec/timeout de sonde = offline, jamais d'exception propagée
    STATUS_003: Sonde < degraded_threshold = online, sinon degraded
    STATUS_004: close() idempotent, timer arrêté et abonnés vidés
    STATUS_005: Un abonné en échec ne bloque pas les suivants
    STATUS_006: Signal plateforme déconnecté = offline sans sonde
"""

import asyncio
from typing import Dict, Optional

from src.logging import StructuredLogger
from src.network import IClock, PeriodicTimer, SystemClock

from .interfaces import (
    IConnectivitySignal,
    IProbe,
    IStatusTracker,
    NetworkStatus,
    ProbeConfig,
    StatusListener,
    Unsubscribe,
)


class StatusTracker(IStatusTracker):
    """
    Source unique du statut réseau courant.

    Les abonnés sont notifiés de façon synchrone, dans l'ordre d'abonnement,
    à partir d'un snapshot de la liste. Une mise à jour déclenchée depuis un
    abonné n'est jamais livrée en imbrication: elle est enregistrée puis
    livrée après la ronde en cours.

    Invariants:
        STATUS_001-006

    Example:
        tracker = StatusTracker(ProbeConfig(), probe=HttpProbe(client))
        unsubscribe = tracker.subscribe(lambda s: print(s.value))
        tracker.start()
        ...
        await tracker.close()
    """

    def __init__(
        self,
        config: Optional[ProbeConfig] = None,
        probe: Optional[IProbe] = None,
        signal: Optional[IConnectivitySignal] = None,
        clock: Optional[IClock] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        """
        Initialise le tracker.

        Le statut initial provient du signal plateforme s'il est disponible,
        sinon UNKNOWN.

        Args:
            config: Configuration de sonde
            probe: Sonde de liveness (sans sonde, seul le signal compte)
            signal: Signal de connectivité plateforme
            clock: Horloge (mesure de latence, intervalles)
            logger: Logger structuré
        """
        self._config = config or ProbeConfig()
        self._probe = probe
        self._signal = signal
        self._clock = clock or SystemClock()
        self._logger = logger or StructuredLogger("status-tracker")

        self._listeners: Dict[int, StatusListener] = {}
        self._next_token = 0
        self._timer: Optional[PeriodicTimer] = None
        self._closed = False

        # Garde de ré-entrance
        self._notifying = False
        self._pending = False

        connected = self._read_signal()
        if connected is None:
            self._status = NetworkStatus.UNKNOWN
        else:
            self._status = NetworkStatus.ONLINE if connected else NetworkStatus.OFFLINE
        self._last_delivered = self._status
        self._last_latency: Optional[float] = None

    @property
    def config(self) -> ProbeConfig:
        return self._config

    @property
    def subscriber_count(self) -> int:
        """Nombre d'abonnés actifs."""
        return len(self._listeners)

    @property
    def last_latency(self) -> Optional[float]:
        """Durée de la dernière sonde réussie (secondes)."""
        return self._last_latency

    @property
    def closed(self) -> bool:
        return self._closed

    def current(self) -> NetworkStatus:
        return self._status

    def is_online(self) -> bool:
        return self._status in (NetworkStatus.ONLINE, NetworkStatus.DEGRADED)

    def is_offline(self) -> bool:
        return self._status == NetworkStatus.OFFLINE

    def is_degraded(self) -> bool:
        return self._status == NetworkStatus.DEGRADED

    def start(self) -> None:
        """
        Démarre la sonde périodique (idempotent).

        Première sonde immédiate, puis toutes les check_interval secondes.

        Raises:
            RuntimeError: Si le tracker est fermé
        """
        if self._closed:
            raise RuntimeError("StatusTracker is closed")
        if self._timer is not None and self._timer.running:
            return

        self._timer = PeriodicTimer(
            self._config.check_interval,
            self.check_now,
            clock=self._clock,
            name="status-probe",
            logger=self._logger,
            run_immediately=True,
        )
        self._timer.start()

    async def check_now(self) -> NetworkStatus:
        """
        STATUS_002, STATUS_003, STATUS_006: Évalue le statut immédiatement.

        Processus:
            1. Signal plateforme déconnecté → offline, pas de sonde
            2. Sonde avec timeout dur timeout_threshold
            3. Succès sous degraded_threshold → online, sinon degraded
            4. Échec, exception ou timeout → offline

        Returns:
            Statut courant après évaluation
        """
        if self._closed:
            return self._status

        connected = self._read_signal()
        if connected is False:
            self._set_status(NetworkStatus.OFFLINE)
            return self._status

        if self._probe is None:
            if connected:
                self._set_status(NetworkStatus.ONLINE)
            return self._status

        started = self._clock.monotonic()
        try:
            ok = await asyncio.wait_for(
                self._probe.probe(),
                timeout=self._config.timeout_threshold,
            )
        except asyncio.TimeoutError:
            self._logger.warn(
                "Health probe timed out",
                health_url=self._config.health_url,
                timeout=self._config.timeout_threshold,
            )
            ok = False
        except Exception as e:
            self._logger.warn(
                "Health probe failed",
                health_url=self._config.health_url,
                error=f"{type(e).__name__}: {e}",
            )
            ok = False

        if self._closed:
            return self._status

        if not ok:
            self._set_status(NetworkStatus.OFFLINE)
            return self._status

        latency = self._clock.monotonic() - started
        self._last_latency = latency
        if latency > self._config.degraded_threshold:
            self._set_status(NetworkStatus.DEGRADED)
        else:
            self._set_status(NetworkStatus.ONLINE)
        return self._status

    def handle_connectivity_change(self, connected: bool) -> None:
        """Évènement plateforme: autoritaire pour le passage offline."""
        self._set_status(NetworkStatus.ONLINE if connected else NetworkStatus.OFFLINE)

    def subscribe(self, listener: StatusListener) -> Unsubscribe:
        """
        Abonne listener aux changements de statut.

        Args:
            listener: Appelé avec le nouveau statut

        Returns:
            Fonction de désabonnement (idempotente)
        """
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = listener

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    async def close(self) -> None:
        """STATUS_004: Arrête le timer et vide les abonnés (idempotent)."""
        if self._closed:
            return
        self._closed = True
        if self._timer is not None:
            await self._timer.stop()
            self._timer = None
        self._listeners.clear()

    def _read_signal(self) -> Optional[bool]:
        if self._signal is None:
            return None
        try:
            return self._signal.is_connected()
        except Exception as e:
            self._logger.warn(
                "Connectivity signal unavailable",
                error=f"{type(e).__name__}: {e}",
            )
            return None

    def _set_status(self, status: NetworkStatus) -> None:
        """
        STATUS_001, STATUS_005: Met à jour et notifie si changement.

        Appelé depuis un abonné, la mise à jour est différée à la fin de
        la ronde courante. Aucun doublon n'est livré si le statut revient
        à la dernière valeur livrée.
        """
        if self._closed or status == self._status:
            return

        previous = self._status
        self._status = status
        self._logger.info(
            "Network status changed",
            previous=previous.value,
            status=status.value,
        )

        if self._notifying:
            self._pending = True
            return

        self._notifying = True
        try:
            while True:
                self._pending = False
                delivered = self._status
                if delivered == self._last_delivered:
                    break
                self._last_delivered = delivered
                for listener in list(self._listeners.values()):
                    try:
                        listener(delivered)
                    except Exception as e:
                        self._logger.error(
                            "Status subscriber failed",
                            status=delivered.value,
                            error=f"{type(e).__name__}: {e}",
                        )
                if not self._pending:
                    break
        finally:
            self._notifying = False
