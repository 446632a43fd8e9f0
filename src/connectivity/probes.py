"""
LOT 4: Connectivity - Probes

Sonde HTTP de liveness (httpx) et signal plateforme (psutil).
"""

import re
from typing import Optional

import httpx
import psutil

from src.logging import StructuredLogger

from .interfaces import IConnectivitySignal, IProbe

_LOOPBACK_NAME = re.compile(r"^lo\d*$", re.IGNORECASE)


class HttpProbe(IProbe):
    """
    Requête légère (HEAD par défaut) vers l'endpoint de liveness.

    Le timeout dur est appliqué par le StatusTracker; la sonde ne fait
    que la requête.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        health_url: str = "/api/health",
        method: str = "HEAD",
    ) -> None:
        self._client = client
        self._health_url = health_url
        self._method = method.upper()

    @property
    def health_url(self) -> str:
        return self._health_url

    async def probe(self) -> bool:
        response = await self._client.request(self._method, self._health_url)
        return response.is_success


class PsutilConnectivitySignal(IConnectivitySignal):
    """
    Signal de connectivité déduit des interfaces réseau locales.

    Connecté si au moins une interface hors loopback est active.
    """

    def __init__(self, logger: Optional[StructuredLogger] = None) -> None:
        self._logger = logger or StructuredLogger("connectivity-signal")

    def is_connected(self) -> Optional[bool]:
        """
        STATUS_006: Lit l'état des interfaces via psutil.net_if_stats.

        Returns:
            True si une interface hors loopback est up, False si toutes
            sont down, None si aucune interface hors loopback ou lecture
            impossible
        """
        try:
            stats = psutil.net_if_stats()
        except Exception as e:
            self._logger.debug(
                "Interface stats unavailable",
                error=f"{type(e).__name__}: {e}",
            )
            return None

        interfaces = [
            stat for name, stat in stats.items() if not self.is_loopback(name)
        ]
        if not interfaces:
            return None
        return any(stat.isup for stat in interfaces)

    @staticmethod
    def is_loopback(name: str) -> bool:
        """True pour lo, lo0, "Loopback Pseudo-Interface 1"..."""
        return bool(_LOOPBACK_NAME.match(name)) or "loopback" in name.lower()
