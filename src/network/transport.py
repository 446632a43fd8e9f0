"""
LOT 3: Network - Transport

Exécuteur de requêtes basé sur httpx.AsyncClient.
"""

from typing import Any, Dict, Optional

import httpx

from .interfaces import IRequestExecutor, RequestParams


class HttpxExecutor(IRequestExecutor):
    """
    Exécute RequestParams via un httpx.AsyncClient.

    Le client est possédé (et fermé par aclose) uniquement s'il a été créé
    ici. Aucune logique de retry: un status non-2xx est retourné tel quel,
    les erreurs transport (httpx.ConnectError, httpx.ReadTimeout...) sont
    propagées pour classification par le RetryHandler.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = "",
        default_timeout: float = 30.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=default_timeout,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def execute(self, target: str, params: RequestParams) -> httpx.Response:
        kwargs: Dict[str, Any] = {}
        if params.headers:
            kwargs["headers"] = params.headers
        if params.query:
            kwargs["params"] = params.query
        if params.json is not None:
            kwargs["json"] = params.json
        if params.content is not None:
            kwargs["content"] = params.content
        if params.data:
            kwargs["data"] = params.data
        if params.files:
            kwargs["files"] = params.files
        if params.timeout is not None:
            kwargs["timeout"] = params.timeout

        return await self._client.request(params.method.upper(), target, **kwargs)

    async def aclose(self) -> None:
        """Ferme le client s'il est possédé."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()
