"""
LOT 6: Gateway - Helpers

Helpers typés au-dessus de ResilientGateway.issue(): décodage JSON,
verbes HTTP, upload multipart et traitement par lots.

Les issues non-COMPLETED sont converties en exceptions (GATE_003).
"""

import asyncio
import dataclasses
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from src.network import RequestParams

from .interfaces import GatewayResult, IResilientGateway, OutcomeKind


class RequestQueuedError(Exception):
    """Requête mise en file: le réseau est coupé."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Request queued while offline: {request_id}")


class NetworkOfflineError(Exception):
    """Réseau coupé pendant les retries - GATE_002."""

    def __init__(self, result: Optional[GatewayResult] = None) -> None:
        self.result = result
        super().__init__("Network went offline before the request could complete")


class RequestFailedError(Exception):
    """Échec permanent ou retries épuisés - GATE_003."""

    def __init__(self, result: GatewayResult) -> None:
        self.result = result
        if result.error is not None:
            detail = f"{type(result.error).__name__}: {result.error}"
        else:
            detail = f"HTTP {result.status_code}"
        suffix = " after retries exhausted" if result.exhausted else ""
        super().__init__(f"Request failed ({detail}){suffix}")

    @property
    def status_code(self) -> Optional[int]:
        return self.result.status_code


BatchRequest = Union[str, Tuple[str, Optional[RequestParams]]]
ProgressCallback = Callable[[int, int], None]


def unwrap(result: GatewayResult) -> GatewayResult:
    """
    Convertit une issue non-COMPLETED en exception.

    Raises:
        RequestQueuedError: QUEUED
        NetworkOfflineError: OFFLINE
        RequestFailedError: FAILED
    """
    if result.kind == OutcomeKind.QUEUED:
        raise RequestQueuedError(result.request_id)
    if result.kind == OutcomeKind.OFFLINE:
        raise NetworkOfflineError(result)
    if result.kind == OutcomeKind.FAILED:
        raise RequestFailedError(result)
    return result


async def fetch_json(
    gateway: IResilientGateway,
    target: str,
    params: Optional[RequestParams] = None,
    **issue_kwargs: Any,
) -> Any:
    """
    Exécute une requête et décode la réponse JSON.

    Args:
        gateway: Gateway résiliente
        target: URL cible
        params: Paramètres (Accept/Content-Type JSON ajoutés)
        **issue_kwargs: context, priority, on_retry

    Returns:
        Corps JSON décodé, None si réponse vide

    Raises:
        RequestQueuedError, NetworkOfflineError, RequestFailedError
    """
    request = params or RequestParams()
    headers = {"Accept": "application/json"}
    if request.json is not None:
        headers["Content-Type"] = "application/json"
    headers.update(request.headers)
    request = dataclasses.replace(request, headers=headers)

    result = unwrap(await gateway.issue(target, request, **issue_kwargs))
    if not result.response.content:
        return None
    return result.response.json()


async def get_json(gateway: IResilientGateway, target: str, **kwargs: Any) -> Any:
    return await fetch_json(gateway, target, RequestParams(method="GET"), **kwargs)


async def post_json(gateway: IResilientGateway, target: str, data: Any = None, **kwargs: Any) -> Any:
    return await fetch_json(gateway, target, RequestParams(method="POST", json=data), **kwargs)


async def put_json(gateway: IResilientGateway, target: str, data: Any = None, **kwargs: Any) -> Any:
    return await fetch_json(gateway, target, RequestParams(method="PUT", json=data), **kwargs)


async def delete_json(gateway: IResilientGateway, target: str, **kwargs: Any) -> Any:
    return await fetch_json(gateway, target, RequestParams(method="DELETE"), **kwargs)


async def upload_file(
    gateway: IResilientGateway,
    target: str,
    filename: str,
    content: bytes,
    field_name: str = "file",
    content_type: str = "application/octet-stream",
    fields: Optional[dict] = None,
    **kwargs: Any,
) -> GatewayResult:
    """
    Upload multipart d'un fichier.

    Le résultat brut est retourné: une requête mise en file reste un
    résultat QUEUED, pas une exception.

    Args:
        gateway: Gateway résiliente
        target: URL cible
        filename: Nom du fichier
        content: Contenu
        field_name: Nom du champ multipart
        content_type: Type MIME du fichier
        fields: Champs de formulaire additionnels

    Returns:
        GatewayResult
    """
    params = RequestParams(
        method="POST",
        files={field_name: (filename, content, content_type)},
        data=dict(fields) if fields else None,
    )
    return await gateway.issue(target, params, **kwargs)


async def batch_requests(
    gateway: IResilientGateway,
    requests: Sequence[BatchRequest],
    concurrency: int = 3,
    on_progress: Optional[ProgressCallback] = None,
) -> List[Any]:
    """
    Exécute des requêtes JSON par lots de concurrency.

    Args:
        gateway: Gateway résiliente
        requests: URLs ou couples (URL, RequestParams)
        concurrency: Taille des lots
        on_progress: Appelé avec (terminées, total) après chaque requête

    Returns:
        Résultats dans l'ordre des requêtes, None pour les échecs

    Raises:
        ValueError: Si concurrency < 1
        Exception: La première erreur si toutes les requêtes échouent
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    total = len(requests)
    results: List[Any] = []
    errors: List[BaseException] = []
    completed = 0

    for start in range(0, total, concurrency):
        chunk = [_as_request(r) for r in requests[start:start + concurrency]]
        outcomes = await asyncio.gather(
            *(fetch_json(gateway, target, params) for target, params in chunk),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                errors.append(outcome)
                results.append(None)
            else:
                results.append(outcome)
            completed += 1
            if on_progress is not None:
                on_progress(completed, total)

    if total and len(errors) == total:
        raise errors[0]
    return results


def _as_request(request: BatchRequest) -> Tuple[str, Optional[RequestParams]]:
    if isinstance(request, str):
        return request, None
    target, params = request
    return target, params
