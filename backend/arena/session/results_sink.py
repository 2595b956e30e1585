"""HTTP client for the external quiz results endpoint."""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING

import httpx
import structlog

from arena.session.exceptions import SinkFailure
from arena.session.types import ResultsPayload

if TYPE_CHECKING:
    from arena.session.types import PlayerView

logger = structlog.get_logger()

DEFAULT_RESULTS_TIMEOUT_SECONDS = 10.0


def _error_detail(response: httpx.Response) -> str:
    """Pull a readable message out of an error response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    try:
        return HTTPStatus(response.status_code).phrase
    except ValueError:
        return f"HTTP {response.status_code}"


class ResultsSink:
    """POST final leaderboards to the results service.

    The caller's admin token is forwarded as a bearer credential. Every failure
    surfaces as SinkFailure: `rejected=True` when the service answered with a
    non-2xx status, `rejected=False` for transport errors and timeouts.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = DEFAULT_RESULTS_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def submit(self, game_id: str, leaderboard: list[PlayerView], token: str) -> None:
        payload = ResultsPayload(game_id=game_id, leaderboard=leaderboard)
        try:
            response = await self._client.post(
                self._url,
                json=payload.model_dump(mode="json"),
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TimeoutException as e:
            logger.warning("results sink timed out", game_id=game_id)
            raise SinkFailure("Results service timed out", rejected=False) from e
        except httpx.RequestError as e:
            logger.warning("results sink unreachable", game_id=game_id, error=str(e))
            raise SinkFailure("Results service unreachable", rejected=False) from e

        if not response.is_success:
            detail = _error_detail(response)
            logger.warning("results sink rejected upload", game_id=game_id, status=response.status_code, detail=detail)
            raise SinkFailure(f"Results rejected: {detail}", rejected=True)

        logger.info("results persisted", game_id=game_id, players=len(leaderboard))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
