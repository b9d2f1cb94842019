"""Shared plumbing for scraping engines: HTTP client, health state, request classification."""

from __future__ import annotations

import asyncio

import httpx
from loguru import logger

from metasearch.contracts import Engines, ResultRow
from metasearch.engines.state import EngineState
from metasearch.errors import EngineContractError, EngineTimeout, TransportError


class BaseEngine:
    """Base class for engines that scrape rendered HTML.

    Subclasses set ``name`` and implement ``_search``. Every request must go
    through ``_request`` so that timeouts open the breaker and completed
    requests re-arm the cooldown.

    An instance may be shared between concurrent queries. Callers hold
    ``lock`` across ``is_available()`` and ``search()``.
    """

    name: Engines

    def __init__(
        self,
        *,
        request_timeout: float = 2.0,
        timeout_penalty: float = 3600.0,
        cooldown: float = 2.0,
        user_agent: str | None = None,
        state: EngineState | None = None,
    ) -> None:
        headers = {"User-Agent": user_agent} if user_agent else None
        self._client = httpx.AsyncClient(
            timeout=request_timeout,
            headers=headers,
            follow_redirects=True,
        )
        self.state = state or EngineState(penalty=timeout_penalty, cooldown=cooldown)
        self.lock = asyncio.Lock()

    def is_available(self) -> bool:
        return self.state.is_available()

    async def search(self, query: str, start: int, need: int) -> list[ResultRow]:
        """Return up to ``need`` rows starting at ``start`` in backend order."""
        if not self.is_available():
            raise EngineContractError(f"{self.name.value}: search() called while unavailable")
        if need <= 0:
            return []
        return await self._search(query, start, need)

    async def _search(self, query: str, start: int, need: int) -> list[ResultRow]:
        raise NotImplementedError

    async def _request(
        self, method: str, url: str, *, check_status: bool = True, **kwargs
    ) -> httpx.Response:
        send = getattr(self._client, method.lower())
        try:
            resp = await send(url, **kwargs)
        except httpx.TimeoutException as e:
            available_at = self.state.record_timeout()
            logger.warning(
                "{} timed out on {}; unavailable for {:.0f}s",
                self.name.value,
                url,
                self.state.penalty,
            )
            raise EngineTimeout(
                self.name.value, f"request timed out (available again at {available_at:.0f})"
            ) from e
        except httpx.HTTPError as e:
            self.state.record_completed()
            raise TransportError(self.name.value, f"{type(e).__name__}: {e}") from e

        self.state.record_completed()
        if check_status and resp.status_code >= 400:
            raise TransportError(self.name.value, f"HTTP {resp.status_code} from {url}")
        return resp

    async def aclose(self) -> None:
        await self._client.aclose()
