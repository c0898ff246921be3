"""Similar translated pairs from an external similarity service."""

import asyncio
from typing import Any, Optional, Protocol

import httpx
import structlog

from verse_copilot.cancellation import CancellationToken
from verse_copilot.config import SimilarityConfig
from verse_copilot.context.cache import ResultCache
from verse_copilot.errors import RequestCancelledError, UnavailableError
from verse_copilot.scripture.references import VerseRef

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 2.0


class SimilarityBackend(Protocol):
    """The external similarity service. Its matching algorithm is not ours."""

    async def get_similar_drafts(self, ref: str, limit: int) -> list[dict[str, Any]]:
        ...


class NullSimilarityBackend:
    """Used when no similarity service is configured."""

    async def get_similar_drafts(self, ref: str, limit: int) -> list[dict[str, Any]]:
        raise UnavailableError("No similarity service configured")


class HttpSimilarityBackend:
    """Similarity service reached over HTTP.

    POSTs ``{"ref": ..., "limit": ...}`` to ``<url>/similar`` and accepts
    either a JSON list of pairs or ``{"results": [...]}``.
    """

    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None):
        self.url = url.rstrip("/")
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def get_similar_drafts(self, ref: str, limit: int) -> list[dict[str, Any]]:
        response = await self.client.post(
            f"{self.url}/similar", json={"ref": ref, "limit": limit}
        )
        response.raise_for_status()
        payload = response.json()
        if isinstance(payload, dict):
            payload = payload.get("results")
        return payload

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class SimilarityClient:
    """Race a backend lookup against a fixed deadline.

    On timeout the backend call is abandoned: it is cancelled and never
    awaited again. Timeouts and backend errors both surface as
    UnavailableError.
    """

    def __init__(self, backend: SimilarityBackend, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.backend = backend
        self.timeout = timeout

    async def get_similar(self, ref: VerseRef, count: int) -> list[dict[str, Any]]:
        task = asyncio.ensure_future(self.backend.get_similar_drafts(str(ref), count))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            task.cancel()
            logger.warning("similarity_timeout", ref=str(ref), timeout=self.timeout)
            raise UnavailableError(f"Similarity lookup for {ref} timed out after {self.timeout}s")

        try:
            result = task.result()
        except UnavailableError:
            raise
        except Exception as e:
            raise UnavailableError(f"Similarity service failed: {e}") from e

        if not isinstance(result, list) or not all(isinstance(item, dict) for item in result):
            raise UnavailableError("Unexpected result format from similarity service")
        return result


class CachedSimilarityClient:
    """SimilarityClient behind a ResultCache.

    Only successful lookups are stored, so an outage heals on the next
    request. Nothing is stored once the request has been cancelled.
    """

    def __init__(self, client: SimilarityClient, cache: ResultCache):
        self.client = client
        self.cache = cache

    async def get_similar(
        self,
        ref: VerseRef,
        count: int,
        token: Optional[CancellationToken] = None,
    ) -> list[dict[str, Any]]:
        key = (str(ref), count)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("similarity_cache_hit", ref=key[0], count=count)
            return cached

        result = await self.client.get_similar(ref, count)
        if token is not None and token.cancelled:
            raise RequestCancelledError(token.reason)
        self.cache.put(key, result)
        return result


def build_similarity_client(config: SimilarityConfig, cache: ResultCache) -> CachedSimilarityClient:
    """Wire the configured backend, deadline and cache together."""
    backend: SimilarityBackend
    if config.url:
        backend = HttpSimilarityBackend(config.url)
    else:
        backend = NullSimilarityBackend()
    return CachedSimilarityClient(SimilarityClient(backend, timeout=config.timeout_seconds), cache)
