import asyncio
import math
import httpx

from zillopoly.config import settings
from zillopoly import models


def serialize_outbox(record: models.BatchEventOutbox) -> dict:
    return {
        "id": record.id,
        "eventType": record.event_type,
        "batchId": record.batch_id,
        "status": record.status,
        "attemptCount": record.attempt_count,
        "nextAttemptAt": record.next_attempt_at.isoformat() if record.next_attempt_at else None,
        "lastError": record.last_error,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
        "payload": record.payload,
    }


def serialize_batch(batch: models.BatchRequest) -> dict:
    return {
        "batchId": batch.id,
        "player": batch.player,
        "startGameId": batch.start_game_id,
        "endGameId": batch.end_game_id,
        "timestamp": batch.timestamp,
    }


async def aclose_all(*resources) -> None:
    """Close every resource that owns connections; the rest are skipped."""
    for resource in resources:
        close = getattr(resource, "aclose", None)
        if close is not None:
            await close()


class RetryingClient:
    """
    Thin wrapper around httpx.AsyncClient that retries 429 and 5xx answers
    with exponential backoff. Network errors are raised to the caller as-is.
    """

    def __init__(
        self,
        base_url: str = "",
        max_retries: int | None = None,
        retry_backoff_seconds: float | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict | None = None,
    ):
        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
            transport=transport,
            headers=headers,
        )
        self.max_retries = max_retries if max_retries is not None else settings.max_retries
        self.retry_backoff_seconds = retry_backoff_seconds if retry_backoff_seconds is not None else settings.retry_backoff_seconds

    @staticmethod
    def _retry_after(response: httpx.Response, backoff: float) -> float:
        # Only delta-seconds is honoured; an HTTP-date falls back to backoff.
        retry_after = response.headers.get("Retry-After")
        try:
            wait = float(retry_after)
        except (TypeError, ValueError):
            return backoff
        return wait if math.isfinite(wait) and wait >= 0 else backoff

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        retries = 0
        backoff = self.retry_backoff_seconds
        while True:
            response = await self.client.request(method, url, **kwargs)
            if response.status_code == 429 and retries < self.max_retries:
                await asyncio.sleep(self._retry_after(response, backoff))
                retries += 1
                backoff *= 2
                continue
            if response.status_code >= 500 and retries < self.max_retries:
                await asyncio.sleep(backoff)
                retries += 1
                backoff *= 2
                continue
            return response

    async def aclose(self):
        await self.client.aclose()
