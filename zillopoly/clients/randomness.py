import random
from typing import Protocol

import httpx

from zillopoly.config import settings
from zillopoly.errors import RandomnessSourceError
from zillopoly.helpers import RetryingClient, aclose_all
from zillopoly.logging_config import get_logger

logger = get_logger(__name__)


class RandomSource(Protocol):
    async def randint(self, low: int, high: int) -> int:
        """Return an integer in [low, high], both inclusive."""
        ...


class LocalRandomSource:
    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    async def randint(self, low: int, high: int) -> int:
        return self.rng.randint(low, high)


class MathJsRandomSource(RetryingClient):
    """
    Draws integers from the math.js expression API. Note that randomInt's
    upper bound is exclusive there.
    """

    def __init__(self, base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            base_url=str(base_url or settings.randomness_api_url),
            max_retries=0,
            transport=transport,
        )

    async def randint(self, low: int, high: int) -> int:
        try:
            resp = await self._request_with_retry("GET", "", params={"expr": f"randomInt({low},{high + 1})"})
        except httpx.HTTPError as exc:
            raise RandomnessSourceError(f"math.js request error: {exc}") from exc
        if resp.status_code != 200:
            raise RandomnessSourceError(f"math.js responded with status {resp.status_code}")
        try:
            value = int(resp.text.strip())
        except ValueError as exc:
            raise RandomnessSourceError(f"math.js returned a non-integer: {resp.text!r}") from exc
        if not low <= value <= high:
            raise RandomnessSourceError(f"math.js returned {value} outside [{low}, {high}]")
        return value


class FallbackRandomSource:
    """
    Prefer `primary`; when it fails, draw from `fallback` over the same range.
    The failure is logged and never propagated.
    """

    def __init__(self, primary: RandomSource, fallback: RandomSource | None = None):
        self.primary = primary
        self.fallback = fallback or LocalRandomSource()

    async def randint(self, low: int, high: int) -> int:
        try:
            return await self.primary.randint(low, high)
        except RandomnessSourceError as exc:
            logger.warning("Randomness source failed, using local fallback: %s", exc)
            return await self.fallback.randint(low, high)

    async def aclose(self):
        await aclose_all(self.primary, self.fallback)


def default_random_source() -> FallbackRandomSource:
    return FallbackRandomSource(MathJsRandomSource(), LocalRandomSource())
