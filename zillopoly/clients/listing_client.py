import random
from typing import Sequence

import httpx
from pydantic import ValidationError

from zillopoly.config import settings
from zillopoly.contracts.contracts import Listing
from zillopoly.errors import EnrichmentError
from zillopoly.helpers import RetryingClient
from zillopoly.logging_config import get_logger
from zillopoly.pricing import MIN_PRICEABLE

logger = get_logger(__name__)

SEARCH_PATH = "/propertyExtendedSearch"


def _usable(prop: dict) -> bool:
    price = prop.get("price")
    return bool(prop.get("zpid")) and isinstance(price, int) and price >= MIN_PRICEABLE


class ListingClient(RetryingClient):
    """
    Fetches one random for-sale house from the property search API.

    Failures are raised as EnrichmentError and never retried here; the
    orchestrator skips the slot instead.
    """

    def __init__(
        self,
        locations: Sequence[str] | None = None,
        base_url: str | None = None,
        rng: random.Random | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"x-rapidapi-host": settings.rapidapi_host}
        if settings.rapidapi_key:
            headers["x-rapidapi-key"] = settings.rapidapi_key
        super().__init__(
            base_url=str(base_url or settings.listing_api_base_url),
            max_retries=0,
            transport=transport,
            headers=headers,
        )
        self.locations = tuple(locations if locations is not None else settings.locations)
        if not self.locations:
            raise ValueError("location catalog is empty")
        self.rng = rng or random.Random()

    async def fetch_listing(self) -> Listing:
        location = self.rng.choice(self.locations)
        logger.info("Fetching listing for location=%s", location)
        params = {"location": location, "status_type": "ForSale", "home_type": "Houses"}
        try:
            resp = await self._request_with_retry("GET", SEARCH_PATH, params=params)
        except httpx.HTTPError as exc:
            raise EnrichmentError(f"listing request error: {exc}") from exc
        if not resp.is_success:
            raise EnrichmentError(f"listing source responded with status {resp.status_code}")
        try:
            props = resp.json().get("props") or []
        except (ValueError, AttributeError) as exc:
            raise EnrichmentError("listing source returned malformed JSON") from exc
        candidates = [p for p in props if isinstance(p, dict) and _usable(p)]
        if not candidates:
            raise EnrichmentError(f"no listings found for {location}")
        prop = self.rng.choice(candidates)
        try:
            return Listing.from_search_result(prop, location)
        except ValidationError as exc:
            raise EnrichmentError(f"listing {prop.get('zpid')} is malformed") from exc
