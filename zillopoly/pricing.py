"""
Displayed-price derivation.

The displayed price is the actual price scaled by an integer percentage in
[85, 115]. A multiplier of 100 is never committed, and neither is any
multiplier whose rounded result lands back on the actual price, so the
displayed price always differs from the actual one.
"""
import random
from dataclasses import dataclass

from zillopoly.clients.randomness import RandomSource, default_random_source
from zillopoly.errors import UnpriceableListingError
from zillopoly.helpers import aclose_all

MIN_MULTIPLIER = 85
MAX_MULTIPLIER = 115
EXCLUDED_MULTIPLIER = 100
# Below this even a 1% move can round back onto the actual price.
MIN_PRICEABLE = 50
DEFAULT_MAX_DRAWS = 32

VALID_MULTIPLIERS = tuple(m for m in range(MIN_MULTIPLIER, MAX_MULTIPLIER + 1) if m != EXCLUDED_MULTIPLIER)


def apply_multiplier(actual_price: int, multiplier: int) -> int:
    """round(actual_price * multiplier / 100), halves rounded up."""
    return (actual_price * multiplier + 50) // 100


@dataclass(frozen=True)
class PriceQuote:
    displayed_price: int
    multiplier: int

    @property
    def adjustment_percent(self) -> int:
        return self.multiplier - 100


class PriceRandomizer:
    def __init__(
        self,
        source: RandomSource | None = None,
        max_draws: int = DEFAULT_MAX_DRAWS,
        rng: random.Random | None = None,
    ):
        self.source = source or default_random_source()
        self.max_draws = max_draws
        self.rng = rng or random.Random()

    def _accept(self, actual_price: int, multiplier: int) -> bool:
        if multiplier not in VALID_MULTIPLIERS:
            return False
        return apply_multiplier(actual_price, multiplier) != actual_price

    async def derive_price(self, actual_price: int) -> PriceQuote:
        if not isinstance(actual_price, int) or actual_price < MIN_PRICEABLE:
            raise UnpriceableListingError(actual_price)
        for _ in range(self.max_draws):
            multiplier = await self.source.randint(MIN_MULTIPLIER, MAX_MULTIPLIER)
            if self._accept(actual_price, multiplier):
                return PriceQuote(apply_multiplier(actual_price, multiplier), multiplier)
        # A source stuck on rejected values must not stall the batch.
        multiplier = self.rng.choice([m for m in VALID_MULTIPLIERS if self._accept(actual_price, m)])
        return PriceQuote(apply_multiplier(actual_price, multiplier), multiplier)

    async def aclose(self):
        await aclose_all(self.source)
