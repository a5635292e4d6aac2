from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from zillopoly.config import BATCH_GAMES_CREATED
from zillopoly.errors import InvalidListingError

LISTING_ID_WIDTH = 64


def encode_listing_id(external_id: int | str) -> str:
    """
    Encode an external listing id as a fixed-width bytes32 hex string.

    The decimal id is left-padded with zeros, not converted to hex, so the
    original id stays readable in the stored value.
    """
    digits = str(external_id)
    if not digits.isdigit() or len(digits) > LISTING_ID_WIDTH:
        raise InvalidListingError(f"cannot encode external id {external_id!r}")
    return "0x" + digits.zfill(LISTING_ID_WIDTH)


def validate_listing_id(listing_id: str) -> str:
    body = listing_id[2:] if listing_id.startswith("0x") else ""
    if len(body) != LISTING_ID_WIDTH:
        raise InvalidListingError(f"listing id must be 0x followed by {LISTING_ID_WIDTH} characters")
    try:
        int(body, 16)
    except ValueError as exc:
        raise InvalidListingError("listing id is not hex encoded") from exc
    return listing_id


class Listing(BaseModel):
    externalId: int
    address: Optional[str] = None
    actualPrice: int
    location: Optional[str] = None
    imgSrc: Optional[str] = None
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    livingArea: Optional[float] = None
    homeType: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def listingId(self) -> str:
        return encode_listing_id(self.externalId)

    @classmethod
    def from_search_result(cls, prop: dict, location: str) -> "Listing":
        return cls(
            externalId=prop["zpid"],
            address=prop.get("address"),
            actualPrice=prop["price"],
            location=location,
            imgSrc=prop.get("imgSrc"),
            bedrooms=prop.get("bedrooms"),
            bathrooms=prop.get("bathrooms"),
            livingArea=prop.get("livingArea"),
            homeType=prop.get("homeType"),
            latitude=prop.get("latitude"),
            longitude=prop.get("longitude"),
        )


class DerivedContractData(BaseModel):
    listingId: str
    displayedPrice: int
    actualPrice: int


class PriceInfo(BaseModel):
    actual: int
    displayed: int
    multiplier: int
    adjustmentPercent: int


class ListingResponse(BaseModel):
    success: bool = True
    location: Optional[str] = None
    listing: Listing
    derivedContractData: DerivedContractData
    priceInfo: PriceInfo

    @classmethod
    def from_quote(cls, listing: Listing, displayed_price: int, multiplier: int) -> "ListingResponse":
        return cls(
            location=listing.location,
            listing=listing,
            derivedContractData=DerivedContractData(
                listingId=listing.listingId,
                displayedPrice=displayed_price,
                actualPrice=listing.actualPrice,
            ),
            priceInfo=PriceInfo(
                actual=listing.actualPrice,
                displayed=displayed_price,
                multiplier=multiplier,
                adjustmentPercent=multiplier - 100,
            ),
        )


class BatchGamesCreated(BaseModel):
    event: str = BATCH_GAMES_CREATED
    player: str
    startGameId: int
    endGameId: int
    timestamp: int = Field(default_factory=lambda: int(datetime.now().timestamp()))

    @classmethod
    def from_batch(cls, batch) -> "BatchGamesCreated":
        return cls(
            player=batch.player,
            startGameId=batch.start_game_id,
            endGameId=batch.end_game_id,
            timestamp=batch.timestamp,
        )
