"""
Fulfillment orchestrator.

Turns one BatchGamesCreated notification into a best-effort pass over every
slot in the batch range. Items are processed one at a time, in increasing
game id order, and each item's ledger submission settles before the next
item starts. A failing item is recorded and skipped; it stays pending on
the ledger and is picked up by any later pass over the same range.
"""
from zillopoly import database
from zillopoly.clients.ledger_client import HttpLedgerClient, LedgerClient, LocalLedgerClient
from zillopoly.clients.listing_client import ListingClient
from zillopoly.config import OutcomeStatus
from zillopoly.contracts.contracts import BatchGamesCreated
from zillopoly.errors import EnrichmentError, InvalidStateError, LedgerError, TransactionError
from zillopoly.helpers import aclose_all
from zillopoly.logging_config import get_logger
from zillopoly.pricing import PriceRandomizer
from zillopoly.schemas.app_schemas import FulfillmentReport, SlotOutcome

logger = get_logger(__name__)

ALREADY_INITIALIZED = "already-initialized"
ENRICHMENT_ERROR = "EnrichmentError"
TRANSACTION_ERROR = "TransactionError"


class FulfillmentOrchestrator:
    def __init__(self, listing_client: ListingClient, price_randomizer: PriceRandomizer, ledger_client: LedgerClient):
        self.listing_client = listing_client
        self.price_randomizer = price_randomizer
        self.ledger_client = ledger_client

    async def _fulfill_slot(self, game_id: int) -> SlotOutcome:
        try:
            listing = await self.listing_client.fetch_listing()
            quote = await self.price_randomizer.derive_price(listing.actualPrice)
        except EnrichmentError as exc:
            logger.warning("Enrichment failed game_id=%s error=%s", game_id, exc)
            return SlotOutcome(gameId=game_id, status=OutcomeStatus.FAILED, reason=ENRICHMENT_ERROR)

        logger.info(
            "Initializing game_id=%s listing=%s location=%s displayedPrice=%s multiplier=%s",
            game_id,
            listing.externalId,
            listing.location,
            quote.displayed_price,
            quote.multiplier,
        )
        try:
            await self.ledger_client.initialize_slot(game_id, listing.listingId, quote.displayed_price)
        except InvalidStateError as exc:
            logger.info("Game already handled game_id=%s status=%s", game_id, exc.status)
            return SlotOutcome(gameId=game_id, status=OutcomeStatus.SUCCESS, reason=ALREADY_INITIALIZED)
        except (TransactionError, LedgerError) as exc:
            logger.warning("Ledger submission failed game_id=%s error=%s", game_id, exc)
            return SlotOutcome(gameId=game_id, status=OutcomeStatus.FAILED, reason=TRANSACTION_ERROR)
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected ledger submission error game_id=%s", game_id)
            return SlotOutcome(gameId=game_id, status=OutcomeStatus.FAILED, reason=TRANSACTION_ERROR)

        return SlotOutcome(
            gameId=game_id,
            status=OutcomeStatus.SUCCESS,
            listingId=listing.listingId,
            location=listing.location,
            displayedPrice=quote.displayed_price,
        )

    async def fulfill(self, event: BatchGamesCreated) -> FulfillmentReport:
        game_ids = range(event.startGameId, event.endGameId + 1)
        logger.info(
            "Fulfilling batch player=%s startGameId=%s endGameId=%s games=%s",
            event.player,
            event.startGameId,
            event.endGameId,
            len(game_ids),
        )
        report = FulfillmentReport(
            player=event.player,
            startGameId=event.startGameId,
            endGameId=event.endGameId,
            totalGames=len(game_ids),
        )
        for game_id in game_ids:
            report.results.append(await self._fulfill_slot(game_id))
        logger.info(
            "Batch fulfillment finished startGameId=%s endGameId=%s failed=%s",
            event.startGameId,
            event.endGameId,
            len(report.failed),
        )
        return report

    async def aclose(self):
        await aclose_all(self.listing_client, self.price_randomizer, self.ledger_client)


def build_orchestrator(
    session_factory=None,
    remote: bool = False,
    listing_client: ListingClient | None = None,
    price_randomizer: PriceRandomizer | None = None,
) -> FulfillmentOrchestrator:
    """
    Wire the default collaborators. `remote` submits to the ledger service at
    LEDGER_BASE_URL instead of writing through the local database. Passed-in
    clients are shared, and closing the orchestrator closes them too.
    """
    if remote:
        ledger_client = HttpLedgerClient()
    else:
        ledger_client = LocalLedgerClient(session_factory or database.SessionLocal)
    return FulfillmentOrchestrator(
        listing_client or ListingClient(),
        price_randomizer or PriceRandomizer(),
        ledger_client,
    )
