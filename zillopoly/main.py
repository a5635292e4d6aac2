import asyncio
from contextlib import asynccontextmanager, suppress

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from zillopoly.clients.listing_client import ListingClient
from zillopoly.config import OutboxStatus, settings
from zillopoly.contracts.contracts import BatchGamesCreated, ListingResponse
from zillopoly.database import SessionLocal, engine, get_db
from zillopoly.errors import EnrichmentError, InvalidStateError, LedgerError
from zillopoly.events import background_outbox_worker
from zillopoly.helpers import serialize_batch, serialize_outbox
from zillopoly.ledger import GameLedger, player_view
from zillopoly.logging_config import configure_logging, get_logger
from zillopoly.orchestrator import FulfillmentOrchestrator, build_orchestrator
from zillopoly.pricing import PriceRandomizer
from zillopoly.schemas.app_schemas import (
    BatchCreateRequest,
    BatchResponse,
    FulfillmentReport,
    FulfillRangeRequest,
    InitializeSlotRequest,
    SlotView,
)
from zillopoly.security import require_bearer_token, validate_signature
from zillopoly import models


logger = get_logger(__name__)

models.Base.metadata.create_all(bind=engine)

listing_client = ListingClient()
price_randomizer = PriceRandomizer()
orchestrator = build_orchestrator(SessionLocal, listing_client=listing_client, price_randomizer=price_randomizer)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting batch event outbox worker")
    worker = asyncio.create_task(background_outbox_worker(SessionLocal, orchestrator))
    try:
        yield
    finally:
        worker.cancel()
        with suppress(asyncio.CancelledError):
            await worker
        await orchestrator.aclose()
        logger.info("Outbox worker stopped and clients closed")

app = FastAPI(title="Zillopoly Oracle Hub", lifespan=lifespan)


def get_listing_client() -> ListingClient:
    return listing_client


def get_price_randomizer() -> PriceRandomizer:
    return price_randomizer


def get_orchestrator() -> FulfillmentOrchestrator:
    return orchestrator


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    content = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, InvalidStateError):
        content["slotStatus"] = exc.status
    return JSONResponse(status_code=exc.http_status, content=content)


@app.post("/batches", response_model=BatchResponse)
async def request_batch_route(request: BatchCreateRequest, db: Session = Depends(get_db)):
    batch = GameLedger(db).request_batch(request.player, request.size)
    return serialize_batch(batch)


@app.post("/slots/{game_id}/initialize", response_model=SlotView)
async def initialize_slot_route(
    game_id: int,
    request: InitializeSlotRequest,
    _auth=Depends(require_bearer_token),
    db: Session = Depends(get_db),
    x_oracle_address: str | None = Header(None),
    x_signature: str | None = Header(None),
    x_timestamp: str | None = Header(None),
):
    validate_signature(request.model_dump(), x_signature, x_timestamp)
    slot = GameLedger(db).initialize_slot(x_oracle_address, game_id, request.listingId, request.displayedPrice)
    return player_view(slot)


@app.get("/slots/{game_id}", response_model=SlotView)
async def get_slot(game_id: int, db: Session = Depends(get_db)):
    return player_view(GameLedger(db).get_slot(game_id))


@app.get("/players/{player}/slots", response_model=list[SlotView])
async def player_slots(player: str, db: Session = Depends(get_db)):
    return [player_view(slot) for slot in GameLedger(db).player_history(player)]


@app.get("/games/count")
async def total_games(db: Session = Depends(get_db)):
    return {"totalGames": GameLedger(db).total_games()}


@app.get("/api/random-listing", response_model=ListingResponse)
async def random_listing(
    client: ListingClient = Depends(get_listing_client),
    randomizer: PriceRandomizer = Depends(get_price_randomizer),
):
    try:
        listing = await client.fetch_listing()
        quote = await randomizer.derive_price(listing.actualPrice)
    except EnrichmentError as exc:
        logger.warning("Random listing request failed: %s", exc)
        raise HTTPException(status_code=502, detail=f"failed to fetch listing: {exc}")
    logger.info(
        "Served listing=%s location=%s actual=%s displayed=%s multiplier=%s",
        listing.externalId,
        listing.location,
        listing.actualPrice,
        quote.displayed_price,
        quote.multiplier,
    )
    return ListingResponse.from_quote(listing, quote.displayed_price, quote.multiplier)


@app.get("/events/outbox")
async def list_outbox(
    status: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    _auth=Depends(require_bearer_token),
    db: Session = Depends(get_db),
):
    query = db.query(models.BatchEventOutbox)
    if status:
        query = query.filter(models.BatchEventOutbox.status == status)
    records = query.order_by(models.BatchEventOutbox.created_at.desc()).limit(limit).all()
    return [serialize_outbox(r) for r in records]


@app.post("/admin/fulfill", response_model=FulfillmentReport)
async def fulfill_range(
    request: FulfillRangeRequest,
    _auth=Depends(require_bearer_token),
    runner: FulfillmentOrchestrator = Depends(get_orchestrator),
):
    """
    Run one fulfillment pass over a game id range, e.g. to finish slots a
    previous pass left pending.
    """
    if request.endGameId < request.startGameId:
        raise HTTPException(status_code=422, detail="endGameId must not be below startGameId")
    event = BatchGamesCreated(
        player=request.player or "",
        startGameId=request.startGameId,
        endGameId=request.endGameId,
    )
    return await runner.fulfill(event)


@app.post("/admin/replay/{record_id}")
async def force_replay(
    record_id: int,
    _auth=Depends(require_bearer_token),
    db: Session = Depends(get_db),
):
    """
    Force a single outbox record back to pending and clear the last_error.
    """
    record = db.get(models.BatchEventOutbox, record_id)
    if not record:
        raise HTTPException(status_code=404, detail="outbox record not found")
    record.status = OutboxStatus.PENDING.value
    record.last_error = None
    record.next_attempt_at = None
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Forced replay for outbox record_id=%s", record_id)
    return serialize_outbox(record)


@app.get("/health")
async def health():
    return {"status": "ok"}


def run():
    import uvicorn

    configure_logging()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
