import asyncio
import time

from zillopoly.config import settings
from zillopoly.contracts.contracts import Listing, encode_listing_id
from zillopoly.errors import EnrichmentError
from zillopoly.pricing import PriceQuote
from zillopoly.schemas.app_schemas import FulfillmentReport, SlotOutcome
from zillopoly import models
from zillopoly import security

LISTING = encode_listing_id(2077388)


def _signed_headers(body: dict, oracle: str | None = None, timestamp: str | None = None) -> dict:
    timestamp = timestamp or str(int(time.time()))
    return {
        "X-Oracle-Address": oracle or settings.oracle_address,
        "X-Timestamp": timestamp,
        "X-Signature": security.compute_signature(body, timestamp),
    }


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_request_batch_creates_slots_and_event(client, database):
    resp = client.post("/batches", json={"player": "0xplayer1", "size": 3})
    assert resp.status_code == 200
    body = resp.json()
    assert body["startGameId"] == 1
    assert body["endGameId"] == 3
    assert body["player"] == "0xplayer1"

    resp = client.post("/batches", json={"player": "0xplayer2", "size": 2})
    assert resp.json()["startGameId"] == 4

    with database.SessionLocal() as db:
        assert db.query(models.GameSlot).count() == 5
        assert db.query(models.BatchEventOutbox).count() == 2
    assert client.get("/games/count").json() == {"totalGames": 5}


def test_request_batch_invalid_size(client):
    resp = client.post("/batches", json={"player": "0xplayer1", "size": 0})
    assert resp.status_code == 422
    assert resp.json()["code"] == 1001


def test_initialize_slot_then_replay_conflicts(client):
    client.post("/batches", json={"player": "0xplayer1", "size": 1})
    body = {"listingId": LISTING, "displayedPrice": 575000}

    resp = client.post("/slots/1/initialize", json=body, headers=_signed_headers(body))
    assert resp.status_code == 200
    assert resp.json()["status"] == "initialized"
    assert resp.json()["displayedPrice"] == 575000

    other = {"listingId": encode_listing_id(5), "displayedPrice": 1000}
    resp = client.post("/slots/1/initialize", json=other, headers=_signed_headers(other))
    assert resp.status_code == 409
    assert resp.json()["slotStatus"] == "initialized"

    view = client.get("/slots/1").json()
    assert view["listingId"] == LISTING
    assert view["displayedPrice"] == 575000
    assert view["actualPrice"] is None


def test_initialize_slot_rejects_non_oracle(client):
    client.post("/batches", json={"player": "0xplayer1", "size": 1})
    body = {"listingId": LISTING, "displayedPrice": 575000}

    resp = client.post("/slots/1/initialize", json=body, headers=_signed_headers(body, oracle="0xplayer1"))
    assert resp.status_code == 401
    assert resp.json()["code"] == 1002
    assert client.get("/slots/1").json()["status"] == "pending"


def test_initialize_slot_rejects_tampered_signature(client):
    client.post("/batches", json={"player": "0xplayer1", "size": 1})
    body = {"listingId": LISTING, "displayedPrice": 575000}
    headers = _signed_headers(body)
    headers["X-Signature"] = "invalidsignature"

    resp = client.post("/slots/1/initialize", json=body, headers=headers)
    assert resp.status_code == 401
    assert resp.json()["detail"] == "invalid signature"


def test_initialize_slot_rejects_stale_timestamp(client):
    client.post("/batches", json={"player": "0xplayer1", "size": 1})
    body = {"listingId": LISTING, "displayedPrice": 575000}
    headers = _signed_headers(body, timestamp=str(int(time.time()) - 3600))

    resp = client.post("/slots/1/initialize", json=body, headers=headers)
    assert resp.status_code == 401
    assert resp.json()["detail"] == "timestamp skew"


def test_unknown_slot(client):
    resp = client.get("/slots/99")
    assert resp.status_code == 404


def test_player_slots(client):
    client.post("/batches", json={"player": "0xplayer1", "size": 2})
    client.post("/batches", json={"player": "0xplayer2", "size": 1})

    slots = client.get("/players/0xplayer1/slots").json()
    assert [s["gameId"] for s in slots] == [1, 2]
    assert all(s["status"] == "pending" for s in slots)


def test_random_listing_endpoint(client, app_module):
    class FakeListingClient:
        async def fetch_listing(self):
            return Listing(externalId=2077388, address="1 Elm St", actualPrice=500000, location="Austin, TX")

    class FakeRandomizer:
        async def derive_price(self, actual_price):
            return PriceQuote(displayed_price=575000, multiplier=115)

    app_module.app.dependency_overrides[app_module.get_listing_client] = FakeListingClient
    app_module.app.dependency_overrides[app_module.get_price_randomizer] = FakeRandomizer

    resp = client.get("/api/random-listing")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["location"] == "Austin, TX"
    assert body["listing"]["externalId"] == 2077388
    assert body["derivedContractData"] == {
        "listingId": LISTING,
        "displayedPrice": 575000,
        "actualPrice": 500000,
    }
    assert body["priceInfo"]["multiplier"] == 115
    assert body["priceInfo"]["adjustmentPercent"] == 15


def test_random_listing_endpoint_failure(client, app_module):
    class FailingListingClient:
        async def fetch_listing(self):
            raise EnrichmentError("no listings found for Austin, TX")

    app_module.app.dependency_overrides[app_module.get_listing_client] = FailingListingClient

    resp = client.get("/api/random-listing")
    assert resp.status_code == 502
    assert "no listings found" in resp.json()["detail"]


def test_admin_fulfill_runs_orchestrator(client, app_module):
    client.post("/batches", json={"player": "0xplayer1", "size": 2})
    seen = {}

    class FakeOrchestrator:
        async def fulfill(self, event):
            seen["range"] = (event.startGameId, event.endGameId)
            return FulfillmentReport(
                player=event.player,
                startGameId=event.startGameId,
                endGameId=event.endGameId,
                totalGames=2,
                results=[
                    SlotOutcome(gameId=1, status="success"),
                    SlotOutcome(gameId=2, status="failed", reason="EnrichmentError"),
                ],
            )

    app_module.app.dependency_overrides[app_module.get_orchestrator] = FakeOrchestrator

    resp = client.post("/admin/fulfill", json={"startGameId": 1, "endGameId": 2})
    assert resp.status_code == 200
    assert seen["range"] == (1, 2)
    results = resp.json()["results"]
    assert [r["status"] for r in results] == ["success", "failed"]
    assert results[1]["reason"] == "EnrichmentError"

    resp = client.post("/admin/fulfill", json={"startGameId": 3, "endGameId": 2})
    assert resp.status_code == 422


def test_outbox_listing_and_forced_replay(client, database):
    client.post("/batches", json={"player": "0xplayer1", "size": 2})
    with database.SessionLocal() as db:
        record = db.query(models.BatchEventOutbox).one()
        record.status = "failed"
        record.last_error = "1 of 2 slots left pending"
        db.commit()
        record_id = record.id

    failed = client.get("/events/outbox", params={"status": "failed"}).json()
    assert [r["id"] for r in failed] == [record_id]
    assert failed[0]["payload"]["endGameId"] == 2

    resp = client.post(f"/admin/replay/{record_id}")
    assert resp.status_code == 200
    assert resp.json()["status"] == "pending"
    assert resp.json()["lastError"] is None

    assert client.post("/admin/replay/999").status_code == 404


def test_lifespan_stops_worker_and_closes_clients(app_module, monkeypatch):
    state = {"cancelled": False, "closed": False}

    async def idle_worker(db_factory, orchestrator):
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            state["cancelled"] = True
            raise

    class ClosableOrchestrator:
        async def aclose(self):
            state["closed"] = True

    monkeypatch.setattr(app_module, "background_outbox_worker", idle_worker)
    monkeypatch.setattr(app_module, "orchestrator", ClosableOrchestrator())

    async def run():
        async with app_module.lifespan(app_module.app):
            await asyncio.sleep(0)

    asyncio.run(run())

    assert state == {"cancelled": True, "closed": True}


def test_api_shares_clients_with_orchestrator(app_module):
    assert app_module.orchestrator.listing_client is app_module.listing_client
    assert app_module.orchestrator.price_randomizer is app_module.price_randomizer


def test_run_serves_app_with_uvicorn(app_module, monkeypatch):
    import uvicorn

    served = {}
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: served.update(app=app, **kwargs))

    app_module.run()

    assert served == {"app": app_module.app, "host": settings.host, "port": settings.port}
