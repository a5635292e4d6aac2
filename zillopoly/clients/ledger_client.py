import time
from typing import Callable, Protocol

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from zillopoly.config import SlotStatus, settings
from zillopoly.errors import InvalidStateError, TransactionError
from zillopoly.helpers import RetryingClient
from zillopoly.ledger import GameLedger, player_view
from zillopoly.logging_config import get_logger
from zillopoly.security import compute_signature

logger = get_logger(__name__)


class LedgerClient(Protocol):
    async def initialize_slot(self, game_id: int, listing_id: str, displayed_price: int) -> dict:
        """
        Submit the oracle transition for one slot and wait for it to land.
        Raises InvalidStateError when the slot is no longer pending and
        TransactionError for any other failure.
        """
        ...


class LocalLedgerClient:
    """Submits to a ledger living in the same process and database."""

    def __init__(self, session_factory: Callable[[], Session], oracle_address: str | None = None):
        self.session_factory = session_factory
        self.oracle_address = oracle_address if oracle_address is not None else settings.oracle_address

    async def initialize_slot(self, game_id: int, listing_id: str, displayed_price: int) -> dict:
        db = self.session_factory()
        try:
            slot = GameLedger(db, oracle_address=settings.oracle_address).initialize_slot(
                self.oracle_address, game_id, listing_id, displayed_price
            )
            return player_view(slot)
        except SQLAlchemyError as exc:
            db.rollback()
            raise TransactionError(f"ledger write failed for game {game_id}: {exc}") from exc
        finally:
            db.close()


class HttpLedgerClient(RetryingClient):
    """Submits signed oracle transitions to a remote ledger service."""

    def __init__(
        self,
        base_url: str | None = None,
        oracle_address: str | None = None,
        hmac_secret: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url=str(base_url or settings.ledger_base_url), transport=transport)
        self.oracle_address = oracle_address if oracle_address is not None else settings.oracle_address
        self.hmac_secret = hmac_secret if hmac_secret is not None else settings.hmac_secret

    async def initialize_slot(self, game_id: int, listing_id: str, displayed_price: int) -> dict:
        body = {"listingId": listing_id, "displayedPrice": displayed_price}
        timestamp = str(int(time.time()))
        headers = {
            "X-Oracle-Address": self.oracle_address,
            "X-Timestamp": timestamp,
            "X-Signature": compute_signature(body, timestamp, self.hmac_secret),
        }
        if settings.bearer_token:
            headers["Authorization"] = f"Bearer {settings.bearer_token}"
        try:
            resp = await self._request_with_retry(
                "POST", f"/slots/{game_id}/initialize", json=body, headers=headers
            )
        except httpx.HTTPError as exc:
            raise TransactionError(f"ledger request error for game {game_id}: {exc}") from exc
        if resp.status_code == 200:
            try:
                return resp.json()
            except ValueError as exc:
                raise TransactionError(f"ledger returned a malformed body for game {game_id}: {resp.text!r}") from exc
        if resp.status_code == 409:
            try:
                detail = resp.json()
            except ValueError:
                detail = {}
            status = detail.get("slotStatus", "unknown") if isinstance(detail, dict) else "unknown"
            raise InvalidStateError(game_id, status, SlotStatus.PENDING.value)
        raise TransactionError(f"ledger rejected game {game_id}: {resp.status_code} {resp.text}")
