"""Error taxonomy shared by the ledger, the clients and the orchestrator.

Ledger errors carry a stable code and the HTTP status the API answers with.
Everything else is raised by off-chain collaborators and recovered per item
by the orchestrator.
"""


class LedgerError(Exception):
    """Base ledger error."""

    def __init__(self, code: int, message: str, http_status: int = 400) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class InvalidSizeError(LedgerError):
    def __init__(self, size: int) -> None:
        super().__init__(1001, f"Invalid batch size: {size}", 422)


class UnauthorizedError(LedgerError):
    def __init__(self, caller: str | None) -> None:
        super().__init__(1002, f"Caller {caller} is not the oracle", 401)


class SlotNotFoundError(LedgerError):
    def __init__(self, game_id: int) -> None:
        super().__init__(1003, f"Game slot not found: {game_id}", 404)


class InvalidStateError(LedgerError):
    def __init__(self, game_id: int, status: str, expected: str) -> None:
        self.game_id = game_id
        self.status = status
        super().__init__(
            1004,
            f"Game slot {game_id} is {status}, expected {expected}",
            409,
        )


class InvalidListingError(LedgerError):
    def __init__(self, detail: str) -> None:
        super().__init__(1005, f"Invalid listing data: {detail}", 422)


class TransactionError(Exception):
    """Ledger submission or confirmation failed."""


class EnrichmentError(Exception):
    """The listing source was unreachable, failed, or had nothing usable."""


class UnpriceableListingError(EnrichmentError):
    def __init__(self, actual_price) -> None:
        self.actual_price = actual_price
        super().__init__(f"listing price {actual_price} cannot be randomized")


class RandomnessSourceError(Exception):
    """A randomness backing could not produce a value."""
