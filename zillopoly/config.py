from enum import Enum
from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


MAJOR_CITIES = (
    "Los Angeles, CA",
    "New York, NY",
    "Chicago, IL",
    "Houston, TX",
    "Phoenix, AZ",
    "Philadelphia, PA",
    "San Antonio, TX",
    "San Diego, CA",
    "Dallas, TX",
    "San Jose, CA",
    "Austin, TX",
    "Jacksonville, FL",
    "Fort Worth, TX",
    "Columbus, OH",
    "Charlotte, NC",
    "San Francisco, CA",
    "Indianapolis, IN",
    "Seattle, WA",
    "Denver, CO",
    "Boston, MA",
    "Miami, FL",
    "Atlanta, GA",
    "Detroit, MI",
    "Portland, OR",
    "Las Vegas, NV",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    oracle_address: str = "0x00000000000000000000000000000000000000aa"
    hmac_secret: str = "change_secret"
    bearer_token: Optional[str] = None
    ledger_base_url: AnyHttpUrl = "http://localhost:8000"
    listing_api_base_url: AnyHttpUrl = "https://zillow-com1.p.rapidapi.com"
    rapidapi_host: str = "zillow-com1.p.rapidapi.com"
    rapidapi_key: Optional[str] = None
    randomness_api_url: AnyHttpUrl = "https://api.mathjs.org/v4/"
    db_url: str = "sqlite:///./zillopoly.db"
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0
    request_timeout_seconds: float = 10.0
    timestamp_skew_seconds: int = 5
    outbox_poll_seconds: float = 2.0
    locations: list[str] = list(MAJOR_CITIES)
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

settings = Settings()


class SlotStatus(str, Enum):
    PENDING = "pending"
    INITIALIZED = "initialized"
    PLAYED = "played"
    SETTLED = "settled"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class OutboxStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


# Each status may only advance to the next one.
slot_transitions = {
    SlotStatus.PENDING: SlotStatus.INITIALIZED,
    SlotStatus.INITIALIZED: SlotStatus.PLAYED,
    SlotStatus.PLAYED: SlotStatus.SETTLED,
}

BATCH_GAMES_CREATED = "BatchGamesCreated"
