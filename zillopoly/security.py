import hmac
import hashlib
import json
import time
from fastapi import HTTPException, Header
from zillopoly.config import settings


def compute_signature(body: dict, timestamp: str, secret: str | None = None) -> str:
    message = f"{timestamp}:{json.dumps(body, sort_keys=True)}".encode()
    key = (secret if secret is not None else settings.hmac_secret).encode()
    return hmac.new(key, message, hashlib.sha256).hexdigest()


def validate_signature(body: dict, signature: str | None, timestamp: str | None):
    """
    Reject oracle submissions that are unsigned, stale or tampered with.
    """
    if not signature or not timestamp:
        raise HTTPException(status_code=401, detail="missing signature")
    try:
        skew = abs(int(time.time()) - int(timestamp))
    except ValueError:
        raise HTTPException(status_code=401, detail="invalid timestamp")
    if skew > settings.timestamp_skew_seconds:
        raise HTTPException(status_code=401, detail="timestamp skew")
    expected = compute_signature(body, timestamp)
    if not hmac.compare_digest(expected, signature):
        raise HTTPException(status_code=401, detail="invalid signature")


def require_bearer_token(authorization: str | None = Header(None, alias="Authorization")):
    """
    FastAPI dependency to enforce Authorization: Bearer <token> when configured.
    """
    if not settings.bearer_token:
        return
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")
    token = authorization.split(" ", 1)[1].strip()
    if not hmac.compare_digest(token, settings.bearer_token):
        raise HTTPException(status_code=401, detail="Unauthorized")
