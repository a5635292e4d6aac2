import logging
import os
import random
import zlib

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import PlainTextResponse

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("mock-listings")

app = FastAPI(title="Mock Listing Source")

LISTINGS_PER_LOCATION = 5
# Semicolon separated locations that answer with no listings, to exercise skips.
EMPTY_LOCATIONS = {loc.strip() for loc in os.getenv("MOCK_EMPTY_LOCATIONS", "").split(";") if loc.strip()}


def _listings_for(location: str) -> list[dict]:
    # Seeded per location so repeated searches return the same houses.
    seed = zlib.crc32(location.encode())
    rng = random.Random(seed)
    props = []
    for i in range(LISTINGS_PER_LOCATION):
        zpid = seed % 10_000_000 * 10 + i
        props.append({
            "zpid": zpid,
            "address": f"{100 + i * 7} Main St, {location}",
            "price": rng.randrange(150_000, 2_500_000, 1_000),
            "imgSrc": f"https://photos.example.com/{zpid}.jpg",
            "bedrooms": rng.randint(1, 6),
            "bathrooms": rng.randint(1, 4),
            "livingArea": rng.randrange(600, 5_000, 10),
            "homeType": "SINGLE_FAMILY",
            "latitude": round(rng.uniform(25.0, 48.0), 6),
            "longitude": round(rng.uniform(-123.0, -71.0), 6),
        })
    return props


@app.get("/propertyExtendedSearch")
async def property_extended_search(
    location: str,
    status_type: str = "ForSale",
    home_type: str = "Houses",
):
    logger.info("Search location=%s status_type=%s home_type=%s", location, status_type, home_type)
    if status_type != "ForSale" or home_type != "Houses":
        raise HTTPException(status_code=400, detail="unsupported filter")
    if location in EMPTY_LOCATIONS:
        return {"props": [], "totalResultCount": 0}
    props = _listings_for(location)
    return {"props": props, "totalResultCount": len(props)}


@app.get("/v4/", response_class=PlainTextResponse)
async def math_random(expr: str = Query(...)):
    """
    Supports only randomInt(low,high) with an exclusive upper bound, like math.js.
    """
    if not (expr.startswith("randomInt(") and expr.endswith(")")):
        raise HTTPException(status_code=400, detail="unsupported expression")
    try:
        low, high = (int(part) for part in expr[len("randomInt("):-1].split(","))
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid arguments")
    return str(random.randrange(low, high))


@app.get("/health")
async def health():
    return {"status": "ok"}
