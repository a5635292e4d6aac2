import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings are read once at import, so the environment is fixed before any
# zillopoly module is loaded.
_DB_DIR = tempfile.mkdtemp(prefix="zillopoly-tests-")
os.environ.update({
    "DB_URL": f"sqlite:///{_DB_DIR}/test.db",
    "BEARER_TOKEN": "testtoken",
    "ORACLE_ADDRESS": "0x00000000000000000000000000000000000000aa",
    "HMAC_SECRET": "test_secret",
    "LEDGER_BASE_URL": "http://ledger.test",
    "LISTING_API_BASE_URL": "http://listings.test",
    "RANDOMNESS_API_URL": "http://random.test/v4/",
    "TIMESTAMP_SKEW_SECONDS": "5",
})

ORACLE = os.environ["ORACLE_ADDRESS"]


@pytest.fixture
def database():
    from zillopoly import database, models

    models.Base.metadata.drop_all(bind=database.engine)
    models.Base.metadata.create_all(bind=database.engine)
    return database


@pytest.fixture
def db(database):
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def ledger(db):
    from zillopoly.ledger import GameLedger

    return GameLedger(db)


@pytest.fixture
def app_module(database):
    import zillopoly.main as main

    main.app.dependency_overrides[main.require_bearer_token] = lambda: None
    yield main
    main.app.dependency_overrides.clear()


@pytest.fixture
def client(app_module):
    from fastapi.testclient import TestClient

    # Not used as a context manager, so the lifespan outbox worker stays off.
    return TestClient(app_module.app)
