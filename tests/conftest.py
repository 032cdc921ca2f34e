import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient
from network_blocker import install_network_blocker

from db.models import ALL_DOCUMENT_MODELS, LocationSample


@pytest.fixture(autouse=True)
def _default_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OSRM_BASE_URL", "http://osrm.test")
    install_network_blocker(monkeypatch)


@pytest.fixture
async def beanie_db():
    client = AsyncMongoMockClient()
    database = client["test_db"]
    await init_beanie(database=database, document_models=ALL_DOCUMENT_MODELS)
    return database


def make_samples(
    coords: list[tuple[float, float]],
    *,
    start_ms: int = 1_700_000_000_000,
    interval_ms: int = 10_000,
) -> list[LocationSample]:
    """Build samples from (lat, lon) pairs spaced ``interval_ms`` apart."""
    return [
        LocationSample(latitude=lat, longitude=lon, timestamp=start_ms + i * interval_ms)
        for i, (lat, lon) in enumerate(coords)
    ]


@pytest.fixture
def sample_factory():
    return make_samples
