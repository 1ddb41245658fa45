from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from obituary_search.config import OBITUARY_COLLECTION, RELATIONSHIP_COLLECTION
from obituary_search.errors import StorageError
from obituary_search.store import InMemoryObituaryStore


def utc(year, month, day):
    return datetime(year, month, day, tzinfo=timezone.utc)


KELOWNA = {"name": "Kelowna", "province": "British Columbia", "country": {"name": "Canada"}}
VERNON = {"name": "Vernon", "province": "British Columbia", "country": {"name": "Canada"}}
CALGARY = {"name": "Calgary", "province": "Alberta", "country": {"name": "Canada"}}
OSLO = {"name": "Oslo", "province": None, "country": {"name": "Norway"}}


def _obituary(reference, surname, given_names, maiden_name=None, birth=None, death=None,
              birth_city=None, death_city=None, aka=None, relatives=None, images=None):
    return {
        "reference": reference,
        "surname": surname,
        "givenNames": given_names,
        "maidenName": maiden_name,
        "birthDate": birth,
        "deathDate": death,
        "birthCity": birth_city,
        "deathCity": death_city,
        "alsoKnownAs": aka or [],
        "relatives": relatives or [],
        "imageNames": images or [],
    }


OBITUARIES = [
    _obituary(
        "KDGS-0001", "Anderson", "John Peter",
        birth=utc(1915, 6, 10), death=utc(1990, 1, 5),
        birth_city=KELOWNA, death_city=VERNON,
        relatives=[{"surname": "Anderson", "givenNames": "Mary", "familyRelationshipId": "rel-wife"}],
        images=["kdgs-0001-a.jpg", "kdgs-0001-b.jpg"],
    ),
    _obituary(
        "KDGS-0002", "Anderson", "Karl",
        birth=utc(1925, 3, 2), death=utc(2001, 11, 30),
        birth_city=OSLO, death_city=KELOWNA,
        relatives=[{"surname": "Olsen", "givenNames": "Ingrid", "familyRelationshipId": "rel-daughter"}],
    ),
    _obituary(
        "KDGS-0003", "Smith", "John",
        birth=utc(1950, 2, 14), death=utc(2010, 7, 4),
        birth_city=CALGARY, death_city=KELOWNA,
        images=["kdgs-0003.pdf"],
    ),
    _obituary(
        "KDGS-0004", "Smith", "Alice", maiden_name="Brown",
        birth=utc(1950, 2, 28), death=utc(2015, 3, 9),
        death_city=CALGARY,
        aka=[{"surname": "Smyth", "otherNames": "Ally"}],
    ),
    _obituary(
        "KDGS-0005", "Jones", "John",
        birth=utc(1950, 3, 1), death=utc(1999, 12, 31),
        aka=[{"surname": "Smith", "otherNames": "Jack"}],
    ),
    _obituary(
        "KDGS-0006", "Brown", "Mary", maiden_name="Whitfield",
        birth=utc(1951, 1, 1),
    ),
    _obituary(
        "KDGS-0007", "smith", "Zoe",
        death=utc(2020, 2, 29),
    ),
    _obituary(
        "KDGS-0008", None, "Unknown",
    ),
]

# Full result order by (surname, givenNames, reference), case-insensitive, nulls first.
ALL_REFERENCES_IN_ORDER = [
    "KDGS-0008",
    "KDGS-0001",
    "KDGS-0002",
    "KDGS-0006",
    "KDGS-0005",
    "KDGS-0004",
    "KDGS-0003",
    "KDGS-0007",
]

RELATIONSHIPS = [
    {"_id": "rel-wife", "name": "Wife"},
    {"_id": "rel-daughter", "name": "Daughter"},
    {"_id": "rel-husband", "name": "Husband"},
    {"_id": "rel-son", "name": "Son"},
    {"_id": "rel-granddaughter", "name": "Granddaughter"},
]


@pytest.fixture
def memory_store():
    return InMemoryObituaryStore({
        OBITUARY_COLLECTION: OBITUARIES,
        RELATIONSHIP_COLLECTION: RELATIONSHIPS,
    })


class FailingStore:
    """A store whose every read fails, counting the attempts."""
    def __init__(self):
        self.calls = 0

    async def execute_atomic(self, find, count):
        self.calls += 1
        raise StorageError("connection refused")

    async def find_one(self, collection, where, projection=()):
        self.calls += 1
        raise StorageError("connection refused")

    async def ping(self):
        return False


@pytest.fixture
def failing_store():
    return FailingStore()


def references(response):
    return [result.reference for result in response.results]


@pytest.fixture
def api_client(memory_store):
    """FastAPI test client serving the in-memory records."""
    from main import app
    from obituary_search.routes import get_store

    app.dependency_overrides[get_store] = lambda: memory_store
    # No context manager: the lifespan (and its database connection) is not started.
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def failing_api_client(failing_store):
    from main import app
    from obituary_search.routes import get_store

    app.dependency_overrides[get_store] = lambda: failing_store
    yield TestClient(app)
    app.dependency_overrides.clear()
