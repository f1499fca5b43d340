import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Keep the app off any real database / local overrides before it is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "100000")
os.environ.setdefault("LEXICON_PATH", "tests/__missing_lexicon__.yml")

from apps.api.main import app  # noqa: E402
from apps.api.routes.search import get_search_service_factory  # noqa: E402
from apps.core.db import Base, get_session_factory  # noqa: E402
from apps.subjects.models import Subject  # noqa: E402
from apps.subjects.services.catalog_store import CatalogStore  # noqa: E402
from apps.subjects.services.fuzzy_matcher import FuzzyMatcher  # noqa: E402
from apps.subjects.services.lexicon import DEFAULT_LEXICON  # noqa: E402
from apps.subjects.services.search import SearchService  # noqa: E402


SUBJECTS = [
    {"name": "Joe's Diner", "type": "restaurant", "location": "1420 Larimer St", "city": "Denver",
     "average_rating": 4.3, "review_count": 212},
    {"name": "Mile High Steakhouse", "type": "steakhouse", "location": "1600 Wynkoop St", "city": "Denver",
     "average_rating": 4.6, "review_count": 540},
    {"name": "Denver Coffee Co", "type": "cafe", "location": "22 Blake St", "city": "Denver",
     "average_rating": 3.8, "review_count": 45},
    {"name": "Bean There Cafe", "type": "cafe", "location": "77 Pearl St", "city": "Boston",
     "average_rating": 4.1, "review_count": 98},
    {"name": "Harbor Seafood Shack", "type": "seafood", "location": "12 Atlantic Ave", "city": "Boston",
     "average_rating": 4.4, "review_count": 320},
    {"name": "Sweet Spot Desserts", "type": "dessert", "location": "300 Congress Ave", "city": "Austin",
     "average_rating": 4.8, "review_count": 150},
    {"name": "Rose City Bakery", "type": "bakery", "location": "410 NW 10th Ave", "city": "Portland",
     "average_rating": 4.7, "review_count": 260},
    {"name": "Pike Place Ramen", "type": "ramen", "location": "1501 Pike Pl", "city": "Seattle",
     "average_rating": 4.2, "review_count": 180},
    {"name": "Nowhere Noodles", "type": "ramen", "location": None, "city": None,
     "average_rating": 3.0, "review_count": 5},
]


class SpyStore(CatalogStore):
    """CatalogStore that records which operations ran"""

    def __init__(self, db):
        super().__init__(db)
        self.calls = []

    def filtered_search(self, filters, page_size, offset):
        self.calls.append("filtered_search")
        return super().filtered_search(filters, page_size, offset)

    def distinct_cities(self):
        self.calls.append("distinct_cities")
        return super().distinct_cities()

    def all_subjects(self, city=None):
        self.calls.append("all_subjects")
        return super().all_subjects(city)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def catalog(db_session):
    db_session.add_all([Subject(**row) for row in SUBJECTS])
    db_session.commit()
    return db_session


@pytest.fixture
def table_matcher():
    """FuzzyMatcher whose similarity comes from a lookup table (default 0.0)"""
    def build(table=None, default=0.0):
        table = table or {}
        return FuzzyMatcher(similarity_fn=lambda a, b: table.get((a, b), default))
    return build


@pytest.fixture
def make_service(catalog):
    """SearchService over the seeded catalog, with a spy store"""
    def build(matcher=None, lexicon=DEFAULT_LEXICON, db=None):
        store = SpyStore(db or catalog)
        return SearchService(
            store=store,
            lexicon=lexicon,
            matcher=matcher or FuzzyMatcher("ratio"),
        )
    return build


@pytest.fixture
def client(catalog, session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def override_service_factory():
    """Swap the SearchService factory used by the search routes"""
    def install(factory):
        app.dependency_overrides[get_search_service_factory] = lambda: factory
    return install
