"""Shared test fixtures for DynaRecord."""

import copy
import os
from collections.abc import Generator

import mongomock
import pytest

from dynarecord import DynaRecord, Settings
from dynarecord.core.connection import DatabaseConnection
from dynarecord.core.types import SchemaContext
from dynarecord.schema.reader import MetadataReader
from dynarecord.schema.store import SchemaStore

PRODUCT_FIELDS = [
    {"name": "productName", "type": "string", "required": True, "max_length": 255},
    {"name": "price", "type": "decimal", "required": True},
]

CUSTOMER_FIELDS = [
    {"name": "fullname", "type": "string", "required": True, "min_length": 2, "max_length": 100},
    {"name": "email", "type": "string", "required": True, "pattern": r"[^@\s]+@[^@\s]+\.\w+"},
    {"name": "age", "type": "integer"},
    {"name": "vip", "type": "boolean"},
    {"name": "joined", "type": "datetime"},
    {
        "name": "status",
        "type": "enum",
        "options": [{"value": "active", "label": "Active"}, {"value": "inactive"}],
        "default": "active",
    },
]


def _psycopg_available() -> bool:
    """Check if psycopg is installed."""
    try:
        import psycopg  # noqa: F401

        return True
    except ImportError:
        return False


# Skip marker for tests requiring PostgreSQL
requires_postgresql = pytest.mark.skipif(
    not _psycopg_available(),
    reason="psycopg not installed (install with: pip install dynarecord[postgresql])",
)


@pytest.fixture
def postgresql_url() -> str:
    """Get PostgreSQL URL from environment, skipping when none is reachable."""
    url = os.environ.get("TEST_DATABASE_URL", "postgresql://localhost/dynarecord_test")
    if not _psycopg_available():
        pytest.skip("psycopg not installed")
    try:
        conn = DatabaseConnection(url)
        conn.test_connection()
        conn.close()
    except Exception:
        pytest.skip(f"Cannot connect to PostgreSQL at {url}")
    return url


@pytest.fixture
def mongo_client() -> mongomock.MongoClient:
    """In-process MongoDB stand-in for the document backend."""
    return mongomock.MongoClient()


@pytest.fixture
def memory_db(mongo_client: mongomock.MongoClient) -> Generator[DynaRecord, None, None]:
    """DynaRecord on in-memory SQLite with both backends registered.

    Entities route to the relational backend unless the test reloads routing.
    """
    database = DynaRecord(
        settings=Settings(database_url="sqlite:///:memory:"),
        mongo_client=mongo_client,
    )
    yield database
    database.close()


@pytest.fixture
def document_db(mongo_client: mongomock.MongoClient) -> Generator[DynaRecord, None, None]:
    """DynaRecord whose default backend is the document store."""
    database = DynaRecord(
        settings=Settings(database_url="sqlite:///:memory:", default_backend="document"),
        mongo_client=mongo_client,
    )
    yield database
    database.close()


@pytest.fixture(params=["relational", "document"])
def any_db(
    request: pytest.FixtureRequest, mongo_client: mongomock.MongoClient
) -> Generator[DynaRecord, None, None]:
    """Run a test once per storage backend."""
    database = DynaRecord(
        settings=Settings(database_url="sqlite:///:memory:", default_backend=request.param),
        mongo_client=mongo_client,
    )
    yield database
    database.close()


@pytest.fixture
def connection() -> Generator[DatabaseConnection, None, None]:
    """Bare in-memory SQLite connection."""
    conn = DatabaseConnection("sqlite:///:memory:")
    yield conn
    conn.close()


@pytest.fixture
def store(connection: DatabaseConnection) -> SchemaStore:
    """Initialized schema store."""
    schema_store = SchemaStore(connection)
    schema_store.initialize()
    return schema_store


@pytest.fixture
def customer_context(store: SchemaStore, connection: DatabaseConnection) -> SchemaContext:
    """Schema context of a Customer entity covering every field type."""
    store.create_entity("Customer", fields=CUSTOMER_FIELDS)
    return MetadataReader(connection).load_context("Customer")


@pytest.fixture
def product_context(store: SchemaStore, connection: DatabaseConnection) -> SchemaContext:
    """Schema context of the Product entity."""
    store.create_entity("Product", fields=PRODUCT_FIELDS)
    return MetadataReader(connection).load_context("Product")


@pytest.fixture
def product_fields() -> list[dict]:
    """Field specs of the Product entity (productName, price)."""
    return copy.deepcopy(PRODUCT_FIELDS)


@pytest.fixture
def customer_fields() -> list[dict]:
    """Field specs of a Customer entity covering every field type."""
    return copy.deepcopy(CUSTOMER_FIELDS)
