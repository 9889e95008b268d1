# tests/conftest.py
import logging
import os
import uuid

import pytest
import pytest_asyncio
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from generic_repository.db_implementations.mongodb_repository import \
    MongoRepository
from generic_repository.mongodb.context import MongoDbContext

# Silence verbose loggers
logging.getLogger("pymongo").setLevel(logging.ERROR)
logging.getLogger("motor").setLevel(logging.ERROR)

# --- Constants ---
MONGO_URI = os.getenv("TEST_MONGO_URI", "mongodb://localhost:27017")
TEST_MONGO_DB_PREFIX = "pytest_generic_repo_"


# --- Availability Checks ---
def is_mongodb_available() -> bool:
    """Check if MongoDB is reachable (quick server selection)."""
    client = MongoClient(MONGO_URI, serverSelectionTimeoutMS=1000)
    try:
        client.admin.command("ping")
        logging.info(f"MongoDB found and responsive at {MONGO_URI}")
        return True
    except PyMongoError as e:
        logging.warning(
            f"MongoDB not reachable at {MONGO_URI}: {e}. Skipping MongoDB integration tests."
        )
        return False
    finally:
        client.close()


_MONGODB_AVAILABLE = None


def mongodb_available() -> bool:
    global _MONGODB_AVAILABLE
    if _MONGODB_AVAILABLE is None:
        _MONGODB_AVAILABLE = is_mongodb_available()
    return _MONGODB_AVAILABLE


# --- Fixtures ---
@pytest.fixture
def logger():
    return logging.getLogger("tests")


@pytest.fixture(scope="function")
def mongo_context():
    """A context on a throwaway database, dropped after the test."""
    if not mongodb_available():
        pytest.skip(f"MongoDB not available at {MONGO_URI}")
    database_name = f"{TEST_MONGO_DB_PREFIX}{uuid.uuid4().hex[:12]}"
    context = MongoDbContext.from_connection_string(MONGO_URI, database_name)
    try:
        yield context
    finally:
        context.database.client.drop_database(database_name)
        context.close()


@pytest_asyncio.fixture(scope="function")
async def async_mongo_context():
    """Like ``mongo_context``, created inside the running event loop for motor."""
    if not mongodb_available():
        pytest.skip(f"MongoDB not available at {MONGO_URI}")
    database_name = f"{TEST_MONGO_DB_PREFIX}{uuid.uuid4().hex[:12]}"
    context = MongoDbContext.from_connection_string(MONGO_URI, database_name)
    try:
        yield context
    finally:
        await context.async_database.client.drop_database(database_name)
        context.close()


@pytest.fixture
def repository_factory(mongo_context):
    """Builds a MongoRepository for a document type on the test database."""
    def _factory(document_type, key_type=None):
        return MongoRepository(mongo_context, document_type, key_type)

    return _factory


@pytest.fixture
def async_repository_factory(async_mongo_context):
    def _factory(document_type, key_type=None):
        return MongoRepository(async_mongo_context, document_type, key_type)

    return _factory
