# tests/mongodb/conftest.py

from typing import Any, Dict, Iterable, Optional, Type
from unittest.mock import AsyncMock, MagicMock

import pytest

from generic_repository.base.naming import resolve_collection_name

_ASYNC_COLLECTION_METHODS = (
    "insert_one",
    "insert_many",
    "find_one",
    "count_documents",
    "replace_one",
    "update_one",
    "update_many",
    "find_one_and_update",
    "delete_one",
    "delete_many",
    "create_index",
    "drop_index",
    "index_information",
)


def make_cursor(documents: Iterable[Dict[str, Any]] = ()) -> MagicMock:
    """A pymongo-like cursor over ``documents`` supporting sort/skip/limit chaining."""
    cursor = MagicMock(name="cursor")
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.__iter__.return_value = list(documents)
    return cursor


def make_async_cursor(documents: Iterable[Dict[str, Any]] = ()) -> MagicMock:
    """A motor-like cursor: chaining, ``to_list``, ``async for`` and awaitable ``close``."""
    rows = list(documents)
    cursor = MagicMock(name="async_cursor")
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=rows)
    cursor.__aiter__.return_value = rows
    cursor.close = AsyncMock()
    return cursor


def make_command_cursor(rows: Iterable[Dict[str, Any]] = ()) -> MagicMock:
    """Result of a motor ``aggregate`` call."""
    cursor = MagicMock(name="command_cursor")
    cursor.to_list = AsyncMock(return_value=list(rows))
    return cursor


class FakeContext:
    """
    Stands in for MongoDbContext: one mock collection per resolved name.

    Sync collections are plain MagicMocks. Async collections have AsyncMock
    driver methods, ``find``/``aggregate`` stay synchronous as in motor.
    """

    def __init__(self):
        self.collections: Dict[str, MagicMock] = {}
        self.async_collections: Dict[str, MagicMock] = {}

    def get_collection(self, document_type: Type, partition_key: Optional[str] = None) -> MagicMock:
        name = resolve_collection_name(document_type, partition_key)
        if name not in self.collections:
            collection = MagicMock(name=f"collection[{name}]")
            collection.name = name
            self.collections[name] = collection
        return self.collections[name]

    def get_async_collection(self, document_type: Type, partition_key: Optional[str] = None) -> MagicMock:
        name = resolve_collection_name(document_type, partition_key)
        if name not in self.async_collections:
            collection = MagicMock(name=f"async_collection[{name}]")
            collection.name = name
            for method in _ASYNC_COLLECTION_METHODS:
                setattr(collection, method, AsyncMock(name=f"{name}.{method}"))
            self.async_collections[name] = collection
        return self.async_collections[name]


def result(**counts: Any) -> MagicMock:
    """A driver write result with the given counts."""
    return MagicMock(**counts)


@pytest.fixture
def context() -> FakeContext:
    return FakeContext()


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(name="session")
