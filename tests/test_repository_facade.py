# tests/test_repository_facade.py

import threading
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson.binary import UuidRepresentation
from bson.codec_options import CodecOptions
from pydantic import BaseModel
from pymongo.database import Database

from generic_repository import (MongoRepository, ReadOnlyMongoRepository,
                                ReadOnlyRepository, Repository)
from generic_repository.base.exceptions import OperationCancelledError
from generic_repository.base.update import Update
from generic_repository.mongodb.context import MongoDbContext
from generic_repository.mongodb.creator import MongoDbCreator
from generic_repository.mongodb.eraser import MongoDbEraser
from generic_repository.mongodb.index_handler import (IndexCreationOptions,
                                                      MongoDbIndexHandler)
from generic_repository.mongodb.reader import MongoDbReader
from generic_repository.mongodb.updater import MongoDbUpdater
from tests.models import AuditEntry, Person, Sale


@pytest.fixture
def database():
    database = MagicMock(spec=Database)
    database.name = "facade_db"
    database.codec_options = CodecOptions(uuid_representation=UuidRepresentation.STANDARD)
    return database


@pytest.fixture
def context(database):
    return MongoDbContext(database=database)


def with_mocked_families(repository):
    repository._reader = MagicMock(spec=MongoDbReader)
    repository._creator = MagicMock(spec=MongoDbCreator)
    repository._updater = MagicMock(spec=MongoDbUpdater)
    repository._updater.is_document.side_effect = MongoDbUpdater.is_document
    repository._eraser = MagicMock(spec=MongoDbEraser)
    repository._indexes = MagicMock(spec=MongoDbIndexHandler)
    return repository


@pytest.fixture
def repo(context):
    return with_mocked_families(MongoRepository(context, Person))


# --- Construction ---

def test_repository_types(context):
    read_only = ReadOnlyMongoRepository(context, Person)
    read_write = MongoRepository(context, Sale)
    assert isinstance(read_only, ReadOnlyRepository)
    assert not isinstance(read_only, Repository)
    assert isinstance(read_write, Repository)
    assert isinstance(read_write, ReadOnlyRepository)


def test_key_type_is_inferred(context):
    assert MongoRepository(context, Person).key_type is int
    assert MongoRepository(context, AuditEntry).key_type is str
    assert MongoRepository(context, Person).document_type is Person


def test_explicit_key_type(context):
    class Loose(BaseModel):
        id: Optional[Any] = None

    assert MongoRepository(context, Loose, key_type=str).key_type is str


def test_unknown_key_type_rejected(context):
    class Loose(BaseModel):
        id: Optional[Any] = None

    with pytest.raises(TypeError, match="key type"):
        MongoRepository(context, Loose)


def test_context_type_checked():
    with pytest.raises(TypeError):
        MongoRepository(object(), Person)


def test_read_only_has_no_write_operations(context):
    repository = ReadOnlyMongoRepository(context, Person)
    assert not hasattr(repository, "add_one")
    assert not hasattr(repository, "delete_many")


# --- Forwarding ---

def test_reads_forward_document_type_and_options(repo):
    cancellation = threading.Event()
    repo.get_by_id(3, partition_key="p", cancellation=cancellation)
    repo._reader.get_by_id.assert_called_once_with(
        Person, 3, partition_key="p", cancellation=cancellation
    )

    repo.count({"age": 1}, count_options={"limit": 2})
    repo._reader.count.assert_called_once_with(Person, {"age": 1}, count_options={"limit": 2})

    repo.get_sorted_paginated({}, "age", ascending=False, skip=1, take=2)
    repo._reader.get_sorted_paginated.assert_called_once_with(
        Person, {}, "age", ascending=False, skip=1, take=2
    )


def test_native_read_options_forward(repo):
    repo.get_by_max({}, "age", find_options={"hint": "age_1"})
    repo._reader.get_by_max.assert_called_once_with(Person, {}, "age", find_options={"hint": "age_1"})

    repo.get_paginated({}, take=5, find_options={"comment": "page"})
    repo._reader.get_paginated.assert_called_once_with(
        Person, {}, take=5, find_options={"comment": "page"}
    )

    repo.group_by("age", {"n": "age"}, aggregate_options={"allowDiskUse": True})
    repo._reader.group_by.assert_called_once_with(
        Person, "age", {"n": "age"}, aggregate_options={"allowDiskUse": True}
    )


def test_add_passes_the_key_type(repo):
    person = Person(name="a")
    repo.add_one(person)
    repo._creator.add_one.assert_called_once_with(person, key_type=int)
    repo.add_many([person], key_type=str)
    repo._creator.add_many.assert_called_once_with([person], key_type=str)


def test_update_one_with_update_builder(repo):
    update = Update(Person).set("name", "b")
    repo.update_one({"name": "a"}, update, partition_key="x")
    repo._updater.update_one.assert_called_once_with(Person, {"name": "a"}, update, partition_key="x")


def test_update_one_field_form(repo):
    repo.update_one({"name": "a"}, lambda p: p.age, 5)
    args = repo._updater.update_one_field.call_args.args
    assert args[0] is Person and args[1] == {"name": "a"} and args[3] == 5


def test_update_one_field_form_accepts_none_value(repo):
    repo.update_one({"name": "a"}, "address", None)
    assert repo._updater.update_one_field.call_args.args[3] is None


def test_update_one_without_update_replaces_document(repo):
    person = Person(id=1, name="x")
    repo.update_one(person, partition_key="ignored", session="s")
    repo._updater.replace_one.assert_called_once_with(person, session="s")


def test_update_one_replacement_requires_document(repo):
    with pytest.raises(ValueError, match="replaces a document"):
        repo.update_one({"name": "x"})


def test_update_many_forms(repo):
    repo.update_many({}, {"$set": {"age": 1}})
    repo._updater.update_many.assert_called_once_with(Person, {}, {"$set": {"age": 1}})
    repo.update_many({}, "age", 2)
    repo._updater.update_many_field.assert_called_once_with(Person, {}, "age", 2)


def test_deletes_forward(repo):
    repo._eraser.delete_many.return_value = 4
    assert repo.delete_many(lambda p: p.age > 1, partition_key="p") == 4
    repo.delete_one({"_id": 1})
    repo._eraser.delete_one.assert_called_once_with(Person, {"_id": 1})


def test_index_operations_forward(repo):
    options = IndexCreationOptions(unique=True)
    repo.create_ascending_index("name", options, partition_key="p")
    repo._indexes.create_ascending_index.assert_called_once_with(
        Person, "name", options, partition_key="p"
    )
    repo.create_combined_text_index(["name", "tags"])
    repo._indexes.create_combined_text_index.assert_called_once_with(
        Person, ["name", "tags"], None
    )
    repo.drop_index("name_1")
    repo._indexes.drop_index.assert_called_once_with(Person, "name_1")


def test_drop_collection(repo, database):
    repo.drop_collection(partition_key="p")
    database.drop_collection.assert_called_once_with("p-people", session=None)


def test_drop_collection_cancelled(repo, database):
    cancellation = threading.Event()
    cancellation.set()
    with pytest.raises(OperationCancelledError):
        repo.drop_collection(cancellation=cancellation)
    database.drop_collection.assert_not_called()


# --- Async forwarding ---

async def test_async_operations_forward(repo):
    repo._reader.get_all_async = AsyncMock(return_value=[])
    repo._updater.replace_one_async = AsyncMock(return_value=True)
    repo._eraser.delete_one_async = AsyncMock(return_value=1)

    assert await repo.get_all_async({"age": 3}) == []
    repo._reader.get_all_async.assert_awaited_once_with(Person, {"age": 3})

    person = Person(id=2)
    assert await repo.update_one_async(person) is True
    repo._updater.replace_one_async.assert_awaited_once_with(person)

    assert await repo.delete_one_async(person) == 1


def test_close_closes_context(context):
    repository = MongoRepository(context, Person)
    client = MagicMock()
    context._owned_clients.append(client)
    repository.close()
    client.close.assert_called_once()
