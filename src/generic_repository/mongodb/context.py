import logging
from typing import Any, Optional, Type

from bson.binary import UuidRepresentation
from motor.motor_asyncio import (AsyncIOMotorClient, AsyncIOMotorCollection,
                                 AsyncIOMotorDatabase)
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from generic_repository.base.exceptions import RepositoryConfigurationError
from generic_repository.base.naming import resolve_collection_name

log = logging.getLogger(__name__)

# UUIDs are stored as standard (subtype 4) binary; datetimes come back UTC-aware.
DEFAULT_CLIENT_OPTIONS = {"uuidRepresentation": "standard", "tz_aware": True}


def _with_standard_uuids(database: Any) -> Any:
    """Rebinds a database whose client left the UUID representation unspecified."""
    if database is None:
        return None
    codec_options = database.codec_options
    if codec_options.uuid_representation != UuidRepresentation.UNSPECIFIED:
        return database
    log.debug(f"Using standard UUID representation for database '{database.name}'")
    return database.with_options(
        codec_options=codec_options.with_options(
            uuid_representation=UuidRepresentation.STANDARD
        )
    )


class MongoDbContext:
    """
    Holds the database handles and resolves document types to collections.

    The synchronous operations use the pymongo ``database``, the asynchronous
    ones the motor ``async_database``. Either may be omitted when only one
    style of call is used. Acquiring a collection never creates it, MongoDB
    does so on first write.
    """

    def __init__(
        self,
        database: Optional[Database] = None,
        async_database: Optional[AsyncIOMotorDatabase] = None,
    ):
        if database is None and async_database is None:
            raise RepositoryConfigurationError(
                "MongoDbContext needs a database, an async_database or both."
            )
        if database is not None and not isinstance(database, Database):
            raise TypeError("database must be a pymongo Database")
        if async_database is not None and not isinstance(async_database, AsyncIOMotorDatabase):
            raise TypeError("async_database must be an AsyncIOMotorDatabase")
        self._database = _with_standard_uuids(database)
        self._async_database = _with_standard_uuids(async_database)
        self._owned_clients: list = []
        log.info(
            f"MongoDbContext created for database "
            f"'{(database if database is not None else async_database).name}'"
        )

    @classmethod
    def from_connection_string(
        cls, connection_string: str, database_name: str, **client_options: Any
    ) -> "MongoDbContext":
        """
        Creates both a pymongo and a motor client for ``connection_string``.

        ``client_options`` are passed to both clients on top of
        :data:`DEFAULT_CLIENT_OPTIONS`. The clients are closed by :meth:`close`.
        """
        options = {**DEFAULT_CLIENT_OPTIONS, **client_options}
        sync_client = MongoClient(connection_string, **options)
        async_client = AsyncIOMotorClient(connection_string, **options)
        context = cls(
            database=sync_client[database_name],
            async_database=async_client[database_name],
        )
        context._owned_clients.extend([sync_client, async_client])
        return context

    @property
    def database(self) -> Database:
        if self._database is None:
            raise RepositoryConfigurationError(
                "No synchronous database configured; use the *_async operations "
                "or pass a pymongo database."
            )
        return self._database

    @property
    def async_database(self) -> AsyncIOMotorDatabase:
        if self._async_database is None:
            raise RepositoryConfigurationError(
                "No asynchronous database configured; use the synchronous operations "
                "or pass a motor database."
            )
        return self._async_database

    def get_collection(
        self, document_type: Type, partition_key: Optional[str] = None
    ) -> Collection:
        """Returns the pymongo collection for ``document_type`` in ``partition_key``."""
        name = resolve_collection_name(document_type, partition_key)
        return self.database[name]

    def get_async_collection(
        self, document_type: Type, partition_key: Optional[str] = None
    ) -> AsyncIOMotorCollection:
        """Returns the motor collection for ``document_type`` in ``partition_key``."""
        name = resolve_collection_name(document_type, partition_key)
        return self.async_database[name]

    def drop_collection(
        self, document_type: Type, partition_key: Optional[str] = None, *, session=None
    ) -> None:
        name = resolve_collection_name(document_type, partition_key)
        log.info(f"Dropping collection '{name}'")
        self.database.drop_collection(name, session=session)

    async def drop_collection_async(
        self, document_type: Type, partition_key: Optional[str] = None, *, session=None
    ) -> None:
        name = resolve_collection_name(document_type, partition_key)
        log.info(f"Dropping collection '{name}'")
        await self.async_database.drop_collection(name, session=session)

    def close(self) -> None:
        """Closes the clients created by :meth:`from_connection_string`."""
        for client in self._owned_clients:
            client.close()
        self._owned_clients.clear()
