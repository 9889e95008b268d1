import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union

from pymongo import ASCENDING, DESCENDING, HASHED, TEXT

from generic_repository.mongodb.base import DataAccessBase, raise_if_cancelled
from generic_repository.mongodb.translation import Selector, field_path

IndexKeys = List[Tuple[str, Any]]


@dataclass
class IndexCreationOptions:
    """
    Options accepted by every index creation call.

    Unset options are not sent, so the server defaults apply.
    """

    unique: Optional[bool] = None
    sparse: Optional[bool] = None
    name: Optional[str] = None
    expire_after: Optional[Union[timedelta, int, float]] = None
    default_language: Optional[str] = None
    language_override: Optional[str] = None
    text_index_version: Optional[int] = None
    sphere_index_version: Optional[int] = None
    bits: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    background: Optional[bool] = None
    version: Optional[int] = None

    def to_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``create_index``."""
        expire_after = self.expire_after
        if isinstance(expire_after, timedelta):
            expire_after = int(expire_after.total_seconds())
        options = {
            "unique": self.unique,
            "sparse": self.sparse,
            "name": self.name,
            "expireAfterSeconds": expire_after,
            "default_language": self.default_language,
            "language_override": self.language_override,
            "textIndexVersion": self.text_index_version,
            "2dsphereIndexVersion": self.sphere_index_version,
            "bits": self.bits,
            "min": self.min,
            "max": self.max,
            "background": self.background,
            "v": self.version,
        }
        return {key: value for key, value in options.items() if value is not None}


class MongoDbIndexHandler(DataAccessBase):
    """Creates, lists and drops indexes on (partitioned) collections."""

    # --- Creation ---
    def create_ascending_index(
        self,
        document_type: Type,
        selector: Selector,
        options: Optional[IndexCreationOptions] = None,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> str:
        keys = [(field_path(selector, document_type), ASCENDING)]
        return self._create(document_type, keys, options, partition_key, session, cancellation)

    def create_descending_index(
        self,
        document_type: Type,
        selector: Selector,
        options: Optional[IndexCreationOptions] = None,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> str:
        keys = [(field_path(selector, document_type), DESCENDING)]
        return self._create(document_type, keys, options, partition_key, session, cancellation)

    def create_text_index(
        self,
        document_type: Type,
        selector: Selector,
        options: Optional[IndexCreationOptions] = None,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> str:
        keys = [(field_path(selector, document_type), TEXT)]
        return self._create(document_type, keys, options, partition_key, session, cancellation)

    def create_combined_text_index(
        self,
        document_type: Type,
        selectors: Sequence[Selector],
        options: Optional[IndexCreationOptions] = None,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> str:
        """A single text index over several fields (a collection holds at most one)."""
        keys = self._text_keys(document_type, selectors)
        return self._create(document_type, keys, options, partition_key, session, cancellation)

    def create_hashed_index(
        self,
        document_type: Type,
        selector: Selector,
        options: Optional[IndexCreationOptions] = None,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> str:
        keys = [(field_path(selector, document_type), HASHED)]
        return self._create(document_type, keys, options, partition_key, session, cancellation)

    @staticmethod
    def _text_keys(document_type: Type, selectors: Sequence[Selector]) -> IndexKeys:
        if not selectors:
            raise ValueError("A combined text index needs at least one field.")
        return [(field_path(selector, document_type), TEXT) for selector in selectors]

    def _create(self, document_type, keys, options, partition_key, session, cancellation) -> str:
        raise_if_cancelled(cancellation, "create_index")
        collection = self.get_collection(document_type, partition_key)
        kwargs = (options or IndexCreationOptions()).to_kwargs()
        with self._driver_errors(f"create_index on '{collection.name}'"):
            name = collection.create_index(keys, session=session, **kwargs)
        self._logger.info(f"Created index '{name}' on '{collection.name}'")
        return name

    async def create_ascending_index_async(
        self,
        document_type: Type,
        selector: Selector,
        options: Optional[IndexCreationOptions] = None,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> str:
        keys = [(field_path(selector, document_type), ASCENDING)]
        return await self._create_async(document_type, keys, options, partition_key, session, cancellation)

    async def create_descending_index_async(
        self,
        document_type: Type,
        selector: Selector,
        options: Optional[IndexCreationOptions] = None,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> str:
        keys = [(field_path(selector, document_type), DESCENDING)]
        return await self._create_async(document_type, keys, options, partition_key, session, cancellation)

    async def create_text_index_async(
        self,
        document_type: Type,
        selector: Selector,
        options: Optional[IndexCreationOptions] = None,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> str:
        keys = [(field_path(selector, document_type), TEXT)]
        return await self._create_async(document_type, keys, options, partition_key, session, cancellation)

    async def create_combined_text_index_async(
        self,
        document_type: Type,
        selectors: Sequence[Selector],
        options: Optional[IndexCreationOptions] = None,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> str:
        keys = self._text_keys(document_type, selectors)
        return await self._create_async(document_type, keys, options, partition_key, session, cancellation)

    async def create_hashed_index_async(
        self,
        document_type: Type,
        selector: Selector,
        options: Optional[IndexCreationOptions] = None,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> str:
        keys = [(field_path(selector, document_type), HASHED)]
        return await self._create_async(document_type, keys, options, partition_key, session, cancellation)

    async def _create_async(self, document_type, keys, options, partition_key, session, cancellation) -> str:
        collection = self.get_async_collection(document_type, partition_key)
        kwargs = (options or IndexCreationOptions()).to_kwargs()
        with self._driver_errors(f"create_index on '{collection.name}'"):
            name = await self._await_cancellable(
                lambda: collection.create_index(keys, session=session, **kwargs),
                cancellation,
                "create_index",
            )
        self._logger.info(f"Created index '{name}' on '{collection.name}'")
        return name

    # --- Inspection and removal ---
    def drop_index(
        self,
        document_type: Type,
        index_name: str,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> None:
        raise_if_cancelled(cancellation, "drop_index")
        collection = self.get_collection(document_type, partition_key)
        with self._driver_errors(f"drop_index '{index_name}' on '{collection.name}'"):
            collection.drop_index(index_name, session=session)
        self._logger.info(f"Dropped index '{index_name}' on '{collection.name}'")

    async def drop_index_async(
        self,
        document_type: Type,
        index_name: str,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> None:
        collection = self.get_async_collection(document_type, partition_key)
        with self._driver_errors(f"drop_index '{index_name}' on '{collection.name}'"):
            await self._await_cancellable(
                lambda: collection.drop_index(index_name, session=session),
                cancellation,
                "drop_index",
            )
        self._logger.info(f"Dropped index '{index_name}' on '{collection.name}'")

    def get_index_names(
        self,
        document_type: Type,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> List[str]:
        """Names of the collection's indexes, the default ``_id_`` index included."""
        raise_if_cancelled(cancellation, "get_index_names")
        collection = self.get_collection(document_type, partition_key)
        with self._driver_errors(f"index_information on '{collection.name}'"):
            return list(collection.index_information(session=session))

    async def get_index_names_async(
        self,
        document_type: Type,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> List[str]:
        collection = self.get_async_collection(document_type, partition_key)
        with self._driver_errors(f"index_information on '{collection.name}'"):
            info = await self._await_cancellable(
                lambda: collection.index_information(session=session),
                cancellation,
                "get_index_names",
            )
        return list(info)
