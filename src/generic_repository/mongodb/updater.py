import asyncio
from typing import Any, Dict, Optional, Type, TypeVar

from pymongo import ReturnDocument

from generic_repository.mongodb.base import DataAccessBase, raise_if_cancelled
from generic_repository.mongodb.translation import (DB_ID_FIELD, Filter,
                                                    Selector, UpdateSpec,
                                                    set_field_update,
                                                    to_native_update)

T = TypeVar("T")


class MongoDbUpdater(DataAccessBase):
    """
    Replaces and updates documents.

    Single-document forms report whether exactly one document was modified.
    Many-document forms return the driver's modified count. Matching
    documents whose content is already equal to the update are not counted.
    """

    def _replacement(self, document: Any) -> Dict[str, Any]:
        body = self._serialize(document)
        body.pop(DB_ID_FIELD, None)
        return body

    # --- replace_one ---
    def replace_one(self, document: Any, *, session=None, cancellation=None) -> bool:
        """Replaces the stored document with the same id in ``document``'s partition."""
        raise_if_cancelled(cancellation, "replace_one")
        collection = self.handle_partitioned(document)
        with self._driver_errors(f"replace_one on '{collection.name}'"):
            result = collection.replace_one(
                self._id_filter(document), self._replacement(document), session=session
            )
        self._logger.debug(f"replace_one on '{collection.name}' modified {result.modified_count}")
        return result.modified_count == 1

    async def replace_one_async(
        self, document: Any, *, session=None, cancellation: Optional[asyncio.Event] = None
    ) -> bool:
        collection = self.handle_partitioned_async(document)
        id_filter = self._id_filter(document)
        body = self._replacement(document)
        with self._driver_errors(f"replace_one on '{collection.name}'"):
            result = await self._await_cancellable(
                lambda: collection.replace_one(id_filter, body, session=session),
                cancellation,
                "replace_one",
            )
        self._logger.debug(f"replace_one on '{collection.name}' modified {result.modified_count}")
        return result.modified_count == 1

    # --- update_one / update_one_field ---
    def update_one(
        self,
        document_type: Type,
        target: Any,
        update: UpdateSpec,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> bool:
        """
        Applies ``update`` to the first document addressed by ``target``.

        ``target`` is a document instance (matched by id in its own
        partition) or a filter evaluated in ``partition_key``.
        """
        native_update = to_native_update(update, document_type)
        return self._update_one(
            document_type, target, native_update, partition_key, session, cancellation
        )

    def update_one_field(
        self,
        document_type: Type,
        target: Any,
        selector: Selector,
        value: Any,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> bool:
        """Sets the field at ``selector`` to ``value`` on the addressed document."""
        native_update = set_field_update(selector, value, document_type)
        return self._update_one(
            document_type, target, native_update, partition_key, session, cancellation
        )

    def _update_one(self, document_type, target, native_update, partition_key, session, cancellation) -> bool:
        raise_if_cancelled(cancellation, "update_one")
        partition_key, native_filter = self._resolve_target(document_type, target, partition_key)
        collection = self.get_collection(document_type, partition_key)
        with self._driver_errors(f"update_one on '{collection.name}'"):
            result = collection.update_one(native_filter, native_update, session=session)
        self._logger.debug(
            f"update_one on '{collection.name}': filter={native_filter} update={native_update} "
            f"modified={result.modified_count}"
        )
        return result.modified_count == 1

    async def update_one_async(
        self,
        document_type: Type,
        target: Any,
        update: UpdateSpec,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> bool:
        native_update = to_native_update(update, document_type)
        return await self._update_one_async(
            document_type, target, native_update, partition_key, session, cancellation
        )

    async def update_one_field_async(
        self,
        document_type: Type,
        target: Any,
        selector: Selector,
        value: Any,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> bool:
        native_update = set_field_update(selector, value, document_type)
        return await self._update_one_async(
            document_type, target, native_update, partition_key, session, cancellation
        )

    async def _update_one_async(self, document_type, target, native_update, partition_key, session, cancellation) -> bool:
        partition_key, native_filter = self._resolve_target(document_type, target, partition_key)
        collection = self.get_async_collection(document_type, partition_key)
        with self._driver_errors(f"update_one on '{collection.name}'"):
            result = await self._await_cancellable(
                lambda: collection.update_one(native_filter, native_update, session=session),
                cancellation,
                "update_one",
            )
        self._logger.debug(
            f"update_one on '{collection.name}': filter={native_filter} update={native_update} "
            f"modified={result.modified_count}"
        )
        return result.modified_count == 1

    # --- update_many / update_many_field ---
    def update_many(
        self,
        document_type: Type,
        filter: Filter,
        update: UpdateSpec,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> int:
        """Applies ``update`` to every matching document; returns the modified count."""
        native_update = to_native_update(update, document_type)
        return self._update_many(
            document_type, filter, native_update, partition_key, session, cancellation
        )

    def update_many_field(
        self,
        document_type: Type,
        filter: Filter,
        selector: Selector,
        value: Any,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> int:
        native_update = set_field_update(selector, value, document_type)
        return self._update_many(
            document_type, filter, native_update, partition_key, session, cancellation
        )

    def _update_many(self, document_type, filter, native_update, partition_key, session, cancellation) -> int:
        raise_if_cancelled(cancellation, "update_many")
        partition_key, native_filter = self._resolve_target(document_type, filter, partition_key)
        collection = self.get_collection(document_type, partition_key)
        with self._driver_errors(f"update_many on '{collection.name}'"):
            result = collection.update_many(native_filter, native_update, session=session)
        self._logger.info(f"update_many on '{collection.name}' modified {result.modified_count} document(s)")
        return result.modified_count

    async def update_many_async(
        self,
        document_type: Type,
        filter: Filter,
        update: UpdateSpec,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> int:
        native_update = to_native_update(update, document_type)
        return await self._update_many_async(
            document_type, filter, native_update, partition_key, session, cancellation
        )

    async def update_many_field_async(
        self,
        document_type: Type,
        filter: Filter,
        selector: Selector,
        value: Any,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> int:
        native_update = set_field_update(selector, value, document_type)
        return await self._update_many_async(
            document_type, filter, native_update, partition_key, session, cancellation
        )

    async def _update_many_async(self, document_type, filter, native_update, partition_key, session, cancellation) -> int:
        partition_key, native_filter = self._resolve_target(document_type, filter, partition_key)
        collection = self.get_async_collection(document_type, partition_key)
        with self._driver_errors(f"update_many on '{collection.name}'"):
            result = await self._await_cancellable(
                lambda: collection.update_many(native_filter, native_update, session=session),
                cancellation,
                "update_many",
            )
        self._logger.info(f"update_many on '{collection.name}' modified {result.modified_count} document(s)")
        return result.modified_count

    # --- get_and_update_one ---
    def get_and_update_one(
        self,
        document_type: Type[T],
        filter: Filter,
        update: UpdateSpec,
        *,
        return_updated: bool = True,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> Optional[T]:
        """
        Atomically updates the first matching document and returns it.

        The returned document reflects the state after the update, or before
        it when ``return_updated`` is False. None when nothing matches.
        """
        raise_if_cancelled(cancellation, "get_and_update_one")
        native_update = to_native_update(update, document_type)
        partition_key, native_filter = self._resolve_target(document_type, filter, partition_key)
        collection = self.get_collection(document_type, partition_key)
        with self._driver_errors(f"find_one_and_update on '{collection.name}'"):
            raw = collection.find_one_and_update(
                native_filter,
                native_update,
                return_document=ReturnDocument.AFTER if return_updated else ReturnDocument.BEFORE,
                session=session,
            )
        return self._deserialize(document_type, raw)

    async def get_and_update_one_async(
        self,
        document_type: Type[T],
        filter: Filter,
        update: UpdateSpec,
        *,
        return_updated: bool = True,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Optional[T]:
        native_update = to_native_update(update, document_type)
        partition_key, native_filter = self._resolve_target(document_type, filter, partition_key)
        collection = self.get_async_collection(document_type, partition_key)
        with self._driver_errors(f"find_one_and_update on '{collection.name}'"):
            raw = await self._await_cancellable(
                lambda: collection.find_one_and_update(
                    native_filter,
                    native_update,
                    return_document=ReturnDocument.AFTER if return_updated else ReturnDocument.BEFORE,
                    session=session,
                ),
                cancellation,
                "get_and_update_one",
            )
        return self._deserialize(document_type, raw)
