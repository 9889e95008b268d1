import asyncio
from typing import Any, Optional, Sequence, Type

from generic_repository.base.models import format_document
from generic_repository.mongodb.base import DataAccessBase, raise_if_cancelled


class MongoDbCreator(DataAccessBase):
    """
    Inserts documents.

    Missing ids are generated from the key type before the insert. Every
    document lands in the collection of its own partition key.
    """

    def add_one(
        self,
        document: Any,
        *,
        key_type: Optional[Type] = None,
        session=None,
        cancellation=None,
    ) -> None:
        raise_if_cancelled(cancellation, "add_one")
        format_document(document, key_type)
        collection = self.handle_partitioned(document)
        with self._driver_errors(f"add_one on '{collection.name}'"):
            collection.insert_one(self._serialize(document), session=session)
        self._logger.info(f"Inserted {type(document).__name__} '{document.id}' into '{collection.name}'")

    async def add_one_async(
        self,
        document: Any,
        *,
        key_type: Optional[Type] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> None:
        format_document(document, key_type)
        collection = self.handle_partitioned_async(document)
        payload = self._serialize(document)
        with self._driver_errors(f"add_one on '{collection.name}'"):
            await self._await_cancellable(
                lambda: collection.insert_one(payload, session=session),
                cancellation,
                "add_one",
            )
        self._logger.info(f"Inserted {type(document).__name__} '{document.id}' into '{collection.name}'")

    def add_many(
        self,
        documents: Sequence[Any],
        *,
        key_type: Optional[Type] = None,
        session=None,
        cancellation=None,
    ) -> None:
        """
        Inserts ``documents``, one ordered ``insert_many`` per partition key.

        An empty sequence is a no-op. A failing insert raises the driver's
        BulkWriteError; documents inserted before the failure stay inserted.
        """
        if not documents:
            return
        for document in documents:
            format_document(document, key_type)
        for partition_key, group in self.group_by_partition(documents).items():
            raise_if_cancelled(cancellation, "add_many")
            collection = self.get_collection(type(group[0]), partition_key)
            payload = [self._serialize(document) for document in group]
            with self._driver_errors(f"add_many on '{collection.name}'"):
                collection.insert_many(payload, ordered=True, session=session)
            self._logger.info(f"Inserted {len(payload)} document(s) into '{collection.name}'")

    async def add_many_async(
        self,
        documents: Sequence[Any],
        *,
        key_type: Optional[Type] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> None:
        if not documents:
            return
        for document in documents:
            format_document(document, key_type)
        for partition_key, group in self.group_by_partition(documents).items():
            collection = self.get_async_collection(type(group[0]), partition_key)
            payload = [self._serialize(document) for document in group]
            with self._driver_errors(f"add_many on '{collection.name}'"):
                await self._await_cancellable(
                    lambda: collection.insert_many(payload, ordered=True, session=session),
                    cancellation,
                    "add_many",
                )
            self._logger.info(f"Inserted {len(payload)} document(s) into '{collection.name}'")
