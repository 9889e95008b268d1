import asyncio
from typing import Any, Dict, List, Optional, Tuple, Type

from generic_repository.base.utils import prepare_for_storage
from generic_repository.mongodb.base import DataAccessBase, raise_if_cancelled
from generic_repository.mongodb.translation import APP_ID_FIELD, DB_ID_FIELD


class MongoDbEraser(DataAccessBase):
    """
    Deletes documents and reports the number actually removed.

    Targets are a document (removed from its own partition), a list of
    documents (one ``_id $in`` delete per partition) or a filter evaluated in
    ``partition_key``.
    """

    def _batches(
        self, document_type: Type, target: Any, partition_key: Optional[str]
    ) -> List[Tuple[Optional[str], Dict[str, Any]]]:
        if isinstance(target, (list, tuple)):
            batches = []
            for key, group in self.group_by_partition(target).items():
                ids = [prepare_for_storage(getattr(d, APP_ID_FIELD)) for d in group]
                batches.append((key, {DB_ID_FIELD: {"$in": ids}}))
            return batches
        return [self._resolve_target(document_type, target, partition_key)]

    # --- delete_one ---
    def delete_one(
        self,
        document_type: Type,
        target: Any,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> int:
        """Deletes the first document addressed by ``target``; returns 0 or 1."""
        raise_if_cancelled(cancellation, "delete_one")
        partition_key, native_filter = self._resolve_target(document_type, target, partition_key)
        collection = self.get_collection(document_type, partition_key)
        with self._driver_errors(f"delete_one on '{collection.name}'"):
            result = collection.delete_one(native_filter, session=session)
        self._logger.info(f"delete_one on '{collection.name}' removed {result.deleted_count}")
        return result.deleted_count

    async def delete_one_async(
        self,
        document_type: Type,
        target: Any,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> int:
        partition_key, native_filter = self._resolve_target(document_type, target, partition_key)
        collection = self.get_async_collection(document_type, partition_key)
        with self._driver_errors(f"delete_one on '{collection.name}'"):
            result = await self._await_cancellable(
                lambda: collection.delete_one(native_filter, session=session),
                cancellation,
                "delete_one",
            )
        self._logger.info(f"delete_one on '{collection.name}' removed {result.deleted_count}")
        return result.deleted_count

    # --- delete_many ---
    def delete_many(
        self,
        document_type: Type,
        target: Any,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> int:
        """
        Deletes every document addressed by ``target``.

        Returns the total deleted count over all partitions touched. An empty
        list of documents deletes nothing.
        """
        total = 0
        for key, native_filter in self._batches(document_type, target, partition_key):
            raise_if_cancelled(cancellation, "delete_many")
            collection = self.get_collection(document_type, key)
            with self._driver_errors(f"delete_many on '{collection.name}'"):
                result = collection.delete_many(native_filter, session=session)
            self._logger.info(f"delete_many on '{collection.name}' removed {result.deleted_count}")
            total += result.deleted_count
        return total

    async def delete_many_async(
        self,
        document_type: Type,
        target: Any,
        *,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> int:
        total = 0
        for key, native_filter in self._batches(document_type, target, partition_key):
            collection = self.get_async_collection(document_type, key)
            with self._driver_errors(f"delete_many on '{collection.name}'"):
                result = await self._await_cancellable(
                    lambda: collection.delete_many(native_filter, session=session),
                    cancellation,
                    "delete_many",
                )
            self._logger.info(f"delete_many on '{collection.name}' removed {result.deleted_count}")
            total += result.deleted_count
        return total
