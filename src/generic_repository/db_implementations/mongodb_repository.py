# src/generic_repository/db_implementations/mongodb_repository.py

import logging
from typing import Any, Generic, List, Optional, Sequence, Type, TypeVar

from generic_repository.base.interfaces import (NOT_SET, ReadOnlyRepository,
                                                Repository)
from generic_repository.base.models import infer_key_type
from generic_repository.mongodb.base import raise_if_cancelled
from generic_repository.mongodb.context import MongoDbContext
from generic_repository.mongodb.creator import MongoDbCreator
from generic_repository.mongodb.eraser import MongoDbEraser
from generic_repository.mongodb.index_handler import MongoDbIndexHandler
from generic_repository.mongodb.reader import MongoDbReader
from generic_repository.mongodb.updater import MongoDbUpdater

T = TypeVar("T")


class ReadOnlyMongoRepository(ReadOnlyRepository[T], Generic[T]):
    """
    Read-only MongoDB repository for one document type.

    Every operation forwards to :class:`MongoDbReader` with the bound
    document type; ``partition_key``, ``session``, ``cancellation`` and the
    native ``find_options``/``count_options`` pass through unchanged.
    """

    def __init__(
        self,
        context: MongoDbContext,
        document_type: Type[T],
        key_type: Optional[Type] = None,
    ):
        """
        Args:
            context: Database handles the operations run against.
            document_type: The class of the stored documents.
            key_type: Type of the document ids. Inferred from the ``id``
                annotation of ``document_type`` when omitted.

        Raises:
            TypeError: If no key type is given and none can be inferred.
        """
        if not isinstance(context, MongoDbContext):
            raise TypeError("context must be a MongoDbContext")
        resolved_key_type = key_type or infer_key_type(document_type)
        if resolved_key_type is None:
            raise TypeError(
                f"Cannot infer the key type of {document_type.__name__}; "
                "annotate its 'id' field or pass key_type explicitly."
            )
        self._context = context
        self._document_type = document_type
        self._key_type = resolved_key_type
        self._reader = MongoDbReader(context)
        self._logger = logging.getLogger(
            f"{__name__}.{self.__class__.__name__}[{document_type.__name__}]"
        )
        self._logger.debug(
            f"Repository created for {document_type.__name__} "
            f"(key type: {resolved_key_type.__name__})"
        )

    @classmethod
    def from_connection_string(
        cls,
        connection_string: str,
        database_name: str,
        document_type: Type[T],
        key_type: Optional[Type] = None,
        **client_options: Any,
    ):
        """Builds the repository on a new :class:`MongoDbContext`."""
        context = MongoDbContext.from_connection_string(
            connection_string, database_name, **client_options
        )
        return cls(context, document_type, key_type)

    @property
    def context(self) -> MongoDbContext:
        return self._context

    @property
    def document_type(self) -> Type[T]:
        return self._document_type

    @property
    def key_type(self) -> Type:
        return self._key_type

    def close(self) -> None:
        self._context.close()

    # --- Lookups ---
    def get_by_id(self, id: Any, **options: Any) -> Optional[T]:
        return self._reader.get_by_id(self._document_type, id, **options)

    async def get_by_id_async(self, id: Any, **options: Any) -> Optional[T]:
        return await self._reader.get_by_id_async(self._document_type, id, **options)

    def get_one(self, filter: Any, **options: Any) -> Optional[T]:
        return self._reader.get_one(self._document_type, filter, **options)

    async def get_one_async(self, filter: Any, **options: Any) -> Optional[T]:
        return await self._reader.get_one_async(self._document_type, filter, **options)

    def get_cursor(self, filter: Any = None, **options: Any):
        return self._reader.get_cursor(self._document_type, filter, **options)

    def get_cursor_async(self, filter: Any = None, **options: Any):
        return self._reader.get_cursor_async(self._document_type, filter, **options)

    def get_all(self, filter: Any = None, **options: Any) -> List[T]:
        return self._reader.get_all(self._document_type, filter, **options)

    async def get_all_async(self, filter: Any = None, **options: Any) -> List[T]:
        return await self._reader.get_all_async(self._document_type, filter, **options)

    # --- Counting ---
    def any(self, filter: Any = None, **options: Any) -> bool:
        return self._reader.any(self._document_type, filter, **options)

    async def any_async(self, filter: Any = None, **options: Any) -> bool:
        return await self._reader.any_async(self._document_type, filter, **options)

    def count(self, filter: Any = None, **options: Any) -> int:
        return self._reader.count(self._document_type, filter, **options)

    async def count_async(self, filter: Any = None, **options: Any) -> int:
        return await self._reader.count_async(self._document_type, filter, **options)

    # --- Extremes and aggregates ---
    def get_by_max(self, filter: Any, selector: Any, **options: Any) -> Optional[T]:
        return self._reader.get_by_max(self._document_type, filter, selector, **options)

    async def get_by_max_async(self, filter: Any, selector: Any, **options: Any) -> Optional[T]:
        return await self._reader.get_by_max_async(self._document_type, filter, selector, **options)

    def get_by_min(self, filter: Any, selector: Any, **options: Any) -> Optional[T]:
        return self._reader.get_by_min(self._document_type, filter, selector, **options)

    async def get_by_min_async(self, filter: Any, selector: Any, **options: Any) -> Optional[T]:
        return await self._reader.get_by_min_async(self._document_type, filter, selector, **options)

    def get_max_value(self, filter: Any, selector: Any, **options: Any) -> Any:
        return self._reader.get_max_value(self._document_type, filter, selector, **options)

    async def get_max_value_async(self, filter: Any, selector: Any, **options: Any) -> Any:
        return await self._reader.get_max_value_async(self._document_type, filter, selector, **options)

    def get_min_value(self, filter: Any, selector: Any, **options: Any) -> Any:
        return self._reader.get_min_value(self._document_type, filter, selector, **options)

    async def get_min_value_async(self, filter: Any, selector: Any, **options: Any) -> Any:
        return await self._reader.get_min_value_async(self._document_type, filter, selector, **options)

    def sum_by(self, filter: Any, selector: Any, **options: Any) -> Any:
        return self._reader.sum_by(self._document_type, filter, selector, **options)

    async def sum_by_async(self, filter: Any, selector: Any, **options: Any) -> Any:
        return await self._reader.sum_by_async(self._document_type, filter, selector, **options)

    def group_by(self, key_selector: Any, projection: Any, **options: Any) -> List[Any]:
        return self._reader.group_by(self._document_type, key_selector, projection, **options)

    async def group_by_async(self, key_selector: Any, projection: Any, **options: Any) -> List[Any]:
        return await self._reader.group_by_async(self._document_type, key_selector, projection, **options)

    # --- Projections ---
    def project_one(self, filter: Any, projection: Any, **options: Any) -> Any:
        return self._reader.project_one(self._document_type, filter, projection, **options)

    async def project_one_async(self, filter: Any, projection: Any, **options: Any) -> Any:
        return await self._reader.project_one_async(self._document_type, filter, projection, **options)

    def project_many(self, filter: Any, projection: Any, **options: Any) -> List[Any]:
        return self._reader.project_many(self._document_type, filter, projection, **options)

    async def project_many_async(self, filter: Any, projection: Any, **options: Any) -> List[Any]:
        return await self._reader.project_many_async(self._document_type, filter, projection, **options)

    # --- Pagination ---
    def get_paginated(self, filter: Any = None, **options: Any) -> List[T]:
        return self._reader.get_paginated(self._document_type, filter, **options)

    async def get_paginated_async(self, filter: Any = None, **options: Any) -> List[T]:
        return await self._reader.get_paginated_async(self._document_type, filter, **options)

    def get_sorted_paginated(self, filter: Any = None, sort_selector: Any = None, **options: Any) -> List[T]:
        return self._reader.get_sorted_paginated(self._document_type, filter, sort_selector, **options)

    async def get_sorted_paginated_async(self, filter: Any = None, sort_selector: Any = None, **options: Any) -> List[T]:
        return await self._reader.get_sorted_paginated_async(
            self._document_type, filter, sort_selector, **options
        )


class MongoRepository(ReadOnlyMongoRepository[T], Repository[T], Generic[T]):
    """
    Read/write MongoDB repository for one document type.

    Example:
        >>> repo = MongoRepository.from_connection_string(
        ...     "mongodb://localhost:27017", "shop", Order
        ... )
        >>> repo.add_one(Order(partition_key="eu", total=12))
        >>> repo.count(lambda o: o.total > 10, partition_key="eu")
        1
    """

    def __init__(
        self,
        context: MongoDbContext,
        document_type: Type[T],
        key_type: Optional[Type] = None,
    ):
        super().__init__(context, document_type, key_type)
        self._creator = MongoDbCreator(context)
        self._updater = MongoDbUpdater(context)
        self._eraser = MongoDbEraser(context)
        self._indexes = MongoDbIndexHandler(context)

    # --- Create ---
    def add_one(self, document: T, **options: Any) -> None:
        options.setdefault("key_type", self._key_type)
        self._creator.add_one(document, **options)

    async def add_one_async(self, document: T, **options: Any) -> None:
        options.setdefault("key_type", self._key_type)
        await self._creator.add_one_async(document, **options)

    def add_many(self, documents: Sequence[T], **options: Any) -> None:
        options.setdefault("key_type", self._key_type)
        self._creator.add_many(documents, **options)

    async def add_many_async(self, documents: Sequence[T], **options: Any) -> None:
        options.setdefault("key_type", self._key_type)
        await self._creator.add_many_async(documents, **options)

    # --- Update ---
    def _replacement_target(self, target: Any, options: dict) -> Any:
        if not self._updater.is_document(target):
            raise ValueError(
                "update_one without an update replaces a document; "
                f"got {type(target).__name__} instead."
            )
        # The replaced document is addressed in its own partition.
        options.pop("partition_key", None)
        return target

    def update_one(self, target: Any, update: Any = None, value: Any = NOT_SET, **options: Any) -> bool:
        if value is not NOT_SET:
            return self._updater.update_one_field(self._document_type, target, update, value, **options)
        if update is None:
            return self._updater.replace_one(self._replacement_target(target, options), **options)
        return self._updater.update_one(self._document_type, target, update, **options)

    async def update_one_async(self, target: Any, update: Any = None, value: Any = NOT_SET, **options: Any) -> bool:
        if value is not NOT_SET:
            return await self._updater.update_one_field_async(
                self._document_type, target, update, value, **options
            )
        if update is None:
            return await self._updater.replace_one_async(
                self._replacement_target(target, options), **options
            )
        return await self._updater.update_one_async(self._document_type, target, update, **options)

    def update_many(self, filter: Any, update: Any, value: Any = NOT_SET, **options: Any) -> int:
        if value is not NOT_SET:
            return self._updater.update_many_field(self._document_type, filter, update, value, **options)
        return self._updater.update_many(self._document_type, filter, update, **options)

    async def update_many_async(self, filter: Any, update: Any, value: Any = NOT_SET, **options: Any) -> int:
        if value is not NOT_SET:
            return await self._updater.update_many_field_async(
                self._document_type, filter, update, value, **options
            )
        return await self._updater.update_many_async(self._document_type, filter, update, **options)

    def get_and_update_one(self, filter: Any, update: Any, **options: Any) -> Optional[T]:
        return self._updater.get_and_update_one(self._document_type, filter, update, **options)

    async def get_and_update_one_async(self, filter: Any, update: Any, **options: Any) -> Optional[T]:
        return await self._updater.get_and_update_one_async(self._document_type, filter, update, **options)

    # --- Delete ---
    def delete_one(self, target: Any, **options: Any) -> int:
        return self._eraser.delete_one(self._document_type, target, **options)

    async def delete_one_async(self, target: Any, **options: Any) -> int:
        return await self._eraser.delete_one_async(self._document_type, target, **options)

    def delete_many(self, target: Any, **options: Any) -> int:
        return self._eraser.delete_many(self._document_type, target, **options)

    async def delete_many_async(self, target: Any, **options: Any) -> int:
        return await self._eraser.delete_many_async(self._document_type, target, **options)

    # --- Indexes ---
    def create_ascending_index(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        return self._indexes.create_ascending_index(self._document_type, selector, options, **kwargs)

    async def create_ascending_index_async(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        return await self._indexes.create_ascending_index_async(self._document_type, selector, options, **kwargs)

    def create_descending_index(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        return self._indexes.create_descending_index(self._document_type, selector, options, **kwargs)

    async def create_descending_index_async(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        return await self._indexes.create_descending_index_async(self._document_type, selector, options, **kwargs)

    def create_text_index(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        return self._indexes.create_text_index(self._document_type, selector, options, **kwargs)

    async def create_text_index_async(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        return await self._indexes.create_text_index_async(self._document_type, selector, options, **kwargs)

    def create_combined_text_index(self, selectors: Sequence[Any], options: Any = None, **kwargs: Any) -> str:
        return self._indexes.create_combined_text_index(self._document_type, selectors, options, **kwargs)

    async def create_combined_text_index_async(self, selectors: Sequence[Any], options: Any = None, **kwargs: Any) -> str:
        return await self._indexes.create_combined_text_index_async(
            self._document_type, selectors, options, **kwargs
        )

    def create_hashed_index(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        return self._indexes.create_hashed_index(self._document_type, selector, options, **kwargs)

    async def create_hashed_index_async(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        return await self._indexes.create_hashed_index_async(self._document_type, selector, options, **kwargs)

    def drop_index(self, index_name: str, **options: Any) -> None:
        self._indexes.drop_index(self._document_type, index_name, **options)

    async def drop_index_async(self, index_name: str, **options: Any) -> None:
        await self._indexes.drop_index_async(self._document_type, index_name, **options)

    def get_index_names(self, **options: Any) -> List[str]:
        return self._indexes.get_index_names(self._document_type, **options)

    async def get_index_names_async(self, **options: Any) -> List[str]:
        return await self._indexes.get_index_names_async(self._document_type, **options)

    # --- Collection ---
    def drop_collection(
        self, *, partition_key: Optional[str] = None, session=None, cancellation=None
    ) -> None:
        raise_if_cancelled(cancellation, "drop_collection")
        self._context.drop_collection(self._document_type, partition_key, session=session)

    async def drop_collection_async(
        self, *, partition_key: Optional[str] = None, session=None, cancellation=None
    ) -> None:
        raise_if_cancelled(cancellation, "drop_collection")
        await self._context.drop_collection_async(self._document_type, partition_key, session=session)
