import asyncio
from contextlib import asynccontextmanager, contextmanager
from typing import (Any, AsyncIterator, Dict, Iterator, List, Mapping,
                    Optional, Type, TypeVar, Union)

from pymongo import ASCENDING, DESCENDING

from generic_repository.base.query import QueryOptions
from generic_repository.base.utils import prepare_for_storage, restore_from_storage
from generic_repository.mongodb.base import DataAccessBase, raise_if_cancelled
from generic_repository.mongodb.translation import (DB_ID_FIELD, Filter,
                                                    Selector, SortSpec,
                                                    field_path,
                                                    query_options_sort,
                                                    to_group_pipeline,
                                                    to_native_filter,
                                                    to_native_projection,
                                                    to_native_sort)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 50


def _value_at_path(document: Mapping[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return None
    return current


def _check_page(skip: int, take: int) -> None:
    if skip < 0:
        raise ValueError(f"skip must be >= 0, got {skip}")
    if take < 0:
        raise ValueError(f"take must be >= 0, got {take}")


class MongoDbReader(DataAccessBase):
    """
    Read operations: lookups, counts, cursors, projections, grouping, paging.

    Nothing found is never an error: single-document reads return None, list
    reads an empty list, counts 0.
    """

    # --- Shared query building ---
    def _find(
        self,
        collection: Any,
        document_type: Type,
        filter: Filter,
        find_options: Optional[Mapping[str, Any]],
        session,
        sort: Optional[List] = None,
        skip: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        native_filter = to_native_filter(filter, document_type)
        if isinstance(filter, QueryOptions):
            sort = sort or query_options_sort(filter)
            skip = skip if skip is not None else filter.offset
            limit = limit if limit is not None else filter.limit
        self._logger.debug(
            f"find on '{collection.name}': filter={native_filter} sort={sort} "
            f"skip={skip} limit={limit}"
        )
        cursor = collection.find(native_filter, session=session, **dict(find_options or {}))
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return cursor

    @staticmethod
    def _value_projection(path: str) -> Dict[str, int]:
        projection = {path: 1}
        if path != DB_ID_FIELD:
            projection[DB_ID_FIELD] = 0
        return projection

    @staticmethod
    def _sum_pipeline(native_filter: Dict[str, Any], path: str) -> List[Dict[str, Any]]:
        pipeline: List[Dict[str, Any]] = []
        if native_filter:
            pipeline.append({"$match": native_filter})
        pipeline.append({"$group": {DB_ID_FIELD: None, "total": {"$sum": f"${path}"}}})
        return pipeline

    @staticmethod
    def _project_pipeline(
        native_filter: Dict[str, Any], native_projection: Dict[str, Any], limit: Optional[int]
    ) -> List[Dict[str, Any]]:
        pipeline: List[Dict[str, Any]] = []
        if native_filter:
            pipeline.append({"$match": native_filter})
        if limit:
            pipeline.append({"$limit": limit})
        pipeline.append({"$project": native_projection})
        return pipeline

    @staticmethod
    def _sum_result(rows: List[Dict[str, Any]]) -> Union[int, float, Any]:
        if not rows:
            return 0
        return restore_from_storage(rows[0].get("total", 0))

    # --- get_by_id ---
    def get_by_id(
        self,
        document_type: Type[T],
        id: Any,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> Optional[T]:
        raise_if_cancelled(cancellation, "get_by_id")
        collection = self.get_collection(document_type, partition_key)
        with self._driver_errors(f"get_by_id on '{collection.name}'"):
            raw = collection.find_one(
                {DB_ID_FIELD: prepare_for_storage(id)}, session=session, **dict(find_options or {})
            )
        return self._deserialize(document_type, raw)

    async def get_by_id_async(
        self,
        document_type: Type[T],
        id: Any,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Optional[T]:
        collection = self.get_async_collection(document_type, partition_key)
        with self._driver_errors(f"get_by_id on '{collection.name}'"):
            raw = await self._await_cancellable(
                lambda: collection.find_one(
                    {DB_ID_FIELD: prepare_for_storage(id)},
                    session=session,
                    **dict(find_options or {}),
                ),
                cancellation,
                "get_by_id",
            )
        return self._deserialize(document_type, raw)

    # --- get_one ---
    def get_one(
        self,
        document_type: Type[T],
        filter: Filter,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> Optional[T]:
        """Returns the first document matching ``filter``, or None."""
        raise_if_cancelled(cancellation, "get_one")
        collection = self.get_collection(document_type, partition_key)
        native_filter = to_native_filter(filter, document_type)
        with self._driver_errors(f"get_one on '{collection.name}'"):
            raw = collection.find_one(native_filter, session=session, **dict(find_options or {}))
        return self._deserialize(document_type, raw)

    async def get_one_async(
        self,
        document_type: Type[T],
        filter: Filter,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Optional[T]:
        collection = self.get_async_collection(document_type, partition_key)
        native_filter = to_native_filter(filter, document_type)
        with self._driver_errors(f"get_one on '{collection.name}'"):
            raw = await self._await_cancellable(
                lambda: collection.find_one(
                    native_filter, session=session, **dict(find_options or {})
                ),
                cancellation,
                "get_one",
            )
        return self._deserialize(document_type, raw)

    # --- get_cursor ---
    @contextmanager
    def get_cursor(
        self,
        document_type: Type[T],
        filter: Filter = None,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> Iterator[Iterator[T]]:
        """
        Lazily iterates the matching documents.

        Use as ``with reader.get_cursor(Model, f) as documents: ...``. The
        native cursor is closed when the block exits, however it exits. The
        cancellation signal is checked before every document.
        """
        raise_if_cancelled(cancellation, "get_cursor")
        collection = self.get_collection(document_type, partition_key)
        cursor = self._find(collection, document_type, filter, find_options, session)

        def documents() -> Iterator[T]:
            with self._driver_errors(f"cursor iteration on '{collection.name}'"):
                for raw in cursor:
                    raise_if_cancelled(cancellation, "cursor iteration")
                    yield self._deserialize(document_type, raw)

        try:
            yield documents()
        finally:
            cursor.close()

    @asynccontextmanager
    async def get_cursor_async(
        self,
        document_type: Type[T],
        filter: Filter = None,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[AsyncIterator[T]]:
        """``async with reader.get_cursor_async(Model, f) as documents: async for d in documents``."""
        raise_if_cancelled(cancellation, "get_cursor")
        collection = self.get_async_collection(document_type, partition_key)
        cursor = self._find(collection, document_type, filter, find_options, session)

        async def documents() -> AsyncIterator[T]:
            with self._driver_errors(f"cursor iteration on '{collection.name}'"):
                async for raw in cursor:
                    raise_if_cancelled(cancellation, "cursor iteration")
                    yield self._deserialize(document_type, raw)

        iterator = documents()
        try:
            yield iterator
        finally:
            await iterator.aclose()
            await cursor.close()

    # --- get_all ---
    def get_all(
        self,
        document_type: Type[T],
        filter: Filter = None,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> List[T]:
        """
        Returns every matching document.

        A :class:`QueryOptions` filter also contributes its sort, offset and
        limit.
        """
        with self.get_cursor(
            document_type,
            filter,
            find_options=find_options,
            partition_key=partition_key,
            session=session,
            cancellation=cancellation,
        ) as documents:
            return list(documents)

    async def get_all_async(
        self,
        document_type: Type[T],
        filter: Filter = None,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> List[T]:
        collection = self.get_async_collection(document_type, partition_key)
        cursor = self._find(collection, document_type, filter, find_options, session)
        try:
            with self._driver_errors(f"get_all on '{collection.name}'"):
                rows = await self._await_cancellable(
                    lambda: cursor.to_list(length=None), cancellation, "get_all"
                )
        finally:
            await cursor.close()
        return [self._deserialize(document_type, raw) for raw in rows]

    # --- any / count ---
    def any(
        self,
        document_type: Type,
        filter: Filter = None,
        *,
        count_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> bool:
        options = {**dict(count_options or {}), "limit": 1}
        return self.count(
            document_type,
            filter,
            count_options=options,
            partition_key=partition_key,
            session=session,
            cancellation=cancellation,
        ) > 0

    async def any_async(
        self,
        document_type: Type,
        filter: Filter = None,
        *,
        count_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> bool:
        options = {**dict(count_options or {}), "limit": 1}
        count = await self.count_async(
            document_type,
            filter,
            count_options=options,
            partition_key=partition_key,
            session=session,
            cancellation=cancellation,
        )
        return count > 0

    def count(
        self,
        document_type: Type,
        filter: Filter = None,
        *,
        count_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> int:
        """``count_options`` are passed to ``count_documents`` (limit, skip, hint, maxTimeMS, ...)."""
        raise_if_cancelled(cancellation, "count")
        collection = self.get_collection(document_type, partition_key)
        native_filter = to_native_filter(filter, document_type)
        with self._driver_errors(f"count on '{collection.name}'"):
            return int(
                collection.count_documents(
                    native_filter, session=session, **dict(count_options or {})
                )
            )

    async def count_async(
        self,
        document_type: Type,
        filter: Filter = None,
        *,
        count_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> int:
        collection = self.get_async_collection(document_type, partition_key)
        native_filter = to_native_filter(filter, document_type)
        with self._driver_errors(f"count on '{collection.name}'"):
            count = await self._await_cancellable(
                lambda: collection.count_documents(
                    native_filter, session=session, **dict(count_options or {})
                ),
                cancellation,
                "count",
            )
        return int(count)

    # --- get_by_max / get_by_min ---
    def get_by_max(
        self,
        document_type: Type[T],
        filter: Filter,
        selector: Selector,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> Optional[T]:
        """The matching document with the greatest value at ``selector``."""
        return self._get_by_extreme(
            document_type, filter, selector, DESCENDING, find_options, partition_key, session, cancellation
        )

    def get_by_min(
        self,
        document_type: Type[T],
        filter: Filter,
        selector: Selector,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> Optional[T]:
        """The matching document with the smallest value at ``selector``."""
        return self._get_by_extreme(
            document_type, filter, selector, ASCENDING, find_options, partition_key, session, cancellation
        )

    def _get_by_extreme(self, document_type, filter, selector, direction, find_options, partition_key, session, cancellation):
        raise_if_cancelled(cancellation, "get_by_extreme")
        collection = self.get_collection(document_type, partition_key)
        native_filter = to_native_filter(filter, document_type)
        sort = [(field_path(selector, document_type), direction)]
        with self._driver_errors(f"sorted find_one on '{collection.name}'"):
            raw = collection.find_one(
                native_filter, sort=sort, session=session, **dict(find_options or {})
            )
        return self._deserialize(document_type, raw)

    async def get_by_max_async(
        self,
        document_type: Type[T],
        filter: Filter,
        selector: Selector,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Optional[T]:
        return await self._get_by_extreme_async(
            document_type, filter, selector, DESCENDING, find_options, partition_key, session, cancellation
        )

    async def get_by_min_async(
        self,
        document_type: Type[T],
        filter: Filter,
        selector: Selector,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Optional[T]:
        return await self._get_by_extreme_async(
            document_type, filter, selector, ASCENDING, find_options, partition_key, session, cancellation
        )

    async def _get_by_extreme_async(self, document_type, filter, selector, direction, find_options, partition_key, session, cancellation):
        collection = self.get_async_collection(document_type, partition_key)
        native_filter = to_native_filter(filter, document_type)
        sort = [(field_path(selector, document_type), direction)]
        with self._driver_errors(f"sorted find_one on '{collection.name}'"):
            raw = await self._await_cancellable(
                lambda: collection.find_one(
                    native_filter, sort=sort, session=session, **dict(find_options or {})
                ),
                cancellation,
                "get_by_extreme",
            )
        return self._deserialize(document_type, raw)

    # --- get_max_value / get_min_value ---
    def get_max_value(
        self,
        document_type: Type,
        filter: Filter,
        selector: Selector,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> Any:
        """The greatest value at ``selector`` among matching documents, or None."""
        return self._get_extreme_value(
            document_type, filter, selector, DESCENDING, find_options, partition_key, session, cancellation
        )

    def get_min_value(
        self,
        document_type: Type,
        filter: Filter,
        selector: Selector,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> Any:
        """The smallest value at ``selector`` among matching documents, or None."""
        return self._get_extreme_value(
            document_type, filter, selector, ASCENDING, find_options, partition_key, session, cancellation
        )

    def _get_extreme_value(self, document_type, filter, selector, direction, find_options, partition_key, session, cancellation):
        raise_if_cancelled(cancellation, "get_extreme_value")
        collection = self.get_collection(document_type, partition_key)
        native_filter = to_native_filter(filter, document_type)
        path = field_path(selector, document_type)
        with self._driver_errors(f"value lookup on '{collection.name}'"):
            raw = collection.find_one(
                native_filter,
                projection=self._value_projection(path),
                sort=[(path, direction)],
                session=session,
                **dict(find_options or {}),
            )
        return None if raw is None else restore_from_storage(_value_at_path(raw, path))

    async def get_max_value_async(
        self,
        document_type: Type,
        filter: Filter,
        selector: Selector,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Any:
        return await self._get_extreme_value_async(
            document_type, filter, selector, DESCENDING, find_options, partition_key, session, cancellation
        )

    async def get_min_value_async(
        self,
        document_type: Type,
        filter: Filter,
        selector: Selector,
        *,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Any:
        return await self._get_extreme_value_async(
            document_type, filter, selector, ASCENDING, find_options, partition_key, session, cancellation
        )

    async def _get_extreme_value_async(self, document_type, filter, selector, direction, find_options, partition_key, session, cancellation):
        collection = self.get_async_collection(document_type, partition_key)
        native_filter = to_native_filter(filter, document_type)
        path = field_path(selector, document_type)
        with self._driver_errors(f"value lookup on '{collection.name}'"):
            raw = await self._await_cancellable(
                lambda: collection.find_one(
                    native_filter,
                    projection=self._value_projection(path),
                    sort=[(path, direction)],
                    session=session,
                    **dict(find_options or {}),
                ),
                cancellation,
                "get_extreme_value",
            )
        return None if raw is None else restore_from_storage(_value_at_path(raw, path))

    # --- sum_by ---
    def sum_by(
        self,
        document_type: Type,
        filter: Filter,
        selector: Selector,
        *,
        aggregate_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> Any:
        """
        Sums the values at ``selector`` over matching documents.

        Returns an int, float or Decimal depending on the stored values, 0
        when nothing matches.
        """
        raise_if_cancelled(cancellation, "sum_by")
        collection = self.get_collection(document_type, partition_key)
        pipeline = self._sum_pipeline(
            to_native_filter(filter, document_type), field_path(selector, document_type)
        )
        with self._driver_errors(f"sum_by on '{collection.name}'"):
            rows = list(
                collection.aggregate(pipeline, session=session, **dict(aggregate_options or {}))
            )
        return self._sum_result(rows)

    async def sum_by_async(
        self,
        document_type: Type,
        filter: Filter,
        selector: Selector,
        *,
        aggregate_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Any:
        collection = self.get_async_collection(document_type, partition_key)
        pipeline = self._sum_pipeline(
            to_native_filter(filter, document_type), field_path(selector, document_type)
        )
        with self._driver_errors(f"sum_by on '{collection.name}'"):
            rows = await self._await_cancellable(
                lambda: collection.aggregate(
                    pipeline, session=session, **dict(aggregate_options or {})
                ).to_list(length=None),
                cancellation,
                "sum_by",
            )
        return self._sum_result(rows)

    # --- group_by ---
    def group_by(
        self,
        document_type: Type,
        key_selector: Union[Selector, Mapping[str, Selector]],
        projection: Mapping[str, Any],
        *,
        filter: Filter = None,
        projection_type: Optional[Type] = None,
        aggregate_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> List[Any]:
        """
        Groups matching documents by ``key_selector`` and projects each group.

        Example:
            >>> reader.group_by(
            ...     Sale, lambda s: s.region,
            ...     {"region": GroupKey(), "total": sum_of(lambda s: s.amount)},
            ... )
            [{"region": "north", "total": 120}, ...]
        """
        raise_if_cancelled(cancellation, "group_by")
        collection = self.get_collection(document_type, partition_key)
        pipeline = to_group_pipeline(key_selector, projection, filter, document_type)
        with self._driver_errors(f"group_by on '{collection.name}'"):
            rows = list(
                collection.aggregate(pipeline, session=session, **dict(aggregate_options or {}))
            )
        return [self._to_projection(projection_type, row) for row in rows]

    async def group_by_async(
        self,
        document_type: Type,
        key_selector: Union[Selector, Mapping[str, Selector]],
        projection: Mapping[str, Any],
        *,
        filter: Filter = None,
        projection_type: Optional[Type] = None,
        aggregate_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> List[Any]:
        collection = self.get_async_collection(document_type, partition_key)
        pipeline = to_group_pipeline(key_selector, projection, filter, document_type)
        with self._driver_errors(f"group_by on '{collection.name}'"):
            rows = await self._await_cancellable(
                lambda: collection.aggregate(
                    pipeline, session=session, **dict(aggregate_options or {})
                ).to_list(length=None),
                cancellation,
                "group_by",
            )
        return [self._to_projection(projection_type, row) for row in rows]

    # --- project_one / project_many ---
    def project_one(
        self,
        document_type: Type,
        filter: Filter,
        projection: Mapping[str, Any],
        *,
        projection_type: Optional[Type] = None,
        aggregate_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> Any:
        """
        Projects the first matching document.

        ``projection`` maps result fields to selectors; the result is an
        instance of ``projection_type`` or a dict. None when nothing matches.
        """
        rows = self._project(
            document_type, filter, projection, 1, aggregate_options, partition_key, session, cancellation
        )
        return self._to_projection(projection_type, rows[0]) if rows else None

    def project_many(
        self,
        document_type: Type,
        filter: Filter,
        projection: Mapping[str, Any],
        *,
        projection_type: Optional[Type] = None,
        aggregate_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> List[Any]:
        rows = self._project(
            document_type, filter, projection, None, aggregate_options, partition_key, session, cancellation
        )
        return [self._to_projection(projection_type, row) for row in rows]

    def _project(self, document_type, filter, projection, limit, aggregate_options, partition_key, session, cancellation):
        raise_if_cancelled(cancellation, "project")
        collection = self.get_collection(document_type, partition_key)
        pipeline = self._project_pipeline(
            to_native_filter(filter, document_type),
            to_native_projection(projection, document_type),
            limit,
        )
        with self._driver_errors(f"project on '{collection.name}'"):
            return list(
                collection.aggregate(pipeline, session=session, **dict(aggregate_options or {}))
            )

    async def project_one_async(
        self,
        document_type: Type,
        filter: Filter,
        projection: Mapping[str, Any],
        *,
        projection_type: Optional[Type] = None,
        aggregate_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Any:
        rows = await self._project_async(
            document_type, filter, projection, 1, aggregate_options, partition_key, session, cancellation
        )
        return self._to_projection(projection_type, rows[0]) if rows else None

    async def project_many_async(
        self,
        document_type: Type,
        filter: Filter,
        projection: Mapping[str, Any],
        *,
        projection_type: Optional[Type] = None,
        aggregate_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> List[Any]:
        rows = await self._project_async(
            document_type, filter, projection, None, aggregate_options, partition_key, session, cancellation
        )
        return [self._to_projection(projection_type, row) for row in rows]

    async def _project_async(self, document_type, filter, projection, limit, aggregate_options, partition_key, session, cancellation):
        collection = self.get_async_collection(document_type, partition_key)
        pipeline = self._project_pipeline(
            to_native_filter(filter, document_type),
            to_native_projection(projection, document_type),
            limit,
        )
        with self._driver_errors(f"project on '{collection.name}'"):
            return await self._await_cancellable(
                lambda: collection.aggregate(
                    pipeline, session=session, **dict(aggregate_options or {})
                ).to_list(length=None),
                cancellation,
                "project",
            )

    # --- pagination ---
    def get_paginated(
        self,
        document_type: Type[T],
        filter: Filter = None,
        *,
        skip: int = 0,
        take: int = DEFAULT_PAGE_SIZE,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> List[T]:
        """A page of matching documents in natural order."""
        return self._page(
            document_type, filter, None, skip, take, find_options, partition_key, session, cancellation
        )

    def get_sorted_paginated(
        self,
        document_type: Type[T],
        filter: Filter = None,
        sort_selector: Optional[Selector] = None,
        *,
        ascending: bool = True,
        sort_definition: Optional[SortSpec] = None,
        skip: int = 0,
        take: int = DEFAULT_PAGE_SIZE,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation=None,
    ) -> List[T]:
        """
        A page of matching documents ordered by ``sort_selector``.

        ``sort_definition`` is a native sort (``[("field", -1)]``) and wins
        over ``sort_selector``/``ascending``. Without either the page is
        ordered by id.
        """
        sort = self._page_sort(document_type, sort_selector, ascending, sort_definition)
        return self._page(
            document_type, filter, sort, skip, take, find_options, partition_key, session, cancellation
        )

    def _page(self, document_type, filter, sort, skip, take, find_options, partition_key, session, cancellation):
        _check_page(skip, take)
        if take == 0:
            return []
        raise_if_cancelled(cancellation, "paginated read")
        collection = self.get_collection(document_type, partition_key)
        cursor = self._find(
            collection, document_type, filter, find_options, session, sort=sort, skip=skip, limit=take
        )
        try:
            with self._driver_errors(f"paginated read on '{collection.name}'"):
                return [self._deserialize(document_type, raw) for raw in cursor]
        finally:
            cursor.close()

    async def get_paginated_async(
        self,
        document_type: Type[T],
        filter: Filter = None,
        *,
        skip: int = 0,
        take: int = DEFAULT_PAGE_SIZE,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> List[T]:
        return await self._page_async(
            document_type, filter, None, skip, take, find_options, partition_key, session, cancellation
        )

    async def get_sorted_paginated_async(
        self,
        document_type: Type[T],
        filter: Filter = None,
        sort_selector: Optional[Selector] = None,
        *,
        ascending: bool = True,
        sort_definition: Optional[SortSpec] = None,
        skip: int = 0,
        take: int = DEFAULT_PAGE_SIZE,
        find_options: Optional[Mapping[str, Any]] = None,
        partition_key: Optional[str] = None,
        session=None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> List[T]:
        sort = self._page_sort(document_type, sort_selector, ascending, sort_definition)
        return await self._page_async(
            document_type, filter, sort, skip, take, find_options, partition_key, session, cancellation
        )

    async def _page_async(self, document_type, filter, sort, skip, take, find_options, partition_key, session, cancellation):
        _check_page(skip, take)
        if take == 0:
            return []
        collection = self.get_async_collection(document_type, partition_key)
        cursor = self._find(
            collection, document_type, filter, find_options, session, sort=sort, skip=skip, limit=take
        )
        try:
            with self._driver_errors(f"paginated read on '{collection.name}'"):
                rows = await self._await_cancellable(
                    lambda: cursor.to_list(length=None), cancellation, "paginated read"
                )
        finally:
            await cursor.close()
        return [self._deserialize(document_type, raw) for raw in rows]

    @staticmethod
    def _page_sort(document_type, sort_selector, ascending, sort_definition) -> List:
        if sort_definition is not None:
            return to_native_sort(sort_definition)
        if sort_selector is not None:
            return to_native_sort(sort_selector, ascending, document_type)
        return [(DB_ID_FIELD, ASCENDING if ascending else DESCENDING)]
