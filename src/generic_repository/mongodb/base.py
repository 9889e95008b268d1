import asyncio
import logging
from contextlib import contextmanager
from typing import (Any, Awaitable, Callable, Dict, Iterable, Iterator, List,
                    Mapping, Optional, Tuple, Type, TypeVar)

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from generic_repository.base.exceptions import OperationCancelledError
from generic_repository.base.models import get_partition_key
from generic_repository.base.query import (Expression, QueryExpression,
                                           QueryOptions)
from generic_repository.base.utils import (build_model, prepare_for_storage,
                                           restore_from_storage)
from generic_repository.mongodb.context import MongoDbContext
from generic_repository.mongodb.translation import (APP_ID_FIELD, DB_ID_FIELD,
                                                    to_native_filter)

R = TypeVar("R")


def raise_if_cancelled(cancellation: Optional[Any], operation: str = "operation") -> None:
    """Raises OperationCancelledError when ``cancellation`` is set."""
    if cancellation is not None and cancellation.is_set():
        raise OperationCancelledError(f"The {operation} was cancelled.")


class DataAccessBase:
    """
    Shared plumbing of the data-access families.

    Resolves collections through the :class:`MongoDbContext`, converts
    documents to and from their stored form, honours cancellation signals and
    logs driver failures before letting them propagate unchanged.
    """

    def __init__(self, context: MongoDbContext):
        self._context = context
        self._logger = logging.getLogger(
            f"{type(self).__module__}.{type(self).__name__}"
        )

    @property
    def context(self) -> MongoDbContext:
        return self._context

    # --- Collection resolution ---
    def get_collection(
        self, document_type: Type, partition_key: Optional[str] = None
    ) -> Collection:
        return self._context.get_collection(document_type, partition_key)

    def get_async_collection(
        self, document_type: Type, partition_key: Optional[str] = None
    ) -> AsyncIOMotorCollection:
        return self._context.get_async_collection(document_type, partition_key)

    def handle_partitioned(self, document: Any) -> Collection:
        """The collection of ``document``'s own partition."""
        return self.get_collection(type(document), get_partition_key(document))

    def handle_partitioned_async(self, document: Any) -> AsyncIOMotorCollection:
        return self.get_async_collection(type(document), get_partition_key(document))

    @staticmethod
    def group_by_partition(documents: Iterable[Any]) -> Dict[Optional[str], List[Any]]:
        """Groups documents by partition key, keeping their relative order."""
        groups: Dict[Optional[str], List[Any]] = {}
        for document in documents:
            groups.setdefault(get_partition_key(document), []).append(document)
        return groups

    # --- Cancellation ---
    async def _await_cancellable(
        self,
        operation: Callable[[], Awaitable[R]],
        cancellation: Optional[asyncio.Event],
        description: str = "operation",
    ) -> R:
        """
        Awaits ``operation()`` unless ``cancellation`` fires first.

        The operation is not started when the signal is already set. When the
        signal fires mid-flight the pending driver call is cancelled and
        OperationCancelledError is raised.
        """
        raise_if_cancelled(cancellation, description)
        if cancellation is None:
            return await operation()

        task = asyncio.ensure_future(operation())
        waiter = asyncio.ensure_future(cancellation.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()
        task.cancel()
        self._logger.info(f"{description} cancelled by caller")
        raise OperationCancelledError(f"The {description} was cancelled.")

    # --- Error logging ---
    @contextmanager
    def _driver_errors(self, description: str) -> Iterator[None]:
        """Logs driver failures with context and re-raises them unchanged."""
        try:
            yield
        except PyMongoError as e:
            self._logger.error(f"MongoDB error during {description}: {e}", exc_info=True)
            raise

    # --- Serialization ---
    def _serialize(self, document: Any) -> Dict[str, Any]:
        data = prepare_for_storage(document)
        if not isinstance(data, dict):
            raise TypeError(
                f"Cannot store {type(document).__name__}: it does not serialize to a document."
            )
        if APP_ID_FIELD in data:
            data[DB_ID_FIELD] = data.pop(APP_ID_FIELD)
        return data

    def _deserialize(self, document_type: Type[R], raw: Optional[Dict[str, Any]]) -> Optional[R]:
        if raw is None:
            return None
        data = restore_from_storage(dict(raw))
        if DB_ID_FIELD in data:
            data[APP_ID_FIELD] = data.pop(DB_ID_FIELD)
        return build_model(document_type, data)

    def _to_projection(self, projection_type: Optional[Type], raw: Optional[Dict[str, Any]]) -> Any:
        """Builds ``projection_type`` from a projected row, or returns the plain dict."""
        if raw is None:
            return None
        data = restore_from_storage(dict(raw))
        if projection_type is None:
            return data
        return build_model(projection_type, data)

    @staticmethod
    def _id_filter(document: Any) -> Dict[str, Any]:
        return {DB_ID_FIELD: prepare_for_storage(getattr(document, APP_ID_FIELD))}

    # --- Write targets ---
    @staticmethod
    def is_document(target: Any) -> bool:
        """True when ``target`` is a document instance rather than a filter."""
        if target is None or callable(target):
            return False
        if isinstance(target, (Mapping, Expression, QueryExpression, QueryOptions)):
            return False
        return hasattr(target, APP_ID_FIELD)

    def _resolve_target(
        self, document_type: Type, target: Any, partition_key: Optional[str]
    ) -> Tuple[Optional[str], Dict[str, Any]]:
        """
        Returns the partition key and native filter addressed by ``target``.

        A document is matched by id in its own partition. Anything else is a
        filter evaluated in ``partition_key``. ``None`` is refused so that a
        forgotten filter never rewrites or removes a whole collection; ``{}``
        matches every document.
        """
        if target is None:
            raise ValueError(
                "A filter is required for this operation; pass {} to match every document."
            )
        if self.is_document(target):
            return get_partition_key(target), self._id_filter(target)
        return partition_key, to_native_filter(target, document_type)
