# src/generic_repository/base/interfaces.py

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager, AbstractContextManager
from typing import (Any, AsyncIterator, Generic, Iterator, List, Mapping,
                    Optional, Sequence, Type, TypeVar)

T = TypeVar("T")


class _NotSet:
    def __repr__(self) -> str:
        return "NOT_SET"


# Marks an omitted ``value`` argument, None being a legal field value.
NOT_SET: Any = _NotSet()


class ReadOnlyRepository(Generic[T], ABC):
    """
    Read side of a repository bound to one document type.

    Every operation exists as a blocking call and as an ``*_async``
    coroutine. All of them accept the keyword-only options:

    - ``partition_key``: the partition to read from (None for the base
      collection).
    - ``session``: a driver session to run the call in.
    - ``cancellation``: a signal checked before (and, for coroutines, during)
      the driver call; firing it raises OperationCancelledError.

    Filters are native MongoDB dicts, field expressions
    (``fields.name == "x"``), callables over the field proxy
    (``lambda d: d.value > 3``) or :class:`QueryOptions`.
    """

    @property
    @abstractmethod
    def document_type(self) -> Type[T]:
        """The document type this repository manages."""
        pass

    @property
    @abstractmethod
    def key_type(self) -> Type:
        """The type of the document ids."""
        pass

    # --- Lookups ---
    @abstractmethod
    def get_by_id(self, id: Any, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Optional[T]:
        """Returns the document with ``id``, or None."""
        pass

    @abstractmethod
    async def get_by_id_async(self, id: Any, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Optional[T]:
        pass

    @abstractmethod
    def get_one(self, filter: Any, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Optional[T]:
        """Returns the first document matching ``filter``, or None."""
        pass

    @abstractmethod
    async def get_one_async(self, filter: Any, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Optional[T]:
        pass

    @abstractmethod
    def get_cursor(self, filter: Any = None, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> AbstractContextManager[Iterator[T]]:
        """
        Context manager yielding a lazy iterator over the matching documents.

        The underlying cursor is released when the block exits.
        """
        pass

    @abstractmethod
    def get_cursor_async(self, filter: Any = None, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> AbstractAsyncContextManager[AsyncIterator[T]]:
        pass

    @abstractmethod
    def get_all(self, filter: Any = None, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> List[T]:
        """Returns every matching document."""
        pass

    @abstractmethod
    async def get_all_async(self, filter: Any = None, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> List[T]:
        pass

    # --- Counting ---
    @abstractmethod
    def any(self, filter: Any = None, *, count_options: Optional[Mapping[str, Any]] = None, **options: Any) -> bool:
        """True when at least one document matches."""
        pass

    @abstractmethod
    async def any_async(self, filter: Any = None, *, count_options: Optional[Mapping[str, Any]] = None, **options: Any) -> bool:
        pass

    @abstractmethod
    def count(self, filter: Any = None, *, count_options: Optional[Mapping[str, Any]] = None, **options: Any) -> int:
        """Number of matching documents."""
        pass

    @abstractmethod
    async def count_async(self, filter: Any = None, *, count_options: Optional[Mapping[str, Any]] = None, **options: Any) -> int:
        pass

    # --- Extremes and aggregates ---
    @abstractmethod
    def get_by_max(self, filter: Any, selector: Any, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Optional[T]:
        """The matching document with the greatest value at ``selector``."""
        pass

    @abstractmethod
    async def get_by_max_async(self, filter: Any, selector: Any, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Optional[T]:
        pass

    @abstractmethod
    def get_by_min(self, filter: Any, selector: Any, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Optional[T]:
        """The matching document with the smallest value at ``selector``."""
        pass

    @abstractmethod
    async def get_by_min_async(self, filter: Any, selector: Any, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Optional[T]:
        pass

    @abstractmethod
    def get_max_value(self, filter: Any, selector: Any, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Any:
        """The greatest value at ``selector`` among matching documents, or None."""
        pass

    @abstractmethod
    async def get_max_value_async(self, filter: Any, selector: Any, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Any:
        pass

    @abstractmethod
    def get_min_value(self, filter: Any, selector: Any, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Any:
        """The smallest value at ``selector`` among matching documents, or None."""
        pass

    @abstractmethod
    async def get_min_value_async(self, filter: Any, selector: Any, *, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Any:
        pass

    @abstractmethod
    def sum_by(self, filter: Any, selector: Any, *, aggregate_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Any:
        """Sum of the values at ``selector``; 0 when nothing matches."""
        pass

    @abstractmethod
    async def sum_by_async(self, filter: Any, selector: Any, *, aggregate_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Any:
        pass

    @abstractmethod
    def group_by(self, key_selector: Any, projection: Mapping[str, Any], *, filter: Any = None, projection_type: Optional[Type] = None, aggregate_options: Optional[Mapping[str, Any]] = None, **options: Any) -> List[Any]:
        """One projected result per distinct value of ``key_selector``."""
        pass

    @abstractmethod
    async def group_by_async(self, key_selector: Any, projection: Mapping[str, Any], *, filter: Any = None, projection_type: Optional[Type] = None, aggregate_options: Optional[Mapping[str, Any]] = None, **options: Any) -> List[Any]:
        pass

    # --- Projections ---
    @abstractmethod
    def project_one(self, filter: Any, projection: Mapping[str, Any], *, projection_type: Optional[Type] = None, aggregate_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Any:
        """The projection of the first matching document, or None."""
        pass

    @abstractmethod
    async def project_one_async(self, filter: Any, projection: Mapping[str, Any], *, projection_type: Optional[Type] = None, aggregate_options: Optional[Mapping[str, Any]] = None, **options: Any) -> Any:
        pass

    @abstractmethod
    def project_many(self, filter: Any, projection: Mapping[str, Any], *, projection_type: Optional[Type] = None, aggregate_options: Optional[Mapping[str, Any]] = None, **options: Any) -> List[Any]:
        """The projections of all matching documents."""
        pass

    @abstractmethod
    async def project_many_async(self, filter: Any, projection: Mapping[str, Any], *, projection_type: Optional[Type] = None, aggregate_options: Optional[Mapping[str, Any]] = None, **options: Any) -> List[Any]:
        pass

    # --- Pagination ---
    @abstractmethod
    def get_paginated(self, filter: Any = None, *, skip: int = 0, take: int = 50, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> List[T]:
        """A page of matching documents in natural order."""
        pass

    @abstractmethod
    async def get_paginated_async(self, filter: Any = None, *, skip: int = 0, take: int = 50, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> List[T]:
        pass

    @abstractmethod
    def get_sorted_paginated(self, filter: Any = None, sort_selector: Any = None, *, ascending: bool = True, sort_definition: Any = None, skip: int = 0, take: int = 50, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> List[T]:
        """A page of matching documents ordered by ``sort_selector`` (or ``sort_definition``)."""
        pass

    @abstractmethod
    async def get_sorted_paginated_async(self, filter: Any = None, sort_selector: Any = None, *, ascending: bool = True, sort_definition: Any = None, skip: int = 0, take: int = 50, find_options: Optional[Mapping[str, Any]] = None, **options: Any) -> List[T]:
        pass


class Repository(ReadOnlyRepository[T]):
    """
    Read/write repository bound to one document type.

    Adds creation, update, deletion, index management and collection removal
    to :class:`ReadOnlyRepository`. Write targets are either a document
    instance (addressed by id in its own partition) or a filter evaluated in
    ``partition_key``. A ``None`` filter is refused with ValueError; ``{}``
    explicitly matches every document.
    """

    # --- Create ---
    @abstractmethod
    def add_one(self, document: T, **options: Any) -> None:
        """Inserts ``document``, generating its id first when it is empty."""
        pass

    @abstractmethod
    async def add_one_async(self, document: T, **options: Any) -> None:
        pass

    @abstractmethod
    def add_many(self, documents: Sequence[T], **options: Any) -> None:
        """Inserts ``documents`` into their partitions; empty input is a no-op."""
        pass

    @abstractmethod
    async def add_many_async(self, documents: Sequence[T], **options: Any) -> None:
        pass

    # --- Update ---
    @abstractmethod
    def update_one(self, target: Any, update: Any = None, value: Any = NOT_SET, **options: Any) -> bool:
        """
        Updates one document; True when exactly one was modified.

        - ``update_one(document)`` replaces the stored document.
        - ``update_one(target, update)`` applies an Update builder or a native
          update document.
        - ``update_one(target, selector, value)`` sets one field.
        """
        pass

    @abstractmethod
    async def update_one_async(self, target: Any, update: Any = None, value: Any = NOT_SET, **options: Any) -> bool:
        pass

    @abstractmethod
    def update_many(self, filter: Any, update: Any, value: Any = NOT_SET, **options: Any) -> int:
        """Updates every matching document; returns the modified count."""
        pass

    @abstractmethod
    async def update_many_async(self, filter: Any, update: Any, value: Any = NOT_SET, **options: Any) -> int:
        pass

    @abstractmethod
    def get_and_update_one(self, filter: Any, update: Any, *, return_updated: bool = True, **options: Any) -> Optional[T]:
        """Atomically updates the first match and returns it (after or before the update)."""
        pass

    @abstractmethod
    async def get_and_update_one_async(self, filter: Any, update: Any, *, return_updated: bool = True, **options: Any) -> Optional[T]:
        pass

    # --- Delete ---
    @abstractmethod
    def delete_one(self, target: Any, **options: Any) -> int:
        """Deletes one addressed document; returns 0 or 1."""
        pass

    @abstractmethod
    async def delete_one_async(self, target: Any, **options: Any) -> int:
        pass

    @abstractmethod
    def delete_many(self, target: Any, **options: Any) -> int:
        """Deletes documents (a list of them or a filter); returns the deleted count."""
        pass

    @abstractmethod
    async def delete_many_async(self, target: Any, **options: Any) -> int:
        pass

    # --- Indexes ---
    @abstractmethod
    def create_ascending_index(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        pass

    @abstractmethod
    async def create_ascending_index_async(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        pass

    @abstractmethod
    def create_descending_index(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        pass

    @abstractmethod
    async def create_descending_index_async(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        pass

    @abstractmethod
    def create_text_index(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        pass

    @abstractmethod
    async def create_text_index_async(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        pass

    @abstractmethod
    def create_combined_text_index(self, selectors: Sequence[Any], options: Any = None, **kwargs: Any) -> str:
        pass

    @abstractmethod
    async def create_combined_text_index_async(self, selectors: Sequence[Any], options: Any = None, **kwargs: Any) -> str:
        pass

    @abstractmethod
    def create_hashed_index(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        pass

    @abstractmethod
    async def create_hashed_index_async(self, selector: Any, options: Any = None, **kwargs: Any) -> str:
        pass

    @abstractmethod
    def drop_index(self, index_name: str, **options: Any) -> None:
        pass

    @abstractmethod
    async def drop_index_async(self, index_name: str, **options: Any) -> None:
        pass

    @abstractmethod
    def get_index_names(self, **options: Any) -> List[str]:
        pass

    @abstractmethod
    async def get_index_names_async(self, **options: Any) -> List[str]:
        pass

    # --- Collection ---
    @abstractmethod
    def drop_collection(self, **options: Any) -> None:
        """Drops the collection of the given partition (the base one by default)."""
        pass

    @abstractmethod
    async def drop_collection_async(self, **options: Any) -> None:
        pass
