import functools
import logging
from typing import Callable, Optional, Type, TypeVar

import inflection

log = logging.getLogger(__name__)

T = TypeVar("T", bound=type)

COLLECTION_NAME_ATTRIBUTE = "__collection_name__"


def collection_name(name: str) -> Callable[[T], T]:
    """
    Class decorator binding a document type to an explicit collection name.

    Example:
        >>> @collection_name("audit_log")
        ... class AuditEntry(Document):
        ...     message: str
    """
    if not isinstance(name, str) or not name:
        raise ValueError("Collection name must be a non-empty string.")

    def decorator(cls: T) -> T:
        setattr(cls, COLLECTION_NAME_ATTRIBUTE, name)
        return cls

    return decorator


def convention_collection_name(document_type: Type) -> str:
    """Lower-camel-cased plural of the type name: ``OrderLine`` -> ``orderLines``."""
    return _pluralized_name(document_type.__name__)


@functools.lru_cache(maxsize=None)
def _pluralized_name(type_name: str) -> str:
    return inflection.camelize(inflection.pluralize(type_name), uppercase_first_letter=False)


def _base_collection_name(document_type: Type) -> str:
    # Read on every call so a name assigned after first use takes effect.
    override = getattr(document_type, COLLECTION_NAME_ATTRIBUTE, None)
    if override:
        return override
    return convention_collection_name(document_type)


def resolve_collection_name(document_type: Type, partition_key: Optional[str] = None) -> str:
    """
    Returns the physical collection name for a document type and partition key.

    The base name is the type's explicit collection name, or the naming
    convention. A non-empty partition key selects the ``"{partition_key}-{base}"``
    variant. The result depends only on the arguments.
    """
    base_name = _base_collection_name(document_type)
    if partition_key:
        return f"{partition_key}-{base_name}"
    return base_name
