import logging
import random
import uuid
from datetime import datetime, timezone
from typing import Any, Generic, Optional, Type, TypeVar, Union, get_args, get_origin

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import UnsupportedKeyTypeError
from .model_validator import _is_none_type, model_field_types

log = logging.getLogger(__name__)

TKey = TypeVar("TKey")

_EMPTY_KEYS = {
    uuid.UUID: uuid.UUID(int=0),
    int: 0,
    str: "",
    ObjectId: ObjectId("0" * 24),
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Document(BaseModel):
    """
    Base document keyed by a UUID.

    ``version`` is the schema version of the stored shape, not a concurrency
    token.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    added_at_utc: datetime = Field(default_factory=_utc_now)
    version: int = 0


class PartitionedDocument(Document):
    """A UUID-keyed document stored in the collection variant of its partition key."""

    partition_key: str


class KeyedDocument(BaseModel, Generic[TKey]):
    """
    Base document with a caller-chosen key type.

    Subclass a parametrised form, ``class Order(KeyedDocument[int])``. A missing
    id is generated on insert.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Optional[TKey] = None
    added_at_utc: datetime = Field(default_factory=_utc_now)
    version: int = 0


class PartitionedKeyedDocument(KeyedDocument[TKey], Generic[TKey]):
    partition_key: str


def get_partition_key(document: Any) -> Optional[str]:
    """Returns the document's partition key, or None for unpartitioned documents."""
    return getattr(document, "partition_key", None) or None


def infer_key_type(document_type: Type) -> Optional[Type]:
    """
    Reads the key type from the ``id`` annotation of ``document_type``.

    ``Optional[X]`` is unwrapped. Returns None when the annotation is missing,
    ``Any`` or an unbound type variable.
    """
    try:
        annotation = model_field_types(document_type).get("id")
    except Exception:
        log.debug(f"Could not read field types of {document_type!r}", exc_info=True)
        return None
    if get_origin(annotation) is Union:
        non_none = [a for a in get_args(annotation) if not _is_none_type(a)]
        annotation = non_none[0] if len(non_none) == 1 else None
    if isinstance(annotation, type) and annotation not in (object, Any):
        return annotation
    return None


def generate_id(key_type: Type) -> Any:
    """
    Generates a fresh id for ``key_type``.

    UUIDs are random, ints are random in [1, 2**31 - 1], strings are UUID
    strings and ObjectIds are new ObjectIds.

    Raises:
        UnsupportedKeyTypeError: For any other key type.
    """
    if issubclass(key_type, uuid.UUID):
        return uuid.uuid4()
    if key_type is int:
        return random.randint(1, 2**31 - 1)
    if key_type is str:
        return str(uuid.uuid4())
    if issubclass(key_type, ObjectId):
        return ObjectId()
    raise UnsupportedKeyTypeError(key_type)


def is_empty_key(value: Any) -> bool:
    """True for None and for the zero value of a supported key type."""
    if value is None:
        return True
    for key_type, empty in _EMPTY_KEYS.items():
        if type(value) is key_type:
            return value == empty
    return False


def format_document(document: Any, key_type: Optional[Type] = None) -> Any:
    """Assigns a generated id to ``document`` when its id is empty. Returns the document."""
    if not is_empty_key(getattr(document, "id", None)):
        return document
    effective_key_type = key_type or infer_key_type(type(document))
    if effective_key_type is None:
        raise TypeError(
            f"Cannot generate an id for {type(document).__name__}: "
            "the key type is unknown, pass key_type explicitly."
        )
    new_id = generate_id(effective_key_type)
    setattr(document, "id", new_id)
    log.debug(f"Generated id {new_id!r} for {type(document).__name__}")
    return document
