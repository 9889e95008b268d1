import logging
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict

from bson import Decimal128

from .model_validator import model_field_types

logger = logging.getLogger(__name__)


def prepare_for_storage(data: Any) -> Any:
    """
    Recursively convert Pydantic models, dataclasses, and special types to BSON-compatible values.

    It handles:
    - Pydantic BaseModel instances (dumped in python mode, by alias)
    - Python dataclasses
    - Dictionaries (processing values recursively)
    - Lists, tuples and sets (processing each item)
    - Decimal values (converted to Decimal128)
    - Enum members (stored by value)
    - Pydantic URL types (converting to strings)

    UUID, datetime, ObjectId and bytes values are left untouched, the
    driver encodes them natively.

    Args:
        data: The data to convert

    Returns:
        The converted data, ready for storage
    """
    if data is None:
        return None

    if is_dataclass(data) and not isinstance(data, type):
        return prepare_for_storage(asdict(data))

    if hasattr(data, "model_dump") and callable(getattr(data, "model_dump")):
        return prepare_for_storage(data.model_dump(mode="python", by_alias=True))

    if isinstance(data, dict):
        return {k: prepare_for_storage(v) for k, v in data.items()}

    if isinstance(data, (list, tuple, set, frozenset)):
        return [prepare_for_storage(item) for item in data]

    if isinstance(data, Decimal):
        return Decimal128(data)

    if isinstance(data, Enum):
        return prepare_for_storage(data.value)

    if data.__class__.__module__.startswith("pydantic.networks") or data.__class__.__module__.startswith("pydantic_core"):
        return str(data)

    return data


def restore_from_storage(data: Any) -> Any:
    """
    Reverse the storage-only conversions made by the driver round trip.

    Decimal128 values become Decimal again and naive datetimes (returned by
    clients created without ``tz_aware``) are marked as UTC.
    """
    if isinstance(data, dict):
        return {k: restore_from_storage(v) for k, v in data.items()}
    if isinstance(data, list):
        return [restore_from_storage(item) for item in data]
    if isinstance(data, Decimal128):
        return data.to_decimal()
    if isinstance(data, datetime) and data.tzinfo is None:
        return data.replace(tzinfo=timezone.utc)
    return data


def build_model(model_cls: Any, data: Dict[str, Any]) -> Any:
    """
    Instantiate ``model_cls`` from a stored dictionary.

    Pydantic models are validated with ``model_validate``; dataclasses and
    annotated classes receive the keys matching their declared fields.
    """
    if hasattr(model_cls, "model_validate"):
        return model_cls.model_validate(data)
    known_fields = model_field_types(model_cls)
    kwargs = {k: v for k, v in data.items() if k in known_fields}
    try:
        return model_cls(**kwargs)
    except TypeError as e:
        logger.error(
            f"Failed to instantiate {model_cls.__name__} from stored fields {list(kwargs)!r}: {e}"
        )
        raise
