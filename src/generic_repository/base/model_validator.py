import logging
import collections.abc
from dataclasses import MISSING, fields as dataclass_fields, is_dataclass
from enum import Enum
from decimal import Decimal
from inspect import isclass
from typing import (
    Any,
    ClassVar,
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Type,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from bson import Decimal128

from .exceptions import InvalidPathError, ValidationError, ValueTypeError

# --- Setup Logging ---
log = logging.getLogger(__name__)

M = TypeVar("M")

__all__ = [
    "ModelValidator",
    "ValidationError",
    "InvalidPathError",
    "ValueTypeError",
    "model_field_types",
]


# --- Helper Functions ---
def _is_none_type(t: Optional[Type]) -> bool:
    return t is type(None)


def _unwrap_optional(t: Any) -> Any:
    """Returns T for Optional[T], otherwise the type unchanged."""
    if get_origin(t) is Union:
        non_none = [a for a in get_args(t) if not _is_none_type(a)]
        if len(non_none) == 1:
            return non_none[0]
    return t


def _origin_to_class(origin: Optional[Type]) -> Optional[Type]:
    if origin is None:
        return None
    map_ = {
        list: list,
        List: list,
        dict: dict,
        Dict: dict,
        set: set,
        Set: set,
        tuple: tuple,
        Tuple: tuple,
        Mapping: dict,
        collections.abc.Mapping: dict,
    }
    mapped = map_.get(origin, origin)
    return mapped if isclass(mapped) else origin


def model_field_types(cls: Type) -> Dict[str, Any]:
    """
    Returns the declared field types of a model class.

    Pydantic models report their (generic-substituted) field annotations,
    dataclasses their fields and any other class its resolved type hints.
    ClassVar and private names are skipped.
    """
    model_fields = getattr(cls, "model_fields", None)
    if isinstance(model_fields, dict):
        return {name: info.annotation for name, info in model_fields.items()}
    if is_dataclass(cls):
        hints = _safe_type_hints(cls)
        return {f.name: hints.get(f.name, f.type) for f in dataclass_fields(cls)}
    hints = _safe_type_hints(cls)
    return {
        name: hint
        for name, hint in hints.items()
        if not name.startswith("_") and get_origin(hint) is not ClassVar
    }


def _safe_type_hints(cls: Type) -> Dict[str, Any]:
    try:
        return get_type_hints(cls)
    except (TypeError, NameError) as e:
        log.warning(
            f"get_type_hints failed for {cls.__name__}: {e}. Falling back to __annotations__."
        )
        annotations: Dict[str, Any] = {}
        for klass in reversed(cls.__mro__):
            annotations.update(getattr(klass, "__annotations__", {}))
        return annotations


def _has_default(cls: Type, name: str) -> bool:
    model_fields = getattr(cls, "model_fields", None)
    if isinstance(model_fields, dict) and name in model_fields:
        return not model_fields[name].is_required()
    if is_dataclass(cls):
        for f in dataclass_fields(cls):
            if f.name == name:
                return f.default is not MISSING or f.default_factory is not MISSING
    return hasattr(cls, name)


class ModelValidator(Generic[M]):
    """Validates field paths and values against a model type."""

    model_type: Type[M]

    def __init__(self, model_type: Type[M]):
        if not isclass(model_type):
            log.error(f"Init failed: {model_type!r} is not a class")
            raise TypeError(f"model_type must be a class, received {type(model_type)}.")
        self.model_type = model_type
        self._field_types_cache: Dict[Type, Dict[str, Any]] = {}

    def _field_types(self, cls: Type) -> Dict[str, Any]:
        if cls not in self._field_types_cache:
            self._field_types_cache[cls] = model_field_types(cls)
        return self._field_types_cache[cls]

    def _get_type_name(self, type_obj: Any) -> str:
        if _is_none_type(type_obj):
            return "NoneType"
        if type_obj is Any:
            return "Any"
        if get_origin(type_obj) is None and hasattr(type_obj, "__name__"):
            return type_obj.__name__
        return str(type_obj).replace("typing.", "")

    def _format_error_message(self, path: str, expected_type: Any, value: Any) -> str:
        type_name = self._get_type_name(expected_type)
        if value is None:
            return f"Path '{path}': received None but expected {type_name}."
        if expected_type is int and isinstance(value, bool):
            return f"Path '{path}': expected int, got bool."
        value_repr = repr(value)
        value_repr = value_repr[:100] + "..." if len(value_repr) > 100 else value_repr
        return (
            f"Path '{path}': expected type {type_name}, "
            f"got {value_repr} ({type(value).__name__})."
        )

    # --- Path Resolution ---
    def get_field_type(self, field_path: str) -> Any:
        """
        Resolves the declared type at a dotted field path.

        Numeric path parts index into sequences, other parts resolve model
        attributes or dictionary keys. Any propagates.

        Raises:
            InvalidPathError: If a part of the path does not exist.
        """
        if not field_path:
            raise ValueError("field_path cannot be empty.")
        current: Any = self.model_type
        walked: List[str] = []
        for part in field_path.split("."):
            walked.append(part)
            current = _unwrap_optional(current)
            if current is Any:
                return Any
            origin = get_origin(current)
            args = get_args(current)

            if part.isdigit() and (origin in (list, tuple, set) or current in (list, tuple, set)):
                index = int(part)
                if origin is tuple and args and not (len(args) == 2 and args[1] is ...):
                    if index >= len(args):
                        raise InvalidPathError(
                            f"Index {index} out of range for {self._get_type_name(current)}. "
                            f"Path: '{'.'.join(walked)}' in model {self.model_type.__name__}."
                        )
                    current = args[index]
                else:
                    current = args[0] if args else Any
                continue

            if _origin_to_class(origin) is dict or current is dict:
                if args and len(args) == 2:
                    if args[0] is not str:
                        raise InvalidPathError(
                            f"Cannot traverse Dict path '{'.'.join(walked)}' with non-string key type "
                            f"{self._get_type_name(args[0])}."
                        )
                    current = args[1]
                else:
                    current = Any
                continue

            if isclass(current):
                field_types = self._field_types(current)
                if part in field_types:
                    current = field_types[part]
                    continue
                raise InvalidPathError(
                    f"Field '{part}' does not exist in type {current.__name__}. "
                    f"Path: '{'.'.join(walked)}' in model {self.model_type.__name__}."
                )

            raise InvalidPathError(
                f"Cannot access '{part}' on {self._get_type_name(current)}. "
                f"Path: '{'.'.join(walked)}' in model {self.model_type.__name__}."
            )
        log.debug(f"Resolved path '{field_path}' to {current!r}")
        return current

    def get_list_item_type(self, field_path: str) -> Tuple[bool, Any]:
        """Returns (is_list, item_type) for the field at ``field_path``."""
        field_type = _unwrap_optional(self.get_field_type(field_path))
        if get_origin(field_type) in (list, set) or field_type in (list, set):
            args = get_args(field_type)
            return True, args[0] if args else Any
        return False, Any

    def _is_single_type_numeric(self, t: Any) -> bool:
        if t is bool or not isclass(t):
            return False
        return issubclass(t, (int, float, Decimal, Decimal128))

    def is_field_numeric(self, field_path: str) -> bool:
        t = self.get_field_type(field_path)
        if get_origin(t) is Union:
            return any(
                self._is_single_type_numeric(a) for a in get_args(t) if not _is_none_type(a)
            )
        return self._is_single_type_numeric(t)

    # --- Value Validation ---
    def validate_value(self, value: Any, expected_type: Any, path: str = "value") -> None:
        """Raises ValueTypeError when ``value`` does not fit ``expected_type``."""
        if isinstance(expected_type, TypeVar) or expected_type is Any:
            return
        origin = get_origin(expected_type)
        args = get_args(expected_type)

        if origin is Union:
            if value is None and any(_is_none_type(a) for a in args):
                return
            if isinstance(value, bool) and int in args and bool not in args:
                raise ValueTypeError(
                    f"Path '{path}': bool invalid for Union {expected_type!r} allowing int but not bool."
                )
            errors = []
            for candidate in args:
                if _is_none_type(candidate):
                    continue
                try:
                    self.validate_value(value, candidate, path)
                    return
                except ValueTypeError as e:
                    errors.append(str(e))
            raise ValueTypeError(
                f"Path '{path}': value {value!r} matches no member of {expected_type!r}. "
                + " ".join(errors)
            )

        if value is None:
            raise ValueTypeError(self._format_error_message(path, expected_type, value))

        check_origin = _origin_to_class(origin) or expected_type
        if check_origin in (list, set, tuple):
            if not isinstance(value, (list, set, tuple)):
                raise ValueTypeError(self._format_error_message(path, expected_type, value))
            if args:
                variadic = check_origin is not tuple or (len(args) == 2 and args[1] is ...)
                for i, item in enumerate(value):
                    item_type = args[0] if variadic else (args[i] if i < len(args) else Any)
                    self.validate_value(item, item_type, f"{path}[{i}]")
            return

        if check_origin is dict:
            if not isinstance(value, dict):
                raise ValueTypeError(self._format_error_message(path, expected_type, value))
            if len(args) == 2:
                for key, item in value.items():
                    self.validate_value(key, args[0], f"{path}[key:{key!r}]")
                    self.validate_value(item, args[1], f"{path}[{key!r}]")
            return

        if isclass(expected_type):
            self._validate_class(value, expected_type, path)
            return
        log.debug(f"No runtime check available for {expected_type!r} at '{path}'")

    def _validate_class(self, value: Any, expected_type: Type, path: str) -> None:
        if isinstance(value, dict) and expected_type is not dict:
            # A stored (dict) form of a nested model.
            field_types = self._field_types(expected_type)
            if not field_types:
                raise ValueTypeError(self._format_error_message(path, expected_type, value))
            for key, item in value.items():
                if key in field_types:
                    self.validate_value(item, field_types[key], f"{path}.{key}")
            for name, hint in field_types.items():
                if name not in value and not _has_default(expected_type, name):
                    if _unwrap_optional(hint) is hint:
                        raise ValueTypeError(
                            f"Path '{path}': missing required field '{name}'"
                        )
            return
        if isinstance(value, bool) and expected_type is not bool and issubclass(expected_type, (int, float)):
            raise ValueTypeError(self._format_error_message(path, expected_type, value))
        if expected_type is float and isinstance(value, int):
            return
        if expected_type is Decimal and isinstance(value, (Decimal128, int)):
            return
        if issubclass(expected_type, Enum) and not isinstance(value, Enum):
            if value in {member.value for member in expected_type}:
                return
        if isinstance(value, expected_type):
            return
        raise ValueTypeError(self._format_error_message(path, expected_type, value))

    def validate_value_for_path(self, field_path: str, value: Any) -> None:
        expected = self.get_field_type(field_path)
        self.validate_value(value, expected, field_path)
