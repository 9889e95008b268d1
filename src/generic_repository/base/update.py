import logging
from dataclasses import dataclass
from typing import (
    Any,
    Generic,
    List,
    Literal,
    Optional,
    Type,
    TypeVar,
    Union,
    dataclass_transform,
    get_args,
    get_origin,
)

from .exceptions import InvalidPathError, ValueTypeError
from .model_validator import ModelValidator, _is_none_type, _unwrap_optional
from .query import Field, GenericFieldsProxy, _generate_fields_proxy
from .utils import prepare_for_storage


# --- Update Operation Classes ---
@dataclass
class UpdateOperation:
    field_path: str


@dataclass
class SetOperation(UpdateOperation):
    value: Any


@dataclass
class UnsetOperation(UpdateOperation):
    pass


@dataclass
class IncrementOperation(UpdateOperation):
    amount: Union[int, float]


@dataclass
class MultiplyOperation(UpdateOperation):
    factor: Union[int, float]


@dataclass
class MinOperation(UpdateOperation):
    value: Any


@dataclass
class MaxOperation(UpdateOperation):
    value: Any


@dataclass
class PushOperation(UpdateOperation):
    items: List[Any]


@dataclass
class AddToSetOperation(UpdateOperation):
    items: List[Any]


@dataclass
class PopOperation(UpdateOperation):
    position: Literal[-1, 1]


@dataclass
class PullOperation(UpdateOperation):
    value_or_condition: Any


M = TypeVar("M")

# Marks array operations that carry no item to type-check.
_NO_ITEM = object()


@dataclass_transform()
class Update(Generic[M]):
    """
    Fluent builder for partial document updates.

    Each method records one operation on one field path. With a model class
    the path and value are validated against the model's field types, and two
    operations on the same path (or on a parent and its child) are rejected
    since MongoDB refuses conflicting update paths in a single update.

    Example:
        >>> update = Update(Product)
        >>> update.set(update.fields.name, "Pen").increment(update.fields.stock, 5)
    """

    model_cls: Optional[Type[M]]
    fields: Any
    _validator: Optional[ModelValidator]
    _operations: List[UpdateOperation]
    _logger: logging.Logger

    def __init__(self, model_cls: Optional[Type] = None) -> None:
        self.model_cls = model_cls
        self._operations = []
        self._logger = logging.getLogger(__name__)
        self._validator = None
        if model_cls is not None:
            try:
                self.fields = _generate_fields_proxy(model_cls)
                self._validator = ModelValidator(model_cls)
            except Exception as e:
                self._logger.error(
                    f"Failed to initialize Update builder for {model_cls.__name__}: {e}",
                    exc_info=True,
                )
                raise ValueError(
                    f"Could not initialize Update builder for model {model_cls.__name__}"
                ) from e
        else:
            self.fields = GenericFieldsProxy()

    def _get_field_path(self, field: Union[str, Field]) -> str:
        if isinstance(field, str):
            return field
        if isinstance(field, Field):
            return field.path
        raise TypeError(
            f"Expected field to be str or Field, got {type(field).__name__}"
        )

    def _check_field_conflict(self, field_path: str) -> None:
        """
        Rejects a path that is already updated, or whose parent or child is.

        "metadata" and "metadata.key1" conflict with each other, as do two
        operations on "metadata".
        """
        for op in self._operations:
            existing_path = op.field_path
            if existing_path == field_path:
                message = (
                    f"Field '{field_path}' already has an operation. Multiple operations "
                    "on the same field are not allowed in a single update."
                )
            elif field_path.startswith(existing_path + "."):
                message = (
                    f"Field '{field_path}' conflicts with existing operation on parent field "
                    f"'{existing_path}'. Parent-child field conflicts are not allowed in a single update."
                )
            elif existing_path.startswith(field_path + "."):
                message = (
                    f"Field '{field_path}' conflicts with existing operation on child field "
                    f"'{existing_path}'. Parent-child field conflicts are not allowed in a single update."
                )
            else:
                continue
            self._logger.warning(message)
            raise ValueError(message)

    def _is_nested_path_in_dict(self, field_path: str) -> bool:
        """Check if a field path points inside a dictionary-typed field."""
        if "." not in field_path or not self._validator:
            return False
        base_field = field_path.split(".")[0]
        try:
            field_type = _unwrap_optional(self._validator.get_field_type(base_field))
        except InvalidPathError:
            return False
        return get_origin(field_type) is dict or field_type is dict

    def _require_list(self, field_path: str, action: str) -> Any:
        """Returns the item type of a list field, or raises InvalidPathError."""
        assert self._validator is not None
        is_list, item_type = self._validator.get_list_item_type(field_path)
        if not is_list:
            raise InvalidPathError(
                f"Cannot {action} field '{field_path}': not a List or Optional[List]."
            )
        return item_type

    def _require_numeric(self, field_path: str, action: str) -> Any:
        assert self._validator is not None
        field_type = self._validator.get_field_type(field_path)
        if get_origin(field_type) is Union:
            is_numeric = any(
                self._validator._is_single_type_numeric(a)
                for a in get_args(field_type)
                if not _is_none_type(a)
            )
        else:
            is_numeric = self._validator._is_single_type_numeric(field_type)
        if not is_numeric:
            raise ValueTypeError(
                f"Cannot {action} non-numeric field '{field_path}' "
                f"(type: {self._validator._get_type_name(field_type)})."
            )
        return field_type

    def _validated(self, field_path: str) -> bool:
        """True when operations on ``field_path`` should be checked against the model."""
        if not self._validator:
            return False
        if self._is_nested_path_in_dict(field_path):
            self._logger.debug(
                f"Skipping validation for nested path '{field_path}' within dictionary field"
            )
            return False
        return True

    # --- Shared steps ---
    def _claim(self, field: Union[str, Field[Any]]) -> str:
        """Resolves the path of ``field`` and reserves it for one operation."""
        field_path = self._get_field_path(field)
        self._check_field_conflict(field_path)
        return field_path

    def _check_item(self, field_path: str, action: str, item: Any, label: str) -> None:
        if not self._validated(field_path):
            return
        item_type = self._require_list(field_path, action)
        if item is _NO_ITEM or item_type is Any:
            return
        try:
            self._validator.validate_value(item, item_type, f"{label} '{field_path}'")
        except ValueTypeError as e:
            raise ValueTypeError(f"Invalid value type for {label} '{field_path}': {e}") from e

    def _numeric_step(
        self, field: Union[str, Field[Any]], number: Any, kind: str, action: str
    ) -> str:
        field_path = self._claim(field)
        if isinstance(number, bool) or not isinstance(number, (int, float)):
            raise TypeError(f"{kind} must be numeric, got {type(number).__name__}.")
        if self._validated(field_path):
            self._require_numeric(field_path, action)
        return field_path

    def _add(self, operation: UpdateOperation) -> "Update[M]":
        self._operations.append(operation)
        return self

    # --- Update Methods ---
    def set(self, field: Union[str, Field[Any]], value: Any) -> "Update[M]":
        field_path = self._claim(field)
        value = prepare_for_storage(value)
        if self._validator:
            self._validator.validate_value_for_path(field_path, value)
        return self._add(SetOperation(field_path, value))

    def unset(self, field: Union[str, Field[Any]]) -> "Update[M]":
        field_path = self._claim(field)
        if self._validator:
            # Raises InvalidPathError for unknown paths.
            self._validator.get_field_type(field_path)
        return self._add(UnsetOperation(field_path))

    def push(self, field: Union[str, Field[Any]], value: Any) -> "Update[M]":
        field_path = self._claim(field)
        item = prepare_for_storage(value)
        self._check_item(field_path, "push to", item, "push to")
        return self._add(PushOperation(field_path, [item]))

    def add_to_set(self, field: Union[str, Field[Any]], value: Any) -> "Update[M]":
        """Adds ``value`` to an array field unless an equal item is already present."""
        field_path = self._claim(field)
        item = prepare_for_storage(value)
        self._check_item(field_path, "add to", item, "add_to_set on")
        return self._add(AddToSetOperation(field_path, [item]))

    def pop(
        self, field: Union[str, Field[Any]], position: Literal[-1, 1] = 1
    ) -> "Update[M]":
        field_path = self._claim(field)
        if position not in (1, -1):
            raise ValueError(
                f"Position for pop must be 1 (last) or -1 (first), got {position}."
            )
        self._check_item(field_path, "pop from", _NO_ITEM, "pop from")
        return self._add(PopOperation(field_path, position))

    def pull(
        self, field: Union[str, Field[Any]], value_or_condition: Any
    ) -> "Update[M]":
        """Removes matching items from an array (a value or an operator dict like {"$gte": 5})."""
        field_path = self._claim(field)
        if isinstance(value_or_condition, dict) and any(
            key.startswith("$") for key in value_or_condition
        ):
            self._check_item(field_path, "pull from", _NO_ITEM, "pull from")
            return self._add(PullOperation(field_path, value_or_condition))
        item = prepare_for_storage(value_or_condition)
        self._check_item(field_path, "pull from", item, "pull from")
        return self._add(PullOperation(field_path, item))

    def increment(
        self, field: Union[str, Field[Any]], amount: Union[int, float] = 1
    ) -> "Update[M]":
        field_path = self._numeric_step(field, amount, "Increment amount", "increment")
        return self._add(IncrementOperation(field_path, amount))

    def decrement(
        self, field: Union[str, Field[Any]], amount: Union[int, float] = 1
    ) -> "Update[M]":
        field_path = self._numeric_step(field, amount, "Decrement amount", "decrement")
        return self._add(IncrementOperation(field_path, -amount))

    def mul(
        self, field: Union[str, Field[Any]], factor: Union[int, float]
    ) -> "Update[M]":
        field_path = self._numeric_step(field, factor, "Multiply factor", "multiply")
        return self._add(MultiplyOperation(field_path, factor))

    def min(self, field: Union[str, Field[Any]], value: Any) -> "Update[M]":
        """Sets the field to ``value`` when ``value`` is lower than the stored one."""
        return self._bound(MinOperation, field, value)

    def max(self, field: Union[str, Field[Any]], value: Any) -> "Update[M]":
        """Sets the field to ``value`` when ``value`` is greater than the stored one."""
        return self._bound(MaxOperation, field, value)

    def _bound(self, op_cls: type, field: Union[str, Field[Any]], value: Any) -> "Update[M]":
        field_path = self._claim(field)
        value = prepare_for_storage(value)
        if self._validated(field_path):
            self._validator.validate_value_for_path(field_path, value)
        return self._add(op_cls(field_path, value))

    def build(self) -> List[UpdateOperation]:
        return list(self._operations)

    def __repr__(self) -> str:
        model_name = self.model_cls.__name__ if self.model_cls else "Anonymous"
        return f"Update<{model_name}>({self._operations!r})"

    def __bool__(self) -> bool:
        return bool(self._operations)

    def __len__(self) -> int:
        return len(self._operations)
