import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import SimpleNamespace
from typing import (
    Any,
    Dict,
    Generic,
    List,
    Literal,
    Optional,
    Set,
    Tuple,
    Type,
    TypeVar,
    Union,
    dataclass_transform,
    get_origin,
)

from .exceptions import InvalidPathError, ValueTypeError
from .model_validator import ModelValidator, _unwrap_optional, model_field_types
from .utils import prepare_for_storage

# --- Setup Logging ---
log = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M")


# --- Query Operator Enum ---
class QueryOperator(Enum):
    """Enumeration of valid query filter operators."""

    # Comparison
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    LT = "lt"
    GTE = "ge"
    LTE = "le"
    # Membership
    IN = "in"
    NIN = "nin"
    # String/Collection Specific
    CONTAINS = "contains"
    LIKE = "like"
    STARTSWITH = "startswith"
    ENDSWITH = "endswith"
    # Existence
    EXISTS = "exists"


# --- Structured Query Expression Classes ---
@dataclass
class QueryExpression:
    """Base class for structured query filter expressions."""


@dataclass
class QueryFilter(QueryExpression):
    """Represents a single filter condition (field_path <operator> value)."""

    field_path: str
    operator: QueryOperator
    value: Any


@dataclass
class QueryLogical(QueryExpression):
    """Represents a logical combination (AND/OR) of expressions."""

    operator: Literal["and", "or"]
    conditions: List[QueryExpression] = field(default_factory=list)


# --- Query Options ---
@dataclass
class QueryOptions:
    """A structured filter plus ordering and paging, as built by QueryBuilder."""

    expression: Optional[QueryExpression] = None
    sort_by: Optional[str] = None
    sort_desc: bool = False
    limit: Optional[int] = None
    offset: int = 0

    def __repr__(self) -> str:
        parts = []
        if self.expression:
            parts.append(f"expression={self.expression!r}")
        if self.sort_by:
            parts.append(f"sort_by={self.sort_by!r}")
            parts.append(f"sort_desc={self.sort_desc!r}")
        if self.limit is not None:
            parts.append(f"limit={self.limit!r}")
        parts.append(f"offset={self.offset!r}")
        return f"QueryOptions({', '.join(parts)})"

    def copy(self) -> "QueryOptions":
        return copy.copy(self)


# --- Typed predicates built from Field comparisons ---
class Expression:
    """A predicate that can be joined with ``&`` and ``|``."""

    def __and__(self, other: "Expression") -> "CombinedCondition":
        return CombinedCondition("and", self, other)

    def __or__(self, other: "Expression") -> "CombinedCondition":
        return CombinedCondition("or", self, other)


@dataclass(eq=False)
class FilterCondition(Expression, Generic[T]):
    field_path: str
    operator: str
    value: Any


@dataclass(eq=False)
class CombinedCondition(Expression):
    logical_operator: str
    left: Expression
    right: Expression

    def __post_init__(self) -> None:
        if self.logical_operator not in ("and", "or"):
            raise ValueError("logical_operator must be 'and' or 'or'")
        if not (isinstance(self.left, Expression) and isinstance(self.right, Expression)):
            raise TypeError("Only Expression objects can be combined with & and |")


# Operators whose operand is checked before a condition is built.
_OPERAND_RULES: Dict[str, Tuple[Tuple[type, ...], str]] = {
    "like": ((str,), "a string value"),
    "startswith": ((str,), "a string value"),
    "endswith": ((str,), "a string value"),
    "in": ((list, set, tuple), "a list/set/tuple"),
    "nin": ((list, set, tuple), "a list/set/tuple"),
    "exists": ((bool,), "a boolean value"),
}


class Field(Generic[T]):
    """
    A dotted document path that turns comparisons into FilterConditions.

    Attribute and item access extend the path, so ``fields.address.city`` is
    "address.city" and ``fields.tags[0]`` is "tags.0".
    """

    __slots__ = ("_path",)

    def __init__(self, path: str):
        object.__setattr__(self, "_path", path)

    @property
    def path(self) -> str:
        return self._path

    def _child(self, segment: Any) -> "Field[Any]":
        return Field(f"{self._path}.{segment}")

    def _op(self, op_name: str, operand: Any) -> FilterCondition[T]:
        rule = _OPERAND_RULES.get(op_name)
        if rule is not None:
            accepted, description = rule
            if not isinstance(operand, accepted):
                raise TypeError(f"Operator '{op_name}' requires {description}")
            if op_name in ("in", "nin"):
                operand = list(operand)
        return FilterCondition(self._path, op_name, operand)

    def __eq__(self, other: Any) -> FilterCondition[T]:  # type: ignore[override]
        return self._op("eq", other)

    def __ne__(self, other: Any) -> FilterCondition[T]:  # type: ignore[override]
        return self._op("ne", other)

    def __gt__(self, other: Any) -> FilterCondition[T]:
        return self._op("gt", other)

    def __ge__(self, other: Any) -> FilterCondition[T]:
        return self._op("ge", other)

    def __lt__(self, other: Any) -> FilterCondition[T]:
        return self._op("lt", other)

    def __le__(self, other: Any) -> FilterCondition[T]:
        return self._op("le", other)

    def contains(self, item: Any) -> FilterCondition[T]:
        """Substring match on strings, membership on arrays."""
        return self._op("contains", item)

    def like(self, pattern: str) -> FilterCondition[T]:
        """SQL-style pattern where ``%`` is any run and ``_`` one character."""
        return self._op("like", pattern)

    def startswith(self, prefix: str) -> FilterCondition[T]:
        return self._op("startswith", prefix)

    def endswith(self, suffix: str) -> FilterCondition[T]:
        return self._op("endswith", suffix)

    def in_(self, collection: Union[List, Set, Tuple]) -> FilterCondition[T]:
        return self._op("in", collection)

    def nin(self, collection: Union[List, Set, Tuple]) -> FilterCondition[T]:
        return self._op("nin", collection)

    def exists(self, exists_value: bool = True) -> FilterCondition[T]:
        return self._op("exists", exists_value)

    def __getitem__(self, key: Any) -> "Field[Any]":
        if isinstance(key, bool) or not isinstance(key, (int, str)):
            raise TypeError(
                f"Field index must be an integer or string, got {type(key).__name__}"
            )
        if isinstance(key, int) and key < 0:
            raise IndexError("Negative indexing is not supported for query fields")
        return self._child(key)

    def __getattr__(self, name: str) -> "Field[Any]":
        if name.startswith("_"):
            raise AttributeError(name)
        return self._child(name)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"Field paths are read-only, cannot set '{name}'")

    def __repr__(self) -> str:
        return f"Field({self._path!r})"


# --- Fields proxies ---
_PROXY_CACHE: Dict[Type, SimpleNamespace] = {}


def _generate_fields_proxy(model_cls: Type[M]) -> SimpleNamespace:
    """Returns a namespace holding one Field per model attribute, cached per class."""
    cached = _PROXY_CACHE.get(model_cls)
    if cached is not None:
        return cached

    try:
        field_types = model_field_types(model_cls)
    except Exception as e:
        log.error(f"Cannot introspect fields of {model_cls.__name__}", exc_info=True)
        raise TypeError(
            f"Could not generate query fields proxy for {model_cls.__name__}"
        ) from e

    proxy = SimpleNamespace(
        **{name: Field[hint](name) for name, hint in field_types.items()}
    )
    log.debug(f"Built fields proxy for {model_cls.__name__}: {sorted(field_types)}")
    _PROXY_CACHE[model_cls] = proxy
    return proxy


class GenericFieldsProxy:
    """Fields proxy for untyped documents: any public attribute is a Field."""

    __slots__ = ()

    def __getattr__(self, name: str) -> Field[Any]:
        if name.startswith("_"):
            raise AttributeError(name)
        return Field(name)

    def __dir__(self) -> List[str]:
        return []


def fields_for(model_cls: Optional[Type[M]]) -> Any:
    if model_cls is not None:
        proxy = _generate_fields_proxy(model_cls)
        if vars(proxy):
            return proxy
    return GenericFieldsProxy()


_OPERATOR_MAP = {op.value: op for op in QueryOperator}


def _translate_condition(condition: FilterCondition) -> QueryFilter:
    try:
        operator = _OPERATOR_MAP[condition.operator]
    except KeyError:
        raise ValueError(f"Unknown filter operator '{condition.operator}'") from None
    return QueryFilter(condition.field_path, operator, prepare_for_storage(condition.value))


def to_query_expression(internal_expr: Optional[Expression]) -> Optional[QueryExpression]:
    """
    Converts a typed predicate into the QueryExpression tree.

    Nested combinations with the same operator are flattened, so
    ``(a & b) & c`` becomes a single "and" over three filters.
    """
    if internal_expr is None:
        return None
    if isinstance(internal_expr, FilterCondition):
        return _translate_condition(internal_expr)
    if not isinstance(internal_expr, CombinedCondition):
        raise TypeError(f"Unsupported expression type: {type(internal_expr).__name__}")

    joined = internal_expr.logical_operator
    conditions: List[QueryExpression] = []
    for side in (internal_expr.left, internal_expr.right):
        node = to_query_expression(side)
        if isinstance(node, QueryLogical) and node.operator == joined:
            conditions += node.conditions
        elif node is not None:
            conditions.append(node)
    if len(conditions) == 1:
        return conditions[0]
    return QueryLogical(operator=joined, conditions=conditions)


# --- Query Builder ---
@dataclass_transform()
class QueryBuilder(Generic[M]):
    """
    Fluent builder for QueryOptions.

    Filters added with ``filter()`` are ANDed together. With a model class,
    filter values and the sort path are checked against the model's field
    types before anything reaches the database.

    Example:
        >>> qb = QueryBuilder(Person)
        >>> qb.filter(qb.fields.age >= 18).sort_by(qb.fields.name).limit(20).build()
    """

    model_cls: Optional[Type[M]]
    fields: Any
    _validator: Optional[ModelValidator[M]]
    _expression: Optional[Expression]
    _pending: QueryOptions

    def __init__(self, model_cls: Optional[Type[M]] = None):
        self.model_cls = model_cls
        self._expression = None
        self._pending = QueryOptions()
        self._validator = None
        self.fields = GenericFieldsProxy()
        if model_cls is None:
            return
        try:
            self.fields = _generate_fields_proxy(model_cls)
            self._validator = ModelValidator(model_cls)
        except Exception as e:
            log.error(f"Cannot build a QueryBuilder for {model_cls.__name__}", exc_info=True)
            raise ValueError(
                f"Could not initialize QueryBuilder for {model_cls.__name__}"
            ) from e

    def filter(self, expr: Expression) -> "QueryBuilder[M]":
        """Adds a filter expression (combined with AND if one exists)."""
        if not isinstance(expr, Expression):
            raise TypeError(
                f"filter() requires an Expression object, got {type(expr).__name__}"
            )
        if self._validator:
            try:
                self._validate_expression(expr)
            except (ValueTypeError, InvalidPathError) as e:
                raise ValueError(f"Invalid filter expression: {e}") from e

        self._expression = expr if self._expression is None else self._expression & expr
        log.debug(f"Current filter expression is now: {self._expression!r}")
        return self

    def _validate_expression(self, expr: Expression) -> None:
        if isinstance(expr, CombinedCondition):
            self._validate_expression(expr.left)
            self._validate_expression(expr.right)
        elif isinstance(expr, FilterCondition):
            self._validate_filter_condition(expr)
        else:
            raise TypeError(
                f"Cannot validate unknown expression type: {type(expr).__name__}"
            )

    def _validate_filter_condition(self, condition: FilterCondition) -> None:
        """Validates a single FilterCondition against the model."""
        assert self._validator is not None
        field_path = condition.field_path
        operator = condition.operator
        value = prepare_for_storage(condition.value)

        # Resolving the type also validates the path.
        field_type = self._validator.get_field_type(field_path)
        actual_type = _unwrap_optional(field_type)

        if operator == QueryOperator.EXISTS.value:
            return

        if operator in (QueryOperator.IN.value, QueryOperator.NIN.value):
            is_list, item_type = self._validator.get_list_item_type(field_path)
            expected_item_type = item_type if is_list else field_type
            for i, item in enumerate(value):
                try:
                    self._validator.validate_value(
                        item, expected_item_type, f"{field_path} ({operator} item {i})"
                    )
                except ValueTypeError as e:
                    raise ValueTypeError(
                        f"Invalid item in '{operator}' list for field '{field_path}'. {e}"
                    ) from e
            return

        if operator == QueryOperator.CONTAINS.value:
            is_list, item_type = self._validator.get_list_item_type(field_path)
            if is_list:
                try:
                    self._validator.validate_value(
                        value, item_type, f"{field_path} (contains value)"
                    )
                except ValueTypeError as e:
                    raise ValueTypeError(
                        f"Operator 'contains' on field '{field_path}' requires value compatible "
                        f"with item type {self._validator._get_type_name(item_type)}, "
                        f"got {type(value).__name__}. Original error: {e}"
                    ) from e
                return
            if actual_type is str:
                if not isinstance(value, str):
                    raise ValueTypeError(
                        f"Operator 'contains' on string field '{field_path}' requires a "
                        f"string value, got {type(value).__name__}"
                    )
                return

        if operator in (
            QueryOperator.LIKE.value,
            QueryOperator.STARTSWITH.value,
            QueryOperator.ENDSWITH.value,
        ) and actual_type is not str and actual_type is not Any:
            raise ValueTypeError(
                f"Operator '{operator}' requires a string field, but field '{field_path}' "
                f"has type {self._validator._get_type_name(field_type)}"
            )

        self._validator.validate_value(value, field_type, field_path)

        if operator in ("gt", "lt", "ge", "le") and not (
            self._validator._is_single_type_numeric(actual_type)
            or actual_type is str
            or get_origin(actual_type) is Union
        ):
            log.warning(
                f"Operator '{operator}' used on non-numeric, non-string field "
                f"'{field_path}' ({field_type!r})."
            )

    def sort_by(self, field: Field[Any], descending: bool = False) -> "QueryBuilder[M]":
        if not isinstance(field, Field):
            raise TypeError("sort_by requires a Field object")
        if self._validator:
            try:
                self._validator.get_field_type(field.path)
            except InvalidPathError as e:
                raise AttributeError(
                    f"Invalid sort field path: {field.path}. Error: {e}"
                ) from e
        self._pending.sort_by = field.path
        self._pending.sort_desc = descending
        return self

    @staticmethod
    def _count(kind: str, num: Any) -> int:
        if isinstance(num, bool) or not isinstance(num, int) or num < 0:
            raise ValueError(f"{kind} must be a non-negative integer.")
        return num

    def limit(self, num: int) -> "QueryBuilder[M]":
        self._pending.limit = self._count("Limit", num)
        return self

    def offset(self, num: int) -> "QueryBuilder[M]":
        self._pending.offset = self._count("Offset", num)
        return self

    def build(self) -> QueryOptions:
        """Returns a fresh QueryOptions; the builder can keep being used afterwards."""
        options = self._pending.copy()
        options.expression = to_query_expression(self._expression)
        log.debug(f"Built {options!r}")
        return options
