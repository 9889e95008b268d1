"""
Translation of typed predicates, selectors and update builders to MongoDB documents.

Every public function here is pure. Native MongoDB dictionaries are always
accepted and passed through unchanged, so callers can drop down to the raw
query language whenever the typed forms are not expressive enough.
"""

import logging
import re
from dataclasses import dataclass
from typing import (Any, Callable, Dict, List, Mapping, Optional, Sequence,
                    Tuple, Type, Union)

from pymongo import ASCENDING, DESCENDING

from generic_repository.base.query import (Expression, Field, QueryExpression,
                                           QueryFilter, QueryLogical,
                                           QueryOperator, QueryOptions,
                                           fields_for, to_query_expression)
from generic_repository.base.update import (AddToSetOperation,
                                            IncrementOperation, MaxOperation,
                                            MinOperation, MultiplyOperation,
                                            PopOperation, PullOperation,
                                            PushOperation, SetOperation,
                                            UnsetOperation, Update)
from generic_repository.base.utils import prepare_for_storage

log = logging.getLogger(__name__)

APP_ID_FIELD = "id"
DB_ID_FIELD = "_id"

Selector = Union[str, Field, Callable[[Any], Field]]
Filter = Union[
    None,
    Expression,
    QueryExpression,
    QueryOptions,
    Mapping[str, Any],
    Callable[[Any], Expression],
]
UpdateSpec = Union[Update, Mapping[str, Any]]
SortSpec = Union[Sequence[Tuple[str, int]], Mapping[str, int]]


def _map_id(path: str) -> str:
    if path == APP_ID_FIELD:
        return DB_ID_FIELD
    if path.startswith(APP_ID_FIELD + "."):
        return DB_ID_FIELD + path[len(APP_ID_FIELD):]
    return path


def field_path(selector: Selector, document_type: Optional[Type] = None) -> str:
    """
    Resolves a selector to a MongoDB dotted path.

    ``"nested.value"``, ``fields.nested.value`` and ``lambda d: d.nested.value``
    all resolve to ``"nested.value"``. The document id maps to ``_id``.
    """
    if isinstance(selector, str):
        path = selector
    elif isinstance(selector, Field):
        path = selector.path
    elif callable(selector):
        selected = selector(fields_for(document_type))
        if not isinstance(selected, Field):
            raise TypeError(
                f"Selector must return a Field, got {type(selected).__name__}"
            )
        path = selected.path
    else:
        raise TypeError(
            f"Selector must be a str, Field or callable, got {type(selector).__name__}"
        )
    if not path:
        raise ValueError("Selector resolved to an empty field path.")
    return _map_id(path)


# --- Filters ---
def to_native_filter(filter: Filter, document_type: Optional[Type] = None) -> Dict[str, Any]:
    """
    Translates any accepted filter form to a MongoDB filter document.

    ``None`` matches every document. Native dictionaries are returned as a
    shallow copy, untouched otherwise.
    """
    if filter is None:
        return {}
    if isinstance(filter, Mapping):
        return dict(filter)
    if isinstance(filter, QueryOptions):
        return _translate_expression(filter.expression) if filter.expression else {}
    if isinstance(filter, QueryExpression):
        return _translate_expression(filter)
    if isinstance(filter, Expression):
        return _translate_expression(to_query_expression(filter))
    if callable(filter):
        expression = filter(fields_for(document_type))
        if not isinstance(expression, Expression):
            raise TypeError(
                f"Filter callable must return an Expression, got {type(expression).__name__}"
            )
        return _translate_expression(to_query_expression(expression))
    raise TypeError(f"Unsupported filter type: {type(filter).__name__}")


_MONGO_OPERATORS = {
    QueryOperator.NE: "$ne",
    QueryOperator.GT: "$gt",
    QueryOperator.GTE: "$gte",
    QueryOperator.LT: "$lt",
    QueryOperator.LTE: "$lte",
    QueryOperator.IN: "$in",
    QueryOperator.NIN: "$nin",
}


_LIKE_WILDCARDS = {"%": ".*", "_": "."}


def _like_regex(pattern: str) -> str:
    """SQL LIKE to an anchored regex: ``%`` is any run of characters, ``_`` exactly one."""
    body = "".join(_LIKE_WILDCARDS.get(ch) or re.escape(ch) for ch in pattern)
    return f"^{body}$"


def _translate_expression(expression: Optional[QueryExpression]) -> Dict[str, Any]:
    if expression is None:
        return {}
    if isinstance(expression, QueryFilter):
        path = _map_id(expression.field_path)
        op = expression.operator
        val = expression.value
        if op == QueryOperator.EQ:
            return {path: val}
        if op == QueryOperator.CONTAINS:
            if isinstance(val, str):
                return {path: {"$regex": re.escape(val), "$options": "i"}}
            # Array membership
            return {path: val}
        if op == QueryOperator.LIKE:
            return {path: {"$regex": _like_regex(str(val)), "$options": "i"}}
        if op == QueryOperator.STARTSWITH:
            return {path: {"$regex": f"^{re.escape(str(val))}"}}
        if op == QueryOperator.ENDSWITH:
            return {path: {"$regex": f"{re.escape(str(val))}$"}}
        if op == QueryOperator.EXISTS:
            if val:
                return {path: {"$exists": True, "$ne": None}}
            return {path: {"$eq": None}}
        mongo_op = _MONGO_OPERATORS.get(op)
        if mongo_op is None:
            raise ValueError(f"Unsupported query operator for MongoDB: {op!r}")
        if op in (QueryOperator.IN, QueryOperator.NIN) and not isinstance(val, list):
            if isinstance(val, (tuple, set)):
                val = list(val)
            else:
                raise TypeError(f"Value for MongoDB {mongo_op} must be a list.")
        return {path: {mongo_op: val}}

    if isinstance(expression, QueryLogical):
        translated = [_translate_expression(cond) for cond in expression.conditions]
        filtered = [cond for cond in translated if cond]
        if not filtered:
            return {}
        if len(filtered) == 1:
            return filtered[0]
        return {"$and" if expression.operator == "and" else "$or": filtered}

    raise TypeError(f"Unknown QueryExpression type: {type(expression)}")


# --- Updates ---
def to_native_update(update: UpdateSpec, document_type: Optional[Type] = None) -> Dict[str, Any]:
    """Translates an Update builder (or passes a native update document through)."""
    if isinstance(update, Mapping):
        if not update:
            raise ValueError("Update document must not be empty.")
        return dict(update)
    if not isinstance(update, Update):
        raise TypeError(f"Unsupported update type: {type(update).__name__}")
    if not update:
        raise ValueError("Update must contain at least one operation.")

    native: Dict[str, Dict[str, Any]] = {}
    for op in update.build():
        path = _map_id(op.field_path)
        if isinstance(op, SetOperation):
            native.setdefault("$set", {})[path] = op.value
        elif isinstance(op, UnsetOperation):
            native.setdefault("$unset", {})[path] = ""
        elif isinstance(op, IncrementOperation):
            native.setdefault("$inc", {})[path] = op.amount
        elif isinstance(op, MultiplyOperation):
            native.setdefault("$mul", {})[path] = op.factor
        elif isinstance(op, MinOperation):
            native.setdefault("$min", {})[path] = op.value
        elif isinstance(op, MaxOperation):
            native.setdefault("$max", {})[path] = op.value
        elif isinstance(op, PushOperation):
            native.setdefault("$push", {})[path] = {"$each": op.items}
        elif isinstance(op, AddToSetOperation):
            native.setdefault("$addToSet", {})[path] = {"$each": op.items}
        elif isinstance(op, PopOperation):
            native.setdefault("$pop", {})[path] = op.position
        elif isinstance(op, PullOperation):
            native.setdefault("$pull", {})[path] = op.value_or_condition
        else:
            raise TypeError(f"Unsupported UpdateOperation type: {type(op)}")
    return native


def set_field_update(
    selector: Selector, value: Any, document_type: Optional[Type] = None
) -> Dict[str, Any]:
    """``{"$set": {path: value}}`` for a single field."""
    return {"$set": {field_path(selector, document_type): prepare_for_storage(value)}}


# --- Sorting ---
def to_native_sort(
    sort: Union[Selector, SortSpec, None],
    ascending: bool = True,
    document_type: Optional[Type] = None,
) -> Optional[List[Tuple[str, int]]]:
    """
    Translates a sort selector (with direction) or a native sort specification.

    Native specifications are ``[("field", 1), ...]`` lists or ``{"field": -1}``
    mappings and keep their own directions.
    """
    if sort is None:
        return None
    if isinstance(sort, Mapping):
        return [(key, direction) for key, direction in sort.items()]
    if isinstance(sort, (list, tuple)) and not isinstance(sort, str):
        return [(key, direction) for key, direction in sort]
    return [(field_path(sort, document_type), ASCENDING if ascending else DESCENDING)]


def query_options_sort(options: QueryOptions) -> Optional[List[Tuple[str, int]]]:
    if not options.sort_by:
        return None
    return [(_map_id(options.sort_by), DESCENDING if options.sort_desc else ASCENDING)]


# --- Projections and grouping ---
def to_native_projection(
    projection: Mapping[str, Any], document_type: Optional[Type] = None
) -> Dict[str, Any]:
    """
    Builds a ``$project`` stage body from ``{result_field: selector}``.

    Values that are not selectors (numbers, booleans, dicts with operators)
    are native projection values and pass through. ``_id`` is excluded unless
    the projection names it.
    """
    if not projection:
        raise ValueError("Projection must name at least one field.")
    native: Dict[str, Any] = {}
    for name, source in projection.items():
        if isinstance(source, str) and source.startswith("$"):
            native[name] = source
        elif isinstance(source, (str, Field)) or callable(source):
            native[name] = f"${field_path(source, document_type)}"
        else:
            native[name] = source
    native.setdefault(DB_ID_FIELD, 0)
    return native


class GroupKey:
    """Projection marker for the group key of a ``group_by``."""

    def __repr__(self) -> str:
        return "GroupKey()"


@dataclass(frozen=True)
class Accumulator:
    """A ``$group`` accumulator over a selected field."""

    operator: str
    selector: Any = None

    def to_native(self, document_type: Optional[Type] = None) -> Dict[str, Any]:
        if self.selector is None:
            return {self.operator: 1}
        return {self.operator: f"${field_path(self.selector, document_type)}"}


def count_of() -> Accumulator:
    return Accumulator("$sum")


def sum_of(selector: Selector) -> Accumulator:
    return Accumulator("$sum", selector)


def avg_of(selector: Selector) -> Accumulator:
    return Accumulator("$avg", selector)


def min_of(selector: Selector) -> Accumulator:
    return Accumulator("$min", selector)


def max_of(selector: Selector) -> Accumulator:
    return Accumulator("$max", selector)


def first_of(selector: Selector) -> Accumulator:
    return Accumulator("$first", selector)


def last_of(selector: Selector) -> Accumulator:
    return Accumulator("$last", selector)


def push_of(selector: Selector) -> Accumulator:
    return Accumulator("$push", selector)


def to_group_pipeline(
    key_selector: Union[Selector, Mapping[str, Selector]],
    projection: Mapping[str, Any],
    filter: Filter = None,
    document_type: Optional[Type] = None,
) -> List[Dict[str, Any]]:
    """
    Builds a ``$match`` / ``$group`` / ``$project`` pipeline.

    ``projection`` maps result fields to a :class:`GroupKey` marker, an
    :class:`Accumulator` or a native accumulator document such as
    ``{"$sum": "$value"}``. A mapping key selector groups on several fields.
    """
    if not projection:
        raise ValueError("Group projection must name at least one field.")
    if isinstance(key_selector, Mapping):
        group_id: Any = {
            name: f"${field_path(selector, document_type)}"
            for name, selector in key_selector.items()
        }
    else:
        group_id = f"${field_path(key_selector, document_type)}"

    group_stage: Dict[str, Any] = {DB_ID_FIELD: group_id}
    project_stage: Dict[str, Any] = {DB_ID_FIELD: 0}
    for name, value in projection.items():
        if isinstance(value, GroupKey) or value is GroupKey:
            project_stage[name] = f"${DB_ID_FIELD}"
            continue
        if isinstance(value, Accumulator):
            group_stage[name] = value.to_native(document_type)
        elif isinstance(value, Mapping):
            group_stage[name] = dict(value)
        else:
            raise TypeError(
                f"Group projection value for '{name}' must be GroupKey, an Accumulator "
                f"or a native accumulator, got {type(value).__name__}"
            )
        project_stage[name] = f"${name}"

    pipeline: List[Dict[str, Any]] = []
    native_filter = to_native_filter(filter, document_type)
    if native_filter:
        pipeline.append({"$match": native_filter})
    pipeline.append({"$group": group_stage})
    pipeline.append({"$project": project_stage})
    log.debug(f"Translated group pipeline: {pipeline}")
    return pipeline
