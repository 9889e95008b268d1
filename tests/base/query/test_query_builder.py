# tests/base/query/test_query_builder.py

import pytest

from generic_repository.base.query import (CombinedCondition, Field,
                                           FilterCondition, GenericFieldsProxy,
                                           QueryBuilder, QueryFilter,
                                           QueryLogical, QueryOperator,
                                           QueryOptions, fields_for,
                                           to_query_expression)
from tests.base.conftest import User, assert_expression_present


@pytest.fixture
def qb() -> QueryBuilder[User]:
    return QueryBuilder(User)


# --- Fields ---

def test_fields_proxy_exposes_model_fields(qb):
    assert isinstance(qb.fields.name, Field)
    assert qb.fields.name.path == "name"
    assert qb.fields.metadata.key1.path == "metadata.key1"
    assert qb.fields.addresses[0].city.path == "addresses.0.city"


def test_field_negative_index_raises(qb):
    with pytest.raises(IndexError):
        qb.fields.tags[-1]


def test_field_cannot_be_assigned(qb):
    with pytest.raises(AttributeError):
        qb.fields.name.other = 1


def test_fields_for_without_model_is_generic():
    assert isinstance(fields_for(None), GenericFieldsProxy)
    assert fields_for(None).anything.nested.path == "anything.nested"


@pytest.mark.parametrize(
    "build, operator",
    [
        (lambda f: f.age == 1, "eq"),
        (lambda f: f.age != 1, "ne"),
        (lambda f: f.age > 1, "gt"),
        (lambda f: f.age >= 1, "ge"),
        (lambda f: f.age < 1, "lt"),
        (lambda f: f.age <= 1, "le"),
    ],
)
def test_comparison_operators(qb, build, operator):
    condition = build(qb.fields)
    assert isinstance(condition, FilterCondition)
    assert condition.field_path == "age"
    assert condition.operator == operator


def test_string_operators_require_strings(qb):
    with pytest.raises(TypeError, match="Operator 'like' requires a string value"):
        qb.fields.name.like(1)
    with pytest.raises(TypeError, match="Operator 'startswith' requires a string value"):
        qb.fields.name.startswith(True)


def test_in_requires_collection(qb):
    with pytest.raises(TypeError, match="requires a list/set/tuple"):
        qb.fields.age.in_(3)


def test_in_tuple_becomes_list(qb):
    condition = qb.fields.age.in_((1, 2))
    assert condition.value == [1, 2]


def test_combining_requires_expressions(qb):
    with pytest.raises(TypeError):
        CombinedCondition("and", qb.fields.age == 1, "not an expression")


# --- Builder ---

def test_build_single_filter(qb):
    options = qb.filter(qb.fields.name == "Ann").build()
    assert isinstance(options, QueryOptions)
    assert options.expression == QueryFilter("name", QueryOperator.EQ, "Ann")


def test_multiple_filters_are_anded_and_flattened(qb):
    options = (
        qb.filter(qb.fields.age > 18)
        .filter(qb.fields.active == True)  # noqa: E712
        .filter(qb.fields.name.startswith("A"))
        .build()
    )
    assert isinstance(options.expression, QueryLogical)
    assert options.expression.operator == "and"
    assert len(options.expression.conditions) == 3
    assert_expression_present(options.expression, QueryFilter, "age", QueryOperator.GT, 18)


def test_or_expression(qb):
    options = qb.filter((qb.fields.age < 10) | (qb.fields.age > 60)).build()
    assert options.expression.operator == "or"
    assert_expression_present(options.expression, QueryFilter, "age", QueryOperator.LT, 10)
    assert_expression_present(options.expression, QueryFilter, "age", QueryOperator.GT, 60)


def test_filter_invalid_value_type_raises(qb):
    with pytest.raises(ValueError, match=r"Invalid filter expression: Path 'age': expected type int, got 'twenty' \(str\)\."):
        qb.filter(qb.fields.age == "twenty")


def test_filter_invalid_path_raises(qb):
    with pytest.raises(ValueError, match="Invalid filter expression: Field 'nickname' does not exist"):
        qb.filter(Field("nickname") == "x")


def test_filter_contains_on_list_checks_item_type(qb):
    with pytest.raises(ValueError, match="Operator 'contains' on field 'tags'"):
        qb.filter(qb.fields.tags.contains(5))


def test_filter_in_checks_items(qb):
    with pytest.raises(ValueError, match=r"Invalid item in 'in' list for field 'age'"):
        qb.filter(qb.fields.age.in_([1, "2"]))


def test_filter_like_on_non_string_field_raises(qb):
    with pytest.raises(ValueError, match="requires a string field"):
        qb.filter(Field("age").like("1%"))


def test_filter_exists_skips_value_validation(qb):
    options = qb.filter(qb.fields.email.exists()).build()
    assert options.expression == QueryFilter("email", QueryOperator.EXISTS, True)


def test_filter_requires_expression(qb):
    with pytest.raises(TypeError, match="filter\\(\\) requires an Expression"):
        qb.filter({"name": "x"})


def test_sort_limit_offset(qb):
    options = qb.sort_by(qb.fields.age, descending=True).limit(10).offset(20).build()
    assert options.sort_by == "age"
    assert options.sort_desc is True
    assert options.limit == 10
    assert options.offset == 20


def test_sort_by_unknown_field_raises(qb):
    with pytest.raises(AttributeError, match="Invalid sort field path"):
        qb.sort_by(Field("unknown"))


@pytest.mark.parametrize("value", [-1, "5"])
def test_limit_rejects_invalid_values(qb, value):
    with pytest.raises(ValueError):
        qb.limit(value)


def test_default_options_have_no_limit():
    options = QueryBuilder().build()
    assert options.expression is None
    assert options.limit is None
    assert options.offset == 0


def test_to_query_expression_nested_mixed():
    f = fields_for(None)
    expression = to_query_expression((f.a == 1) & ((f.b == 2) | (f.c == 3)))
    assert expression.operator == "and"
    assert expression.conditions[0] == QueryFilter("a", QueryOperator.EQ, 1)
    assert isinstance(expression.conditions[1], QueryLogical)
    assert expression.conditions[1].operator == "or"
