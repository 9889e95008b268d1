# tests/base/conftest.py

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import pytest

from generic_repository.base.query import (_PROXY_CACHE, QueryExpression,
                                           QueryLogical, QueryOperator)
from generic_repository.base.update import UpdateOperation


# Define test model classes
class Address:
    street: str
    city: str
    zipcode: int

    def __init__(self, street="", city="", zipcode=12345):
        self.street = street
        self.city = city
        self.zipcode = zipcode


class Metadata:
    key1: str
    key2: int
    flag: bool

    def __init__(self, key1="", key2=0, flag=False):
        self.key1 = key1
        self.key2 = key2
        self.flag = flag


class User:
    name: str
    age: int
    email: Optional[str]
    active: bool
    tags: List[str]
    addresses: List[Address]
    metadata: Metadata
    points: int
    balance: float
    score: Union[int, float]
    settings: Dict[str, str]

    def __init__(
        self,
        name="",
        age=0,
        email=None,
        active=True,
        tags=None,
        addresses=None,
        metadata=None,
        points=0,
        balance=0.0,
        score=0,
        settings=None,
    ):
        self.name = name
        self.age = age
        self.email = email
        self.active = active
        self.tags = tags or []
        self.addresses = addresses or []
        self.metadata = metadata or Metadata()
        self.points = points
        self.balance = balance
        self.score = score
        self.settings = settings or {}


class Color(Enum):
    RED = "red"
    BLUE = "blue"


class Product:
    title: str
    price: Decimal
    color: Color
    ratings: List[int]
    dimensions: Dict[str, float]

    def __init__(self, title="", price=Decimal("0"), color=Color.RED, ratings=None, dimensions=None):
        self.title = title
        self.price = price
        self.color = color
        self.ratings = ratings or []
        self.dimensions = dimensions or {}


@pytest.fixture(autouse=True)
def clear_proxy_cache():
    _PROXY_CACHE.clear()
    yield
    _PROXY_CACHE.clear()


# --- Helper Functions ---
OpT = TypeVar("OpT", bound=UpdateOperation)


def find_operation(
    operations: List[UpdateOperation], op_type: Type[OpT], field_path: str
) -> Optional[OpT]:
    """Finds the first operation of a specific type and field path."""
    for op in operations:
        if isinstance(op, op_type) and op.field_path == field_path:
            return op
    return None


def assert_operation_present(
    operations: List[UpdateOperation],
    op_type: Type[OpT],
    field_path: str,
    expected_attrs: Optional[dict] = None,
):
    """Asserts that a specific operation exists and optionally checks its attributes."""
    op = find_operation(operations, op_type, field_path)
    assert op is not None, f"{op_type.__name__} for field '{field_path}' not found in {operations}"
    for attr, expected_value in (expected_attrs or {}).items():
        actual_value = getattr(op, attr)
        assert actual_value == expected_value, (
            f"Attribute '{attr}' mismatch for {op!r}. "
            f"Expected: {expected_value}, Got: {actual_value}"
        )


ExprT = TypeVar("ExprT", bound=QueryExpression)


def find_expression(
    expression: Optional[QueryExpression],
    op_type: Type[ExprT],
    field_path: Optional[str] = None,
    operator: Optional[QueryOperator] = None,
) -> List[ExprT]:
    found: List[ExprT] = []
    if expression is None:
        return found
    if isinstance(expression, op_type):
        match_field = field_path is None or getattr(expression, "field_path", None) == field_path
        match_op = operator is None or getattr(expression, "operator", None) == operator
        if match_field and match_op:
            found.append(expression)
    if isinstance(expression, QueryLogical):
        for condition in expression.conditions:
            found.extend(find_expression(condition, op_type, field_path, operator))
    return found


def assert_expression_present(
    expression: Optional[QueryExpression],
    op_type: Type[ExprT],
    field_path: Optional[str] = None,
    operator: Optional[QueryOperator] = None,
    expected_value: Any = ...,
):
    matches = find_expression(expression, op_type, field_path, operator)
    assert matches, f"No {op_type.__name__} for '{field_path}' ({operator}) in {expression!r}"
    if expected_value is not ...:
        assert any(getattr(m, "value", ...) == expected_value for m in matches), (
            f"No match with value {expected_value!r} among {matches!r}"
        )
