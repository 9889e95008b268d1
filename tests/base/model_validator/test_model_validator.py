# tests/base/model_validator/test_model_validator.py

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

import pytest
from bson import Decimal128
from pydantic import BaseModel

from generic_repository.base.exceptions import InvalidPathError, ValueTypeError
from generic_repository.base.model_validator import (ModelValidator,
                                                     model_field_types)
from tests.base.conftest import Address, Color, Product, User


@dataclass
class Point:
    x: int
    y: int = 0
    labels: List[str] = field(default_factory=list)


class Shape(BaseModel):
    name: str
    center: Optional[Point] = None
    corners: Tuple[int, int] = (0, 0)

    model_config = {"arbitrary_types_allowed": True}


class WithClassVar:
    regular: int
    shared: ClassVar[int] = 3
    _private: str


@pytest.fixture
def user_validator():
    return ModelValidator(User)


# --- model_field_types ---

def test_field_types_of_plain_class():
    types = model_field_types(Address)
    assert types == {"street": str, "city": str, "zipcode": int}


def test_field_types_skip_classvar_and_private():
    assert model_field_types(WithClassVar) == {"regular": int}


def test_field_types_of_dataclass():
    assert model_field_types(Point) == {"x": int, "y": int, "labels": List[str]}


def test_field_types_of_pydantic_model():
    types = model_field_types(Shape)
    assert types["name"] is str
    assert types["center"] == Optional[Point]


# --- get_field_type ---

@pytest.mark.parametrize(
    "path, expected",
    [
        ("name", str),
        ("email", Optional[str]),
        ("tags", List[str]),
        ("tags.0", str),
        ("addresses.3.zipcode", int),
        ("metadata.flag", bool),
        ("settings.anything", str),
        ("score", Union[int, float]),
    ],
)
def test_get_field_type(user_validator, path, expected):
    assert user_validator.get_field_type(path) == expected


def test_get_field_type_through_optional_model():
    assert ModelValidator(Shape).get_field_type("center.x") is int


def test_get_field_type_fixed_tuple():
    validator = ModelValidator(Shape)
    assert validator.get_field_type("corners.1") is int
    with pytest.raises(InvalidPathError, match="out of range"):
        validator.get_field_type("corners.2")


def test_get_field_type_unknown_field(user_validator):
    with pytest.raises(
        InvalidPathError,
        match=r"Field 'city' does not exist in type Metadata\. Path: 'metadata\.city' in model User\.",
    ):
        user_validator.get_field_type("metadata.city")


def test_get_field_type_on_primitive(user_validator):
    with pytest.raises(InvalidPathError, match="Field 'length' does not exist in type str"):
        user_validator.get_field_type("name.length")


def test_get_field_type_empty_path(user_validator):
    with pytest.raises(ValueError):
        user_validator.get_field_type("")


def test_any_propagates():
    class Loose:
        payload: Any

    assert ModelValidator(Loose).get_field_type("payload.deep.value") is Any


# --- numeric / list helpers ---

def test_list_item_type(user_validator):
    assert user_validator.get_list_item_type("tags") == (True, str)
    assert user_validator.get_list_item_type("name") == (False, Any)


@pytest.mark.parametrize(
    "path, numeric",
    [("age", True), ("balance", True), ("score", True), ("active", False), ("name", False)],
)
def test_is_field_numeric(user_validator, path, numeric):
    assert user_validator.is_field_numeric(path) is numeric


def test_decimal_is_numeric():
    assert ModelValidator(Product).is_field_numeric("price")


# --- validate_value ---

def test_validate_value_accepts_matching_types(user_validator):
    user_validator.validate_value_for_path("name", "x")
    user_validator.validate_value_for_path("balance", 3)  # int is fine for float
    user_validator.validate_value_for_path("email", None)
    user_validator.validate_value_for_path("tags", ["a", "b"])
    user_validator.validate_value_for_path("settings", {"k": "v"})


def test_validate_value_rejects_wrong_item(user_validator):
    with pytest.raises(ValueTypeError, match=r"Path 'tags\[1\]': expected type str, got 2 \(int\)\."):
        user_validator.validate_value_for_path("tags", ["a", 2])


def test_validate_value_none_for_required(user_validator):
    with pytest.raises(ValueTypeError, match="received None but expected str"):
        user_validator.validate_value_for_path("name", None)


def test_validate_value_bool_for_union_int(user_validator):
    with pytest.raises(ValueTypeError, match="bool invalid for Union"):
        user_validator.validate_value_for_path("score", True)


def test_validate_value_dict_for_nested_model(user_validator):
    user_validator.validate_value_for_path("metadata", {"key1": "a", "key2": 1, "flag": False})
    with pytest.raises(ValueTypeError, match=r"Path 'metadata\.key2'"):
        user_validator.validate_value_for_path("metadata", {"key1": "a", "key2": "one", "flag": False})


def test_validate_value_dict_missing_required_field():
    validator = ModelValidator(Shape)
    with pytest.raises(ValueTypeError, match="missing required field 'x'"):
        validator.validate_value_for_path("center", {"y": 1})


def test_validate_decimal_variants():
    validator = ModelValidator(Product)
    validator.validate_value_for_path("price", Decimal("1.10"))
    validator.validate_value_for_path("price", Decimal128("1.10"))
    validator.validate_value_for_path("price", 2)


def test_validate_enum_member_or_value():
    validator = ModelValidator(Product)
    validator.validate_value_for_path("color", Color.RED)
    validator.validate_value_for_path("color", "blue")
    with pytest.raises(ValueTypeError):
        validator.validate_value_for_path("color", "green")


def test_validator_requires_class():
    with pytest.raises(TypeError, match="model_type must be a class"):
        ModelValidator("User")


def test_dict_value_type_checked():
    validator = ModelValidator(Product)
    validator.validate_value_for_path("dimensions", {"width": 1.5, "depth": 2})
    with pytest.raises(ValueTypeError):
        validator.validate_value_for_path("dimensions", {"width": "wide"})


def test_validate_against_plain_dict_annotation():
    class Bag:
        content: Dict[str, Any]

    ModelValidator(Bag).validate_value_for_path("content", {"a": object()})
