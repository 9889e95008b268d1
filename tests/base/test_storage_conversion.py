# tests/base/test_storage_conversion.py

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from bson import Decimal128, ObjectId

from generic_repository.base.utils import (build_model, prepare_for_storage,
                                           restore_from_storage)
from tests.base.conftest import Color
from tests.models import Address, Person, Sale


@dataclass
class Size:
    width: int
    height: int = 1


class Plain:
    label: str
    count: int

    def __init__(self, label, count=0):
        self.label = label
        self.count = count


def test_prepare_pydantic_model():
    person = Person(id=1, name="Ann", address=Address(city="Oslo"))
    stored = prepare_for_storage(person)
    assert stored["id"] == 1
    assert stored["address"] == {"city": "Oslo", "zip_code": ""}


def test_prepare_converts_decimal_and_enum():
    stored = prepare_for_storage({"price": Decimal("1.5"), "color": Color.BLUE})
    assert stored["price"] == Decimal128("1.5")
    assert stored["color"] == "blue"


def test_prepare_keeps_native_bson_types():
    value_id = uuid.uuid4()
    object_id = ObjectId()
    moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
    stored = prepare_for_storage({"a": value_id, "b": object_id, "c": moment})
    assert stored == {"a": value_id, "b": object_id, "c": moment}


def test_prepare_collections():
    assert prepare_for_storage((1, 2)) == [1, 2]
    assert sorted(prepare_for_storage({3, 4})) == [3, 4]
    assert prepare_for_storage([Size(2)]) == [{"width": 2, "height": 1}]


def test_restore_decimal_and_naive_datetime():
    restored = restore_from_storage(
        {"price": Decimal128("2.25"), "at": datetime(2024, 5, 1, 12, 0), "items": [Decimal128("1")]}
    )
    assert restored["price"] == Decimal("2.25")
    assert restored["at"].tzinfo is timezone.utc
    assert restored["items"] == [Decimal("1")]


def test_build_pydantic_model():
    sale = build_model(Sale, {"id": 3, "partition_key": "eu", "price": Decimal("9.5")})
    assert isinstance(sale, Sale)
    assert sale.price == Decimal("9.5")


def test_build_dataclass_ignores_unknown_keys():
    size = build_model(Size, {"width": 4, "height": 2, "_id": "x"})
    assert size == Size(4, 2)


def test_build_plain_class():
    plain = build_model(Plain, {"label": "a", "count": 2, "extra": True})
    assert (plain.label, plain.count) == ("a", 2)


def test_build_plain_class_missing_argument_raises():
    with pytest.raises(TypeError):
        build_model(Plain, {"count": 2})
