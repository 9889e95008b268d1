# tests/base/update/test_update_arrays.py

import pytest

from generic_repository.base.exceptions import InvalidPathError, ValueTypeError
from generic_repository.base.update import (AddToSetOperation, PopOperation,
                                            PullOperation, PushOperation,
                                            Update)
from tests.base.conftest import User, assert_operation_present


def test_push_item():
    update = Update(User)
    update.push(update.fields.tags, "new")
    assert_operation_present(update.build(), PushOperation, "tags", {"items": ["new"]})


def test_push_object_is_serialized():
    update = Update(User).push("addresses", {"street": "Main", "city": "Rome", "zipcode": 1})
    op = update.build()[0]
    assert op.items == [{"street": "Main", "city": "Rome", "zipcode": 1}]


def test_push_wrong_item_type_raises():
    with pytest.raises(ValueTypeError, match="Invalid value type for push to 'tags'"):
        Update(User).push("tags", 5)


def test_push_to_non_list_raises():
    with pytest.raises(InvalidPathError, match="Cannot push to field 'name'"):
        Update(User).push("name", "x")


def test_add_to_set():
    update = Update(User).add_to_set("tags", "unique")
    assert_operation_present(update.build(), AddToSetOperation, "tags", {"items": ["unique"]})


def test_add_to_set_wrong_type_raises():
    with pytest.raises(ValueTypeError):
        Update(User).add_to_set("tags", 1)


@pytest.mark.parametrize("position", [1, -1])
def test_pop(position):
    update = Update(User).pop("tags", position)
    assert_operation_present(update.build(), PopOperation, "tags", {"position": position})


def test_pop_invalid_position_raises():
    with pytest.raises(ValueError, match="Position for pop must be 1"):
        Update(User).pop("tags", 2)


def test_pop_non_list_raises():
    with pytest.raises(InvalidPathError):
        Update(User).pop("age")


def test_pull_value():
    update = Update(User).pull("tags", "old")
    assert_operation_present(update.build(), PullOperation, "tags", {"value_or_condition": "old"})


def test_pull_operator_condition_is_kept_raw():
    condition = {"$in": ["a", "b"]}
    update = Update(User).pull("tags", condition)
    assert_operation_present(update.build(), PullOperation, "tags", {"value_or_condition": condition})


def test_pull_wrong_value_type_raises():
    with pytest.raises(ValueTypeError, match="Invalid value type for pull from 'tags'"):
        Update(User).pull("tags", 3)


def test_push_inside_dict_field_skips_validation():
    update = Update(User).push("settings.history", 1)
    assert_operation_present(update.build(), PushOperation, "settings.history", {"items": [1]})

