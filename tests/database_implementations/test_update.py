# tests/database_implementations/test_update.py

import pytest

from generic_repository.base.update import Update
from tests.models import Address, Person, Sale, TenantNote


def test_replace_document(repository_factory):
    repo = repository_factory(Person)
    person = Person(name="Ann", age=1)
    repo.add_one(person)

    person.age = 2
    assert repo.update_one(person) is True
    assert repo.get_by_id(person.id).age == 2


def test_replace_with_identical_content_reports_no_change(repository_factory):
    repo = repository_factory(Person)
    person = Person(name="same")
    repo.add_one(person)
    assert repo.update_one(repo.get_by_id(person.id)) is False


def test_replace_in_document_partition(repository_factory):
    repo = repository_factory(Sale)
    sale = Sale(partition_key="eu", amount=1)
    repo.add_one(sale)
    sale.amount = 5
    assert repo.update_one(sale) is True
    assert repo.get_by_id(sale.id, partition_key="eu").amount == 5


def test_update_builder_on_filter(repository_factory):
    repo = repository_factory(Person)
    person = Person(name="Ann", age=30, tags=["a"])
    repo.add_one(person)

    update = Update(Person).increment("age", 2).push("tags", "b")
    assert repo.update_one(lambda p: p.name == "Ann", update) is True

    stored = repo.get_by_id(person.id)
    assert stored.age == 32
    assert stored.tags == ["a", "b"]


def test_update_single_field(repository_factory):
    repo = repository_factory(Person)
    person = Person(name="Ann")
    repo.add_one(person)

    assert repo.update_one(person, lambda p: p.address, Address(city="Rome")) is True
    assert repo.get_by_id(person.id).address.city == "Rome"


def test_update_no_match(repository_factory):
    repo = repository_factory(Person)
    assert repo.update_one(lambda p: p.name == "nobody", {"$set": {"age": 1}}) is False


def test_update_many_counts_only_changed_documents(repository_factory):
    repo = repository_factory(Person)
    repo.add_many([Person(age=1), Person(age=1), Person(age=9)])

    assert repo.update_many({}, "age", 9) == 2
    assert repo.count(lambda p: p.age == 9) == 3


def test_update_many_in_partition(repository_factory):
    repo = repository_factory(TenantNote)
    repo.add_many([TenantNote(partition_key="t1", text="a"), TenantNote(partition_key="t2", text="a")])

    changed = repo.update_many(lambda n: n.text == "a", Update().set("text", "b"), partition_key="t1")

    assert changed == 1
    assert repo.count(lambda n: n.text == "a", partition_key="t2") == 1


def test_update_nested_dict_key(repository_factory):
    repo = repository_factory(TenantNote)
    note = TenantNote(partition_key="t", counters={"views": 1})
    repo.add_one(note)
    repo.update_one(note, Update(TenantNote).increment("counters.views", 4))
    assert repo.get_by_id(note.id, partition_key="t").counters == {"views": 5}


def test_get_and_update_one(repository_factory):
    repo = repository_factory(Person)
    repo.add_one(Person(id=1, name="counter", age=0))

    before = repo.get_and_update_one({"_id": 1}, Update().increment("age"), return_updated=False)
    after = repo.get_and_update_one({"_id": 1}, Update().increment("age"))

    assert before.age == 0
    assert after.age == 2
    assert repo.get_and_update_one({"_id": 2}, Update().increment("age")) is None


def test_update_requires_filter(repository_factory):
    repo = repository_factory(Person)
    with pytest.raises(ValueError):
        repo.update_many(None, {"$set": {"age": 1}})
