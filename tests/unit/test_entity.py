# pylint: disable=protected-access
from dataclasses import dataclass

import pytest

from fastuow import Entity, FastUoWError, Identity, identity_of
from tests.app.domain.models import Campaign, Customer


def test_identity():
    customer = Customer(1, "acme", "Alice")

    assert customer.identity == Identity(Customer, (1, "acme"))
    assert customer.identity == identity_of(Customer, 1, "acme")
    assert repr(customer.identity) == "Customer(1, 'acme')"
    assert customer.identity != Campaign(1, "acme", "Alice").identity


def test_field_names_exclude_identity():
    assert Customer.field_names() == ("name", "email", "credits")
    assert Campaign.field_names() == ("title", "budget", "sent")


def test_default_identity_field():
    @dataclass
    class Note(Entity):
        id: int
        text: str

    note = Note(1, "hello")
    assert note.identity.key == (1,)
    assert note.get_fields() == {"text": "hello"}


def test_from_record_ignores_unknown_columns():
    customer = Customer.from_record(
        (1, "acme"), {"name": "Alice", "credits": 3, "legacy_column": "x"}
    )

    assert customer == Customer(1, "acme", "Alice", credits=3)


def test_modified_fields():
    customer = Customer(1, "acme", "Alice")
    assert customer.modified_fields() == {"name", "email", "credits"}

    customer._snapshot = customer.get_fields()
    assert customer.modified_fields() == set()

    customer.name = "Bob"
    customer.add_credits(1)
    assert customer.modified_fields() == {"name", "credits"}


def test_identity_cannot_change():
    customer = Customer(1, "acme", "Alice")

    with pytest.raises(FastUoWError):
        customer.id = 2

    assert customer.id == 1


def test_identity_of_checks_arity():
    with pytest.raises(FastUoWError, match="requires 2 values"):
        identity_of(Customer, 1, "acme", "extra")
