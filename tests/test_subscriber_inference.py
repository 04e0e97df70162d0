import numbers
from typing import Any, List, TypeVar

import pytest

from blackboard.core.errors import AmbiguousSubscriberType
from blackboard.core.subscriber import (
    CollectingSubscriber,
    FunctionSubscriber,
    Subscriber,
    as_subscriber,
    interest_type_of,
)

T = TypeVar("T")


class Order:
    pass


class OrderAudit(Subscriber[Order]):
    def receive(self, value):
        pass


class SpecialAudit(OrderAudit):
    pass


class Relay(Subscriber[T]):
    def receive(self, value):
        pass


class FloatRelay(Relay[float]):
    pass


class DuckTyped:
    def receive(self, value: bytes) -> None:
        pass


class AnyAudit(Subscriber[Any]):
    def receive(self, value):
        pass


class ListAudit(Subscriber[List[int]]):
    def receive(self, value):
        pass


class Raw(Subscriber):
    def receive(self, value):
        pass


def on_number(value: numbers.Number) -> None:
    pass


def on_forward(value: "NotDefinedAnywhere") -> None:  # noqa: F821
    pass


class Handler:
    def on_order(self, value: Order) -> None:
        pass


def test_parameterized_base():
    assert interest_type_of(OrderAudit()) is Order


def test_inherited_parameterization():
    assert interest_type_of(SpecialAudit()) is Order


def test_generic_intermediate_class():
    assert interest_type_of(FloatRelay()) is float


def test_parameterized_instance():
    assert interest_type_of(CollectingSubscriber[str]()) is str


def test_receive_annotation():
    assert interest_type_of(DuckTyped()) is bytes


def test_annotated_function_and_method():
    assert interest_type_of(as_subscriber(on_number)) is numbers.Number
    assert interest_type_of(as_subscriber(Handler().on_order)) is Order


@pytest.mark.parametrize("sub", [
    Raw(),
    AnyAudit(),
    ListAudit(),
    CollectingSubscriber(),
    Relay(),
    FunctionSubscriber(lambda v: None),
    FunctionSubscriber(on_forward),
])
def test_ambiguous(sub):
    with pytest.raises(AmbiguousSubscriberType) as ei:
        interest_type_of(sub)
    assert ei.value.subscriber is sub
    assert "explicit" in str(ei.value)


def test_as_subscriber():
    audit = OrderAudit()
    assert as_subscriber(audit) is audit
    wrapped = as_subscriber(on_number)
    assert isinstance(wrapped, FunctionSubscriber) and wrapped.fn is on_number
    with pytest.raises(TypeError):
        as_subscriber(42)


def test_collecting_subscriber_wait_for():
    sub = CollectingSubscriber()
    sub.receive(1)
    assert sub.wait_for(1, timeout=0.1)
    assert not sub.wait_for(2, timeout=0.05)
