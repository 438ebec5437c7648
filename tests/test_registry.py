from dataclasses import dataclass
from typing import Optional

import pytest

from httprpc import (
    InvalidShapeError,
    InvalidTypeError,
    MethodDescriptor,
    ServiceRegistry,
    UnexportedTypeError,
)
from calc_service import AddRequest, AddResponse, Math


@dataclass
class _HiddenRequest:
    a: int = 0


class Mixed:
    def ok(self, req: AddRequest, res: AddResponse) -> Optional[Exception]:
        return None

    def builtin_shapes(self, req: dict, res: list) -> Exception | None:
        return None

    def _private(self, req: AddRequest, res: AddResponse) -> Exception | None:
        return None

    def one_arg(self, req: AddRequest) -> Exception | None:
        return None

    def three_args(self, req: AddRequest, res: AddResponse, extra: AddResponse) -> Exception | None:
        return None

    def keyword_only(self, req: AddRequest, *, res: AddResponse) -> Exception | None:
        return None

    def scalar_request(self, req: int, res: AddResponse) -> Exception | None:
        return None

    def generic_request(self, req: list[int], res: AddResponse) -> Exception | None:
        return None

    def private_shape(self, req: _HiddenRequest, res: AddResponse) -> Exception | None:
        return None

    def wrong_return(self, req: AddRequest, res: AddResponse) -> int:
        return 0

    def narrow_return(self, req: AddRequest, res: AddResponse) -> ValueError | None:
        return None

    def no_return_annotation(self, req: AddRequest, res: AddResponse):
        return None

    def unannotated(self, req, res) -> Exception | None:
        return None

    def broken_annotation(self, req: "AddRequest[", res: AddResponse) -> Exception | None:
        return None

    @staticmethod
    def static(req: AddRequest, res: AddResponse) -> Exception | None:
        return None

    @classmethod
    def klass(cls, req: AddRequest, res: AddResponse) -> Exception | None:
        return None

    @property
    def prop(self):
        return 1


class ScientificMath(Math):
    def power(self, req: AddRequest, res: AddResponse) -> Exception | None:
        res.x = req.a ** req.b
        return None


class _Internal:
    def ok(self, req: AddRequest, res: AddResponse) -> Exception | None:
        return None


@pytest.mark.registry
def test_register_selects_only_rpc_shaped_methods():
    registry = ServiceRegistry()
    registry.register(Mixed())
    assert registry.method_names() == ["Mixed.builtin_shapes", "Mixed.ok"]


@pytest.mark.registry
def test_unparsable_annotation_is_skipped():
    registry = ServiceRegistry()
    registry.register(Mixed())
    assert "Mixed.broken_annotation" not in registry
    assert "Mixed.ok" in registry


@pytest.mark.registry
def test_descriptor_binds_receiver_and_shapes():
    registry = ServiceRegistry()
    math = Math()
    registry.register(math)

    d = registry.lookup("Math.add")
    assert isinstance(d, MethodDescriptor)
    assert d.name == "Math.add"
    assert d.receiver is math
    assert d.request_shape is AddRequest
    assert d.response_shape is AddResponse

    res = AddResponse()
    assert d.invoke(AddRequest(a=1, b=2), res) is None
    assert res.x == 3


@pytest.mark.registry
def test_descriptor_is_immutable():
    registry = ServiceRegistry()
    registry.register(Math())
    with pytest.raises(AttributeError):
        registry.lookup("Math.add").name = "Math.sub"


@pytest.mark.registry
def test_inherited_methods_are_registered_under_subclass_name():
    registry = ServiceRegistry()
    registry.register(ScientificMath())
    assert "ScientificMath.add" in registry
    assert "ScientificMath.power" in registry
    assert "Math.add" not in registry


@pytest.mark.registry
def test_later_registration_overwrites():
    registry = ServiceRegistry()
    first, second = Math(), Math()
    registry.register(first)
    registry.register(second)
    assert registry.lookup("Math.add").receiver is second


@pytest.mark.registry
def test_anonymous_type_is_rejected():
    registry = ServiceRegistry()
    anonymous = type("", (), {})()
    with pytest.raises(InvalidTypeError):
        registry.register(anonymous)


@pytest.mark.registry
def test_unexported_type_is_rejected():
    registry = ServiceRegistry()
    registry.register(Math())
    with pytest.raises(UnexportedTypeError, match="_Internal"):
        registry.register(_Internal())
    assert "Math.add" in registry
    assert "_Internal.ok" not in registry


@pytest.mark.registry
def test_object_without_rpc_methods_registers_nothing():
    registry = ServiceRegistry()
    registry.register(object())
    assert len(registry) == 0


@pytest.mark.registry
def test_lookup_unknown_returns_none():
    assert ServiceRegistry().lookup("Math.subtract") is None


@pytest.mark.registry
def test_add_method_without_introspection():
    registry = ServiceRegistry()

    def double(req: AddRequest, res: AddResponse):
        res.x = 2 * req.a
        return None

    registry.add_method("Calc.double", AddRequest, AddResponse, double)
    d = registry.lookup("Calc.double")
    assert d.receiver is None
    res = AddResponse()
    d.invoke(AddRequest(a=4), res)
    assert res.x == 8


@pytest.mark.registry
def test_add_method_rejects_non_shapes():
    registry = ServiceRegistry()
    with pytest.raises(InvalidShapeError):
        registry.add_method("Calc.bad", int, AddResponse, lambda req, res: None)
    assert len(registry) == 0
