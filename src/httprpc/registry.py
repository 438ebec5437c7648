from __future__ import annotations

import inspect
import logging
import types
import typing
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .codec import BUILTIN_SHAPES, is_shape

logger = logging.getLogger(__name__)

Procedure = Callable[[Any, Any], Optional[Exception]]


class RegistrationError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTypeError(RegistrationError):
    """The registered object's type has no usable name."""


class UnexportedTypeError(RegistrationError):
    """The registered object's type name is private."""


class InvalidShapeError(RegistrationError):
    """A request or response shape is not a dataclass, dict or list."""


@dataclass(frozen=True)
class MethodDescriptor:
    name: str
    receiver: Any
    request_shape: type
    response_shape: type
    invoke: Procedure


def is_exported(name: str) -> bool:
    return bool(name) and not name.startswith("_")


def is_exported_or_builtin(shape: type) -> bool:
    return shape in BUILTIN_SHAPES or is_exported(shape.__name__)


def returns_error(hint: Any) -> bool:
    """True iff `hint` is exactly `Exception | None`."""
    if typing.get_origin(hint) not in (Union, types.UnionType):
        return False
    return set(typing.get_args(hint)) == {Exception, type(None)}


def _procedure_shapes(fn: Callable) -> tuple[type, type]:
    """
    Check that `fn` has the shape `(self, request, response) -> Exception | None`
    and return the request and response shapes.

    Raises ValueError with the reason when it does not.
    """
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError) as e:
        raise ValueError(f"no signature: {e}") from e

    params = list(sig.parameters.values())[1:]
    positional = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    if len(params) != 2 or any(p.kind not in positional for p in params):
        raise ValueError("expects exactly two positional parameters")

    try:
        hints = typing.get_type_hints(fn)
    except (NameError, SyntaxError, TypeError) as e:
        raise ValueError(f"unresolvable annotations: {e}") from e

    shapes = []
    for p in params:
        shape = hints.get(p.name)
        if shape is None or not is_shape(shape):
            raise ValueError(f"parameter {p.name!r} is not a dataclass, dict or list")
        if not is_exported_or_builtin(shape):
            raise ValueError(f"parameter {p.name!r} has private type {shape.__name__}")
        shapes.append(shape)

    if "return" not in hints or not returns_error(hints["return"]):
        raise ValueError("return annotation is not Exception | None")

    return shapes[0], shapes[1]


class ServiceRegistry:
    """
    Mapping from qualified method name ("Type.method") to MethodDescriptor.

    Registration is not thread safe and must be finished before serving.
    Lookups only read the mapping.
    """

    def __init__(self):
        self.methods: dict[str, MethodDescriptor] = {}

    def register(self, obj: Any) -> None:
        """
        Register every method of `obj` that has the RPC calling convention:

            def method(self, request: Shape, response: Shape) -> Exception | None

        where each Shape is a public dataclass or a builtin dict/list. Other
        methods are skipped.
        """
        cls = type(obj)
        type_name = cls.__name__
        if not type_name or not type_name.isidentifier():
            raise InvalidTypeError(f"rpc: type name not found for {obj!r}")
        if not is_exported(type_name):
            raise UnexportedTypeError(f"rpc: type name {type_name} is not exported")

        for attr in dir(cls):
            if not is_exported(attr):
                continue
            fn = inspect.getattr_static(cls, attr)
            if not inspect.isfunction(fn):
                continue
            try:
                request_shape, response_shape = _procedure_shapes(fn)
            except ValueError as e:
                logger.debug("Skipping %s.%s: %s", type_name, attr, e)
                continue

            name = f"{type_name}.{attr}"
            self.methods[name] = MethodDescriptor(
                name=name,
                receiver=obj,
                request_shape=request_shape,
                response_shape=response_shape,
                invoke=getattr(obj, attr),
            )
            logger.info("Registered %s", name)

    def add_method(
        self,
        name: str,
        request_shape: type,
        response_shape: type,
        invoke: Procedure,
        receiver: Any = None,
    ) -> None:
        """Register a single procedure under `name` without introspection."""
        for shape in (request_shape, response_shape):
            if not is_shape(shape):
                raise InvalidShapeError(f"rpc: {shape!r} is not a dataclass, dict or list")
        self.methods[name] = MethodDescriptor(
            name=name,
            receiver=receiver,
            request_shape=request_shape,
            response_shape=response_shape,
            invoke=invoke,
        )
        logger.info("Registered %s", name)

    def lookup(self, name: str) -> MethodDescriptor | None:
        return self.methods.get(name)

    def method_names(self) -> list[str]:
        return sorted(self.methods)

    def __contains__(self, name: str) -> bool:
        return name in self.methods

    def __len__(self) -> int:
        return len(self.methods)
