from __future__ import annotations

import json
import types
import typing
from dataclasses import MISSING, dataclass, fields, is_dataclass
from typing import Any, Self, Union

MAX_SEQ = 2**64

BUILTIN_SHAPES = (dict, list)


class CodecError(ValueError):
    pass


# -------------------------------------------------------------------------
# Envelopes
# -------------------------------------------------------------------------

def _parse_seq(data: dict) -> int:
    seq = data.get("Seq", 0)
    if seq is None:
        return 0
    if isinstance(seq, bool) or not isinstance(seq, int) or not 0 <= seq < MAX_SEQ:
        raise CodecError(f"invalid Seq: {seq!r}")
    return seq


def _parse_service_method(data: dict) -> str:
    method = data.get("ServiceMethod", "")
    if not isinstance(method, str):
        raise CodecError(f"invalid ServiceMethod: {method!r}")
    return method


@dataclass
class Request:
    service_method: str
    body: Any = None  # untyped JSON value, decoded once the shape is known
    seq: int = 0

    def to_json(self) -> dict:
        return {
            "ServiceMethod": self.service_method,
            "Body": self.body,
            "Seq": self.seq,
        }

    @classmethod
    def from_json(cls, data: Any) -> Self:
        if not isinstance(data, dict):
            raise CodecError("request envelope must be a JSON object")
        if "Body" not in data:
            raise CodecError("request envelope has no Body")
        return cls(
            service_method=_parse_service_method(data),
            body=data["Body"],
            seq=_parse_seq(data),
        )


@dataclass
class Response:
    service_method: str
    body: Any = None
    seq: int = 0
    error: str = ""

    def to_json(self) -> dict:
        return {
            "ServiceMethod": self.service_method,
            "Body": self.body,
            "Seq": self.seq,
            "Error": self.error,
        }

    @classmethod
    def from_json(cls, data: Any) -> Self:
        if not isinstance(data, dict):
            raise CodecError("response envelope must be a JSON object")
        error = data.get("Error")
        if error is None:
            error = ""
        if not isinstance(error, str):
            raise CodecError(f"invalid Error: {error!r}")
        if not error and "Body" not in data:
            raise CodecError("response envelope has no Body")
        return cls(
            service_method=_parse_service_method(data),
            body=data.get("Body"),
            seq=_parse_seq(data),
            error=error,
        )


def encode_envelope(envelope: Request | Response) -> bytes:
    try:
        return json.dumps(envelope.to_json(), allow_nan=False).encode()
    except (TypeError, ValueError) as e:
        raise CodecError(f"cannot encode envelope: {e}") from e


def _loads(raw: bytes | str) -> Any:
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, ValueError) as e:
        raise CodecError(f"malformed JSON: {e}") from e


def decode_request(raw: bytes | str) -> Request:
    return Request.from_json(_loads(raw))


def decode_response(raw: bytes | str) -> Response:
    return Response.from_json(_loads(raw))


# -------------------------------------------------------------------------
# Shapes
# -------------------------------------------------------------------------

def is_shape(tp: Any) -> bool:
    """
    A shape is a mutable record type that can be allocated empty and filled
    in place: a dataclass type or one of the builtin containers.
    """
    if isinstance(tp, types.GenericAlias) or not isinstance(tp, type):
        return False
    return tp in BUILTIN_SHAPES or is_dataclass(tp)


def _zero_of(tp: Any) -> Any:
    if tp is bool:
        return False
    if tp in (int, float, str):
        return tp()
    if is_dataclass(tp) and isinstance(tp, type):
        return zero_value(tp)
    origin = typing.get_origin(tp)
    if origin in (list, dict, set, tuple):
        return origin()
    if isinstance(tp, type) and tp in (list, dict, set, tuple):
        return tp()
    return None


def zero_value(shape: type) -> Any:
    """
    Allocate a fresh zero-valued instance of `shape`.

    Dataclass fields without a default take the zero of their annotated type.
    """
    if not is_dataclass(shape):
        return shape()
    hints = typing.get_type_hints(shape)
    kwargs = {}
    for f in fields(shape):
        if not f.init:
            continue
        if f.default is MISSING and f.default_factory is MISSING:
            kwargs[f.name] = _zero_of(hints.get(f.name, Any))
    return shape(**kwargs)


# -------------------------------------------------------------------------
# Payloads
# -------------------------------------------------------------------------

def _to_plain(value: Any) -> Any:
    if hasattr(value, "to_json") and callable(value.to_json):
        return value.to_json()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value


def encode_payload(value: Any) -> Any:
    """
    Turn a payload into its JSON value. Fails with `CodecError` if the result
    is not serializable.
    """
    plain = _to_plain(value)
    try:
        json.dumps(plain, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise CodecError(f"cannot encode {type(value).__name__}: {e}") from e
    return plain


def _accepts_none(tp: Any) -> bool:
    if tp is Any or tp is type(None):
        return True
    return typing.get_origin(tp) in (Union, types.UnionType) and type(None) in typing.get_args(tp)


def _convert(value: Any, tp: Any, where: str) -> Any:
    if tp is Any:
        return value
    if value is None and not _accepts_none(tp):
        # null leaves a non-optional value at its zero
        return _zero_of(tp)
    origin = typing.get_origin(tp)
    if origin in (Union, types.UnionType):
        args = typing.get_args(tp)
        if value is None and type(None) in args:
            return None
        inner = [a for a in args if a is not type(None)]
        if len(inner) == 1:
            return _convert(value, inner[0], where)
        return value
    if tp is bool:
        if not isinstance(value, bool):
            raise CodecError(f"{where}: expected bool, got {value!r}")
        return value
    if tp is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise CodecError(f"{where}: expected int, got {value!r}")
        return value
    if tp is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise CodecError(f"{where}: expected float, got {value!r}")
        return float(value)
    if tp is str:
        if not isinstance(value, str):
            raise CodecError(f"{where}: expected str, got {value!r}")
        return value
    if isinstance(tp, type) and is_dataclass(tp):
        return decode_into(value, zero_value(tp))
    args = typing.get_args(tp)
    if (origin or tp) is list:
        if not isinstance(value, list):
            raise CodecError(f"{where}: expected list, got {value!r}")
        if args:
            return [_convert(v, args[0], f"{where}[{i}]") for i, v in enumerate(value)]
    if (origin or tp) is dict:
        if not isinstance(value, dict):
            raise CodecError(f"{where}: expected object, got {value!r}")
        if len(args) == 2:
            return {k: _convert(v, args[1], f"{where}[{k!r}]") for k, v in value.items()}
    return value


def decode_into(data: Any, target: Any) -> Any:
    """
    Decode the JSON value `data` into the already allocated `target`, in place.

    A JSON null leaves the target untouched. Unknown object keys are ignored
    and missing ones keep their current value.
    """
    if data is None:
        return target
    if is_dataclass(target) and not isinstance(target, type):
        if not isinstance(data, dict):
            raise CodecError(f"expected object for {type(target).__name__}, got {type(data).__name__}")
        hints = typing.get_type_hints(type(target))
        for f in fields(target):
            if f.name in data:
                hint = hints.get(f.name, Any)
                if data[f.name] is None and not _accepts_none(hint):
                    continue
                where = f"{type(target).__name__}.{f.name}"
                setattr(target, f.name, _convert(data[f.name], hint, where))
        return target
    if isinstance(target, dict):
        if not isinstance(data, dict):
            raise CodecError(f"expected object, got {type(data).__name__}")
        target.update(data)
        return target
    if isinstance(target, list):
        if not isinstance(data, list):
            raise CodecError(f"expected array, got {type(data).__name__}")
        target[:] = data
        return target
    raise CodecError(f"cannot decode into {type(target).__name__}")
