from .codec import CodecError, Request, Response
from .registry import (
    InvalidShapeError,
    InvalidTypeError,
    MethodDescriptor,
    RegistrationError,
    ServiceRegistry,
    UnexportedTypeError,
)
from .client import (
    ClientError,
    DecodingError,
    EncodingError,
    MethodNotFoundError,
    RemoteError,
    TransportError,
)
from .service import Service
from .server import create_app
from .config import ServerConfig

__all__ = [
    "Service",
    "ServiceRegistry",
    "MethodDescriptor",
    "Request",
    "Response",
    "CodecError",
    "RegistrationError",
    "InvalidTypeError",
    "UnexportedTypeError",
    "InvalidShapeError",
    "ClientError",
    "MethodNotFoundError",
    "EncodingError",
    "TransportError",
    "DecodingError",
    "RemoteError",
    "ServerConfig",
    "create_app",
]
