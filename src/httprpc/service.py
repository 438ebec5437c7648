from __future__ import annotations

import importlib
from typing import Any, Callable, Iterable

from .client import call as call_remote
from .registry import ServiceRegistry
from .server import make_handler


def load_target(target: str) -> Any:
    """
    Import a "module:attribute" path. Classes are instantiated with no
    arguments, anything else is returned as is.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"invalid target {target!r}, expected 'module:attribute'")
    obj = importlib.import_module(module_name)
    for part in attr.split("."):
        obj = getattr(obj, part)
    if isinstance(obj, type):
        obj = obj()
    return obj


class Service(ServiceRegistry):
    """
    Registry of RPC methods, usable on both sides of the wire:

        service = Service()
        service.register(Math())
        app = create_app(service, "/rpc")

        service.call(requests.Session(), "http://localhost:5000/rpc", "Math.add", req, res)
    """

    @classmethod
    def from_targets(cls, targets: Iterable[str]) -> "Service":
        service = cls()
        for target in targets:
            service.register(load_target(target))
        return service

    def serve(self) -> Callable:
        return make_handler(self)

    def call(
        self,
        http_client: Any,
        uri: str,
        method: str,
        request_value: Any,
        response_value: Any,
        *,
        seq: int = 0,
    ) -> None:
        call_remote(self, http_client, uri, method, request_value, response_value, seq=seq)
