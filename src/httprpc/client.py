from __future__ import annotations

import logging
from typing import Any

import requests

from .codec import CodecError, Request, decode_into, decode_response, encode_envelope, encode_payload
from .registry import ServiceRegistry

logger = logging.getLogger(__name__)


class ClientError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MethodNotFoundError(ClientError):
    pass


class EncodingError(ClientError):
    pass


class TransportError(ClientError):
    pass


class DecodingError(ClientError):
    pass


class RemoteError(ClientError):
    """The server reported a failure, either as an HTTP error or in the envelope."""

    def __init__(self, message: str, status_code: int = 200):
        super().__init__(message)
        self.status_code = status_code


def call(
    registry: ServiceRegistry,
    http_client: Any,
    uri: str,
    method: str,
    request_value: Any,
    response_value: Any,
    *,
    seq: int = 0,
) -> None:
    """
    Call `method` on the server at `uri` and decode the result into
    `response_value` in place.

    `method` must be registered in the local `registry` too; it is only used
    to validate the name. `http_client` is anything with the `requests.post`
    signature, e.g. a `requests.Session`; `None` uses `requests` directly.
    """
    descriptor = registry.lookup(method)
    if descriptor is None:
        raise MethodNotFoundError(f"rpc: can't find method {method!r}")

    try:
        body = encode_payload(request_value)
        data = encode_envelope(Request(service_method=descriptor.name, body=body, seq=seq))
    except CodecError as e:
        raise EncodingError(f"rpc: error encoding request: {e}") from e

    http_client = http_client if http_client is not None else requests
    try:
        resp = http_client.post(uri, data=data, headers={"Content-Type": "application/json"})
    except requests.RequestException as e:
        raise TransportError(f"rpc: error sending request: {e}") from e

    if resp.status_code != 200:
        logger.debug("%s returned %d", uri, resp.status_code)
        raise RemoteError(f"rpc: server: {resp.text.strip()}", status_code=resp.status_code)

    try:
        res = decode_response(resp.content)
    except CodecError as e:
        raise DecodingError(f"rpc: error reading response body: {e}") from e

    if res.error:
        raise RemoteError(f"rpc: server: {res.error}", status_code=resp.status_code)

    try:
        decode_into(res.body, response_value)
    except CodecError as e:
        raise DecodingError(f"rpc: {e}") from e
