from __future__ import annotations

import logging
from typing import Callable

from flask import Flask, current_app, request

from .codec import (
    CodecError,
    Response,
    decode_into,
    decode_request,
    encode_envelope,
    encode_payload,
    zero_value,
)
from .config import ServerConfig
from .registry import ServiceRegistry

JSON_CONTENT_TYPE = "application/json"

# Every method is routed to the RPC view so that it answers 405 itself.
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _http_error(message: str, status: int):
    headers = {
        "Content-Type": "text/plain; charset=utf-8",
        "X-Content-Type-Options": "nosniff",
    }
    return message + "\n", status, headers


def _reject(message: str, status: int, reason: str | None = None):
    current_app.logger.warning("rpc: %d %s", status, reason or message)
    return _http_error(message, status)


def make_handler(registry: ServiceRegistry) -> Callable:
    """
    Return a Flask view serving the methods of `registry`.

    The view reads the registry at request time, so registrations made after
    this call are visible.
    """

    def handle_rpc():
        if request.method != "POST":
            return _reject("Method not allowed", 405, f"method {request.method}")

        if request.headers.get("Content-Type") != JSON_CONTENT_TYPE:
            return _reject(
                "Content-Type must be application/json", 415,
                f"content type {request.headers.get('Content-Type')!r}",
            )

        try:
            req = decode_request(request.get_data())
        except CodecError as e:
            return _reject("Bad request", 400, str(e))

        descriptor = registry.lookup(req.service_method)
        if descriptor is None:
            return _reject("Bad request", 400, f"unknown method {req.service_method!r}")

        req_body = zero_value(descriptor.request_shape)
        try:
            decode_into(req.body, req_body)
        except CodecError as e:
            return _reject("Bad request", 400, f"{descriptor.name}: {e}")

        res_body = zero_value(descriptor.response_shape)
        try:
            err = descriptor.invoke(req_body, res_body)
        except Exception as e:
            current_app.logger.error("Unhandled exception in %s", descriptor.name, exc_info=e)
            err = e
        if err is not None:
            current_app.logger.error("rpc: %s failed: %s", descriptor.name, err)
            return _http_error(str(err), 500)

        try:
            payload = encode_payload(res_body)
        except CodecError as e:
            current_app.logger.error("rpc: %s", e)
            return _http_error(str(e), 500)

        res = Response(service_method=req.service_method, body=payload, seq=req.seq)
        try:
            data = encode_envelope(res)
        except CodecError as e:
            return _http_error(str(e), 500)
        return current_app.response_class(data, status=200, mimetype=JSON_CONTENT_TYPE)

    return handle_rpc


def _adopt_gunicorn_logging(app: Flask) -> None:
    gunicorn_error_logger = logging.getLogger("gunicorn.error")
    if gunicorn_error_logger.handlers:
        app.logger.handlers = gunicorn_error_logger.handlers
        app.logger.setLevel(gunicorn_error_logger.level)
        app.logger.propagate = False

        logging.getLogger("werkzeug").handlers = gunicorn_error_logger.handlers
        logging.getLogger("werkzeug").setLevel(gunicorn_error_logger.level)


def create_app(service: ServiceRegistry | None = None, path: str | None = None) -> Flask:
    """
    Build the Flask application serving `service` at `path`.

    Without a service, one is built from the targets in the environment
    (see `ServerConfig.from_env`); this is the gunicorn entry point
    `httprpc.server:create_app()`.
    """
    from .service import Service

    if service is None or path is None:
        config = ServerConfig.from_env()
        if service is None:
            service = Service.from_targets(config.targets)
        if path is None:
            path = config.path

    app = Flask(__name__)
    _adopt_gunicorn_logging(app)

    app.add_url_rule(path, "rpc", make_handler(service), methods=ALL_METHODS)

    @app.route("/health", methods=["GET"])
    def health():
        return "OK", 200

    app.logger.info("Serving %d methods at %s", len(service), path)
    return app
