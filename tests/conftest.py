import threading

import pytest
import requests
from werkzeug.serving import make_server

from httprpc import Service, create_app
from calc_service import Counter, Math


@pytest.fixture
def service() -> Service:
    s = Service()
    s.register(Math())
    s.register(Counter())
    return s


@pytest.fixture
def app(service):
    app = create_app(service, "/rpc")
    app.config["TESTING"] = True
    return app


@pytest.fixture
def flask_client(app):
    return app.test_client()


@pytest.fixture(scope="session")
def live_service() -> Service:
    s = Service()
    s.register(Math())
    s.register(Counter())
    return s


@pytest.fixture(scope="session")
def server_url(live_service):
    """Threaded Werkzeug server on an ephemeral port."""
    srv = make_server("127.0.0.1", 0, create_app(live_service, "/rpc"), threaded=True)
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{srv.server_port}"
    finally:
        srv.shutdown()
        thread.join(timeout=5)


@pytest.fixture
def rpc_url(server_url) -> str:
    return server_url + "/rpc"


@pytest.fixture
def http_session():
    with requests.Session() as session:
        yield session
