import threading

import pytest

from app import create_app
from config import Config


class LocalConfig(Config):
    TESTING = True
    HOST = "127.0.0.1"
    PORT = "0"
    SHUTDOWN_TIMEOUT = 5


@pytest.fixture
def app():
    return create_app(LocalConfig)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def gate(app):
    """App with a ``/slow`` route that blocks until ``release`` is set."""
    started = threading.Event()
    release = threading.Event()

    def slow():
        started.set()
        release.wait(10)
        return {"done": True}

    app.add_url_rule("/slow", "slow", slow)
    yield app, started, release
    release.set()
