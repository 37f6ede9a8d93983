import time

import pytest

from pixeldiag.app import create_app
from pixeldiag.config import Config
from pixeldiag.store import RequestStore
from pixeldiag.validator import RecordValidator


@pytest.fixture
def sample_impression():
    return {
        "id": "req-1",
        "url": "https://pixel.vendor.example/imp?pid=5&cb=1",
        "timestamp": int(time.time() * 1000),
        "vendor": {"id": "v1", "name": "Vendor One", "category": "SSP"},
        "vendorRequestType": "impression",
    }


@pytest.fixture
def sample_invalid_record():
    return {
        "url": "https://pixel.vendor.example/imp",
        "timestamp": "yesterday",
    }


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def validator():
    return RecordValidator()


@pytest.fixture
def store():
    return RequestStore()


@pytest.fixture
def app():
    """Create a Flask test app without the background scheduler."""
    application = create_app(Config(overrides={"scheduler": {"enabled": False}}))
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()
