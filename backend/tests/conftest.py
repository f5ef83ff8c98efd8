import pytest
from fastapi.testclient import TestClient #fake http client that calls the FastAPI routes without running a real server.

from app.core.config import get_settings
from app.main import app


@pytest.fixture() #test client
def client():
    get_settings.cache_clear() #settings are cached per process, tests may patch the environment.
    with TestClient(app) as test_client:
        yield test_client
    get_settings.cache_clear()
