"""Tests for FastAPI error handler registration."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pymongo.errors import AutoReconnect, DuplicateKeyError

from mongo_crud.core.error_handlers import register_error_handlers
from mongo_crud.core.exceptions import ArgumentValidationError, NotConnectedError


@pytest.fixture
def client() -> TestClient:
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/invalid")
    async def invalid():
        raise ArgumentValidationError("Invalid record identifier", context={"id": "'abc'"})

    @app.get("/disconnected")
    async def disconnected():
        raise NotConnectedError("This client is not connected, it cannot perform operations")

    @app.get("/duplicate")
    async def duplicate():
        raise DuplicateKeyError("E11000 duplicate key error")

    @app.get("/unavailable")
    async def unavailable():
        raise AutoReconnect("connection reset")

    return TestClient(app)


class TestErrorHandlers:
    """Errors raised by stores render as JSON responses."""

    def test_validation_error(self, client):
        response = client.get("/invalid")
        assert response.status_code == 400
        assert response.json() == {
            "detail": "Invalid record identifier",
            "error_code": "VALIDATION_ERROR",
            "id": "'abc'",
        }

    def test_not_connected(self, client):
        response = client.get("/disconnected")
        assert response.status_code == 503
        assert response.json()["error_code"] == "NOT_CONNECTED"

    def test_duplicate_key(self, client):
        response = client.get("/duplicate")
        assert response.status_code == 409
        assert response.json() == {"detail": "Record already exists", "error_code": "DUPLICATE_KEY"}

    def test_connection_failure(self, client):
        """AutoReconnect is a ConnectionFailure and maps to 503."""
        response = client.get("/unavailable")
        assert response.status_code == 503
        assert response.json()["error_code"] == "STORE_UNAVAILABLE"
