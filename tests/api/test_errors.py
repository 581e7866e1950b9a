"""Tests for the global exception handlers."""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from api.errors import register_error_handlers


class Payload(BaseModel):
    name: str = Field(..., min_length=1)


@pytest.fixture
def app():
    app = FastAPI()
    register_error_handlers(app)

    @app.post("/echo")
    async def echo(body: Payload):
        return {"name": body.name}

    @app.get("/teapot")
    async def teapot():
        raise HTTPException(status_code=418, detail="I'm a teapot")

    @app.get("/crash")
    async def crash():
        raise RuntimeError("database password is hunter2")

    return app


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


class TestValidationErrors:
    def test_validation_error_is_400(self, client):
        response = client.post("/echo", json={"name": ""})

        assert response.status_code == 400
        assert response.json()["error"].startswith("name:")

    def test_missing_field_named(self, client):
        response = client.post("/echo", json={})

        assert response.status_code == 400
        assert "name" in response.json()["error"]


class TestHttpErrors:
    def test_http_exception_uses_error_shape(self, client):
        response = client.get("/teapot")

        assert response.status_code == 418
        assert response.json() == {"error": "I'm a teapot"}

    def test_method_not_allowed(self, client):
        response = client.get("/echo")

        assert response.status_code == 405
        assert set(response.json()) == {"error"}


class TestUnhandledErrors:
    def test_unhandled_is_generic_500(self, client):
        response = client.get("/crash")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert "hunter2" not in response.text
