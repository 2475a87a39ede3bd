"""
Unit tests for the HTTP middleware stack.
"""
import uuid

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.requests import Request as StarletteRequest

from flux_api.main import create_app
from flux_api.middleware.error_handler import ErrorHandlerMiddleware
from flux_api.middleware.logging import LoggingMiddleware, get_client_ip
from flux_api.middleware.security import CONTENT_SECURITY_POLICY
from flux_api.utils.constants import SECURITY_HEADERS

from conftest import make_settings


def make_request(headers=None, client=("10.0.0.1", 5000)) -> StarletteRequest:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return StarletteRequest(scope)


@pytest.mark.unit
class TestClientIp:

    def test_forwarded_for_first_hop(self):
        request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.2"})

        assert get_client_ip(request) == "203.0.113.7"

    def test_real_ip(self):
        assert get_client_ip(make_request({"X-Real-IP": "198.51.100.4"})) == "198.51.100.4"

    def test_socket_peer(self):
        assert get_client_ip(make_request()) == "10.0.0.1"

    def test_unknown(self):
        assert get_client_ip(make_request(client=None)) == "unknown"


@pytest.mark.unit
class TestRequestId:

    def test_echoes_incoming_id(self, client):
        response = client.get("/api/health/ping", headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"

    def test_generates_id(self, client):
        response = client.get("/api/health/ping")

        assert uuid.UUID(response.headers["X-Request-ID"])

    def test_id_visible_to_handlers(self):
        app = FastAPI()
        app.add_middleware(ErrorHandlerMiddleware)

        @app.get("/whoami")
        async def whoami(request: Request):
            return {"request_id": request.state.request_id}

        response = TestClient(app).get("/whoami", headers={"X-Request-ID": "req-9"})

        assert response.json() == {"request_id": "req-9"}


@pytest.mark.unit
class TestResponseTime:

    def test_header_format(self, client):
        value = client.get("/api/health/ping").headers["X-Response-Time"]

        assert value.endswith("ms")
        assert float(value[:-2]) >= 0

    def test_standalone(self):
        app = FastAPI()
        app.add_middleware(LoggingMiddleware)

        @app.get("/")
        async def index():
            return {}

        assert "X-Response-Time" in TestClient(app).get("/").headers


@pytest.mark.unit
class TestSecurityHeaders:

    def test_headers_on_every_response(self, client):
        for path in ("/api/health", "/api/v1/nowhere"):
            response = client.get(path)
            for header, value in SECURITY_HEADERS.items():
                assert response.headers[header] == value

    def test_no_hsts_outside_production(self, client):
        response = client.get("/api/health")

        assert "Strict-Transport-Security" not in response.headers
        assert "Content-Security-Policy" not in response.headers

    def test_production_headers(self):
        app = create_app(make_settings(environment="production", debug=False))

        response = TestClient(app).get("/api/health/ping")

        assert response.headers["Strict-Transport-Security"] == "max-age=31536000; includeSubDomains"
        assert response.headers["Content-Security-Policy"] == CONTENT_SECURITY_POLICY
