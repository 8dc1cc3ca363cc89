"""
Tests for the tenant and structured-logging middleware
"""

import json
import logging

import pytest
from fastapi import Depends, FastAPI, Request
from httpx import ASGITransport, AsyncClient

from hms.database import get_db
from hms.exception_handlers import register_exception_handlers
from hms.middleware.logging import RequestIdFilter, StructuredFormatter, StructuredLoggingMiddleware, request_id_var
from hms.middleware.tenant import TenantMiddleware, _extract_identifier_from_host, get_current_tenant


class TestHostExtraction:
    """Test subdomain parsing"""

    @pytest.mark.parametrize(
        "host, expected",
        [
            ("acme-x1y2z3.localhost", "acme-x1y2z3"),
            ("acme-x1y2z3.localhost:8000", "acme-x1y2z3"),
            ("localhost", None),
            ("localhost:8000", None),
            ("example.com", None),
            ("", None),
        ],
    )
    def test_extract(self, host, expected):
        assert _extract_identifier_from_host(host, "localhost") == expected

    def test_custom_app_domain(self):
        assert _extract_identifier_from_host("city-k3x9qa.hms.example.com", "hms.example.com") == "city-k3x9qa"


@pytest.fixture
def tenant_app(session_factory):
    app = FastAPI()
    register_exception_handlers(app)
    app.add_middleware(TenantMiddleware)

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db

    @app.get("/identifier")
    async def identifier(request: Request):
        return {"identifier": request.state.tenant_identifier}

    @app.get("/tenant")
    async def tenant(resolved=Depends(get_current_tenant)):
        return {"id": resolved.id}

    return app


async def _get(app, path, **kwargs):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
        return await client.get(path, **kwargs)


class TestTenantMiddleware:
    """Test identifier extraction and tenant resolution per request"""

    async def test_header_wins_over_subdomain(self, tenant_app):
        response = await _get(
            tenant_app, "/identifier", headers={"X-Tenant-ID": "from-header", "Host": "from-host.localhost"}
        )
        assert response.json() == {"identifier": "from-header"}

    async def test_subdomain(self, tenant_app):
        response = await _get(tenant_app, "/identifier", headers={"Host": "from-host.localhost"})
        assert response.json() == {"identifier": "from-host"}

    async def test_no_identifier(self, tenant_app):
        response = await _get(tenant_app, "/identifier")
        assert response.json() == {"identifier": None}

    async def test_resolves_active_tenant(self, tenant_app, tenant):
        response = await _get(tenant_app, "/tenant", headers={"X-Tenant-ID": tenant.identifier})
        assert response.status_code == 200
        assert response.json() == {"id": tenant.id}

    async def test_unknown_and_inactive_look_the_same(self, tenant_app, make_tenant):
        inactive = await make_tenant("Closed Clinic", is_active=False)

        unknown = await _get(tenant_app, "/tenant", headers={"X-Tenant-ID": "nope-abc123"})
        closed = await _get(tenant_app, "/tenant", headers={"X-Tenant-ID": inactive.identifier})
        missing = await _get(tenant_app, "/tenant")

        for response in (unknown, closed, missing):
            assert response.status_code == 400
            assert response.json()["error"]["error_code"] == "TENANT_INVALID"
            assert response.json()["error"]["message"] == "Invalid or inactive tenant"


class TestStructuredLogging:
    """Test the JSON formatter and the access-log middleware"""

    def test_formatter_emits_json_with_extras(self):
        record = logging.LogRecord("hms.test", logging.WARNING, __file__, 1, "hello %s", ("world",), None)
        record.tenant = "acme-x1y2z3"
        record.status_code = 403
        token = request_id_var.set("req-1")
        try:
            RequestIdFilter().filter(record)
        finally:
            request_id_var.reset(token)

        data = json.loads(StructuredFormatter().format(record))
        assert data["message"] == "hello world"
        assert data["level"] == "WARNING"
        assert data["request_id"] == "req-1"
        assert data["tenant"] == "acme-x1y2z3"
        assert data["status_code"] == 403

    async def test_request_id_is_echoed(self):
        app = FastAPI()
        app.add_middleware(StructuredLoggingMiddleware)

        @app.get("/ping")
        async def ping():
            return {"ok": True}

        response = await _get(app, "/ping", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"

        response = await _get(app, "/ping")
        assert response.headers["X-Request-ID"]

    async def test_access_log_on_failure_carries_user_id(self, caplog):
        app = FastAPI()
        app.add_middleware(StructuredLoggingMiddleware)

        @app.get("/boom")
        async def boom(request: Request):
            request.state.user_id = 7
            raise RuntimeError("kaput")

        caplog.set_level(logging.INFO, logger="hms.access")
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/boom")

        assert response.status_code == 500
        [record] = [r for r in caplog.records if r.name == "hms.access"]
        assert record.status_code == 500
        assert record.user_id == 7
        assert "RuntimeError: kaput" in record.getMessage()
