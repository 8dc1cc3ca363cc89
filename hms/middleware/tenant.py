"""
Tenant Resolution Middleware

Extracts the requested tenant identifier from:
  1. the X-Tenant-ID request header (API clients)
  2. the subdomain of the request host (browser clients, e.g. city-general-k3x9qa.localhost)

and stores it on request.state.tenant_identifier. The middleware does no
database work; routes that need the Tenant depend on get_current_tenant,
which resolves the identifier and rejects unknown or inactive tenants.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.base import BaseHTTPMiddleware

from hms.config import settings
from hms.database import get_db
from hms.models.tenant import Tenant
from hms.services.tenant_service import resolve_tenant

if TYPE_CHECKING:
    from collections.abc import Callable

    from starlette.responses import Response

logger = logging.getLogger(__name__)


def _extract_identifier_from_host(host: str, app_domain: str) -> str | None:
    """
    Extract the tenant identifier from a subdomain.

    Examples:
        host="acme-x1y2z3.localhost", app_domain="localhost" -> "acme-x1y2z3"
        host="localhost",             app_domain="localhost" -> None
    """
    host = host.split(":")[0]
    if host != app_domain and host.endswith("." + app_domain):
        return host[: -(len(app_domain) + 1)]
    return None


def extract_tenant_identifier(request: Request) -> str | None:
    identifier = request.headers.get(settings.tenant_header)
    if not identifier:
        identifier = _extract_identifier_from_host(request.headers.get("host", ""), settings.app_domain)
    return identifier or None


class TenantMiddleware(BaseHTTPMiddleware):
    """Attach the requested tenant identifier (or None) to request.state."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.tenant_identifier = extract_tenant_identifier(request)
        if request.state.tenant_identifier:
            logger.debug("TenantMiddleware: request names tenant %s", request.state.tenant_identifier)
        return await call_next(request)


async def get_current_tenant(request: Request, db: AsyncSession = Depends(get_db)) -> Tenant:
    """Resolve the request's tenant; raises TenantInvalidError."""
    identifier = getattr(request.state, "tenant_identifier", None)
    if identifier is None:
        identifier = extract_tenant_identifier(request)
    tenant = await resolve_tenant(identifier, db)
    request.state.tenant = tenant
    return tenant
