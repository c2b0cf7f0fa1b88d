# ABOUTME: FastAPI application factory for the gateway's /web and /search endpoints.
# ABOUTME: Owns the per-endpoint session stores and renders GatewayError as plain text.

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from bibgate.config import GatewayConfig
from bibgate.errors import GatewayError
from bibgate.server.search import router as search_router
from bibgate.server.state import GatewayState
from bibgate.server.web import router as web_router
from bibgate.services import GatewayServices
from bibgate.sessions import SessionStore

logger = logging.getLogger(__name__)


def create_app(
    config: GatewayConfig | None = None,
    *,
    services: GatewayServices | None = None,
    **service_overrides: Any,
) -> FastAPI:
    """Build the gateway app.

    Args:
        config: Settings; read from the environment when omitted.
        services: Prebuilt services; built from ``config`` when omitted.
        **service_overrides: Passed to GatewayServices.from_config
            (``registry``, ``fetcher``, ``runner``, ``transport``).
    """
    if config is None:
        config = services.config if services is not None else GatewayConfig.from_env()
    if services is None:
        services = GatewayServices.from_config(config, **service_overrides)

    state = GatewayState(
        services=services,
        web_sessions=SessionStore(
            timeout=config.web_select_timeout, gc_interval=config.web_gc_interval
        ),
        search_sessions=SessionStore(
            timeout=config.search_select_timeout, gc_interval=config.search_gc_interval
        ),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "bibgate ready with %d translators", len(services.registry.all())
        )
        yield
        await state.close()

    app = FastAPI(title="bibgate", lifespan=lifespan)
    app.state.gateway = state
    app.add_exception_handler(GatewayError, _handle_gateway_error)

    app.include_router(web_router)
    app.include_router(search_router)
    return app


async def _handle_gateway_error(request: Request, exc: Exception) -> PlainTextResponse:
    assert isinstance(exc, GatewayError)
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.debug("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return PlainTextResponse(exc.public_message, status_code=exc.status_code)
