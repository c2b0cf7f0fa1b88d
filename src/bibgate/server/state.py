# ABOUTME: Shared per-app state: the gateway services and the two session stores.
# ABOUTME: Endpoints reach it through the get_gateway dependency.

from dataclasses import dataclass

from fastapi import Request

from bibgate.services import GatewayServices
from bibgate.sessions import SessionStore


@dataclass
class GatewayState:
    """Everything the endpoints share for the lifetime of the app."""

    services: GatewayServices
    web_sessions: SessionStore
    search_sessions: SessionStore

    async def close(self) -> None:
        for store in (self.web_sessions, self.search_sessions):
            for session in store.drain():
                await session.close()
        await self.services.aclose()


def get_gateway(request: Request) -> GatewayState:
    return request.app.state.gateway
