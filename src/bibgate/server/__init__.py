# ABOUTME: HTTP service layer: FastAPI app factory and the /web and /search routers.
# ABOUTME: Re-exports create_app for the CLI and for ASGI servers.

from bibgate.server.app import create_app

__all__ = ["create_app"]
