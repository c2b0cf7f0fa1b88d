# ABOUTME: Request body parsing and response helpers shared by the endpoints.
# ABOUTME: Enforces the accepted content types and turns session outcomes into responses.

import codecs
import json
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from bibgate.errors import BadRequestError, GatewayError, UnsupportedMediaTypeError
from bibgate.sessions import SessionStore, TranslationSession
from bibgate.sessions.session import Outcome


async def read_body(request: Request) -> Any:
    """Read a ``text/plain`` or JSON body.

    Text bodies come back stripped; JSON bodies decoded.

    Raises:
        UnsupportedMediaTypeError: Any other content type.
        BadRequestError: Empty or undecodable body.
    """
    content_type = request.headers.get("content-type", "")
    essence, _, params = content_type.partition(";")
    essence = essence.strip().lower()
    is_json = essence == "application/json" or essence.endswith("+json")
    if not is_json and essence != "text/plain":
        raise UnsupportedMediaTypeError()

    raw = await request.body()
    if not raw.strip():
        raise BadRequestError("POST data not provided")

    if not is_json:
        return raw.decode(_charset(params), errors="replace").strip()
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise BadRequestError("Invalid JSON provided") from exc
    if not data:
        raise BadRequestError("POST data not provided")
    return data


async def sweep(store: SessionStore) -> None:
    """Count this request against the store and close anything it sweeps."""
    for session in store.tick():
        await session.close()


async def resume(session: TranslationSession, selection: Any) -> Outcome:
    """Resume a taken session; it is closed, not re-parked, if resuming fails."""
    try:
        return await session.resume(selection)
    except GatewayError:
        await session.close()
        raise


def respond(store: SessionStore, session: TranslationSession, outcome: Outcome) -> JSONResponse:
    """Answer 200 with items, or park the session and answer 300 with its choices."""
    if outcome.needs_selection:
        store.park(session)
        return JSONResponse(session.selection_body(), status_code=300)
    return JSONResponse(outcome.items)


def _charset(params: str) -> str:
    for param in params.split(";"):
        name, _, value = param.partition("=")
        if name.strip().lower() == "charset" and value.strip():
            charset = value.strip().strip('"')
            try:
                codecs.lookup(charset)
            except LookupError:
                return "utf-8"
            return charset
    return "utf-8"
