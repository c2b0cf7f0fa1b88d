# ABOUTME: POST /search: URL-shaped queries run a search session; other text is searched
# ABOUTME: for identifiers. Follow-ups must name a session that is still parked.

import logging
import re

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from bibgate.errors import BadRequestError, SelectionMismatchError
from bibgate.server.common import read_body, respond, resume, sweep
from bibgate.server.state import GatewayState, get_gateway
from bibgate.sessions import SearchSession, forwarded_headers

logger = logging.getLogger(__name__)

router = APIRouter()

_URL_QUERY_RE = re.compile(r"^https?:", re.IGNORECASE)


@router.post("/search")
async def search(
    request: Request,
    start: str | None = None,
    gateway: GatewayState = Depends(get_gateway),
) -> Response:
    await sweep(gateway.search_sessions)
    data = await read_body(request)

    if isinstance(data, str):
        return await _identifier_search(gateway, data, start)
    if not isinstance(data, dict):
        raise BadRequestError("Invalid request body")

    query = data.get("query")
    if data.get("session"):
        session = gateway.search_sessions.take(str(data["session"]))
        if query is not None and not session.matches(query):
            await session.close()
            raise SelectionMismatchError("'query' does not match query in session")
        outcome = await resume(session, data.get("items"))
        return respond(gateway.search_sessions, session, outcome)

    if not isinstance(query, str) or not query.strip():
        raise BadRequestError("No query specified")
    query = query.strip()

    if _URL_QUERY_RE.match(query):
        session = SearchSession(
            query, gateway.services, headers=forwarded_headers(request.headers)
        )
        outcome = await session.start()
        return respond(gateway.search_sessions, session, outcome)
    return await _identifier_search(gateway, query, start)


async def _identifier_search(gateway: GatewayState, text: str, start: str | None) -> Response:
    result = await gateway.services.identifier_search.search(text, start)
    if result.choices is None:
        return JSONResponse(result.items or [])
    headers = {}
    if result.next_token:
        headers["Link"] = f'</search?start={result.next_token}>; rel="next"'
    return JSONResponse(result.choices, status_code=300, headers=headers)
