# ABOUTME: POST /web: translate a URL, or resume a session with the client's item selection.
# ABOUTME: Unknown follow-up sessions are replayed from their URL with the selection applied.

import logging
import re

from fastapi import APIRouter, Depends, Request, Response

from bibgate.errors import BadRequestError, SelectionMismatchError, SessionNotFoundError
from bibgate.server.common import read_body, respond, resume, sweep
from bibgate.server.state import GatewayState, get_gateway
from bibgate.sessions import WebSession, forwarded_headers

logger = logging.getLogger(__name__)

router = APIRouter()

# A hostname with a TLD of up to nine letters, or an IPv4 address, optionally with a scheme.
_URL_RE = re.compile(
    r"^(https?://)?([-a-zA-Z0-9@:%._+~#=]{2,256}\.[a-z]{2,9}\b"
    r"|((25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)(\.|\b)){4})(\S*)$",
    re.IGNORECASE,
)


@router.post("/web")
async def translate_web(
    request: Request,
    single: str | None = None,
    gateway: GatewayState = Depends(get_gateway),
) -> Response:
    await sweep(gateway.web_sessions)
    services = gateway.services
    headers = forwarded_headers(request.headers)
    data = await read_body(request)

    if isinstance(data, str):
        url = _normalize_url(data)
        session = WebSession(url, services, single=bool(single), headers=headers)
        outcome = await session.start()
        return respond(gateway.web_sessions, session, outcome)

    if not isinstance(data, dict):
        raise BadRequestError("Invalid request body")

    session_id = data.get("session")
    if not session_id:
        raise BadRequestError("'session' not provided")

    try:
        session = gateway.web_sessions.take(str(session_id))
    except SessionNotFoundError:
        url = data.get("url")
        if not isinstance(url, str) or not url:
            raise BadRequestError("URL not provided") from None
        if data.get("items") is None:
            raise BadRequestError("'items' not provided") from None
        logger.info("Session %s not found -- replaying %s", session_id, url)
        session = WebSession(
            url,
            services,
            single=bool(single),
            headers=headers,
            session_id=str(session_id),
            preset_selection=data.get("items"),
        )
        outcome = await session.start()
        return respond(gateway.web_sessions, session, outcome)

    if not session.matches(data.get("url")):
        await session.close()
        raise SelectionMismatchError("'url' does not match URL in session")
    outcome = await resume(session, data.get("items"))
    return respond(gateway.web_sessions, session, outcome)


def _normalize_url(text: str) -> str:
    if not _URL_RE.match(text):
        raise BadRequestError("URL not provided")
    if not text.startswith("http"):
        text = "http://" + text
    return text
