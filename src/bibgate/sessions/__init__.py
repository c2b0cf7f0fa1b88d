# ABOUTME: Translation sessions and the store that parks them between requests.
# ABOUTME: Re-exports the session classes, their states, and SessionStore.

from bibgate.sessions.search import SearchSession
from bibgate.sessions.session import Outcome, SessionState, TranslationSession
from bibgate.sessions.store import SessionStore
from bibgate.sessions.web import WebSession, forwarded_headers

__all__ = [
    "Outcome",
    "SearchSession",
    "SessionState",
    "SessionStore",
    "TranslationSession",
    "WebSession",
    "forwarded_headers",
]
