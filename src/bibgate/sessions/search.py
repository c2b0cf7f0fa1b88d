# ABOUTME: SearchSession handles URL-shaped /search queries with the web translation flow.
# ABOUTME: It reports and matches the query under "query" instead of "url".

from typing import Any

from bibgate.sessions.web import WebSession


class SearchSession(WebSession):
    """A WebSession started from a ``/search`` query.

    Follow-ups are matched against the original query rather than the
    candidate URL being translated.
    """

    @property
    def query(self) -> str:
        return self.url

    @property
    def selection_url(self) -> str | None:
        return self.url

    def selection_body(self) -> dict[str, Any]:
        body = super().selection_body()
        del body["url"]
        return {"query": self.query, **body}
