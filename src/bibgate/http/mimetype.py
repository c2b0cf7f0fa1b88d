# ABOUTME: Minimal MIME type parsing for Content-Type negotiation.
# ABOUTME: Exposes the essence, parameters, and the HTML/XML predicates used for classification.

import re
from dataclasses import dataclass, field

_TOKEN_RE = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")

_HTML_ESSENCE = "text/html"
_XML_ESSENCES = {"text/xml", "application/xml"}


@dataclass(frozen=True)
class MimeType:
    """A parsed Content-Type header value.

    Only the pieces classification needs are kept: the lowercased
    ``type/subtype`` essence and the parameter map (keys lowercased).
    """

    type: str
    subtype: str
    parameters: dict[str, str] = field(default_factory=dict)

    @property
    def essence(self) -> str:
        return f"{self.type}/{self.subtype}"

    @property
    def charset(self) -> str | None:
        return self.parameters.get("charset")

    def is_html(self) -> bool:
        return self.essence == _HTML_ESSENCE

    def is_xml(self) -> bool:
        return self.subtype.endswith("+xml") or self.essence in _XML_ESSENCES

    @classmethod
    def parse(cls, value: str) -> "MimeType":
        """Parse a Content-Type header value.

        Raises:
            ValueError: If the value has no valid ``type/subtype`` part.
        """
        head, _, rest = value.partition(";")
        type_, _, subtype = head.strip().partition("/")
        type_ = type_.strip().lower()
        subtype = subtype.strip().lower()
        if not type_ or not subtype or not _TOKEN_RE.match(type_) or not _TOKEN_RE.match(subtype):
            raise ValueError(f"Invalid MIME type: {value!r}")

        parameters: dict[str, str] = {}
        for chunk in rest.split(";"):
            name, sep, param_value = chunk.partition("=")
            name = name.strip().lower()
            if not sep or not name or name in parameters:
                continue
            param_value = param_value.strip()
            if len(param_value) >= 2 and param_value[0] == param_value[-1] == '"':
                param_value = param_value[1:-1]
            parameters[name] = param_value
        return cls(type=type_, subtype=subtype, parameters=parameters)
