# ABOUTME: Request-scoped errors carrying the HTTP status the gateway answers with.
# ABOUTME: Raised by sessions and endpoints; rendered as plain text by the server.

from http import HTTPStatus


class GatewayError(Exception):
    """An error that ends one request with a specific HTTP status.

    Messages of 5xx errors are internal unless ``expose`` is set; the server
    replaces them with the status reason phrase.
    """

    status_code = 500

    def __init__(
        self, message: str = "", *, status_code: int | None = None, expose: bool | None = None
    ) -> None:
        if status_code is not None:
            self.status_code = status_code
        self.message = message or HTTPStatus(self.status_code).phrase
        self.expose = self.status_code < 500 if expose is None else expose
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        if self.expose:
            return self.message
        return HTTPStatus(self.status_code).phrase


class BadRequestError(GatewayError):
    status_code = 400


class SessionNotFoundError(GatewayError):
    status_code = 400

    def __init__(self, message: str = "Session not found") -> None:
        super().__init__(message)


class SelectionMismatchError(GatewayError):
    status_code = 409


class UnsupportedMediaTypeError(GatewayError):
    status_code = 415


class TranslationError(GatewayError):
    status_code = 500


class NoTranslatorError(GatewayError):
    status_code = 501

    def __init__(self, message: str = "No translators available", *, expose: bool = True) -> None:
        super().__init__(message, expose=expose)
