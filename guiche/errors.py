from guiche.payload import dig


class GuicheError(Exception):
    """Base class for every error raised by the payment core."""


class ConfigurationError(GuicheError):
    pass


class ValidationError(GuicheError):
    pass


class GatewayRejectionError(GuicheError):
    """The gateway refused the charge or answered with something unusable.

    ``payload`` keeps whatever the provider sent back (parsed JSON, raw text,
    or None when the request never got an answer) for operator diagnostics.
    """

    DOCUMENT_HINTS = ("cpf", "document", "documento")
    # only these fields carry the provider's explanation; the rest may echo the request
    ERROR_FIELDS = ("message", "error", "errors", "detail", "details", "data.message", "data.error")

    def __init__(self, message: str, payload=None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.payload = payload
        self.status_code = status_code

    def _reasons(self):
        yield self.message
        if isinstance(self.payload, dict):
            for path in self.ERROR_FIELDS:
                value = dig(self.payload, path)
                if value is not None:
                    yield str(value)
        elif isinstance(self.payload, str):
            yield self.payload

    @property
    def document_related(self) -> bool:
        text = " ".join(self._reasons()).lower()
        return any(hint in text for hint in self.DOCUMENT_HINTS)


class PersistenceError(GuicheError):
    pass


class AttributionError(GuicheError):
    pass


class MalformedWebhookError(GuicheError):
    def __init__(self, message: str, raw: bytes = b""):
        super().__init__(message)
        self.raw = raw
