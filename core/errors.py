"""
Service error hierarchy.

Every failure that reaches the HTTP layer is reported as a JSON envelope
``{"status": int, "msg": str}``. The numeric status identifies the failure
class; ``msg`` is safe to show to clients.
"""

STATUS_OK = 0
STATUS_MALFORMED_REQUEST = 4000001
STATUS_NOT_FOUND = 4040001
STATUS_UNKNOWN = 5000001
STATUS_ENGINE = 5000002
STATUS_STORE = 5000003

UNKNOWN_MESSAGE = "Unknown Exception"


class ServiceError(Exception):
    """Base class for errors that map onto the response envelope."""

    status: int = STATUS_UNKNOWN
    public_message: str = UNKNOWN_MESSAGE
    expose_detail: bool = False

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message

    @property
    def msg(self) -> str:
        """Message returned to the client."""
        return self.detail if self.expose_detail else self.public_message

    def to_envelope(self) -> dict:
        return {"status": self.status, "msg": self.msg}


class MalformedRequestError(ServiceError):
    """The request is syntactically or semantically invalid."""

    status = STATUS_MALFORMED_REQUEST
    public_message = "Scope Exception"
    expose_detail = True


class NotFoundError(ServiceError):
    """A referenced knowledge base, file or table does not exist."""

    status = STATUS_NOT_FOUND
    public_message = "Not Found"
    expose_detail = True


class EngineError(ServiceError):
    """Tokenizer, model or sampler failure."""

    status = STATUS_ENGINE
    public_message = "Engine Exception"


class StoreError(ServiceError):
    """Vector store, metadata database or blob storage failure."""

    status = STATUS_STORE
    public_message = "Store Exception"
