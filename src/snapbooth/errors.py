"""Error taxonomy shared by the encoders, services and HTTP layer."""

from enum import Enum
from typing import Optional


class SnapboothError(Exception):
    """Base class for errors reported to callers.

    Attributes:
        status_code: HTTP status used when the error reaches the API layer.
        code: Stable machine-readable identifier.
        retryable: Whether the same request may succeed later.
    """

    status_code = 500
    code = "INTERNAL_ERROR"
    retryable = False

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "retryable": self.retryable}


class ValidationError(SnapboothError):
    """Missing or unusable client input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(SnapboothError):
    """The referenced event or artifact does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class NothingToExport(NotFoundError):
    """An export was requested for an event without artifacts."""

    code = "NOTHING_TO_EXPORT"


class UpstreamUnavailable(SnapboothError):
    """The generative endpoint stayed in warm-up past the retry ceiling."""

    status_code = 503
    code = "MODEL_LOADING"
    retryable = True


class RestyleFailed(SnapboothError):
    """The generative endpoint returned a hard error."""

    status_code = 502
    code = "AI_FAILED"


class RestyleCancelled(SnapboothError):
    """The owning session went away while a restyle was pending."""

    status_code = 499
    code = "CANCELLED"


class EncodingFailure(SnapboothError):
    """An image or animation could not be encoded."""

    status_code = 500
    code = "ENCODING_FAILED"


class StorageWriteFailure(SnapboothError):
    """Object storage rejected a write."""

    status_code = 502
    code = "STORAGE_WRITE_FAILED"
    retryable = True


class FetchFailureReason(str, Enum):
    """Why a remote artifact fetch was rejected."""

    STATUS = "status"
    CONTENT_TYPE = "content_type"
    TIMEOUT = "timeout"
    REDIRECTS = "redirects"
    CONNECTION = "connection"


class RemoteFetchError(SnapboothError):
    """A stored artifact could not be fetched or failed validation."""

    status_code = 502
    code = "REMOTE_FETCH_FAILED"
    retryable = True

    def __init__(
        self,
        reason: FetchFailureReason,
        url: str,
        detail: str = "",
        status: Optional[int] = None,
    ) -> None:
        self.reason = reason
        self.url = url
        self.detail = detail
        self.status = status
        message = f"{reason.value} failure for {url}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
