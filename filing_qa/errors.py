# =============================================================================
# Application Errors
# =============================================================================
#
# Every failure a handler can report falls into one of these kinds. Services
# raise these; the exception handler registered in `filing_qa.main` maps
# them to an HTTP status and a JSON body:
#
#   {"error": {"code": "...", "message": "...", "retryable": false}}
#
#   ValidationError      400  bad input, rejected before any side effect
#   NotFoundError        404  referenced document/question is absent
#   UpstreamServiceError 502  database/storage/LLM failed (504 on timeout)
#   ParseError           502  LLM reply did not match the expected shape
#   ConfigurationError   503  an external service has no credentials
#
# Upstream and parse errors are retryable: the client may resubmit the same
# request. The server itself never retries.
# =============================================================================

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"
    retryable: bool = False

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "retryable": self.retryable,
            }
        }


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class UpstreamServiceError(AppError):
    """A database, storage, or LLM call failed or timed out."""

    status_code = 502
    code = "upstream_error"
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        service: str,
        timeout: bool = False,
        code: str | None = None,
    ) -> None:
        super().__init__(message, code=code or ("upstream_timeout" if timeout else None))
        self.service = service
        self.timeout = timeout
        if timeout:
            self.status_code = 504


class ParseError(AppError):
    """The LLM reply could not be parsed into an answer."""

    status_code = 502
    code = "malformed_llm_reply"
    retryable = True


class ConfigurationError(AppError):
    """A required external service (e.g. the LLM) has no credentials."""

    status_code = 503
    code = "service_not_configured"
