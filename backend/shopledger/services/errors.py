# Overview: Error kinds shared by every job and callable.

from __future__ import annotations


class JobError(Exception):
    """
    Base class for failures surfaced to callers.

    Every error carries the original exception (if any) as `cause` so the
    API layer can report it without callers inspecting tracebacks. `retryable`
    tells the caller whether running the same request again can succeed.
    """
    kind = "Unknown"
    status_code = 500
    retryable = False

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "cause": f"{type(self.cause).__name__}: {self.cause}" if self.cause else None,
            "retryable": self.retryable,
        }


class NotFound(JobError):
    kind = "NotFound"
    status_code = 404


class InvalidRange(JobError):
    """Bad date/month range or malformed input."""
    kind = "InvalidRange"
    status_code = 400


class ExternalSystemFailure(JobError):
    """The back-office system or the FTP server failed."""
    kind = "ExternalSystemFailure"
    status_code = 502
    retryable = True


class PersistenceFailure(JobError):
    kind = "PersistenceFailure"
    status_code = 500
    retryable = True
