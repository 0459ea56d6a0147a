"""Error types raised while building reports."""

from typing import Optional


class ReportError(Exception):
    """Base class for report errors."""


class InvalidRangeError(ReportError):
    """The requested time range is missing or cannot be parsed."""


class UpstreamFetchError(ReportError):
    """A call to the Jira API failed.

    Carries the HTTP status and the decoded error payload when Jira
    answered at all, so the caller can re-emit them.
    """

    def __init__(self, message: str, status_code: Optional[int] = None,
                 payload=None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class MalformedRecordError(ReportError):
    """An issue record lacks a structure that cannot be defaulted in place."""
