"""Error taxonomy shared by the context engine and completion orchestrator."""

from typing import Optional


class CopilotError(Exception):
    """Base class for all verse-copilot errors."""


class NotFoundError(CopilotError):
    """A reference, verse or chapter is absent from its data source.

    Expected and non-fatal: an untranslated verse or a missing corpus line is a
    normal state of a translation project.
    """


class UnavailableError(CopilotError):
    """An external dependency is down or did not answer in time."""


class ConfigurationInvalidError(CopilotError):
    """A required setting is missing or malformed."""


class BackendFailureError(CopilotError):
    """The completion backend returned no usable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RequestCancelledError(CopilotError):
    """The request was superseded by a user edit."""
