"""Agent-side error taxonomy.

Every failed call to the desktop service is classified into one of:
- AgentAuthError: 401/403; the stored credential is no longer accepted and
  the session re-registers on its next tick
- TransientIOError: timeouts, transport failures, 429 and 5xx; retried on the
  next scheduled tick only, never in a busy loop
- AgentRequestError: any other 4xx; the request itself is wrong and is not
  retried as-is
"""

from typing import Any


class AgentError(Exception):
    """Base exception for agent failures.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status of the failed response, if one was received
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AgentAuthError(AgentError):
    """Credential missing, unknown to the server, or used for the wrong device."""


class TransientIOError(AgentError):
    """Network or service hiccup; safe to retry on the next tick."""


class AgentRequestError(AgentError):
    """Request rejected by the service.

    Attributes:
        code: The service's machine-readable error code (E_...), if any
        details: The service's itemized error details, if any
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        details: Any = None,
    ):
        super().__init__(message, status_code)
        self.code = code
        self.details = details
