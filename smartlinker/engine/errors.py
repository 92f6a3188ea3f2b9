"""Exception types raised by the link engine."""

from __future__ import annotations

from typing import Iterable, List


class SmartLinkError(Exception):
    """Base class for engine errors."""


class ConfigurationError(SmartLinkError):
    """A required endpoint or credential is missing."""


class UpstreamUnavailable(SmartLinkError):
    """An external collaborator timed out or failed with a server error."""

    def __init__(self, service: str, detail: str = "") -> None:
        self.service = service
        self.detail = detail
        message = f"{service} unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ValidationError(SmartLinkError):
    """The request is missing required fields."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing: List[str] = list(missing)
        super().__init__("Missing required fields: " + ", ".join(self.missing))
