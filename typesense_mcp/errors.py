from __future__ import annotations

from typing import Optional


class TypesenseMCPError(Exception):
    """Base class for errors raised by the adapter."""


class ConfigurationError(TypesenseMCPError):
    """Startup configuration is missing or malformed."""


class ValidationError(TypesenseMCPError):
    """A tool, prompt or resource request is missing a required argument."""


class UpstreamError(TypesenseMCPError):
    """A Typesense call failed while serving a request."""


class NotFoundPolicyError(UpstreamError):
    """Typesense has no collections to expose."""


class ServiceError(TypesenseMCPError):
    """Raw failure of a single Typesense HTTP call."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
