"""Exceptions raised while assembling a KPI query."""

from typing import Optional


class KPIServiceError(Exception):
    """Base class for errors that abort a KPI query."""
    code = 'INTERNAL_SERVER_ERROR'
    status_code = 500


class ConfigurationError(KPIServiceError):
    """A credential or identifier required by a provider is missing."""
    code = 'CONFIGURATION_ERROR'
    status_code = 500


class RetrievalError(KPIServiceError):
    """A provider was unreachable or returned something we cannot use."""
    code = 'RETRIEVAL_ERROR'
    status_code = 502

    def __init__(self, message: str, provider: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.upstream_status = upstream_status
