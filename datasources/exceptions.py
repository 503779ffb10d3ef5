# datasources/exceptions.py
from typing import Optional


class DataSourceError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SourceUnavailable(DataSourceError):
    """Transient: unreachable, 5xx or throttled. Worth retrying."""


class QueryTimeout(SourceUnavailable):
    """The backend did not answer within the connector timeout."""


class InvalidQuery(DataSourceError):
    """Rejected by the backend. Retrying the same query cannot succeed."""


class BackendStartupTimeout(DataSourceError):
    pass
