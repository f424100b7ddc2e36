"""
Storage Errors — Tagged Failure Kinds

Every failure coming out of the storage adapter is an InfluxDBClientError
carrying an ErrorKind, so handlers can map failures to responses by kind
instead of digging status codes out of library exceptions.
"""

from enum import Enum
from typing import Optional

import requests
import urllib3
from influxdb_client.client.exceptions import InfluxDBError
from influxdb_client.rest import ApiException


class ErrorKind(str, Enum):
    """Classification of a database failure."""
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


class InfluxDBClientError(Exception):
    """Custom exception for InfluxDB client errors."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


def kind_for_status(status_code: Optional[int]) -> ErrorKind:
    """
    Map an HTTP status returned by InfluxDB to an ErrorKind.

    401 and 403 both mean the token cannot reach the resource.
    """
    if status_code in (401, 403):
        return ErrorKind.UNAUTHORIZED
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code == 429 or (status_code is not None and status_code >= 500):
        return ErrorKind.TRANSIENT
    return ErrorKind.UNKNOWN


def _status_of(exc: BaseException) -> Optional[int]:
    """Extract the HTTP status embedded in a library exception, if any."""
    # influxdb_client.rest.ApiException
    status = getattr(exc, "status", None)
    if isinstance(status, int):
        return status

    # influxdb_client InfluxDBError wraps a urllib3 response,
    # requests.HTTPError wraps a requests.Response
    response = getattr(exc, "response", None)
    if response is not None:
        for attr in ("status", "status_code"):
            status = getattr(response, attr, None)
            if isinstance(status, int):
                return status
    return None


def classify_error(exc: BaseException, action: str) -> InfluxDBClientError:
    """
    Convert a library exception into an InfluxDBClientError.

    Args:
        exc: Exception raised by influxdb_client, requests or urllib3
        action: Short description of what failed, used in the message

    Returns:
        InfluxDBClientError with kind and status_code filled in
    """
    if isinstance(exc, InfluxDBClientError):
        return exc

    if isinstance(exc, (requests.ConnectionError, requests.Timeout, urllib3.exceptions.HTTPError)):
        return InfluxDBClientError(f"{action} failed: {exc}", ErrorKind.TRANSIENT)

    status_code = None
    if isinstance(exc, (ApiException, InfluxDBError, requests.HTTPError)):
        status_code = _status_of(exc)

    return InfluxDBClientError(
        f"{action} failed: {exc}",
        kind_for_status(status_code),
        status_code,
    )
