"""
Error type constants for Sheet Editor.

Centralizes the labels attached to failed webhook attempts so log lines and
exhaustion errors use the same vocabulary.
"""

from enum import Enum

import requests


class ErrorType(str, Enum):
    """
    Enumeration of all error types used in the application.

    Inherits from str to allow direct use as string values.
    """
    # API client errors
    API_BAD_REQUEST = 'api_bad_request'
    API_UNAUTHORIZED = 'api_unauthorized'
    API_FORBIDDEN = 'api_forbidden'
    API_NOT_FOUND = 'api_not_found'
    API_CONFLICT = 'api_conflict'
    API_VALIDATION_ERROR = 'api_validation_error'
    API_RATE_LIMITED = 'api_rate_limited'

    # Server errors
    SERVER_ERROR = 'server_error'
    SERVER_BAD_GATEWAY = 'server_bad_gateway'
    SERVER_UNAVAILABLE = 'server_unavailable'
    SERVER_GATEWAY_TIMEOUT = 'server_gateway_timeout'

    # Network/connection errors
    REQUEST_EXCEPTION = 'request_exception'
    CONNECTION_ERROR = 'connection_error'
    TIMEOUT_ERROR = 'timeout_error'

    # Application-level errors
    INVALID_RESPONSE = 'invalid_response'
    CONFIG_ERROR = 'config_error'
    UNKNOWN = 'unknown'

    def __str__(self) -> str:
        return self.value


def get_error_type_for_status(status_code: int) -> ErrorType:
    """
    Map an HTTP status code to an error type.

    Args:
        status_code: HTTP status code

    Returns:
        The matching ErrorType
    """
    if status_code == 400:
        return ErrorType.API_BAD_REQUEST
    elif status_code == 401:
        return ErrorType.API_UNAUTHORIZED
    elif status_code == 403:
        return ErrorType.API_FORBIDDEN
    elif status_code == 404:
        return ErrorType.API_NOT_FOUND
    elif status_code == 409:
        return ErrorType.API_CONFLICT
    elif status_code == 422:
        return ErrorType.API_VALIDATION_ERROR
    elif status_code == 429:
        return ErrorType.API_RATE_LIMITED
    elif status_code == 502:
        return ErrorType.SERVER_BAD_GATEWAY
    elif status_code == 503:
        return ErrorType.SERVER_UNAVAILABLE
    elif status_code == 504:
        return ErrorType.SERVER_GATEWAY_TIMEOUT
    elif status_code >= 500:
        return ErrorType.SERVER_ERROR
    else:
        return ErrorType.UNKNOWN


def categorize_exception(error: BaseException) -> ErrorType:
    """
    Label an exception raised while calling a webhook.

    Timeouts are checked before connection errors because requests'
    ConnectTimeout inherits from both.

    Args:
        error: The exception raised by a webhook attempt

    Returns:
        The matching ErrorType
    """
    # Import here to avoid circular dependency at module load time
    from webhooks import InvalidResponseError
    from config import ConfigurationError

    if isinstance(error, InvalidResponseError):
        return ErrorType.INVALID_RESPONSE
    if isinstance(error, ConfigurationError):
        return ErrorType.CONFIG_ERROR

    if isinstance(error, requests.exceptions.HTTPError):
        response = getattr(error, 'response', None)
        if response is not None:
            return get_error_type_for_status(response.status_code)
        return ErrorType.REQUEST_EXCEPTION
    if isinstance(error, (requests.exceptions.Timeout, TimeoutError)):
        return ErrorType.TIMEOUT_ERROR
    if isinstance(error, (requests.exceptions.ConnectionError, ConnectionError)):
        return ErrorType.CONNECTION_ERROR
    if isinstance(error, requests.exceptions.RequestException):
        return ErrorType.REQUEST_EXCEPTION
    if isinstance(error, ValueError):
        # JSON decoding failures surface as ValueError subclasses
        return ErrorType.INVALID_RESPONSE

    return ErrorType.UNKNOWN
