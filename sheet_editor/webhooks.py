"""
Webhook client for Sheet Editor.
Fetches, updates and deletes sheet rows through the configured n8n webhooks,
falling back from one endpoint to the next until one succeeds.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import requests
from jsonschema import validate, ValidationError as SchemaValidationError

from config import (
    EditorConfig, EndpointSet, ConfigurationError, DOMAIN_CONFIG_ERROR,
    RESPONSE_BODY_LOG_CHARS
)
from error_types import categorize_exception
from utils import utc_now, get_api_headers, format_response_body, logger

T = TypeVar('T')

# Columns that carry the row identity and are never sent back as data
IDENTITY_COLUMNS = ('row_number', 'ROW_NUMBER')

# Fetch responses are a JSON array of flat row objects
ROWS_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "additionalProperties": {
            "type": ["string", "number", "integer", "boolean", "null"]
        }
    }
}


class InvalidResponseError(ValueError):
    """Raised when a webhook answers successfully but with an unusable body."""
    pass


class EndpointExhaustionError(Exception):
    """
    Raised when every candidate URL for an operation failed.

    Only the last failure is kept; earlier ones are logged as they happen.
    """

    def __init__(self, attempted_urls: Sequence[str], last_error: BaseException, op_type: str = ''):
        self.attempted_urls = list(attempted_urls)
        self.last_error = last_error
        self.op_type = op_type
        self.error_type = categorize_exception(last_error)
        self.status_code = None
        self.response_body = None

        response = getattr(last_error, 'response', None)
        if response is not None:
            self.status_code = response.status_code
            self.response_body = _response_body(response)

        label = f"{op_type} " if op_type else ''
        super().__init__(
            f"All {len(self.attempted_urls)} {label}endpoint(s) failed; "
            f"last error ({self.error_type}): {type(last_error).__name__}: {last_error}"
        )


def _response_body(response: requests.Response) -> Any:
    """Best-effort decoded response body: JSON when possible, else text."""
    try:
        return response.json()
    except ValueError:
        return response.text


# ============================================================================
# Endpoint Fallback
# ============================================================================

def try_endpoints(urls: Sequence[str], operation: Callable[[str], T], op_type: str = '') -> T:
    """
    Run an operation against each candidate URL in order until one succeeds.

    Attempts are strictly sequential: one attempt per URL, no retry, no
    backoff. Any exception from an attempt counts as that URL failing.

    Args:
        urls: Ordered candidate URLs
        operation: Callable taking a URL and returning the operation result
        op_type: Label for log lines (FETCH, UPDATE, DELETE)

    Returns:
        Result of the first successful attempt

    Raises:
        ConfigurationError: If urls is empty
        EndpointExhaustionError: If every URL failed (chained to the last error)
    """
    urls = list(urls)
    if not urls:
        raise ConfigurationError(f"No endpoint URLs configured for {op_type or 'operation'}")

    last_error = None
    for url in urls:
        logger.info(f"[{op_type}] Trying endpoint: {url}", extra={'operation': op_type, 'url': url})
        start_time = utc_now()
        try:
            result = operation(url)
        except Exception as e:
            last_error = e
            error_type = categorize_exception(e)
            logger.error(
                f"[{op_type}] Error with endpoint {url}: {error_type}: {type(e).__name__}: {e}",
                extra={'operation': op_type, 'url': url, 'error_type': str(error_type)}
            )
            continue

        duration_ms = int((utc_now() - start_time).total_seconds() * 1000)
        logger.info(
            f"[{op_type}] Endpoint succeeded: {url} [{duration_ms}ms]",
            extra={'operation': op_type, 'url': url, 'duration_ms': duration_ms}
        )
        return result

    raise EndpointExhaustionError(urls, last_error, op_type) from last_error


def describe_failure(error: EndpointExhaustionError, heading: str) -> str:
    """
    Build the operation-scoped error text shown to the user.

    Lists every attempted endpoint, then the last response body (or the
    error message when no response was received).
    """
    lines = [heading, "Tried endpoints:"]
    lines.extend(error.attempted_urls)
    detail = format_response_body(error.response_body)
    if not detail:
        detail = str(error.last_error) if error.last_error is not None else ''
    lines.append(detail)
    return "\n".join(lines)


# ============================================================================
# Payloads
# ============================================================================

def build_fetch_payload(doc: str, sheet: str) -> Dict[str, Any]:
    return {'doc': doc, 'sheet': sheet}


def build_update_payload(doc: str, sheet: str, row_index: Any, row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the update body: one root-level key per column.

    Identity columns are excluded and null cells are sent as empty strings.
    """
    payload = {'doc': doc, 'sheet': sheet, 'rowIndex': row_index}
    for column, value in row.items():
        if column in IDENTITY_COLUMNS:
            continue
        payload[column] = '' if value is None else value
    return payload


def build_delete_payload(doc: str, sheet: str, row_number: Any) -> Dict[str, Any]:
    return {'doc': doc, 'sheet': sheet, 'row_number': row_number}


def parse_rows_response(response: requests.Response) -> List[Dict[str, Any]]:
    """
    Decode a fetch response into a list of rows.

    An empty or null body means the sheet has no rows.

    Raises:
        InvalidResponseError: If the body is not a JSON array of flat objects
    """
    if not response.content or not response.content.strip():
        return []
    try:
        data = response.json()
    except ValueError as e:
        raise InvalidResponseError(f"Fetch response is not valid JSON: {e}") from e

    if data is None:
        return []
    try:
        validate(instance=data, schema=ROWS_SCHEMA)
    except SchemaValidationError as e:
        raise InvalidResponseError(f"Fetch response is not a list of rows: {e.message}") from e
    return [dict(row) for row in data]


# ============================================================================
# Client
# ============================================================================

class WebhookClient:
    """
    Calls the fetch/update/delete webhooks for a document/sheet pair.

    Uses one pooled requests session for all endpoints.
    """

    def __init__(self, config: EditorConfig, session: Optional[requests.Session] = None):
        self.config = config
        self._session = session

    @property
    def endpoints(self) -> EndpointSet:
        if self.config.endpoints is None:
            raise ConfigurationError(self.config.config_error or DOMAIN_CONFIG_ERROR)
        return self.config.endpoints

    def get_session(self) -> requests.Session:
        """Get or create a reusable requests session for connection pooling."""
        if self._session is None:
            self._session = requests.Session()
            adapter = requests.adapters.HTTPAdapter(
                pool_connections=10,
                pool_maxsize=10,
                max_retries=0  # Fallback happens across endpoints, not within one
            )
            self._session.mount('https://', adapter)
            self._session.mount('http://', adapter)
        return self._session

    def close(self):
        """Close the session (call on application shutdown)."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def _post(self, url: str, payload: Dict[str, Any]) -> requests.Response:
        """POST a JSON body; non-2xx responses raise requests.HTTPError."""
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Request: POST {url}")
            logger.debug(f"  Payload: {json.dumps(payload, default=str)}")

        response = self.get_session().post(
            url,
            json=payload,
            headers=get_api_headers(),
            timeout=self.config.settings.request_timeout_seconds,
        )

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Response: HTTP {response.status_code}")
            logger.debug(f"  Body: {response.text[:RESPONSE_BODY_LOG_CHARS]}")

        response.raise_for_status()
        return response

    def fetch_rows(self, doc: str, sheet: str) -> List[Dict[str, Any]]:
        """
        Fetch every row of a sheet.

        Raises:
            EndpointExhaustionError: If no endpoint returned a usable row list
        """
        payload = build_fetch_payload(doc, sheet)

        def make_request(url: str) -> List[Dict[str, Any]]:
            return parse_rows_response(self._post(url, payload))

        rows = try_endpoints(self.endpoints.fetch, make_request, 'FETCH')
        logger.info(
            f"Fetched {len(rows)} rows from '{doc}' / '{sheet}'",
            extra={'document': doc, 'sheet': sheet, 'operation': 'FETCH'}
        )
        return rows

    def update_row(self, doc: str, sheet: str, row_index: Any, row: Dict[str, Any]) -> requests.Response:
        """
        Send an edited row. The response body is not interpreted.

        Raises:
            EndpointExhaustionError: If every update endpoint failed
        """
        payload = build_update_payload(doc, sheet, row_index, row)
        response = try_endpoints(self.endpoints.update, lambda url: self._post(url, payload), 'UPDATE')
        logger.info(
            f"Updated row {row_index} in '{doc}' / '{sheet}'",
            extra={'document': doc, 'sheet': sheet, 'operation': 'UPDATE'}
        )
        return response

    def delete_row(self, doc: str, sheet: str, row_number: Any) -> requests.Response:
        """
        Delete a row by its identity.

        Raises:
            EndpointExhaustionError: If every delete endpoint failed
        """
        payload = build_delete_payload(doc, sheet, row_number)
        response = try_endpoints(self.endpoints.delete, lambda url: self._post(url, payload), 'DELETE')
        logger.info(
            f"Deleted row {row_number} from '{doc}' / '{sheet}'",
            extra={'document': doc, 'sheet': sheet, 'operation': 'DELETE'}
        )
        return response
