"""
Pytest configuration and shared fixtures for Sheet Editor tests.
"""

import json
import logging
import sys
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

LOCAL_FETCH_URL = 'http://localhost:5678/webhook/Fetch-Rows-Multi'
CUSTOM_FETCH_URL = 'https://n8n.example.com/webhook/Fetch-Rows-Multi'
LOCAL_UPDATE_URL = 'http://localhost:5678/webhook/Update-Row-Multi'
CUSTOM_UPDATE_URL = 'https://n8n.example.com/webhook/Update-Row-Multi'
LOCAL_DELETE_URL = 'http://localhost:5678/webhook/Delete-Row'
CUSTOM_DELETE_URL = 'https://n8n.example.com/webhook/Delete-Row'


@pytest.fixture(autouse=True)
def reset_app_logger():
    """Detach handlers added by setup_logging so tests don't share log files."""
    yield
    app_logger = logging.getLogger('sheet_editor')
    for handler in app_logger.handlers[:]:
        handler.close()
        app_logger.removeHandler(handler)
    app_logger.setLevel(logging.NOTSET)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def base_environ(temp_dir):
    """Environment mapping with both webhook domains configured."""
    return {
        'DOC_SHEET_CONFIG': 'Sales:Q1[name],Q2[name];HR:Roster[id]',
        'N8N_LOCALHOST': 'localhost',
        'N8N_CUSTOM_DOMAIN': 'n8n.example.com',
        'STATE_DATABASE_FILE': str(temp_dir / 'state.db'),
        'LOG_DIR': str(temp_dir / 'logs'),
    }


@pytest.fixture
def mock_env(base_environ, monkeypatch):
    """Set up environment variables for tests that read os.environ."""
    for name in ('N8N_PORT', 'N8N_FETCH_WEBHOOK', 'N8N_UPDATE_WEBHOOK', 'N8N_DELETE_WEBHOOK',
                 'LOG_FORMAT', 'LOG_LEVEL', 'PAGE_SIZE', 'REQUEST_TIMEOUT_SECONDS'):
        monkeypatch.delenv(name, raising=False)
    for name, value in base_environ.items():
        monkeypatch.setenv(name, value)
    yield base_environ


@pytest.fixture
def editor_config(base_environ):
    """EditorConfig with both domains configured."""
    from config import load_editor_config
    return load_editor_config(environ=base_environ)


def build_response(status_code=200, body=None, url=LOCAL_FETCH_URL):
    """Build a real requests.Response with a JSON (or raw text) body."""
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response.reason = 'OK' if status_code < 400 else 'Error'
    if body is None:
        response._content = b''
    elif isinstance(body, str):
        response._content = body.encode('utf-8')
        response.headers['Content-Type'] = 'text/plain'
    else:
        response._content = json.dumps(body).encode('utf-8')
        response.headers['Content-Type'] = 'application/json'
    return response


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def make_session():
    """
    Build a fake requests session whose post() answers per URL.

    Each route value is a Response to return or an exception to raise.
    """
    def _make(routes):
        session = MagicMock()

        def post(url, json=None, headers=None, timeout=None):
            outcome = routes[url]
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome

        session.post.side_effect = post
        return session
    return _make


@pytest.fixture
def sample_rows():
    """Rows as returned by the fetch webhook."""
    return [
        {'row_number': 2, 'name': 'Ann', 'email': 'ann@example.com', 'age': 31},
        {'row_number': 3, 'name': 'Bob', 'email': 'bob@example.com', 'age': None},
        {'row_number': 4, 'name': 'Cleo', 'email': 'cleo@example.org', 'age': 27},
    ]
