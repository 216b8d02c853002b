"""
Configuration module for Sheet Editor.
Handles loading settings, constants, document/sheet mappings and webhook endpoints.

Configuration is read once at startup into immutable objects that are passed
to the components needing them. A local .env file is supported for development.
"""

import os
import re
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

# ============================================================================
# Constants
# ============================================================================

# Webhook defaults
DEFAULT_N8N_PORT = '5678'
DEFAULT_FETCH_WEBHOOK = 'Fetch-Rows-Multi'
DEFAULT_UPDATE_WEBHOOK = 'Update-Row-Multi'
DEFAULT_DELETE_WEBHOOK = 'Delete-Row'
WEBHOOK_PATH_PREFIX = '/webhook/'

# Request settings
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30

# Display settings
DEFAULT_PAGE_SIZE = 20
TRUNCATE_LENGTH = 60

# Log settings
DEFAULT_LOG_DIR = './logs'
DEFAULT_LOG_RETENTION_DAYS = 7
VALID_LOG_FORMATS = ('text', 'json')
VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')

# Selection persistence
DEFAULT_STATE_DATABASE_FILE = './data/sheet_editor.db'

# Response truncation limit for logging
RESPONSE_BODY_LOG_CHARS = 1000

# Sheet entries look like "Q1[name]"; the bracketed match column is not used here
MATCH_COLUMN_PATTERN = re.compile(r'\[.*\]')

# Shared application logger; handlers are attached by utils.setup_logging()
LOGGER_NAME = 'sheet_editor'
logger = logging.getLogger(LOGGER_NAME)

DOMAIN_CONFIG_ERROR = (
    'Environment configuration error: Either N8N_LOCALHOST or N8N_CUSTOM_DOMAIN '
    'must be set in your .env file.'
)


class ConfigurationError(Exception):
    """Raised when no webhook domain is configured or no endpoint URL is available."""
    pass


# ============================================================================
# Settings (Immutable)
# ============================================================================

def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    """Read a positive integer setting, falling back to the default when invalid."""
    raw = environ.get(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        logger.warning(
            f"Invalid integer for {name}: '{raw}' - using default {default}"
        )
        return default
    if value <= 0:
        logger.warning(
            f"{name} must be positive, got {value} - using default {default}"
        )
        return default
    return value


def _str_setting(environ: Mapping[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
    """Read a string setting, treating blank values as unset."""
    raw = environ.get(name)
    if raw is None:
        return default
    raw = raw.strip()
    return raw or default


@dataclass(frozen=True)
class EditorSettings:
    """
    Immutable snapshot of the environment-style configuration surface.

    Built once at startup; nothing reads the environment after this.
    """
    doc_sheet_config: str = ''
    localhost: Optional[str] = None
    custom_domain: Optional[str] = None
    port: str = DEFAULT_N8N_PORT
    fetch_webhook: str = DEFAULT_FETCH_WEBHOOK
    update_webhook: str = DEFAULT_UPDATE_WEBHOOK
    delete_webhook: str = DEFAULT_DELETE_WEBHOOK

    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    page_size: int = DEFAULT_PAGE_SIZE
    state_database_file: str = DEFAULT_STATE_DATABASE_FILE

    # Logging
    log_dir: str = DEFAULT_LOG_DIR
    log_format: str = 'text'  # 'text' or 'json'
    log_level: str = 'INFO'
    log_retention_days: int = DEFAULT_LOG_RETENTION_DAYS

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'EditorSettings':
        """Create EditorSettings from an environment mapping (defaults to os.environ)."""
        if environ is None:
            environ = os.environ

        log_format = (_str_setting(environ, 'LOG_FORMAT', 'text') or 'text').lower()
        if log_format not in VALID_LOG_FORMATS:
            logger.warning(f"Unknown LOG_FORMAT '{log_format}' - using text")
            log_format = 'text'

        log_level = (_str_setting(environ, 'LOG_LEVEL', 'INFO') or 'INFO').upper()
        if log_level not in VALID_LOG_LEVELS:
            logger.warning(f"Unknown LOG_LEVEL '{log_level}' - using INFO")
            log_level = 'INFO'

        return cls(
            doc_sheet_config=environ.get('DOC_SHEET_CONFIG', '') or '',
            localhost=_str_setting(environ, 'N8N_LOCALHOST'),
            custom_domain=_str_setting(environ, 'N8N_CUSTOM_DOMAIN'),
            port=_str_setting(environ, 'N8N_PORT', DEFAULT_N8N_PORT),
            fetch_webhook=_str_setting(environ, 'N8N_FETCH_WEBHOOK', DEFAULT_FETCH_WEBHOOK),
            update_webhook=_str_setting(environ, 'N8N_UPDATE_WEBHOOK', DEFAULT_UPDATE_WEBHOOK),
            delete_webhook=_str_setting(environ, 'N8N_DELETE_WEBHOOK', DEFAULT_DELETE_WEBHOOK),
            request_timeout_seconds=_int_setting(
                environ, 'REQUEST_TIMEOUT_SECONDS', DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
            page_size=_int_setting(environ, 'PAGE_SIZE', DEFAULT_PAGE_SIZE),
            state_database_file=_str_setting(
                environ, 'STATE_DATABASE_FILE', DEFAULT_STATE_DATABASE_FILE
            ),
            log_dir=_str_setting(environ, 'LOG_DIR', DEFAULT_LOG_DIR),
            log_format=log_format,
            log_level=log_level,
            log_retention_days=_int_setting(environ, 'LOG_RETENTION_DAYS', DEFAULT_LOG_RETENTION_DAYS),
        )


# ============================================================================
# Document/Sheet Mapping
# ============================================================================

def parse_doc_sheet_config(raw: Optional[str]) -> Dict[str, List[str]]:
    """
    Parse the document/sheet mapping string.

    Format: "doc_name:sheet1[matchCol1],sheet2[matchCol2];doc_name2:sheet3[matchCol3]"

    Empty or malformed segments are skipped rather than failing the parse.
    A later segment for the same document replaces an earlier one.

    Args:
        raw: The mapping string (None or blank means no documents)

    Returns:
        Dict of document name to ordered list of sheet names
    """
    result: Dict[str, List[str]] = {}
    if not raw or not raw.strip():
        return result

    for segment in raw.split(';'):
        if not segment.strip():
            continue
        doc_name, separator, sheets_part = segment.partition(':')
        doc_name = doc_name.strip()
        if not separator or not doc_name or not sheets_part.strip():
            logger.debug(f"Skipping malformed document entry: '{segment}'")
            continue

        sheets: List[str] = []
        for entry in sheets_part.split(','):
            # Strip the [matchCol] hint
            sheet_name = MATCH_COLUMN_PATTERN.sub('', entry.strip()).strip()
            if sheet_name and sheet_name not in sheets:
                sheets.append(sheet_name)

        if not sheets:
            logger.debug(f"Skipping document '{doc_name}' with no sheets")
            continue
        result[doc_name] = sheets

    return result


# ============================================================================
# Webhook Domains and Endpoints
# ============================================================================

@dataclass(frozen=True)
class DomainValidation:
    """Result of checking that at least one webhook domain is configured."""
    is_valid: bool
    localhost: Optional[str] = None
    custom_domain: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class WebhookDomain:
    """A base domain the webhooks can be reached on."""
    type: str  # 'localhost' or 'custom'
    domain: str
    protocol: str


@dataclass(frozen=True)
class EndpointSet:
    """Ordered candidate URLs per operation; localhost variant first."""
    fetch: Tuple[str, ...] = ()
    update: Tuple[str, ...] = ()
    delete: Tuple[str, ...] = ()


def validate_domain_config(settings: EditorSettings) -> DomainValidation:
    """
    Validate that at least one of the webhook domains is present.

    Returns:
        DomainValidation with is_valid and an error message if invalid
    """
    if not settings.localhost and not settings.custom_domain:
        return DomainValidation(is_valid=False, error=DOMAIN_CONFIG_ERROR)

    return DomainValidation(
        is_valid=True,
        localhost=settings.localhost or None,
        custom_domain=settings.custom_domain or None,
    )


def get_available_domains(settings: EditorSettings) -> List[WebhookDomain]:
    """
    Get the configured webhook domains in priority order.

    Raises:
        ConfigurationError: If neither domain is configured
    """
    validation = validate_domain_config(settings)
    if not validation.is_valid:
        raise ConfigurationError(validation.error)

    domains = []
    if validation.localhost:
        domains.append(WebhookDomain(type='localhost', domain=validation.localhost, protocol='http'))
    if validation.custom_domain:
        domains.append(WebhookDomain(type='custom', domain=validation.custom_domain, protocol='https'))
    return domains


def build_webhook_url(domain: str, webhook_name: str, is_localhost: bool = False,
                      port: str = DEFAULT_N8N_PORT) -> str:
    """Build a webhook URL: localhost uses http plus the port, custom domains use https."""
    protocol = 'http' if is_localhost else 'https'
    port_part = f':{port}' if is_localhost else ''
    return f"{protocol}://{domain}{port_part}{WEBHOOK_PATH_PREFIX}{webhook_name}"


def build_endpoint_urls(settings: EditorSettings, webhook_name: str) -> Tuple[str, ...]:
    """Build the ordered candidate URLs for one webhook."""
    return tuple(
        build_webhook_url(d.domain, webhook_name, d.type == 'localhost', settings.port)
        for d in get_available_domains(settings)
    )


def resolve_endpoint_set(settings: EditorSettings) -> EndpointSet:
    """
    Build fetch/update/delete URL lists from the settings.

    Raises:
        ConfigurationError: If neither domain is configured
    """
    return EndpointSet(
        fetch=build_endpoint_urls(settings, settings.fetch_webhook),
        update=build_endpoint_urls(settings, settings.update_webhook),
        delete=build_endpoint_urls(settings, settings.delete_webhook),
    )


# ============================================================================
# Editor Configuration (built once at startup)
# ============================================================================

@dataclass(frozen=True)
class EditorConfig:
    """
    Everything the editor needs from configuration.

    config_error is the persistent banner text shown when no webhook domain is
    configured; endpoints is None in that case.
    """
    settings: EditorSettings
    doc_sheets: Dict[str, List[str]] = field(default_factory=dict)
    endpoints: Optional[EndpointSet] = None
    config_error: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: EditorSettings) -> 'EditorConfig':
        """Resolve mappings and endpoints from already-loaded settings."""
        doc_sheets = parse_doc_sheet_config(settings.doc_sheet_config)
        validation = validate_domain_config(settings)
        if not validation.is_valid:
            return cls(settings=settings, doc_sheets=doc_sheets, config_error=validation.error)
        return cls(settings=settings, doc_sheets=doc_sheets, endpoints=resolve_endpoint_set(settings))

    @property
    def is_valid(self) -> bool:
        return self.config_error is None


def load_editor_config(environ: Optional[Mapping[str, str]] = None,
                       env_file: Optional[str] = None) -> EditorConfig:
    """
    Load configuration once at startup.

    When reading the process environment, a .env file (or env_file) is loaded
    first without overriding variables that are already set.

    Args:
        environ: Explicit environment mapping (skips .env loading)
        env_file: Path to a .env file

    Returns:
        EditorConfig instance
    """
    if environ is None:
        load_dotenv(dotenv_path=env_file)
        environ = os.environ
    return EditorConfig.from_settings(EditorSettings.from_env(environ))


def log_environment_config(config: EditorConfig, logger_instance=None) -> None:
    """Log the webhook configuration status for debugging."""
    if not logger_instance:
        logger_instance = logger

    settings = config.settings
    logger_instance.info("=== Environment Configuration ===")
    logger_instance.info(f"N8N_LOCALHOST: {settings.localhost or 'NOT SET'}")
    logger_instance.info(f"N8N_CUSTOM_DOMAIN: {settings.custom_domain or 'NOT SET'}")
    port_note = ' (default)' if settings.port == DEFAULT_N8N_PORT else ''
    logger_instance.info(f"N8N_PORT: {settings.port}{port_note}")
    logger_instance.info(f"Configuration valid: {config.is_valid}")
    logger_instance.info(f"Documents configured: {len(config.doc_sheets)}")

    if not config.is_valid:
        logger_instance.error(config.config_error)
    else:
        for url in config.endpoints.fetch:
            logger_instance.info(f"Fetch endpoint: {url}")
