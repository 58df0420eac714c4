# api/gateway.py
"""
Backend Gateway Adapter.

Resolves where the research backend lives and builds the headers every
forwarded request carries. BackendGateway is the thin requests-based
transport the proxy endpoints use to reach it.
"""

from typing import Dict, Mapping, Optional
from urllib.parse import urlparse

import requests

from api.auth import AuthContext
from utils.config import Settings
from utils.logger import get_api_logger

logger = get_api_logger("gateway")

DEFAULT_BACKEND_URL = "http://localhost:8000/research"
DEFAULT_BACKEND_BASE_URL = "http://localhost:8000"


class BackendConfigurationError(RuntimeError):
    """The deployment is missing configuration needed to reach the backend."""


def resolve_backend_base_url(settings: Settings) -> str:
    """
    Return the research backend's base URL.

    PYTHON_BACKEND_BASE_URL wins. Otherwise the origin of the legacy
    PYTHON_BACKEND_URL (which points at the research endpoint itself) is used,
    and a local default when that does not parse.
    """
    if settings.python_backend_base_url:
        return settings.python_backend_base_url.rstrip("/")

    research_url = settings.python_backend_url or DEFAULT_BACKEND_URL
    parsed = urlparse(research_url)
    if not parsed.scheme or not parsed.netloc:
        return DEFAULT_BACKEND_BASE_URL
    return f"{parsed.scheme}://{parsed.netloc}"


def build_authenticated_headers(
    auth: AuthContext,
    settings: Settings,
    extra: Optional[Mapping[str, str]] = None,
) -> Optional[Dict[str, str]]:
    """
    Headers for a backend call made on behalf of `auth`.

    Returns None for an unauthenticated caller. Raises
    BackendConfigurationError when no service token is configured.
    """
    if not auth.is_authenticated:
        return None

    service_token = settings.backend_service_token
    if not service_token:
        logger.error("BACKEND_SERVICE_TOKEN is not configured")
        raise BackendConfigurationError("BACKEND_SERVICE_TOKEN is not configured")

    headers = dict(extra or {})
    headers["Authorization"] = f"Bearer {service_token}"
    headers["X-User-Id"] = auth.user_id
    if auth.email:
        headers["X-User-Email"] = auth.email
    return headers


class BackendGateway:
    """Sends requests to the research backend."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.base_url = resolve_backend_base_url(settings)
        self.session = session or requests.Session()

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def send(self, method: str, path: str, headers: Dict[str, str], **kwargs) -> requests.Response:
        """Forward one request; the response is returned whatever its status."""
        url = self.url_for(path)
        logger.debug(f"{method} {url}")
        return self.session.request(
            method,
            url,
            headers=headers,
            timeout=self.settings.backend_timeout,
            **kwargs
        )
