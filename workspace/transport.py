# workspace/transport.py
"""
Client for the workspace's own proxy endpoints.

ProxyClient makes blocking requests calls; AsyncProxyClient runs them in
worker threads so the research session and attachment tracker can await them
from the event loop. Every failure surfaces as a ProxyError.
"""

import asyncio
from typing import Any, Dict, List, Optional

import requests

from utils.config import Settings
from utils.logger import get_workspace_logger

logger = get_workspace_logger("transport")


class ProxyError(Exception):
    """A proxy call failed: unreachable, non-success status, or unparsable body."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __str__(self) -> str:
        return self.message


def error_message(payload: Any, fallback: str) -> str:
    """Human-readable message from an error body, else `fallback`."""
    if isinstance(payload, dict):
        for key in ("error", "detail", "message"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return fallback


class ProxyClient:
    """Blocking client for the /api endpoints, sending the caller's identity."""

    def __init__(
        self,
        base_url: str,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        user_header: str = "X-Forwarded-User",
        email_header: str = "X-Forwarded-Email",
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.identity_headers: Dict[str, str] = {}
        if user_id:
            self.identity_headers[user_header] = user_id
        if email:
            self.identity_headers[email_header] = email

    @classmethod
    def from_settings(cls, settings: Settings, user_id: Optional[str] = None, email: Optional[str] = None) -> "ProxyClient":
        return cls(
            settings.proxy_base_url,
            user_id=user_id,
            email=email,
            user_header=settings.auth_user_header,
            email_header=settings.auth_email_header,
            timeout=settings.proxy_timeout,
        )

    def _request(self, method: str, path: str, fallback: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(
                method,
                url,
                headers=self.identity_headers,
                timeout=self.timeout,
                **kwargs
            )
        except requests.RequestException as e:
            raise ProxyError(f"{fallback}: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not response.ok:
            raise ProxyError(error_message(payload, fallback), response.status_code, payload)
        if payload is None:
            raise ProxyError(f"{fallback}: malformed response", response.status_code)
        return payload

    def research(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request("POST", "/api/research", "Research failed", json=payload)
        if not isinstance(data, dict):
            raise ProxyError("Research failed: malformed response")
        return data

    def list_documents(self, skip: int = 0, limit: int = 50) -> List[Dict[str, Any]]:
        data = self._request(
            "GET", "/api/documents", "Failed to load documents",
            params={"skip": skip, "limit": limit}
        )
        documents = data.get("documents") if isinstance(data, dict) else None
        return documents if isinstance(documents, list) else []

    def upload_document(self, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
        """Upload one file and return the backend's document id."""
        data = self._request(
            "POST", "/api/documents/upload", "Upload failed",
            files={"file": (filename, content, content_type or "application/octet-stream")}
        )
        document_id = data.get("document_id") if isinstance(data, dict) else None
        if not document_id:
            raise ProxyError("Upload failed: no document id returned", payload=data)
        return str(document_id)

    def delete_document(self, document_id: str) -> Any:
        return self._request("DELETE", f"/api/documents/{document_id}", "Document delete failed")


class AsyncProxyClient:
    """Awaitable facade over ProxyClient."""

    def __init__(self, client: ProxyClient):
        self.client = client

    async def research(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await asyncio.to_thread(self.client.research, payload)

    async def list_documents(self, skip: int = 0, limit: int = 50) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self.client.list_documents, skip, limit)

    async def upload_document(self, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
        return await asyncio.to_thread(self.client.upload_document, filename, content, content_type)

    async def delete_document(self, document_id: str) -> Any:
        return await asyncio.to_thread(self.client.delete_document, document_id)
