# api/auth.py
"""
Request-scoped authentication context for the proxy endpoints.

The workspace sits behind an authenticating reverse proxy that forwards the
signed-in user's identity as request headers. Each request builds one
AuthContext from those headers; handlers receive it as a dependency instead
of looking the session up themselves.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from utils.config import Settings, get_settings


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller for a single request."""
    user_id: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)


ANONYMOUS = AuthContext()


def resolve_auth_context(request: Request, settings: Settings) -> AuthContext:
    """Build the caller's AuthContext from the session provider headers."""
    user_id = (request.headers.get(settings.auth_user_header) or "").strip()
    if not user_id:
        return ANONYMOUS

    email = (request.headers.get(settings.auth_email_header) or "").strip()
    return AuthContext(user_id=user_id, email=email or None)


def get_auth_context(request: Request, settings: Settings = Depends(get_settings)) -> AuthContext:
    """FastAPI dependency: one AuthContext per request."""
    return resolve_auth_context(request, settings)
