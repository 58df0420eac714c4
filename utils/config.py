# utils/config.py
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Research backend
    python_backend_base_url: Optional[str] = None
    python_backend_url: Optional[str] = None  # legacy single-endpoint URL
    backend_service_token: Optional[str] = None
    backend_timeout: Optional[float] = None

    # Session provider (identity headers set by the auth proxy in front of us)
    auth_user_header: str = "X-Forwarded-User"
    auth_email_header: str = "X-Forwarded-Email"

    # Proxy server
    cors_origins: List[str] = [
        "http://localhost:8501",  # Streamlit
        "http://127.0.0.1:8501",
    ]

    # Workspace clients
    proxy_base_url: str = "http://localhost:8080"
    proxy_timeout: Optional[float] = None
    require_login: bool = False
    dev_user_id: Optional[str] = "local-dev"
    dev_user_email: Optional[str] = None

    # Pipeline animation (seconds)
    stage_dwell_seconds: float = 1.2
    stage_settle_seconds: float = 0.3

    # Logging
    project_name: str = "research-workspace"
    log_level: str = "INFO"
    log_dir: str = "./logs"
    log_to_file: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings():
    """Get cached settings instance"""
    return Settings()
