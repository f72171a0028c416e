import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from src.common.models import Role

DEFAULT_BASE_URL = "http://localhost:3000/api"
DEFAULT_PAGE_SIZE = 10


class Settings(BaseModel):
    """Runtime settings for the feed client and server."""

    base_url: str = DEFAULT_BASE_URL
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=100)
    request_timeout: float = Field(default=10.0, gt=0)
    sign_in_url: str = "/signin"

    # Session
    session_file: Path = Field(default_factory=lambda: Path.home() / ".reading_club_session.json")
    session_token: Optional[str] = None
    secure_cookie: bool = False
    viewer_id: Optional[str] = None
    viewer_name: Optional[str] = None
    viewer_role: Role = "USER"

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Create Settings from environment variables (overrides take precedence)."""
        env_mapping = {
            "READING_CLUB_BASE_URL": "base_url",
            "READING_CLUB_PAGE_SIZE": "page_size",
            "READING_CLUB_TIMEOUT": "request_timeout",
            "READING_CLUB_SIGN_IN_URL": "sign_in_url",
            "READING_CLUB_SESSION_FILE": "session_file",
            "READING_CLUB_SESSION_TOKEN": "session_token",
            "READING_CLUB_SECURE_COOKIE": "secure_cookie",
            "READING_CLUB_VIEWER_ID": "viewer_id",
            "READING_CLUB_VIEWER_NAME": "viewer_name",
            "READING_CLUB_VIEWER_ROLE": "viewer_role",
        }

        values = {}
        for env_var, field_name in env_mapping.items():
            value = os.environ.get(env_var)
            if value:
                values[field_name] = value

        return cls(**{**values, **overrides})
