import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from src.common.config import Settings
from src.common.models import Viewer

SESSION_COOKIE = "next-auth.session-token"
SECURE_SESSION_COOKIE = "__Secure-next-auth.session-token"
SESSION_MAX_AGE = timedelta(days=30)
MODERATOR_ROLES = ("MODERATOR", "ADMIN")


@dataclass
class SessionData:
    """Stores an authenticated session and the viewer it belongs to."""

    token: str
    viewer: Viewer
    expires_at: Optional[datetime] = None

    def is_expired(self) -> bool:
        """Check if the session is expired (with 5 min buffer)."""
        if self.expires_at is None:
            return False
        return datetime.now() >= self.expires_at - timedelta(minutes=5)


def can_moderate(viewer: Optional[Viewer], author_id: str) -> bool:
    """Whether the viewer may edit or delete content written by author_id."""
    if viewer is None:
        return False
    return viewer.id == author_id or viewer.role in MODERATOR_ROLES


def build_sign_in_url(sign_in_url: str, callback_url: Optional[str] = None) -> str:
    """Build the sign-in URL, keeping the page the user came from."""
    if not callback_url:
        return sign_in_url
    return f"{sign_in_url}?{urlencode({'callbackUrl': callback_url})}"


class SessionHandler:
    """Holds the viewer session and persists it between runs."""

    def __init__(
        self,
        session_file: Optional[Path] = None,
        secure_cookie: bool = False,
    ):
        self.session_file = session_file or Path.home() / ".reading_club_session.json"
        self.secure_cookie = secure_cookie
        self._session: Optional[SessionData] = None

    @property
    def viewer(self) -> Optional[Viewer]:
        """The signed-in viewer, or None when there is no usable session."""
        session = self.get_session()
        return session.viewer if session else None

    def get_session(self) -> Optional[SessionData]:
        """Get the current session, dropping it if it has expired."""
        if not self._session:
            self._load_session()

        if self._session and self._session.is_expired():
            self._session = None

        return self._session

    def is_authenticated(self) -> bool:
        return self.get_session() is not None

    def sign_in(self, token: str, viewer: Viewer, expires_at: Optional[datetime] = None) -> SessionData:
        """Store a session issued by the authentication provider."""
        self._session = SessionData(
            token=token,
            viewer=viewer,
            expires_at=expires_at or datetime.now() + SESSION_MAX_AGE,
        )
        self._save_session()
        return self._session

    def sign_out(self) -> None:
        self._session = None
        if self.session_file.exists():
            self.session_file.unlink()

    def cookies(self) -> dict[str, str]:
        """Session cookie for API requests (empty when signed out)."""
        session = self.get_session()
        if not session:
            return {}
        name = SECURE_SESSION_COOKIE if self.secure_cookie else SESSION_COOKIE
        return {name: session.token}

    def _save_session(self) -> None:
        """Save session to file."""
        if not self._session:
            return

        data = {
            "token": self._session.token,
            "viewer": self._session.viewer.model_dump(),
            "expires_at": self._session.expires_at.isoformat() if self._session.expires_at else None,
        }

        self.session_file.write_text(json.dumps(data, indent=2))

    def _load_session(self) -> None:
        """Load session from file."""
        if not self.session_file.exists():
            return

        data = json.loads(self.session_file.read_text())
        self._session = SessionData(
            token=data["token"],
            viewer=Viewer.model_validate(data["viewer"]),
            expires_at=datetime.fromisoformat(data["expires_at"]) if data.get("expires_at") else None,
        )

    @classmethod
    def from_env(cls) -> "SessionHandler":
        """Create a SessionHandler from environment variables.

        A session token together with a viewer id seeds the session
        directly; otherwise the session file is used.
        """
        settings = Settings.from_env()
        handler = cls(session_file=settings.session_file, secure_cookie=settings.secure_cookie)

        if settings.session_token and settings.viewer_id:
            handler._session = SessionData(
                token=settings.session_token,
                viewer=Viewer(
                    id=settings.viewer_id,
                    name=settings.viewer_name,
                    role=settings.viewer_role,
                ),
            )

        return handler
