import pytest

from src.common.auth import SessionHandler
from src.common.models import Viewer
from src.feed.client import FeedClient
from src.feed.mutations import MutationEngine
from src.feed.notifications import LogNotifier
from src.feed.store import FeedStore
from tests.factories import BASE_URL, FakeApi


@pytest.fixture
def viewer() -> Viewer:
    return Viewer(id="viewer-1", name="Reader", role="USER")


@pytest.fixture
def session(tmp_path, viewer) -> SessionHandler:
    handler = SessionHandler(session_file=tmp_path / "session.json")
    handler.sign_in("token-123", viewer)
    return handler


@pytest.fixture
def anonymous(tmp_path) -> SessionHandler:
    return SessionHandler(session_file=tmp_path / "missing.json")


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def client(session, api) -> FeedClient:
    return FeedClient(session, base_url=BASE_URL, transport=api.transport())


@pytest.fixture
def notifier() -> LogNotifier:
    return LogNotifier()


@pytest.fixture
def redirects() -> list[str]:
    return []


@pytest.fixture
def store() -> FeedStore:
    return FeedStore()


@pytest.fixture
def engine(client, store, session, notifier, redirects) -> MutationEngine:
    return MutationEngine(client, store, session, notifier=notifier, on_auth_required=redirects.append)
