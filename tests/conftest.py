import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import create_engine_with_retry, create_tables, make_session_factory
from main import create_app
from services.reports import ReportRegistry
from services.users import UserRegistry
from util.security import CredentialStore, TokenService

SECRET = "test-secret"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret=SECRET,
        database_url=f"sqlite:///{tmp_path / 'cityfix.db'}",
        upload_dir=str(tmp_path / "uploads"),
        bcrypt_rounds=4,
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def engine(settings):
    engine = create_engine_with_retry(settings.database_url)
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def credentials():
    return CredentialStore(rounds=4)


@pytest.fixture
def tokens():
    return TokenService(SECRET)


@pytest.fixture
def user_registry(session_factory, credentials, tokens):
    return UserRegistry(session_factory, credentials, tokens)


@pytest.fixture
def report_registry(session_factory):
    return ReportRegistry(session_factory)


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}
