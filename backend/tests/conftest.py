import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "authcore-tests.log"))
os.environ.setdefault("RUN_EMBEDDED_WORKER", "false")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from authcore.config import Settings  # noqa: E402
from authcore.core.database import Base  # noqa: E402
from authcore.services.auth_service import AuthService  # noqa: E402


class RecordingNotifier:
    """Notification sink that remembers what would have been sent."""

    def __init__(self):
        self.sent = []

    def notify_verification(self, email, token):
        self.sent.append(("verification", email, token))

    def notify_password_reset(self, email, token):
        self.sent.append(("password_reset", email, token))

    def notify_password_changed(self, email):
        self.sent.append(("password_changed", email, None))

    def last(self, kind):
        for entry in reversed(self.sent):
            if entry[0] == kind:
                return entry
        return None


def make_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def session_factory():
    return make_session_factory()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def config():
    return Settings(BCRYPT_ROUNDS=10, ACCESS_TOKEN_EXPIRE="15m", REFRESH_TOKEN_EXPIRE="7d")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(config, notifier):
    return AuthService(config=config, notifier=notifier)


@pytest.fixture
def verified_user(db, service, notifier):
    """A registered, verified local user: alice@example.com / Abc12345!"""
    service.register(db, "alice@example.com", "Abc12345!", "Alice", "Liddell")
    token = notifier.last("verification")[2]
    service.verify_email(db, token)
    return "alice@example.com", "Abc12345!"
