from datetime import timedelta

import pytest

from api.config import TestingConfig
from models import storage
from models.base_model import utcnow
from models.credential_store import CredentialStore
from services.account_manager import AccountManager
from services.errors import NotificationError
from services.session_manager import SessionManager
from utils.security import TokenCodec

STRONG_PASSWORD = "Str0ng!Pass"


class FakeClock:
    def __init__(self):
        self.now = utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier:
    """Collects outgoing emails; set `fail` to make every send raise."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to_address, subject, html_body):
        if self.fail:
            raise NotificationError("mail server down")
        self.sent.append({"to": to_address, "subject": subject, "html": html_body})
        return f"delivery-{len(self.sent)}"

    def last_to(self, address):
        for message in reversed(self.sent):
            if message["to"] == address:
                return message
        return None


def testing_config():
    return {key: getattr(TestingConfig, key) for key in dir(TestingConfig) if key.isupper()}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store():
    storage.reload("sqlite://")
    yield CredentialStore(storage)
    storage.drop_all()


@pytest.fixture
def file_store(tmp_path):
    """Credential store on a file-backed SQLite database, for tests that use threads."""
    storage.reload(f"sqlite:///{tmp_path / 'accounting.db'}")
    yield CredentialStore(storage)
    storage.drop_all()


@pytest.fixture
def codec(clock):
    return TokenCodec.from_config(testing_config(), clock=clock)


@pytest.fixture
def sessions(store, codec, clock):
    return SessionManager(store, codec, clock=clock)


@pytest.fixture
def accounts(store, codec, notifier):
    return AccountManager(store, codec, notifier, "http://frontend.test")


@pytest.fixture
def make_user(store):
    counter = {"n": 0}

    def _make(email=None, password=STRONG_PASSWORD, verified=True, **extra):
        counter["n"] += 1
        fields = {
            "name": "Mari",
            "surname": "Tamm",
            "personal_id_code": f"{38001010000 + counter['n']}",
            "email": email or f"user{counter['n']}@example.com",
            "password": password,
            "is_verified": verified,
        }
        fields.update(extra)
        return store.create_user(fields)

    return _make


@pytest.fixture
def app(notifier, clock):
    from api import create_app

    app = create_app("test", notifier=notifier, clock=clock)
    yield app
    storage.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()
