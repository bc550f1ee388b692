import pytest

from api import create_app
from models import storage
from models.db_storage import DBStorage

PASSWORD = "correct-horse-battery"


@pytest.fixture(scope="function")
def db_url(tmp_path) -> str:
    return f"sqlite:///{(tmp_path / 'media-share-test.db').as_posix()}"


@pytest.fixture(scope="function")
def app(db_url):
    app = create_app("testing", {"DATABASE_URL": db_url})
    yield app
    storage.dispose()


@pytest.fixture(scope="function")
def client(app):
    with app.test_client() as c:
        yield c


@pytest.fixture(scope="function")
def manager(app):
    return app.extensions["session_manager"]


@pytest.fixture(scope="function")
def ledger(app):
    return app.extensions["relation_ledger"]


@pytest.fixture(scope="function")
def alice(manager):
    return manager.register("alice", "alice@example.com", "Alice Example", PASSWORD)


@pytest.fixture(scope="function")
def bob(manager):
    return manager.register("bob", "bob@example.com", "Bob Example", PASSWORD)


@pytest.fixture(scope="function")
def auth_headers(client, alice):
    resp = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    assert resp.status_code == 200, resp.get_data(as_text=True)
    return {"Authorization": f"Bearer {resp.get_json()['access_token']}"}


@pytest.fixture(scope="function")
def broken_storage(app, tmp_path):
    """A DBStorage whose database file can never be opened."""
    broken = DBStorage(f"sqlite:///{(tmp_path / 'missing' / 'nowhere.db').as_posix()}")
    broken.reload(create_tables=False)
    yield broken
    broken.dispose()
