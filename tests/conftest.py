import pytest

from app import create_app
from store import JsonDocument, PostStore, UserStore

ADMIN = "admin"
ADMIN_PASSWORD = "admin-pass"


@pytest.fixture
def app(tmp_path):
    return create_app(
        {
            "TESTING": True,
            "DATA_PATH": tmp_path / "blog.json",
            "SECRET_KEY": "test-secret",
            "ADMIN_USER": ADMIN,
            "ADMIN_PASSWORD": ADMIN_PASSWORD,
        }
    )


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(app):
    """Return a logged-in test client and the user's id."""

    def _login(username, password="secret", register=True):
        client = app.test_client()
        if register:
            resp = client.post(
                "/register", data={"username": username, "password": password}
            )
            assert resp.status_code == 201
        resp = client.post("/admin", data={"username": username, "password": password})
        assert resp.status_code == 302
        user = app.extensions["user_store"].find_by_username(username)
        return client, user["id"]

    return _login


@pytest.fixture
def admin_client(login):
    client, _ = login(ADMIN, ADMIN_PASSWORD, register=False)
    return client


@pytest.fixture
def document(tmp_path):
    return JsonDocument(tmp_path / "store.json")


@pytest.fixture
def users(document):
    return UserStore(document)


@pytest.fixture
def posts(document):
    return PostStore(document)


@pytest.fixture
def make_post(posts):
    def _make_post(title="Hello world", body="Some *text*"):
        return posts.create(
            {"title": title, "slug": title.lower().replace(" ", "-"), "body": body, "body_html": ""}
        )

    return _make_post
