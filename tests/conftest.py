from types import SimpleNamespace

import pytest

from domaindesk.api import create_app


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "DB_FILE": str(tmp_path / "test.sqlite"),
        "JWT_SECRET": "test-secret",
        "DEFAULT_ADMIN_USERNAME": "admin",
        "DEFAULT_ADMIN_PASSWORD": "admin123",
        "BULK_WORKERS": 4,
        "CORS_ORIGINS": "*",
        "MAX_CONTENT_LENGTH": 64 * 1024,
        "MAX_UPLOAD_MB": 5,
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def token(client):
    resp = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
    assert resp.status_code == 200
    return resp.get_json()["token"]


@pytest.fixture
def headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_domain(client, headers):
    def _make(name, **fields):
        payload = {"domainName": name, "country": "US", "category": "Tech", "price": 100, "status": True}
        payload.update(fields)
        resp = client.post("/api/domains", json=payload, headers=headers)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["data"]
    return _make


def tg_user(user_id=42, username="alice", first_name="Alice", last_name=None):
    return SimpleNamespace(id=user_id, username=username, first_name=first_name, last_name=last_name)


def tg_message(text="", user=None, chat_id=None, web_app_data=None):
    user = user or tg_user()
    return SimpleNamespace(
        from_user=user,
        chat=SimpleNamespace(id=chat_id if chat_id is not None else user.id),
        text=text,
        message_id=1,
        web_app_data=SimpleNamespace(data=web_app_data) if web_app_data is not None else None,
    )
