import pytest
from itsdangerous import TimestampSigner

from auth import SessionTokenCodec, hash_password, verify_password
from errors import InvalidToken


def test_token_round_trip():
    codec = SessionTokenCodec("secret")
    token = codec.issue(42)
    assert codec.verify(token) == 42


def test_token_embeds_issue_time():
    token = SessionTokenCodec("secret").issue(7)
    value, issued = TimestampSigner("secret", salt="session-token").unsign(
        token, return_timestamp=True
    )
    assert value == b"7"
    assert issued is not None


def test_token_from_other_secret_is_rejected():
    token = SessionTokenCodec("secret").issue(1)
    with pytest.raises(InvalidToken):
        SessionTokenCodec("another-secret").verify(token)


def test_tampered_payload_is_rejected():
    codec = SessionTokenCodec("secret")
    token = codec.issue(1)
    with pytest.raises(InvalidToken):
        codec.verify("2" + token[1:])


@pytest.mark.parametrize("token", ["", "garbage", "1.2.3"])
def test_malformed_token_is_rejected(token):
    with pytest.raises(InvalidToken):
        SessionTokenCodec("secret").verify(token)


def test_signed_non_numeric_payload_is_rejected():
    token = TimestampSigner("secret", salt="session-token").sign("abc").decode()
    with pytest.raises(InvalidToken):
        SessionTokenCodec("secret").verify(token)


def test_password_hashing():
    user = {"password_hash": hash_password("hunter2")}
    assert verify_password(user, "hunter2")
    assert not verify_password(user, "hunter3")
    assert not verify_password(None, "hunter2")
    assert not verify_password(user, "")


def test_missing_cookie_is_unauthorized(client):
    resp = client.get("/dashboard")
    assert resp.status_code == 401
    assert resp.get_json() == {"message": "Unauthorized"}


def test_forged_cookie_is_rejected(client):
    client.set_cookie("token", "1.forged.signature")
    resp = client.get("/dashboard")
    assert resp.status_code == 401
    assert resp.get_json() == {"message": "Invalid token"}


def test_rejected_request_has_no_side_effects(app, client, admin_client):
    admin_client.post("/add-post", data={"title": "Guarded", "body": "x"})
    post = app.extensions["post_store"].find_by_slug("guarded")

    client.set_cookie("token", "nope")
    assert client.post(f"/post/{post['id']}/like").status_code == 401
    assert client.post(f"/post/{post['id']}/comment", data={"comment": "hi"}).status_code == 401

    post = app.extensions["post_store"].find_by_id(post["id"])
    assert post["likes"] == []
    assert post["comments"] == []


def test_login_sets_http_only_cookie(client):
    resp = client.post("/admin", data={"username": "admin", "password": "admin-pass"})
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/dashboard")
    cookie = next(h for h in resp.headers.getlist("Set-Cookie") if h.startswith("token="))
    assert "HttpOnly" in cookie


def test_login_accepts_json_body(client):
    resp = client.post("/admin", json={"username": "admin", "password": "admin-pass"})
    assert resp.status_code == 302
    assert client.get("/dashboard").status_code == 200


@pytest.mark.parametrize(
    "payload",
    [
        {"username": "admin", "password": "wrong"},
        {"username": "nobody", "password": "admin-pass"},
        {},
    ],
)
def test_bad_credentials(client, payload):
    resp = client.post("/admin", data=payload)
    assert resp.status_code == 401
    assert resp.get_json() == {"message": "Invalid credentials"}


def test_logout_clears_cookie(admin_client):
    assert admin_client.get("/dashboard").status_code == 200
    resp = admin_client.get("/logout")
    assert resp.status_code == 302
    assert admin_client.get("/dashboard").status_code == 401


def test_register_hides_password_hash(client):
    resp = client.post("/register", data={"username": "reader", "password": "pw"})
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["message"] == "User Created"
    assert body["user"]["username"] == "reader"
    assert "password_hash" not in body["user"]
    assert "password" not in body["user"]


def test_register_duplicate_username(client):
    client.post("/register", data={"username": "reader", "password": "pw"})
    resp = client.post("/register", data={"username": "reader", "password": "other"})
    assert resp.status_code == 409
    assert resp.get_json() == {"message": "Username already in use"}


def test_register_requires_fields(client):
    resp = client.post("/register", data={"username": "reader"})
    assert resp.status_code == 400


def test_readers_cannot_manage_posts(login):
    reader, _ = login("reader")
    resp = reader.post("/add-post", data={"title": "Not mine"})
    assert resp.status_code == 403


def test_admin_account_is_created_on_start(app):
    admin = app.extensions["user_store"].find_by_username("admin")
    assert admin is not None
    assert verify_password(admin, "admin-pass")
