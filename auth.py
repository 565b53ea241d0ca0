"""Session tokens, password checks and the view guards."""

from __future__ import annotations

from functools import wraps
from typing import Optional

from flask import current_app, g, request
from itsdangerous import BadSignature, TimestampSigner
from werkzeug.security import check_password_hash, generate_password_hash

from errors import Forbidden, InvalidToken, Unauthorized


class SessionTokenCodec:
    """Signs user ids into stateless session tokens.

    The signer embeds the issuance time next to the user id. Tokens carry no
    expiry and nothing is kept server side, so a token stays valid until the
    client drops the cookie or the secret changes.
    """

    def __init__(self, secret_key: str, salt: str = "session-token"):
        self._signer = TimestampSigner(secret_key, salt=salt)

    def issue(self, user_id: int) -> str:
        return self._signer.sign(str(user_id)).decode()

    def verify(self, token: str) -> int:
        try:
            payload = self._signer.unsign(token).decode()
            return int(payload)
        except (BadSignature, UnicodeDecodeError, ValueError) as exc:
            raise InvalidToken() from exc


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(user: Optional[dict], password: str) -> bool:
    if not user or not password:
        return False
    return check_password_hash(user.get("password_hash", ""), password)


def current_user_id() -> int:
    """Resolve the session cookie of the current request to a user id."""
    token = request.cookies.get(current_app.config["TOKEN_COOKIE_NAME"])
    if not token:
        raise Unauthorized()
    return current_app.extensions["token_codec"].verify(token)


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        g.user_id = current_user_id()
        return view(*args, **kwargs)

    return wrapped


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        g.user_id = current_user_id()
        user = current_app.extensions["user_store"].find_by_id(g.user_id)
        if not user or user["username"] != current_app.config["ADMIN_USER"]:
            raise Forbidden()
        return view(*args, **kwargs)

    return wrapped
