import pytest
from starlette.requests import Request

from conftest import identity
from premium.auth.deps import current_user, require_user
from premium.auth.models import AuthenticatedUser
from premium.core.errors import AuthenticationRequired


def make_request(session: dict) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/subscription-status",
        "headers": [],
        "query_string": b"",
        "session": session,
    }
    return Request(scope)


def test_require_user_missing_session():
    request = make_request({})
    with pytest.raises(AuthenticationRequired) as exc:
        require_user(request)
    assert exc.value.status_code == 401
    assert exc.value.message == "Unauthorized"


def test_require_user_malformed_session():
    request = make_request({"user": {"email": "no-subject@example.com"}})
    with pytest.raises(AuthenticationRequired):
        require_user(request)


def test_require_user_expired_session():
    session = {"user": identity("u1", expires_in=-10)}
    request = make_request(session)
    with pytest.raises(AuthenticationRequired):
        require_user(request)
    # Rejection leaves the session untouched
    assert session["user"]["subject"] == "u1"


def test_require_user_attaches_identity():
    request = make_request({"user": identity("u1")})
    user = require_user(request)

    assert isinstance(user, AuthenticatedUser)
    assert user.subject == "u1"
    assert user.given_name == "Ada"
    assert current_user(request) is user


def test_current_user_without_gate():
    request = make_request({"user": identity("u1")})
    with pytest.raises(AuthenticationRequired):
        current_user(request)
