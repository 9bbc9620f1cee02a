import time

import jwt
from starlette.requests import Request

from papasito import config
from papasito.auth import (
    decode_session_token,
    extract_session_token,
    has_user,
    issue_session_token,
    resolve_session,
)


def make_request(headers: dict) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
    }
    return Request(scope)


def test_issue_and_decode_round_trip_claims():
    token = issue_session_token("user-1", email="lea@example.com", role="ESCORT", verified=True)

    claims = decode_session_token(token)

    assert claims["sub"] == "user-1"
    assert claims["role"] == "ESCORT"
    assert claims["verified"] is True


def test_expired_token_is_rejected():
    token = issue_session_token("user-1", max_age=-60)

    assert decode_session_token(token) is None


def test_token_signed_with_another_secret_is_rejected():
    token = jwt.encode({"sub": "user-1", "exp": int(time.time()) + 60}, "other", algorithm="HS256")

    assert decode_session_token(token) is None


def test_token_without_expiry_is_rejected():
    token = jwt.encode({"sub": "user-1"}, config.SESSION_SECRET, algorithm="HS256")

    assert decode_session_token(token) is None


def test_cookie_takes_precedence_over_bearer_header():
    request = make_request(
        {
            "cookie": f"{config.SESSION_COOKIE_NAME}=cookie-token",
            "authorization": "Bearer header-token",
        }
    )

    assert extract_session_token(request) == "cookie-token"


def test_bearer_header_is_used_without_cookie():
    request = make_request({"authorization": "Bearer header-token"})

    assert extract_session_token(request) == "header-token"


def test_non_bearer_authorization_is_ignored():
    request = make_request({"authorization": "Basic dXNlcjpwYXNz"})

    assert extract_session_token(request) is None


def test_resolve_session_without_credentials():
    assert resolve_session(make_request({})) is None


def test_resolve_session_reads_identity_claims():
    token = issue_session_token("user-1", email="lea@example.com", role="USER")

    session = resolve_session(make_request({"authorization": f"Bearer {token}"}))

    assert session.user_id == "user-1"
    assert session.email == "lea@example.com"
    assert has_user(session)


def test_resolve_session_falls_back_to_id_claim():
    token = jwt.encode(
        {"id": "user-7", "exp": int(time.time()) + 60}, config.SESSION_SECRET, algorithm="HS256"
    )

    session = resolve_session(make_request({"authorization": f"Bearer {token}"}))

    assert session.user_id == "user-7"


def test_session_without_user_id_is_not_a_user():
    token = jwt.encode(
        {"email": "ghost@example.com", "exp": int(time.time()) + 60},
        config.SESSION_SECRET,
        algorithm="HS256",
    )

    session = resolve_session(make_request({"authorization": f"Bearer {token}"}))

    assert session is not None
    assert session.user_id == ""
    assert not has_user(session)
