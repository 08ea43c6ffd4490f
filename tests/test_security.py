from datetime import timedelta

from equiploan.core.security import create_access_token, decode_access_token
from equiploan.middleware.authentication import is_public_path


def test_token_round_trip():
    token = create_access_token({"sub": "alice"})
    assert decode_access_token(token).username == "alice"


def test_expired_or_foreign_tokens_are_rejected():
    expired = create_access_token({"sub": "alice"}, expires_delta=timedelta(minutes=-1))
    assert decode_access_token(expired) is None
    assert decode_access_token("not.a.token") is None
    assert decode_access_token(create_access_token({"role": "admin"})) is None


def test_public_paths():
    assert is_public_path("/api/v1/auth/token")
    assert is_public_path("/ws/notifications")
    assert is_public_path("/health/db")
    assert not is_public_path("/api/v1/borrowings/")
