from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from pediaquiz.auth.security import (
    create_access_token, create_refresh_token, decode_token, digest_refresh_token, hash_password,
    refresh_token_expired, user_claims, verify_password,
)


def test_password_round_trip():
    hashed = hash_password("s3cret")
    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)


def test_access_token_carries_admin_claim():
    user = SimpleNamespace(id=5, email="a@pediaquiz.org", is_admin=True)
    token = create_access_token(user_claims(user), "key")
    payload = decode_token(token, "key")
    assert payload["sub"] == "5"
    assert payload["is_admin"] is True


def test_token_with_wrong_key_is_rejected():
    token = create_access_token({"sub": "1"}, "key")
    assert decode_token(token, "other-key") is None


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "1"}, "key", expire_minutes=-1)
    assert decode_token(token, "key") is None


def test_garbage_token_is_rejected():
    assert decode_token("not-a-jwt", "key") is None


def test_refresh_tokens_are_unique():
    assert create_refresh_token().token != create_refresh_token().token


def test_refresh_token_digest_and_expiry():
    issued = create_refresh_token(expire_days=7)
    assert issued.digest == digest_refresh_token(issued.token)
    assert issued.digest != issued.token
    assert not refresh_token_expired(issued.expires_at)
    assert refresh_token_expired(issued.expires_at, now=issued.expires_at + timedelta(seconds=1))


def test_refresh_expiry_reads_naive_datetimes_as_utc():
    past = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=1)
    assert refresh_token_expired(past)
    assert refresh_token_expired(None)
