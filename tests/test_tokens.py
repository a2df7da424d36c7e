"""
Tests for JWT access tokens
"""

from datetime import timedelta

import jwt
import pytest

from simple_bank.tokens import (
    ExpiredTokenError, InvalidTokenError, JWTMaker, MIN_SECRET_KEY_SIZE
)


SECRET = "0123456789abcdef0123456789abcdef"


class TestJWTMaker:
    """Test token creation and verification"""

    def setup_method(self):
        self.maker = JWTMaker(SECRET)

    def test_create_and_verify(self):
        """Test that a fresh token verifies to the same payload"""
        token, payload = self.maker.create_token("alice", timedelta(minutes=1))

        assert token
        assert payload.username == "alice"
        assert payload.id
        assert payload.expired_at - payload.issued_at == timedelta(minutes=1)

        verified = self.maker.verify_token(token)
        assert verified.id == payload.id
        assert verified.username == "alice"
        assert abs(verified.issued_at - payload.issued_at) < timedelta(seconds=1)
        assert abs(verified.expired_at - payload.expired_at) < timedelta(seconds=1)

    def test_token_ids_are_unique(self):
        _, first = self.maker.create_token("alice", timedelta(minutes=1))
        _, second = self.maker.create_token("alice", timedelta(minutes=1))
        assert first.id != second.id

    def test_expired_token(self):
        """Test that a token past its expiry is rejected"""
        token, _ = self.maker.create_token("alice", -timedelta(minutes=1))

        with pytest.raises(ExpiredTokenError):
            self.maker.verify_token(token)

    def test_unsigned_token_rejected(self):
        """Test that alg=none tokens are never accepted"""
        _, payload = self.maker.create_token("alice", timedelta(minutes=1))
        token = jwt.encode(payload.to_claims(), None, algorithm="none")

        with pytest.raises(InvalidTokenError):
            self.maker.verify_token(token)

    def test_wrong_key_rejected(self):
        """Test that a token signed with another key is rejected"""
        other = JWTMaker("f" * MIN_SECRET_KEY_SIZE)
        token, _ = other.create_token("alice", timedelta(minutes=1))

        with pytest.raises(InvalidTokenError):
            self.maker.verify_token(token)

    def test_garbage_token_rejected(self):
        with pytest.raises(InvalidTokenError):
            self.maker.verify_token("not-a-token")

    def test_short_secret_rejected(self):
        """Test that the secret must be long enough"""
        with pytest.raises(ValueError):
            JWTMaker("x" * (MIN_SECRET_KEY_SIZE - 1))
