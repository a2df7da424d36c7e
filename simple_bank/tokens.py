"""
Access Token Module

Issues and verifies HS256 JWT access tokens identifying the acting owner.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Tuple
import uuid

import jwt


MIN_SECRET_KEY_SIZE = 32
ALGORITHM = "HS256"


class TokenError(Exception):
    """Base class for token errors"""


class InvalidTokenError(TokenError):
    def __init__(self):
        super().__init__("token is invalid")


class ExpiredTokenError(TokenError):
    def __init__(self):
        super().__init__("token has expired")


@dataclass(frozen=True)
class TokenPayload:
    """Claims carried by an access token"""
    id: str
    username: str
    issued_at: datetime
    expired_at: datetime

    @classmethod
    def new(cls, username: str, duration: timedelta) -> 'TokenPayload':
        now = datetime.now(timezone.utc)
        return cls(id=str(uuid.uuid4()), username=username,
                   issued_at=now, expired_at=now + duration)

    def to_claims(self) -> dict:
        return {
            "jti": self.id,
            "sub": self.username,
            "iat": self.issued_at,
            "exp": self.expired_at,
        }


class JWTMaker:
    """Creates and verifies symmetric JWT tokens"""

    def __init__(self, secret_key: str):
        if len(secret_key) < MIN_SECRET_KEY_SIZE:
            raise ValueError(f"invalid key size: must be at least {MIN_SECRET_KEY_SIZE} characters")
        self._secret_key = secret_key

    def create_token(self, username: str, duration: timedelta) -> Tuple[str, TokenPayload]:
        """Create a signed token for username, valid for duration"""
        payload = TokenPayload.new(username, duration)
        token = jwt.encode(payload.to_claims(), self._secret_key, algorithm=ALGORITHM)
        return token, payload

    def verify_token(self, token: str) -> TokenPayload:
        """
        Verify a token's signature and expiry

        Raises:
            ExpiredTokenError: If the token is past its expiry
            InvalidTokenError: If the token is malformed, unsigned or tampered with
        """
        try:
            claims = jwt.decode(
                token, self._secret_key, algorithms=[ALGORITHM],
                options={"require": ["exp", "iat", "sub", "jti"]}
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredTokenError()
        except jwt.InvalidTokenError:
            raise InvalidTokenError()

        return TokenPayload(
            id=claims["jti"],
            username=claims["sub"],
            issued_at=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
            expired_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )
