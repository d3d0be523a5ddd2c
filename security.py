from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from config import get_settings
from models import User

ALGORITHM = "HS256"
IDENTITY_CLAIM = "sub"
REQUIRED_CLAIMS = [IDENTITY_CLAIM, "exp", "iat", "iss", "aud"]

_hasher = PasswordHasher()
# Checked instead of a real hash when the email is unknown.
_DUMMY_HASH = _hasher.hash("finance-tracker-dummy-password")


class InvalidToken(ValueError):
    pass


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password_hash: Optional[str], password: str) -> bool:
    if password_hash is None:
        _check(_DUMMY_HASH, password)
        return False
    return _check(password_hash, password)


def _check(password_hash: str, password: str) -> bool:
    try:
        return _hasher.verify(password_hash, password)
    except (VerifyMismatchError, InvalidHash, VerificationError):
        return False


def issue_token(user: User, *, now: Optional[datetime] = None) -> IssuedToken:
    settings = get_settings()
    issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    expires_at = issued_at + timedelta(hours=settings.token_ttl_hours)
    claims = {
        IDENTITY_CLAIM: user.id,
        "name": user.username,
        "email": user.email,
        "given_name": user.first_name or "",
        "family_name": user.last_name or "",
        "jti": uuid.uuid4().hex,
        "iat": issued_at,
        "exp": expires_at,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)
    return IssuedToken(token=token, expires_at=expires_at)


def decode_token(token: str) -> dict[str, object]:
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[ALGORITHM],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.PyJWTError as exc:
        raise InvalidToken(str(exc)) from exc


def resolve_identity(token: Optional[str]) -> Optional[str]:
    """Return the user id carried by ``token``, or ``None`` when anonymous.

    Missing, malformed, forged and expired tokens are all treated as if no
    token had been sent.
    """
    if not token:
        return None
    try:
        claims = decode_token(token)
    except InvalidToken:
        return None
    user_id = claims.get(IDENTITY_CLAIM)
    if not isinstance(user_id, str) or not user_id:
        return None
    return user_id
