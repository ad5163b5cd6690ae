import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from chirpy.core.errors import InvalidTokenError, MalformedSubjectError
from chirpy.core.settings import Settings

JWT_ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)
bearer_scheme = HTTPBearer(auto_error=False)


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Hash a plaintext password."""
    return pwd_context.hash(password)


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password against a hash."""
    return pwd_context.verify(password, password_hash)


# PUBLIC_INTERFACE
def create_access_token(subject: str, settings: Settings, now: Optional[datetime] = None) -> str:
    """Create a signed JWT access token for a subject (user id)."""
    if now is None:
        now = datetime.now(timezone.utc)
    payload = {
        "iss": settings.jwt_issuer,
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=settings.access_token_exp_seconds)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


# PUBLIC_INTERFACE
def parse_user_id(token: str, settings: Settings) -> int:
    """Verify an access token and return the user id carried in its subject."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.InvalidTokenError as exc:
        raise InvalidTokenError(f"invalid access token: {exc}") from exc
    subject = payload["sub"]
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise MalformedSubjectError(f"token subject {subject!r} is not a user id") from exc


def parse_authorization(header: Optional[str], scheme: str) -> str:
    """Return the credential from an ``Authorization: <scheme> <value>`` header."""
    if not header:
        raise InvalidTokenError("no credentials in Authorization header")
    prefix = scheme + " "
    if header[: len(prefix)].lower() != prefix.lower():
        raise InvalidTokenError(f"Authorization header is not a {scheme} credential")
    value = header[len(prefix):].strip()
    if not value:
        raise InvalidTokenError("empty credential in Authorization header")
    return value


def parse_bearer_token(header: Optional[str]) -> str:
    return parse_authorization(header, "Bearer")


def parse_api_key(header: Optional[str]) -> str:
    return parse_authorization(header, "ApiKey")


def get_bearer_token(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """FastAPI dependency returning the raw bearer token."""
    if creds is None or not creds.credentials:
        raise InvalidTokenError("no bearer token in Authorization header")
    return creds.credentials


# PUBLIC_INTERFACE
def get_current_user_id(request: Request, token: str = Depends(get_bearer_token)) -> int:
    """FastAPI dependency that extracts the user id from an access token.

    Auth failures propagate as ``AuthError`` for the app's 401 handler.
    """
    settings: Settings = request.app.state.settings
    return parse_user_id(token, settings)


# PUBLIC_INTERFACE
def require_api_key(request: Request, authorization: Optional[str] = Header(None)) -> None:
    """FastAPI dependency checking ``Authorization: ApiKey <key>`` against the configured key.

    Dependencies resolve before body fields are validated, so a caller without
    a valid key gets a 401 even when its payload would not validate.
    """
    settings: Settings = request.app.state.settings
    api_key = parse_api_key(authorization)
    if not settings.polka_api_key or not hmac.compare_digest(api_key, settings.polka_api_key):
        raise InvalidTokenError("API key does not match")
