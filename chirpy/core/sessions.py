"""Refresh-token lifecycle and access-token minting.

A refresh token is issued at login and can be exchanged for access tokens any
number of times until it expires or is revoked. Expired tokens stay in the
table; revocation deletes the row.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable

from chirpy.core import auth
from chirpy.core.database import Database
from chirpy.core.errors import ExpiredTokenError
from chirpy.core.records import RefreshToken
from chirpy.core.settings import Settings

logger = logging.getLogger(__name__)

REFRESH_TOKEN_BYTES = 32


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    def __init__(self, db: Database, settings: Settings, clock: Callable[[], datetime] = utcnow):
        self._db = db
        self._settings = settings
        self._clock = clock

    def issue_refresh_token(self, user_id: int) -> str:
        token = secrets.token_hex(REFRESH_TOKEN_BYTES)
        expires_at = self._clock() + timedelta(days=self._settings.refresh_token_exp_days)
        self._db.add_refresh_token(RefreshToken(token=token, user_id=user_id, expires_at=expires_at))
        logger.debug("Issued refresh token for user %d, expires %s", user_id, expires_at.isoformat())
        return token

    def mint_access_token(self, refresh_token: str) -> str:
        record = self._db.get_refresh_token(refresh_token)
        now = self._clock()
        if now > record.expires_at:
            raise ExpiredTokenError("refresh token expired")
        return auth.create_access_token(str(record.user_id), self._settings, now=now)

    def revoke_refresh_token(self, token: str) -> None:
        self._db.delete_refresh_token(token)

    def parse_user_id(self, access_token: str) -> int:
        return auth.parse_user_id(access_token, self._settings)
