import logging
from typing import Callable, Optional, TypeVar

from chirpy.core.errors import (
    ChirpNotFoundError,
    ForbiddenError,
    RefreshTokenNotFoundError,
    UserNotFoundError,
)
from chirpy.core.locking import ReadWriteLock
from chirpy.core.records import Chirp, RefreshToken, Snapshot, User, next_id
from chirpy.core.storage import Persistence

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Database:
    """Record store holding chirps, users and refresh tokens.

    Nothing is cached between calls: each operation loads the whole snapshot
    under the lock, and mutations save it back before the lock is released.
    Records handed to callers are copies.
    """

    def __init__(self, persistence: Persistence, reset: bool = True):
        self._persistence = persistence
        self._lock = ReadWriteLock()
        with self._lock.write_locked():
            self._persistence.ensure_exists()
            if reset:
                self._persistence.reset()

    def _read(self, fn: Callable[[Snapshot], T]) -> T:
        with self._lock.read_locked():
            snapshot = self._persistence.load()
        return fn(snapshot)

    def _write(self, fn: Callable[[Snapshot], T]) -> T:
        with self._lock.write_locked():
            snapshot = self._persistence.load()
            result = fn(snapshot)
            self._persistence.save(snapshot)
        return result

    # -- chirps ---------------------------------------------------------------

    def create_chirp(self, body: str, author_id: int) -> Chirp:
        def op(snapshot: Snapshot) -> Chirp:
            chirp = Chirp(id=next_id(snapshot.chirps), body=body, author_id=author_id)
            snapshot.chirps[chirp.id] = chirp
            return chirp.model_copy()

        chirp = self._write(op)
        logger.debug("Created chirp %d for user %d", chirp.id, author_id)
        return chirp

    def get_chirps(self, author_id: Optional[int] = 0, sort: Optional[str] = "asc") -> list[Chirp]:
        """Return chirps ordered by id, optionally only those by ``author_id``.

        ``author_id`` of 0 or None disables the filter. ``sort="desc"`` orders
        by descending id; anything else is ascending.
        """
        chirps = self._read(lambda snapshot: list(snapshot.chirps.values()))
        if author_id:
            chirps = [c for c in chirps if c.author_id == author_id]
        chirps.sort(key=lambda c: c.id, reverse=(sort == "desc"))
        return chirps

    def get_chirp_by_id(self, chirp_id: int) -> Chirp:
        """Look up a chirp.

        Ids are bounded by the table size rather than checked for presence, so
        after a deletion the highest ids become unreachable. In-bounds ids with
        no row raise as well.
        """

        def op(snapshot: Snapshot) -> Chirp:
            if chirp_id > len(snapshot.chirps):
                raise ChirpNotFoundError(chirp_id)
            chirp = snapshot.chirps.get(chirp_id)
            if chirp is None:
                raise ChirpNotFoundError(chirp_id)
            return chirp

        return self._read(op)

    def delete_chirp(self, requester_id: int, chirp_id: int) -> None:
        def op(snapshot: Snapshot) -> None:
            chirp = snapshot.chirps.get(chirp_id)
            if chirp is None or chirp.author_id != requester_id:
                raise ForbiddenError(f"user {requester_id} may not delete chirp {chirp_id}")
            del snapshot.chirps[chirp_id]

        self._write(op)
        logger.debug("Deleted chirp %d", chirp_id)

    # -- users ----------------------------------------------------------------

    def create_user(self, email: str, password_hash: str) -> User:
        def op(snapshot: Snapshot) -> User:
            user = User(id=next_id(snapshot.users), email=email, password_hash=password_hash)
            snapshot.users[user.id] = user
            return user.model_copy()

        user = self._write(op)
        logger.debug("Created user %d", user.id)
        return user

    def get_user_by_email(self, email: str) -> User:
        def op(snapshot: Snapshot) -> User:
            found = next((u for u in snapshot.users.values() if u.email == email), None)
            if found is None:
                raise UserNotFoundError(email)
            return found

        return self._read(op)

    def get_user_by_id(self, user_id: int) -> User:
        def op(snapshot: Snapshot) -> User:
            user = snapshot.users.get(user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            return user

        return self._read(op)

    def update_user(
        self,
        user_id: int,
        email: Optional[str] = None,
        password_hash: Optional[str] = None,
    ) -> User:
        """Overwrite the non-empty fields given; leave the others untouched."""

        def op(snapshot: Snapshot) -> User:
            user = snapshot.users.get(user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            if email:
                user.email = email
            if password_hash:
                user.password_hash = password_hash
            return user.model_copy()

        return self._write(op)

    def set_upgraded(self, user_id: int, upgraded: bool = True) -> User:
        def op(snapshot: Snapshot) -> User:
            user = snapshot.users.get(user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            user.is_upgraded = upgraded
            return user.model_copy()

        user = self._write(op)
        logger.info("User %d upgrade flag set to %s", user_id, upgraded)
        return user

    # -- refresh tokens -------------------------------------------------------

    def add_refresh_token(self, record: RefreshToken) -> None:
        def op(snapshot: Snapshot) -> None:
            snapshot.refresh_tokens[record.token] = record.model_copy()

        self._write(op)

    def get_refresh_token(self, token: str) -> RefreshToken:
        def op(snapshot: Snapshot) -> RefreshToken:
            record = snapshot.refresh_tokens.get(token)
            if record is None:
                raise RefreshTokenNotFoundError()
            return record

        return self._read(op)

    def delete_refresh_token(self, token: str) -> None:
        """Remove ``token``; absent tokens are ignored."""

        def op(snapshot: Snapshot) -> None:
            snapshot.refresh_tokens.pop(token, None)

        self._write(op)
