from datetime import datetime

from pydantic import BaseModel, Field


class Chirp(BaseModel):
    """A short post attributed to one user."""
    id: int
    body: str
    author_id: int


class User(BaseModel):
    id: int
    email: str
    password_hash: str
    is_upgraded: bool = False


class RefreshToken(BaseModel):
    token: str
    user_id: int
    expires_at: datetime


class Snapshot(BaseModel):
    """Every table of the store, persisted together as one document."""

    chirps: dict[int, Chirp] = Field(default_factory=dict)
    users: dict[int, User] = Field(default_factory=dict)
    refresh_tokens: dict[str, RefreshToken] = Field(default_factory=dict)


def next_id(table: dict[int, BaseModel]) -> int:
    """Return one more than the highest key, or 1 for an empty table."""
    return max(table, default=0) + 1
