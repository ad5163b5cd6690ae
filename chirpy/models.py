from typing import Optional

from pydantic import BaseModel, Field

from chirpy.core.records import Chirp, User


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Human readable error message")


class ChirpCreate(BaseModel):
    body: str = Field(..., description="Chirp text (max 140 characters)")


class ChirpOut(BaseModel):
    id: int = Field(..., description="Chirp id")
    body: str = Field(..., description="Chirp text, profanity masked")
    author_id: int = Field(..., description="Id of the user who wrote the chirp")

    @classmethod
    def from_record(cls, chirp: Chirp) -> "ChirpOut":
        return cls(id=chirp.id, body=chirp.body, author_id=chirp.author_id)


class UserCredentials(BaseModel):
    email: str = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")


class UserUpdate(BaseModel):
    email: Optional[str] = Field(None, description="New email address")
    password: Optional[str] = Field(None, description="New password")


class UserOut(BaseModel):
    id: int = Field(..., description="User id")
    email: str = Field(..., description="User email address")
    is_chirpy_red: bool = Field(False, description="Whether the user has upgraded to Chirpy Red")

    @classmethod
    def from_record(cls, user: User) -> "UserOut":
        return cls(id=user.id, email=user.email, is_chirpy_red=user.is_upgraded)


class LoginResponse(UserOut):
    token: str = Field(..., description="JWT access token, valid for one hour")
    refresh_token: str = Field(..., description="Opaque refresh token, valid for 60 days")


class TokenResponse(BaseModel):
    token: str = Field(..., description="JWT access token")


class WebhookData(BaseModel):
    user_id: Optional[int] = Field(None, description="Id of the user the event refers to")


class WebhookEvent(BaseModel):
    event: str = Field(..., description="Event name, e.g. user.upgraded")
    data: WebhookData = Field(default_factory=WebhookData)
