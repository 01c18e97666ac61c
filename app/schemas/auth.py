from datetime import datetime

from pydantic import BaseModel


class RegisterRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None
    bio: str | None = None


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class ProfileUpdate(BaseModel):
    """Partial profile update; keys the client did not send stay out of ``model_fields_set``."""

    name: str | None = None
    bio: str | None = None
    password: str | None = None


class ProfileUpdateRead(BaseModel):
    id: str
    name: str
    email: str
    bio: str
    avatar: str

    model_config = {"from_attributes": True}


class AuthUserRead(ProfileUpdateRead):
    token: str


class ProfileRead(ProfileUpdateRead):
    created_at: datetime
