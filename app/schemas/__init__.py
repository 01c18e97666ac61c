from app.schemas.auth import AuthUserRead, LoginRequest, ProfileRead, ProfileUpdate, ProfileUpdateRead, RegisterRequest
from app.schemas.post import PostAuthor, PostCreate, PostPage, PostRead, PostUpdate

__all__ = [
    "RegisterRequest",
    "LoginRequest",
    "ProfileUpdate",
    "AuthUserRead",
    "ProfileRead",
    "ProfileUpdateRead",
    "PostCreate",
    "PostUpdate",
    "PostAuthor",
    "PostRead",
    "PostPage",
]
