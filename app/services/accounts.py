import logging

from email_validator import EmailNotValidError, validate_email
from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.errors import AuthError, ConflictError, NotFoundError, ValidationError
from app.core.security import create_access_token, hash_password, verify_password
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import AuthUserRead, LoginRequest, ProfileRead, ProfileUpdate, ProfileUpdateRead, RegisterRequest
from app.services.media import AVATARS, MediaFile, MediaStore, discard_media, get_media_store, replace_media
from app.services.users import UserRepository

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MAX_NAME_LENGTH = 50


def _normalize_email(email: str) -> str:
    try:
        return validate_email(email.strip(), check_deliverability=False).normalized.lower()
    except EmailNotValidError as exc:
        raise ValidationError("Please provide a valid email") from exc


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def _check_name(name: str) -> str:
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Name cannot be more than {MAX_NAME_LENGTH} characters")
    return name


class AccountService:
    """Registration, login and profile management for blog users."""

    def __init__(self, db: Session, media: MediaStore) -> None:
        self.users = UserRepository(db)
        self.media = media

    def register(self, payload: RegisterRequest, avatar: MediaFile | None = None) -> AuthUserRead:
        name = (payload.name or "").strip()
        password = payload.password if payload.password and payload.password.strip() else ""
        if not name or not (payload.email or "").strip() or not password:
            raise ValidationError("Please provide all required fields")
        _check_name(name)
        email = _normalize_email(payload.email)
        _check_password(password)

        if self.users.find_by_email(email) is not None:
            raise ConflictError("User already exists")

        avatar_url, avatar_key = "", None
        if avatar is not None:
            stored = self.media.upload(avatar, AVATARS)
            avatar_url, avatar_key = stored.url, stored.key

        try:
            user = self.users.create(
                name=name,
                email=email,
                password_hash=hash_password(password),
                bio=payload.bio or "",
                avatar=avatar_url,
                avatar_key=avatar_key,
            )
        except ConflictError:
            discard_media(self.media, avatar_key)
            raise

        logger.info("Registered user %s", user.id)
        return self._with_token(user)

    def login(self, payload: LoginRequest) -> AuthUserRead:
        if not payload.email or not payload.password:
            raise ValidationError("Please provide email and password")

        try:
            email = _normalize_email(payload.email)
        except ValidationError as exc:
            logger.warning("Rejected login attempt")
            raise AuthError("Invalid email or password") from exc

        user = self.users.find_by_email(email, with_password=True)
        if user is None or not verify_password(payload.password, user.password_hash):
            logger.warning("Rejected login attempt")
            raise AuthError("Invalid email or password")

        logger.info("User %s logged in", user.id)
        return self._with_token(user)

    def get_profile(self, user_id: str) -> ProfileRead:
        user = self._get_user(user_id)
        return ProfileRead.model_validate(user)

    def update_profile(self, user_id: str, patch: ProfileUpdate, avatar: MediaFile | None = None) -> ProfileUpdateRead:
        user = self._get_user(user_id)

        name = (patch.name or "").strip()
        if name:
            user.name = _check_name(name)
        # An explicit empty bio clears it; an omitted bio leaves it alone.
        if "bio" in patch.model_fields_set:
            user.bio = patch.bio or ""
        if patch.password and patch.password.strip():
            _check_password(patch.password)
            user.password_hash = hash_password(patch.password)

        if avatar is not None:
            stored = replace_media(self.media, user.avatar, user.avatar_key, avatar, AVATARS)
            user.avatar, user.avatar_key = stored.url, stored.key

        user = self.users.save(user)
        logger.info("Updated profile for user %s", user.id)
        return ProfileUpdateRead.model_validate(user)

    def _get_user(self, user_id: str) -> User:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def _with_token(user: User) -> AuthUserRead:
        return AuthUserRead(
            id=user.id,
            name=user.name,
            email=user.email,
            bio=user.bio,
            avatar=user.avatar,
            token=create_access_token(user.id),
        )


def get_account_service(db: Session = Depends(get_db), media: MediaStore = Depends(get_media_store)) -> AccountService:
    return AccountService(db, media)
