import pytest
from sqlalchemy import func, select

from app.core.errors import ConflictError, NotFoundError, UploadError, ValidationError
from app.core.security import decode_access_token
from app.models.user import User
from app.schemas.auth import LoginRequest, ProfileUpdate, RegisterRequest
from app.services.accounts import AccountService
from app.services.media import MediaFile
from app.services.users import UserRepository
from conftest import PNG_BYTES

PNG = MediaFile(content=PNG_BYTES, filename="me.png", content_type="image/png")


@pytest.fixture()
def service(db, media_store):
    return AccountService(db, media_store)


def _register(service, **overrides):
    fields = {"name": "Writer", "email": "writer@example.com", "password": "secret123", **overrides}
    return service.register(RegisterRequest(**fields))


def test_register_issues_token_for_new_user(service):
    user = _register(service)
    assert decode_access_token(user.token)["sub"] == user.id


def test_register_short_password_rejected(service, db):
    with pytest.raises(ValidationError):
        _register(service, password="123")
    assert db.scalar(select(func.count()).select_from(User)) == 0


def test_register_duplicate_email_raises_conflict(service):
    _register(service)
    with pytest.raises(ConflictError):
        _register(service, name="Other")


def test_register_upload_failure_propagates(service, db, media_store):
    media_store.fail_upload = True
    with pytest.raises(UploadError):
        service.register(RegisterRequest(name="W", email="w@example.com", password="secret123"), PNG)
    assert db.scalar(select(func.count()).select_from(User)) == 0


def test_password_hash_is_not_loaded_by_default(service, db):
    user = _register(service)
    db.expunge_all()
    loaded = db.get(User, user.id)
    assert "password_hash" not in loaded.__dict__


def test_login_loads_password_hash(service):
    _register(service)
    user = service.login(LoginRequest(email="writer@example.com", password="secret123"))
    assert user.email == "writer@example.com"


def test_get_profile_missing_user(service):
    with pytest.raises(NotFoundError):
        service.get_profile("missing")


def test_update_profile_missing_user(service):
    with pytest.raises(NotFoundError):
        service.update_profile("missing", ProfileUpdate(name="x"))


def test_update_profile_tracks_bio_presence(service):
    user = _register(service, bio="Original")
    unchanged = service.update_profile(user.id, ProfileUpdate(name="Renamed"))
    assert unchanged.bio == "Original"
    cleared = service.update_profile(user.id, ProfileUpdate(bio=""))
    assert cleared.bio == ""


def test_update_profile_stores_provider_key(service, db, media_store):
    user = _register(service)
    service.update_profile(user.id, ProfileUpdate(), PNG)
    stored = db.get(User, user.id)
    assert stored.avatar == "/uploads/avatars/file1.png"
    assert stored.avatar_key == "avatars/file1.png"


def test_update_profile_upload_failure_aborts_update(service, db, media_store):
    user = _register(service)
    media_store.fail_upload = True
    with pytest.raises(UploadError):
        service.update_profile(user.id, ProfileUpdate(name="Changed"), PNG)
    db.rollback()
    assert db.get(User, user.id).name == "Writer"


def test_repository_lookups(db):
    users = UserRepository(db)
    created = users.create(name="Repo", email="repo@example.com", password_hash="x")
    assert users.find_one(name="Repo").id == created.id
    assert users.find_by_id(created.id) is created
    assert users.find_one(name="Nobody") is None
    with pytest.raises(ConflictError):
        users.create(name="Dup", email="repo@example.com", password_hash="y")


def test_login_normalizes_email_like_register(service):
    # Decomposed "e" + combining accent; registration stores the composed form.
    _register(service, email="jose\u0301@example.com")
    user = service.login(LoginRequest(email="JOSE\u0301@Example.com", password="secret123"))
    assert user.email == "jos\u00e9@example.com"


def test_update_profile_blank_password_is_ignored(service, db):
    user = _register(service)
    service.update_profile(user.id, ProfileUpdate(password="      "))
    assert service.login(LoginRequest(email="writer@example.com", password="secret123")).id == user.id
