from typing import Any, TypeVar

import pydantic
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from app.core.errors import AuthError, ValidationError
from app.core.security import decode_access_token
from app.db.session import get_db
from app.models.user import User

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise AuthError("Not authorized, no token")
    try:
        payload = decode_access_token(credentials.credentials)
    except ValueError as exc:
        raise AuthError("Not authorized, token failed") from exc
    user_id = payload.get("sub")
    user = db.get(User, user_id) if user_id else None
    if user is None:
        raise AuthError("Not authorized, user not found")
    return user


async def read_payload(request: Request) -> tuple[dict[str, Any], UploadFile | None]:
    """Read a JSON or form body into plain fields plus the optional ``file`` upload.

    Form fields are taken as sent, so an explicitly empty value stays distinguishable
    from an omitted one.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as exc:
            raise ValidationError("Malformed JSON body") from exc
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        return body, None

    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        fields: dict[str, Any] = {}
        upload: UploadFile | None = None
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key == "file":
                    upload = value
                continue
            if key in fields:
                previous = fields[key]
                fields[key] = [*previous, value] if isinstance(previous, list) else [previous, value]
            else:
                fields[key] = value
        return fields, upload

    return {}, None


def parse_payload(model: type[ModelT], fields: dict[str, Any]) -> ModelT:
    try:
        return model.model_validate(fields)
    except pydantic.ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "body"
        raise ValidationError(f"Invalid value for {field}") from exc
