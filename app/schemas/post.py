import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

MAX_TITLE_LENGTH = 200


def normalize_tags(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                value = json.loads(stripped)
            except json.JSONDecodeError:
                value = stripped.strip("[]").split(",")
        else:
            value = stripped.split(",")
    if not isinstance(value, (list, tuple)):
        raise ValueError("tags must be a list or comma-separated string")
    tags: list[str] = []
    for item in value:
        tag = str(item).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


class PostCreate(BaseModel):
    title: str | None = Field(default=None, max_length=MAX_TITLE_LENGTH)
    content: str | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> list[str]:
        return normalize_tags(value)


class PostUpdate(PostCreate):
    pass


class PostAuthor(BaseModel):
    id: str
    name: str
    avatar: str

    model_config = {"from_attributes": True}


class PostRead(BaseModel):
    id: str
    title: str
    content: str
    tags: list[str]
    cover_image: str
    author: PostAuthor
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PostPage(BaseModel):
    posts: list[PostRead]
    page: int
    pages: int
    total: int
