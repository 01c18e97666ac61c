import logging
import math

from fastapi import Depends
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.db.session import get_db
from app.models.post import Post
from app.models.user import User
from app.schemas.post import PostCreate, PostPage, PostRead, PostUpdate
from app.services.media import BLOG_COVERS, MediaFile, MediaStore, discard_media, get_media_store, replace_media, stored_media_key

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50


class PostService:
    def __init__(self, db: Session, media: MediaStore) -> None:
        self.db = db
        self.media = media

    def list_posts(
        self,
        page: int = 1,
        limit: int = 10,
        author_id: str | None = None,
        tag: str | None = None,
        search: str | None = None,
    ) -> PostPage:
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        query = select(Post)
        if author_id:
            query = query.where(Post.author_id == author_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(Post.title.ilike(pattern), Post.content.ilike(pattern)))

        if tag:
            # Tags live in a JSON column, so filter them in Python.
            posts = [post for post in self.db.scalars(query.order_by(Post.created_at.desc())).unique() if tag in post.tags]
            total = len(posts)
            posts = posts[(page - 1) * limit : page * limit]
        else:
            total = self.db.scalar(select(func.count()).select_from(query.subquery())) or 0
            rows = self.db.scalars(query.order_by(Post.created_at.desc()).offset((page - 1) * limit).limit(limit))
            posts = list(rows.unique())

        return PostPage(
            posts=[PostRead.model_validate(post) for post in posts],
            page=page,
            pages=math.ceil(total / limit) if total else 0,
            total=total,
        )

    def get_post(self, post_id: str) -> PostRead:
        return PostRead.model_validate(self._get_post(post_id))

    def create_post(self, author: User, payload: PostCreate, cover: MediaFile | None = None) -> PostRead:
        if not payload.title or not payload.content:
            raise ValidationError("Please provide title and content")

        cover_url, cover_key = "", None
        if cover is not None:
            stored = self.media.upload(cover, BLOG_COVERS)
            cover_url, cover_key = stored.url, stored.key

        post = Post(
            author_id=author.id,
            title=payload.title.strip(),
            content=payload.content,
            tags=payload.tags,
            cover_image=cover_url,
            cover_image_key=cover_key,
        )
        self.db.add(post)
        self.db.commit()
        self.db.refresh(post)
        logger.info("User %s created post %s", author.id, post.id)
        return PostRead.model_validate(post)

    def update_post(self, post_id: str, author: User, patch: PostUpdate, cover: MediaFile | None = None) -> PostRead:
        post = self._get_owned_post(post_id, author, "update")

        if patch.title:
            post.title = patch.title.strip()
        if patch.content:
            post.content = patch.content
        if "tags" in patch.model_fields_set:
            post.tags = patch.tags
        if cover is not None:
            stored = replace_media(self.media, post.cover_image, post.cover_image_key, cover, BLOG_COVERS)
            post.cover_image, post.cover_image_key = stored.url, stored.key

        self.db.add(post)
        self.db.commit()
        self.db.refresh(post)
        logger.info("User %s updated post %s", author.id, post.id)
        return PostRead.model_validate(post)

    def delete_post(self, post_id: str, author: User) -> None:
        post = self._get_owned_post(post_id, author, "delete")
        cover_key = stored_media_key(post.cover_image, post.cover_image_key)
        self.db.delete(post)
        self.db.commit()
        discard_media(self.media, cover_key)
        logger.info("User %s deleted post %s", author.id, post_id)

    def _get_post(self, post_id: str) -> Post:
        post = self.db.get(Post, post_id)
        if post is None:
            raise NotFoundError("Blog not found")
        return post

    def _get_owned_post(self, post_id: str, author: User, action: str) -> Post:
        post = self._get_post(post_id)
        if post.author_id != author.id:
            raise ForbiddenError(f"Not authorized to {action} this blog")
        return post


def get_post_service(db: Session = Depends(get_db), media: MediaStore = Depends(get_media_store)) -> PostService:
    return PostService(db, media)
