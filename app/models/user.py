from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, deferred, mapped_column, relationship

from app.db.base import Base
from app.models.common import TimestampMixin, UUIDPrimaryKeyMixin


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    # Only loaded when a query undefers it (login).
    password_hash: Mapped[str] = deferred(mapped_column(String(255), nullable=False))
    bio: Mapped[str] = mapped_column(Text, default="", nullable=False)
    avatar: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    avatar_key: Mapped[str | None] = mapped_column(String(255), nullable=True)

    posts = relationship("Post", back_populates="author", cascade="all, delete-orphan")
