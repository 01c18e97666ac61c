from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, undefer

from app.core.errors import ConflictError
from app.models.user import User


class UserRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_one(self, **filters) -> User | None:
        return self.db.scalar(select(User).filter_by(**filters))

    def find_by_id(self, user_id: str) -> User | None:
        return self.db.get(User, user_id)

    def find_by_email(self, email: str, with_password: bool = False) -> User | None:
        query = select(User).where(User.email == email)
        if with_password:
            query = query.options(undefer(User.password_hash))
        return self.db.scalar(query)

    def create(self, **fields) -> User:
        user = User(**fields)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("User already exists") from exc
        self.db.refresh(user)
        return user

    def save(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user
