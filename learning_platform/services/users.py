"""用户与用户资料服务。"""

from __future__ import annotations

from typing import Any, List, Optional

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from learning_platform.db import flush_unique
from learning_platform.errors import DuplicateError, InvalidInputError, NotFoundError
from learning_platform.models import Course, Profile, User, UserRole


logger = structlog.get_logger(__name__)

PROFILE_FIELDS = (
    "bio",
    "avatar_url",
    "city",
    "country",
    "website_url",
    "linkedin_url",
    "github_url",
)

USER_FIELDS = ("name", "email", "role", "phone_number")


def _normalise_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise InvalidInputError("A valid email address is required", email=email)
    return email


class UserService:
    def get_user(self, db: Session, user_id: int) -> User:
        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def find_by_email(self, db: Session, email: str) -> Optional[User]:
        return db.scalar(select(User).where(User.email == email.strip().lower()))

    def _courses_taught(self, db: Session, user_id: int) -> int:
        return db.scalar(select(func.count(Course.id)).where(Course.teacher_id == user_id)) or 0

    def create_user(
        self,
        db: Session,
        name: str,
        email: str,
        role: UserRole,
        phone_number: Optional[str] = None,
    ) -> User:
        logger.info("creating_user", email=email, role=role.value)

        email = _normalise_email(email)
        message = f"Email already registered: {email}"
        if self.find_by_email(db, email) is not None:
            raise DuplicateError(message, email=email)

        user = User(name=name, email=email, role=role, phone_number=phone_number)
        db.add(user)
        flush_unique(db, message, email=email)

        logger.info("user_created", user_id=user.id)
        return user

    def upsert_profile(self, db: Session, user_id: int, **fields: Optional[str]) -> Profile:
        """创建或更新用户资料；只覆盖显式传入的字段。"""

        unknown = sorted(set(fields) - set(PROFILE_FIELDS))
        if unknown:
            raise InvalidInputError("Unknown profile fields", fields=unknown)

        self.get_user(db, user_id)
        profile = db.scalar(select(Profile).where(Profile.user_id == user_id))
        if profile is None:
            profile = Profile(user_id=user_id)
            db.add(profile)
        for name, value in fields.items():
            setattr(profile, name, value)
        flush_unique(db, f"Profile already exists for user {user_id}", user_id=user_id)

        logger.info("profile_saved", user_id=user_id, profile_id=profile.id)
        return profile

    def update_user(self, db: Session, user_id: int, **fields: Any) -> User:
        """更新用户基本信息；邮箱变更需保持唯一，仍在授课的教师不能改为其他角色。"""

        logger.info("updating_user", user_id=user_id)

        unknown = sorted(set(fields) - set(USER_FIELDS))
        if unknown:
            raise InvalidInputError("Unknown user fields", fields=unknown)
        if "name" in fields and not (fields["name"] or "").strip():
            raise InvalidInputError("User name must not be empty")
        if "role" in fields and fields["role"] is None:
            raise InvalidInputError("User role is required")

        user = self.get_user(db, user_id)
        if "email" in fields:
            email = _normalise_email(fields["email"])
            fields["email"] = email
            owner = self.find_by_email(db, email)
            if owner is not None and owner.id != user_id:
                raise DuplicateError(f"Email already registered: {email}", email=email)

        role = fields.get("role")
        if role is not None and role != UserRole.TEACHER and user.role == UserRole.TEACHER:
            teaching = self._courses_taught(db, user_id)
            if teaching:
                raise InvalidInputError(
                    "User still teaches courses", user_id=user_id, courses=teaching
                )

        for name, value in fields.items():
            setattr(user, name, value)
        flush_unique(db, f"Email already registered: {user.email}", email=user.email)

        logger.info("user_updated", user_id=user_id, fields=sorted(fields))
        return user

    def search_users(self, db: Session, name_contains: str) -> List[User]:
        """按姓名关键字（不区分大小写）查找用户。"""

        stmt = select(User).where(User.name.ilike(f"%{name_contains}%"))
        return list(db.scalars(stmt.order_by(User.id)))

    def delete_user(self, db: Session, user_id: int) -> None:
        """删除用户，资料、选课、提交随之级联删除；仍在授课的教师不可删除。"""

        logger.info("deleting_user", user_id=user_id)

        self.get_user(db, user_id)
        teaching = self._courses_taught(db, user_id)
        if teaching:
            raise InvalidInputError(
                "User still teaches courses", user_id=user_id, courses=teaching
            )
        db.execute(delete(User).where(User.id == user_id))

        logger.info("user_deleted", user_id=user_id)

    def list_users(self, db: Session, role: Optional[UserRole] = None) -> List[User]:
        stmt = select(User)
        if role is not None:
            stmt = stmt.where(User.role == role)
        return list(db.scalars(stmt.order_by(User.id)))
