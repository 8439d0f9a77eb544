"""课程目录模型 - 课程 / 模块 / 课时，以及分类与标签。"""

from datetime import date, datetime
from typing import TYPE_CHECKING, List, Optional, Set

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from learning_platform.db import Base
from learning_platform.utils.timeutils import utcnow

if TYPE_CHECKING:
    from learning_platform.models.assignment import Assignment
    from learning_platform.models.progress import CourseReview, Enrollment
    from learning_platform.models.quiz import Quiz
    from learning_platform.models.user import User


# 课程-标签多对多关联表。删除课程只删关联行，标签本身独立存在。
course_tags = Table(
    "course_tags",
    Base.metadata,
    Column("course_id", ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Category(Base):
    """课程分类。"""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name={self.name})>"


class Tag(Base):
    """课程标签。"""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name={self.name})>"


class Course(Base):
    """课程。

    模块、选课记录、评价随课程级联删除；教师、分类、标签为共享引用。
    所有关系都声明为 ``lazy="raise"``：未在加载形状中解析的关系一旦被读取立即报错。
    """

    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    duration: Mapped[Optional[str]] = mapped_column(String(20))  # 如 "8 weeks"
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)

    # === 共享引用 ===
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL")
    )
    teacher_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    # === 关系定义 ===
    category: Mapped[Optional[Category]] = relationship(lazy="raise")
    teacher: Mapped["User"] = relationship(lazy="raise")
    tags: Mapped[Set[Tag]] = relationship(
        secondary=course_tags,
        collection_class=set,
        passive_deletes=True,
        lazy="raise",
    )
    modules: Mapped[List["Module"]] = relationship(
        order_by="Module.order_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
    enrollments: Mapped[List["Enrollment"]] = relationship(
        order_by="Enrollment.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
    reviews: Mapped[List["CourseReview"]] = relationship(
        order_by="CourseReview.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, title={self.title})>"


class Module(Base):
    """课程模块，``order_index`` 在同一课程内唯一。"""

    __tablename__ = "modules"
    __table_args__ = (UniqueConstraint("course_id", "order_index"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)

    lessons: Mapped[List["Lesson"]] = relationship(
        order_by="Lesson.order_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
    quiz: Mapped[Optional["Quiz"]] = relationship(
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<Module(id={self.id}, course_id={self.course_id}, order={self.order_index})>"


class Lesson(Base):
    """模块下的课时。"""

    __tablename__ = "lessons"
    __table_args__ = (UniqueConstraint("module_id", "order_index"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    module_id: Mapped[int] = mapped_column(
        ForeignKey("modules.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text)
    video_url: Mapped[Optional[str]] = mapped_column(String(500))
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer)

    assignments: Mapped[List["Assignment"]] = relationship(
        order_by="Assignment.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<Lesson(id={self.id}, module_id={self.module_id}, order={self.order_index})>"
