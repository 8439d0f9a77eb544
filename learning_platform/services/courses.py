"""课程结构服务：课程、模块、课时、分类与标签。

子实体按外键直接写入，不经过父对象的集合（集合为 ``lazy="raise"``，未加载时不可追加）。
删除课程/模块交给存储层的 ``ON DELETE CASCADE``；标签只删除关联行。
"""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable, List, Optional, Tuple

import structlog
from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from learning_platform.db import flush_unique, is_unique_violation
from learning_platform.errors import (
    DuplicateError,
    InvalidInputError,
    NotFoundError,
    WrongRoleError,
)
from learning_platform.models import (
    Category,
    Course,
    Enrollment,
    EnrollmentStatus,
    Lesson,
    Module,
    Tag,
    User,
    UserRole,
    course_tags,
)


logger = structlog.get_logger(__name__)

COURSE_FIELDS = (
    "title",
    "description",
    "category_id",
    "duration",
    "start_date",
    "end_date",
)


class CourseService:
    def get_course(self, db: Session, course_id: int) -> Course:
        course = db.get(Course, course_id)
        if course is None:
            raise NotFoundError("Course", course_id)
        return course

    def get_module(self, db: Session, module_id: int) -> Module:
        module = db.get(Module, module_id)
        if module is None:
            raise NotFoundError("Module", module_id)
        return module

    def create_category(
        self, db: Session, name: str, description: Optional[str] = None
    ) -> Category:
        message = f"Category already exists: {name}"
        if db.scalar(select(Category.id).where(Category.name == name)) is not None:
            raise DuplicateError(message, name=name)
        category = Category(name=name, description=description)
        db.add(category)
        flush_unique(db, message, name=name)
        logger.info("category_created", category_id=category.id)
        return category

    def create_course(
        self,
        db: Session,
        teacher_id: int,
        title: str,
        description: Optional[str] = None,
        category_id: Optional[int] = None,
        duration: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Course:
        logger.info("creating_course", title=title, teacher_id=teacher_id)

        teacher = db.get(User, teacher_id)
        if teacher is None:
            raise NotFoundError("User", teacher_id)
        if teacher.role != UserRole.TEACHER:
            raise WrongRoleError("Only teachers can create courses", user_id=teacher_id)
        if category_id is not None and db.get(Category, category_id) is None:
            raise NotFoundError("Category", category_id)
        if start_date and end_date and end_date < start_date:
            raise InvalidInputError("Course end date precedes its start date")

        course = Course(
            teacher_id=teacher_id,
            title=title,
            description=description,
            category_id=category_id,
            duration=duration,
            start_date=start_date,
            end_date=end_date,
        )
        db.add(course)
        db.flush()

        logger.info("course_created", course_id=course.id)
        return course

    def update_course(self, db: Session, course_id: int, **fields: Any) -> Course:
        """更新课程基本信息；只覆盖显式传入的字段，授课教师不可更改。"""

        logger.info("updating_course", course_id=course_id)

        unknown = sorted(set(fields) - set(COURSE_FIELDS))
        if unknown:
            raise InvalidInputError("Unknown course fields", fields=unknown)
        if "title" in fields and not (fields["title"] or "").strip():
            raise InvalidInputError("Course title must not be empty")

        course = self.get_course(db, course_id)
        category_id = fields.get("category_id")
        if category_id is not None and db.get(Category, category_id) is None:
            raise NotFoundError("Category", category_id)

        start_date = fields.get("start_date", course.start_date)
        end_date = fields.get("end_date", course.end_date)
        if start_date and end_date and end_date < start_date:
            raise InvalidInputError("Course end date precedes its start date")

        for name, value in fields.items():
            setattr(course, name, value)
        db.flush()

        logger.info("course_updated", course_id=course_id, fields=sorted(fields))
        return course

    def add_module(
        self,
        db: Session,
        course_id: int,
        title: str,
        order_index: int,
        description: Optional[str] = None,
    ) -> Module:
        logger.info("adding_module", course_id=course_id, order_index=order_index)

        self.get_course(db, course_id)
        module = Module(
            course_id=course_id,
            title=title,
            order_index=order_index,
            description=description,
        )
        db.add(module)
        flush_unique(
            db,
            f"Course {course_id} already has a module at position {order_index}",
            course_id=course_id,
            order_index=order_index,
        )

        logger.info("module_added", module_id=module.id)
        return module

    def add_lesson(
        self,
        db: Session,
        module_id: int,
        title: str,
        order_index: int,
        content: Optional[str] = None,
        video_url: Optional[str] = None,
        duration_minutes: Optional[int] = None,
    ) -> Lesson:
        logger.info("adding_lesson", module_id=module_id, order_index=order_index)

        self.get_module(db, module_id)
        lesson = Lesson(
            module_id=module_id,
            title=title,
            order_index=order_index,
            content=content,
            video_url=video_url,
            duration_minutes=duration_minutes,
        )
        db.add(lesson)
        flush_unique(
            db,
            f"Module {module_id} already has a lesson at position {order_index}",
            module_id=module_id,
            order_index=order_index,
        )

        logger.info("lesson_added", lesson_id=lesson.id)
        return lesson

    def remove_module(self, db: Session, module_id: int) -> None:
        """移除模块及其下全部课时、作业、测验（孤儿删除）。"""

        self.get_module(db, module_id)
        db.execute(delete(Module).where(Module.id == module_id))
        logger.info("module_removed", module_id=module_id)

    def delete_course(self, db: Session, course_id: int) -> None:
        """删除课程及其拥有的子树；教师、分类、标签保留。"""

        logger.info("deleting_course", course_id=course_id)
        self.get_course(db, course_id)
        db.execute(delete(Course).where(Course.id == course_id))
        logger.info("course_deleted", course_id=course_id)

    def find_tag(self, db: Session, name: str) -> Optional[Tag]:
        return db.scalar(select(Tag).where(Tag.name == name))

    def _find_or_create_tag(self, db: Session, name: str) -> Tag:
        tag = self.find_tag(db, name)
        if tag is not None:
            return tag
        try:
            # 保存点内插入：冲突只回滚这一步，外层事务继续
            with db.begin_nested():
                tag = Tag(name=name)
                db.add(tag)
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise
            tag = self.find_tag(db, name)
            if tag is None:
                raise
            logger.info("tag_created_concurrently", name=name, tag_id=tag.id)
        return tag

    def add_tags(self, db: Session, course_id: int, names: Iterable[str]) -> List[Tag]:
        """按名称查找或创建标签并关联到课程，重复关联会被忽略。

        并发请求同时创建同名标签时，后到的一方复用已存在的标签。
        """

        logger.info("adding_tags", course_id=course_id)
        self.get_course(db, course_id)

        wanted = list(dict.fromkeys(name.strip() for name in names if name and name.strip()))
        if not wanted:
            raise InvalidInputError("At least one tag name is required")

        tags: List[Tag] = []
        for name in wanted:
            tag = self._find_or_create_tag(db, name)
            linked = db.scalar(
                select(func.count())
                .select_from(course_tags)
                .where(course_tags.c.course_id == course_id, course_tags.c.tag_id == tag.id)
            )
            if not linked:
                db.execute(insert(course_tags).values(course_id=course_id, tag_id=tag.id))
            tags.append(tag)

        logger.info("tags_added", course_id=course_id, count=len(tags))
        return tags

    def remove_tag(self, db: Session, course_id: int, tag_id: int) -> None:
        logger.info("removing_tag", course_id=course_id, tag_id=tag_id)

        self.get_course(db, course_id)
        if db.get(Tag, tag_id) is None:
            raise NotFoundError("Tag", tag_id)
        db.execute(
            delete(course_tags).where(
                course_tags.c.course_id == course_id, course_tags.c.tag_id == tag_id
            )
        )
        logger.info("tag_removed", course_id=course_id, tag_id=tag_id)

    def list_courses(
        self,
        db: Session,
        teacher_id: Optional[int] = None,
        category_id: Optional[int] = None,
        tag_name: Optional[str] = None,
        title_contains: Optional[str] = None,
    ) -> List[Course]:
        stmt = select(Course)
        if teacher_id is not None:
            stmt = stmt.where(Course.teacher_id == teacher_id)
        if category_id is not None:
            stmt = stmt.where(Course.category_id == category_id)
        if tag_name is not None:
            stmt = stmt.where(
                Course.id.in_(
                    select(course_tags.c.course_id)
                    .join(Tag, Tag.id == course_tags.c.tag_id)
                    .where(Tag.name == tag_name)
                )
            )
        if title_contains:
            stmt = stmt.where(Course.title.ilike(f"%{title_contains}%"))
        return list(db.scalars(stmt.order_by(Course.id)))

    def popular_courses(
        self, db: Session, limit: Optional[int] = None
    ) -> List[Tuple[Course, int]]:
        """按选课人数（任意状态）降序排列课程，人数相同按 id 升序。"""

        enrolled = func.count(Enrollment.id)
        stmt = (
            select(Course, enrolled)
            .outerjoin(Enrollment, Enrollment.course_id == Course.id)
            .group_by(Course.id)
            .order_by(enrolled.desc(), Course.id)
        )
        if limit is not None:
            if limit <= 0:
                raise InvalidInputError("Limit must be positive", limit=limit)
            stmt = stmt.limit(limit)
        return [(course, count) for course, count in db.execute(stmt)]

    def count_active_enrollments(self, db: Session, course_id: int) -> int:
        return (
            db.scalar(
                select(func.count(Enrollment.id)).where(
                    Enrollment.course_id == course_id,
                    Enrollment.status == EnrollmentStatus.ACTIVE,
                )
            )
            or 0
        )
