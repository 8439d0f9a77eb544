from datetime import date

import pytest
from sqlalchemy import func, select

from learning_platform.errors import DuplicateError, InvalidInputError, NotFoundError, WrongRoleError
from learning_platform.models import Lesson, Module, Tag
from learning_platform.services.courses import CourseService


def _count(session_factory, stmt):
    with session_factory() as db:
        return db.scalar(stmt)


def test_tag_removal_keeps_shared_tag(facade, session_factory, course):
    python, sql = facade.add_tags(course.id, ["python", "sql"])

    facade.remove_tag(course.id, sql.id)

    loaded = facade.load_one("course-tags", course.id)
    assert {t.name for t in loaded.tags} == {"python"}
    assert _count(session_factory, select(func.count(Tag.id)).where(Tag.id == sql.id)) == 1


def test_add_tags_is_idempotent_and_shared(facade, people, course, course_builder):
    facade.add_tags(course.id, ["sql", "sql", " sql "])
    other = course_builder(people.teacher.id, modules=0, title="Warehousing")
    shared = facade.add_tags(other.id, ["sql"])

    first = facade.load_one("course-tags", course.id)
    second = facade.load_one("course-tags", other.id)
    assert [t.id for t in first.tags] == [shared[0].id]
    assert [t.id for t in second.tags] == [shared[0].id]
    assert [c.title for c in facade.list_courses(tag_name="sql")] == ["Databases", "Warehousing"]


def test_remove_tag_unknown(facade, course):
    with pytest.raises(NotFoundError):
        facade.remove_tag(course.id, 404)
    with pytest.raises(InvalidInputError):
        facade.add_tags(course.id, ["  "])


def test_only_teachers_create_courses(facade, people):
    with pytest.raises(WrongRoleError):
        facade.create_course(people.student.id, "Rogue course")
    with pytest.raises(NotFoundError):
        facade.create_course(people.teacher.id, "No category", category_id=77)


def test_order_index_unique_within_parent(facade, course):
    with pytest.raises(DuplicateError):
        facade.add_module(course.id, "Clash", 0)

    module = facade.load_one("course-modules", course.id).modules[0]
    with pytest.raises(DuplicateError):
        facade.add_lesson(module.id, "Clash", 0)


def test_remove_module_deletes_owned_subtree(facade, session_factory, course):
    module = facade.load_one("course-modules", course.id).modules[0]
    facade.create_quiz(module.id, "Soon gone")

    facade.remove_module(module.id)

    loaded = facade.load_full_course(course.id)
    assert [m.order_index for m in loaded.modules] == [1, 2]
    assert _count(session_factory, select(func.count(Lesson.id)).where(Lesson.module_id == module.id)) == 0


def test_delete_course_keeps_shared_references(facade, session_factory, people, course):
    facade.add_tags(course.id, ["python"])
    facade.enroll(people.student.id, course.id)
    facade.create_review(course.id, people.student.id, 5)

    facade.delete_course(course.id)

    with pytest.raises(NotFoundError):
        facade.load_full_course(course.id)
    assert _count(session_factory, select(func.count(Module.id))) == 0
    assert _count(session_factory, select(func.count(Tag.id))) == 1
    assert facade.count_enrollments() == 0
    assert facade.load_one("user-profile", people.teacher.id).email == "grace@example.com"


def test_course_search(facade, people, course_builder):
    course_builder(people.teacher.id, modules=0, title="Intro to SQL")
    course_builder(people.teacher.id, modules=0, title="Advanced sql tuning")
    course_builder(people.teacher.id, modules=0, title="Networking")

    titles = [c.title for c in facade.list_courses(title_contains="SQL")]

    assert titles == ["Intro to SQL", "Advanced sql tuning"]
    assert len(facade.list_courses(teacher_id=people.teacher.id)) == 3


def test_course_teacher_shape(facade, course):
    loaded = facade.load_one("course-teacher", course.id)

    assert loaded.teacher.name == "Grace Hopper"
    assert loaded.category.name == "Computer Science"


def test_category_names_are_unique(facade):
    facade.create_category("Math")

    with pytest.raises(DuplicateError):
        facade.create_category("Math")


def test_tag_created_by_concurrent_request_is_reused(
    facade, people, course, course_builder, monkeypatch
):
    """查找时标签尚不存在、插入时已被他人创建：复用已有标签。"""

    (existing,) = facade.add_tags(course.id, ["sql"])
    other = course_builder(people.teacher.id, modules=0, title="Warehousing")

    find_tag = CourseService.find_tag
    lookups = []

    def stale_first_lookup(self, db, name):
        lookups.append(name)
        return None if len(lookups) == 1 else find_tag(self, db, name)

    monkeypatch.setattr(CourseService, "find_tag", stale_first_lookup)

    (tag,) = facade.add_tags(other.id, ["sql", "sql"])

    assert tag.id == existing.id
    assert lookups == ["sql", "sql"]
    assert [t.id for t in facade.load_one("course-tags", other.id).tags] == [existing.id]


def test_update_course(facade, course):
    math = facade.create_category("Mathematics")

    updated = facade.update_course(
        course.id,
        title="Relational Databases",
        category_id=math.id,
        start_date=date(2024, 9, 1),
        end_date=date(2024, 12, 20),
    )

    assert updated.title == "Relational Databases"
    assert updated.teacher_id == course.teacher_id
    loaded = facade.load_one("course-teacher", course.id)
    assert loaded.category.name == "Mathematics"
    assert loaded.description == course.description

    # 只传结束日期时与已有开始日期比较
    with pytest.raises(InvalidInputError):
        facade.update_course(course.id, end_date=date(2024, 8, 1))


def test_update_course_rejects_bad_input(facade, course):
    with pytest.raises(InvalidInputError):
        facade.update_course(course.id, teacher_id=1)
    with pytest.raises(InvalidInputError):
        facade.update_course(course.id, title="  ")
    with pytest.raises(NotFoundError):
        facade.update_course(course.id, category_id=999)
    with pytest.raises(NotFoundError):
        facade.update_course(999, title="Ghost")

    assert facade.load_one("course-modules", course.id).title == "Databases"


def test_popular_courses_by_enrollment_count(facade, people, course, course_builder):
    quiet = course_builder(people.teacher.id, modules=0, title="Quiet")
    busy = course_builder(people.teacher.id, modules=0, title="Busy")
    facade.enroll(people.student.id, busy.id)
    facade.enroll(people.other_student.id, busy.id)
    dropped = facade.enroll(people.student.id, course.id)
    facade.unenroll(dropped.id)

    ranking = [(c.id, n) for c, n in facade.popular_courses()]

    assert ranking == [(busy.id, 2), (course.id, 1), (quiet.id, 0)]
    assert [c.id for c, _ in facade.popular_courses(limit=1)] == [busy.id]
    with pytest.raises(InvalidInputError):
        facade.popular_courses(limit=0)
