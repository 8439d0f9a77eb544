from sqlalchemy import func, select, text

from learning_platform.models import Course, User
from learning_platform.services import seed_if_empty


def test_seed_runs_once(session_factory, facade):
    assert seed_if_empty(session_factory) is True
    assert seed_if_empty(session_factory) is False

    with session_factory() as db:
        assert db.scalar(select(func.count(User.id))) == 3
        course_id = db.scalar(select(Course.id))

    course = facade.load_full_course(course_id)
    assert [len(m.lessons) for m in course.modules] == [2, 0]
    assert facade.load_full_quiz(1).passing_score == 60


def test_foreign_keys_enforced(engine):
    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
