from types import SimpleNamespace
from typing import List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.pool import StaticPool

from learning_platform.config import get_settings
from learning_platform.db import build_engine, build_session_factory, init_db
from learning_platform.dependencies import get_facade
from learning_platform.main import create_app
from learning_platform.models import QuestionType, UserRole
from learning_platform.services import CatalogFacade


class QueryCounter:
    """记录引擎上实际发出的 SQL 语句。"""

    def __init__(self) -> None:
        self.statements: List[str] = []

    def __call__(self, _conn, _cursor, statement, _parameters, _context, _executemany) -> None:
        self.statements.append(statement)

    @property
    def selects(self) -> List[str]:
        return [s for s in self.statements if s.lstrip().upper().startswith("SELECT")]

    def reset(self) -> None:
        self.statements.clear()


@pytest.fixture()
def engine():
    """每个测试一个独立的内存库，StaticPool 保证所有会话共享同一连接。"""

    engine = build_engine("sqlite:///:memory:", poolclass=StaticPool)
    init_db(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def facade(session_factory):
    return CatalogFacade(session_factory=session_factory, settings=get_settings())


@pytest.fixture()
def query_counter(engine):
    counter = QueryCounter()
    event.listen(engine, "before_cursor_execute", counter)
    try:
        yield counter
    finally:
        event.remove(engine, "before_cursor_execute", counter)


@pytest.fixture()
def client(facade):
    app = create_app()
    app.dependency_overrides[get_facade] = lambda: facade
    # 不进入上下文，避免 startup 钩子对默认库建表
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def people(facade):
    return SimpleNamespace(
        teacher=facade.create_user("Grace Hopper", "grace@example.com", UserRole.TEACHER),
        student=facade.create_user("Alan Turing", "alan@example.com", UserRole.STUDENT),
        other_student=facade.create_user("Ada Byron", "ada@example.com", UserRole.STUDENT),
        admin=facade.create_user("Root", "root@example.com", UserRole.ADMIN),
    )


def build_course(facade, teacher_id, modules=3, lessons=4, category_id=None, title="Databases"):
    course = facade.create_course(teacher_id, title, category_id=category_id)
    for m in range(modules):
        module = facade.add_module(course.id, f"Module {m}", m)
        for n in range(lessons):
            facade.add_lesson(module.id, f"Lesson {m}.{n}", n)
    return course


@pytest.fixture()
def course_builder(facade):
    return lambda teacher_id, **kwargs: build_course(facade, teacher_id, **kwargs)


@pytest.fixture()
def course(facade, people):
    category = facade.create_category("Computer Science")
    return build_course(facade, people.teacher.id, category_id=category.id)


@pytest.fixture()
def quiz(facade, course):
    """两道单选题、一道多选题（正确项为前两个）。"""

    module = facade.load_one("course-modules", course.id).modules[0]
    quiz = facade.create_quiz(module.id, "Checkpoint", passing_score=60)

    single_a = facade.add_question(quiz.id, "2 + 2?", QuestionType.SINGLE_CHOICE)
    a_right = facade.add_option(single_a.id, "4", True)
    a_wrong = facade.add_option(single_a.id, "5", False)

    single_b = facade.add_question(quiz.id, "Capital of France?", QuestionType.SINGLE_CHOICE)
    b_right = facade.add_option(single_b.id, "Paris", True)
    b_wrong = facade.add_option(single_b.id, "Rome", False)

    multi = facade.add_question(quiz.id, "Pick the primes", QuestionType.MULTIPLE_CHOICE)
    m1 = facade.add_option(multi.id, "2", True)
    m2 = facade.add_option(multi.id, "3", True)
    m3 = facade.add_option(multi.id, "4", False)

    return SimpleNamespace(
        quiz=quiz,
        single_a=single_a,
        single_b=single_b,
        multi=multi,
        a_right=a_right,
        a_wrong=a_wrong,
        b_right=b_right,
        b_wrong=b_wrong,
        m1=m1,
        m2=m2,
        m3=m3,
    )
