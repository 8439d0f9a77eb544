import pytest

from learning_platform.errors import InvalidInputError, UnsupportedShapeError
from learning_platform.hydration import FetchShape, HydrationPlanner, get_shape, register_shape, shape_names
from learning_platform.models import Course, Module, Question, Quiz


def test_course_full_expands_one_collection_per_query() -> None:
    plan = HydrationPlanner().plan("course-full", root_ids=[1])

    assert len(plan.steps) == 2
    root, lessons = plan.steps
    assert root.entity is Course and root.expand == "modules"
    assert set(root.references) == {"teacher", "category"}
    assert lessons.entity is Module and lessons.expand == "lessons"
    assert lessons.parent_path == "modules"
    assert lessons.path == "modules.lessons"


def test_quiz_full_plans_questions_then_options() -> None:
    plan = HydrationPlanner().plan("quiz-full", root_ids=[7])

    assert [(s.entity, s.expand) for s in plan.steps] == [
        (Quiz, "questions"),
        (Question, "options"),
    ]
    assert plan.descriptor.resolved == {"questions", "questions.options"}


def test_sibling_collections_get_separate_queries() -> None:
    register_shape(
        FetchShape("test-course-siblings", Course, collections=("modules", "enrollments", "reviews"))
    )

    plan = HydrationPlanner().plan("test-course-siblings", root_ids=[1])

    assert [s.expand for s in plan.steps] == ["modules", "enrollments", "reviews"]
    assert all(s.entity is Course for s in plan.steps)
    assert [s.root for s in plan.steps] == [True, False, False]


def test_reference_only_shape_is_a_single_query() -> None:
    plan = HydrationPlanner().plan("course-teacher", root_ids=[1])

    assert len(plan.steps) == 1
    assert plan.root_step.expand is None


def test_unknown_shape_is_rejected() -> None:
    with pytest.raises(UnsupportedShapeError):
        HydrationPlanner().plan("course-everything", root_ids=[1])


def test_unknown_filter_column_is_rejected() -> None:
    with pytest.raises(InvalidInputError):
        HydrationPlanner().plan("course-modules", criteria={"colour": "red"})


def test_non_numeric_root_id_is_rejected() -> None:
    with pytest.raises(InvalidInputError):
        HydrationPlanner().plan("course-full", root_ids=["abc"])
    with pytest.raises(InvalidInputError):
        HydrationPlanner().plan("course-full", root_ids=[None])

    assert HydrationPlanner().plan("course-full", root_ids=["3", 3, 1]).root_ids == (3, 1)


def test_empty_id_list_needs_no_query() -> None:
    assert HydrationPlanner().plan("course-modules", root_ids=[]).is_empty
    assert not HydrationPlanner().plan("course-modules").is_empty


def test_shapes_reject_invalid_declarations() -> None:
    with pytest.raises(ValueError):
        register_shape(FetchShape("test-bad-order", Course, collections=("modules.lessons",)))
    with pytest.raises(ValueError):
        register_shape(FetchShape("test-bad-reference", Course, references=("modules",)))


def test_builtin_shapes_registered() -> None:
    names = set(shape_names())

    assert {"course-full", "course-modules", "quiz-full", "course-tags"} <= names
    assert get_shape("user-profile").references == ("profile",)
