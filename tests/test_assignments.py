from datetime import timedelta

import pytest

from learning_platform.errors import (
    AlreadyCompletedError,
    DuplicateError,
    InvalidRangeError,
    NotFoundError,
)
from learning_platform.utils.timeutils import utcnow


@pytest.fixture()
def assignment(facade, course):
    lesson = facade.load_full_course(course.id).modules[0].lessons[0]
    return facade.create_assignment(
        lesson.id, "Normalize a schema", due_date=utcnow() + timedelta(days=3), max_score=20
    )


def test_submit_and_grade(facade, people, assignment):
    submission = facade.submit_assignment(assignment.id, people.student.id, "3NF attached")
    assert not submission.is_graded

    graded = facade.grade_submission(submission.id, 18, "Nice work")

    assert graded.is_graded
    assert graded.score == 18
    assert graded.feedback == "Nice work"
    assert graded.graded_at is not None


def test_second_submission_is_duplicate(facade, people, assignment):
    facade.submit_assignment(assignment.id, people.student.id, "v1")

    with pytest.raises(DuplicateError):
        facade.submit_assignment(assignment.id, people.student.id, "v2")


def test_graded_submission_is_immutable(facade, people, assignment):
    submission = facade.submit_assignment(assignment.id, people.student.id, "draft")
    facade.grade_submission(submission.id, 10)

    with pytest.raises(AlreadyCompletedError):
        facade.grade_submission(submission.id, 20)

    stored = facade.load_one("assignment-submissions", assignment.id).submissions
    assert [s.score for s in stored] == [10]


@pytest.mark.parametrize("score", [-1, 21])
def test_score_must_fit_max_score(facade, people, assignment, score):
    submission = facade.submit_assignment(assignment.id, people.student.id, "draft")

    with pytest.raises(InvalidRangeError):
        facade.grade_submission(submission.id, score)


def test_ungraded_listing_and_average(facade, people, assignment):
    first = facade.submit_assignment(assignment.id, people.student.id, "a")
    second = facade.submit_assignment(assignment.id, people.other_student.id, "b")
    facade.grade_submission(first.id, 15)

    assert [s.id for s in facade.ungraded_submissions(assignment.id)] == [second.id]
    assert facade.student_assignment_average(people.student.id) == 15
    assert facade.student_assignment_average(people.other_student.id) is None


def test_lateness_against_due_date(facade, people, assignment):
    submission = facade.submit_assignment(assignment.id, people.student.id, "early")

    assert not submission.is_late(assignment.due_date)
    assert submission.is_late(utcnow() - timedelta(days=1))
    assert not submission.is_late(None)
    assert not assignment.is_past_due()


def test_missing_entities(facade, people, course):
    with pytest.raises(NotFoundError):
        facade.create_assignment(9999, "Ghost")
    with pytest.raises(NotFoundError):
        facade.submit_assignment(9999, people.student.id, "x")
    with pytest.raises(NotFoundError):
        facade.grade_submission(9999, 1)


def test_lesson_assignments_shape(facade, assignment):
    lesson = facade.load_one("lesson-assignments", assignment.lesson_id)

    assert [a.title for a in lesson.assignments] == ["Normalize a schema"]


def test_submissions_by_student(facade, people, assignment, course):
    lesson = facade.load_full_course(course.id).modules[1].lessons[0]
    other = facade.create_assignment(lesson.id, "Index design")
    first = facade.submit_assignment(assignment.id, people.student.id, "a")
    second = facade.submit_assignment(other.id, people.student.id, "b")
    facade.submit_assignment(assignment.id, people.other_student.id, "c")

    submissions = facade.assignment_submissions_by_student(people.student.id)

    assert [s.id for s in submissions] == [first.id, second.id]
    assert facade.assignment_submissions_by_student(people.admin.id) == []
