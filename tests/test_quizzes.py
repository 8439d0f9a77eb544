import pytest

from learning_platform.errors import (
    DuplicateError,
    InvalidInputError,
    InvalidRangeError,
    NotFoundError,
)
from learning_platform.models import QuestionType


def test_take_quiz_scores_and_records(facade, people, quiz):
    answers = {
        quiz.single_a.id: [quiz.a_right.id],
        quiz.single_b.id: [quiz.b_wrong.id],
        quiz.multi.id: [quiz.m1.id, quiz.m2.id],
    }

    attempt = facade.take_quiz(quiz.quiz.id, people.student.id, answers, time_spent_minutes=12)

    assert attempt.submission.score == 66
    assert attempt.submission.correct_answers == 2
    assert attempt.submission.total_questions == 3
    assert attempt.submission.time_spent_minutes == 12
    assert attempt.passed
    assert facade.did_student_pass(quiz.quiz.id, people.student.id)


def test_take_quiz_accepts_loose_json_keys(facade, people, quiz):
    answers = {str(quiz.single_a.id): [str(quiz.a_right.id), str(quiz.a_right.id)]}

    attempt = facade.take_quiz(quiz.quiz.id, people.student.id, answers)

    assert attempt.result.breakdown[quiz.single_a.id] is True
    assert attempt.submission.correct_answers == 1
    assert not attempt.passed


def test_extra_selection_is_wrong(facade, people, quiz):
    answers = {quiz.multi.id: [quiz.m1.id, quiz.m2.id, quiz.m3.id]}

    attempt = facade.take_quiz(quiz.quiz.id, people.student.id, answers)

    assert attempt.result.breakdown[quiz.multi.id] is False
    assert attempt.submission.score == 0


def test_second_attempt_is_duplicate(facade, people, quiz):
    first = facade.take_quiz(
        quiz.quiz.id, people.student.id, {quiz.single_a.id: [quiz.a_right.id]}
    )

    with pytest.raises(DuplicateError):
        facade.take_quiz(
            quiz.quiz.id,
            people.student.id,
            {
                quiz.single_a.id: [quiz.a_right.id],
                quiz.single_b.id: [quiz.b_right.id],
                quiz.multi.id: [quiz.m1.id, quiz.m2.id],
            },
        )

    stored = facade.load_one("quiz-submissions", quiz.quiz.id).submissions
    assert [(s.id, s.score) for s in stored] == [(first.submission.id, first.submission.score)]


def test_malformed_answer_map(facade, people, quiz):
    with pytest.raises(InvalidInputError):
        facade.take_quiz(quiz.quiz.id, people.student.id, {"first": [1]})
    with pytest.raises(InvalidInputError):
        facade.take_quiz(quiz.quiz.id, people.student.id, {quiz.single_a.id: "abc"})


def test_answers_outside_quiz(facade, people, quiz):
    with pytest.raises(InvalidInputError):
        facade.take_quiz(quiz.quiz.id, people.student.id, {quiz.single_a.id: [quiz.b_right.id]})


def test_take_quiz_missing_entities(facade, people, quiz):
    with pytest.raises(NotFoundError):
        facade.take_quiz(999, people.student.id, {})
    with pytest.raises(NotFoundError):
        facade.take_quiz(quiz.quiz.id, 999, {})


def test_quiz_without_questions(facade, people, course):
    module = facade.load_one("course-modules", course.id).modules[1]
    empty = facade.create_quiz(module.id, "Nothing yet")

    with pytest.raises(InvalidInputError):
        facade.take_quiz(empty.id, people.student.id, {})


def test_one_quiz_per_module(facade, quiz):
    with pytest.raises(DuplicateError):
        facade.create_quiz(quiz.quiz.module_id, "Another")


def test_passing_score_range(facade, course):
    module = facade.load_one("course-modules", course.id).modules[2]

    with pytest.raises(InvalidRangeError):
        facade.create_quiz(module.id, "Impossible", passing_score=120)


def test_single_choice_allows_one_correct_option(facade, quiz):
    with pytest.raises(InvalidInputError):
        facade.add_option(quiz.single_a.id, "four", True)

    facade.add_option(quiz.single_a.id, "six", False)


def test_true_false_allows_two_options(facade, quiz):
    question = facade.add_question(quiz.quiz.id, "Sky is blue", QuestionType.TRUE_FALSE)
    facade.add_option(question.id, "True", True)
    facade.add_option(question.id, "False", False)

    with pytest.raises(InvalidInputError):
        facade.add_option(question.id, "Maybe", False)


def test_questions_append_in_order(facade, quiz):
    extra = facade.add_question(quiz.quiz.id, "Last one", QuestionType.TRUE_FALSE)

    loaded = facade.load_full_quiz(quiz.quiz.id)

    assert [q.id for q in loaded.questions][-1] == extra.id
    assert extra.order_index == 3
    assert [o.id for o in loaded.questions[2].options] == [quiz.m1.id, quiz.m2.id, quiz.m3.id]


def test_quiz_full_loads_in_two_queries(facade, quiz, query_counter):
    query_counter.reset()

    loaded = facade.load_full_quiz(quiz.quiz.id)

    created = [quiz.a_right, quiz.a_wrong, quiz.b_right, quiz.b_wrong, quiz.m1, quiz.m2, quiz.m3]
    assert len(query_counter.selects) == 2
    assert sum(len(q.options) for q in loaded.questions) == len(created)


def test_averages(facade, people, quiz):
    facade.take_quiz(quiz.quiz.id, people.student.id, {quiz.single_a.id: [quiz.a_right.id]})
    facade.take_quiz(
        quiz.quiz.id,
        people.other_student.id,
        {
            quiz.single_a.id: [quiz.a_right.id],
            quiz.single_b.id: [quiz.b_right.id],
            quiz.multi.id: [quiz.m1.id, quiz.m2.id],
        },
    )

    assert facade.quiz_average_score(quiz.quiz.id) == pytest.approx((33 + 100) / 2)
    assert facade.student_quiz_average(people.other_student.id) == 100
    assert len(facade.quiz_submissions_by_student(people.student.id)) == 1


def test_take_quiz_removed_after_loading(facade, people, quiz, monkeypatch):
    """加载完成后测验所在模块被删除，作答返回 NotFound 而非存储错误。"""

    load_full_quiz = facade.load_full_quiz

    def load_then_remove(quiz_id, cancel=None):
        loaded = load_full_quiz(quiz_id, cancel=cancel)
        facade.remove_module(loaded.module_id)
        return loaded

    monkeypatch.setattr(facade, "load_full_quiz", load_then_remove)

    with pytest.raises(NotFoundError) as exc_info:
        facade.take_quiz(quiz.quiz.id, people.student.id, {quiz.single_a.id: [quiz.a_right.id]})

    assert exc_info.value.context["entity"] == "Quiz"
    assert facade.quiz_submissions_by_student(people.student.id) == []


def test_quiz_by_module(facade, course, quiz):
    found = facade.get_quiz_by_module(quiz.quiz.module_id)

    assert found.id == quiz.quiz.id
    second = facade.load_one("course-modules", course.id).modules[1]
    with pytest.raises(NotFoundError):
        facade.get_quiz_by_module(second.id)
