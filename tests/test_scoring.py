import pytest

from learning_platform.errors import InvalidInputError, UnresolvedReferenceError
from learning_platform.models import AnswerOption, Question, QuestionType, Quiz, QuizSubmission
from learning_platform.services.scoring import passed, score_quiz


def _question(question_id, question_type, options):
    return Question(
        id=question_id,
        text=f"Q{question_id}",
        type=question_type,
        options=[AnswerOption(id=oid, text=str(oid), is_correct=ok) for oid, ok in options],
    )


def _two_single_choice_quiz(passing_score=None):
    return Quiz(
        id=1,
        title="Basics",
        passing_score=passing_score,
        questions=[
            _question(10, QuestionType.SINGLE_CHOICE, [(100, True), (101, False)]),
            _question(20, QuestionType.SINGLE_CHOICE, [(200, True), (201, False)]),
        ],
    )


def test_one_of_two_correct_scores_fifty() -> None:
    result = score_quiz(_two_single_choice_quiz(), {10: {100}, 20: {201}})

    assert result.score == 50
    assert result.correct_answers == 1
    assert result.total_questions == 2
    assert result.breakdown == {10: True, 20: False}


def test_multiple_choice_requires_exact_set() -> None:
    quiz = Quiz(
        id=2,
        title="Primes",
        questions=[
            _question(30, QuestionType.MULTIPLE_CHOICE, [(1, True), (2, True), (3, False)]),
        ],
    )

    assert score_quiz(quiz, {30: {1, 2, 3}}).score == 0
    assert score_quiz(quiz, {30: {1}}).score == 0
    assert score_quiz(quiz, {30: {2, 1}}).score == 100


def test_missing_answer_counts_as_wrong() -> None:
    result = score_quiz(_two_single_choice_quiz(), {10: {100}})

    assert result.correct_answers == 1
    assert result.breakdown[20] is False


def test_score_truncates_percentage() -> None:
    quiz = Quiz(
        id=3,
        title="Thirds",
        questions=[
            _question(qid, QuestionType.TRUE_FALSE, [(qid * 10, True), (qid * 10 + 1, False)])
            for qid in (1, 2, 3)
        ],
    )

    assert score_quiz(quiz, {1: {10}, 2: {20}, 3: {31}}).score == 66
    assert score_quiz(quiz, {1: {10}}).score == 33


def test_points_do_not_weight_the_score() -> None:
    quiz = _two_single_choice_quiz()
    quiz.questions[0].points = 10

    assert score_quiz(quiz, {20: {200}}).score == 50


def test_foreign_ids_are_rejected() -> None:
    quiz = _two_single_choice_quiz()

    with pytest.raises(InvalidInputError):
        score_quiz(quiz, {99: {100}})
    with pytest.raises(InvalidInputError):
        score_quiz(quiz, {10: {200}})


def test_quiz_without_questions_cannot_be_scored() -> None:
    with pytest.raises(InvalidInputError):
        score_quiz(Quiz(id=4, title="Empty", questions=[]), {})


def test_scoring_requires_resolved_options() -> None:
    quiz = Quiz(id=5, title="Shallow", questions=[Question(id=1, text="?", type=QuestionType.TRUE_FALSE)])

    with pytest.raises(UnresolvedReferenceError):
        score_quiz(quiz, {})


def test_passed_uses_passing_score() -> None:
    submission = QuizSubmission(score=50, total_questions=2, correct_answers=1)

    assert passed(_two_single_choice_quiz(passing_score=50), submission)
    assert not passed(_two_single_choice_quiz(passing_score=51), submission)
    assert passed(_two_single_choice_quiz(passing_score=None), submission)
