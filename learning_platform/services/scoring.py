"""测验计分。

纯函数：输入已完整加载的测验（题目与选项均已解析）和作答映射，输出得分与逐题结果。

- 一道题判为正确，当且仅当提交的选项集合与正确选项集合完全相等；
  多选、漏选都算错，不给部分分。
- 作答映射中缺失的题目直接判错。
- ``score = 正确题数 * 100 // 题目总数``，按题数计算百分比，不按 ``points`` 加权。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Dict, Mapping

from learning_platform.errors import InvalidInputError
from learning_platform.models import Quiz, QuizSubmission
from learning_platform.models.graph import assert_resolved

AnswerMap = Mapping[int, AbstractSet[int]]


@dataclass(frozen=True)
class QuizScore:
    score: int
    total_questions: int
    correct_answers: int
    breakdown: Dict[int, bool]


def validate_answers(quiz: Quiz, answers: AnswerMap) -> None:
    """题目 id 必须属于该测验，选项 id 必须属于对应题目。"""

    options_by_question = {q.id: {o.id for o in q.options} for q in quiz.questions}
    unknown_questions = sorted(set(answers) - set(options_by_question))
    if unknown_questions:
        raise InvalidInputError(
            "Answers reference questions outside the quiz",
            quiz_id=quiz.id,
            question_ids=unknown_questions,
        )
    for question_id, option_ids in answers.items():
        foreign = sorted(set(option_ids) - options_by_question[question_id])
        if foreign:
            raise InvalidInputError(
                "Answers reference options outside the question",
                question_id=question_id,
                option_ids=foreign,
            )


def score_quiz(quiz: Quiz, answers: AnswerMap) -> QuizScore:
    assert_resolved(quiz, "questions.options")
    questions = list(quiz.questions)
    if not questions:
        raise InvalidInputError("Quiz has no questions", quiz_id=quiz.id)
    validate_answers(quiz, answers)

    breakdown: Dict[int, bool] = {}
    for question in questions:
        if question.id not in answers:
            breakdown[question.id] = False
            continue
        breakdown[question.id] = frozenset(answers[question.id]) == question.correct_option_ids()

    correct = sum(1 for ok in breakdown.values() if ok)
    return QuizScore(
        score=correct * 100 // len(questions),
        total_questions=len(questions),
        correct_answers=correct,
        breakdown=breakdown,
    )


def passed(quiz: Quiz, submission: QuizSubmission) -> bool:
    """未设置及格分时一律视为通过。"""

    return submission.is_passed(quiz.passing_score)
