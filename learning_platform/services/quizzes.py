"""测验管理与作答记录。"""

from __future__ import annotations

from typing import List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from learning_platform.db import flush_unique
from learning_platform.errors import DuplicateError, InvalidInputError, InvalidRangeError, NotFoundError
from learning_platform.models import (
    AnswerOption,
    Module,
    Question,
    QuestionType,
    Quiz,
    QuizSubmission,
    User,
)
from learning_platform.services.scoring import AnswerMap, QuizScore, passed, score_quiz


logger = structlog.get_logger(__name__)

# 判断题只有“对 / 错”两个选项
_MAX_TRUE_FALSE_OPTIONS = 2


class QuizService:
    def get_quiz(self, db: Session, quiz_id: int) -> Quiz:
        quiz = db.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz", quiz_id)
        return quiz

    def get_by_module(self, db: Session, module_id: int) -> Quiz:
        quiz = db.scalar(select(Quiz).where(Quiz.module_id == module_id))
        if quiz is None:
            raise NotFoundError("Quiz for module", module_id)
        return quiz

    def create_quiz(
        self,
        db: Session,
        module_id: int,
        title: str,
        passing_score: Optional[int] = None,
        description: Optional[str] = None,
        time_limit: Optional[int] = None,
    ) -> Quiz:
        logger.info("creating_quiz", module_id=module_id)

        if db.get(Module, module_id) is None:
            raise NotFoundError("Module", module_id)
        if passing_score is not None and not 0 <= passing_score <= 100:
            raise InvalidRangeError(
                "Passing score must be between 0 and 100", passing_score=passing_score
            )

        message = f"Module {module_id} already has a quiz"
        if db.scalar(select(Quiz.id).where(Quiz.module_id == module_id)) is not None:
            raise DuplicateError(message, module_id=module_id)

        quiz = Quiz(
            module_id=module_id,
            title=title,
            passing_score=passing_score,
            description=description,
            time_limit=time_limit,
        )
        db.add(quiz)
        flush_unique(db, message, module_id=module_id)

        logger.info("quiz_created", quiz_id=quiz.id)
        return quiz

    def add_question(
        self,
        db: Session,
        quiz_id: int,
        text: str,
        question_type: QuestionType,
        points: int = 1,
        order_index: Optional[int] = None,
    ) -> Question:
        logger.info("adding_question", quiz_id=quiz_id)

        self.get_quiz(db, quiz_id)
        if points < 0:
            raise InvalidRangeError("Question points must not be negative", points=points)
        if order_index is None:
            last = db.scalar(
                select(func.max(Question.order_index)).where(Question.quiz_id == quiz_id)
            )
            order_index = 0 if last is None else last + 1

        question = Question(
            quiz_id=quiz_id,
            text=text,
            type=question_type,
            points=points,
            order_index=order_index,
        )
        db.add(question)
        db.flush()

        logger.info("question_added", question_id=question.id)
        return question

    def add_option(
        self,
        db: Session,
        question_id: int,
        text: str,
        is_correct: bool,
        order_index: Optional[int] = None,
    ) -> AnswerOption:
        logger.info("adding_answer_option", question_id=question_id)

        question = db.get(Question, question_id)
        if question is None:
            raise NotFoundError("Question", question_id)

        existing = list(
            db.scalars(select(AnswerOption).where(AnswerOption.question_id == question_id))
        )
        if question.type == QuestionType.TRUE_FALSE and len(existing) >= _MAX_TRUE_FALSE_OPTIONS:
            raise InvalidInputError(
                "True/false question accepts at most two options", question_id=question_id
            )
        if (
            is_correct
            and question.type != QuestionType.MULTIPLE_CHOICE
            and any(option.is_correct for option in existing)
        ):
            raise InvalidInputError(
                f"{question.type.value} question accepts only one correct option",
                question_id=question_id,
            )

        option = AnswerOption(
            question_id=question_id,
            text=text,
            is_correct=is_correct,
            order_index=len(existing) if order_index is None else order_index,
        )
        db.add(option)
        db.flush()

        logger.info("answer_option_added", option_id=option.id)
        return option

    def record_attempt(
        self,
        db: Session,
        quiz: Quiz,
        student_id: int,
        answers: AnswerMap,
        time_spent_minutes: Optional[int] = None,
    ) -> tuple[QuizSubmission, QuizScore]:
        """对已完整加载的测验计分并写入作答记录。"""

        logger.info("taking_quiz", quiz_id=quiz.id, student_id=student_id)

        # 测验在另一个事务中加载，写入前需确认它仍然存在
        if db.get(Quiz, quiz.id) is None:
            raise NotFoundError("Quiz", quiz.id)
        if db.get(User, student_id) is None:
            raise NotFoundError("User", student_id)

        message = f"Quiz submission already exists for quiz {quiz.id} by student {student_id}"
        if self.find_submission(db, quiz.id, student_id) is not None:
            raise DuplicateError(message, quiz_id=quiz.id, student_id=student_id)

        result = score_quiz(quiz, answers)
        submission = QuizSubmission(
            quiz_id=quiz.id,
            student_id=student_id,
            score=result.score,
            total_questions=result.total_questions,
            correct_answers=result.correct_answers,
            time_spent_minutes=time_spent_minutes,
        )
        db.add(submission)
        flush_unique(db, message, quiz_id=quiz.id, student_id=student_id)

        logger.info(
            "quiz_submission_created", submission_id=submission.id, score=result.score
        )
        return submission, result

    def find_submission(
        self, db: Session, quiz_id: int, student_id: int
    ) -> Optional[QuizSubmission]:
        return db.scalar(
            select(QuizSubmission).where(
                QuizSubmission.quiz_id == quiz_id, QuizSubmission.student_id == student_id
            )
        )

    def did_student_pass(self, db: Session, quiz_id: int, student_id: int) -> bool:
        quiz = self.get_quiz(db, quiz_id)
        submission = self.find_submission(db, quiz_id, student_id)
        if submission is None:
            raise NotFoundError("Quiz submission", f"quiz={quiz_id}, student={student_id}")
        return passed(quiz, submission)

    def submissions_by_student(self, db: Session, student_id: int) -> List[QuizSubmission]:
        stmt = select(QuizSubmission).where(QuizSubmission.student_id == student_id)
        return list(db.scalars(stmt.order_by(QuizSubmission.id)))

    def quiz_average_score(self, db: Session, quiz_id: int) -> Optional[float]:
        return db.scalar(
            select(func.avg(QuizSubmission.score)).where(QuizSubmission.quiz_id == quiz_id)
        )

    def student_average_score(self, db: Session, student_id: int) -> Optional[float]:
        return db.scalar(
            select(func.avg(QuizSubmission.score)).where(
                QuizSubmission.student_id == student_id
            )
        )
