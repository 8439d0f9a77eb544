"""测验 API。"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from learning_platform.dependencies import get_facade
from learning_platform.hydration import to_record
from learning_platform.models import QuestionType
from learning_platform.schemas import AnswerSubmission
from learning_platform.services import CatalogFacade

router = APIRouter()


# === Schemas ===

class QuizCreate(BaseModel):
    module_id: int
    title: str = Field(..., min_length=1, max_length=200)
    passing_score: Optional[int] = None
    description: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, ge=0)


class QuestionCreate(BaseModel):
    text: str = Field(..., min_length=1)
    type: QuestionType
    points: int = 1
    order_index: Optional[int] = None


class OptionCreate(BaseModel):
    text: str = Field(..., min_length=1)
    is_correct: bool = False
    order_index: Optional[int] = None


# === API 端点 ===

@router.post("/", status_code=status.HTTP_201_CREATED)
def create_quiz(data: QuizCreate, facade: CatalogFacade = Depends(get_facade)) -> Dict[str, Any]:
    return to_record(facade.create_quiz(**data.model_dump()))


@router.get("/by-module/{module_id}")
def get_quiz_by_module(module_id: int, facade: CatalogFacade = Depends(get_facade)) -> Dict[str, Any]:
    return to_record(facade.get_quiz_by_module(module_id))


@router.get("/{quiz_id}")
def get_quiz(quiz_id: int, facade: CatalogFacade = Depends(get_facade)) -> Dict[str, Any]:
    """测验、题目与选项。"""
    return facade.load_record("quiz-full", quiz_id)


@router.post("/{quiz_id}/questions", status_code=status.HTTP_201_CREATED)
def add_question(
    quiz_id: int, data: QuestionCreate, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    question = facade.add_question(
        quiz_id, data.text, data.type, points=data.points, order_index=data.order_index
    )
    return to_record(question)


@router.post("/questions/{question_id}/options", status_code=status.HTTP_201_CREATED)
def add_option(
    question_id: int, data: OptionCreate, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    option = facade.add_option(question_id, data.text, data.is_correct, data.order_index)
    return to_record(option)


@router.post("/{quiz_id}/attempts", status_code=status.HTTP_201_CREATED)
def take_quiz(
    quiz_id: int, data: AnswerSubmission, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    attempt = facade.take_quiz(
        quiz_id, data.student_id, data.answers, time_spent_minutes=data.time_spent_minutes
    )
    record = to_record(attempt.submission)
    record["passed"] = attempt.passed
    record["breakdown"] = {str(qid): ok for qid, ok in attempt.result.breakdown.items()}
    return record
