"""作业与提交 API。"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from learning_platform.dependencies import get_facade
from learning_platform.hydration import to_record, to_records
from learning_platform.services import CatalogFacade

router = APIRouter()


# === Schemas ===

class AssignmentCreate(BaseModel):
    lesson_id: int
    title: str = Field(..., min_length=1, max_length=200)
    due_date: Optional[datetime] = None
    max_score: Optional[int] = None
    description: Optional[str] = None


class SubmissionCreate(BaseModel):
    student_id: int
    content: Optional[str] = None


class GradeRequest(BaseModel):
    score: int
    feedback: Optional[str] = None


# === API 端点 ===

@router.post("/", status_code=status.HTTP_201_CREATED)
def create_assignment(
    data: AssignmentCreate, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    return to_record(facade.create_assignment(**data.model_dump()))


@router.get("/{assignment_id}")
def get_assignment(
    assignment_id: int, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    """作业及其全部提交。"""
    return facade.load_record("assignment-submissions", assignment_id)


@router.post("/{assignment_id}/submissions", status_code=status.HTTP_201_CREATED)
def submit(
    assignment_id: int, data: SubmissionCreate, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    return to_record(facade.submit_assignment(assignment_id, data.student_id, data.content))


@router.get("/{assignment_id}/ungraded")
def ungraded(
    assignment_id: int, facade: CatalogFacade = Depends(get_facade)
) -> List[Dict[str, Any]]:
    return to_records(facade.ungraded_submissions(assignment_id))


@router.post("/submissions/{submission_id}/grade")
def grade(
    submission_id: int, data: GradeRequest, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    return to_record(facade.grade_submission(submission_id, data.score, data.feedback))


@router.get("/students/{student_id}/submissions")
def student_submissions(
    student_id: int, facade: CatalogFacade = Depends(get_facade)
) -> List[Dict[str, Any]]:
    return to_records(facade.assignment_submissions_by_student(student_id))
