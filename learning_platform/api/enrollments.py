"""选课 API。"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from learning_platform.dependencies import get_facade
from learning_platform.hydration import to_record, to_records
from learning_platform.models import EnrollmentStatus
from learning_platform.services import CatalogFacade

router = APIRouter()


# === Schemas ===

class EnrollmentCreate(BaseModel):
    student_id: int
    course_id: int


class ProgressUpdate(BaseModel):
    # 区间校验交给服务层（InvalidRange）
    percentage: int


class CompletionRequest(BaseModel):
    final_grade: Optional[float] = None


# === API 端点 ===

@router.post("/", status_code=status.HTTP_201_CREATED)
def enroll(data: EnrollmentCreate, facade: CatalogFacade = Depends(get_facade)) -> Dict[str, Any]:
    return to_record(facade.enroll(data.student_id, data.course_id))


@router.get("/")
def list_enrollments(
    student_id: Optional[int] = None,
    course_id: Optional[int] = None,
    status_filter: Optional[EnrollmentStatus] = None,
    facade: CatalogFacade = Depends(get_facade),
) -> List[Dict[str, Any]]:
    return to_records(facade.list_enrollments(student_id, course_id, status_filter))


@router.put("/{enrollment_id}/progress")
def update_progress(
    enrollment_id: int, data: ProgressUpdate, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    return to_record(facade.update_progress(enrollment_id, data.percentage))


@router.post("/{enrollment_id}/complete")
def complete(
    enrollment_id: int,
    data: Optional[CompletionRequest] = None,
    facade: CatalogFacade = Depends(get_facade),
) -> Dict[str, Any]:
    final_grade = data.final_grade if data else None
    return to_record(facade.complete(enrollment_id, final_grade))


@router.post("/{enrollment_id}/drop")
def unenroll(enrollment_id: int, facade: CatalogFacade = Depends(get_facade)) -> Dict[str, Any]:
    return to_record(facade.unenroll(enrollment_id))


@router.post("/{enrollment_id}/suspend")
def suspend(enrollment_id: int, facade: CatalogFacade = Depends(get_facade)) -> Dict[str, Any]:
    return to_record(facade.suspend(enrollment_id))


@router.post("/{enrollment_id}/resume")
def resume(enrollment_id: int, facade: CatalogFacade = Depends(get_facade)) -> Dict[str, Any]:
    return to_record(facade.resume(enrollment_id))
