"""课程 API：课程结构、标签、评价与按形状加载。"""

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from learning_platform.dependencies import get_facade
from learning_platform.hydration import to_record, to_records
from learning_platform.services import CatalogFacade

router = APIRouter()


# === Schemas ===

class CourseCreate(BaseModel):
    teacher_id: int
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category_id: Optional[int] = None
    duration: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class CourseUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    category_id: Optional[int] = None
    duration: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ModuleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    order_index: int = Field(..., ge=0)
    description: Optional[str] = None


class LessonCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    order_index: int = Field(..., ge=0)
    content: Optional[str] = None
    video_url: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)


class TagsAdd(BaseModel):
    names: List[str] = Field(..., min_length=1)


class ReviewCreate(BaseModel):
    student_id: int
    # 区间校验交给服务层，保证错误类型一致
    rating: int
    comment: Optional[str] = None


# === API 端点 ===

@router.get("/")
def list_courses(
    teacher_id: Optional[int] = None,
    category_id: Optional[int] = None,
    tag: Optional[str] = None,
    q: Optional[str] = Query(default=None, description="标题关键字，不区分大小写"),
    facade: CatalogFacade = Depends(get_facade),
) -> List[Dict[str, Any]]:
    courses = facade.list_courses(
        teacher_id=teacher_id, category_id=category_id, tag_name=tag, title_contains=q
    )
    return to_records(courses)


@router.get("/popular")
def popular_courses(
    limit: Optional[int] = Query(default=None, ge=1),
    facade: CatalogFacade = Depends(get_facade),
) -> List[Dict[str, Any]]:
    """按选课人数降序。"""
    return [
        {**to_record(course), "enrollment_count": count}
        for course, count in facade.popular_courses(limit)
    ]


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_course(
    data: CourseCreate, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    course = facade.create_course(**data.model_dump())
    return to_record(course)


@router.get("/{course_id}")
def get_course(
    course_id: int,
    shape: str = Query(default="course-full", description="加载形状名称"),
    facade: CatalogFacade = Depends(get_facade),
) -> Dict[str, Any]:
    """按指定形状加载课程，只返回该形状中已解析的关系。"""
    return facade.load_record(shape, course_id)


@router.patch("/{course_id}")
def update_course(
    course_id: int, data: CourseUpdate, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    course = facade.update_course(course_id, **data.model_dump(exclude_unset=True))
    return to_record(course)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_course(course_id: int, facade: CatalogFacade = Depends(get_facade)) -> None:
    facade.delete_course(course_id)


@router.post("/{course_id}/modules", status_code=status.HTTP_201_CREATED)
def add_module(
    course_id: int, data: ModuleCreate, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    module = facade.add_module(course_id, data.title, data.order_index, data.description)
    return to_record(module)


@router.delete("/modules/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_module(module_id: int, facade: CatalogFacade = Depends(get_facade)) -> None:
    facade.remove_module(module_id)


@router.post("/modules/{module_id}/lessons", status_code=status.HTTP_201_CREATED)
def add_lesson(
    module_id: int, data: LessonCreate, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    lesson = facade.add_lesson(module_id, **data.model_dump())
    return to_record(lesson)


@router.post("/{course_id}/tags")
def add_tags(
    course_id: int, data: TagsAdd, facade: CatalogFacade = Depends(get_facade)
) -> List[Dict[str, Any]]:
    return to_records(facade.add_tags(course_id, data.names))


@router.delete("/{course_id}/tags/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_tag(course_id: int, tag_id: int, facade: CatalogFacade = Depends(get_facade)) -> None:
    facade.remove_tag(course_id, tag_id)


@router.post("/{course_id}/reviews", status_code=status.HTTP_201_CREATED)
def create_review(
    course_id: int, data: ReviewCreate, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    review = facade.create_review(course_id, data.student_id, data.rating, data.comment)
    return to_record(review)


@router.get("/{course_id}/stats")
def course_stats(course_id: int, facade: CatalogFacade = Depends(get_facade)) -> Dict[str, Any]:
    facade.load_one("course-modules", course_id)
    return {
        "course_id": course_id,
        "average_rating": facade.average_rating(course_id),
        "active_enrollments": facade.active_enrollment_count(course_id),
    }


@router.get("/{course_id}/reviews")
def list_reviews(course_id: int, facade: CatalogFacade = Depends(get_facade)) -> List[Dict[str, Any]]:
    facade.load_one("course-modules", course_id)
    return to_records(facade.reviews_for_course(course_id))
