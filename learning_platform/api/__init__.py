"""API v1 路由包入口。"""

from fastapi import APIRouter

from learning_platform.api import assignments, courses, enrollments, quizzes, users

router = APIRouter(prefix="/api/v1")

# 注册子路由
router.include_router(users.router, prefix="/users", tags=["用户"])
router.include_router(courses.router, prefix="/courses", tags=["课程"])
router.include_router(enrollments.router, prefix="/enrollments", tags=["选课"])
router.include_router(quizzes.router, prefix="/quizzes", tags=["测验"])
router.include_router(assignments.router, prefix="/assignments", tags=["作业"])
