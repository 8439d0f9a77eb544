"""核心 SQLAlchemy 模型定义。"""

from learning_platform.models.assignment import Assignment, Submission
from learning_platform.models.course import Category, Course, Lesson, Module, Tag, course_tags
from learning_platform.models.enums import EnrollmentStatus, QuestionType, UserRole
from learning_platform.models.progress import CourseReview, Enrollment
from learning_platform.models.quiz import AnswerOption, Question, Quiz, QuizSubmission
from learning_platform.models.user import Profile, User

__all__ = [
    "AnswerOption",
    "Assignment",
    "Category",
    "Course",
    "CourseReview",
    "Enrollment",
    "EnrollmentStatus",
    "Lesson",
    "Module",
    "Profile",
    "Question",
    "QuestionType",
    "Quiz",
    "QuizSubmission",
    "Submission",
    "Tag",
    "User",
    "UserRole",
    "course_tags",
]
