"""业务服务层。"""

from learning_platform.services.assignments import AssignmentService
from learning_platform.services.bootstrap import seed_if_empty
from learning_platform.services.courses import CourseService
from learning_platform.services.enrollment import EnrollmentService
from learning_platform.services.facade import CatalogFacade, QuizAttempt
from learning_platform.services.quizzes import QuizService
from learning_platform.services.reviews import ReviewService
from learning_platform.services.scoring import QuizScore, passed, score_quiz, validate_answers
from learning_platform.services.users import UserService

__all__ = [
    "AssignmentService",
    "CatalogFacade",
    "CourseService",
    "EnrollmentService",
    "QuizAttempt",
    "QuizScore",
    "QuizService",
    "ReviewService",
    "UserService",
    "passed",
    "score_quiz",
    "seed_if_empty",
    "validate_answers",
]
