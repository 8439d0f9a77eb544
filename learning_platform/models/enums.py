"""目录与学习进度相关枚举定义。"""

import enum


class UserRole(str, enum.Enum):
    """用户角色枚举。"""
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class EnrollmentStatus(str, enum.Enum):
    """选课状态机。

    ACTIVE 可迁移到 COMPLETED / DROPPED / SUSPENDED；COMPLETED 为终态。
    """
    ACTIVE = "active"
    COMPLETED = "completed"
    DROPPED = "dropped"
    SUSPENDED = "suspended"


class QuestionType(str, enum.Enum):
    """测验题型。"""
    SINGLE_CHOICE = "single_choice"      # 单选
    MULTIPLE_CHOICE = "multiple_choice"  # 多选
    TRUE_FALSE = "true_false"            # 判断
