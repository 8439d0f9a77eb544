"""边界数据契约。"""

from learning_platform.schemas.answers import AnswerSubmission, parse_answer_map

__all__ = ["AnswerSubmission", "parse_answer_map"]
