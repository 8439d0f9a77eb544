"""测验作答映射的强类型契约。

外部传入的作答通常是 JSON 对象，键为字符串形式的题目 id，值为选项 id 列表。
这里统一转换为 ``{question_id: frozenset(option_ids)}``，非法输入在进入计分前
即以 ``InvalidInputError`` 拒绝。
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from learning_platform.errors import InvalidInputError

_ANSWER_MAP = TypeAdapter(Dict[int, List[int]])


class AnswerSubmission(BaseModel):
    """一次测验作答请求。"""

    student_id: int
    answers: Dict[int, List[int]] = Field(default_factory=dict)
    time_spent_minutes: Optional[int] = Field(default=None, ge=0)


def parse_answer_map(raw: Any) -> Dict[int, FrozenSet[int]]:
    """把松散的作答映射解析为 ``题目 id -> 选项 id 集合``，重复选项合并。"""

    if raw is None:
        return {}
    try:
        parsed = _ANSWER_MAP.validate_python(raw)
    except ValidationError as exc:
        raise InvalidInputError(
            "Malformed answer map",
            errors=[
                {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
                for err in exc.errors()
            ],
        ) from exc
    return {question_id: frozenset(options) for question_id, options in parsed.items()}
