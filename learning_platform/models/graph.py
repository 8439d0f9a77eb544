"""实体图的已解析 / 未解析引用判定。

关系全部声明为 ``lazy="raise"``：已解析的关系可直接读取，未解析的关系只保留外键 id，
读取时 SQLAlchemy 会抛出 ``InvalidRequestError``。这里提供不触发加载的判定工具。
"""

from __future__ import annotations

from typing import Any, List

from sqlalchemy import inspect

from learning_platform.errors import UnresolvedReferenceError


def is_resolved(entity: Any, name: str) -> bool:
    """关系 ``name`` 是否已加载到 ``entity`` 上。"""

    state = inspect(entity)
    if name not in state.mapper.relationships:
        raise ValueError(f"{type(entity).__name__} has no relation {name!r}")
    return name not in state.unloaded


def assert_resolved(entity: Any, path: str) -> None:
    """沿点分路径（如 ``questions.options``）逐层确认关系已解析。"""

    targets: List[Any] = [entity]
    for name in path.split("."):
        next_targets: List[Any] = []
        for target in targets:
            if not is_resolved(target, name):
                raise UnresolvedReferenceError(
                    f"{type(target).__name__}.{name} is not resolved (path {path!r})"
                )
            value = getattr(target, name)
            if value is None:
                continue
            if isinstance(value, (list, set, tuple)):
                next_targets.extend(value)
            else:
                next_targets.append(value)
        targets = next_targets
