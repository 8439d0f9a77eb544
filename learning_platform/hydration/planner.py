"""Hydration planner.

把一个加载形状展开成有序的查询步骤。核心规则：每条查询至多展开一条一对多关系。
两条一对多集合若在同一结果集中连接会产生笛卡尔积，因此兄弟集合与更深一层的集合都
拆成独立查询，以上一步已拿到的父 id 作为过滤条件。

以 ``course-full`` 为例：

1. ``Course LEFT JOIN modules``（教师、分类为多对一，同条查询中连接）
2. ``Module LEFT JOIN lessons WHERE module.id IN (...)``

查询条数只取决于形状，与模块数、课时数无关。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple, Type

from sqlalchemy import inspect

from learning_platform.errors import InvalidInputError
from learning_platform.hydration.shapes import (
    FetchShape,
    ShapeDescriptor,
    entity_at,
    get_shape,
    parent_path,
    relation_name,
)


@dataclass(frozen=True)
class QueryStep:
    """一条计划中的查询。

    ``entity`` 为本条查询选取的实体，``expand`` 为随之连接的一对多关系（至多一条），
    ``parent_path`` 指明 ``entity`` 在图中的位置，空串表示根。
    """

    entity: Type
    parent_path: str = ""
    expand: Optional[str] = None
    references: Tuple[str, ...] = ()
    root: bool = False

    @property
    def path(self) -> Optional[str]:
        if self.expand is None:
            return None
        return f"{self.parent_path}.{self.expand}" if self.parent_path else self.expand


@dataclass(frozen=True)
class HydrationPlan:
    descriptor: ShapeDescriptor
    steps: Tuple[QueryStep, ...]
    root_ids: Optional[Tuple[int, ...]] = None
    criteria: Tuple[Tuple[str, Any], ...] = ()

    @property
    def root_step(self) -> QueryStep:
        return self.steps[0]

    @property
    def is_empty(self) -> bool:
        """显式给出空 id 列表时无需访问存储。"""

        return self.root_ids is not None and not self.root_ids


class HydrationPlanner:
    def plan(
        self,
        shape_name: str,
        root_ids: Optional[Iterable[int]] = None,
        criteria: Optional[Mapping[str, Any]] = None,
    ) -> HydrationPlan:
        shape = get_shape(shape_name)
        checked = self._check_criteria(shape, criteria or {})
        ids = None if root_ids is None else self._root_ids(root_ids)
        return HydrationPlan(
            descriptor=ShapeDescriptor(shape.name, shape.root, shape.resolved),
            steps=self._steps(shape),
            root_ids=ids,
            criteria=checked,
        )

    @staticmethod
    def _root_ids(root_ids: Iterable[Any]) -> Tuple[int, ...]:
        # 去重并保持顺序
        try:
            return tuple(dict.fromkeys(int(i) for i in root_ids))
        except (TypeError, ValueError) as exc:
            raise InvalidInputError("Root ids must be integers") from exc

    def _steps(self, shape: FetchShape) -> Tuple[QueryStep, ...]:
        # 按深度排序，保证父层对象先于子层集合被加载
        ordered = sorted(shape.collections, key=lambda p: p.count("."))
        first = next((p for p in ordered if "." not in p), None)

        steps = [
            QueryStep(
                entity=shape.root,
                expand=first,
                references=shape.references,
                root=True,
            )
        ]
        for path in ordered:
            if path == first:
                continue
            parent = parent_path(path)
            steps.append(
                QueryStep(
                    entity=entity_at(shape.root, parent),
                    parent_path=parent,
                    expand=relation_name(path),
                )
            )
        return tuple(steps)

    def _check_criteria(
        self, shape: FetchShape, criteria: Mapping[str, Any]
    ) -> Tuple[Tuple[str, Any], ...]:
        columns = {attr.key for attr in inspect(shape.root).column_attrs}
        unknown = sorted(set(criteria) - columns)
        if unknown:
            raise InvalidInputError(
                f"Unknown filter column(s) for {shape.root.__name__}: {', '.join(unknown)}",
                shape=shape.name,
            )
        return tuple(sorted(criteria.items()))
