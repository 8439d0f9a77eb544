"""Fetch executor.

在单个只读事务内依次执行计划中的查询，把结果缝合成内存对象图，
提交并关闭事务后返回完全脱离会话（detached）的对象。

第二条及之后的查询返回“父 + 子”行：父对象在前一步已经构造，
借助会话的 identity map 复用同一实例并补齐其未加载的集合，不会重复实例化。
"""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.sql import Select

from learning_platform.db import SessionFactory, SessionLocal
from learning_platform.errors import OperationCancelledError, StoreError
from learning_platform.hydration.planner import HydrationPlan, HydrationPlanner, QueryStep
from learning_platform.hydration.shapes import ShapeDescriptor
from learning_platform.models.graph import assert_resolved


logger = structlog.get_logger(__name__)


class FetchState(str, enum.Enum):
    """单次加载的状态机：PLANNED → EXECUTING → MERGED → CLOSED，失败进入 FAILED。"""

    PLANNED = "planned"
    EXECUTING = "executing"
    MERGED = "merged"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass
class FetchResult:
    descriptor: ShapeDescriptor
    roots: List[Any] = field(default_factory=list)
    queries_issued: int = 0
    state: FetchState = FetchState.PLANNED

    def first(self) -> Optional[Any]:
        return self.roots[0] if self.roots else None

    def __len__(self) -> int:
        return len(self.roots)


class FetchExecutor:
    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        planner: Optional[HydrationPlanner] = None,
        isolation_level: Optional[str] = None,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self.planner = planner or HydrationPlanner()
        self.isolation_level = isolation_level

    def fetch(
        self,
        shape_name: str,
        root_ids: Optional[Iterable[int]] = None,
        criteria: Optional[Mapping[str, Any]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> FetchResult:
        plan = self.planner.plan(shape_name, root_ids=root_ids, criteria=criteria)
        return self.execute(plan, cancel=cancel)

    def execute(
        self, plan: HydrationPlan, cancel: Optional[threading.Event] = None
    ) -> FetchResult:
        result = FetchResult(descriptor=plan.descriptor)
        logger.debug(
            "fetch_planned", shape=plan.descriptor.name, steps=len(plan.steps)
        )
        if cancel is not None and cancel.is_set():
            raise OperationCancelledError()
        if plan.is_empty:
            result.state = FetchState.CLOSED
            return result

        session: Session = self._session_factory()
        try:
            result.state = FetchState.EXECUTING
            with session.begin():
                if self.isolation_level:
                    session.connection(
                        execution_options={"isolation_level": self.isolation_level}
                    )
                loaded = self._run_steps(session, plan, result)
                roots = loaded.get("", [])
                for root in roots:
                    for path in plan.descriptor.resolved:
                        assert_resolved(root, path)
                result.state = FetchState.MERGED
                # 提交前移出会话，提交不会使已加载属性过期
                session.expunge_all()
            result.roots = roots
            result.state = FetchState.CLOSED
        except SQLAlchemyError as exc:
            result.state = FetchState.FAILED
            logger.error(
                "fetch_failed", shape=plan.descriptor.name, error=str(exc)
            )
            raise StoreError(str(exc), shape=plan.descriptor.name) from exc
        except Exception:
            result.state = FetchState.FAILED
            raise
        finally:
            session.close()

        logger.debug(
            "fetch_closed",
            shape=plan.descriptor.name,
            roots=len(result.roots),
            queries=result.queries_issued,
        )
        return result

    def _run_steps(
        self, session: Session, plan: HydrationPlan, result: FetchResult
    ) -> Dict[str, List[Any]]:
        loaded: Dict[str, List[Any]] = {}
        for step in plan.steps:
            if step.root:
                stmt = self._root_statement(plan, step)
            else:
                parent_ids = _ids(loaded.get(step.parent_path, []))
                if not parent_ids:
                    loaded[step.path] = []
                    continue
                stmt = (
                    select(step.entity)
                    .options(joinedload(getattr(step.entity, step.expand)))
                    .where(step.entity.id.in_(parent_ids))
                )
            rows = session.execute(stmt).unique().scalars().all()
            result.queries_issued += 1
            if step.root:
                loaded[""] = list(rows)
            if step.expand is not None:
                loaded[step.path] = _children(rows, step.expand)
        return loaded

    def _root_statement(self, plan: HydrationPlan, step: QueryStep) -> Select:
        root = step.entity
        options = [joinedload(getattr(root, name)) for name in step.references]
        if step.expand is not None:
            options.append(joinedload(getattr(root, step.expand)))
        stmt = select(root).options(*options)
        if plan.root_ids is not None:
            stmt = stmt.where(root.id.in_(plan.root_ids))
        for column, value in plan.criteria:
            stmt = stmt.where(getattr(root, column) == value)
        return stmt.order_by(root.id)


def _ids(entities: Iterable[Any]) -> List[int]:
    return list(dict.fromkeys(entity.id for entity in entities))


def _children(parents: Iterable[Any], relation: str) -> List[Any]:
    children: Dict[int, Any] = {}
    for parent in parents:
        value = getattr(parent, relation)
        if value is None:
            continue
        items = value if isinstance(value, (list, set, tuple)) else [value]
        for item in items:
            children.setdefault(id(item), item)
    return list(children.values())
