"""加载形状（fetch shape）注册表。

一个形状声明从根实体出发要解析哪些关系：
- ``collections``：一对多 / 多对多关系的点分路径，父路径必须先出现；
- ``references``：根实体上的多对一 / 一对一关系，可并入根查询而不放大行数。
形状之外的所有关系在返回的对象上保持未解析。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple, Type

from sqlalchemy import inspect

from learning_platform.errors import UnsupportedShapeError
from learning_platform.models import (
    Assignment,
    Course,
    Enrollment,
    Lesson,
    Quiz,
    User,
)


@dataclass(frozen=True)
class FetchShape:
    name: str
    root: Type
    collections: Tuple[str, ...] = ()
    references: Tuple[str, ...] = ()

    @property
    def resolved(self) -> FrozenSet[str]:
        return frozenset(self.collections) | frozenset(self.references)


@dataclass(frozen=True)
class ShapeDescriptor:
    """一次加载结束后确切已解析的关系集合。"""

    name: str
    root: Type
    resolved: FrozenSet[str]

    def is_resolved(self, path: str) -> bool:
        return path in self.resolved


def entity_at(root: Type, path: str) -> Type:
    """沿关系路径找到目标实体类；空路径即根实体。"""

    cls = root
    if not path:
        return cls
    for name in path.split("."):
        cls = inspect(cls).relationships[name].mapper.class_
    return cls


def parent_path(path: str) -> str:
    return path.rpartition(".")[0]


def relation_name(path: str) -> str:
    return path.rpartition(".")[2]


def _validate(shape: FetchShape) -> None:
    seen = {""}
    for path in shape.collections:
        parent = parent_path(path)
        if parent not in seen:
            raise ValueError(f"{shape.name}: {path!r} listed before its parent {parent!r}")
        owner = entity_at(shape.root, parent)
        rel = inspect(owner).relationships.get(relation_name(path))
        if rel is None or not rel.uselist:
            raise ValueError(f"{shape.name}: {path!r} is not a to-many relation")
        seen.add(path)
    for name in shape.references:
        rel = inspect(shape.root).relationships.get(name)
        if rel is None or rel.uselist:
            raise ValueError(f"{shape.name}: {name!r} is not a to-one relation")


_SHAPES: Dict[str, FetchShape] = {}


def register_shape(shape: FetchShape) -> FetchShape:
    _validate(shape)
    _SHAPES[shape.name] = shape
    return shape


def get_shape(name: str) -> FetchShape:
    try:
        return _SHAPES[name]
    except KeyError:
        raise UnsupportedShapeError(name) from None


def shape_names() -> Tuple[str, ...]:
    return tuple(sorted(_SHAPES))


# === 预置形状 ===

register_shape(FetchShape("course-modules", Course, collections=("modules",)))
register_shape(
    FetchShape(
        "course-full",
        Course,
        collections=("modules", "modules.lessons"),
        references=("teacher", "category"),
    )
)
register_shape(FetchShape("course-tags", Course, collections=("tags",)))
register_shape(FetchShape("course-teacher", Course, references=("teacher", "category")))
register_shape(FetchShape("course-enrollments", Course, collections=("enrollments",)))
register_shape(FetchShape("course-reviews", Course, collections=("reviews",)))
register_shape(FetchShape("quiz-questions", Quiz, collections=("questions",)))
register_shape(
    FetchShape("quiz-full", Quiz, collections=("questions", "questions.options"))
)
register_shape(FetchShape("quiz-submissions", Quiz, collections=("submissions",)))
register_shape(FetchShape("user-profile", User, references=("profile",)))
register_shape(FetchShape("lesson-assignments", Lesson, collections=("assignments",)))
register_shape(
    FetchShape("assignment-submissions", Assignment, collections=("submissions",))
)
register_shape(FetchShape("enrollment-course", Enrollment, references=("course",)))
