"""把已加载的实体图转换为普通 dict 记录。

只沿描述符中已解析的关系向下遍历，永远不会触碰未解析的关系。
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Any, Dict, Iterable

from sqlalchemy import inspect

from learning_platform.utils.timeutils import format_datetime


def to_record(entity: Any, resolved: Any = ()) -> Dict[str, Any]:
    """``resolved`` 可以是 ``ShapeDescriptor``，也可以是点分路径集合。"""

    return _record(entity, "", _paths(resolved))


def to_records(entities: Iterable[Any], resolved: Any = ()) -> list[Dict[str, Any]]:
    paths = _paths(resolved)
    return [_record(entity, "", paths) for entity in entities]


def _paths(resolved: Any) -> frozenset:
    return frozenset(getattr(resolved, "resolved", resolved))


def _record(entity: Any, prefix: str, paths: frozenset) -> Dict[str, Any]:
    mapper = inspect(entity).mapper
    data = {attr.key: _plain(getattr(entity, attr.key)) for attr in mapper.column_attrs}
    for name, rel in mapper.relationships.items():
        path = prefix + name
        if path not in paths:
            continue
        value = getattr(entity, name)
        if rel.uselist:
            items = sorted(value, key=lambda e: e.id) if isinstance(value, set) else value
            data[name] = [_record(item, path + ".", paths) for item in items]
        else:
            data[name] = None if value is None else _record(value, path + ".", paths)
    return data


def _plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return format_datetime(value)
    if isinstance(value, date):
        return value.isoformat()
    return value
