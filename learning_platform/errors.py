"""领域错误类型。

每种错误携带稳定的 ``kind`` 与 ``status_code``，HTTP 适配层据此一对一映射，
核心层只负责抛出，不关心响应格式。
"""

from __future__ import annotations

from typing import Any, Dict


class CatalogError(Exception):
    """所有可预期业务错误的基类。"""

    kind = "catalog_error"
    status_code = 500

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, **self.context}


class NotFoundError(CatalogError):
    """引用的实体 id 不存在。"""

    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} not found: {entity_id}", entity=entity, id=entity_id)


class DuplicateError(CatalogError):
    """违反唯一性约束（选课、提交、测验作答、评价等）。"""

    kind = "duplicate"
    status_code = 409


class AlreadyCompletedError(CatalogError):
    """对已处于终态的记录再次执行终态迁移。"""

    kind = "already_completed"
    status_code = 409


class InvalidInputError(CatalogError):
    kind = "invalid_input"
    status_code = 400


class InvalidRangeError(InvalidInputError):
    """数值超出允许区间，例如进度百分比或评分。"""

    kind = "invalid_range"


class WrongRoleError(CatalogError):
    """用户角色不满足业务规则，例如非学生选课。"""

    kind = "wrong_role"
    status_code = 422


class UnsupportedShapeError(CatalogError):
    kind = "unsupported_shape"
    status_code = 400

    def __init__(self, shape: str) -> None:
        super().__init__(f"Unsupported fetch shape: {shape}", shape=shape)


class OperationCancelledError(CatalogError):
    """调用方在事务开始前取消了操作。"""

    kind = "cancelled"
    status_code = 499

    def __init__(self) -> None:
        super().__init__("Operation cancelled before store access")


class StoreError(CatalogError):
    """包装底层存储/事务失败，原始异常保留在 ``__cause__``。"""

    kind = "store_error"
    status_code = 500


class UnresolvedReferenceError(RuntimeError):
    """读取了未在本次加载形状中解析的关系。

    属于编程错误，不是 ``CatalogError``，不应被业务层捕获。
    """
