"""选择性图加载：形状注册表、查询规划与执行。"""

from learning_platform.hydration.executor import FetchExecutor, FetchResult, FetchState
from learning_platform.hydration.planner import HydrationPlan, HydrationPlanner, QueryStep
from learning_platform.hydration.records import to_record, to_records
from learning_platform.hydration.shapes import (
    FetchShape,
    ShapeDescriptor,
    get_shape,
    register_shape,
    shape_names,
)

__all__ = [
    "FetchExecutor",
    "FetchResult",
    "FetchShape",
    "FetchState",
    "HydrationPlan",
    "HydrationPlanner",
    "QueryStep",
    "ShapeDescriptor",
    "get_shape",
    "register_shape",
    "shape_names",
    "to_record",
    "to_records",
]
