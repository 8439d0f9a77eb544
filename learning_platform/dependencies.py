"""FastAPI 依赖注入工具。"""

from functools import lru_cache

from learning_platform.services.facade import CatalogFacade


@lru_cache(maxsize=1)
def get_facade() -> CatalogFacade:
    """进程内共享的门面实例，测试中通过 ``dependency_overrides`` 替换。"""

    return CatalogFacade()
