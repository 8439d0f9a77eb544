"""应用配置管理。

使用 Pydantic Settings 统一读取环境变量，便于在本地/生产之间切换。
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """核心配置项。

    - ``database_url``：默认使用本地 SQLite，便于快速启动。
    - ``fetch_isolation_level``：读取事务的隔离级别，未设置时沿用驱动默认值。
    - ``seed_demo_data``：启动时是否写入演示数据（仅在库为空时生效）。
    """

    database_url: str = Field(
        default="sqlite:///./storage/learning_platform.db",
        description="SQLAlchemy 数据库 URL",
    )
    echo_sql: bool = Field(default=False, description="是否输出 SQL 日志")
    fetch_isolation_level: Optional[str] = Field(
        default=None, description="图加载读取事务的隔离级别，如 SERIALIZABLE"
    )
    log_level: str = Field(default="INFO", description="structlog 最低日志级别")
    seed_demo_data: bool = Field(default=False, description="启动时写入演示数据")

    model_config = {
        "env_prefix": "LP_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """缓存后的全局配置实例。"""

    return Settings()
