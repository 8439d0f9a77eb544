"""数据库连接与会话管理。"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import structlog
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import get_settings
from .errors import CatalogError, DuplicateError, OperationCancelledError, StoreError


logger = structlog.get_logger(__name__)

settings = get_settings()

SessionFactory = Callable[[], Session]


class Base(DeclarativeBase):
    """SQLAlchemy 基类。"""

    pass


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    # SQLite 默认不校验外键，级联删除依赖这一开关
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, **kwargs: Any) -> Engine:
    """创建引擎；SQLite 需要 ``check_same_thread=False`` 以支持多线程。"""

    connect_args = (
        {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    )
    engine = create_engine(database_url, connect_args=connect_args, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def build_session_factory(bind: Engine) -> sessionmaker[Session]:
    # expire_on_commit=False：提交后返回给调用方的对象仍可读取已加载的属性
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=bind)


engine = build_engine(settings.database_url, echo=settings.echo_sql)
SessionLocal = build_session_factory(engine)


def init_db(bind: Optional[Engine] = None) -> None:
    """确保表存在。SQLite 文件库会先创建所在目录。"""

    from . import models  # noqa: F401  注册全部映射

    target = bind or engine
    if target.dialect.name == "sqlite" and target.url.database not in (None, "", ":memory:"):
        Path(target.url.database).parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=target)


def is_unique_violation(exc: IntegrityError) -> bool:
    """判断完整性错误是否来自唯一约束（SQLite 文本或 Postgres 23505）。"""

    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == "23505":
        return True
    message = str(orig).lower()
    return "unique" in message or "duplicate" in message


def flush_unique(session: Session, message: str, **context: Any) -> None:
    """flush 当前会话，把唯一约束冲突转换为 ``DuplicateError``。

    应用层的存在性检查只为给出清晰的错误信息，真正的并发保证来自这里的存储约束。
    """

    try:
        session.flush()
    except IntegrityError as exc:
        if is_unique_violation(exc):
            logger.info("unique_violation", message=message, **context)
            raise DuplicateError(message, **context) from exc
        raise


@contextmanager
def session_scope(
    session_factory: Optional[SessionFactory] = None,
    cancel: Optional[threading.Event] = None,
) -> Iterator[Session]:
    """提供事务范围的 Session 上下文管理器。

    事务一旦开始，只有完整提交或完整回滚两种结局；底层存储异常统一包装为
    ``StoreError``。
    """

    if cancel is not None and cancel.is_set():
        raise OperationCancelledError()

    session: Session = (session_factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except CatalogError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("transaction_failed", error=str(exc))
        raise StoreError(str(exc)) from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
