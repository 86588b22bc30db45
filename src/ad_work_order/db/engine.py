"""
数据库引擎与事务管理

生产环境使用 MySQL（mysql-connector-python 驱动），测试可通过 DATABASE_URL 使用 SQLite
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import DatabaseSettings
from ..utils.logger import get_logger
from .base import Base

logger = get_logger(__name__)

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def init_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
) -> Engine:
    """
    初始化数据库引擎和会话工厂

    重复调用会覆盖之前的引擎

    Args:
        database_url: SQLAlchemy 连接串
        echo: 是否输出 SQL
        pool_size: 连接池大小（SQLite 忽略）

    Returns:
        Engine 实例
    """
    global _engine, _SessionFactory

    if database_url.startswith("sqlite"):
        _engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        _engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            pool_pre_ping=True,
            pool_recycle=1800,
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.info(f"数据库引擎初始化完成: dialect={_engine.dialect.name}")
    return _engine


def init_engine_from_settings(settings: DatabaseSettings) -> Engine:
    """根据数据库配置初始化引擎"""
    engine = init_engine(settings.url, echo=settings.db_echo, pool_size=settings.db_pool_size)
    if settings.db_create_tables:
        create_tables()
    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("数据库引擎未初始化，请先调用 init_engine()")
    return _engine


def get_session_factory() -> sessionmaker:
    if _SessionFactory is None:
        raise RuntimeError("数据库引擎未初始化，请先调用 init_engine()")
    return _SessionFactory


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    事务作用域：正常退出提交，异常回滚并继续抛出，始终关闭会话

    Args:
        factory: 会话工厂，默认使用全局工厂

    Usage:
        with session_scope() as session:
            session.add(record)
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("事务已回滚", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """创建全部表"""
    # 导入表定义以注册到 Base.metadata
    from . import tables  # noqa: F401

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    from . import tables  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """释放引擎（测试用）"""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
