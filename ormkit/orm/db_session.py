"""数据库会话管理

- create_database_engine(): 按 URL 类型创建引擎，SQLite 引擎开启保存点支持
- db_manager: 持有引擎与 scoped_session 的模块级实例
- init_database() / get_engine() / db_session_scope(): 便捷入口
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from ormkit.log import get_logger

_logger = get_logger("ormkit.orm.session")

__all__ = [
    'db_manager',
    'init_database',
    'get_engine',
    'db_session_scope',
    'create_database_engine',
    'enable_sqlite_savepoints',
]

# init(config=...) 时从配置对象读取的引擎参数
_ENGINE_OPTIONS = ("echo", "pool_size", "max_overflow", "pool_timeout", "pool_recycle", "pool_pre_ping")


def enable_sqlite_savepoints(engine: Engine) -> Engine:
    """让 pysqlite 引擎正确支持 SAVEPOINT

    pysqlite 默认自行决定何时发出 BEGIN，保存点会脱离外层事务。
    这里关闭驱动的事务管理，由 SQLAlchemy 在事务开始时发出 BEGIN。
    """
    @event.listens_for(engine, "connect")
    def _disable_driver_transaction(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def create_database_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 3600,
    pool_pre_ping: bool = True,
) -> Engine:
    """按 URL 类型创建引擎

    - 内存 SQLite：单连接 StaticPool
    - 文件 SQLite：pool_timeout 作为锁等待时间
    - 其他数据库：使用连接池参数
    """
    if not database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            pool_pre_ping=pool_pre_ping,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
        )

    if database_url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": pool_timeout},
        )
    return enable_sqlite_savepoints(engine)


class DatabaseManager:
    """持有引擎与 scoped_session，模块级实例为 db_manager

    使用示例:
        from ormkit.orm import db_manager

        db_manager.init(database_url="sqlite:///./ormkit.db")
        session = db_manager.get_session()
    """

    def __init__(self):
        self._engine: Optional[Engine] = None
        self._session_scope: Optional[scoped_session] = None

    @property
    def engine(self) -> Engine:
        self._require_init()
        return self._engine

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None and self._session_scope is not None

    def _require_init(self) -> None:
        if not self.is_initialized:
            raise RuntimeError("尚未连接数据库：先调用 init_database() 或 db_manager.init()")

    def init(
        self,
        database_url: str = None,
        logger: logging.Logger = None,
        scopefunc: Callable = None,
        config: Any = None,
        auto_setup_query: bool = True,
        **engine_options
    ):
        """创建引擎与 scoped_session

        Args:
            database_url: 连接 URL，提供 config 时以 config.url 为准
            logger: 初始化过程使用的日志器
            scopefunc: session 作用域函数，默认按线程隔离
            config: DatabaseSettings，其中的引擎参数覆盖 engine_options
            auto_setup_query: 是否把 CoreModel.query 绑定到新的 scoped_session
            **engine_options: 传给 create_database_engine() 的引擎参数

        Returns:
            (engine, session_scope)
        """
        if config is not None:
            database_url = getattr(config, "url", database_url)
            engine_options.update(
                (name, getattr(config, name)) for name in _ENGINE_OPTIONS if hasattr(config, name)
            )
        if not database_url:
            raise ValueError("缺少 database_url：通过参数或 config.url 传入")

        log = logger or _logger
        try:
            engine = create_database_engine(database_url, **engine_options)
        except Exception as e:
            log.error(f"无法为 {database_url} 创建引擎: {e}")
            raise
        log.info(f"已连接 {database_url} (dialect={engine.dialect.name})")

        self._engine = engine
        self._session_scope = scoped_session(
            sessionmaker(autoflush=True, bind=engine), scopefunc=scopefunc
        )
        if auto_setup_query:
            from .core_model import CoreModel
            CoreModel.query = self._session_scope.query_property()
            log.debug("CoreModel.query 已绑定到新的 scoped_session")

        return self._engine, self._session_scope

    def get_session(self) -> Session:
        """当前作用域的 session，提交与清理由调用方负责"""
        self._require_init()
        return self._session_scope()

    def cleanup(self):
        """移除当前作用域的 session（幂等）"""
        if self._session_scope is not None and self._session_scope.registry.has():
            self._session_scope.remove()
            _logger.debug("已移除当前作用域的 session")

    def dispose(self):
        """关闭引擎并回到未初始化状态"""
        self.cleanup()
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_scope = None


db_manager = DatabaseManager()


def init_database(database_url: str = None, **kwargs):
    """db_manager.init() 的便捷包装"""
    return db_manager.init(database_url=database_url, **kwargs)


def get_engine() -> Engine:
    return db_manager.engine


@contextmanager
def db_session_scope(commit: bool = True) -> Generator[Session, None, None]:
    """session 上下文管理器：正常结束时提交，异常时回滚，最后移除 session

    使用示例:
        with db_session_scope() as session:
            session.add(Banner(title="首页"))
    """
    session = db_manager.get_session()
    try:
        yield session
        if commit:
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        db_manager.cleanup()
