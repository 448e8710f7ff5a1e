"""
Pytest 公共 Fixtures

- temp_dir / temp_file: 基于 tmp_path 的临时文件
- memory_engine: 开启保存点支持的内存 SQLite 引擎
- db_session: 直接使用的 Session
- orm_session_scope: 绑定 CoreModel.query 与事务管理器的 scoped_session
"""

from typing import Generator

import pytest
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from ormkit.orm import Base, CoreModel, create_database_engine

from tests.helpers import bind_transaction_manager


@pytest.fixture
def temp_dir(tmp_path) -> str:
    return str(tmp_path)


@pytest.fixture
def temp_file(tmp_path):
    """在临时目录下写入文件，返回绝对路径"""
    def _create_file(filename: str, content: str = "") -> str:
        path = tmp_path / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return str(path)

    return _create_file


@pytest.fixture
def memory_engine():
    """单连接（StaticPool）内存数据库，每个测试独立"""
    engine = create_database_engine("sqlite:///:memory:")
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(memory_engine) -> Generator[Session, None, None]:
    session = sessionmaker(autoflush=False, bind=memory_engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def orm_session_scope(memory_engine, monkeypatch):
    """建表并把 CoreModel 与全局事务管理器绑定到测试用 scoped_session

    补丁在测试结束后自动恢复。
    """
    Base.metadata.create_all(bind=memory_engine)
    session_scope = scoped_session(sessionmaker(autoflush=False, bind=memory_engine))
    monkeypatch.setattr(CoreModel, "query", session_scope.query_property())
    bind_transaction_manager(monkeypatch, session_scope)
    yield session_scope
    session_scope.remove()
