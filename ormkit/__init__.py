"""
ormkit - 有序记录与通用仓储基础库

提供 SQLAlchemy 模型的组内位置维护（上移/下移/置顶/置底）、
通用仓储、事务管理、配置与日志等基础功能
"""

__version__ = "0.1.0"

from .orm import (
    CoreModel,
    init_database,
    db_session_scope,
    transaction_manager,
    PositionManager,
    PositionFieldMixin,
    OrderableMixin,
)
from .repository import Repository, ColumnFinder, RepositoryRegistry

__all__ = [
    "__version__",
    "CoreModel",
    "init_database",
    "db_session_scope",
    "transaction_manager",
    "PositionManager",
    "PositionFieldMixin",
    "OrderableMixin",
    "Repository",
    "ColumnFinder",
    "RepositoryRegistry",
]
