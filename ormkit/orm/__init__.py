"""ORM模块

提供排序管理所需的 ORM 基础设施：
- CoreModel: 核心模型基类，包含自增ID、自动表名、CRUD
- 数据库会话管理
- 事务管理（嵌套事务、传播行为、提交抑制、重试执行）
- 排序管理（位置字段、排序 Mixin、位置管理器）

使用示例:
    from ormkit.orm import CoreModel, PositionFieldMixin, OrderableMixin, init_database

    init_database("sqlite:///./app.db")

    class Banner(CoreModel, PositionFieldMixin, OrderableMixin):
        title: Mapped[str] = mapped_column(String(100))

    Banner(title="首页").save(commit=True)
    Banner.get(1).move_to_bottom()
"""

from .core_model import Base, CoreModel
from .db_session import (
    # 管理器单例
    db_manager,
    # 公开 API
    init_database,
    get_engine,
    db_session_scope,
    create_database_engine,
)

# 事务管理
from .transaction import (
    TransactionState,
    TransactionError,
    TransactionNotActiveError,
    TransactionAlreadyCommittedError,
    TransactionAlreadyRolledBackError,
    TransactionContext,
    TransactionManager,
    transaction_manager,
    get_current_transaction,
)

# 排序管理
from .sortable import (
    OrderingError,
    NotOrderableError,
    InvariantViolationError,
    GroupMismatchError,
    OrderingGroup,
    PositionFilter,
    OrderedCollectionStore,
    InMemoryOrderedStore,
    SQLAlchemyOrderedStore,
    PositionManager,
    PositionFieldMixin,
    OrderableMixin,
)

__all__ = [
    # 模型
    "Base",
    "CoreModel",

    # 会话
    "db_manager",
    "init_database",
    "get_engine",
    "db_session_scope",
    "create_database_engine",

    # 事务
    "TransactionState",
    "TransactionError",
    "TransactionNotActiveError",
    "TransactionAlreadyCommittedError",
    "TransactionAlreadyRolledBackError",
    "TransactionContext",
    "TransactionManager",
    "transaction_manager",
    "get_current_transaction",

    # 排序
    "OrderingError",
    "NotOrderableError",
    "InvariantViolationError",
    "GroupMismatchError",
    "OrderingGroup",
    "PositionFilter",
    "OrderedCollectionStore",
    "InMemoryOrderedStore",
    "SQLAlchemyOrderedStore",
    "PositionManager",
    "PositionFieldMixin",
    "OrderableMixin",
]
