"""排序管理模块

维护排序分组内记录的位置：位置从 0 开始，组内唯一且连续。

导出:
    - PositionManager: 位置管理器（上移/下移/置顶/置底/移动/删除收拢）
    - OrderingGroup / PositionFilter: 排序分组与位置过滤条件
    - OrderedCollectionStore: 存储协议
    - SQLAlchemyOrderedStore / InMemoryOrderedStore: 存储实现
    - PositionFieldMixin: 位置字段 Mixin（提供 position 字段）
    - OrderableMixin: 排序管理 Mixin（提供排序操作方法）

使用示例:
    from ormkit.orm import CoreModel, PositionFieldMixin, OrderableMixin

    class Banner(CoreModel, PositionFieldMixin, OrderableMixin):
        title: Mapped[str] = mapped_column(String(100))

    banner = Banner(title="首页").save(commit=True)   # 自动追加到末尾
    banner.move_up()          # 上移
    banner.move_down()        # 下移
    banner.move_to_top()      # 置顶
    banner.move_to_bottom()   # 置底
    banner.move_to(2)         # 移动到索引 2

    Banner.reorder([3, 1, 2])  # 按此顺序重新编号
"""

from .exceptions import (
    OrderingError,
    NotOrderableError,
    InvariantViolationError,
    GroupMismatchError,
)
from .group import (
    DEFAULT_POSITION_FIELD,
    OrderingGroup,
    PositionFilter,
    is_orderable,
)
from .store import OrderedCollectionStore, InMemoryOrderedStore
from .sqlalchemy_store import SQLAlchemyOrderedStore
from .position_manager import PositionManager
from .sortable_fields import PositionFieldMixin
from .sortable_mixin import OrderableMixin

__all__ = [
    "OrderingError",
    "NotOrderableError",
    "InvariantViolationError",
    "GroupMismatchError",
    "DEFAULT_POSITION_FIELD",
    "OrderingGroup",
    "PositionFilter",
    "is_orderable",
    "OrderedCollectionStore",
    "InMemoryOrderedStore",
    "SQLAlchemyOrderedStore",
    "PositionManager",
    "PositionFieldMixin",
    "OrderableMixin",
]
