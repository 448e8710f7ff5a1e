"""排序管理 Mixin

为 SQLAlchemy 模型提供排序操作方法，支持简单列表排序和分组排序。
所有操作委托给 PositionManager，每个移动在一个事务中完成。

使用示例:
    from ormkit.orm import CoreModel
    from ormkit.orm.sortable import PositionFieldMixin, OrderableMixin

    # 简单列表排序（无分组）
    class Banner(CoreModel, PositionFieldMixin, OrderableMixin):
        title: Mapped[str] = mapped_column(String(100))

    banner = Banner.get(1)
    banner.move_up()          # 上移一位
    banner.move_to_top()      # 置顶

    # 分组排序（同一分类内排序）
    class Product(CoreModel, PositionFieldMixin, OrderableMixin):
        __order_group_by__ = "category_id"

        category_id: Mapped[int] = mapped_column(Integer)
        name: Mapped[str] = mapped_column(String(100))

    product.move_down()       # 在同一分类内下移
    product.move_to_group(category_id=2)
    Product.reorder([3, 1, 2], {"category_id": 1})
"""

from typing import Any, Dict, List, Union

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from .group import OrderingGroup
from .position_manager import PositionManager
from .sqlalchemy_store import SQLAlchemyOrderedStore


class OrderableMixin:
    """排序管理 Mixin

    字段要求（使用者需定义或使用 PositionFieldMixin）:
        - position: int  组内位置

    可配置属性（子类可覆盖）:
        - __position_field__: 位置字段名，默认 "position"
        - __order_group_by__: 分组字段，默认 None（整表为一组）
            - 字符串: 单字段分组，如 "category_id"
            - 列表: 多字段分组，如 ["category_id", "status"]
        - __identity_field__: 标识字段名，默认 "id"

    新建对象的 position 为 None 时，在 flush 前自动追加到所在分组末尾。
    """

    __orderable__ = True

    __position_field__: str = "position"

    __order_group_by__: Union[str, List[str], None] = None

    __identity_field__: str = "id"

    # ==================== 内部方法 ====================

    def _position_manager(self) -> PositionManager:
        return PositionManager(SQLAlchemyOrderedStore(self.session))

    @classmethod
    def _class_position_manager(cls) -> PositionManager:
        return PositionManager(SQLAlchemyOrderedStore(cls.get_session()))

    @classmethod
    def ordering_group(cls, group_filters: Dict[str, Any] = None) -> OrderingGroup:
        """根据分组条件构建 OrderingGroup

        Example:
            group = Product.ordering_group({"category_id": 1})
        """
        return OrderingGroup.for_model(cls, group_filters)

    # ==================== 实例方法 ====================

    def move_up(self) -> bool:
        """上移一位

        Returns:
            是否成功移动（如果已在最顶部则返回 False）
        """
        return self._position_manager().move_up(self)

    def move_down(self) -> bool:
        """下移一位

        Returns:
            是否成功移动（如果已在最底部则返回 False）
        """
        return self._position_manager().move_down(self)

    def move_to_top(self) -> bool:
        return self._position_manager().move_to_top(self)

    def move_to_bottom(self) -> bool:
        return self._position_manager().move_to_bottom(self)

    def move_to(self, position: int) -> bool:
        """移动到指定位置

        Args:
            position: 目标位置（0-based），超出范围时截断
        """
        return self._position_manager().move_to(self, position)

    def move_to_group(self, **group_values) -> bool:
        """修改分组字段并追加到新分组末尾，原分组收拢位置

        Example:
            product.move_to_group(category_id=2)
        """
        return self._position_manager().move_to_group(self, group_values)

    def remove_from_order(self) -> None:
        """删除记录并收拢同组其他记录的位置"""
        self._position_manager().remove(self)

    # ==================== 类方法 ====================

    @classmethod
    def get_ordered(cls, group_filters: Dict[str, Any] = None) -> list:
        """获取分组内按位置排序的记录列表

        Example:
            banners = Banner.get_ordered()
            products = Product.get_ordered({"category_id": 1})
        """
        return cls._class_position_manager().list_ordered(cls.ordering_group(group_filters))

    @classmethod
    def normalize_positions(cls, group_filters: Dict[str, Any] = None) -> int:
        """规范化位置，消除间隙与重复，重新编号为 0..n-1

        Returns:
            更新的记录数
        """
        return cls._class_position_manager().normalize(cls.ordering_group(group_filters))

    @classmethod
    def reorder(cls, ids: List[Any], group_filters: Dict[str, Any] = None) -> int:
        """批量重排序

        根据传入的 ID 顺序重新设置位置，适用于前端拖拽排序后提交新顺序的场景。
        ids 必须恰好包含分组内全部记录。

        Returns:
            更新的记录数

        Example:
            Banner.reorder([3, 1, 2])
        """
        return cls._class_position_manager().reorder(cls.ordering_group(group_filters), ids)

    @classmethod
    def verify_positions(cls, group_filters: Dict[str, Any] = None) -> int:
        """校验分组位置连续且唯一，返回分组内记录数"""
        return cls._class_position_manager().verify(cls.ordering_group(group_filters))


@event.listens_for(Session, "before_flush")
def _assign_pending_positions(session, flush_context, instances):
    """为待插入且未分配位置的排序对象追加位置

    同一分组的多个新对象按加入 session 的顺序依次排在组尾。
    """
    pending = [
        obj for obj in session.new
        if isinstance(obj, OrderableMixin)
        and getattr(obj, obj.__position_field__, None) is None
    ]
    if not pending:
        return

    pending.sort(key=lambda obj: inspect(obj).insert_order)
    manager = PositionManager(SQLAlchemyOrderedStore(session))
    offsets: Dict[OrderingGroup, int] = {}
    for obj in pending:
        group = manager.group_of(obj)
        offset = offsets.get(group, 0)
        manager.assign_initial_position(obj, offset=offset)
        offsets[group] = offset + 1


__all__ = [
    "OrderableMixin",
]
