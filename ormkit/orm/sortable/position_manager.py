"""位置管理器

在排序分组内移动单条记录，保持组内位置恰为 {0, ..., n-1}。

每个移动操作分两步：先平移被挤占的其他记录，再写入目标记录的新位置。
两步在同一个工作单元（runner.run）中执行，任一步失败则整体回滚。
平移条件总是按标识排除目标记录自身。
移动前在工作单元内重新读取目标记录的位置，并锁定其所在分组。

使用示例:
    from ormkit.orm.sortable import PositionManager, SQLAlchemyOrderedStore

    manager = PositionManager(SQLAlchemyOrderedStore(session))
    manager.move_up(banner)
    manager.move_to_bottom(banner)
"""

from __future__ import annotations

from typing import Any, Callable, List, Mapping, Optional, Sequence

from ormkit.log import get_logger

from .exceptions import InvariantViolationError, NotOrderableError, OrderingError
from .group import OrderingGroup, PositionFilter, is_orderable
from .store import OrderedCollectionStore

logger = get_logger("ormkit.orm.sortable")


class PositionManager:
    """位置管理器

    Args:
        store: 有序集合存储
        runner: 事务执行器（提供 run(callback, attempts)），默认使用 store 自身
        attempts: 传给 runner 的尝试次数
        position_field: 记录类未声明 __position_field__ 时使用的位置字段名
    """

    def __init__(
        self,
        store: OrderedCollectionStore,
        runner: Any = None,
        attempts: int = 1,
        position_field: str = None
    ):
        self.store = store
        self.runner = runner if runner is not None else store
        self.attempts = max(1, attempts)
        self.position_field = position_field

    @classmethod
    def from_settings(cls, store: OrderedCollectionStore, settings=None, runner=None) -> PositionManager:
        """根据 OrderingSettings 创建管理器"""
        if settings is None:
            from ormkit.config import OrderingSettings
            settings = OrderingSettings()
        return cls(
            store,
            runner=runner,
            attempts=settings.transaction_attempts,
            position_field=settings.position_field,
        )

    def group_of(self, record: Any) -> OrderingGroup:
        return OrderingGroup.of(record, self.position_field)

    # ==================== 插入 ====================

    def assign_initial_position(self, record: Any, offset: int = 0) -> Optional[int]:
        """为即将插入的记录分配初始位置（追加到组尾）

        不开启事务，也不修改其他记录，由插入所在的事务保证原子性。
        同一批次插入多条同组记录时，调用方通过 offset 传入批内序号。

        Returns:
            分配的位置；记录不参与排序时返回 None
        """
        if not is_orderable(record):
            return None
        group = self.group_of(record)
        position = self.store.count_all(group) + offset
        setattr(record, group.position_field, position)
        logger.debug(f"{group} 新记录分配位置 {position}")
        return position

    # ==================== 移动 ====================

    def move_up(self, record: Any) -> bool:
        """上移一位，与前一条记录交换位置

        Returns:
            是否发生移动（已在顶部时返回 False）
        """
        return self._atomic(self._move_up, record)

    def move_down(self, record: Any) -> bool:
        """下移一位，与后一条记录交换位置

        Returns:
            是否发生移动（已在底部时返回 False）
        """
        return self._atomic(self._move_down, record)

    def move_to_top(self, record: Any) -> bool:
        """置顶，原先排在前面的记录整体后移一位"""
        return self._atomic(self._move_to_top, record)

    def move_to_bottom(self, record: Any) -> bool:
        """置底，原先排在后面的记录整体前移一位"""
        return self._atomic(self._move_to_bottom, record)

    def move_to(self, record: Any, position: int) -> bool:
        """移动到指定位置（0-based，超出范围时截断到 [0, n-1]）

        原位置与目标位置之间的记录向空出的位置平移一位。
        """
        return self._atomic(lambda r: self._move_to(r, position), record)

    def _move_up(self, record: Any) -> bool:
        group, current = self._locate(record)
        target = max(0, current - 1)
        if target == current:
            return self._unchanged(group, record, "已在顶部")
        self.store.increment_positions(
            group, PositionFilter.eq(target), exclude=group.identity_of(record)
        )
        return self._place(group, record, current, target)

    def _move_down(self, record: Any) -> bool:
        group, current = self._locate(record)
        target = min(self.store.count_all(group) - 1, current + 1)
        if target == current:
            return self._unchanged(group, record, "已在底部")
        self.store.decrement_positions(
            group, PositionFilter.eq(target), exclude=group.identity_of(record)
        )
        return self._place(group, record, current, target)

    def _move_to_top(self, record: Any) -> bool:
        group, current = self._locate(record)
        if current == 0:
            return self._unchanged(group, record, "已在顶部")
        self.store.increment_positions(
            group, PositionFilter.le(current), exclude=group.identity_of(record)
        )
        return self._place(group, record, current, 0)

    def _move_to_bottom(self, record: Any) -> bool:
        group, current = self._locate(record)
        bottom = self.store.count_all(group) - 1
        if current == bottom:
            return self._unchanged(group, record, "已在底部")
        self.store.decrement_positions(
            group, PositionFilter.ge(current), exclude=group.identity_of(record)
        )
        return self._place(group, record, current, bottom)

    def _move_to(self, record: Any, position: int) -> bool:
        group, current = self._locate(record)
        target = min(max(0, position), self.store.count_all(group) - 1)
        if target == current:
            return self._unchanged(group, record, f"已在位置 {target}")
        identity = group.identity_of(record)
        if target < current:
            self.store.increment_positions(
                group, PositionFilter.between(target, current - 1), exclude=identity
            )
        else:
            self.store.decrement_positions(
                group, PositionFilter.between(current + 1, target), exclude=identity
            )
        return self._place(group, record, current, target)

    def move_to_group(self, record: Any, group_values: Mapping[str, Any]) -> bool:
        """修改记录的分组字段并把它追加到新分组末尾

        原分组中排在它后面的记录前移一位，三步在同一个工作单元内完成。
        group_values 只需包含要修改的分组字段。

        Raises:
            GroupMismatchError: group_values 含有非分组字段

        Returns:
            分组是否变化
        """
        self._require_orderable(record)
        group_values = dict(group_values)

        def work():
            group, current = self._locate(record)
            target = OrderingGroup.for_model(
                type(record), {**group.as_dict(), **group_values}, self.position_field
            )
            if target == group:
                return self._unchanged(group, record, "分组未变化")

            self.store.lock(target)
            position = self.store.count_all(target)
            identity = group.identity_of(record)
            self.store.decrement_positions(group, PositionFilter.gt(current), exclude=identity)
            for name, value in group_values.items():
                setattr(record, name, value)
            setattr(record, group.position_field, position)
            self.store.save(record)
            logger.debug(f"记录 {identity!r} 从 {group} 位置 {current} 移到 {target} 位置 {position}")
            return True

        return self.runner.run(work, attempts=self.attempts)

    # ==================== 删除 ====================

    def remove(self, record: Any) -> None:
        """删除记录并收拢空位：组内位置大于被删记录的其他记录前移一位"""
        self._require_orderable(record)

        def work():
            group, position = self._current(record)
            identity = group.identity_of(record)
            self.store.delete(record)
            if position is not None:
                self.store.decrement_positions(
                    group, PositionFilter.gt(position), exclude=identity
                )
            logger.debug(f"{group} 删除记录 {identity}（位置 {position}）")

        self.runner.run(work, attempts=self.attempts)

    # ==================== 分组维护 ====================

    def list_ordered(self, group: OrderingGroup) -> List[Any]:
        """按位置升序列出分组内记录"""
        return self.store.list_ordered(group)

    def normalize(self, group: OrderingGroup) -> int:
        """按当前顺序把分组重新编号为 0..n-1

        用于修复绕过管理器写入的数据。

        Returns:
            位置发生变化的记录数
        """
        def work():
            self.store.lock(group)
            return self._renumber(group, self.store.list_ordered(group))

        return self.runner.run(work, attempts=self.attempts)

    def reorder(self, group: OrderingGroup, identities: Sequence[Any]) -> int:
        """按给定标识顺序为分组重新编号

        Raises:
            ValueError: identities 与分组内记录的标识集合不一致或存在重复

        Returns:
            位置发生变化的记录数
        """
        identities = list(identities)

        def work():
            self.store.lock(group)
            records = self.store.list_ordered(group)
            by_identity = {group.identity_of(r): r for r in records}
            if len(identities) != len(set(identities)) or set(identities) != set(by_identity):
                raise ValueError(
                    f"{group} 的重排序标识与组内记录不一致: "
                    f"{list(identities)} != {sorted(by_identity, key=repr)}"
                )
            return self._renumber(group, [by_identity[i] for i in identities])

        return self.runner.run(work, attempts=self.attempts)

    def verify(self, group: OrderingGroup) -> int:
        """校验分组位置恰为 {0, ..., n-1}

        Raises:
            InvariantViolationError: 位置不连续、重复或缺失

        Returns:
            分组内记录数
        """
        positions = sorted(
            (group.position_of(r) for r in self.store.list_ordered(group)),
            key=lambda p: (p is None, p),
        )
        if positions != list(range(len(positions))):
            logger.error(f"{group} 位置不变式被破坏: {positions}")
            raise InvariantViolationError(group, positions)
        return len(positions)

    # ==================== 内部方法 ====================

    def _atomic(self, operation: Callable[[Any], bool], record: Any) -> bool:
        self._require_orderable(record)
        return self.runner.run(lambda: operation(record), attempts=self.attempts)

    def _require_orderable(self, record: Any) -> None:
        if not is_orderable(record):
            raise NotOrderableError(record)

    def _current(self, record: Any):
        """在工作单元内重新读取记录的分组与位置，并锁定所在分组"""
        group = self.group_of(record)
        self.store.refresh(record, [group.position_field, *(name for name, _ in group.filters)])
        group = self.group_of(record)
        self.store.lock(group)
        return group, group.position_of(record)

    def _locate(self, record: Any):
        group, current = self._current(record)
        if current is None:
            raise OrderingError(
                f"{type(record).__name__} {group.identity_of(record)!r} 尚未分配位置"
            )
        return group, current

    def _place(self, group: OrderingGroup, record: Any, current: int, target: int) -> bool:
        setattr(record, group.position_field, target)
        self.store.save(record)
        logger.debug(
            f"{group} 记录 {group.identity_of(record)!r} 位置 {current} -> {target}"
        )
        return True

    def _unchanged(self, group: OrderingGroup, record: Any, reason: str) -> bool:
        logger.debug(f"{group} 记录 {group.identity_of(record)!r} {reason}，未移动")
        return False

    def _renumber(self, group: OrderingGroup, records: List[Any]) -> int:
        changed = 0
        for index, record in enumerate(records):
            if group.position_of(record) != index:
                setattr(record, group.position_field, index)
                self.store.save(record)
                changed += 1
        if changed:
            logger.debug(f"{group} 重新编号 {changed} 条记录")
        return changed
