"""有序集合存储

OrderedCollectionStore 定义排序管理器依赖的存储协议，
同时作为事务执行器（run）使用。

InMemoryOrderedStore 是协议的内存实现，用于验证排序语义及测试。
"""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from ormkit.log import get_logger

from .group import OrderingGroup, PositionFilter, identity_field_of

logger = get_logger("ormkit.orm.sortable")

T = TypeVar("T")


class OrderedCollectionStore(ABC):
    """有序集合存储协议

    所有操作都限定在一个 OrderingGroup 内。
    计数与位移操作不附带任何排序条件；有序列表需显式调用 list_ordered。
    """

    @abstractmethod
    def count_all(self, group: OrderingGroup) -> int:
        """分组内记录总数"""

    @abstractmethod
    def find_by_position(self, group: OrderingGroup, position: int) -> Optional[Any]:
        """查找分组内处于指定位置的记录"""

    @abstractmethod
    def increment_positions(
        self,
        group: OrderingGroup,
        position_filter: PositionFilter,
        exclude: Any = None
    ) -> int:
        """将匹配记录的位置加 1，exclude 为需排除的记录标识；返回受影响行数"""

    @abstractmethod
    def decrement_positions(
        self,
        group: OrderingGroup,
        position_filter: PositionFilter,
        exclude: Any = None
    ) -> int:
        """将匹配记录的位置减 1，exclude 为需排除的记录标识；返回受影响行数"""

    @abstractmethod
    def save(self, record: Any) -> Any:
        """持久化记录当前的字段值（含位置）"""

    @abstractmethod
    def delete(self, record: Any) -> None:
        """删除记录"""

    @abstractmethod
    def list_ordered(self, group: OrderingGroup) -> List[Any]:
        """按位置升序列出分组内记录（位置相同按标识排序，未分配位置的排在最后）"""

    @abstractmethod
    def run(self, callback: Callable[[], T], attempts: int = 1) -> T:
        """在一个原子工作单元内执行 callback，失败时整体回滚"""

    def refresh(self, record: Any, fields: Sequence[str]) -> None:
        """在工作单元内从存储重新读取记录的指定字段并锁定该记录

        对象即存储本身的实现无需覆盖。
        """

    def lock(self, group: OrderingGroup) -> None:
        """在工作单元内锁定分组中的全部记录，直到工作单元结束"""


class InMemoryOrderedStore(OrderedCollectionStore):
    """内存存储

    记录以 (类型, 标识) 为键保存对象引用；标识为 None 的记录在 save 时
    自动分配自增标识。run() 在开始时对记录字段和成员做快照，
    callback 抛出异常时恢复快照，并清除本次工作单元内分配的标识，然后重新抛出。

    使用示例:
        store = InMemoryOrderedStore()
        manager = PositionManager(store)
        for item in items:
            manager.assign_initial_position(item)
            store.save(item)
    """

    def __init__(self, records: Iterable[Any] = ()):
        self._records: Dict[Tuple[type, Any], Any] = {}
        self._ids = itertools.count(1)
        self._depth = 0
        # 当前工作单元内由 save 分配了标识的记录
        self._assigned: List[Any] = []
        for record in records:
            self.save(record)

    def __len__(self) -> int:
        return len(self._records)

    def _members(self, group: OrderingGroup) -> List[Any]:
        return [r for r in self._records.values() if group.contains(r)]

    def _shift(self, group, position_filter, exclude, delta) -> int:
        changed = 0
        for record in self._members(group):
            if exclude is not None and group.identity_of(record) == exclude:
                continue
            position = group.position_of(record)
            if position_filter.matches(position):
                setattr(record, group.position_field, position + delta)
                changed += 1
        return changed

    def count_all(self, group: OrderingGroup) -> int:
        return len(self._members(group))

    def find_by_position(self, group: OrderingGroup, position: int) -> Optional[Any]:
        for record in self._members(group):
            if group.position_of(record) == position:
                return record
        return None

    def increment_positions(self, group, position_filter, exclude=None) -> int:
        return self._shift(group, position_filter, exclude, 1)

    def decrement_positions(self, group, position_filter, exclude=None) -> int:
        return self._shift(group, position_filter, exclude, -1)

    def save(self, record: Any) -> Any:
        model = type(record)
        field = identity_field_of(model)
        if getattr(record, field, None) is None:
            setattr(record, field, next(self._ids))
            if self._depth:
                self._assigned.append(record)
        self._records[(model, getattr(record, field))] = record
        return record

    def delete(self, record: Any) -> None:
        model = type(record)
        self._records.pop((model, getattr(record, identity_field_of(model))), None)

    def get(self, model: type, identity: Any) -> Optional[Any]:
        return self._records.get((model, identity))

    def list_ordered(self, group: OrderingGroup) -> List[Any]:
        return sorted(
            self._members(group),
            key=lambda r: (group.position_of(r) is None, group.position_of(r) or 0, group.identity_of(r)),
        )

    def run(self, callback: Callable[[], T], attempts: int = 1) -> T:
        if self._depth:
            return callback()

        snapshot = dict(self._records)
        states = {key: dict(vars(record)) for key, record in snapshot.items()}
        self._assigned = []
        self._depth += 1
        try:
            return callback()
        except Exception:
            self._records = snapshot
            for key, record in snapshot.items():
                vars(record).clear()
                vars(record).update(states[key])
            for record in self._assigned:
                setattr(record, identity_field_of(type(record)), None)
            logger.debug("内存存储工作单元失败，已恢复快照")
            raise
        finally:
            self._depth -= 1
            self._assigned = []
