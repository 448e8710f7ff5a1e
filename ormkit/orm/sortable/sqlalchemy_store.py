"""基于 SQLAlchemy Session 的有序集合存储"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Sequence, TypeVar

from sqlalchemy import func, inspect
from sqlalchemy.orm import Session

from ormkit.log import get_logger

from .group import OrderingGroup, PositionFilter
from .store import OrderedCollectionStore

logger = get_logger("ormkit.orm.sortable")

T = TypeVar("T")


class SQLAlchemyOrderedStore(OrderedCollectionStore):
    """SQLAlchemy 存储

    位移操作使用单条 UPDATE 语句完成，并同步 session 中已加载对象的位置值。
    refresh() 与 lock() 使用 SELECT ... FOR UPDATE，移动前读到的位置是数据库中的当前值，
    并发的移动在分组上串行执行（SQLite 不支持行锁，依赖其库级写锁）。
    run() 委托给 transaction_manager.run()。

    Args:
        session: 数据库会话，不传则使用全局 scoped_session
    """

    def __init__(self, session: Session = None):
        self._session = session

    @property
    def session(self) -> Session:
        if self._session is not None:
            return self._session
        from ..db_session import db_manager
        return db_manager.get_session()

    def _group_query(self, group: OrderingGroup, *entities):
        query = self.session.query(*(entities or (group.model,)))
        return query.filter(*group.clauses())

    def _shift(self, group, position_filter, exclude, delta) -> int:
        column = getattr(group.model, group.position_field)
        query = self._group_query(group).filter(position_filter.clause(column))
        if exclude is not None:
            query = query.filter(getattr(group.model, group.identity_field) != exclude)
        return query.update(
            {column: column + delta},
            synchronize_session="fetch",
        )

    def count_all(self, group: OrderingGroup) -> int:
        identity = getattr(group.model, group.identity_field)
        return self._group_query(group, func.count(identity)).scalar() or 0

    def find_by_position(self, group: OrderingGroup, position: int) -> Optional[Any]:
        column = getattr(group.model, group.position_field)
        return self._group_query(group).filter(column == position).first()

    def increment_positions(self, group, position_filter, exclude=None) -> int:
        return self._shift(group, position_filter, exclude, 1)

    def decrement_positions(self, group, position_filter, exclude=None) -> int:
        return self._shift(group, position_filter, exclude, -1)

    def save(self, record: Any) -> Any:
        session = self.session
        session.add(record)
        session.flush()
        return record

    def delete(self, record: Any) -> None:
        session = self.session
        session.delete(record)
        session.flush()

    def refresh(self, record: Any, fields: Sequence[str]) -> None:
        state = inspect(record)
        if not state.persistent:
            return
        session = state.session
        session.flush()
        session.refresh(record, attribute_names=list(fields), with_for_update=True)

    def lock(self, group: OrderingGroup) -> None:
        self.session.flush()
        rows = self._group_query(group).with_for_update().populate_existing().all()
        logger.debug(f"{group} 已锁定 {len(rows)} 条记录")

    def list_ordered(self, group: OrderingGroup) -> List[Any]:
        return self._group_query(group).order_by(
            getattr(group.model, group.position_field),
            getattr(group.model, group.identity_field),
        ).all()

    def run(self, callback: Callable[[], T], attempts: int = 1) -> T:
        from ..transaction import transaction_manager
        return transaction_manager.run(callback, attempts=attempts, session=self.session)
