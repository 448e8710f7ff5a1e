"""通用仓储

为 SQLAlchemy 模型提供增删查与事务辅助，
参与排序的模型在新增与删除时通过 PositionManager 维护位置。

使用示例:
    from ormkit.repository import Repository, ColumnFinder

    class BannerRepository(Repository[Banner]):
        model = Banner

        get_by_title = ColumnFinder("title")
        get_one_by_title = ColumnFinder("title", one=True)

    repo = BannerRepository(session=session)
    banner = repo.persist({"title": "首页"})
    repo.get_by("title", ["首页", "活动"])
    repo.delete(banner)
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Type, TypeVar, Union

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from ormkit.log import get_logger
from ormkit.orm.sortable import PositionManager, SQLAlchemyOrderedStore, is_orderable
from ormkit.orm.sortable.group import group_fields_of, identity_field_of, position_field_of
from ormkit.orm.transaction import transaction_manager

from .exceptions import RepositoryConfigError, RepositoryError, UnknownColumnError

logger = get_logger("ormkit.repository")

T = TypeVar("T")


class ColumnFinder:
    """按列查找的声明式方法

    在仓储类上声明，调用时按该列过滤：
    值为 list/tuple/set 时生成 IN 条件，one=True 时返回首条记录或 None。
    列名在首次调用时针对模型映射校验，不存在则抛出 UnknownColumnError。

    Example:
        class ProductRepository(Repository[Product]):
            model = Product
            get_by_category_id = ColumnFinder("category_id")

        repo.get_by_category_id([1, 2])
    """

    def __init__(self, column: str, one: bool = False):
        self.column = column
        self.one = one
        self.name = None

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, instance, owner):
        if instance is None:
            return self

        def finder(value: Any):
            if self.one:
                return instance.get_one_by(self.column, value)
            return instance.get_by(self.column, value)

        finder.__name__ = self.name or f"get_by_{self.column}"
        finder.__doc__ = f"按 {self.column} 查找"
        return finder


class Repository(Generic[T]):
    """通用仓储

    Args:
        model: 模型类，不传则使用类属性 model
        session: 数据库会话，不传则使用模型的类级 session
        attempts: 事务尝试次数（遇到 OperationalError 时重试）
    """

    model: Optional[Type[T]] = None

    def __init__(self, model: Type[T] = None, session: Session = None, attempts: int = 1):
        model = model or type(self).model
        if model is None:
            raise RepositoryConfigError(f"{type(self).__name__} 未指定模型类")
        self.model = model
        self._session = session
        self.attempts = max(1, attempts)

    def __repr__(self):
        return f"<{type(self).__name__} model={self.model.__name__}>"

    # ==================== Session ====================

    @property
    def session(self) -> Session:
        if self._session is not None:
            return self._session
        if hasattr(self.model, "get_session"):
            return self.model.get_session()
        from ormkit.orm.db_session import db_manager
        return db_manager.get_session()

    @property
    def positions(self) -> PositionManager:
        """本仓储使用的位置管理器"""
        return PositionManager(SQLAlchemyOrderedStore(self.session), attempts=self.attempts)

    # ==================== 基础 ====================

    def make(self) -> T:
        """创建新的（未持久化的）模型实例"""
        return self.model()

    def query(self):
        """模型的基础查询（不附带排序条件）"""
        return self.session.query(self.model)

    def get_id(self, model_or_id: Union[T, Any]) -> Any:
        if isinstance(model_or_id, self.model):
            return getattr(model_or_id, identity_field_of(self.model))
        return model_or_id

    def get_one_by_id(self, model_or_id: Union[T, Any]) -> Optional[T]:
        if isinstance(model_or_id, self.model):
            return model_or_id
        if model_or_id is None:
            return None
        return self.session.get(self.model, model_or_id)

    # ==================== 写操作 ====================

    def persist(self, data: Mapping[str, Any], model: Union[T, Any] = None) -> Optional[T]:
        """填充并保存记录

        model 为空时新建记录；参与排序的新记录追加到所在分组末尾，
        已有记录的分组字段发生变化时移到新分组末尾并收拢原分组。
        位置字段只能通过位置管理器修改，不能出现在 data 中。

        Args:
            data: 字段名 -> 值
            model: 已有记录或其 ID

        Returns:
            保存后的记录；model 为不存在的 ID 时返回 None

        Raises:
            UnknownColumnError: data 中存在模型没有的列
        """
        self._check_columns(data)
        if is_orderable(self.model):
            position_field = position_field_of(self.model)
            if position_field in data:
                raise RepositoryError(f"{position_field} 字段由位置管理器维护，不能直接写入")

        if model is None:
            record = self.make()
        else:
            record = self.get_one_by_id(model)
            if record is None:
                logger.debug(f"{self.model.__name__} {model!r} 不存在，跳过保存")
                return None

        is_new = inspect(record).transient
        regroup = {}
        if not is_new and is_orderable(self.model):
            regroup = {k: data[k] for k in group_fields_of(self.model) if k in data}

        def work():
            for key, value in data.items():
                if key not in regroup:
                    setattr(record, key, value)
            if regroup:
                self.positions.move_to_group(record, regroup)
            if is_new:
                self.positions.assign_initial_position(record)
            session = self.session
            session.add(record)
            session.flush()
            return record

        return self.transaction(work)

    def delete(self, model_or_id: Union[T, Any]) -> bool:
        """删除记录，参与排序的记录删除后收拢同组位置

        Returns:
            是否删除（记录不存在时返回 False）
        """
        record = self.get_one_by_id(model_or_id)
        if record is None:
            return False

        if is_orderable(record):
            self.positions.remove(record)
            return True

        def work():
            session = self.session
            session.delete(record)
            session.flush()

        self.transaction(work)
        return True

    # ==================== 查询 ====================

    def get_by(self, column: Union[str, Mapping[str, Any]], value: Any = None) -> List[T]:
        """按列条件查询

        Args:
            column: 列名，或 {列名: 值} 的字典（多个条件为 AND）
            value: 列值；list/tuple/set 生成 IN 条件，None 生成 IS NULL

        Example:
            repo.get_by("status", "active")
            repo.get_by({"category_id": [1, 2], "status": "active"})
        """
        return self._filtered(column, value).all()

    def get_one_by(self, column: Union[str, Mapping[str, Any]], value: Any = None) -> Optional[T]:
        """按列条件查询首条记录，不存在返回 None"""
        return self._filtered(column, value).first()

    # ==================== 事务 ====================

    def transaction(self, callback: Callable[[], Any] = None, attempts: int = None):
        """事务辅助

        传入 callback 时在事务中执行并返回其结果（遇到 OperationalError 按 attempts 重试）；
        不传时返回事务上下文管理器。

        Example:
            repo.transaction(lambda: repo.persist({"title": "首页"}), attempts=3)

            with repo.transaction() as tx:
                repo.persist({"title": "A"})
                repo.persist({"title": "B"})
        """
        if callback is None:
            return transaction_manager.transaction(session=self.session)
        return transaction_manager.run(
            callback,
            attempts=attempts or self.attempts,
            session=self.session,
        )

    # ==================== 内部方法 ====================

    def _column_names(self) -> set:
        return {attr.key for attr in inspect(self.model).column_attrs}

    def _check_columns(self, names) -> None:
        unknown = sorted(set(names) - self._column_names())
        if unknown:
            raise UnknownColumnError(self.model, unknown)

    def _filtered(self, column, value):
        criteria: Dict[str, Any] = dict(column) if isinstance(column, Mapping) else {column: value}
        self._check_columns(criteria)

        query = self.query()
        for name, expected in criteria.items():
            attr = getattr(self.model, name)
            if isinstance(expected, (list, tuple, set, frozenset)):
                query = query.filter(attr.in_(list(expected)))
            elif expected is None:
                query = query.filter(attr.is_(None))
            else:
                query = query.filter(attr == expected)
        return query
