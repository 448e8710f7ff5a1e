"""
ORM基础模型

提供声明基类和常用的CRUD操作
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, Session, declarative_base, declared_attr, mapped_column, object_session

from ormkit.log import get_logger

from .utils import to_snake_case

if TYPE_CHECKING:
    from typing_extensions import Self


logger = get_logger("ormkit.orm")

# 声明基类
Base = declarative_base()


class CoreModel(Base):
    """ORM基础模型类

    提供功能：
    - 自增整数主键
    - 自动表名生成（驼峰转下划线）
    - 常用CRUD操作方法
    - 事务上下文中的提交抑制

    使用示例:
        from ormkit.orm import CoreModel, init_database

        init_database("sqlite:///./test.db")

        class Banner(CoreModel):
            title: Mapped[str] = mapped_column(String(100))

        banner = Banner(title="首页")
        banner.save(commit=True)
    """
    __abstract__ = True

    # query 属性由 init_database() 或测试通过 scoped_session.query_property() 设置
    query = None

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """驼峰命名转下划线"""
        return to_snake_case(cls.__name__)

    def __repr__(self):
        return f"<{self.__class__.__name__} id={self.id}>"

    # ==================== Session ====================

    @property
    def session(self) -> Session:
        """获取当前session

        已关联 session 的对象直接返回其 session，否则回退到类级 session。
        """
        session = object_session(self)
        if session is not None:
            return session
        return self.__class__.get_session()

    @classmethod
    def get_session(cls) -> Session:
        """获取类级 session

        优先从 query 属性获取（支持测试环境），否则从全局 scoped_session 获取
        """
        if cls.query is not None:
            return cls.query.session
        from .db_session import db_manager
        return db_manager.get_session()

    # ==================== CRUD 操作方法 ====================

    def save(self, commit: bool = False) -> Self:
        """保存对象（新增或更新）

        Args:
            commit: 是否立即提交
                   - 无事务时：执行 session.commit()
                   - 有事务时：commit 被抑制，改为 flush

        Returns:
            self: 返回自身，支持链式调用
        """
        self.session.add(self)
        self.__is_commit(commit)
        return self

    def delete(self, commit: bool = False):
        """删除对象"""
        session = self.session
        session.delete(self)
        self.__is_commit(commit, session)

    @classmethod
    def get(cls, id: int) -> Optional[Self]:
        """根据ID获取对象，不存在返回None"""
        return cls.get_session().get(cls, id)

    @classmethod
    def get_all(cls):
        """获取所有记录"""
        return cls.query.all()

    def __is_commit(self, commit=False, session: Session = None):
        """根据参数决定是否提交

        当在事务上下文中时，commit=True 会被忽略，改为 flush。
        """
        if not commit:
            return
        session = session or self.session
        if self._should_suppress_commit():
            session.flush()
            return
        session.commit()

    @staticmethod
    def _should_suppress_commit() -> bool:
        """检查是否应该抑制提交"""
        from .transaction import get_current_transaction
        tx = get_current_transaction()
        if tx is not None and tx.should_suppress_commit():
            logger.debug("commit=True 被事务上下文抑制")
            return True
        return False
