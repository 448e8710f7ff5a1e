"""事务上下文

TransactionContext 是 TransactionManager 开启的一个工作单元。

session 上没有未结束的事务时，工作单元拥有整个 session 事务：
结束时 commit，失败时 rollback。
session 已处于事务中时（调用方已有读取或未提交的写入），工作单元以保存点执行：
结束时只释放保存点，提交仍由调用方负责；失败时只回滚到保存点，
调用方在此之前的写入保持不变。
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Generator, Optional

from sqlalchemy.orm import Session

from ormkit.log import get_logger

from .state import TransactionState
from .exceptions import (
    TransactionError,
    TransactionAlreadyCommittedError,
    TransactionAlreadyRolledBackError,
    TransactionNotActiveError,
)

if TYPE_CHECKING:
    from sqlalchemy.orm.session import SessionTransaction

logger = get_logger("ormkit.orm.transaction")


class TransactionContext:
    """事务上下文

    Args:
        session: 数据库会话
        suppress_commit: 工作单元内 model.save(commit=True) 是否只 flush
        nested: 是否以保存点执行，None 时根据 session.in_transaction() 判断

    使用示例:
        with TransactionContext(session) as tx:
            banner.save()
            with tx.savepoint():
                banner.move_to_top()
    """

    def __init__(self, session: Session, suppress_commit: bool = True, nested: bool = None):
        self._session = session
        self._suppress_commit = suppress_commit
        self._nested = nested
        self._savepoint: Optional[SessionTransaction] = None
        self._state = TransactionState.INACTIVE

        # 加入本工作单元的 transaction() 层数
        self._nesting_level = 0

        # run() 的第几次尝试
        self.attempt = 1

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == TransactionState.ACTIVE

    @property
    def is_nested(self) -> bool:
        """是否以保存点执行"""
        return self._savepoint is not None

    @property
    def nesting_level(self) -> int:
        return self._nesting_level

    # ==================== 生命周期 ====================

    def begin(self) -> TransactionContext:
        if self._state is not TransactionState.INACTIVE:
            raise _state_error(self._state, "开始")

        nested = self._session.in_transaction() if self._nested is None else self._nested
        self._savepoint = self._session.begin_nested() if nested else None
        self._state = TransactionState.ACTIVE
        self._nesting_level = 1
        logger.debug(f"工作单元开始于{'保存点' if nested else '新的 session 事务'}")
        return self

    def commit(self) -> None:
        """结束工作单元；以保存点执行时只释放保存点"""
        if self._state is not TransactionState.ACTIVE:
            raise _state_error(self._state, "提交")

        target = self._savepoint if self._savepoint is not None else self._session
        try:
            target.commit()
        except Exception:
            self._state = TransactionState.FAILED
            raise
        self._finish(TransactionState.COMMITTED, "提交")

    def rollback(self) -> None:
        """撤销工作单元（幂等）；以保存点执行时只回到保存点"""
        if self._state is TransactionState.COMMITTED:
            raise _state_error(self._state, "回滚")
        if self._state not in (TransactionState.ACTIVE, TransactionState.FAILED):
            return

        try:
            if self._savepoint is None:
                self._session.rollback()
            elif self._session.get_nested_transaction() is self._savepoint:
                # flush 失败后保存点已失效，但仍需回滚才能结束它
                self._savepoint.rollback()
        except Exception as e:
            self._state = TransactionState.FAILED
            logger.error(f"工作单元回滚出错 (attempt={self.attempt}): {e}")
            raise
        self._finish(TransactionState.ROLLED_BACK, "回滚")

    def _finish(self, state: TransactionState, action: str) -> None:
        self._state = state
        self._nesting_level = 0
        logger.debug(f"工作单元已{action} (attempt={self.attempt})")

    @contextmanager
    def joined(self) -> Generator[TransactionContext, None, None]:
        """外层 transaction() 再次进入本工作单元，不单独提交或回滚"""
        self._nesting_level += 1
        logger.debug(f"加入进行中的工作单元，当前层数 {self._nesting_level}")
        try:
            yield self
        finally:
            self._nesting_level = max(0, self._nesting_level - 1)

    @contextmanager
    def savepoint(self) -> Generator[TransactionContext, None, None]:
        """在本工作单元内开启保存点，块内异常只回滚到保存点后重新抛出"""
        if not self.is_active:
            raise TransactionNotActiveError("无法创建保存点：工作单元未激活")
        with self._session.begin_nested():
            yield self

    def should_suppress_commit(self) -> bool:
        """工作单元内是否把 model.save(commit=True) 降级为 flush"""
        return self.is_active and self._suppress_commit

    # ==================== 上下文管理器 ====================

    def __enter__(self) -> TransactionContext:
        return self.begin()

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.rollback()
        elif self.is_active:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        return False

    def __repr__(self) -> str:
        return (
            f"TransactionContext(state={self._state.value}, "
            f"nested={self.is_nested}, attempt={self.attempt})"
        )


def _state_error(state: TransactionState, action: str) -> TransactionError:
    if state is TransactionState.COMMITTED:
        return TransactionAlreadyCommittedError(f"无法{action}：工作单元已提交")
    if state is TransactionState.ROLLED_BACK:
        return TransactionAlreadyRolledBackError(f"无法{action}：工作单元已回滚")
    return TransactionNotActiveError(f"无法{action}：工作单元状态为 {state.value}")
