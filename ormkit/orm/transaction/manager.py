"""事务管理器

transaction_manager 是全局入口：transaction() 开启或加入工作单元，
run() 把回调作为原子工作单元执行并在并发冲突时重试。
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Callable, Generator, Iterator, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ormkit.log import get_logger

from .context import TransactionContext

logger = get_logger("ormkit.orm.transaction")

T = TypeVar('T')

# 每个线程/协程各自的活跃工作单元
_active_unit: ContextVar[Optional[TransactionContext]] = ContextVar('_active_unit', default=None)


def get_current_transaction() -> Optional[TransactionContext]:
    """当前线程/协程的工作单元，没有则返回 None"""
    return _active_unit.get()


@dataclass(frozen=True)
class RetryPolicy:
    """run() 的重试间隔：从 delay 开始每次乘以 multiplier，不超过 max_delay"""
    delay: float = 0.1
    multiplier: float = 2.0
    max_delay: float = 10.0

    def delays(self) -> Iterator[float]:
        delay = self.delay
        while True:
            yield min(delay, self.max_delay)
            delay *= self.multiplier


class TransactionManager:
    """事务管理器

    Args:
        suppress_commit: 工作单元内 model.save(commit=True) 是否默认只 flush
        retry: run() 的重试间隔策略

    使用示例:
        from ormkit.orm import transaction_manager as tm

        with tm.transaction() as tx:
            banner.save()

        tm.run(lambda: manager.move_up(banner), attempts=3)
    """

    def __init__(self, suppress_commit: bool = True, retry: RetryPolicy = None):
        self.suppress_commit = suppress_commit
        self.retry = retry or RetryPolicy()

    def get_session(self) -> Session:
        from ..db_session import db_manager
        return db_manager.get_session()

    @property
    def current_transaction(self) -> Optional[TransactionContext]:
        return _active_unit.get()

    def configure(
        self,
        suppress_commit_in_transaction: bool = None,
        retry_delay: float = None,
        backoff_multiplier: float = None,
        max_delay: float = None
    ) -> None:
        """修改默认行为，未传的参数保持不变"""
        if suppress_commit_in_transaction is not None:
            self.suppress_commit = suppress_commit_in_transaction
        changes = {
            name: value
            for name, value in (
                ("delay", retry_delay),
                ("multiplier", backoff_multiplier),
                ("max_delay", max_delay),
            )
            if value is not None
        }
        if changes:
            self.retry = replace(self.retry, **changes)

    @contextmanager
    def transaction(
        self,
        session: Session = None,
        suppress_commit: bool = None
    ) -> Generator[TransactionContext, None, None]:
        """开启工作单元；已有活跃工作单元时加入它

        加入时内层不单独提交或回滚，异常向外传播后由外层回滚。
        需要只回滚内层时使用 tx.savepoint()。
        """
        current = self.current_transaction
        if current is not None and current.is_active:
            with current.joined():
                yield current
            return

        unit = TransactionContext(
            session if session is not None else self.get_session(),
            suppress_commit=self.suppress_commit if suppress_commit is None else suppress_commit,
        )
        token = _active_unit.set(unit)
        try:
            with unit:
                yield unit
        finally:
            _active_unit.reset(token)

    def run(
        self,
        callback: Callable[[], T],
        attempts: int = 1,
        session: Session = None,
        retry_on: Tuple[Type[Exception], ...] = (OperationalError,),
        retry_delay: float = None
    ) -> T:
        """把 callback 作为一个原子工作单元执行，返回它的结果

        失败时恢复到执行前的状态：
        - 已在活跃工作单元中：在其中开启保存点执行，失败只回滚保存点，不重试
        - session 已有未结束的事务：以保存点执行，成功不提交调用方的事务
        - 否则开启新的 session 事务

        后两种情况遇到 retry_on 异常时按 RetryPolicy 等待后重试，共尝试 attempts 次。
        """
        current = self.current_transaction
        if current is not None and current.is_active:
            with current.savepoint():
                return callback()

        if session is None:
            session = self.get_session()
        attempts = max(1, attempts)
        policy = self.retry if retry_delay is None else replace(self.retry, delay=retry_delay)
        waits = policy.delays()

        attempt = 1
        while True:
            try:
                with self.transaction(session=session) as unit:
                    unit.attempt = attempt
                    return callback()
            except retry_on as e:
                if attempt == attempts:
                    if attempts > 1:
                        logger.error(f"工作单元 {attempts} 次尝试均失败: {type(e).__name__}: {e}")
                    raise
                wait = next(waits)
                logger.warning(
                    f"工作单元第 {attempt}/{attempts} 次尝试失败，{wait:.2f}s 后重试: "
                    f"{type(e).__name__}: {e}"
                )
                if wait > 0:
                    time.sleep(wait)
                attempt += 1

    def is_in_transaction(self) -> bool:
        unit = self.current_transaction
        return unit is not None and unit.is_active

    def should_suppress_commit(self) -> bool:
        """CoreModel 用于判断 commit=True 是否应降级为 flush"""
        unit = self.current_transaction
        return unit is not None and unit.should_suppress_commit()


transaction_manager = TransactionManager()
