"""事务管理

- TransactionManager.transaction(): 开启或加入工作单元，session 已在事务中时以保存点执行
- TransactionManager.run(): 原子执行回调，遇到 OperationalError 时重试
- 提交抑制：工作单元内 model.save(commit=True) 只 flush

使用示例:
    from ormkit.orm import transaction_manager as tm

    with tm.transaction() as tx:
        banner.save()

    tm.run(lambda: banner.move_to_top(), attempts=3)
"""

from .state import TransactionState
from .exceptions import (
    TransactionError,
    TransactionNotActiveError,
    TransactionAlreadyCommittedError,
    TransactionAlreadyRolledBackError,
)
from .context import TransactionContext
from .manager import (
    RetryPolicy,
    TransactionManager,
    transaction_manager,
    get_current_transaction,
)

__all__ = [
    "TransactionState",
    "TransactionError",
    "TransactionNotActiveError",
    "TransactionAlreadyCommittedError",
    "TransactionAlreadyRolledBackError",
    "TransactionContext",
    "RetryPolicy",
    "TransactionManager",
    "transaction_manager",
    "get_current_transaction",
]
