"""事务状态"""

from enum import Enum


class TransactionState(str, Enum):
    """工作单元状态

        INACTIVE → ACTIVE → COMMITTED
                      ↓
                  ROLLED_BACK

    提交或回滚本身失败时进入 FAILED，之后只能回滚。
    """

    INACTIVE = "inactive"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        return self in (TransactionState.COMMITTED, TransactionState.ROLLED_BACK)
