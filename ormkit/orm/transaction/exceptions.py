"""事务异常"""


class TransactionError(Exception):
    """事务错误基类"""


class TransactionNotActiveError(TransactionError):
    """工作单元未开始或已结束"""

    def __init__(self, message: str = "事务未激活"):
        super().__init__(message)


class TransactionAlreadyCommittedError(TransactionError):
    """工作单元已提交，不能再提交或回滚"""

    def __init__(self, message: str = "事务已提交，无法执行此操作"):
        super().__init__(message)


class TransactionAlreadyRolledBackError(TransactionError):
    """工作单元已回滚，不能再提交"""

    def __init__(self, message: str = "事务已回滚，无法执行此操作"):
        super().__init__(message)
