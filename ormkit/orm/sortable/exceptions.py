"""排序异常定义

提供排序管理相关的异常类。
"""

from typing import Any, List


class OrderingError(Exception):
    """排序基础异常"""
    pass


class NotOrderableError(OrderingError):
    """记录不参与排序

    对未声明 __orderable__ 的记录调用移动操作时抛出。
    assign_initial_position 对此类记录静默跳过，不抛出此异常。

    Attributes:
        record: 出错的记录
    """

    def __init__(self, record: Any):
        self.record = record
        super().__init__(
            f"{type(record).__name__} does not participate in ordering"
        )


class InvariantViolationError(OrderingError):
    """位置不变式被破坏

    组内位置集合不等于 {0, ..., n-1} 时抛出。正常情况下不会出现，
    出现即说明存储层存在未串行化的并发写入或外部直接修改了位置字段。

    Attributes:
        group: 出错的排序分组
        positions: 实际观察到的位置列表（已排序）
    """

    def __init__(self, group: Any, positions: List[Any]):
        self.group = group
        self.positions = positions
        super().__init__(
            f"Positions of {group} are not contiguous: {positions}"
        )


class GroupMismatchError(OrderingError):
    """分组条件与模型声明的分组字段不一致

    Attributes:
        model: 模型类
        expected: 模型声明的分组字段
        given: 调用方传入的分组字段
    """

    def __init__(self, model: Any, expected: List[str], given: List[str]):
        self.model = model
        self.expected = expected
        self.given = given
        super().__init__(
            f"{getattr(model, '__name__', model)} is grouped by {expected}, "
            f"got filters for {given}"
        )
