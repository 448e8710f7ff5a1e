"""排序分组与位置过滤条件

OrderingGroup 描述一个排序分组（位置在其中唯一且连续），
PositionFilter 描述位移操作匹配的位置范围。
两者同时支持内存求值与生成 SQLAlchemy 查询条件。
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from ..utils import normalize_fields
from .exceptions import GroupMismatchError

DEFAULT_POSITION_FIELD = "position"
DEFAULT_IDENTITY_FIELD = "id"


def is_orderable(record_or_model: Any) -> bool:
    """记录（或模型类）是否声明参与排序"""
    return bool(getattr(record_or_model, "__orderable__", False))


def position_field_of(model: type, default: str = None) -> str:
    """位置字段名：类属性 __position_field__ 优先，其次为 default"""
    return (
        getattr(model, "__position_field__", None)
        or default
        or DEFAULT_POSITION_FIELD
    )


def identity_field_of(model: type) -> str:
    return getattr(model, "__identity_field__", None) or DEFAULT_IDENTITY_FIELD


def group_fields_of(model: type) -> list:
    return normalize_fields(getattr(model, "__order_group_by__", None))


@dataclass(frozen=True)
class OrderingGroup:
    """排序分组

    Attributes:
        model: 记录类型
        filters: (字段名, 值) 元组，值为 None 表示匹配 IS NULL
        position_field: 位置字段名
        identity_field: 标识字段名

    使用示例:
        group = OrderingGroup.of(product)
        group = OrderingGroup.for_model(Product, {"category_id": 1})
    """
    model: type
    filters: Tuple[Tuple[str, Any], ...] = ()
    position_field: str = DEFAULT_POSITION_FIELD
    identity_field: str = DEFAULT_IDENTITY_FIELD

    @classmethod
    def of(cls, record: Any, position_field: str = None) -> OrderingGroup:
        """根据记录当前的分组字段值构建分组"""
        model = type(record)
        return cls(
            model=model,
            filters=tuple((name, getattr(record, name)) for name in group_fields_of(model)),
            position_field=position_field_of(model, position_field),
            identity_field=identity_field_of(model),
        )

    @classmethod
    def for_model(
        cls,
        model: type,
        group_filters: Optional[Mapping[str, Any]] = None,
        position_field: str = None
    ) -> OrderingGroup:
        """根据显式分组条件构建分组

        Raises:
            GroupMismatchError: 分组条件的字段与模型声明的分组字段不一致
        """
        fields = group_fields_of(model)
        group_filters = dict(group_filters or {})
        if set(group_filters) != set(fields):
            raise GroupMismatchError(model, fields, sorted(group_filters))
        return cls(
            model=model,
            filters=tuple((name, group_filters[name]) for name in fields),
            position_field=position_field_of(model, position_field),
            identity_field=identity_field_of(model),
        )

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.filters)

    def contains(self, record: Any) -> bool:
        """记录是否属于本分组"""
        if not isinstance(record, self.model):
            return False
        return all(getattr(record, name) == value for name, value in self.filters)

    def clauses(self) -> list:
        """生成 SQLAlchemy 过滤条件列表"""
        result = []
        for name, value in self.filters:
            column = getattr(self.model, name)
            if value is None:
                result.append(column.is_(None))
            else:
                result.append(column == value)
        return result

    def position_of(self, record: Any) -> Optional[int]:
        return getattr(record, self.position_field)

    def identity_of(self, record: Any) -> Any:
        return getattr(record, self.identity_field)

    def __str__(self) -> str:
        if not self.filters:
            return self.model.__name__
        conditions = ", ".join(f"{name}={value!r}" for name, value in self.filters)
        return f"{self.model.__name__}({conditions})"


def _between(value: Any, bounds: Tuple[int, int]) -> Any:
    lower, upper = bounds
    if hasattr(value, "between"):
        return value.between(lower, upper)
    return lower <= value <= upper


_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "eq": operator.eq,
    "lt": operator.lt,
    "le": operator.le,
    "gt": operator.gt,
    "ge": operator.ge,
    "between": _between,
}


@dataclass(frozen=True)
class PositionFilter:
    """位置过滤条件

    op 取值 eq / lt / le / gt / ge / between，between 的 value 为闭区间 (lower, upper)。

    使用示例:
        PositionFilter.le(3).matches(2)           # True
        query.filter(PositionFilter.ge(1).clause(Banner.position))
    """
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in _OPERATORS:
            raise ValueError(f"未知的位置比较操作: {self.op}")

    @classmethod
    def eq(cls, value: int) -> PositionFilter:
        return cls("eq", value)

    @classmethod
    def lt(cls, value: int) -> PositionFilter:
        return cls("lt", value)

    @classmethod
    def le(cls, value: int) -> PositionFilter:
        return cls("le", value)

    @classmethod
    def gt(cls, value: int) -> PositionFilter:
        return cls("gt", value)

    @classmethod
    def ge(cls, value: int) -> PositionFilter:
        return cls("ge", value)

    @classmethod
    def between(cls, lower: int, upper: int) -> PositionFilter:
        return cls("between", (lower, upper))

    def matches(self, position: Optional[int]) -> bool:
        """对内存中的位置值求值（未分配位置的记录永不匹配）"""
        if position is None:
            return False
        return bool(_OPERATORS[self.op](position, self.value))

    def clause(self, column: Any) -> Any:
        """生成 SQLAlchemy 条件表达式"""
        return _OPERATORS[self.op](column, self.value)
