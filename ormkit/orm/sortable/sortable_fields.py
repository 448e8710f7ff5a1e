"""排序字段定义

提供标准的位置字段定义 Mixin，简化模型定义。

使用示例:
    from ormkit.orm import CoreModel
    from ormkit.orm.sortable import PositionFieldMixin, OrderableMixin

    class Banner(CoreModel, PositionFieldMixin, OrderableMixin):
        title: Mapped[str] = mapped_column(String(100))
        # position 字段由 PositionFieldMixin 自动提供
"""

from typing import Optional

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column


class PositionFieldMixin:
    """位置字段 Mixin

    提供标准的 position 字段定义。

    字段说明:
        - position: 组内从 0 开始的位置，值越小越靠前；
          插入前为 NULL，由 OrderableMixin 在 flush 时追加到组尾
    """

    position: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        index=True,
        comment="组内位置（从0开始）"
    )


__all__ = [
    "PositionFieldMixin",
]
