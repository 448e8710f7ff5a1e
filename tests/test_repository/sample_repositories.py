"""仓储测试用模型与仓储类

registry 测试通过导入路径引用本模块中的仓储类。
"""

from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ormkit.orm import CoreModel, OrderableMixin, PositionFieldMixin
from ormkit.repository import ColumnFinder, Repository


class RepoBanner(CoreModel, PositionFieldMixin, OrderableMixin):
    """参与排序的模型"""
    __tablename__ = "test_repo_banner"
    __table_args__ = {'extend_existing': True}

    title: Mapped[str] = mapped_column(String(100))


class RepoCard(CoreModel, PositionFieldMixin, OrderableMixin):
    """按泳道分组排序的模型"""
    __tablename__ = "test_repo_card"
    __table_args__ = {'extend_existing': True}
    __order_group_by__ = "lane"

    title: Mapped[str] = mapped_column(String(100))
    lane: Mapped[int] = mapped_column(Integer)


class RepoTag(CoreModel):
    """不参与排序的模型"""
    __tablename__ = "test_repo_tag"
    __table_args__ = {'extend_existing': True}

    name: Mapped[str] = mapped_column(String(50))
    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)


class BannerRepository(Repository[RepoBanner]):
    model = RepoBanner

    get_by_title = ColumnFinder("title")
    get_one_by_title = ColumnFinder("title", one=True)


class CardRepository(Repository[RepoCard]):
    model = RepoCard


class TagRepository(Repository[RepoTag]):
    model = RepoTag

    get_by_color = ColumnFinder("color")
    get_by_missing = ColumnFinder("missing")


NOT_A_REPOSITORY = object()
