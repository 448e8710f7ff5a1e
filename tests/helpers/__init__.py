"""测试辅助工具"""

from .transaction_helpers import bind_transaction_manager
from .ordering_helpers import Card, Plain, make_board, positions_by_title

__all__ = [
    "bind_transaction_manager",
    "Card",
    "Plain",
    "make_board",
    "positions_by_title",
]
