"""仓储模块

- Repository: 通用仓储（增删查、按列查找、事务辅助）
- ColumnFinder: 声明式按列查找方法
- RepositoryRegistry: 模型名 -> 仓储类的显式注册表
"""

from .exceptions import (
    RepositoryError,
    UnknownColumnError,
    RepositoryNotFoundError,
    RepositoryConfigError,
    RegistryFrozenError,
)
from .base import Repository, ColumnFinder
from .registry import RepositoryRegistry, import_string

__all__ = [
    "RepositoryError",
    "UnknownColumnError",
    "RepositoryNotFoundError",
    "RepositoryConfigError",
    "RegistryFrozenError",
    "Repository",
    "ColumnFinder",
    "RepositoryRegistry",
    "import_string",
]
