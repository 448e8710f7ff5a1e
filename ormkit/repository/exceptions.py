"""仓储异常定义

提供仓储层及仓储注册表相关的异常类。
"""

from typing import Any, List


class RepositoryError(Exception):
    """仓储基础异常"""
    pass


class UnknownColumnError(RepositoryError):
    """模型不存在指定的列

    Attributes:
        model: 模型类
        columns: 不存在的列名列表
    """

    def __init__(self, model: Any, columns: List[str]):
        self.model = model
        self.columns = columns
        super().__init__(
            f"{getattr(model, '__name__', model)} has no column(s): {', '.join(columns)}"
        )


class RepositoryNotFoundError(RepositoryError):
    """注册表中找不到模型名对应的模型或仓储"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No model or repository registered for '{name}'")


class RepositoryConfigError(RepositoryError):
    """仓储配置错误（如映射中的导入路径无法解析）"""
    pass


class RegistryFrozenError(RepositoryError):
    """注册表已冻结后仍尝试注册"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Registry is frozen, cannot register '{name}'")
