"""仓储注册表

模型名 -> 仓储类的显式映射。启动时构建一次并冻结，之后只读，
由调用方持有并传递，不使用进程级全局缓存。

使用示例:
    from ormkit.config import RepositorySettings
    from ormkit.repository import RepositoryRegistry

    settings = RepositorySettings(mapping={"Banner": "app.repositories.BannerRepository"})
    registry = RepositoryRegistry.from_settings(settings, models=[Banner, Product])

    repo = registry.for_model("Banner")      # BannerRepository
    repo = registry.for_model(Product)       # 通用 Repository(Product)
"""

from __future__ import annotations

import importlib
from typing import Any, Dict, Iterable, Optional, Type, Union

from sqlalchemy.orm import Session

from ormkit.log import get_logger

from .base import Repository
from .exceptions import (
    RegistryFrozenError,
    RepositoryConfigError,
    RepositoryNotFoundError,
)

logger = get_logger("ormkit.repository")


def import_string(path: str) -> Any:
    """按 "package.module.Attr" 形式的路径导入对象

    Raises:
        RepositoryConfigError: 路径格式错误、模块不存在或属性不存在
    """
    module_path, _, attr = path.rpartition(".")
    if not module_path or not attr:
        raise RepositoryConfigError(f"无效的导入路径: '{path}'")
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise RepositoryConfigError(f"无法导入模块 '{module_path}': {e}") from e
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise RepositoryConfigError(f"模块 '{module_path}' 中不存在 '{attr}'") from e


class RepositoryRegistry:
    """仓储注册表

    Args:
        models: 可按名称解析的模型类
    """

    def __init__(self, models: Iterable[type] = ()):
        self._models: Dict[str, type] = {}
        self._repositories: Dict[str, Type[Repository]] = {}
        self._frozen = False
        for model in models:
            self.register_model(model)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, name: str) -> bool:
        return name in self._repositories or name in self._models

    def register_model(self, model: type) -> None:
        self._check_writable(model.__name__)
        self._models[model.__name__] = model

    def register(self, name: str, repository_cls: Type[Repository]) -> None:
        """注册模型名对应的仓储类

        Raises:
            RegistryFrozenError: 注册表已冻结
            RepositoryConfigError: repository_cls 不是 Repository 的子类
        """
        self._check_writable(name)
        if not (isinstance(repository_cls, type) and issubclass(repository_cls, Repository)):
            raise RepositoryConfigError(f"'{name}' 映射的对象不是 Repository 子类: {repository_cls!r}")
        self._repositories[name] = repository_cls
        logger.debug(f"注册仓储: {name} -> {repository_cls.__name__}")

    def freeze(self) -> RepositoryRegistry:
        """冻结注册表，之后不能再注册"""
        self._frozen = True
        return self

    def repository_class(self, name: str) -> Optional[Type[Repository]]:
        return self._repositories.get(name)

    @classmethod
    def from_settings(cls, settings: Any, models: Iterable[type] = ()) -> RepositoryRegistry:
        """根据 RepositorySettings（或包含 repository 的 AppSettings）构建并冻结注册表

        Raises:
            RepositoryConfigError: 映射中的导入路径无法解析
        """
        settings = getattr(settings, "repository", settings)
        registry = cls(models)
        for name, path in settings.mapping.items():
            registry.register(name, import_string(path))
        logger.info(f"仓储注册表构建完成，共 {len(settings.mapping)} 个映射")
        return registry.freeze()

    def for_model(self, model_or_name: Union[type, str], session: Session = None) -> Repository:
        """获取模型的仓储实例

        已注册仓储类时使用之，否则返回通用 Repository。

        Raises:
            RepositoryNotFoundError: 按名称查找时既无模型也无仓储
        """
        if isinstance(model_or_name, str):
            name = model_or_name
            model = self._models.get(name)
            if model is None and name not in self._repositories:
                raise RepositoryNotFoundError(name)
        else:
            model = model_or_name
            name = model.__name__

        repository_cls = self._repositories.get(name, Repository)
        return repository_cls(model, session=session)

    def _check_writable(self, name: str) -> None:
        if self._frozen:
            raise RegistryFrozenError(name)
