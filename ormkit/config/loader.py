"""YAML 配置文件

ConfigLoader 读取 YAML 文件为字典并按绝对路径缓存；
load_yaml_config() 在此基础上合并覆盖项并构造 Settings。

使用示例:
    from ormkit.config import AppSettings, load_yaml_config

    settings = load_yaml_config(
        "config/settings.yaml", AppSettings,
        ordering={"transaction_attempts": 3},
    )
"""

from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import yaml


T = TypeVar("T")


class ConfigLoader:
    """YAML 配置读取，结果按绝对路径缓存在类上"""

    _cache: Dict[Path, Dict[str, Any]] = {}

    @staticmethod
    def _resolve(config_path: str, base_dir: Optional[str] = None) -> Path:
        path = Path(config_path)
        if not path.is_absolute() and base_dir:
            path = Path(base_dir) / path
        return path.resolve()

    @classmethod
    def load(
        cls,
        config_path: str,
        base_dir: Optional[str] = None,
        use_cache: bool = True
    ) -> Dict[str, Any]:
        """读取配置文件，空文件返回空字典

        相对路径以 base_dir 为基准，未提供时以当前工作目录为基准。

        Raises:
            FileNotFoundError: 文件不存在
            ValueError: 文件顶层不是映射
            yaml.YAMLError: YAML 语法错误
        """
        path = cls._resolve(config_path, base_dir)
        if use_cache and path in cls._cache:
            return cls._cache[path]
        if not path.is_file():
            raise FileNotFoundError(f"找不到配置文件: {path}")

        config = yaml.safe_load(path.read_text(encoding="utf-8"))
        if config is None:
            config = {}
        elif not isinstance(config, dict):
            raise ValueError(f"{path} 顶层应为映射，实际为 {type(config).__name__}")

        if use_cache:
            cls._cache[path] = config
        return config

    @classmethod
    def reload(cls, config_path: str, base_dir: Optional[str] = None) -> Dict[str, Any]:
        """丢弃缓存后重新读取"""
        cls._cache.pop(cls._resolve(config_path, base_dir), None)
        return cls.load(config_path, base_dir)

    @classmethod
    def clear_cache(cls):
        cls._cache.clear()


def load_yaml_config(
    config_path: str,
    settings_class: Type[T],
    base_dir: Optional[str] = None,
    **overrides
) -> T:
    """读取 YAML 并构造 settings_class 实例

    overrides 按段落合并：ordering={"transaction_attempts": 9} 只替换该键，
    ordering 段的其余键仍取自文件。文件中缺省的段落由 Settings 从环境变量读取。
    """
    config = dict(ConfigLoader.load(config_path, base_dir))
    for section, value in overrides.items():
        current = config.get(section)
        if isinstance(current, dict) and isinstance(value, dict):
            config[section] = {**current, **value}
        else:
            config[section] = value
    return settings_class(**config)
