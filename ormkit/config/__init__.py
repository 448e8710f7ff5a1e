"""配置模块

提供配置管理功能：
- AppSettings: 应用基础配置，支持 YAML + 环境变量
- 子配置类: DatabaseSettings, LoggingSettings, OrderingSettings, RepositorySettings
- ConfigLoader: YAML 配置加载器

配置来源: YAML 文件中出现的段落直接使用；未出现的子配置从各自的环境变量前缀读取，再回退到默认值
"""

from .settings import (
    AppSettings,
    DatabaseSettings,
    LoggingSettings,
    OrderingSettings,
    RepositorySettings,
)

from .loader import (
    ConfigLoader,
    load_yaml_config,
)

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "OrderingSettings",
    "RepositorySettings",
    "ConfigLoader",
    "load_yaml_config",
]
