"""配置和 Schema 模块

提供打包配置的加载和验证功能。
"""

from .schema import (
    AsarOptions,
    Configuration,
    FileAssociation,
    FileSetModel,
    PlatformSpecificBuildOptions,
    TargetConfig,
)
from .loader import (
    ConfigLoader,
    ConfigValidationError,
    ConfigError,
    load_config,
    load_project_config,
    read_package_json,
    validate_config,
    config_loader,
)

__all__ = [
    # 配置模型
    "AsarOptions",
    "Configuration",
    "FileAssociation",
    "FileSetModel",
    "PlatformSpecificBuildOptions",
    "TargetConfig",
    "ConfigLoader",

    # 异常类
    "ConfigError",
    "ConfigValidationError",

    # 便捷函数
    "load_config",
    "load_project_config",
    "read_package_json",
    "validate_config",

    # 单例
    "config_loader",
]
