"""通用工具模块"""

from .logging import (
    configure_logging,
    LogStage,
    OutputLevel,
)

from .paths import (
    expand_path,
    ensure_directory,
    empty_directory,
    get_temp_dir,
    get_cache_dir,
    stat_or_none,
    unlink_if_exists,
    format_size,
    sanitize_file_name,
)

from .merge import deep_assign

__all__ = [
    # 日志相关
    "configure_logging",
    "LogStage",
    "OutputLevel",

    # 路径相关
    "expand_path",
    "ensure_directory",
    "empty_directory",
    "get_temp_dir",
    "get_cache_dir",
    "stat_or_none",
    "unlink_if_exists",
    "format_size",
    "sanitize_file_name",

    # 配置合并
    "deep_assign",
]
