"""
路径工具

提供路径处理相关的工具函数。
"""

import os
import re
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Optional, Union


def expand_path(path: Union[str, Path]) -> Path:
    """扩展路径（处理环境变量和用户目录）"""
    if isinstance(path, str):
        path = os.path.expandvars(path)
        path = os.path.expanduser(path)

    return Path(path).resolve()


def ensure_directory(path: Union[str, Path]) -> Path:
    """确保目录存在

    Args:
        path: 目录路径

    Returns:
        Path: 目录路径
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def empty_directory(path: Union[str, Path]) -> Path:
    """清空目录（不存在则创建）"""
    dir_path = Path(path)
    if dir_path.is_dir() and not dir_path.is_symlink():
        shutil.rmtree(dir_path)
    elif dir_path.exists():
        dir_path.unlink()
    dir_path.mkdir(parents=True)
    return dir_path


def get_temp_dir(prefix: str = "shipwright_") -> Path:
    """获取临时目录"""
    return Path(tempfile.mkdtemp(prefix=prefix))


def get_cache_dir() -> Path:
    """获取下载缓存目录

    优先使用 SHIPWRIGHT_CACHE 环境变量，否则按平台惯例选择。
    """
    custom = os.environ.get("SHIPWRIGHT_CACHE")
    if custom:
        return expand_path(custom)

    if os.name == "nt":
        base = os.environ.get("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
        return Path(base) / "shipwright" / "cache"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / "shipwright"
    return Path(os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache") / "shipwright"


def stat_or_none(path: Union[str, Path]) -> Optional[os.stat_result]:
    """获取文件状态，文件不存在时返回 None"""
    try:
        return os.stat(path)
    except FileNotFoundError:
        return None


def unlink_if_exists(path: Union[str, Path]) -> None:
    """删除文件，文件不存在时忽略"""
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def format_size(size_bytes: int) -> str:
    """格式化文件大小

    Args:
        size_bytes: 字节数

    Returns:
        str: 格式化的大小字符串
    """
    if size_bytes == 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB", "TB"]
    unit_index = 0
    size = float(size_bytes)

    while size >= 1024.0 and unit_index < len(units) - 1:
        size /= 1024.0
        unit_index += 1

    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    return f"{size:.1f} {units[unit_index]}"


_ILLEGAL_CHARS = re.compile(r'[/\?<>\\:\*\|"\x00-\x1f\x80-\x9f]')
_RESERVED_NAMES = re.compile(r'^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$', re.IGNORECASE)


def sanitize_file_name(name: str) -> str:
    """把任意名称转换为可用的文件名

    去掉非法字符、Windows 保留名和结尾的点/空格，结果截断到 255 字节。
    """
    result = _ILLEGAL_CHARS.sub("", name)
    if result in (".", ".."):
        result = ""
    if _RESERVED_NAMES.match(result):
        result = ""
    result = result.rstrip(". ")

    encoded = result.encode("utf-8")
    if len(encoded) > 255:
        result = encoded[:255].decode("utf-8", errors="ignore")
    return result
