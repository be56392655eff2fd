"""版本号比较工具"""

import re
from typing import Optional, Tuple

_SEMVER_RE = re.compile(r'^(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$')


def version_key(version: str) -> Optional[Tuple[int, int, int, bool, str]]:
    """把 x.y.z[-pre] 版本号转换为可比较的元组，格式不正确时返回 None

    正式版排在同号预发布版之后。
    """
    match = _SEMVER_RE.match(version.strip())
    if not match:
        return None
    major, minor, patch, prerelease = match.groups()
    return (int(major), int(minor), int(patch), prerelease is None, prerelease or "")


def coerce_version(version: str) -> str:
    """把 "10.13" 之类的短版本号补齐为 x.y.z"""
    parts = version.strip().split(".")
    while len(parts) < 3:
        parts.append("0")
    return ".".join(parts[:3])


def version_gte(version: str, minimum: str) -> bool:
    """version >= minimum"""
    left = version_key(version)
    right = version_key(minimum)
    if left is None:
        raise ValueError(f"无效的版本号: {version}")
    if right is None:
        raise ValueError(f"无效的版本号: {minimum}")
    return left >= right


def version_lt(version: str, minimum: str) -> bool:
    """version < minimum"""
    return not version_gte(version, minimum)
