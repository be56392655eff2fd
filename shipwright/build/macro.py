"""
宏展开与产物命名

处理产物名称/路径模式中的 ${token} 占位符，以及各输出格式的架构分类名。
"""

import os
import re
from typing import Any, Mapping, Optional

from ..errors import ConfigurationError
from .app_info import AppInfo
from .core import Arch, Platform

MACRO_RE = re.compile(r'\$\{([_a-zA-Z./*]+)\}')
SAFE_NAME_RE = re.compile(r'[0-9A-Za-z._-]+')

DEFAULT_ARTIFACT_NAME = "${productName}-${version}-${arch}.${ext}"
SAFE_ARTIFACT_NAME = "${name}-${version}-${arch}.${ext}"

# 未指定架构时需要去掉的分隔符形式
_ARCH_SEPARATORS = ("-${arch}", " ${arch}", "_${arch}", "/${arch}")


def expand_macro(
    pattern: str,
    arch: Optional[str],
    app_info: AppInfo,
    platform: Platform,
    extra: Optional[Mapping[str, Any]] = None,
    is_product_name_sanitized: bool = True,
) -> str:
    """展开模式中的宏

    Args:
        pattern: 包含 ${token} 的模式
        arch: 架构显示名，None 表示不带架构（同时去掉架构前的分隔符）
        app_info: 应用信息
        platform: 目标平台，用于 ${os}
        extra: 调用方提供的额外字段，例如 ext
        is_product_name_sanitized: ${productName} 是否使用清理后的文件名

    Raises:
        ConfigurationError: 环境变量未定义或宏无法识别
    """
    extra = extra or {}
    original_pattern = pattern
    if arch is None:
        for separator in _ARCH_SEPARATORS:
            pattern = pattern.replace(separator, "", 1)

    def replace(match: "re.Match[str]") -> str:
        token = match.group(1)
        if token == "productName":
            return app_info.product_filename if is_product_name_sanitized else app_info.product_name
        if token == "arch":
            return "" if arch is None else arch
        if token == "os":
            return platform.build_configuration_key
        if token == "channel":
            return app_info.channel or "latest"

        value = app_info.get_field(token)
        if value is not None:
            return value

        if token.startswith("env."):
            env_name = token[len("env."):]
            env_value = os.environ.get(env_name)
            if env_value is None:
                raise ConfigurationError(
                    f'无法展开模式 "{original_pattern}": 环境变量 {env_name} 未定义',
                    "ERR_ENV_NOT_DEFINED",
                )
            return env_value

        value = extra.get(token)
        if value is None:
            raise ConfigurationError(
                f'无法展开模式 "{original_pattern}": 宏 {token} 未定义',
                "ERR_MACRO_NOT_DEFINED",
            )
        return str(value)

    return MACRO_RE.sub(replace, pattern)


def is_safe_github_name(name: str) -> bool:
    """名称是否只包含 [0-9A-Za-z._-]"""
    return SAFE_NAME_RE.fullmatch(name) is not None


def normalize_ext(ext: str) -> str:
    """去掉扩展名前的点"""
    return ext[1:] if ext.startswith(".") else ext


def arch_classifier(arch: Arch, ext: Optional[str]) -> str:
    """各输出格式使用的架构名

    x64: AppImage/rpm -> x86_64，deb -> amd64
    ia32: deb/AppImage -> i386，pacman/rpm -> i686
    其他组合使用架构名本身。
    """
    if arch is Arch.x64:
        if ext in ("AppImage", "rpm"):
            return "x86_64"
        if ext == "deb":
            return "amd64"
    elif arch is Arch.ia32:
        if ext in ("deb", "AppImage"):
            return "i386"
        if ext in ("pacman", "rpm"):
            return "i686"
    return arch.name


def compute_artifact_name(
    pattern: str,
    ext: str,
    arch: Optional[Arch],
    app_info: AppInfo,
    platform: Platform,
) -> str:
    """按模式计算产物名称，macOS 的产物名称中从不包含架构"""
    arch_name = None if arch is None else arch_classifier(arch, ext)
    return expand_macro(pattern, None if platform is Platform.MAC else arch_name, app_info, platform, {"ext": ext})


def generate_name2(app_info: AppInfo, ext: Optional[str], classifier: Optional[str], deployment: bool) -> str:
    """<名称><分隔符><版本>[<分隔符><分类名>][.<扩展名>]

    deb 使用 "_" 作为分隔符，其他格式使用 "-"。
    deployment 为真时使用内部名称，否则使用产品文件名。
    """
    dot_ext = "" if ext is None else f".{ext}"
    separator = "_" if ext == "deb" else "-"
    base = app_info.name if deployment else app_info.product_filename
    suffix = "" if classifier is None else f"{separator}{classifier}"
    return f"{base}{separator}{app_info.version}{suffix}{dot_ext}"


def generate_name(
    app_info: AppInfo,
    ext: Optional[str],
    arch: Arch,
    deployment: bool,
    classifier: Optional[str] = None,
    skip_arch_if_x64: bool = False,
) -> str:
    """生成带架构分类名的产物名称，pacman 的扩展名固定为 pkg.tar.xz"""
    arch_name: Optional[str] = arch_classifier(arch, ext)
    if skip_arch_if_x64 and arch is Arch.x64:
        arch_name = None

    if arch_name is None:
        arch_name = classifier
    elif classifier is not None:
        arch_name = f"{arch_name}-{classifier}"

    if ext == "pacman":
        ext = "pkg.tar.xz"
    return generate_name2(app_info, ext, arch_name, deployment)
