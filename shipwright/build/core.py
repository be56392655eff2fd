"""
核心枚举

架构（Arch）和目标平台（Platform）。
"""

import platform
import sys
from enum import Enum
from typing import Literal, Optional

from ..errors import ConfigurationError

CompressionLevel = Literal["store", "normal", "maximum"]


class Arch(Enum):
    """目标架构"""
    ia32 = 0
    x64 = 1
    armv7l = 2
    arm64 = 3

    @classmethod
    def from_name(cls, name: str) -> "Arch":
        """按名称获取架构

        Raises:
            ConfigurationError: 未知的架构名称
        """
        try:
            return cls[name]
        except KeyError:
            raise ConfigurationError(f"不支持的架构: {name}") from None

    @classmethod
    def default(cls, machine: Optional[str] = None) -> "Arch":
        """当前主机的架构，无法识别时为 x64"""
        machine = (machine or platform.machine()).lower()
        if machine in ("arm64", "aarch64"):
            return cls.arm64
        if machine.startswith("armv7"):
            return cls.armv7l
        if machine in ("i386", "i686", "x86"):
            return cls.ia32
        return cls.x64


def get_arch_suffix(arch: Arch) -> str:
    """目录/文件名中的架构后缀，x64 为空"""
    return "" if arch is Arch.x64 else f"-{arch.name}"


class Platform(Enum):
    """目标平台

    值为 (配置键, Node 平台名, 显示名)。
    """
    MAC = ("mac", "darwin", "macOS")
    LINUX = ("linux", "linux", "Linux")
    WINDOWS = ("win", "win32", "Windows")

    @property
    def build_configuration_key(self) -> str:
        return self.value[0]

    @property
    def node_name(self) -> str:
        return self.value[1]

    @property
    def display_name(self) -> str:
        return self.value[2]

    def __str__(self) -> str:
        return self.display_name

    @classmethod
    def from_string(cls, name: str) -> "Platform":
        """从配置键、Node 平台名或别名（osx/macos/windows）解析平台"""
        normalized = name.strip().lower()
        aliases = {"osx": cls.MAC, "macos": cls.MAC, "windows": cls.WINDOWS}
        if normalized in aliases:
            return aliases[normalized]
        for platform in cls:
            if normalized in (platform.build_configuration_key, platform.node_name):
                return platform
        raise ConfigurationError(f"未知的平台: {name}")

    @classmethod
    def current(cls, node_platform: Optional[str] = None) -> "Platform":
        """当前主机平台"""
        current = node_platform or sys.platform
        if current == "darwin":
            return cls.MAC
        if current == "win32":
            return cls.WINDOWS
        return cls.LINUX
