"""各平台的打包器"""

from typing import TYPE_CHECKING

from ..core import Platform
from ..platform_packager import PlatformPackager
from .linux import LinuxPackager
from .mac import MacPackager
from .win import WinPackager

if TYPE_CHECKING:
    from ..packager import Packager


def create_platform_packager(packager: "Packager", platform: Platform) -> PlatformPackager:
    """按平台创建打包器"""
    if platform is Platform.MAC:
        return MacPackager(packager)
    if platform is Platform.WINDOWS:
        return WinPackager(packager)
    return LinuxPackager(packager)


__all__ = [
    "LinuxPackager",
    "MacPackager",
    "WinPackager",
    "create_platform_packager",
]
