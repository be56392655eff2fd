"""
运行时解压

把 Electron 运行时放到应用输出目录：
- electronDist 是目录时直接复制
- electronDist 是 zip 时解压
- 否则使用缓存的 electron-v{版本}-{平台}-{架构}.zip，缺失时从镜像下载
"""

import os
import shutil
import stat
import zipfile
from pathlib import Path
from typing import Union, TYPE_CHECKING

from ..errors import ConfigurationError
from ..utils.download import download_file
from ..utils.logging import debug, info, LogStage
from ..utils.paths import empty_directory, ensure_directory, expand_path, get_cache_dir
from .core import Arch

if TYPE_CHECKING:
    from .platform_packager import PlatformPackager


def get_runtime_zip_name(version: str, platform_name: str, arch: Arch) -> str:
    return f"electron-v{version}-{platform_name}-{arch.name}.zip"


def extract_zip(archive: Union[str, Path], destination: Union[str, Path]) -> None:
    """解压 zip，保留可执行权限

    Raises:
        ConfigurationError: 压缩包中包含指向目标目录之外的路径
    """
    destination = Path(destination).resolve()
    with zipfile.ZipFile(archive) as zf:
        for member in zf.infolist():
            target = (destination / member.filename).resolve()
            if destination != target and destination not in target.parents:
                raise ConfigurationError(f"压缩包中包含非法路径: {member.filename}")

            zf.extract(member, destination)
            mode = member.external_attr >> 16
            if mode and not member.is_dir() and not stat.S_ISLNK(mode):
                os.chmod(target, stat.S_IMODE(mode))


def get_runtime_archive(packager: "PlatformPackager", platform_name: str, arch: Arch) -> Path:
    """获取运行时压缩包，缓存中没有时下载"""
    config = packager.config
    version = config.electron_version
    if not version:
        raise ConfigurationError("未配置 electronVersion，也没有指定 electronDist")

    zip_name = get_runtime_zip_name(version, platform_name, arch)
    cache_dir = expand_path(config.electron_download.cache) if config.electron_download.cache else get_cache_dir() / "electron"
    cached = cache_dir / zip_name
    if cached.is_file():
        debug(f"使用缓存的运行时: {cached}", stage=LogStage.UNPACK)
        return cached

    mirror = config.electron_download.mirror
    if not mirror.endswith("/"):
        mirror += "/"
    return download_file(f"{mirror}v{version}/{zip_name}", ensure_directory(cache_dir) / zip_name)


def unpack_runtime(packager: "PlatformPackager", app_out_dir: Path, platform_name: str, arch: Arch) -> None:
    """把运行时放到 app_out_dir（先清空目录）

    Raises:
        ConfigurationError: electronDist 不存在或未配置 electronVersion
    """
    dist = packager.config.electron_dist
    empty_directory(app_out_dir)

    if dist:
        source = (packager.project_dir / dist).resolve()
        if source.is_dir():
            info(f"复制运行时: {source}", stage=LogStage.UNPACK)
            shutil.copytree(source, app_out_dir, symlinks=True, dirs_exist_ok=True)
            return
        if source.is_file() and zipfile.is_zipfile(source):
            info(f"解压运行时: {source}", stage=LogStage.UNPACK)
            extract_zip(source, app_out_dir)
            return
        raise ConfigurationError(f"electronDist 不存在或不是目录/zip 文件: {source}")

    archive = get_runtime_archive(packager, platform_name, arch)
    info(f"解压运行时: {archive.name}", stage=LogStage.UNPACK)
    extract_zip(archive, app_out_dir)
