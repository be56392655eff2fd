"""
Wine 兼容层

在非 Windows 主机上通过 wine 运行 Windows 构建工具（rcedit 等）。
wine 的路径和环境变量在进程内只解析一次：
- USE_SYSTEM_WINE 为真时直接使用系统 wine
- macOS 上按系统版本选择固定版本的 wine 包，下载、校验并缓存
- 其他情况使用系统 wine，首次使用前检查版本
"""

import os
import platform
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union

from ..errors import ConfigurationError, ToolError
from .download import download_file
from .lazy import Lazy
from .logging import debug, info, LogStage
from .paths import get_cache_dir, ensure_directory
from .process import exec_command, compute_env, is_env_true, merge_env
from .versions import coerce_version, version_gte, version_lt

MIN_WINE_VERSION = "1.8.0"

# 默认超时 2 分钟
DEFAULT_EXEC_TIMEOUT = 120

BINARIES_MIRROR = "https://github.com/electron-userland/electron-builder-binaries/releases/download/"

# macOS 上使用的预编译 wine 包: (最低系统版本, 包版本, sha512)
MAC_WINE_BUILDS = [
    ("10.13.0", "3.0.3-mac-10.13",
     "qvnvKz8CZtUtlJ9cR1zIMTYfhQ3f1atDp1ngMcfHFP5O2/Xjnngb2uR6a/xzm6glKmuIMXG3ni2D6xu0gYFrnQ=="),
    ("10.12.0", "2.0.1-mac-10.12",
     "IvKwDml/Ob0vKfYVxcu92wxUzHu8lTQSjjb8OlCTQ6bdNpVkqw17OM14TPpzGMIgSxfVIrQZhZdCwpkxLyG3mg=="),
]

MAC64_WINE_BUILD = (
    "3.0.3-mac64-10.13",
    "R1K6y2A4dMyveWSyRcNaWYNEBCRvk8AF8lEJ4MBrig/myLnHzKFJCQ73mIztisdam3CPreplXNP0/5iGf4134g==",
)


@dataclass(frozen=True)
class ToolInfo:
    """解析后的工具路径和需要叠加的环境变量"""
    path: str
    env: Optional[Dict[str, str]] = None


def get_macos_version() -> str:
    """当前 macOS 版本（x.y.z）"""
    return coerce_version(platform.mac_ver()[0] or "0.0.0")


def get_bin_from_github(name: str, version: str, checksum: str) -> Path:
    """下载并解压 electron-builder-binaries 中的工具包，返回解压目录

    解压结果缓存在 <cache>/<name>/<name>-<version>，已存在时直接返回。
    """
    dir_name = f"{name}-{version}"
    cache_dir = get_cache_dir() / name
    target_dir = cache_dir / dir_name
    if target_dir.is_dir():
        debug(f"使用缓存: {target_dir}", stage=LogStage.WINE)
        return target_dir

    archive = download_file(f"{BINARIES_MIRROR}{dir_name}/{dir_name}.7z", cache_dir / f"{dir_name}.7z", checksum)

    temp_dir = ensure_directory(cache_dir / f".{dir_name}.extract")
    try:
        exec_command(os.environ.get("SZA_PATH", "7za"), ["x", "-bd", "-y", f"-o{temp_dir}", str(archive)])
        temp_dir.rename(target_dir)
    finally:
        if temp_dir.exists():
            shutil.rmtree(temp_dir, ignore_errors=True)
        archive.unlink(missing_ok=True)

    return target_dir


def _bundled_wine(wine_dir: Path) -> ToolInfo:
    env = dict(os.environ)
    env.update({
        "WINEDEBUG": "-all,err+all",
        "WINEDLLOVERRIDES": "winemenubuilder.exe=d",
        "WINEPREFIX": str(wine_dir / "wine-home"),
        "DYLD_FALLBACK_LIBRARY_PATH": compute_env(os.environ.get("DYLD_FALLBACK_LIBRARY_PATH"), [str(wine_dir / "lib")]),
    })
    return ToolInfo(path=str(wine_dir / "bin" / "wine"), env=env)


def _system_wine() -> ToolInfo:
    check_wine_version(lambda: exec_command("wine", ["--version"]))
    return ToolInfo(path="wine")


def _resolve_wine() -> ToolInfo:
    if is_env_true(os.environ.get("USE_SYSTEM_WINE")):
        debug("强制使用系统 wine", stage=LogStage.WINE)
        return ToolInfo(path="wine")

    if sys.platform == "darwin":
        os_version = get_macos_version()
        for min_os_version, version, checksum in MAC_WINE_BUILDS:
            # travis 上总是使用较新的系统
            if version_gte(os_version, min_os_version) or (
                    min_os_version == "10.12.0" and os.environ.get("TRAVIS_OS_NAME") == "osx"):
                return _bundled_wine(get_bin_from_github("wine", version, checksum))

    return _system_wine()


def _resolve_wine_mac64() -> ToolInfo:
    if is_env_true(os.environ.get("USE_SYSTEM_WINE")):
        debug("强制使用系统 wine", stage=LogStage.WINE)
        return ToolInfo(path="wine")

    if sys.platform == "darwin":
        version, checksum = MAC64_WINE_BUILD
        return _bundled_wine(get_bin_from_github("wine", version, checksum))

    return _system_wine()


wine_executable: Lazy[ToolInfo] = Lazy(_resolve_wine)
wine_executable_mac64: Lazy[ToolInfo] = Lazy(_resolve_wine_mac64)


def exec_wine(
    file: Union[str, Path],
    args: Sequence[str] = (),
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
    use_wine64: bool = False,
) -> str:
    """执行 Windows 程序，非 Windows 主机上通过 wine 执行

    调用方的环境变量与 wine 需要的环境变量冲突时以 wine 的为准。
    """
    if timeout is None:
        timeout = DEFAULT_EXEC_TIMEOUT

    if sys.platform == "win32":
        return exec_command(file, args, env=env, cwd=cwd, timeout=timeout)

    lazy = wine_executable_mac64 if use_wine64 and sys.platform == "darwin" else wine_executable
    wine = lazy.value
    effective_env = merge_env(env, wine.env) if wine.env is not None else env
    return exec_command(wine.path, [str(file), *args], env=effective_env, cwd=cwd, timeout=timeout)


def exec_wine64(
    file: Union[str, Path],
    args: Sequence[str] = (),
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
) -> str:
    return exec_wine(file, args, env=env, cwd=cwd, timeout=timeout, use_wine64=True)


def prepare_windows_executable_args(args: List[str], exe_path: str) -> List[str]:
    """非 Windows 主机上把可执行文件作为第一个参数（交给 wine 执行）"""
    if sys.platform != "win32":
        args.insert(0, exe_path)
    return args


def _wine_error(prefix: str) -> str:
    anchor = "linux" if sys.platform.startswith("linux") else "macos"
    return f"{prefix}，参见 https://electron.build/multi-platform-build#{anchor}"


def normalize_wine_version(raw: str) -> str:
    """规范化 `wine --version` 的输出

    "wine-3.0.3 (Some-build)" -> "3.0.3"，"1.8" -> "1.8.0"
    """
    version = raw.strip()
    if version.startswith("wine-"):
        version = version[len("wine-"):]

    space_index = version.find(" ")
    if space_index > 0:
        version = version[:space_index]

    suffix_index = version.find("-")
    if suffix_index > 0:
        version = version[:suffix_index]

    if len(version.split(".")) == 2:
        version += ".0"
    return version


def check_wine_version(check: Callable[[], str]) -> None:
    """检查 wine 版本

    Args:
        check: 返回 `wine --version` 输出的函数

    Raises:
        ConfigurationError: 找不到 wine 或版本过低
        ToolError: 无法获取版本
    """
    try:
        raw_version = check()
    except FileNotFoundError as e:
        raise ConfigurationError(_wine_error("需要安装 wine")) from e
    except (OSError, ToolError) as e:
        raise ToolError(f"无法检查 wine 版本: {e}") from e

    wine_version = normalize_wine_version(raw_version)
    try:
        too_old = version_lt(wine_version, MIN_WINE_VERSION)
    except ValueError as e:
        raise ToolError(f"无法识别的 wine 版本: {raw_version.strip()}") from e

    if too_old:
        raise ConfigurationError(_wine_error(f"需要 wine 1.8 及以上版本，当前版本为 {wine_version}"))

    info(f"wine 版本: {wine_version}", stage=LogStage.WINE)
