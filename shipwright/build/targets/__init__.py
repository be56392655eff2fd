"""目标格式与分发"""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Sequence, TYPE_CHECKING

from ...errors import ConfigurationError
from ...utils.logging import debug, LogStage
from ..core import Arch
from .archive import ARCHIVE_FORMATS, ArchiveTarget
from .target import DirTarget, Target

if TYPE_CHECKING:
    from ..platform_packager import PlatformPackager


def create_common_target(name: str, out_dir: Path, packager: "PlatformPackager") -> Target:
    """创建各平台通用的目标格式

    Raises:
        ConfigurationError: 未知的目标格式
    """
    if name == "dir":
        return DirTarget(out_dir)
    if name in ARCHIVE_FORMATS:
        return ArchiveTarget(name, out_dir, packager)
    raise ConfigurationError(f"未知的目标格式: {name}")


def dispatch_targets(targets: Sequence[Target], app_out_dir: Path, arch: Arch) -> None:
    """构建同一架构的所有目标

    先并行构建支持并发的目标，全部完成后再按声明顺序逐个构建其余目标。
    """
    parallel = [target for target in targets if target.is_async_supported]
    sequential = [target for target in targets if not target.is_async_supported]

    if parallel:
        debug(f"并行构建: {parallel}", stage=LogStage.TARGET)
        with ThreadPoolExecutor(max_workers=len(parallel), thread_name_prefix="target") as executor:
            futures = [executor.submit(target.build, app_out_dir, arch) for target in parallel]
        for future in futures:
            future.result()

    for target in sequential:
        debug(f"顺序构建: {target}", stage=LogStage.TARGET)
        target.build(app_out_dir, arch)


__all__ = [
    "ArchiveTarget",
    "DirTarget",
    "Target",
    "create_common_target",
    "dispatch_targets",
]
