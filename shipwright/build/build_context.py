"""
构建上下文模块

定义打包过程中的共享数据结构，并导出异常类。
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from ..config.schema import AsarOptions, PlatformSpecificBuildOptions
from ..errors import BuildError, ConfigurationError, ExecError, IntegrityError, ToolError
from .core import Arch
from .task_manager import TaskManager

if TYPE_CHECKING:
    from .file_matcher import FileMatcher
    from .platform_packager import PlatformPackager
    from .targets.target import Target

# 进度回调类型
ProgressCallback = Callable[[str, int, int, str], None]

__all__ = [
    "BuildError",
    "ConfigurationError",
    "ExecError",
    "IntegrityError",
    "ToolError",
    "PackContext",
    "PipelineContext",
    "ProgressCallback",
]


@dataclass(frozen=True)
class PackContext:
    """一次 (平台, 架构) 打包的上下文，创建后不再修改，传给所有钩子"""
    app_out_dir: Path
    out_dir: Path
    arch: Arch
    targets: Tuple["Target", ...]
    electron_platform_name: str
    packager: "PlatformPackager"


@dataclass
class PipelineContext:
    """打包流水线的运行状态"""
    pack_context: PackContext
    platform_options: PlatformSpecificBuildOptions
    task_manager: TaskManager
    progress_callback: Optional[ProgressCallback] = None

    # 流水线执行过程中生成的数据
    resources_path: Optional[Path] = None
    asar_options: Optional[AsarOptions] = None
    macro_expander: Optional[Callable[[str], str]] = None
    extra_resource_matchers: Optional[List["FileMatcher"]] = None
    extra_file_matchers: Optional[List["FileMatcher"]] = None
    asar_integrity: Optional[Dict[str, Any]] = None
    cancelled: bool = False

    # 统计信息
    build_stats: Dict[str, Any] = field(default_factory=lambda: {
        'start_time': 0,
        'end_time': 0,
        'app_files': 0,
        'extra_files': 0,
    })

    @property
    def packager(self) -> "PlatformPackager":
        return self.pack_context.packager

    @property
    def app_out_dir(self) -> Path:
        return self.pack_context.app_out_dir

    def report_progress(self, stage: str, percent: int, message: str = "") -> None:
        if self.progress_callback:
            self.progress_callback(stage, percent, 100, message)
