"""
项目级打包信息

Packager 读取配置和应用元数据，计算各个目录，然后把每个请求的
(平台, 架构) 交给对应的平台打包器。目标格式的构建在所有架构打包完成后统一等待。
"""

import itertools
import os
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union, TYPE_CHECKING

from ..config.loader import ConfigError, load_project_config, read_package_json
from ..config.schema import Configuration, TargetConfig
from ..errors import BuildError, ConfigurationError
from ..utils.lazy import Lazy
from ..utils.logging import debug, info, LogStage
from ..utils.merge import deep_assign
from ..utils.paths import ensure_directory, get_temp_dir
from .app_info import AppInfo
from .build_context import PackContext, ProgressCallback
from .core import Arch, Platform
from .platform_packager import ArtifactCreated, resolve_function
from .task_manager import CancellationToken, TaskManager

if TYPE_CHECKING:
    from .platform_packager import PlatformPackager
    from .targets.target import Target

ArtifactListener = Callable[[ArtifactCreated], None]


@dataclass
class PackagerOptions:
    """打包选项

    targets 为空时打包当前平台的默认架构；架构对应的目标列表为空时使用配置中的目标。
    """
    project_dir: Union[str, Path]
    config: Union[Configuration, str, Path, None] = None
    targets: Dict[Platform, Dict[Arch, List[str]]] = field(default_factory=dict)
    prepackaged: Optional[Union[str, Path]] = None


class Packager:
    """项目级打包信息，所有平台打包器共享"""

    def __init__(
        self,
        options: PackagerOptions,
        cancellation_token: Optional[CancellationToken] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.options = options
        self.cancellation_token = cancellation_token or CancellationToken()
        self.progress_callback = progress_callback
        self.project_dir = Path(options.project_dir).resolve()

        if isinstance(options.config, Configuration):
            self.config = options.config
        else:
            self.config = load_project_config(self.project_dir, options.config)

        directories = self.config.directories
        self.app_dir = self._compute_app_dir()
        self.build_resources_dir = self.project_dir / directories.build_resources
        self.output_dir = self.project_dir / directories.output
        self.is_prepacked_app_asar = (self.app_dir / "app.asar").is_file()

        self.metadata = self._read_metadata()
        build_number = os.environ.get("BUILD_NUMBER") or None
        self.app_info = AppInfo.from_metadata(self.metadata, self.config, build_number)

        self._after_pack = resolve_function(self.config.after_pack, self.project_dir)
        self._after_sign = resolve_function(self.config.after_sign, self.project_dir)

        self.artifacts: List[ArtifactCreated] = []
        self._listeners: List[ArtifactListener] = []
        self._artifact_lock = threading.Lock()

        self._temp_dir: Lazy[Path] = Lazy(lambda: get_temp_dir("shipwright_build_"))
        self._temp_counter = itertools.count()

    def _compute_app_dir(self) -> Path:
        configured = self.config.directories.app
        if configured:
            return (self.project_dir / configured).resolve()
        candidate = self.project_dir / "app"
        if (candidate / "package.json").is_file():
            return candidate
        return self.project_dir

    def _read_metadata(self) -> Dict[str, Any]:
        """应用的 package.json，合并 extraMetadata

        Raises:
            ConfigurationError: package.json 不存在或无法解析
        """
        package_json = self.app_dir / "package.json"
        if self.is_prepacked_app_asar and not package_json.is_file():
            package_json = self.project_dir / "package.json"
        try:
            metadata = read_package_json(package_json)
        except ConfigError as e:
            raise ConfigurationError(str(e)) from e

        if self.config.extra_metadata:
            deep_assign(metadata, self.config.extra_metadata)
        return metadata

    @property
    def temp_dir(self) -> Path:
        return self._temp_dir.value

    def get_temp_file(self, suffix: str = "") -> Path:
        """临时文件路径（不创建文件），cleanup 时统一删除"""
        return self.temp_dir / f"t-{os.getpid()}-{next(self._temp_counter)}{suffix}"

    def cleanup(self) -> None:
        if self._temp_dir.has_value:
            shutil.rmtree(self._temp_dir.value, ignore_errors=True)
            self._temp_dir.reset()

    # ------------------------------------------------------------------
    # 钩子与事件
    # ------------------------------------------------------------------

    def after_pack(self, context: PackContext) -> bool:
        return self._run_hook("afterPack", self._after_pack, context)

    def after_sign(self, context: PackContext) -> bool:
        return self._run_hook("afterSign", self._after_sign, context)

    def _run_hook(self, name: str, hook: Optional[Callable], context: PackContext) -> bool:
        """执行钩子，返回是否执行了钩子

        Raises:
            BuildError: 钩子抛出异常
        """
        if hook is None:
            return False
        debug(f"执行 {name} 钩子: {getattr(hook, '__name__', hook)}", stage=LogStage.HOOK)
        try:
            hook(context)
        except BuildError:
            raise
        except Exception as e:
            raise BuildError(f"{name} 钩子执行失败: {e}") from e
        return True

    def on_artifact_created(self, listener: ArtifactListener) -> None:
        with self._artifact_lock:
            self._listeners.append(listener)

    def dispatch_artifact_created(self, event: ArtifactCreated) -> None:
        with self._artifact_lock:
            self.artifacts.append(event)
            listeners = list(self._listeners)
        info(f"生成产物: {event.file}", stage=LogStage.TARGET)
        for listener in listeners:
            listener(event)

    # ------------------------------------------------------------------
    # 构建
    # ------------------------------------------------------------------

    def resolve_target_names(self, packager: "PlatformPackager", arch: Arch, requested: Sequence[str]) -> List[str]:
        """目标名称：命令行 -> 平台配置 -> 顶层配置 -> 平台默认值"""
        if requested:
            return list(requested)

        configured = packager.platform_specific_build_options.target or self.config.target
        names: List[str] = []
        for item in configured or []:
            if isinstance(item, TargetConfig):
                if item.arch is None or arch.name in item.arch:
                    names.append(item.target)
            else:
                names.append(item)
        return names or list(packager.default_target)

    def build(self) -> List[ArtifactCreated]:
        """打包所有请求的平台和架构，返回生成的产物"""
        # 避免循环导入
        from .packagers import create_platform_packager

        requested = self.options.targets or {Platform.current(): {}}
        ensure_directory(self.output_dir)
        all_targets: List["Target"] = []

        with TaskManager(self.cancellation_token) as task_manager:
            for platform, arch_to_names in requested.items():
                if self.cancellation_token.cancelled:
                    break
                platform_packager = create_platform_packager(self, platform)
                for arch, names in (arch_to_names or {Arch.default(): []}).items():
                    if self.cancellation_token.cancelled:
                        break
                    target_names = self.resolve_target_names(platform_packager, arch, names)
                    info(f"打包 {platform.display_name} {arch.name}: {', '.join(target_names)}", stage=LogStage.INIT)
                    targets = platform_packager.create_targets(target_names, self.output_dir)
                    platform_packager.pack(self.output_dir, arch, targets, task_manager)
                    all_targets.extend(targets)

            task_manager.await_tasks()

        if not self.cancellation_token.cancelled:
            for target in all_targets:
                target.finish_build()
        return list(self.artifacts)
