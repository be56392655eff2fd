"""
平台打包器

PlatformPackager 负责一个平台的完整打包流程，平台差异（目标格式、签名、
图标、应用信息调整）由 packagers/ 中的子类在扩展点上实现。
"""

import importlib
import importlib.util
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union, TYPE_CHECKING

from ..config.schema import (
    AsarOptions,
    Configuration,
    FileAssociation,
    PlatformSpecificBuildOptions,
)
from ..errors import ConfigurationError, IntegrityError
from ..utils.lazy import Lazy
from ..utils.logging import debug, info, warning, LogStage
from ..utils.merge import deep_assign
from ..utils.paths import stat_or_none, unlink_if_exists
from .app_info import AppInfo
from .asar import AsarPackager, check_file_in_archive
from .build_context import PackContext, PipelineContext
from .copier import copy_file_set, create_transformer
from .core import Arch, CompressionLevel, Platform, get_arch_suffix
from .file_matcher import FileMatcher, GlobPattern, get_file_matchers, get_main_file_matchers
from .file_set import compute_file_sets
from .icon import IconFormat, IconInfo, get_or_convert_icon, resolve_icon
from .macro import (
    DEFAULT_ARTIFACT_NAME,
    SAFE_ARTIFACT_NAME,
    compute_artifact_name,
    expand_macro,
    generate_name,
    generate_name2,
    is_safe_github_name,
)
from .task_manager import TaskManager, best_effort

if TYPE_CHECKING:
    from .packager import Packager
    from .targets.target import Target


@dataclass(frozen=True)
class ArtifactCreated:
    """产物生成事件"""
    file: Path
    target: Optional["Target"]
    arch: Optional[Arch]
    safe_artifact_name: Optional[str]
    packager: "PlatformPackager"


class PlatformPackager(ABC):
    """平台打包器基类"""

    def __init__(self, info: "Packager", platform: Platform):
        self.info = info
        self.platform = platform
        self.platform_specific_build_options: PlatformSpecificBuildOptions = \
            info.config.get_platform_options(platform.build_configuration_key) or PlatformSpecificBuildOptions()
        self.app_info: AppInfo = self.prepare_app_info(info.app_info)
        self._resource_list: Lazy[List[str]] = Lazy(self._list_build_resources)

    # ------------------------------------------------------------------
    # 属性
    # ------------------------------------------------------------------

    @property
    def config(self) -> Configuration:
        return self.info.config

    @property
    def project_dir(self) -> Path:
        return self.info.project_dir

    @property
    def build_resources_dir(self) -> Path:
        return self.info.build_resources_dir

    @property
    def resource_list(self) -> List[str]:
        """构建资源目录中的文件名（缓存）"""
        return self._resource_list.value

    def _list_build_resources(self) -> List[str]:
        try:
            return sorted(os.listdir(self.build_resources_dir))
        except FileNotFoundError:
            return []

    @property
    def compression(self) -> CompressionLevel:
        """压缩级别，平台配置中显式设置为 null 表示使用默认值 normal"""
        options = self.platform_specific_build_options
        if "compression" in options.model_fields_set and options.compression is None:
            return "normal"
        return options.compression or self.config.compression or "normal"

    @property
    def file_associations(self) -> List[FileAssociation]:
        return list(self.config.file_associations or []) + list(self.platform_specific_build_options.file_associations or [])

    @property
    def force_code_signing(self) -> bool:
        platform_value = self.platform_specific_build_options.force_code_signing
        value = self.config.force_code_signing if platform_value is None else platform_value
        return bool(value)

    # ------------------------------------------------------------------
    # 扩展点
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def default_target(self) -> List[str]:
        """未配置目标格式时使用的格式"""

    def create_targets(self, target_names: Sequence[str], out_dir: Path) -> List["Target"]:
        """按名称创建目标格式"""
        from .targets import create_common_target

        return [create_common_target(name, out_dir, self) for name in target_names]

    def prepare_app_info(self, app_info: AppInfo) -> AppInfo:
        return app_info

    def post_init_app(self, pack_context: PackContext) -> None:
        pass

    def before_copy_extra_files(self, app_out_dir: Path, asar_integrity: Optional[Dict[str, Any]]) -> None:
        pass

    def sign_app(self, pack_context: PackContext) -> None:
        pass

    def get_icon_path(self) -> Optional[Path]:
        return None

    # ------------------------------------------------------------------
    # 签名参数
    # ------------------------------------------------------------------

    def get_csc_link(self, env_name: str = "CSC_LINK") -> Optional[str]:
        # 允许显式配置为空字符串
        return _choose_not_none(
            _choose_not_none(self.config.csc_link, self.platform_specific_build_options.csc_link),
            os.environ.get(env_name),
        )

    def get_csc_password(self) -> str:
        password = _choose_not_none(
            _choose_not_none(self.config.csc_key_password, self.platform_specific_build_options.csc_key_password),
            os.environ.get("CSC_KEY_PASSWORD"),
        )
        if password is None or not password.strip():
            info("未定义 CSC_KEY_PASSWORD，签名将使用空密码", stage=LogStage.SIGN)
            return ""
        return password.strip()

    # ------------------------------------------------------------------
    # 目录
    # ------------------------------------------------------------------

    def compute_app_out_dir(self, out_dir: Path, arch: Arch) -> Path:
        prepackaged = self.info.options.prepackaged
        if prepackaged is not None:
            return Path(prepackaged)
        suffix = "" if self.platform is Platform.MAC else "-unpacked"
        return Path(out_dir) / f"{self.platform.build_configuration_key}{get_arch_suffix(arch)}{suffix}"

    def get_resources_dir(self, app_out_dir: Path) -> Path:
        if self.platform is Platform.MAC:
            return self.get_mac_os_resources_dir(app_out_dir)
        return Path(app_out_dir) / "resources"

    def get_mac_os_resources_dir(self, app_out_dir: Path) -> Path:
        return Path(app_out_dir) / f"{self.app_info.product_filename}.app" / "Contents" / "Resources"

    def get_runtime_resources_dir(self, app_out_dir: Path) -> Path:
        """解压后的运行时中的 resources 目录（macOS 上应用包尚未改名）"""
        if self.platform is Platform.MAC:
            return Path(app_out_dir) / "Electron.app" / "Contents" / "Resources"
        return Path(app_out_dir) / "resources"

    def get_temp_file(self, suffix: str) -> Path:
        return self.info.get_temp_file(suffix)

    def get_resource(self, custom: Optional[str], *names: str) -> Optional[Path]:
        """查找构建资源

        custom 为 None 时按 names 顺序在构建资源目录中查找；
        否则依次尝试构建资源目录和项目目录。

        Raises:
            ConfigurationError: 指定的资源找不到
        """
        if custom is None:
            for name in names:
                if name in self.resource_list:
                    return self.build_resources_dir / name
            return None

        if not custom.strip():
            return None
        if custom in self.resource_list:
            return self.build_resources_dir / custom

        path = (self.build_resources_dir / custom).resolve()
        if stat_or_none(path) is None:
            path = (self.project_dir / custom).resolve()
            if stat_or_none(path) is None:
                raise ConfigurationError(
                    f'找不到资源 "{custom}"，在构建资源目录 "{self.build_resources_dir}" '
                    f'和项目目录 "{self.project_dir}" 中都不存在'
                )
        return path

    # ------------------------------------------------------------------
    # 打包流程
    # ------------------------------------------------------------------

    def pack(self, out_dir: Path, arch: Arch, targets: Sequence["Target"], task_manager: TaskManager) -> None:
        """打包一个架构，然后把目标格式的构建加入 task_manager"""
        app_out_dir = self.compute_app_out_dir(out_dir, arch)
        self.do_pack(out_dir, app_out_dir, self.platform.node_name, arch, self.platform_specific_build_options, targets)
        self.package_in_distributable_format(app_out_dir, arch, targets, task_manager)

    def package_in_distributable_format(
        self, app_out_dir: Path, arch: Arch, targets: Sequence["Target"], task_manager: TaskManager
    ) -> None:
        from .targets import dispatch_targets

        task_manager.add_task(dispatch_targets, list(targets), app_out_dir, arch)

    def do_pack(
        self,
        out_dir: Path,
        app_out_dir: Path,
        platform_name: str,
        arch: Arch,
        platform_options: PlatformSpecificBuildOptions,
        targets: Sequence["Target"],
        progress_callback=None,
    ) -> Optional[PipelineContext]:
        """执行打包流水线，已预先打包时直接返回 None"""
        if self.info.options.prepackaged is not None:
            info(f"使用已打包的应用: {app_out_dir}", stage=LogStage.INIT)
            return None

        # 避免循环导入
        from .pipeline import PackPipeline

        pack_context = PackContext(
            app_out_dir=Path(app_out_dir),
            out_dir=Path(out_dir),
            arch=arch,
            targets=tuple(targets),
            electron_platform_name=platform_name,
            packager=self,
        )
        with TaskManager(self.info.cancellation_token) as task_manager:
            context = PipelineContext(
                pack_context=pack_context,
                platform_options=platform_options,
                task_manager=task_manager,
                progress_callback=progress_callback or self.info.progress_callback,
            )
            return PackPipeline().execute(context)

    def create_macro_expander(self, arch: Optional[Arch]) -> Callable[[str], str]:
        """文件模式使用的宏展开函数，${/*} 展开为 {,/**/*}"""
        arch_name = None if arch is None else arch.name
        return lambda pattern: self.expand_macro(pattern, arch_name, {"/*": "{,/**/*}"})

    def get_extra_file_matchers(
        self,
        is_resources: bool,
        app_out_dir: Path,
        macro_expander: Callable[[str], str],
        platform_options: PlatformSpecificBuildOptions,
    ) -> Optional[List[FileMatcher]]:
        if is_resources:
            base = self.get_resources_dir(app_out_dir)
        elif self.platform is Platform.MAC:
            base = Path(app_out_dir) / f"{self.app_info.product_filename}.app" / "Contents"
        else:
            base = Path(app_out_dir)
        name = "extra_resources" if is_resources else "extra_files"
        return get_file_matchers(self.config, name, self.project_dir, base, macro_expander, platform_options)

    def copy_app_files(
        self,
        task_manager: TaskManager,
        asar_options: Optional[AsarOptions],
        resources_path: Path,
        out_dir: Path,
        platform_options: PlatformSpecificBuildOptions,
        exclude_patterns: List[GlobPattern],
        macro_expander: Callable[[str], str],
    ) -> None:
        """把应用文件的复制（或 asar 打包）加入 task_manager"""
        app_dir = self.info.app_dir
        default_destination = resources_path / "app"

        main_matchers = get_main_file_matchers(app_dir, default_destination, macro_expander, platform_options, self, out_dir)
        if exclude_patterns:
            for matcher in main_matchers:
                matcher.exclude_patterns = exclude_patterns

        transformer = create_transformer(app_dir, self.config.extra_metadata)

        if self.info.is_prepacked_app_asar:
            # 已有 app.asar，整体复制，不做任何转换
            matcher = FileMatcher(app_dir, resources_path, macro_expander, ["app.asar", "app.asar.unpacked/**/*"])
            task_manager.add_task(_copy_all, compute_file_sets, [matcher], None)
        elif asar_options is None:
            task_manager.add_task(_copy_all, compute_file_sets, main_matchers, transformer)
        else:
            unpack_matchers = get_file_matchers(
                self.config, "asar_unpack", app_dir, default_destination, macro_expander, platform_options
            )
            unpack_filter = None if unpack_matchers is None else unpack_matchers[0].create_filter()

            def pack_asar() -> None:
                file_sets = compute_file_sets(main_matchers, transformer)
                AsarPackager(app_dir, resources_path, asar_options, unpack_filter).pack(file_sets)

            task_manager.add_task(pack_asar)

    def queue_cleanup_tasks(self, task_manager: TaskManager, pack_context: PackContext, resources_path: Path) -> None:
        """运行时中不需要的文件，与应用文件复制并行处理"""
        app_out_dir = pack_context.app_out_dir
        task_manager.add_task(unlink_if_exists, resources_path / "default_app.asar")
        task_manager.add_task(unlink_if_exists, app_out_dir / "version")
        task_manager.add_task(self.post_init_app, pack_context)
        if self.platform is not Platform.MAC:
            task_manager.add_task(best_effort(os.rename), app_out_dir / "LICENSE", app_out_dir / "LICENSE.electron.txt")

    def compute_asar_options(self, platform_options: PlatformSpecificBuildOptions) -> Optional[AsarOptions]:
        """计算 asar 选项，返回 None 表示不使用 asar

        Raises:
            ConfigurationError: 使用了已废弃的配置项
        """
        def deprecated(name: str) -> ConfigurationError:
            return ConfigurationError(f"{name} 已废弃，不再支持，请使用 asarUnpack")

        if "asar_unpack_legacy" in self.config.model_fields_set:
            raise deprecated("asar-unpack")
        if "asar_unpack_dir_legacy" in self.config.model_fields_set:
            raise deprecated("asar-unpack-dir")

        platform_specific = platform_options.asar
        result = self.config.asar if platform_specific is None else platform_specific

        if result is False:
            if not (self.info.app_dir / "app.asar").is_file():
                warning("asar 已禁用，强烈不建议这样做。请启用 asar 并使用 asarUnpack 解包需要在外部访问的文件",
                        stage=LogStage.ASAR)
            return None

        if result is None or result is True:
            return AsarOptions()

        for name, key in (("unpack_dir", "unpackDir"), ("unpack", "unpack")):
            if name in result.model_fields_set:
                raise deprecated(f"asar.{key}")

        merged = deep_assign({}, AsarOptions().model_dump(exclude={"unpack_dir", "unpack"}),
                             result.model_dump(exclude={"unpack_dir", "unpack"}, exclude_unset=True))
        return AsarOptions.model_validate(merged)

    def check_file_in_package(self, resources_dir: Path, file: str, message_prefix: str, is_asar: bool) -> None:
        """检查打包结果中存在指定文件

        Raises:
            IntegrityError: 文件不存在或不是普通文件
        """
        app_dir = self.info.app_dir
        relative_file = Path(os.path.relpath((app_dir / file).resolve(), app_dir.resolve())).as_posix()
        if is_asar:
            check_file_in_archive(resources_dir / "app.asar", relative_file, message_prefix)
            return

        # 即使没有启用 asar，入口文件也可能位于手动打包的 .asar 中
        parts = relative_file.split("/")
        dir_parts = parts[:-1]
        if any(".asar" in part for part in dir_parts):
            # path/arch.asar/dir/index.js -> path/arch.asar, dir/index.js
            asar_index = next((i for i, part in enumerate(dir_parts) if part.endswith(".asar")), len(dir_parts) - 1)
            asar_path = "/".join(dir_parts[:asar_index + 1])
            main_path = "/".join(parts[asar_index + 1:])
            check_file_in_archive(resources_dir / "app" / asar_path, main_path, message_prefix)
            return

        out_stat = stat_or_none(resources_dir / "app" / relative_file)
        if out_stat is None:
            raise IntegrityError(f'{message_prefix} "{relative_file}" 不存在，请检查配置')
        if not (resources_dir / "app" / relative_file).is_file():
            raise IntegrityError(f'{message_prefix} "{relative_file}" 不是文件，请检查配置')

    def sanity_check_package(self, app_out_dir: Path, is_asar: bool) -> None:
        """检查输出目录、入口文件和 package.json

        Raises:
            IntegrityError: 检查失败，错误信息中包含出问题的路径
        """
        app_out_dir = Path(app_out_dir)
        if stat_or_none(app_out_dir) is None:
            raise IntegrityError(f'输出目录 "{app_out_dir}" 不存在，请检查配置')
        if not app_out_dir.is_dir():
            raise IntegrityError(f'输出目录 "{app_out_dir}" 不是目录，请检查配置')

        resources_dir = self.get_resources_dir(app_out_dir)
        self.check_file_in_package(resources_dir, self.info.metadata.get("main") or "index.js", "应用入口文件", is_asar)
        self.check_file_in_package(resources_dir, "package.json", "应用", is_asar)

    # ------------------------------------------------------------------
    # 产物
    # ------------------------------------------------------------------

    def dispatch_artifact_created(
        self,
        file: Path,
        target: Optional["Target"],
        arch: Optional[Arch],
        safe_artifact_name: Optional[str] = None,
    ) -> None:
        self.info.dispatch_artifact_created(ArtifactCreated(Path(file), target, arch, safe_artifact_name, self))

    def expand_macro(
        self,
        pattern: str,
        arch: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        is_product_name_sanitized: bool = True,
    ) -> str:
        return expand_macro(pattern, arch, self.app_info, self.platform, extra, is_product_name_sanitized)

    def compute_artifact_name(self, pattern: str, ext: str, arch: Optional[Arch]) -> str:
        return compute_artifact_name(pattern, ext, arch, self.app_info, self.platform)

    def expand_artifact_name_pattern(
        self,
        target_specific_options: Optional[PlatformSpecificBuildOptions],
        ext: str,
        arch: Optional[Arch] = None,
        default_pattern: Optional[str] = None,
        skip_arch_if_x64: bool = True,
    ) -> str:
        """产物名称：目标配置 -> 平台配置 -> 顶层配置 -> 默认模式"""
        pattern = None if target_specific_options is None else target_specific_options.artifact_name
        if pattern is None:
            pattern = (self.platform_specific_build_options.artifact_name
                       or self.config.artifact_name
                       or default_pattern
                       or DEFAULT_ARTIFACT_NAME)
        return self.compute_artifact_name(pattern, ext, None if skip_arch_if_x64 and arch is Arch.x64 else arch)

    def compute_safe_artifact_name(
        self,
        suggested_name: Optional[str],
        ext: str,
        arch: Optional[Arch] = None,
        skip_arch_if_x64: bool = True,
    ) -> Optional[str]:
        """名称中包含 GitHub 不允许的字符时返回替代名称，否则返回 None"""
        if suggested_name is not None and is_safe_github_name(suggested_name):
            return None
        return self.compute_artifact_name(SAFE_ARTIFACT_NAME, ext, None if skip_arch_if_x64 and arch is Arch.x64 else arch)

    def generate_name(self, ext: Optional[str], arch: Arch, deployment: bool, classifier: Optional[str] = None) -> str:
        return generate_name(self.app_info, ext, arch, deployment, classifier)

    def generate_name2(self, ext: Optional[str], classifier: Optional[str], deployment: bool) -> str:
        return generate_name2(self.app_info, ext, classifier, deployment)

    # ------------------------------------------------------------------
    # 图标
    # ------------------------------------------------------------------

    def get_or_convert_icon(self, icon_format: IconFormat) -> Optional[Path]:
        return get_or_convert_icon(self, icon_format)

    def resolve_icon(self, sources: Sequence[Union[str, Path]], output_format: IconFormat) -> List[IconInfo]:
        output_dir = self.project_dir / self.config.directories.output
        return resolve_icon(sources, output_format, self.build_resources_dir, self.project_dir, output_dir)


def _copy_all(compute: Callable, matchers: Sequence[FileMatcher], transformer) -> int:
    copied = 0
    for file_set in compute(matchers, transformer):
        copied += copy_file_set(file_set)
    debug(f"已复制 {copied} 个应用文件", stage=LogStage.COPY)
    return copied


def _choose_not_none(first: Optional[str], second: Optional[str]) -> Optional[str]:
    return second if first is None else first


def resolve_function(executor: Union[str, Callable, None], project_dir: Optional[Path] = None) -> Optional[Callable]:
    """解析钩子函数

    支持可调用对象、"模块:函数" 字符串，以及 .py 文件路径（使用其中的 default 或 main 函数）。

    Raises:
        ConfigurationError: 无法加载钩子
    """
    if executor is None or callable(executor):
        return executor

    spec = str(executor)
    module_name, _, attr = spec.partition(":")
    if module_name.endswith(".py") or "/" in module_name or "\\" in module_name:
        path = Path(module_name)
        if not path.is_absolute() and project_dir is not None:
            path = project_dir / path
        if not path.is_file():
            raise ConfigurationError(f"找不到钩子文件: {path}")
        module_spec = importlib.util.spec_from_file_location(f"_shipwright_hook_{path.stem}", path)
        if module_spec is None or module_spec.loader is None:
            raise ConfigurationError(f"无法加载钩子文件: {path}")
        module = importlib.util.module_from_spec(module_spec)
        module_spec.loader.exec_module(module)
    else:
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise ConfigurationError(f"无法导入钩子模块 {module_name}: {e}") from e

    names = [attr] if attr else ["default", "main"]
    for name in names:
        function = getattr(module, name, None)
        if callable(function):
            return function
    raise ConfigurationError(f"钩子 {spec} 中没有可调用的 {' / '.join(names)}")
