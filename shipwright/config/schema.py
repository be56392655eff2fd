"""
配置 Schema 定义

使用 Pydantic 定义打包配置模型。Python 字段使用 snake_case，
配置文件中的键使用 camelCase（与 electron-builder 配置保持一致）。
"""

from __future__ import annotations

from pathlib import Path
from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

CompressionLevel = Literal["store", "normal", "maximum"]


def _as_list(value: Any) -> Any:
    """允许单个值代替列表"""
    if value is None or isinstance(value, list):
        return value
    return [value]


class _ConfigModel(BaseModel):
    """所有配置模型的基类"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
    )


class FileSetModel(_ConfigModel):
    """文件集合配置

    from 相对于项目目录（extraResources/extraFiles）或应用目录（files），
    to 相对于目标目录。
    """
    from_: Optional[str] = Field(None, alias="from", description="源目录")
    to: Optional[str] = Field(None, description="目标目录")
    filter: Optional[List[str]] = Field(None, description="glob 模式列表")

    @field_validator("filter", mode="before")
    @classmethod
    def normalize_filter(cls, v: Any) -> Any:
        return _as_list(v)


FilePatterns = Optional[List[Union[str, FileSetModel]]]


class AsarOptions(_ConfigModel):
    """归档容器（asar）配置"""
    smart_unpack: bool = Field(True, description="自动解包原生模块 (*.node)")
    ordering: Optional[str] = Field(None, description="文件排序列表路径")
    external_allowed: bool = Field(False, description="是否允许加载外部 asar")

    # 已废弃的键，保留只为给出明确的错误提示
    unpack_dir: Optional[Any] = Field(None, description="已废弃，请使用 asarUnpack")
    unpack: Optional[Any] = Field(None, description="已废弃，请使用 asarUnpack")


class FileAssociation(_ConfigModel):
    """文件关联"""
    ext: Union[str, List[str]] = Field(..., description="扩展名")
    name: Optional[str] = Field(None, description="名称")
    description: Optional[str] = Field(None, description="描述")
    mime_type: Optional[str] = Field(None, description="MIME 类型")
    role: str = Field("Editor", description="角色 (macOS)")
    icon: Optional[str] = Field(None, description="图标路径")


class TargetConfig(_ConfigModel):
    """输出格式配置"""
    target: str = Field(..., min_length=1, description="输出格式名称，例如 zip")
    arch: Optional[List[str]] = Field(None, description="架构列表")

    @field_validator("arch", mode="before")
    @classmethod
    def normalize_arch(cls, v: Any) -> Any:
        return _as_list(v)


class PlatformSpecificBuildOptions(_ConfigModel):
    """可以在顶层和平台段（mac/win/linux）中出现的选项"""
    asar: Optional[Union[bool, AsarOptions]] = Field(None, description="是否打包为 asar 归档")
    asar_unpack: FilePatterns = Field(None, description="不放入 asar 的文件")
    files: FilePatterns = Field(None, description="应用文件")
    extra_resources: FilePatterns = Field(None, description="复制到 resources 目录的额外文件")
    extra_files: FilePatterns = Field(None, description="复制到应用根目录的额外文件")

    artifact_name: Optional[str] = Field(None, description="产物文件名模板")
    compression: Optional[CompressionLevel] = Field(None, description="压缩级别")
    icon: Optional[str] = Field(None, description="图标路径")

    csc_link: Optional[str] = Field(None, description="签名证书路径或链接")
    csc_key_password: Optional[str] = Field(None, description="签名证书密码")
    force_code_signing: Optional[bool] = Field(None, description="未签名时是否失败")

    file_associations: Optional[List[FileAssociation]] = Field(None, description="文件关联")
    target: Optional[List[Union[str, TargetConfig]]] = Field(None, description="输出格式")

    @field_validator(
        "asar_unpack", "files", "extra_resources", "extra_files", "file_associations", "target",
        mode="before",
    )
    @classmethod
    def normalize_lists(cls, v: Any) -> Any:
        return _as_list(v)


class MacOptions(PlatformSpecificBuildOptions):
    """macOS 专用选项"""
    identity: Optional[str] = Field(None, description="codesign 签名身份")
    category: Optional[str] = Field(None, description="LSApplicationCategoryType")


class WindowsOptions(PlatformSpecificBuildOptions):
    """Windows 专用选项"""
    publisher_name: Optional[str] = Field(None, description="签名发布者")
    timestamp_server: str = Field("http://timestamp.digicert.com", description="签名时间戳服务器")


class LinuxOptions(PlatformSpecificBuildOptions):
    """Linux 专用选项"""
    executable_name: Optional[str] = Field(None, description="可执行文件名")


class Directories(_ConfigModel):
    """目录配置（相对于项目目录）"""
    output: str = Field("dist", description="输出目录")
    build_resources: str = Field("build", description="构建资源目录")
    app: Optional[str] = Field(None, description="应用目录")


class ElectronDownload(_ConfigModel):
    """运行时下载配置"""
    mirror: str = Field("https://github.com/electron/electron/releases/download/", description="下载镜像")
    cache: Optional[str] = Field(None, description="缓存目录")


Hook = Union[str, Callable[..., Any]]


class Configuration(PlatformSpecificBuildOptions):
    """打包主配置模型"""
    app_id: Optional[str] = Field(None, description="应用 ID")
    product_name: Optional[str] = Field(None, description="产品名称")
    copyright: Optional[str] = Field(None, description="版权信息")

    directories: Directories = Field(default_factory=Directories, description="目录配置")
    extra_metadata: Optional[Dict[str, Any]] = Field(None, description="注入 package.json 的元数据")

    electron_version: Optional[str] = Field(None, description="运行时版本")
    electron_dist: Optional[str] = Field(None, description="本地运行时目录或 zip")
    electron_download: ElectronDownload = Field(default_factory=ElectronDownload, description="运行时下载配置")

    after_pack: Optional[Hook] = Field(None, description="afterPack 钩子")
    after_sign: Optional[Hook] = Field(None, description="afterSign 钩子")

    mac: Optional[MacOptions] = Field(None, description="macOS 配置")
    win: Optional[WindowsOptions] = Field(None, description="Windows 配置")
    linux: Optional[LinuxOptions] = Field(None, description="Linux 配置")

    # 已废弃的顶层键
    asar_unpack_legacy: Optional[Any] = Field(None, alias="asar-unpack", description="已废弃，请使用 asarUnpack")
    asar_unpack_dir_legacy: Optional[Any] = Field(None, alias="asar-unpack-dir", description="已废弃，请使用 asarUnpack")

    def get_platform_options(self, key: str) -> Optional[PlatformSpecificBuildOptions]:
        """按平台键（mac/win/linux）获取平台配置"""
        return getattr(self, key)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式（camelCase 键）"""
        data = self.model_dump(exclude_none=True, by_alias=True)

        def convert_values(obj):
            if isinstance(obj, dict):
                return {k: convert_values(v) for k, v in obj.items() if not callable(v)}
            elif isinstance(obj, list):
                return [convert_values(item) for item in obj]
            elif isinstance(obj, (Path, Enum)):
                return str(obj)
            return obj

        return convert_values(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Configuration":
        """从字典创建配置实例"""
        return cls.model_validate(data)
