"""
图标解析

图标的校验和格式转换交给外部工具 app-builder：
    app-builder icon --format <fmt> --root <dir> --root <dir> --out <dir> [--input <path>]...
工具在标准输出上返回一行 JSON：{icons?: [{file, size}], error?, errorCode?}
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Literal, Optional, Sequence, Union, TYPE_CHECKING

from ..errors import ConfigurationError, ToolError
from ..utils.logging import debug, warning, LogStage
from ..utils.process import exec_command

if TYPE_CHECKING:
    from .platform_packager import PlatformPackager

IconFormat = Literal["icns", "ico", "set"]


@dataclass(frozen=True)
class IconInfo:
    """转换后的图标文件和像素尺寸"""
    file: str
    size: int


def get_app_builder_path() -> str:
    return os.environ.get("APP_BUILDER_PATH") or "app-builder"


def parse_icon_result(raw_result: str) -> List[IconInfo]:
    """解析图标工具的输出

    Raises:
        ConfigurationError: 工具报告了错误（带错误代码）
        ToolError: 输出不是合法的 JSON
    """
    try:
        result = json.loads(raw_result.strip())
    except ValueError as e:
        raise ToolError(f"无法解析图标工具的输出: {e}: {raw_result}") from e
    if not isinstance(result, dict):
        raise ToolError(f"无法解析图标工具的输出: {raw_result}")

    error_message = result.get("error")
    if error_message is not None:
        raise ConfigurationError(error_message, result.get("errorCode"))

    icons = result.get("icons")
    if not isinstance(icons, list):
        raise ToolError(f"图标工具的输出中缺少 icons: {raw_result}")
    try:
        return [IconInfo(file=item["file"], size=int(item.get("size", 0))) for item in icons]
    except (KeyError, TypeError, ValueError) as e:
        raise ToolError(f"无法解析图标工具的输出: {e}: {raw_result}") from e


def resolve_icon(
    sources: Sequence[Union[str, Path]],
    output_format: IconFormat,
    build_resources_dir: Path,
    project_dir: Path,
    output_dir: Path,
) -> List[IconInfo]:
    """校验并在需要时转换图标

    即使源文件已经是目标格式也会调用工具，用于校验尺寸。
    """
    args = [
        "icon",
        "--format", output_format,
        "--root", str(build_resources_dir),
        "--root", str(project_dir),
        "--out", str(Path(output_dir).resolve() / f".icon-{output_format}"),
    ]
    for source in sources:
        args.extend(["--input", str(source)])

    raw_result = exec_command(get_app_builder_path(), args)
    icons = parse_icon_result(raw_result)
    debug(f"图标: {icons}", stage=LogStage.ICON)
    return icons


def get_icon_source_names(icon_format: IconFormat) -> List[str]:
    """构建资源目录中按优先级查找的图标文件名"""
    names = [f"icon.{'png' if icon_format == 'set' else icon_format}", "icon.png", "icons"]
    if icon_format == "ico":
        names.append("icon.icns")
    return names


def get_or_convert_icon(packager: "PlatformPackager", icon_format: IconFormat) -> Optional[Path]:
    """获取平台需要格式的图标

    优先使用配置中的 icon，然后按优先级查找构建资源目录中的图标文件；
    都没有时返回 None，使用运行时自带的默认图标。
    """
    icon_path = packager.platform_specific_build_options.icon or packager.config.icon
    if icon_path is not None:
        icons = packager.resolve_icon([icon_path], icon_format)
        return Path(icons[0].file) if icons else None

    for file_name in get_icon_source_names(icon_format):
        if file_name in packager.resource_list:
            icons = packager.resolve_icon([packager.build_resources_dir / file_name], icon_format)
            return Path(icons[0].file) if icons else None

    warning("未设置应用图标，使用默认的 Electron 图标", stage=LogStage.ICON)
    return None
