"""
macOS 打包器

运行时中的 Electron.app 在复制额外文件前改名为 <productFilename>.app，
同时改写 Info.plist（应用标识、版本、图标、文件关联和 asar 完整性信息）。
"""

import json
import os
import plistlib
import shutil
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from ...errors import ConfigurationError
from ...utils.logging import debug, info, success, warning, LogStage
from ...utils.process import exec_command
from ..build_context import PackContext
from ..core import Platform
from ..platform_packager import PlatformPackager


class MacPackager(PlatformPackager):
    """macOS 打包器"""

    def __init__(self, info):
        super().__init__(info, Platform.MAC)

    @property
    def default_target(self) -> List[str]:
        return ["zip"]

    def get_app_path(self, app_out_dir: Path) -> Path:
        return Path(app_out_dir) / f"{self.app_info.product_filename}.app"

    def get_icon_path(self) -> Optional[Path]:
        return self.get_or_convert_icon("icns")

    def before_copy_extra_files(self, app_out_dir: Path, asar_integrity: Optional[Dict[str, Any]]) -> None:
        runtime_app = Path(app_out_dir) / "Electron.app"
        app_path = self.get_app_path(app_out_dir)
        if runtime_app.exists() and runtime_app != app_path:
            runtime_app.rename(app_path)

        contents = app_path / "Contents"
        executable_name = self.app_info.product_filename
        runtime_executable = contents / "MacOS" / "Electron"
        if runtime_executable.exists() and executable_name != "Electron":
            runtime_executable.rename(contents / "MacOS" / executable_name)

        plist_path = contents / "Info.plist"
        plist: Dict[str, Any] = {}
        if plist_path.is_file():
            with open(plist_path, 'rb') as f:
                plist = plistlib.load(f)

        self.update_info_plist(plist, contents / "Resources", asar_integrity)
        plist_path.parent.mkdir(parents=True, exist_ok=True)
        with open(plist_path, 'wb') as f:
            plistlib.dump(plist, f)
        debug(f"已更新 {plist_path}", stage=LogStage.EXTRA)

    def update_info_plist(self, plist: Dict[str, Any], resources_dir: Path, asar_integrity: Optional[Dict[str, Any]]) -> None:
        app_info = self.app_info
        plist.update({
            "CFBundleDisplayName": app_info.product_name,
            "CFBundleName": app_info.product_name,
            "CFBundleIdentifier": app_info.id,
            "CFBundleExecutable": app_info.product_filename,
            "CFBundleShortVersionString": app_info.version,
            "CFBundleVersion": app_info.build_version,
        })
        if app_info.copyright:
            plist["NSHumanReadableCopyright"] = app_info.copyright

        category = getattr(self.platform_specific_build_options, "category", None)
        if category:
            plist["LSApplicationCategoryType"] = category

        icon = self.get_icon_path()
        if icon is not None:
            icon_name = f"{app_info.product_filename}.icns"
            resources_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(icon, resources_dir / icon_name)
            plist["CFBundleIconFile"] = icon_name

        document_types = []
        for association in self.file_associations:
            extensions = association.ext if isinstance(association.ext, list) else [association.ext]
            document_types.append({
                "CFBundleTypeExtensions": [ext.lstrip(".") for ext in extensions],
                "CFBundleTypeName": association.name or extensions[0].lstrip("."),
                "CFBundleTypeRole": association.role,
            })
        if document_types:
            plist["CFBundleDocumentTypes"] = document_types

        if asar_integrity is not None:
            plist["AsarIntegrity"] = json.dumps(asar_integrity, sort_keys=True)

    def sign_app(self, pack_context: PackContext) -> None:
        identity = getattr(self.platform_specific_build_options, "identity", None) or os.environ.get("CSC_NAME")
        if not identity:
            if self.force_code_signing:
                raise ConfigurationError("已启用 forceCodeSigning，但没有配置签名身份 (mac.identity / CSC_NAME)")
            info("未配置签名身份，跳过签名", stage=LogStage.SIGN)
            return

        if sys.platform != "darwin":
            if self.force_code_signing:
                raise ConfigurationError("macOS 应用只能在 macOS 上签名")
            warning("当前主机不是 macOS，跳过签名", stage=LogStage.SIGN)
            return

        app_path = self.get_app_path(pack_context.app_out_dir)
        info(f"签名: {app_path.name} (identity={identity})", stage=LogStage.SIGN)
        exec_command("codesign", [
            "--sign", identity, "--force", "--deep", "--timestamp", "--options", "runtime", str(app_path),
        ])
        success(f"签名完成: {app_path.name}", stage=LogStage.SIGN)
