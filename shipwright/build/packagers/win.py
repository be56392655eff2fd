"""
Windows 打包器

签名分两步：先用 rcedit 写入版本信息和图标（非 Windows 主机上通过 wine 执行），
再用 signtool（Windows）或 osslsigncode（其他主机）签名。
"""

import os
import sys
from pathlib import Path
from typing import List, Optional

from ...errors import ConfigurationError
from ...utils.logging import debug, info, success, LogStage
from ...utils.process import exec_command
from ...utils.wine import exec_wine
from ..app_info import AppInfo
from ..build_context import PackContext
from ..core import Platform
from ..platform_packager import PlatformPackager


class WinPackager(PlatformPackager):
    """Windows 打包器"""

    def __init__(self, info):
        super().__init__(info, Platform.WINDOWS)

    @property
    def default_target(self) -> List[str]:
        return ["zip"]

    def prepare_app_info(self, app_info: AppInfo) -> AppInfo:
        return app_info.with_changes(build_version=app_info.get_version_in_windows_form())

    def get_executable(self, app_out_dir: Path) -> Path:
        return Path(app_out_dir) / f"{self.app_info.product_filename}.exe"

    def post_init_app(self, pack_context: PackContext) -> None:
        runtime_executable = pack_context.app_out_dir / "electron.exe"
        executable = self.get_executable(pack_context.app_out_dir)
        if runtime_executable.exists() and runtime_executable != executable:
            runtime_executable.rename(executable)

    def get_icon_path(self) -> Optional[Path]:
        return self.get_or_convert_icon("ico")

    def edit_resources(self, executable: Path) -> None:
        """写入版本信息和图标，没有配置 RCEDIT_PATH 时跳过"""
        rcedit = os.environ.get("RCEDIT_PATH")
        if not rcedit:
            debug("未配置 RCEDIT_PATH，跳过资源编辑", stage=LogStage.SIGN)
            return

        app_info = self.app_info
        args = [
            str(executable),
            "--set-version-string", "FileDescription", app_info.product_name,
            "--set-version-string", "ProductName", app_info.product_name,
            "--set-version-string", "InternalName", executable.stem,
            "--set-version-string", "OriginalFilename", "",
            "--set-version-string", "LegalCopyright", app_info.copyright or "",
            "--set-file-version", app_info.build_version,
            "--set-product-version", app_info.get_version_in_windows_form(),
        ]
        if app_info.company_name:
            args.extend(["--set-version-string", "CompanyName", app_info.company_name])

        icon = self.get_icon_path()
        if icon is not None:
            args.extend(["--set-icon", str(icon)])

        exec_wine(rcedit, args)
        debug(f"已写入资源信息: {executable.name}", stage=LogStage.SIGN)

    def sign_app(self, pack_context: PackContext) -> None:
        executable = self.get_executable(pack_context.app_out_dir)
        self.edit_resources(executable)

        csc_link = self.get_csc_link()
        if not csc_link:
            if self.force_code_signing:
                raise ConfigurationError("已启用 forceCodeSigning，但没有配置签名证书 (cscLink / CSC_LINK)")
            info("未配置签名证书，跳过签名", stage=LogStage.SIGN)
            return

        password = self.get_csc_password()
        options = self.platform_specific_build_options
        timestamp_server = getattr(options, "timestamp_server", None) or "http://timestamp.digicert.com"

        info(f"签名: {executable.name}", stage=LogStage.SIGN)
        if sys.platform == "win32":
            exec_command("signtool", [
                "sign", "/f", csc_link, "/p", password, "/fd", "sha256",
                "/tr", timestamp_server, "/td", "sha256", str(executable),
            ])
        else:
            signed = self.get_temp_file(".exe")
            exec_command("osslsigncode", [
                "sign", "-pkcs12", csc_link, "-pass", password, "-h", "sha256",
                "-n", self.app_info.product_name, "-ts", timestamp_server,
                "-in", str(executable), "-out", str(signed),
            ])
            os.replace(signed, executable)
        success(f"签名完成: {executable.name}", stage=LogStage.SIGN)
