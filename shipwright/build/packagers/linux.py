"""Linux 打包器"""

from pathlib import Path
from typing import List, Optional

from ...utils.logging import debug, LogStage
from ...utils.paths import sanitize_file_name
from ..build_context import PackContext
from ..core import Platform
from ..platform_packager import PlatformPackager


class LinuxPackager(PlatformPackager):
    """Linux 打包器，不支持签名"""

    def __init__(self, info):
        super().__init__(info, Platform.LINUX)
        options = self.platform_specific_build_options
        self.executable_name: str = getattr(options, "executable_name", None) \
            or sanitize_file_name(self.app_info.name).lower()

    @property
    def default_target(self) -> List[str]:
        return ["tar.zst"]

    def post_init_app(self, pack_context: PackContext) -> None:
        runtime_executable = pack_context.app_out_dir / "electron"
        if runtime_executable.exists() and self.executable_name != "electron":
            runtime_executable.rename(pack_context.app_out_dir / self.executable_name)
            debug(f"可执行文件: {self.executable_name}", stage=LogStage.UNPACK)

    def get_icon_path(self) -> Optional[Path]:
        return self.get_or_convert_icon("set")
