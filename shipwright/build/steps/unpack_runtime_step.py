"""
运行时解压步骤模块

把 Electron 运行时解压到应用输出目录。
"""

from ...utils.logging import info, success, LogStage
from shipwright.build.build_context import PipelineContext
from shipwright.build.unpacker import unpack_runtime
from .build_step import PackStep


class UnpackRuntimeStep(PackStep):
    """运行时解压步骤"""

    def __init__(self):
        super().__init__("unpack", "解压运行时")

    def get_progress_range(self) -> tuple[int, int]:
        return (0, 20)

    def execute(self, context: PipelineContext) -> None:
        packager = context.packager
        pack_context = context.pack_context
        info(
            f"打包 platform={pack_context.electron_platform_name} arch={pack_context.arch.name} "
            f"electron={packager.config.electron_version or '-'} appOutDir={pack_context.app_out_dir}",
            stage=LogStage.UNPACK,
        )
        context.report_progress("解压运行时", self.get_progress_range()[0], str(pack_context.app_out_dir))

        unpack_runtime(packager, pack_context.app_out_dir, pack_context.electron_platform_name, pack_context.arch)

        context.report_progress("解压运行时", self.get_progress_range()[1])
        success("运行时解压完成", stage=LogStage.UNPACK)
