"""
完整性检查步骤模块

确认输出目录、应用入口文件和 package.json 都在打包结果中。
"""

from ...utils.logging import info, success, LogStage
from shipwright.build.build_context import PipelineContext
from .build_step import PackStep


class SanityCheckStep(PackStep):
    """完整性检查步骤"""

    def __init__(self):
        super().__init__("check", "检查打包结果")

    def get_progress_range(self) -> tuple[int, int]:
        return (80, 90)

    def execute(self, context: PipelineContext) -> None:
        info("检查打包结果", stage=LogStage.CHECK)
        context.packager.sanity_check_package(context.app_out_dir, context.asar_options is not None)
        context.report_progress("检查打包结果", self.get_progress_range()[1])
        success("打包结果检查通过", stage=LogStage.CHECK)
