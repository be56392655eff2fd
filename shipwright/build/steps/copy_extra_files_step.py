"""
额外文件复制步骤模块

复制 extraResources / extraFiles，之后检查取消标记。
"""

from ...utils.logging import info, success, warning, LogStage
from shipwright.build.asar import compute_asar_integrity
from shipwright.build.build_context import PipelineContext
from shipwright.build.copier import copy_files
from .build_step import PackStep


class CopyExtraFilesStep(PackStep):
    """额外文件复制步骤"""

    def __init__(self):
        super().__init__("extra", "复制额外文件")

    def get_progress_range(self) -> tuple[int, int]:
        return (60, 75)

    def execute(self, context: PipelineContext) -> None:
        packager = context.packager
        app_out_dir = context.app_out_dir

        if context.asar_options is not None:
            context.asar_integrity = compute_asar_integrity(
                context.resources_path, context.asar_options.external_allowed)
        packager.before_copy_extra_files(app_out_dir, context.asar_integrity)

        info("复制额外文件", stage=LogStage.EXTRA)
        copied = copy_files(context.extra_resource_matchers)
        copied += copy_files(context.extra_file_matchers)
        context.build_stats['extra_files'] = copied
        context.report_progress("复制额外文件", self.get_progress_range()[1], f"{copied} 个文件")
        success(f"额外文件复制完成: {copied} 个文件", stage=LogStage.EXTRA)

        if packager.info.cancellation_token.cancelled:
            # 已复制的文件保留在原处
            context.cancelled = True
            warning("打包已取消", stage=LogStage.EXTRA)
