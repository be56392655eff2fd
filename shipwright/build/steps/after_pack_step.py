"""afterPack 钩子步骤模块"""

from ...utils.logging import info, LogStage
from shipwright.build.build_context import PipelineContext
from .build_step import PackStep


class AfterPackStep(PackStep):
    """afterPack 钩子步骤"""

    def __init__(self):
        super().__init__("after_pack", "执行 afterPack 钩子")

    def get_progress_range(self) -> tuple[int, int]:
        return (75, 80)

    def execute(self, context: PipelineContext) -> None:
        if context.packager.info.after_pack(context.pack_context):
            info("afterPack 钩子执行完成", stage=LogStage.HOOK)
