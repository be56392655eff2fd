"""
签名步骤模块

执行平台相关的签名，然后调用 afterSign 钩子。
"""

from ...utils.logging import info, LogStage
from shipwright.build.build_context import PipelineContext
from .build_step import PackStep


class SignStep(PackStep):
    """签名步骤"""

    def __init__(self):
        super().__init__("sign", "签名应用")

    def get_progress_range(self) -> tuple[int, int]:
        return (90, 100)

    def execute(self, context: PipelineContext) -> None:
        packager = context.packager
        packager.sign_app(context.pack_context)
        if packager.info.after_sign(context.pack_context):
            info("afterSign 钩子执行完成", stage=LogStage.HOOK)
        context.report_progress("签名应用", self.get_progress_range()[1])
