"""
应用文件复制步骤模块

计算 asar 选项，把应用文件复制（或打包为 asar）到 resources 目录，
同时并行执行运行时的清理任务。
"""

from typing import List

from ...utils.logging import debug, info, success, LogStage
from shipwright.build.build_context import PipelineContext
from shipwright.build.file_matcher import GlobPattern
from .build_step import PackStep


class CopyAppFilesStep(PackStep):
    """应用文件复制步骤"""

    def __init__(self):
        super().__init__("copy", "复制应用文件")

    def get_progress_range(self) -> tuple[int, int]:
        return (20, 60)

    def execute(self, context: PipelineContext) -> None:
        packager = context.packager
        pack_context = context.pack_context
        app_out_dir = pack_context.app_out_dir

        context.asar_options = packager.compute_asar_options(context.platform_options)
        context.macro_expander = packager.create_macro_expander(pack_context.arch)
        context.resources_path = packager.get_runtime_resources_dir(app_out_dir)

        # extraResources / extraFiles 中的文件不能再出现在应用文件中
        exclude_patterns: List[GlobPattern] = []
        context.extra_resource_matchers = packager.get_extra_file_matchers(
            True, app_out_dir, context.macro_expander, context.platform_options)
        context.extra_file_matchers = packager.get_extra_file_matchers(
            False, app_out_dir, context.macro_expander, context.platform_options)
        for matchers in (context.extra_resource_matchers, context.extra_file_matchers):
            for matcher in matchers or []:
                matcher.compute_parsed_patterns(exclude_patterns, packager.info.app_dir)
        debug(f"全局排除模式: {exclude_patterns}", stage=LogStage.COPY)

        mode = "asar" if context.asar_options is not None else "目录"
        info(f"复制应用文件 ({mode}) -> {context.resources_path}", stage=LogStage.COPY)
        context.report_progress("复制应用文件", self.get_progress_range()[0])

        task_manager = context.task_manager
        packager.copy_app_files(
            task_manager,
            context.asar_options,
            context.resources_path,
            pack_context.out_dir,
            context.platform_options,
            exclude_patterns,
            context.macro_expander,
        )
        packager.queue_cleanup_tasks(task_manager, pack_context, context.resources_path)
        results = task_manager.await_tasks()

        copied = results[0] if results and isinstance(results[0], int) else 0
        context.build_stats['app_files'] = copied
        context.report_progress("复制应用文件", self.get_progress_range()[1])
        success("应用文件复制完成", stage=LogStage.COPY)
