"""
打包管道模块

使用管道模式协调一次 (平台, 架构) 打包的各个步骤。
"""

import time
from typing import List, Optional

from ..errors import BuildError
from ..utils.logging import debug, error, info, success, warning, LogStage
from .build_context import PipelineContext
from .steps.build_step import PackStep
from .steps.unpack_runtime_step import UnpackRuntimeStep
from .steps.copy_app_files_step import CopyAppFilesStep
from .steps.copy_extra_files_step import CopyExtraFilesStep
from .steps.after_pack_step import AfterPackStep
from .steps.sanity_check_step import SanityCheckStep
from .steps.sign_step import SignStep


class PackPipeline:
    """打包管道，负责协调打包步骤的执行"""

    def __init__(self):
        self._steps: List[PackStep] = []
        self._init_default_steps()

    def _init_default_steps(self):
        """初始化默认的打包步骤"""
        self._steps = [
            UnpackRuntimeStep(),
            CopyAppFilesStep(),
            CopyExtraFilesStep(),
            AfterPackStep(),
            SanityCheckStep(),
            SignStep(),
        ]

    def add_step(self, step: PackStep, position: Optional[int] = None):
        """添加打包步骤"""
        if position is None:
            self._steps.append(step)
        else:
            self._steps.insert(position, step)

    def remove_step(self, step_name: str):
        """移除打包步骤"""
        self._steps = [step for step in self._steps if step.name != step_name]

    def get_steps(self) -> List[PackStep]:
        """获取所有打包步骤"""
        return self._steps.copy()

    def execute(self, context: PipelineContext) -> PipelineContext:
        """执行打包管道

        取消标记只在复制额外文件之后检查一次，取消时提前返回，不回滚已复制的文件。

        Raises:
            BuildError: 打包失败（配置错误、完整性检查失败等子类原样抛出）
        """
        context.build_stats['start_time'] = time.time()
        app_out_dir = context.app_out_dir

        try:
            for step in self._steps:
                debug(f"执行步骤: {step.description}", stage=LogStage.INIT)
                step.execute(context)
                if context.cancelled:
                    warning(f"打包已取消，跳过剩余步骤: {app_out_dir}", stage=LogStage.DONE)
                    break
        except BuildError as e:
            context.build_stats['end_time'] = time.time()
            error(f"打包失败: {e}", stage=LogStage.ERROR)
            raise
        except Exception as e:
            context.build_stats['end_time'] = time.time()
            error(f"打包失败: {e}", stage=LogStage.ERROR)
            raise BuildError(f"打包失败: {e}") from e

        context.build_stats['end_time'] = time.time()
        if not context.cancelled:
            build_time = context.build_stats['end_time'] - context.build_stats['start_time']
            success(f"打包完成: {app_out_dir}", stage=LogStage.DONE)
            info(f"  应用文件: {context.build_stats['app_files']}")
            info(f"  额外文件: {context.build_stats['extra_files']}")
            info(f"  用时: {build_time:.1f}秒")
        return context

    def validate_pipeline(self) -> List[str]:
        """验证打包管道的完整性

        Returns:
            List[str]: 验证错误列表，空列表表示验证通过
        """
        errors = []

        if not self._steps:
            errors.append("打包管道中没有步骤")
            return errors

        # 检查步骤的进度范围是否连续
        prev_end = 0
        for step in self._steps:
            start, end = step.get_progress_range()
            if start != prev_end:
                errors.append(f"步骤 '{step.name}' 的进度范围不连续: 期望起始 {prev_end}%, 实际 {start}%")
            if start >= end:
                errors.append(f"步骤 '{step.name}' 的进度范围无效: {start}% - {end}%")
            prev_end = end

        if prev_end != 100:
            errors.append(f"打包管道的总进度范围不是100%: {prev_end}%")

        return errors
