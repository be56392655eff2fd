"""
构建器主类

打包入口：创建 Packager 并执行所有平台的打包，把失败转换为 BuildResult。
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..config.loader import ConfigError, ConfigValidationError
from ..utils.logging import error, LogStage
from .build_context import BuildError, ProgressCallback
from .packager import Packager, PackagerOptions
from .pipeline import PackPipeline
from .task_manager import CancellationToken


@dataclass
class BuildResult:
    """构建结果"""
    success: bool
    artifacts: List[Path] = field(default_factory=list)
    output_dir: Optional[Path] = None
    build_time: Optional[float] = None
    cancelled: bool = False
    error: Optional[str] = None


class Builder:
    """应用打包器

    统一的构建接口；cancel() 可以从其他线程调用。
    """

    def __init__(self):
        self.cancellation_token = CancellationToken()

    def build(
        self,
        options: PackagerOptions,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BuildResult:
        """打包应用

        Args:
            options: 打包选项
            progress_callback: 进度回调函数

        Returns:
            BuildResult: 构建结果，失败时 success 为 False 并带有错误信息
        """
        start_time = time.time()
        packager: Optional[Packager] = None
        try:
            packager = Packager(options, self.cancellation_token, progress_callback)
            artifacts = packager.build()
            return BuildResult(
                success=True,
                artifacts=[artifact.file for artifact in artifacts],
                output_dir=packager.output_dir,
                build_time=time.time() - start_time,
                cancelled=self.cancellation_token.cancelled,
            )

        except (BuildError, ConfigError) as e:
            message = str(e)
            if isinstance(e, ConfigValidationError):
                message = f"{message}\n{e.format_errors()}"
            error(f"构建失败: {message}", stage=LogStage.ERROR)
            return BuildResult(
                success=False,
                output_dir=None if packager is None else packager.output_dir,
                build_time=time.time() - start_time,
                error=message,
            )
        finally:
            if packager is not None:
                packager.cleanup()

    def cancel(self) -> None:
        """请求取消，在下一个检查点生效"""
        self.cancellation_token.cancel()

    def validate_build_pipeline(self) -> List[str]:
        """验证打包管道的完整性

        Returns:
            List[str]: 验证错误列表，空列表表示验证通过
        """
        return PackPipeline().validate_pipeline()
