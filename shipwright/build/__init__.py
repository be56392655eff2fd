"""打包模块"""

from .build_context import (
    BuildError,
    ConfigurationError,
    ExecError,
    IntegrityError,
    ToolError,
    PackContext,
    PipelineContext,
)
from .builder import Builder, BuildResult
from .core import Arch, Platform
from .packager import Packager, PackagerOptions
from .pipeline import PackPipeline
from .platform_packager import ArtifactCreated, PlatformPackager
from .task_manager import CancellationToken, TaskManager

__all__ = [
    "ArtifactCreated",
    "Arch",
    "BuildError",
    "BuildResult",
    "Builder",
    "CancellationToken",
    "ConfigurationError",
    "ExecError",
    "IntegrityError",
    "PackContext",
    "PackPipeline",
    "Packager",
    "PackagerOptions",
    "PipelineContext",
    "Platform",
    "PlatformPackager",
    "TaskManager",
    "ToolError",
]
