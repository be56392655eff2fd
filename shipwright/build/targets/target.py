"""
目标格式基类

Target 把打包好的应用目录转换为某种分发格式。
is_async_supported 为真的目标可以与同一架构的其他目标并行构建。
"""

from abc import ABC, abstractmethod
from pathlib import Path

from ...utils.logging import debug, LogStage
from ..core import Arch


class Target(ABC):
    """目标格式"""

    def __init__(self, name: str, out_dir: Path, is_async_supported: bool = True):
        self.name = name
        self.out_dir = Path(out_dir)
        self.is_async_supported = is_async_supported

    @abstractmethod
    def build(self, app_out_dir: Path, arch: Arch) -> None:
        """构建一个架构的产物"""

    def finish_build(self) -> None:
        """所有架构构建完成后调用"""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class DirTarget(Target):
    """只保留解包目录，不生成产物"""

    def __init__(self, out_dir: Path):
        super().__init__("dir", out_dir)

    def build(self, app_out_dir: Path, arch: Arch) -> None:
        debug(f"dir 目标无需处理: {app_out_dir}", stage=LogStage.TARGET)
