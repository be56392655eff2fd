"""
压缩包目标

zip 使用 zipfile，tar.zst 使用 tarfile + zstandard。
macOS 上压缩 .app 应用包本身，其他平台压缩应用目录中的内容。
"""

import os
import tarfile
import zipfile
from pathlib import Path
from typing import Dict, Iterator, Tuple, TYPE_CHECKING

import zstandard as zstd

from ...errors import ConfigurationError
from ...utils.logging import info, success, LogStage
from ...utils.paths import ensure_directory, format_size, unlink_if_exists
from ..core import Arch, CompressionLevel, Platform
from .target import Target

if TYPE_CHECKING:
    from ..platform_packager import PlatformPackager

ARCHIVE_FORMATS = ("zip", "tar.zst")

ZIP_LEVELS: Dict[str, Tuple[int, int]] = {
    "store": (zipfile.ZIP_STORED, 0),
    "normal": (zipfile.ZIP_DEFLATED, 6),
    "maximum": (zipfile.ZIP_DEFLATED, 9),
}

ZSTD_LEVELS: Dict[str, int] = {
    "store": 1,
    "normal": 3,
    "maximum": 19,
}


def _iter_tree(root: Path, prefix: str) -> Iterator[Tuple[Path, str]]:
    """按字典序遍历目录，返回 (路径, 归档内路径)"""
    for dir_path, dir_names, file_names in os.walk(root):
        dir_names.sort()
        current = Path(dir_path)
        relative = current.relative_to(root).as_posix()
        base = prefix if relative == "." else f"{prefix}{relative}/"
        if relative != "." or prefix:
            yield current, base
        for name in sorted(file_names):
            yield current / name, f"{base}{name}"


class ArchiveTarget(Target):
    """zip / tar.zst 压缩包"""

    def __init__(self, name: str, out_dir: Path, packager: "PlatformPackager"):
        if name not in ARCHIVE_FORMATS:
            raise ConfigurationError(f"不支持的压缩包格式: {name}")
        super().__init__(name, out_dir)
        self.packager = packager

    @property
    def compression(self) -> CompressionLevel:
        return self.packager.compression

    def _source(self, app_out_dir: Path) -> Tuple[Path, str]:
        if self.packager.platform is Platform.MAC:
            app_name = f"{self.packager.app_info.product_filename}.app"
            return Path(app_out_dir) / app_name, f"{app_name}/"
        return Path(app_out_dir), ""

    def build(self, app_out_dir: Path, arch: Arch) -> None:
        artifact_name = self.packager.expand_artifact_name_pattern(None, self.name, arch)
        artifact_path = ensure_directory(self.out_dir) / artifact_name
        info(f"构建 {self.name}: {artifact_path.name}", stage=LogStage.TARGET)

        unlink_if_exists(artifact_path)
        source, prefix = self._source(app_out_dir)
        if self.name == "zip":
            self._write_zip(source, prefix, artifact_path)
        else:
            self._write_tar_zst(source, prefix, artifact_path)

        success(f"{self.name} 构建完成: {artifact_path.name} ({format_size(artifact_path.stat().st_size)})",
                stage=LogStage.TARGET)
        self.packager.dispatch_artifact_created(
            artifact_path,
            self,
            arch,
            self.packager.compute_safe_artifact_name(artifact_name, self.name, arch),
        )

    def _write_zip(self, source: Path, prefix: str, artifact_path: Path) -> None:
        compression, level = ZIP_LEVELS[self.compression]
        kwargs = {"compresslevel": level} if compression == zipfile.ZIP_DEFLATED else {}
        with zipfile.ZipFile(artifact_path, 'w', compression, **kwargs) as zf:
            for path, archive_path in _iter_tree(source, prefix):
                zf.write(path, archive_path)

    def _write_tar_zst(self, source: Path, prefix: str, artifact_path: Path) -> None:
        cctx = zstd.ZstdCompressor(level=ZSTD_LEVELS[self.compression])
        with open(artifact_path, 'wb') as out:
            with cctx.stream_writer(out, closefd=False) as compressor:
                with tarfile.open(fileobj=compressor, mode="w|") as tar:
                    for path, archive_path in _iter_tree(source, prefix):
                        tar.add(path, arcname=archive_path.rstrip("/"), recursive=False)
