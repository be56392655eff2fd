"""
文件集合

把匹配器解析为具体的文件列表。
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..utils.logging import debug, LogStage
from .file_matcher import FileFilter, FileMatcher

# 返回 None 表示不修改文件内容
Transformer = Callable[[Path], Optional[bytes]]


@dataclass
class FileInfo:
    """文件信息"""
    path: Path  # 绝对路径
    relative_path: Path  # 相对于源目录的路径
    size: int  # 文件大小（字节）
    mtime: float  # 修改时间（时间戳）
    is_directory: bool = False  # 是否为目录


@dataclass
class FileSet:
    """解析后的一组文件：源目录 -> 目标目录"""
    src: Path
    destination: Path
    files: List[FileInfo] = field(default_factory=list)
    transformer: Optional[Transformer] = None

    @property
    def file_count(self) -> int:
        return sum(1 for f in self.files if not f.is_directory)


def walk(root: Path, file_filter: Optional[FileFilter] = None) -> List[FileInfo]:
    """按字典序遍历目录，被过滤掉的目录不会继续向下遍历

    只保留包含匹配文件的目录，部分匹配但最终没有文件的目录被丢弃。
    """
    root = Path(root)
    entries: List[FileInfo] = []
    for dir_path, dir_names, file_names in os.walk(root):
        current = Path(dir_path)
        dir_names.sort()

        kept_dirs = []
        for name in dir_names:
            full_path = current / name
            if file_filter is not None and not file_filter(full_path, True):
                continue
            kept_dirs.append(name)
            stat = full_path.stat()
            entries.append(FileInfo(full_path, full_path.relative_to(root), 0, stat.st_mtime, True))
        dir_names[:] = kept_dirs

        for name in sorted(file_names):
            full_path = current / name
            if file_filter is not None and not file_filter(full_path, False):
                continue
            stat = full_path.stat()
            entries.append(FileInfo(full_path, full_path.relative_to(root), stat.st_size, stat.st_mtime))

    parents = {parent for f in entries if not f.is_directory for parent in f.relative_path.parents}
    return [f for f in entries if not f.is_directory or f.relative_path in parents]


def compute_file_sets(matchers: Sequence[FileMatcher], transformer: Optional[Transformer] = None) -> List[FileSet]:
    """解析匹配器，只返回包含文件的集合"""
    result = []
    for matcher in matchers:
        if not matcher.from_dir.is_dir():
            debug(f"源目录不存在，跳过: {matcher.from_dir}", stage=LogStage.COPY)
            continue

        files = list(walk(matcher.from_dir, matcher.create_filter()))
        file_set = FileSet(matcher.from_dir, matcher.to_dir, files, transformer)
        if file_set.file_count == 0:
            debug(f"没有匹配的文件: {matcher}", stage=LogStage.COPY)
            continue
        result.append(file_set)
    return result
