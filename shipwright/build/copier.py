"""
文件复制

把解析后的文件集合复制到输出目录，必要时在复制过程中改写文件内容。
"""

import json
import shutil
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from ..utils.logging import debug, warning, LogStage
from ..utils.merge import deep_assign
from .file_matcher import FileMatcher
from .file_set import FileSet, Transformer, walk

# 只在构建时使用，不需要出现在打包后的 package.json 中
BUILD_ONLY_KEYS = frozenset({
    "build",
    "directories",
    "devDependencies",
    "scripts",
    "gitHead",
    "bundleDependencies",
    "bundledDependencies",
})


def cleanup_package_json(data: Dict[str, Any]) -> Dict[str, Any]:
    """去掉构建专用的键和以下划线开头的 npm 内部键"""
    return {key: value for key, value in data.items() if key not in BUILD_ONLY_KEYS and not key.startswith("_")}


def create_transformer(app_dir: Path, extra_metadata: Optional[Dict[str, Any]] = None) -> Transformer:
    """创建文件转换函数

    只改写应用根目录的 package.json：合并 extraMetadata 并清理构建专用字段。
    """
    package_json = Path(app_dir) / "package.json"

    def transform(file: Path) -> Optional[bytes]:
        if Path(file) != package_json:
            return None

        data = json.loads(package_json.read_text(encoding="utf-8"))
        if extra_metadata:
            deep_assign(data, extra_metadata)
        data = cleanup_package_json(data)
        return json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8")

    return transform


def copy_file_set(file_set: FileSet) -> int:
    """复制一个文件集合

    Returns:
        int: 复制的文件数量
    """
    copied = 0
    for file_info in file_set.files:
        target = file_set.destination / file_info.relative_path
        if file_info.is_directory:
            target.mkdir(parents=True, exist_ok=True)
            continue

        target.parent.mkdir(parents=True, exist_ok=True)
        data = file_set.transformer(file_info.path) if file_set.transformer is not None else None
        if data is None:
            shutil.copy2(file_info.path, target)
        else:
            debug(f"改写: {file_info.relative_path}", stage=LogStage.COPY)
            target.write_bytes(data)
        copied += 1
    return copied


def copy_files(matchers: Optional[Sequence[FileMatcher]]) -> int:
    """复制 extraResources / extraFiles

    源路径是文件时直接复制（目标是已存在的目录时复制到目录内），
    是目录时按模式过滤后复制整个目录。

    Returns:
        int: 复制的文件数量
    """
    if not matchers:
        return 0

    copied = 0
    for matcher in matchers:
        from_dir = matcher.from_dir
        if not from_dir.exists():
            warning(f"源路径不存在: {from_dir}", stage=LogStage.EXTRA)
            continue

        if from_dir.is_file():
            target = matcher.to_dir
            if target.is_dir():
                target = target / from_dir.name
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(from_dir, target)
            copied += 1
            continue

        if matcher.is_empty() or matcher.contains_only_ignore():
            matcher.prepend_pattern("**/*")
        debug(f"按模式复制: {matcher}", stage=LogStage.EXTRA)

        file_set = FileSet(from_dir, matcher.to_dir, list(walk(from_dir, matcher.create_filter())))
        copied += copy_file_set(file_set)
    return copied
