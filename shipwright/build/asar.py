"""
asar 归档

格式：
    [uint32 4][uint32 头部长度]          # 头部长度 pickle
    [uint32 负载长度][int32 JSON 长度][JSON][对齐填充]  # 头部 pickle
    [文件数据...]

JSON 索引中目录为 {"files": {...}}，文件为 {"size", "offset", "integrity"}，
解包到 app.asar.unpacked 的文件为 {"size", "unpacked": true, "integrity"}。
"""

import hashlib
import json
import shutil
import struct
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..config.schema import AsarOptions
from ..errors import ConfigurationError, IntegrityError
from ..utils.download import sha512_base64
from ..utils.logging import debug, info, success, LogStage
from ..utils.paths import format_size
from .file_matcher import FileFilter
from .file_set import FileInfo, FileSet

BLOCK_SIZE = 4 * 1024 * 1024
SMART_UNPACK_EXTS = (".node", ".dll", ".exe")


def _align(length: int) -> int:
    return length + (4 - length % 4) % 4


def compute_integrity(data_source: Union[Path, bytes]) -> Dict[str, Any]:
    """计算文件完整性信息（整体 SHA256 以及每 4MB 一块的 SHA256）"""
    hasher = hashlib.sha256()
    blocks = []

    def feed(chunk: bytes) -> None:
        hasher.update(chunk)
        blocks.append(hashlib.sha256(chunk).hexdigest())

    if isinstance(data_source, bytes):
        for start in range(0, len(data_source), BLOCK_SIZE):
            feed(data_source[start:start + BLOCK_SIZE])
    else:
        with open(data_source, 'rb') as f:
            for chunk in iter(lambda: f.read(BLOCK_SIZE), b""):
                feed(chunk)

    if not blocks:
        blocks.append(hashlib.sha256(b"").hexdigest())

    return {
        "algorithm": "SHA256",
        "hash": hasher.hexdigest(),
        "blockSize": BLOCK_SIZE,
        "blocks": blocks,
    }


def _read_ordering(ordering_file: Path) -> List[str]:
    """读取排序文件，每行一个路径，可带 "名称: " 前缀"""
    result = []
    for line in ordering_file.read_text(encoding="utf-8").splitlines():
        if ":" in line:
            line = line.rsplit(":", 1)[1]
        line = line.strip().lstrip("/")
        if line:
            result.append(line)
    return result


class AsarPackager:
    """把应用文件打包为 resources/app.asar"""

    def __init__(
        self,
        src: Path,
        resources_path: Path,
        options: AsarOptions,
        unpack_filter: Optional[FileFilter] = None,
    ):
        self.src = Path(src)
        self.resources_path = Path(resources_path)
        self.options = options
        self.unpack_filter = unpack_filter
        self.output_file = self.resources_path / "app.asar"
        self.unpacked_dir = self.resources_path / "app.asar.unpacked"

    def _is_unpacked(self, file_info: FileInfo) -> bool:
        if self.unpack_filter is not None and self.unpack_filter(file_info.path, False):
            return True
        return self.options.smart_unpack and file_info.path.name.endswith(SMART_UNPACK_EXTS)

    def _collect(self, file_sets: Sequence[FileSet]) -> List[Tuple[str, FileInfo, FileSet]]:
        app_root = self.resources_path / "app"
        entries = []
        for file_set in file_sets:
            destination = Path(file_set.destination)
            if destination != app_root and app_root not in destination.parents:
                raise ConfigurationError(f"files 的 to 必须位于 resources/app 之内: {destination}")
            base = PurePosixPath(destination.relative_to(app_root).as_posix())
            for file_info in file_set.files:
                archive_path = (base / file_info.relative_path.as_posix()).as_posix()
                entries.append((archive_path, file_info, file_set))

        if self.options.ordering:
            ordering_file = Path(self.options.ordering)
            if not ordering_file.is_absolute():
                ordering_file = self.src / ordering_file
            order = {name: index for index, name in enumerate(_read_ordering(ordering_file))}
            entries.sort(key=lambda item: order.get(item[0], len(order)))
        return entries

    def pack(self, file_sets: Sequence[FileSet]) -> Path:
        """写入 app.asar，返回归档路径"""
        info(f"打包 asar: {self.output_file}", stage=LogStage.ASAR)
        self.resources_path.mkdir(parents=True, exist_ok=True)

        header: Dict[str, Any] = {"files": {}}
        payload: List[Tuple[Path, Optional[bytes]]] = []
        offset = 0
        unpacked_count = 0

        for archive_path, file_info, file_set in self._collect(file_sets):
            parts = archive_path.split("/")
            if file_info.is_directory:
                self._get_dir_node(header, parts)
                continue

            node = self._get_dir_node(header, parts[:-1])
            data = file_set.transformer(file_info.path) if file_set.transformer is not None else None
            size = len(data) if data is not None else file_info.size
            entry: Dict[str, Any] = {
                "size": size,
                "integrity": compute_integrity(data if data is not None else file_info.path),
            }

            if self._is_unpacked(file_info):
                entry["unpacked"] = True
                target = self.unpacked_dir / archive_path
                target.parent.mkdir(parents=True, exist_ok=True)
                if data is None:
                    shutil.copy2(file_info.path, target)
                else:
                    target.write_bytes(data)
                unpacked_count += 1
            else:
                entry["offset"] = str(offset)
                offset += size
                payload.append((file_info.path, data))

            node["files"][parts[-1]] = entry

        header_json = json.dumps(header, separators=(",", ":")).encode("utf-8")
        header_pickle = struct.pack("<Ii", _align(len(header_json)) + 4, len(header_json))
        header_pickle += header_json + b"\0" * (_align(len(header_json)) - len(header_json))
        size_pickle = struct.pack("<II", 4, len(header_pickle))

        with open(self.output_file, 'wb') as out:
            out.write(size_pickle)
            out.write(header_pickle)
            for path, data in payload:
                if data is not None:
                    out.write(data)
                else:
                    with open(path, 'rb') as f:
                        shutil.copyfileobj(f, out)

        success(f"asar 打包完成: {len(payload)} 个文件，{format_size(offset)}", stage=LogStage.ASAR)
        if unpacked_count:
            info(f"  解包文件: {unpacked_count}", stage=LogStage.ASAR)
        return self.output_file

    @staticmethod
    def _get_dir_node(header: Dict[str, Any], parts: Sequence[str]) -> Dict[str, Any]:
        node = header
        for part in parts:
            if not part:
                continue
            node = node["files"].setdefault(part, {"files": {}})
        return node


class AsarFilesystem:
    """只读的 asar 索引"""

    def __init__(self, src: Path, header: Dict[str, Any], header_size: int):
        self.src = Path(src)
        self.header = header
        self.header_size = header_size

    @classmethod
    def read(cls, path: Union[str, Path]) -> "AsarFilesystem":
        """读取 asar 头部

        Raises:
            ValueError: 文件格式不正确
        """
        path = Path(path)
        with open(path, 'rb') as f:
            size_pickle = f.read(8)
            if len(size_pickle) != 8:
                raise ValueError("头部长度不完整")
            _, header_size = struct.unpack("<II", size_pickle)
            header_pickle = f.read(header_size)
            if len(header_pickle) != header_size or header_size < 8:
                raise ValueError("头部不完整")

        _, json_size = struct.unpack("<Ii", header_pickle[:8])
        header = json.loads(header_pickle[8:8 + json_size].decode("utf-8"))
        if not isinstance(header, dict) or "files" not in header:
            raise ValueError("头部缺少 files 字段")
        return cls(path, header, 8 + header_size)

    def get_node(self, relative_path: str) -> Optional[Dict[str, Any]]:
        """按相对路径查找节点，不存在时返回 None"""
        node = self.header
        for part in PurePosixPath(relative_path.replace("\\", "/")).parts:
            if part in ("", "."):
                continue
            children = node.get("files")
            if children is None or part not in children:
                return None
            node = children[part]
        return node

    def read_file(self, relative_path: str) -> bytes:
        """读取归档内的文件内容"""
        node = self.get_node(relative_path)
        if node is None or "files" in node:
            raise FileNotFoundError(relative_path)
        if node.get("unpacked"):
            return (self.src.parent / f"{self.src.name}.unpacked" / relative_path).read_bytes()
        with open(self.src, 'rb') as f:
            f.seek(self.header_size + int(node["offset"]))
            return f.read(node["size"])


def check_file_in_archive(asar_path: Union[str, Path], relative_file: str, message_prefix: str) -> None:
    """检查归档中存在指定的普通文件

    Raises:
        IntegrityError: 归档损坏、文件不存在或文件为空
    """
    asar_path = Path(asar_path)

    def error(text: str) -> IntegrityError:
        return IntegrityError(f'{message_prefix} "{relative_file}" 在 "{asar_path}" 中{text}')

    if not asar_path.is_file():
        raise error("不存在，请检查配置")

    try:
        filesystem = AsarFilesystem.read(asar_path)
    except (OSError, ValueError) as e:
        raise error(f"已损坏: {e}") from e

    node = filesystem.get_node(relative_file)
    if node is None or "files" in node or "link" in node:
        raise error("不存在，请检查配置")
    if node.get("unpacked"):
        loose_file = asar_path.parent / f"{asar_path.name}.unpacked" / relative_file
        if not loose_file.is_file():
            raise error(f"已标记为解包，但 {loose_file} 不存在")
    if node.get("size", 0) == 0:
        raise error("已损坏: 文件大小为 0")
    debug(f"已确认 {relative_file} 在 {asar_path.name} 中", stage=LogStage.CHECK)


def compute_asar_integrity(resources_path: Union[str, Path], external_allowed: bool = False) -> Dict[str, Any]:
    """计算 resources 目录下所有 .asar 文件的 sha512

    Returns:
        {"checksums": {文件名: sha512-base64}}，允许外部 asar 时附加 "externalAllowed": True
    """
    resources_path = Path(resources_path)
    names = sorted(item.name for item in resources_path.iterdir() if item.name.endswith(".asar") and item.is_file())
    result: Dict[str, Any] = {"checksums": {name: sha512_base64(resources_path / name) for name in names}}
    if external_allowed:
        result["externalAllowed"] = True
    return result
