"""
下载与缓存工具

下载的文件先写入临时文件，校验通过后再原子替换到缓存位置，
所以缓存中只会出现完整的文件。
"""

import base64
import hashlib
import os
import shutil
import tempfile
import urllib.request
from pathlib import Path
from typing import Optional, Union

from ..errors import ToolError
from .logging import info, debug, LogStage
from .paths import ensure_directory

USER_AGENT = "shipwright"


def sha512_base64(file_path: Union[str, Path]) -> str:
    """计算文件的 sha512（base64 编码）"""
    hasher = hashlib.sha512()
    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(64 * 1024), b""):
            hasher.update(chunk)
    return base64.b64encode(hasher.digest()).decode("ascii")


def download_file(url: str, destination: Path, checksum: Optional[str] = None) -> Path:
    """下载文件到 destination

    Args:
        url: 下载地址
        destination: 目标文件
        checksum: 可选的 sha512（base64）校验值

    Raises:
        ToolError: 下载失败或校验不一致
    """
    ensure_directory(destination.parent)
    info(f"下载 {url}", stage=LogStage.INIT)

    fd, temp_name = tempfile.mkstemp(dir=destination.parent, suffix=".download")
    temp_path = Path(temp_name)
    try:
        request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
        with os.fdopen(fd, "wb") as handle, urllib.request.urlopen(request) as response:
            shutil.copyfileobj(response, handle)

        if checksum is not None:
            actual = sha512_base64(temp_path)
            if actual != checksum:
                raise ToolError(f"下载文件校验失败: {url}\n期望 {checksum}\n实际 {actual}")

        os.replace(temp_path, destination)
    except OSError as e:
        raise ToolError(f"下载失败 {url}: {e}") from e
    finally:
        if temp_path.exists():
            temp_path.unlink()

    debug(f"已下载到 {destination}", stage=LogStage.INIT)
    return destination
