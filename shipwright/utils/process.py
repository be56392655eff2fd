"""
外部进程调用

所有外部工具（app-builder、7za、codesign、wine 等）都通过 exec_command 执行，
失败时抛出 ExecError，便于在调用方统一处理和测试时替换。
"""

import os
import subprocess
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from ..errors import ExecError
from .logging import debug


def is_env_true(value: Optional[str]) -> bool:
    """环境变量是否为真值"""
    if value is None:
        return False
    return value.strip().lower() in ("true", "1", "")


def compute_env(old_value: Optional[str], new_values: List[str]) -> str:
    """计算路径型环境变量，新值在前，原值保留在末尾作为回退"""
    parts = list(new_values)
    if old_value:
        parts.append(old_value)
    return os.pathsep.join(parts)


def exec_command(
    file: Union[str, Path],
    args: Sequence[str] = (),
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
) -> str:
    """执行外部命令并返回标准输出

    Args:
        file: 可执行文件
        args: 参数列表
        env: 完整的环境变量（None 表示继承当前进程）
        cwd: 工作目录
        timeout: 超时秒数

    Returns:
        str: 标准输出

    Raises:
        FileNotFoundError: 可执行文件不存在
        ExecError: 进程非零退出或超时
    """
    command = [str(file), *[str(arg) for arg in args]]
    debug(f"执行: {' '.join(command)}")

    try:
        completed = subprocess.run(
            command,
            env=dict(env) if env is not None else None,
            cwd=str(cwd) if cwd is not None else None,
            timeout=timeout,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except subprocess.TimeoutExpired as e:
        raise ExecError(command, None, stderr=f"超时 ({timeout}s)") from e

    if completed.returncode != 0:
        raise ExecError(command, completed.returncode, completed.stdout, completed.stderr)

    if completed.stderr.strip():
        debug(f"stderr: {completed.stderr.strip()}")
    return completed.stdout


def merge_env(base: Optional[Mapping[str, str]], overlay: Optional[Mapping[str, str]]) -> Optional[Dict[str, str]]:
    """合并环境变量，overlay 中的键优先"""
    if overlay is None:
        return dict(base) if base is not None else None
    if base is None:
        return dict(overlay)
    return {**base, **overlay}
