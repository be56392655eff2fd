"""
异常定义

打包过程中的所有失败都继承自 BuildError：
- ConfigurationError: 用户可以修正的配置问题
- IntegrityError: 打包结果不完整（输出目录、入口文件缺失等）
- ToolError: 外部工具执行失败或输出无法解析
"""

from typing import Optional, Sequence


class BuildError(Exception):
    """构建错误"""
    pass


class ConfigurationError(BuildError):
    """配置错误

    Attributes:
        code: 可选的错误代码，例如 ERR_MACRO_NOT_DEFINED
    """

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class IntegrityError(BuildError):
    """打包结果完整性检查失败"""
    pass


class ToolError(BuildError):
    """外部工具错误"""
    pass


class ExecError(ToolError):
    """外部进程以非零状态退出"""

    def __init__(self, command: Sequence[str], exit_code: Optional[int], stdout: str = "", stderr: str = ""):
        self.command = list(command)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr

        message = f"进程执行失败 (exit code {exit_code}): {' '.join(self.command)}"
        if stderr.strip():
            message += f"\n{stderr.strip()}"
        super().__init__(message)
