"""
Shipwright CLI 主入口

提供命令行接口，支持 build/validate/info 命令。
"""

import sys
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..utils import configure_logging
from .commands import build, validate


# 创建主应用
app = typer.Typer(
    name="shipwright",
    help="Shipwright - 桌面应用打包工具",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# 控制台输出
console = Console()


def version_callback(value: bool) -> None:
    """显示版本信息"""
    if value:
        console.print(f"Shipwright v{__version__}")
        raise typer.Exit()


def verbose_callback(verbose: bool) -> None:
    """配置详细输出"""
    configure_logging(level="DEBUG" if verbose else "INFO")


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="显示版本信息"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        callback=verbose_callback,
        help="启用详细输出"
    )
) -> None:
    """Shipwright - 把 Electron 风格的应用打包为各平台的分发格式

    使用 --help 查看可用命令的详细信息。
    """
    pass


# 注册子命令
app.command("build", help="打包应用")(build.build_command)
app.command("validate", help="验证配置文件")(validate.validate_command)


@app.command("info")
def info_command() -> None:
    """显示系统信息"""
    import zstandard

    from ..build.core import Arch, Platform

    table = Table(title="版本信息")
    table.add_column("组件", style="cyan")
    table.add_column("版本", style="green")

    table.add_row("Shipwright", __version__)
    table.add_row("Python", f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")
    table.add_row("zstandard", zstandard.__version__)
    table.add_row("当前平台", f"{Platform.current().display_name} ({Arch.default().name})")

    console.print(table)


if __name__ == "__main__":
    app()
