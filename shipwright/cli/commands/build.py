"""
Build 命令实现

打包应用的核心命令。
"""

import traceback
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console

from ...build.core import Arch, Platform
from ...utils.logging import set_log_level, set_log_file, OutputLevel


console = Console()


def build_command(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="配置文件路径（默认查找 electron-builder.yml 或 package.json）"),
    project_dir: str = typer.Option(".", "--project-dir", help="项目目录"),
    mac: bool = typer.Option(False, "--mac", "-m", help="打包 macOS 版本"),
    win: bool = typer.Option(False, "--win", "-w", help="打包 Windows 版本"),
    linux: bool = typer.Option(False, "--linux", "-l", help="打包 Linux 版本"),
    target: Optional[List[str]] = typer.Option(None, "--target", "-t", help="目标格式，例如 zip、tar.zst、dir（可重复）"),
    x64: bool = typer.Option(False, "--x64", help="x64 架构"),
    ia32: bool = typer.Option(False, "--ia32", help="ia32 架构"),
    armv7l: bool = typer.Option(False, "--armv7l", help="armv7l 架构"),
    arm64: bool = typer.Option(False, "--arm64", help="arm64 架构"),
    prepackaged: Optional[str] = typer.Option(None, "--prepackaged", help="已打包的应用目录，只构建目标格式"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="日志输出文件"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出详细调试日志 (DEBUG 级别)"),
) -> None:
    """打包应用

    不指定平台时打包当前平台，不指定架构时使用当前架构。

    示例:
        shipwright build --linux -t tar.zst
        shipwright build --win --mac --x64 --arm64 -c electron-builder.yml
    """
    from ...build.builder import Builder
    from ...build.packager import PackagerOptions

    # 初始化日志：在任何输出前设置
    set_log_level(OutputLevel.DEBUG if verbose else OutputLevel.INFO)
    if log_file:
        try:
            set_log_file(log_file)
        except OSError:
            console.print(f"[yellow]无法写入日志文件: {log_file}[/yellow]")

    platforms = [p for p, selected in ((Platform.MAC, mac), (Platform.WINDOWS, win), (Platform.LINUX, linux)) if selected]
    archs = [a for a, selected in ((Arch.x64, x64), (Arch.ia32, ia32), (Arch.armv7l, armv7l), (Arch.arm64, arm64)) if selected]
    targets: Dict[Platform, Dict[Arch, List[str]]] = {
        platform: {arch: list(target or []) for arch in (archs or [Arch.default()])}
        for platform in (platforms or [Platform.current()])
    }

    options = PackagerOptions(
        project_dir=Path(project_dir),
        config=config,
        targets=targets,
        prepackaged=Path(prepackaged) if prepackaged else None,
    )

    def progress_callback(stage: str, current: int, total: int, message: str = "") -> None:
        """进度回调函数，显示进度"""
        if total > 0:
            percentage = (current / total) * 100
            if message:
                console.print(f"[blue]{stage}[/blue]: {message} ({percentage:.0f}%)")
            else:
                console.print(f"[blue]{stage}[/blue]: {percentage:.0f}%")

    console.print("[cyan]开始打包...[/cyan]")
    try:
        result = Builder().build(options, progress_callback=progress_callback)
    except Exception as e:
        console.print(f"[red]✗ 打包过程中发生意外错误[/red]: {e}")
        if log_file:
            console.print(f"[yellow]详细错误信息:[/yellow]\n{traceback.format_exc()}")
        raise typer.Exit(1)

    if not result.success:
        console.print(f"[red]✗ 打包失败[/red]: {result.error}")
        if log_file:
            console.print(f"[yellow]请检查日志文件 {log_file} 获取详细信息。[/yellow]")
        raise typer.Exit(1)

    if result.cancelled:
        console.print("[yellow]打包已取消[/yellow]")
        return

    console.print(f"[green]✓ 打包完成[/green]: {result.output_dir} ({result.build_time:.1f}秒)")
    for artifact in result.artifacts:
        console.print(f"  [blue]产物[/blue]: {artifact}")
