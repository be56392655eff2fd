"""
测试公共夹具

构造最小的应用项目和伪造的 Electron 运行时目录（不下载真实运行时）。
"""

import json
import plistlib
from pathlib import Path

import pytest

from shipwright.build.core import Platform
from shipwright.build.packager import Packager, PackagerOptions
from shipwright.build.packagers import create_platform_packager
from shipwright.config.schema import Configuration

DEFAULT_METADATA = {
    "name": "foo",
    "version": "1.2.3",
    "main": "index.js",
    "description": "Foo app",
    "author": "Acme",
    "scripts": {"start": "electron ."},
    "devDependencies": {"electron": "30.0.0"},
}


def write(path: Path, content="x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def make_project(tmp_path):
    """创建应用项目，返回项目目录"""

    def factory(metadata=None, files=None, name="project"):
        project = tmp_path / name
        package = dict(DEFAULT_METADATA)
        package.update(metadata or {})
        write(project / "package.json", json.dumps(package, indent=2))
        contents = {"index.js": "console.log('hello')", "lib/util.js": "module.exports = {}"}
        contents.update(files or {})
        for relative, content in contents.items():
            write(project / relative, content)
        return project

    return factory


@pytest.fixture
def make_runtime(tmp_path):
    """创建伪造的 Electron 运行时目录"""

    def factory(platform: Platform):
        runtime = tmp_path / f"runtime-{platform.build_configuration_key}"
        write(runtime / "LICENSE", "MIT")
        write(runtime / "version", "30.0.0")
        if platform is Platform.MAC:
            contents = runtime / "Electron.app" / "Contents"
            write(contents / "MacOS" / "Electron", "binary")
            write(contents / "Resources" / "default_app.asar", "default")
            write(contents / "Info.plist", plistlib.dumps({"CFBundleExecutable": "Electron", "CFBundleName": "Electron"}))
        else:
            write(runtime / ("electron.exe" if platform is Platform.WINDOWS else "electron"), "binary")
            write(runtime / "resources" / "default_app.asar", "default")
        return runtime

    return factory


@pytest.fixture
def create_packager(make_project, make_runtime):
    """创建 (Packager, 平台打包器)"""

    def factory(platform=Platform.LINUX, config=None, project=None, **options):
        project = project or make_project()
        data = {"electronDist": str(make_runtime(platform))}
        data.update(config or {})
        packager = Packager(PackagerOptions(project_dir=project, config=Configuration.from_dict(data), **options))
        return packager, create_platform_packager(packager, platform)

    return factory
