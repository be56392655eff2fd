"""
平台打包器与打包管道单元测试

使用伪造的运行时目录执行完整的打包流程。
"""

import json
import shutil
from pathlib import Path

import pytest

from shipwright.build.asar import AsarFilesystem, AsarPackager
from shipwright.build.core import Arch, Platform
from shipwright.build.file_matcher import FileMatcher
from shipwright.build.file_set import compute_file_sets
from shipwright.build.packager import Packager, PackagerOptions
from shipwright.build.pipeline import PackPipeline
from shipwright.build.steps.build_step import PackStep
from shipwright.build.task_manager import CancellationToken
from shipwright.config.schema import AsarOptions, Configuration
from shipwright.errors import BuildError, ConfigurationError, IntegrityError

LINUX_X64_DIR = {Platform.LINUX: {Arch.x64: ["dir"]}}


class TestComputeAsarOptions:
    """asar 选项计算测试"""

    @pytest.mark.parametrize("value", [None, False, True, "**/*.node", ["a", "b"]])
    def test_legacy_asar_unpack_key(self, create_packager, value):
        _, packager = create_packager(config={"asar-unpack": value})
        with pytest.raises(ConfigurationError) as exc_info:
            packager.compute_asar_options(packager.platform_specific_build_options)
        assert "asarUnpack" in str(exc_info.value)

    def test_legacy_asar_unpack_dir_key(self, create_packager):
        _, packager = create_packager(config={"asar-unpack-dir": "native"})
        with pytest.raises(ConfigurationError):
            packager.compute_asar_options(packager.platform_specific_build_options)

    @pytest.mark.parametrize("legacy", [{"unpackDir": "x"}, {"unpack": "*.node"}])
    def test_legacy_nested_keys(self, create_packager, legacy):
        _, packager = create_packager(config={"asar": legacy})
        with pytest.raises(ConfigurationError):
            packager.compute_asar_options(packager.platform_specific_build_options)

    def test_default(self, create_packager):
        _, packager = create_packager()
        options = packager.compute_asar_options(packager.platform_specific_build_options)
        assert options == AsarOptions()

    def test_disabled(self, create_packager):
        _, packager = create_packager(config={"asar": False})
        assert packager.compute_asar_options(packager.platform_specific_build_options) is None

    def test_object_is_merged_over_defaults(self, create_packager):
        _, packager = create_packager(config={"asar": {"externalAllowed": True}})
        options = packager.compute_asar_options(packager.platform_specific_build_options)
        assert options.external_allowed is True
        assert options.smart_unpack is True

    def test_platform_value_wins(self, create_packager):
        _, packager = create_packager(config={"asar": True, "linux": {"asar": False}})
        assert packager.compute_asar_options(packager.platform_specific_build_options) is None


class TestSanityCheck:
    """打包结果检查测试"""

    def test_missing_output_directory(self, create_packager, tmp_path):
        _, packager = create_packager()
        missing = tmp_path / "does-not-exist"
        with pytest.raises(IntegrityError) as exc_info:
            packager.sanity_check_package(missing, True)
        assert str(missing) in str(exc_info.value)

    def test_output_is_not_a_directory(self, create_packager, tmp_path):
        _, packager = create_packager()
        file = tmp_path / "file"
        file.write_text("x", encoding="utf-8")
        with pytest.raises(IntegrityError) as exc_info:
            packager.sanity_check_package(file, True)
        assert str(file) in str(exc_info.value)

    def test_entry_inside_nested_archive(self, create_packager, tmp_path):
        _, packager = create_packager()
        src = tmp_path / "nested-src"
        (src / "dir").mkdir(parents=True)
        (src / "dir" / "index.js").write_text("module.exports = 1", encoding="utf-8")
        staging = tmp_path / "staging"
        matcher = FileMatcher(src, staging / "app", lambda p: p, ["**/*"])
        asar = AsarPackager(src, staging, AsarOptions()).pack(compute_file_sets([matcher]))

        resources = tmp_path / "out" / "resources"
        (resources / "app" / "sub").mkdir(parents=True)
        shutil.move(str(asar), str(resources / "app" / "sub" / "arch.asar"))

        packager.check_file_in_package(resources, "sub/arch.asar/dir/index.js", "入口文件", False)
        with pytest.raises(IntegrityError) as exc_info:
            packager.check_file_in_package(resources, "sub/arch.asar/dir/missing.js", "入口文件", False)
        assert "dir/missing.js" in str(exc_info.value)

    def test_entry_is_directory(self, create_packager, tmp_path):
        _, packager = create_packager()
        resources = tmp_path / "resources"
        (resources / "app" / "index.js").mkdir(parents=True)
        with pytest.raises(IntegrityError):
            packager.check_file_in_package(resources, "index.js", "入口文件", False)


class TestGetResource:
    """构建资源查找测试"""

    def test_default_names(self, create_packager, make_project):
        project = make_project(files={"build/background.png": "png"})
        _, packager = create_packager(project=project)
        assert packager.get_resource(None, "background.tiff", "background.png") == packager.build_resources_dir / "background.png"
        assert packager.get_resource(None, "missing.png") is None

    def test_custom_path(self, create_packager, make_project):
        project = make_project(files={"build/entitlements.plist": "x", "assets/license.txt": "x"})
        _, packager = create_packager(project=project)
        assert packager.get_resource("entitlements.plist") == packager.build_resources_dir / "entitlements.plist"
        assert packager.get_resource("assets/license.txt") == (project / "assets" / "license.txt").resolve()
        assert packager.get_resource("  ") is None

    def test_custom_path_missing(self, create_packager):
        _, packager = create_packager()
        with pytest.raises(ConfigurationError, match="nothing.txt"):
            packager.get_resource("nothing.txt")


class TestPack:
    """完整打包流程测试（Linux）"""

    def test_asar_pack(self, create_packager):
        info, _ = create_packager(targets=LINUX_X64_DIR)
        assert info.build() == []

        app_out_dir = info.output_dir / "linux-unpacked"
        resources = app_out_dir / "resources"
        filesystem = AsarFilesystem.read(resources / "app.asar")
        assert filesystem.read_file("index.js") == b"console.log('hello')"
        assert filesystem.get_node("lib/util.js") is not None

        package = json.loads(filesystem.read_file("package.json"))
        assert package["name"] == "foo"
        assert "scripts" not in package
        assert "devDependencies" not in package

        assert (app_out_dir / "foo").is_file()
        assert not (app_out_dir / "electron").exists()
        assert not (resources / "default_app.asar").exists()
        assert not (app_out_dir / "version").exists()
        assert (app_out_dir / "LICENSE.electron.txt").is_file()

    def test_prepacked_app_asar_is_copied_as_is(self, create_packager, make_project, tmp_path):
        src = tmp_path / "prebuilt"
        (src / "native").mkdir(parents=True)
        (src / "package.json").write_text(
            json.dumps({"name": "foo", "main": "index.js", "scripts": {"start": "electron ."}}), encoding="utf-8"
        )
        (src / "index.js").write_text("prebuilt", encoding="utf-8")
        staging = tmp_path / "staging"
        matcher = FileMatcher(src, staging / "app", lambda p: p, ["**/*"])
        prebuilt = AsarPackager(src, staging, AsarOptions()).pack(compute_file_sets([matcher]))

        project = make_project(files={
            "app.asar": prebuilt.read_bytes(),
            "app.asar.unpacked/native/addon.node": b"addon",
        })
        info, _ = create_packager(project=project, targets=LINUX_X64_DIR)
        assert info.build() == []

        resources = info.output_dir / "linux-unpacked" / "resources"
        assert (resources / "app.asar").read_bytes() == prebuilt.read_bytes()
        assert (resources / "app.asar.unpacked" / "native" / "addon.node").read_bytes() == b"addon"
        assert not (resources / "app").exists()

        filesystem = AsarFilesystem.read(resources / "app.asar")
        assert filesystem.read_file("index.js") == b"prebuilt"
        assert "scripts" in json.loads(filesystem.read_file("package.json"))

    def test_output_and_build_resources_are_not_packed(self, create_packager, make_project):
        project = make_project(files={"build/icon.png": "png", "dist/old.zip": "zip"})
        info, _ = create_packager(project=project, targets=LINUX_X64_DIR)
        info.build()

        filesystem = AsarFilesystem.read(info.output_dir / "linux-unpacked" / "resources" / "app.asar")
        assert filesystem.get_node("build") is None
        assert filesystem.get_node("dist") is None

    def test_without_asar(self, create_packager):
        info, _ = create_packager(config={"asar": False}, targets=LINUX_X64_DIR)
        info.build()

        app = info.output_dir / "linux-unpacked" / "resources" / "app"
        assert (app / "index.js").is_file()
        assert (app / "lib" / "util.js").is_file()
        assert "scripts" not in json.loads((app / "package.json").read_text(encoding="utf-8"))
        assert not (app.parent / "app.asar").exists()

    def test_without_asar_skips_directories_without_matched_files(self, create_packager, make_project):
        project = make_project(files={"docs/readme.txt": "docs"})
        info, _ = create_packager(
            project=project,
            config={"asar": False, "files": ["**/*.js", "package.json"]},
            targets=LINUX_X64_DIR,
        )
        info.build()

        app = info.output_dir / "linux-unpacked" / "resources" / "app"
        assert (app / "lib" / "util.js").is_file()
        assert not (app / "docs").exists()

    def test_extra_files_are_not_in_archive(self, create_packager, make_project):
        project = make_project(files={"assets/logo.png": "png", "bin/tool.sh": "#!/bin/sh"})
        info, _ = create_packager(
            project=project,
            config={"extraResources": ["assets/**/*"], "extraFiles": [{"from": "bin", "to": "tools"}]},
            targets=LINUX_X64_DIR,
        )
        info.build()

        app_out_dir = info.output_dir / "linux-unpacked"
        assert (app_out_dir / "resources" / "assets" / "logo.png").is_file()
        assert (app_out_dir / "tools" / "tool.sh").is_file()

        filesystem = AsarFilesystem.read(app_out_dir / "resources" / "app.asar")
        assert filesystem.get_node("assets/logo.png") is None
        assert filesystem.get_node("bin/tool.sh") is None
        assert filesystem.get_node("index.js") is not None

    def test_asar_unpack(self, create_packager, make_project):
        project = make_project(files={"native/addon.bin": "binary"})
        info, _ = create_packager(project=project, config={"asarUnpack": ["native/**/*"]}, targets=LINUX_X64_DIR)
        info.build()

        resources = info.output_dir / "linux-unpacked" / "resources"
        assert (resources / "app.asar.unpacked" / "native" / "addon.bin").is_file()
        assert AsarFilesystem.read(resources / "app.asar").get_node("native/addon.bin")["unpacked"] is True

    def test_missing_entry_file(self, create_packager, make_project):
        project = make_project(metadata={"main": "missing.js"})
        info, _ = create_packager(project=project, targets=LINUX_X64_DIR)
        with pytest.raises(IntegrityError) as exc_info:
            info.build()
        assert "missing.js" in str(exc_info.value)

    def test_missing_entry_file_without_asar(self, create_packager, make_project):
        project = make_project(metadata={"main": "missing.js"})
        info, _ = create_packager(project=project, config={"asar": False}, targets=LINUX_X64_DIR)
        with pytest.raises(IntegrityError) as exc_info:
            info.build()
        assert "missing.js" in str(exc_info.value)

    def test_hooks(self, create_packager):
        calls = []
        info, _ = create_packager(
            config={
                "afterPack": lambda context: calls.append(("afterPack", context)),
                "afterSign": lambda context: calls.append(("afterSign", context)),
            },
            targets=LINUX_X64_DIR,
        )
        info.build()

        assert [name for name, _ in calls] == ["afterPack", "afterSign"]
        context = calls[0][1]
        assert context.arch is Arch.x64
        assert context.electron_platform_name == "linux"
        assert context.app_out_dir == info.output_dir / "linux-unpacked"

    def test_hook_failure_is_build_error(self, create_packager):
        def fail(context):
            raise RuntimeError("hook exploded")

        info, _ = create_packager(config={"afterPack": fail}, targets=LINUX_X64_DIR)
        with pytest.raises(BuildError, match="hook exploded"):
            info.build()

    def test_hook_from_file(self, create_packager, make_project):
        project = make_project(files={
            "scripts/after_pack.py": (
                "from pathlib import Path\n"
                "def default(context):\n"
                "    (Path(context.app_out_dir) / 'hook-ran').write_text('yes')\n"
            ),
        })
        info, _ = create_packager(project=project, config={"afterPack": "scripts/after_pack.py"}, targets=LINUX_X64_DIR)
        info.build()
        assert (info.output_dir / "linux-unpacked" / "hook-ran").is_file()

    def test_missing_runtime(self, make_project):
        info = Packager(PackagerOptions(
            project_dir=make_project(),
            config=Configuration(),
            targets=LINUX_X64_DIR,
        ))
        with pytest.raises(ConfigurationError, match="electronVersion"):
            info.build()

    def test_cancellation_skips_remaining_steps(self, make_project, make_runtime):
        token = CancellationToken()
        calls = []

        def progress(stage, current, total, message):
            if stage == "复制应用文件" and current == 60:
                token.cancel()

        info = Packager(
            PackagerOptions(
                project_dir=make_project(),
                config=Configuration(
                    electron_dist=str(make_runtime(Platform.LINUX)),
                    after_pack=lambda context: calls.append(context),
                ),
                targets={Platform.LINUX: {Arch.x64: ["zip"]}},
            ),
            cancellation_token=token,
            progress_callback=progress,
        )
        assert info.build() == []

        assert calls == []
        # 已复制的文件保留在原处
        assert (info.output_dir / "linux-unpacked" / "resources" / "app.asar").is_file()
        assert list(info.output_dir.glob("*.zip")) == []


class TestPackPipeline:
    """PackPipeline 测试"""

    def test_default_pipeline_is_valid(self):
        assert PackPipeline().validate_pipeline() == []

    def test_step_names(self):
        names = [step.name for step in PackPipeline().get_steps()]
        assert names == ["unpack", "copy", "extra", "after_pack", "check", "sign"]

    def test_gap_in_progress(self):
        pipeline = PackPipeline()
        pipeline.remove_step("after_pack")
        errors = pipeline.validate_pipeline()
        assert len(errors) == 1
        assert "check" in errors[0]

    def test_empty_pipeline(self):
        pipeline = PackPipeline()
        for step in pipeline.get_steps():
            pipeline.remove_step(step.name)
        assert pipeline.validate_pipeline() == ["打包管道中没有步骤"]

    def test_add_step(self):
        class ExtraStep(PackStep):
            def __init__(self):
                super().__init__("extra_step", "额外步骤")

            def get_progress_range(self):
                return (100, 110)

            def execute(self, context):
                pass

        pipeline = PackPipeline()
        pipeline.add_step(ExtraStep())
        errors = pipeline.validate_pipeline()
        assert errors == ["打包管道的总进度范围不是100%: 110%"]
        pipeline.add_step(ExtraStep(), position=0)
        assert pipeline.get_steps()[0].name == "extra_step"
