"""
平台打包器（Windows / macOS / Linux）单元测试

外部工具（rcedit、osslsigncode、codesign）全部替换为记录调用的函数。
"""

import json
import plistlib
import shutil

import pytest

from shipwright.build.asar import compute_asar_integrity
from shipwright.build.build_context import PackContext
from shipwright.build.core import Arch, Platform
from shipwright.build.packagers import LinuxPackager, MacPackager, WinPackager, win, mac
from shipwright.errors import ConfigurationError


def make_pack_context(packager, app_out_dir):
    return PackContext(
        app_out_dir=app_out_dir,
        out_dir=app_out_dir.parent,
        arch=Arch.x64,
        targets=(),
        electron_platform_name=packager.platform.node_name,
        packager=packager,
    )


@pytest.fixture(autouse=True)
def clean_signing_env(monkeypatch):
    for name in ("CSC_LINK", "CSC_KEY_PASSWORD", "CSC_NAME", "RCEDIT_PATH"):
        monkeypatch.delenv(name, raising=False)


class TestCreatePlatformPackager:
    """打包器创建测试"""

    @pytest.mark.parametrize("platform, cls", [
        (Platform.LINUX, LinuxPackager),
        (Platform.MAC, MacPackager),
        (Platform.WINDOWS, WinPackager),
    ])
    def test_by_platform(self, create_packager, platform, cls):
        _, packager = create_packager(platform)
        assert isinstance(packager, cls)
        assert packager.platform is platform

    def test_default_targets(self, create_packager):
        assert create_packager(Platform.LINUX)[1].default_target == ["tar.zst"]
        assert create_packager(Platform.MAC)[1].default_target == ["zip"]
        assert create_packager(Platform.WINDOWS)[1].default_target == ["zip"]


class TestLinuxPackager:
    """Linux 打包器测试"""

    def test_executable_name(self, create_packager, make_project):
        project = make_project(metadata={"name": "Foo:Bar"})
        _, packager = create_packager(project=project)
        assert packager.executable_name == "foobar"

    def test_configured_executable_name(self, create_packager):
        _, packager = create_packager(config={"linux": {"executableName": "foo-app"}})
        assert packager.executable_name == "foo-app"


class TestWinPackager:
    """Windows 打包器测试"""

    def test_build_version_in_windows_form(self, create_packager):
        info, packager = create_packager(Platform.WINDOWS)
        assert info.app_info.build_version == "1.2.3"
        assert packager.app_info.build_version == "1.2.3.0"

    def test_build_number(self, create_packager, monkeypatch):
        monkeypatch.setenv("BUILD_NUMBER", "42")
        _, packager = create_packager(Platform.WINDOWS)
        assert packager.app_info.build_version == "1.2.3.42"

    def test_pack_renames_executable(self, create_packager):
        info, _ = create_packager(Platform.WINDOWS, targets={Platform.WINDOWS: {Arch.x64: ["dir"]}})
        info.build()

        app_out_dir = info.output_dir / "win-unpacked"
        assert (app_out_dir / "foo.exe").is_file()
        assert not (app_out_dir / "electron.exe").exists()
        assert (app_out_dir / "resources" / "app.asar").is_file()

    def test_sign_skipped_without_certificate(self, create_packager, tmp_path, monkeypatch):
        calls = []
        monkeypatch.setattr(win, "exec_command", lambda *args, **kwargs: calls.append(args))
        _, packager = create_packager(Platform.WINDOWS)
        packager.sign_app(make_pack_context(packager, tmp_path))
        assert calls == []

    def test_force_code_signing_without_certificate(self, create_packager, tmp_path):
        _, packager = create_packager(Platform.WINDOWS, config={"forceCodeSigning": True})
        with pytest.raises(ConfigurationError, match="CSC_LINK"):
            packager.sign_app(make_pack_context(packager, tmp_path))

    def test_sign_with_osslsigncode(self, create_packager, tmp_path, monkeypatch):
        app_out_dir = tmp_path / "win-unpacked"
        app_out_dir.mkdir()
        (app_out_dir / "foo.exe").write_bytes(b"unsigned")
        calls = []

        def fake_exec(file, args=(), **kwargs):
            calls.append((file, list(args)))
            out = args[args.index("-out") + 1]
            with open(out, 'wb') as f:
                f.write(b"signed")
            return ""

        info, packager = create_packager(Platform.WINDOWS, config={"cscLink": "cert.p12"})
        monkeypatch.setattr(win.sys, "platform", "linux")
        monkeypatch.setattr(win, "exec_command", fake_exec)
        monkeypatch.setenv("CSC_KEY_PASSWORD", "secret")
        try:
            packager.sign_app(make_pack_context(packager, app_out_dir))
        finally:
            info.cleanup()

        assert (app_out_dir / "foo.exe").read_bytes() == b"signed"
        file, args = calls[0]
        assert file == "osslsigncode"
        assert args[args.index("-pkcs12") + 1] == "cert.p12"
        assert args[args.index("-pass") + 1] == "secret"
        assert args[args.index("-ts") + 1] == "http://timestamp.digicert.com"
        assert args[args.index("-in") + 1] == str(app_out_dir / "foo.exe")

    def test_edit_resources_with_rcedit(self, create_packager, tmp_path, monkeypatch):
        calls = []
        monkeypatch.setenv("RCEDIT_PATH", "rcedit.exe")
        monkeypatch.setattr(win, "exec_wine", lambda file, args: calls.append((file, args)))
        _, packager = create_packager(Platform.WINDOWS, config={"copyright": "Copyright Acme"})

        packager.edit_resources(tmp_path / "foo.exe")

        file, args = calls[0]
        assert file == "rcedit.exe"
        assert args[0] == str(tmp_path / "foo.exe")
        assert args[args.index("--set-file-version") + 1] == "1.2.3.0"
        assert args[args.index("--set-product-version") + 1] == "1.2.3.0"
        assert args[args.index("LegalCopyright") + 1] == "Copyright Acme"
        assert args[args.index("CompanyName") + 1] == "Acme"
        assert "--set-icon" not in args

    def test_edit_resources_skipped_without_rcedit(self, create_packager, tmp_path, monkeypatch):
        calls = []
        monkeypatch.setattr(win, "exec_wine", lambda file, args: calls.append(file))
        _, packager = create_packager(Platform.WINDOWS)
        packager.edit_resources(tmp_path / "foo.exe")
        assert calls == []


class TestMacPackager:
    """macOS 打包器测试"""

    def test_app_path(self, create_packager, make_project, tmp_path):
        project = make_project(metadata={"productName": "Foo App"})
        _, packager = create_packager(Platform.MAC, project=project)
        assert packager.get_app_path(tmp_path) == tmp_path / "Foo App.app"
        assert packager.get_resources_dir(tmp_path) == tmp_path / "Foo App.app" / "Contents" / "Resources"

    def test_before_copy_extra_files(self, create_packager, make_runtime, tmp_path):
        _, packager = create_packager(
            Platform.MAC,
            config={
                "appId": "com.acme.foo",
                "mac": {"category": "public.app-category.developer-tools"},
                "fileAssociations": [{"ext": ["foo", ".bar"], "name": "Foo File"}],
            },
        )
        app_out_dir = tmp_path / "mac"
        shutil.copytree(make_runtime(Platform.MAC), app_out_dir)
        integrity = {"checksums": {"app.asar": "abc"}}

        packager.before_copy_extra_files(app_out_dir, integrity)

        contents = app_out_dir / "foo.app" / "Contents"
        assert not (app_out_dir / "Electron.app").exists()
        assert (contents / "MacOS" / "foo").is_file()
        with open(contents / "Info.plist", 'rb') as f:
            plist = plistlib.load(f)
        assert plist["CFBundleIdentifier"] == "com.acme.foo"
        assert plist["CFBundleExecutable"] == "foo"
        assert plist["CFBundleName"] == "foo"
        assert plist["CFBundleShortVersionString"] == "1.2.3"
        assert plist["CFBundleVersion"] == "1.2.3"
        assert plist["LSApplicationCategoryType"] == "public.app-category.developer-tools"
        assert plist["NSHumanReadableCopyright"] == "Copyright © Acme"
        assert plist["CFBundleDocumentTypes"] == [{
            "CFBundleTypeExtensions": ["foo", "bar"],
            "CFBundleTypeName": "Foo File",
            "CFBundleTypeRole": "Editor",
        }]
        assert json.loads(plist["AsarIntegrity"]) == integrity

    def test_pack_writes_asar_integrity(self, create_packager):
        info, _ = create_packager(Platform.MAC, targets={Platform.MAC: {Arch.x64: ["dir"]}})
        info.build()

        contents = info.output_dir / "mac" / "foo.app" / "Contents"
        assert (contents / "Resources" / "app.asar").is_file()
        assert not (contents / "Resources" / "default_app.asar").exists()
        with open(contents / "Info.plist", 'rb') as f:
            plist = plistlib.load(f)
        assert json.loads(plist["AsarIntegrity"]) == compute_asar_integrity(contents / "Resources")

    def test_sign_skipped_without_identity(self, create_packager, tmp_path, monkeypatch):
        calls = []
        monkeypatch.setattr(mac, "exec_command", lambda *args, **kwargs: calls.append(args))
        _, packager = create_packager(Platform.MAC)
        packager.sign_app(make_pack_context(packager, tmp_path))
        assert calls == []

    def test_force_code_signing_without_identity(self, create_packager, tmp_path):
        _, packager = create_packager(Platform.MAC, config={"forceCodeSigning": True})
        with pytest.raises(ConfigurationError, match="CSC_NAME"):
            packager.sign_app(make_pack_context(packager, tmp_path))

    def test_sign_with_codesign(self, create_packager, tmp_path, monkeypatch):
        calls = []
        _, packager = create_packager(Platform.MAC, config={"mac": {"identity": "Developer ID Application: Acme"}})
        monkeypatch.setattr(mac.sys, "platform", "darwin")
        monkeypatch.setattr(mac, "exec_command", lambda file, args: calls.append((file, args)))

        packager.sign_app(make_pack_context(packager, tmp_path))

        assert calls == [("codesign", [
            "--sign", "Developer ID Application: Acme", "--force", "--deep", "--timestamp",
            "--options", "runtime", str(tmp_path / "foo.app"),
        ])]

    def test_sign_on_other_host(self, create_packager, tmp_path, monkeypatch):
        monkeypatch.setattr(mac.sys, "platform", "linux")
        monkeypatch.setattr(mac, "exec_command", lambda *args: pytest.fail("codesign should not run"))
        _, packager = create_packager(Platform.MAC, config={"mac": {"identity": "Acme"}})
        packager.sign_app(make_pack_context(packager, tmp_path))

        _, forced = create_packager(Platform.MAC, config={"mac": {"identity": "Acme"}, "forceCodeSigning": True})
        with pytest.raises(ConfigurationError):
            forced.sign_app(make_pack_context(forced, tmp_path))
