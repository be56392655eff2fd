"""
宏展开与产物命名单元测试
"""

import pytest

from shipwright.build.app_info import AppInfo
from shipwright.build.core import Arch, Platform
from shipwright.build.macro import (
    arch_classifier,
    compute_artifact_name,
    expand_macro,
    generate_name,
    generate_name2,
    is_safe_github_name,
    normalize_ext,
)
from shipwright.errors import ConfigurationError


def make_app_info(**overrides) -> AppInfo:
    values = dict(
        name="foo",
        product_name="Foo App",
        product_filename="Foo App",
        version="1.2.3",
        build_version="1.2.3",
    )
    values.update(overrides)
    return AppInfo(**values)


class TestExpandMacro:
    """expand_macro 测试"""

    def test_name_version_arch_ext(self):
        """测试常规产物名称"""
        result = expand_macro("${name}-${version}-${arch}.${ext}", "x64", make_app_info(), Platform.LINUX, {"ext": "zip"})
        assert result == "foo-1.2.3-x64.zip"

    def test_pattern_without_tokens_is_unchanged(self):
        """测试没有宏的模式原样返回"""
        for pattern in ["plain-name.zip", "a b c", "$notamacro", "{x}"]:
            assert expand_macro(pattern, "x64", make_app_info(), Platform.LINUX) == pattern

    @pytest.mark.parametrize("separator", ["-", " ", "_", "/"])
    def test_null_arch_removes_one_separator(self, separator):
        """测试未指定架构时去掉架构前的分隔符"""
        pattern = f"${{name}}{separator}${{arch}}.zip"
        assert expand_macro(pattern, None, make_app_info(), Platform.LINUX) == "foo.zip"

    def test_null_arch_removes_only_first_occurrence(self):
        """测试每种分隔符只去掉一次"""
        result = expand_macro("${name}-${arch}/x-${arch}", None, make_app_info(), Platform.LINUX)
        assert result == "foo/x-"

    def test_product_name_sanitized_flag(self):
        """测试 productName 的两种形式"""
        app_info = make_app_info(product_name="Foo: App", product_filename="Foo App")
        assert expand_macro("${productName}", None, app_info, Platform.WINDOWS) == "Foo App"
        assert expand_macro("${productName}", None, app_info, Platform.WINDOWS, is_product_name_sanitized=False) == "Foo: App"

    def test_os_and_channel(self):
        """测试 os 和 channel"""
        assert expand_macro("${os}", None, make_app_info(), Platform.MAC) == "mac"
        assert expand_macro("${os}", None, make_app_info(), Platform.WINDOWS) == "win"
        assert expand_macro("${channel}", None, make_app_info(), Platform.LINUX) == "latest"
        assert expand_macro("${channel}", None, make_app_info(channel="beta"), Platform.LINUX) == "beta"

    def test_env_macro(self, monkeypatch):
        """测试环境变量"""
        monkeypatch.setenv("SHIPWRIGHT_TEST_VAR", "value")
        assert expand_macro("x-${env.SHIPWRIGHT_TEST_VAR}", None, make_app_info(), Platform.LINUX) == "x-value"

    def test_undefined_env_macro(self, monkeypatch):
        """测试未定义的环境变量"""
        monkeypatch.delenv("SHIPWRIGHT_MISSING_VAR", raising=False)
        with pytest.raises(ConfigurationError) as exc_info:
            expand_macro("x-${env.SHIPWRIGHT_MISSING_VAR}", None, make_app_info(), Platform.LINUX)
        assert exc_info.value.code == "ERR_ENV_NOT_DEFINED"
        assert "x-${env.SHIPWRIGHT_MISSING_VAR}" in str(exc_info.value)
        assert "SHIPWRIGHT_MISSING_VAR" in str(exc_info.value)

    def test_unknown_macro(self):
        """测试无法识别的宏"""
        with pytest.raises(ConfigurationError) as exc_info:
            expand_macro("${name}-${unknown}", None, make_app_info(), Platform.LINUX)
        assert exc_info.value.code == "ERR_MACRO_NOT_DEFINED"
        assert "${name}-${unknown}" in str(exc_info.value)
        assert "unknown" in str(exc_info.value)

    def test_app_info_camel_case_field(self):
        """测试按 camelCase 读取应用信息字段"""
        app_info = make_app_info(build_version="1.2.3.4", company_name="Acme")
        assert expand_macro("${buildVersion} ${companyName}", None, app_info, Platform.LINUX) == "1.2.3.4 Acme"


class TestSafeGithubName:
    """is_safe_github_name 测试"""

    def test_safe_names(self):
        for name in ["foo-1.2.3.zip", "Foo_App.tar.zst", "a"]:
            assert is_safe_github_name(name)

    def test_unsafe_names(self):
        for name in ["Foo App.zip", "a/b", "a+b", "中文.zip", "", "foo.zip\n", "\nfoo.zip"]:
            assert not is_safe_github_name(name)

    def test_normalize_ext(self):
        assert normalize_ext(".zip") == "zip"
        assert normalize_ext("tar.zst") == "tar.zst"


class TestArchClassifier:
    """架构分类名测试"""

    @pytest.mark.parametrize("arch, ext, expected", [
        (Arch.x64, "AppImage", "x86_64"),
        (Arch.x64, "rpm", "x86_64"),
        (Arch.x64, "deb", "amd64"),
        (Arch.ia32, "deb", "i386"),
        (Arch.ia32, "AppImage", "i386"),
        (Arch.ia32, "pacman", "i686"),
        (Arch.ia32, "rpm", "i686"),
        (Arch.x64, "zip", "x64"),
        (Arch.ia32, "zip", "ia32"),
        (Arch.arm64, "deb", "arm64"),
        (Arch.armv7l, "rpm", "armv7l"),
    ])
    def test_classifier_table(self, arch, ext, expected):
        assert arch_classifier(arch, ext) == expected

    def test_pacman_extension(self):
        """测试 pacman 的扩展名固定为 pkg.tar.xz"""
        for arch in Arch:
            assert generate_name(make_app_info(), "pacman", arch, True).endswith(".pkg.tar.xz")


class TestGenerateName:
    """generate_name / generate_name2 测试"""

    def test_deb_uses_underscore(self):
        app_info = make_app_info(product_filename="Foo")
        assert generate_name2(app_info, "deb", "amd64", False) == "Foo_1.2.3_amd64.deb"

    def test_other_formats_use_dash(self):
        app_info = make_app_info(product_filename="Foo")
        assert generate_name2(app_info, "rpm", "x86_64", False) == "Foo-1.2.3-x86_64.rpm"
        assert generate_name2(app_info, "zip", None, True) == "foo-1.2.3.zip"

    def test_skip_x64(self):
        app_info = make_app_info()
        assert generate_name(app_info, "zip", Arch.x64, True, skip_arch_if_x64=True) == "foo-1.2.3.zip"
        assert generate_name(app_info, "zip", Arch.arm64, True, skip_arch_if_x64=True) == "foo-1.2.3-arm64.zip"

    def test_classifier_suffix(self):
        assert generate_name(make_app_info(), "deb", Arch.x64, True, classifier="debug") == "foo_1.2.3_amd64-debug.deb"


class TestComputeArtifactName:
    """compute_artifact_name 测试"""

    def test_linux_includes_arch(self):
        name = compute_artifact_name("${name}-${version}-${arch}.${ext}", "deb", Arch.x64, make_app_info(), Platform.LINUX)
        assert name == "foo-1.2.3-amd64.deb"

    def test_mac_never_includes_arch(self):
        name = compute_artifact_name("${name}-${version}-${arch}.${ext}", "zip", Arch.arm64, make_app_info(), Platform.MAC)
        assert name == "foo-1.2.3.zip"
