"""
Wine 兼容层与延迟值单元测试
"""

import os
import sys
import threading
import time
from pathlib import Path

import pytest

from shipwright.errors import ConfigurationError, ToolError
from shipwright.utils import wine
from shipwright.utils.lazy import Lazy
from shipwright.utils.process import compute_env, is_env_true, merge_env
from shipwright.utils.versions import coerce_version, version_gte, version_lt


@pytest.fixture
def reset_wine():
    wine.wine_executable.reset()
    wine.wine_executable_mac64.reset()
    yield
    wine.wine_executable.reset()
    wine.wine_executable_mac64.reset()


class TestNormalizeWineVersion:
    """版本号规范化测试"""

    @pytest.mark.parametrize("raw, expected", [
        ("wine-3.0.3 (Some-build)", "3.0.3"),
        ("1.8", "1.8.0"),
        ("wine-1.8", "1.8.0"),
        ("wine-4.0-rc1", "4.0.0"),
        ("wine-5.0.1\n", "5.0.1"),
    ])
    def test_normalize(self, raw, expected):
        assert wine.normalize_wine_version(raw) == expected


class TestCheckWineVersion:
    """check_wine_version 测试"""

    def test_supported_version(self):
        wine.check_wine_version(lambda: "wine-3.0.3 (Some-build)")

    def test_minimum_version(self):
        wine.check_wine_version(lambda: "wine-1.8")

    def test_old_version(self):
        with pytest.raises(ConfigurationError) as exc_info:
            wine.check_wine_version(lambda: "wine-1.6.2")
        assert "1.6.2" in str(exc_info.value)
        assert "https://electron.build/multi-platform-build#" in str(exc_info.value)

    def test_wine_not_installed(self):
        def missing():
            raise FileNotFoundError("wine")

        with pytest.raises(ConfigurationError) as exc_info:
            wine.check_wine_version(missing)
        assert "https://electron.build/multi-platform-build#" in str(exc_info.value)

    def test_unrecognized_version(self):
        with pytest.raises(ToolError):
            wine.check_wine_version(lambda: "something weird")


class TestExecWine:
    """exec_wine 测试"""

    def test_system_wine_forced(self, monkeypatch, reset_wine):
        calls = []
        monkeypatch.setattr(wine.sys, "platform", "linux")
        monkeypatch.setenv("USE_SYSTEM_WINE", "true")
        monkeypatch.setattr(wine, "exec_command", lambda *args, **kwargs: calls.append((args, kwargs)) or "ok")

        assert wine.exec_wine("rcedit.exe", ["a.exe", "--set-icon", "x.ico"]) == "ok"
        args, kwargs = calls[0]
        assert args == ("wine", ["rcedit.exe", "a.exe", "--set-icon", "x.ico"])
        assert kwargs["timeout"] == wine.DEFAULT_EXEC_TIMEOUT
        assert kwargs["env"] is None

    def test_native_windows_runs_directly(self, monkeypatch, reset_wine):
        calls = []
        monkeypatch.setattr(wine.sys, "platform", "win32")
        monkeypatch.setattr(wine, "exec_command", lambda *args, **kwargs: calls.append((args, kwargs)) or "")

        wine.exec_wine("rcedit.exe", ["a.exe"], timeout=5)
        assert calls[0][0] == ("rcedit.exe", ["a.exe"])
        assert calls[0][1]["timeout"] == 5
        assert not wine.wine_executable.has_value

    def test_system_wine_version_checked_once(self, monkeypatch, reset_wine):
        version_calls = []

        def fake_exec(file, args=(), **kwargs):
            if args == ["--version"]:
                version_calls.append(file)
                return "wine-5.0\n"
            return "done"

        monkeypatch.setattr(wine.sys, "platform", "linux")
        monkeypatch.delenv("USE_SYSTEM_WINE", raising=False)
        monkeypatch.setattr(wine, "exec_command", fake_exec)

        assert wine.exec_wine("tool.exe") == "done"
        assert wine.exec_wine("tool.exe") == "done"
        assert version_calls == ["wine"]

    def test_bundled_wine_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DYLD_FALLBACK_LIBRARY_PATH", "/original/lib")
        tool = wine._bundled_wine(tmp_path)
        assert tool.path == str(tmp_path / "bin" / "wine")
        assert tool.env["WINEDEBUG"] == "-all,err+all"
        assert tool.env["WINEDLLOVERRIDES"] == "winemenubuilder.exe=d"
        assert tool.env["WINEPREFIX"] == str(tmp_path / "wine-home")
        assert tool.env["DYLD_FALLBACK_LIBRARY_PATH"] == f"{tmp_path / 'lib'}{os.pathsep}/original/lib"

    def test_wine64_on_macos(self, monkeypatch, reset_wine):
        calls = []
        monkeypatch.setattr(wine.sys, "platform", "darwin")
        monkeypatch.setenv("USE_SYSTEM_WINE", "1")
        monkeypatch.setattr(wine, "exec_command", lambda *args, **kwargs: calls.append(args) or "")

        wine.exec_wine64("tool.exe", ["--x"])
        assert calls == [("wine", ["tool.exe", "--x"])]
        assert wine.wine_executable_mac64.has_value
        assert not wine.wine_executable.has_value

    def test_prepare_windows_executable_args(self, monkeypatch):
        monkeypatch.setattr(wine.sys, "platform", "darwin")
        assert wine.prepare_windows_executable_args(["--x"], "tool.exe") == ["tool.exe", "--x"]
        monkeypatch.setattr(wine.sys, "platform", "win32")
        assert wine.prepare_windows_executable_args(["--x"], "tool.exe") == ["--x"]


class TestEnvHelpers:
    """环境变量工具测试"""

    def test_merge_env_overlay_wins(self):
        assert merge_env({"A": "1", "B": "caller"}, {"B": "wine"}) == {"A": "1", "B": "wine"}
        assert merge_env(None, {"B": "wine"}) == {"B": "wine"}
        assert merge_env({"A": "1"}, None) == {"A": "1"}
        assert merge_env(None, None) is None

    def test_compute_env(self):
        assert compute_env(None, ["/a"]) == "/a"
        assert compute_env("/old", ["/a", "/b"]) == os.pathsep.join(["/a", "/b", "/old"])

    def test_is_env_true(self):
        assert is_env_true("true")
        assert is_env_true("1")
        assert is_env_true("")
        assert not is_env_true("false")
        assert not is_env_true(None)


class TestVersions:
    """版本比较测试"""

    def test_compare(self):
        assert version_gte("3.0.3", "1.8.0")
        assert version_gte("1.8.0", "1.8.0")
        assert version_lt("1.7.9", "1.8.0")
        assert version_lt("1.8.0-rc1", "1.8.0")

    def test_coerce(self):
        assert coerce_version("10.13") == "10.13.0"
        assert coerce_version("10.14.6") == "10.14.6"

    def test_invalid(self):
        with pytest.raises(ValueError):
            version_gte("abc", "1.0.0")


class TestLazy:
    """Lazy 测试"""

    def test_concurrent_first_access_is_coalesced(self):
        calls = []
        started = threading.Event()

        def create():
            calls.append(1)
            started.set()
            time.sleep(0.1)
            return object()

        lazy = Lazy(create)
        results = []
        threads = [threading.Thread(target=lambda: results.append(lazy.value)) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert len(results) == 8
        assert all(result is results[0] for result in results)
        assert lazy.has_value

    def test_failure_is_not_cached(self):
        attempts = []

        def create():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("first attempt")
            return "ok"

        lazy = Lazy(create)
        with pytest.raises(RuntimeError):
            lazy.value
        assert not lazy.has_value
        assert lazy.value == "ok"
        assert lazy.value == "ok"
        assert len(attempts) == 2
