"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import os
import stat
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from run_vstest.vstest import RunConfiguration, resolve_runner_path  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"
FAKE_VSTEST = FIXTURES_DIR / "fake_vstest.py"

IS_WINDOWS = sys.platform == "win32"

RUNNER_VERSION = "17.8.0"


@pytest.fixture
def make_config() -> Callable[..., RunConfiguration]:
    """创建 RunConfiguration，必需字段使用默认值。"""

    def _make(**kwargs) -> RunConfiguration:
        kwargs.setdefault("runner_version", RUNNER_VERSION)
        kwargs.setdefault("package_cache_root", "/packages")
        return RunConfiguration(**kwargs)

    return _make


@pytest.fixture
def package_cache(tmp_path: Path) -> Path:
    """空的包缓存目录。"""
    root = tmp_path / "packages"
    root.mkdir()
    return root


@pytest.fixture
def fake_runner(package_cache: Path) -> Path:
    """在包缓存中按 vstest.console 的固定路径安装假 runner。

    仅 POSIX：依赖 shebang 直接执行 .exe 文件名的脚本。
    """
    if IS_WINDOWS:
        pytest.skip("fake runner relies on a shebang script")

    runner_path = resolve_runner_path(package_cache, RUNNER_VERSION)
    runner_path.parent.mkdir(parents=True)
    body = FAKE_VSTEST.read_text(encoding="utf-8").split("\n", 1)[1]
    runner_path.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
    runner_path.chmod(runner_path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return runner_path


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """清理会影响运行的环境变量。"""
    for name in list(os.environ):
        if name.startswith(("RVT_", "FAKE_VSTEST_")) or name == "NUGET_PACKAGES":
            monkeypatch.delenv(name, raising=False)
