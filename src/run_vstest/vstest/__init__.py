"""vstest 任务模块。

run-vstest vstest v0.1.0

把测试运行选项转换为 vstest.console 命令行并执行。

基础用法:
    from run_vstest.vstest import RunConfiguration, run_tests

    ok = run_tests(RunConfiguration(
        runner_version="17.8.0",
        package_cache_root="/home/me/.nuget/packages",
        test_file_full_path="/t/tests.dll",
        verbosity="detailed",
    ))

只构建参数:
    from run_vstest.vstest import build_arguments

    tokens = build_arguments(config)
"""

from __future__ import annotations

from .arguments import (
    EMISSION_RULES,
    MISSING_TEST_FILE_ERROR,
    ArgumentBuilder,
    BuildState,
    EmissionRule,
    LogSink,
    build_arguments,
    resolve_console_verbosity,
)
from .task import RUNNER_EXECUTABLE, VSTestTask, resolve_runner_path, run_tests
from .types import (
    CODE_COVERAGE,
    NORMAL_VERBOSITY,
    QUIET_VERBOSITY,
    RunConfiguration,
    RunProperties,
)

__all__ = [
    # 类型
    "RunConfiguration",
    "RunProperties",
    "BuildState",
    "EmissionRule",
    "LogSink",
    # 常量
    "CODE_COVERAGE",
    "NORMAL_VERBOSITY",
    "QUIET_VERBOSITY",
    "MISSING_TEST_FILE_ERROR",
    "RUNNER_EXECUTABLE",
    "EMISSION_RULES",
    # 参数构建
    "ArgumentBuilder",
    "build_arguments",
    "resolve_console_verbosity",
    # 执行
    "VSTestTask",
    "resolve_runner_path",
    "run_tests",
]
