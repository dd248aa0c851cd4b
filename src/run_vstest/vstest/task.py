"""vstest 运行任务。

run-vstest vstest v0.1.0

宿主调用的入口：构建参数、定位 vstest.console、启动子进程、
把 stdout/stderr 逐行转发到日志，并把退出码映射为成功/失败。

可执行文件路径:
    {package_cache_root}/microsoft.testplatform/{runner_version}/tools/net462/
        Common7/IDE/Extensions/TestPlatform/vstest.console.exe
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from ..config import get_config
from ..runtime import ProcessRunner, ProcessSpec
from .arguments import ArgumentBuilder, LogSink
from .types import RunConfiguration

__all__ = [
    "RUNNER_EXECUTABLE",
    "VSTestTask",
    "resolve_runner_path",
    "run_tests",
]

logger = logging.getLogger(__name__)

RUNNER_PACKAGE = "microsoft.testplatform"
RUNNER_TOOLS_SUBPATH = ("tools", "net462", "Common7", "IDE", "Extensions", "TestPlatform")
RUNNER_EXECUTABLE = "vstest.console.exe"


def resolve_runner_path(package_cache_root: str | Path, runner_version: str) -> Path:
    """计算 vstest.console 的路径。

    只做路径拼接，不检查文件是否存在；文件缺失会在启动进程时暴露。
    """
    return Path(
        package_cache_root,
        RUNNER_PACKAGE,
        runner_version,
        *RUNNER_TOOLS_SUBPATH,
        RUNNER_EXECUTABLE,
    )


class VSTestTask:
    """使用 vstest.console 运行测试。

    Example:
        task = VSTestTask(RunConfiguration(
            runner_version="17.8.0",
            package_cache_root="/home/me/.nuget/packages",
            test_file_full_path="/t/tests.dll",
        ))
        ok = task.execute()
    """

    def __init__(
        self,
        config: RunConfiguration,
        sink: LogSink | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        """初始化任务。

        Args:
            config: 运行配置
            sink: 日志输出目标（诊断信息和子进程输出），默认使用本模块 logger
            runner: 自定义进程执行器，默认按全局配置创建
        """
        self._config = config
        self._sink = sink or logger
        if runner is None:
            app_config = get_config()
            runner = ProcessRunner(
                term_timeout=app_config.term_timeout,
                kill_timeout=app_config.kill_timeout,
            )
        self._runner = runner

    @property
    def config(self) -> RunConfiguration:
        return self._config

    @property
    def runner_path(self) -> Path:
        return resolve_runner_path(self._config.package_cache_root, self._config.runner_version)

    def create_arguments(self) -> list[str]:
        """构建命令行 token 列表（配置错误会写入 sink）。"""
        return ArgumentBuilder(sink=self._sink).build(self._config)

    def create_process_spec(self) -> ProcessSpec:
        return ProcessSpec(
            executable=self.runner_path,
            arguments=" ".join(self.create_arguments()),
        )

    async def execute_test(self) -> int:
        """运行 vstest.console 并返回其退出码。

        Raises:
            ProcessStartError: 可执行文件无法启动
        """
        spec = self.create_process_spec()
        logger.debug(f"Executing: {spec.executable} {spec.arguments}")

        return await self._runner.run(
            spec,
            on_stdout=self._relay,
            on_stderr=self._relay,
        )

    async def execute_async(self) -> bool:
        """异步执行，退出码为 0 时返回 True。"""
        exit_code = await self.execute_test()
        if exit_code != 0:
            logger.debug(f"{RUNNER_EXECUTABLE} exited with code {exit_code}")
        return exit_code == 0

    def execute(self) -> bool:
        """同步执行（内部运行事件循环）。"""
        return asyncio.run(self.execute_async())

    def _relay(self, line: str) -> None:
        # 子进程输出统一以 normal（INFO）级别转发
        self._sink.info(line)


def run_tests(config: RunConfiguration, sink: LogSink | None = None) -> bool:
    """便捷函数：运行测试，退出码为 0 时返回 True。

    Raises:
        ProcessStartError: 可执行文件无法启动
    """
    return VSTestTask(config, sink=sink).execute()
