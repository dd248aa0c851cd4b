"""run-vstest 命令行入口。

包含日志配置、click 命令和主入口点。

用法:
    run-vstest [选项] [TEST_FILE] [-- RUN_SETTINGS...]

"--" 之后的内容原样透传给 vstest.console（例如 MSTest.DeploymentEnabled=false）。
"""

from __future__ import annotations

import logging
import sys
from dataclasses import fields
from pathlib import Path
from typing import Any

import click
from click.core import ParameterSource
from pydantic import ValidationError

from .config import Config, get_config
from .runtime import ProcessStartError
from .vstest import RunConfiguration, RunProperties, VSTestTask

__all__ = ["cli", "configure_logging", "execute_run", "main"]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# ctx.meta 中保存透传设置的键
RUN_SETTINGS_KEY = "run_vstest.run_settings"

_CONFIG_FIELDS = frozenset(f.name for f in fields(RunConfiguration))


def configure_logging(config: Config) -> None:
    """配置日志输出。

    LOG_DEBUG 模式输出到临时文件（DEBUG），否则输出到 stderr（INFO）。
    """
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # 配置 root logger（第三方库）为 WARNING，减少噪音
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    # 只对 run_vstest 命名空间启用详细日志
    logging.getLogger("run_vstest").setLevel(log_level)


class PassThroughCommand(click.Command):
    """"--" 之后的参数不经 click 解析，原样存入 ctx.meta。

    TEST_FILE 是可选位置参数；若把 "--" 之后的内容交给 click，
    缺少 TEST_FILE 时第一个透传设置会被当成测试文件。
    """

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        run_settings: list[str] = []
        if "--" in args:
            index = args.index("--")
            args, run_settings = args[:index], args[index + 1:]
        ctx.meta[RUN_SETTINGS_KEY] = tuple(run_settings)
        return super().parse_args(ctx, args)


def _load_properties(path: Path | None) -> RunProperties:
    if path is None:
        return RunProperties()
    try:
        return RunProperties.from_file(path)
    except (OSError, ValueError, ValidationError) as e:
        raise click.BadParameter(f"cannot load properties: {e}", param_hint="--properties") from e


def build_run_configuration(
    ctx: click.Context,
    properties: RunProperties,
    options: dict[str, Any],
) -> RunConfiguration:
    """合并属性文件与命令行选项。

    命令行给出的值覆盖属性文件；$NUGET_PACKAGES 只在属性文件没有
    NugetPath 时生效。开关选项只能打开，不会清除属性文件中的值。

    Raises:
        click.UsageError: 缺少 runner 版本或包缓存目录
    """
    overrides: dict[str, Any] = {}
    for name, value in options.items():
        if name not in _CONFIG_FIELDS or value is None or value is False or value == ():
            continue
        overrides[name] = value

    if (
        properties.package_cache_root
        and ctx.get_parameter_source("package_cache_root") is ParameterSource.ENVIRONMENT
    ):
        overrides.pop("package_cache_root", None)

    run_settings = ctx.meta.get(RUN_SETTINGS_KEY, ())
    if run_settings:
        overrides["cli_run_settings"] = run_settings

    config = properties.to_run_configuration(**overrides)

    if not config.runner_version:
        raise click.UsageError("runner version is required (--runner-version or VSTestRunnerVersion)", ctx)
    if not config.package_cache_root:
        raise click.UsageError(
            "package cache is required (--package-cache, NugetPath or $NUGET_PACKAGES)", ctx
        )
    return config


def execute_run(config: RunConfiguration) -> int:
    """运行测试，返回进程退出码（0 = 测试通过）。"""
    task = VSTestTask(config)

    try:
        ok = task.execute()
    except ProcessStartError as e:
        logger.error(str(e))
        return 1

    if not ok:
        logger.error("Test run failed")
    return 0 if ok else 1


@click.command(
    cls=PassThroughCommand,
    context_settings={"help_option_names": ["-h", "--help"]},
    epilog="Arguments after -- are passed to vstest.console unchanged.",
)
@click.version_option(package_name="run-vstest")
@click.argument("test_file_full_path", required=False, metavar="TEST_FILE")
@click.option(
    "--properties",
    "properties_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="JSON file of host properties (VSTestSetting, NugetPath, ...)",
)
@click.option("--runner-version", "runner_version", help="Version of the microsoft.testplatform package")
@click.option(
    "--package-cache",
    "package_cache_root",
    envvar="NUGET_PACKAGES",
    show_envvar=True,
    help="Package cache root",
)
@click.option("--settings", help="Run settings file")
@click.option("--test-adapter-path", "test_adapter_path", multiple=True, metavar="PATH",
              help="Test adapter search path (repeatable)")
@click.option("--framework", help="Target framework")
@click.option("--platform", help="Target platform")
@click.option("--test-case-filter", "test_case_filter", metavar="FILTER", help="Test case filter expression")
@click.option("--logger", multiple=True, metavar="LOGGER", help="Logger specification (repeatable)")
@click.option("--results-directory", "results_directory", metavar="DIR", help="Test results directory")
@click.option("--list-tests", "list_tests", is_flag=True, help="List discovered tests instead of running them")
@click.option("--diag", metavar="PATH", help="Diagnostic log file")
@click.option("--verbosity", help="q[uiet], m[inimal], n[ormal], d[etailed], diag[nostic]")
@click.option("--nologo", "no_logo", is_flag=True, help="Suppress the runner banner")
@click.option("--artifacts-processing-mode", "artifacts_processing_mode", metavar="MODE",
              help="Artifacts processing mode")
@click.option("--test-session-correlation-id", "session_correlation_id", metavar="ID",
              help="Test session correlation id")
@click.option("--blame", is_flag=True, help="Run in blame mode")
@click.option("--blame-crash", "blame_crash", is_flag=True, help="Collect a dump when the test host crashes")
@click.option("--blame-crash-collect-always", "blame_crash_collect_always", metavar="VALUE",
              help="Collect the crash dump even on normal exit")
@click.option("--blame-crash-dump-type", "blame_crash_dump_type", metavar="TYPE", help="Crash dump type")
@click.option("--blame-hang", "blame_hang", is_flag=True, help="Collect a dump when a test hangs")
@click.option("--blame-hang-dump-type", "blame_hang_dump_type", metavar="TYPE", help="Hang dump type")
@click.option("--blame-hang-timeout", "blame_hang_timeout", metavar="TIMEOUT", help="Hang timeout")
@click.option("--collect", multiple=True, metavar="COLLECTOR", help="Data collector (repeatable)")
@click.option("--trace-data-collector-directory", "trace_data_collector_directory_path", metavar="DIR",
              help="Directory of the trace data collector")
@click.pass_context
def cli(ctx: click.Context, properties_path: Path | None, **options: Any) -> None:
    """Run tests with vstest.console."""
    properties = _load_properties(properties_path)
    config = build_run_configuration(ctx, properties, options)
    ctx.exit(execute_run(config))


def main(argv: list[str] | None = None) -> None:
    """主入口点。"""
    config = get_config()
    configure_logging(config)
    logger.debug(f"Starting run-vstest: {config}")

    cli.main(args=argv, prog_name="run-vstest")


if __name__ == "__main__":
    main()
