"""vstest.console 命令行参数构建。

run-vstest vstest v0.1.0

把 RunConfiguration 映射为有序的命令行 token 列表。

构建由一组有序的、相互独立的规则完成：
- 每条规则是 (config, state) -> list[str] 的函数
- state 保存构建过程中派生的标志（是否指定了 console logger、
  是否收集代码覆盖率、是否启用 runsettings）
- 透传设置（"--" 之后的部分）不属于规则列表，由构建器在所有规则之后追加，
  因为 vstest.console 会忽略 "--" 之后出现的所有选项

命令格式:
    [--settings:{settings}] \
    [--testAdapterPath:{path}]... \
    [--framework:{framework}] \
    [--platform:{platform}] \
    [--testCaseFilter:{filter}] \
    [--logger:{logger}]... \
    [--resultsDirectory:{dir}] \
    [--listTests] \
    [--Diag:{path}] \
    {test_file} \
    [--logger:Console;Verbosity={level}] \
    [--Blame[:"{dump_args}"]] \
    [--collect:{collector}]... \
    [--testAdapterPath:{trace_collector_dir}] \
    [--nologo] \
    [--artifactsProcessingMode-collect] \
    [--testSessionCorrelationId:{id}] \
    [-- {run_settings}...]
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from ..escaping import escape_arg
from .types import CODE_COVERAGE, NORMAL_VERBOSITY, QUIET_VERBOSITY, RunConfiguration

__all__ = [
    "ArgumentBuilder",
    "BuildState",
    "EMISSION_RULES",
    "EmissionRule",
    "LogSink",
    "MISSING_TEST_FILE_ERROR",
    "build_arguments",
    "resolve_console_verbosity",
]

logger = logging.getLogger(__name__)

# 日志输出目标：标准 Logger 或 LoggerAdapter
LogSink = logging.Logger | logging.LoggerAdapter

MISSING_TEST_FILE_ERROR = "Test file path cannot be empty or null."

RUN_SETTINGS_SEPARATOR = "--"


@dataclass
class BuildState:
    """单次构建过程中派生的状态。

    Attributes:
        console_logger_specified_by_user: 用户已显式指定 console logger
        collecting_code_coverage: 请求了代码覆盖率收集器
        run_settings_enabled: 指定了 runsettings 文件
        errors: 构建过程中发现的配置错误
    """

    console_logger_specified_by_user: bool = False
    collecting_code_coverage: bool = False
    run_settings_enabled: bool = False
    errors: list[str] = field(default_factory=list)


# 类型别名：参数规则
EmissionRule = Callable[[RunConfiguration, BuildState], list[str]]


def resolve_console_verbosity(verbosity: str) -> str:
    """把用户的 verbosity 映射为 Console logger 的级别。

    未识别的值回退到 "minimal"。
    """
    value = verbosity.lower()
    if value in NORMAL_VERBOSITY:
        return "normal"
    if value in QUIET_VERBOSITY:
        return "quiet"
    return "minimal"


def _is_code_coverage(collector: str) -> bool:
    # "Code Coverage" 或 "Code Coverage;a=b;c=d"
    first_token = collector.split(";")[0]
    return (
        collector.lower() == CODE_COVERAGE.lower()
        or first_token.lower() == CODE_COVERAGE.lower()
    )


# =============================================================================
# 规则
# =============================================================================


def settings_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    if not config.settings:
        return []
    state.run_settings_enabled = True
    return ["--settings:" + escape_arg(config.settings)]


def adapter_path_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    return ["--testAdapterPath:" + escape_arg(path) for path in config.test_adapter_path]


def framework_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    if not config.framework:
        return []
    return ["--framework:" + escape_arg(config.framework)]


def platform_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    # vstest.console 的 platform 参数只接受 x86/x64 等具体值
    if not config.platform or "AnyCPU" in config.platform:
        return []
    return ["--platform:" + escape_arg(config.platform)]


def case_filter_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    if not config.test_case_filter:
        return []
    return ["--testCaseFilter:" + escape_arg(config.test_case_filter)]


def logger_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    tokens = []
    for spec in config.logger:
        tokens.append("--logger:" + escape_arg(spec))
        if spec.lower().startswith("console"):
            state.console_logger_specified_by_user = True
    return tokens


def results_directory_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    if not config.results_directory:
        return []
    return ["--resultsDirectory:" + escape_arg(config.results_directory)]


def list_tests_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    return ["--listTests"] if config.list_tests else []


def diag_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    if not config.diag:
        return []
    return ["--Diag:" + escape_arg(config.diag)]


def target_file_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    if not config.test_file_full_path:
        state.errors.append(MISSING_TEST_FILE_ERROR)
        return []
    return [escape_arg(config.test_file_full_path)]


def console_verbosity_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    # 用户指定了 verbosity 但没有 console logger 时，补一个默认的 console logger
    if not config.verbosity or state.console_logger_specified_by_user:
        return []
    return ["--logger:Console;Verbosity=" + resolve_console_verbosity(config.verbosity)]


def blame_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    blame_crash = bool(config.blame_crash)
    blame_hang = bool(config.blame_hang)
    if not (config.blame or blame_crash or blame_hang):
        return []

    dump_args: list[str] = []
    if blame_crash:
        dump_args.append("CollectDump")
        if config.blame_crash_collect_always:
            # 取值是"是否为空"而不是标志本身，非空时恒为 False
            collect_always = not config.blame_crash_collect_always
            dump_args.append(f"CollectAlways={collect_always}")
        if config.blame_crash_dump_type:
            dump_args.append(f"DumpType={config.blame_crash_dump_type}")

    if blame_hang:
        dump_args.append("CollectHangDump")
        if config.blame_hang_dump_type:
            dump_args.append(f"HangDumpType={config.blame_hang_dump_type}")
        if config.blame_hang_timeout:
            dump_args.append(f"TestTimeout={config.blame_hang_timeout}")

    if not dump_args:
        return ["--Blame"]
    return ['--Blame:"' + ";".join(dump_args) + '"']


def collect_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    tokens = []
    for collector in config.collect:
        if _is_code_coverage(collector):
            state.collecting_code_coverage = True
        tokens.append("--collect:" + escape_arg(collector))
    return tokens


def trace_data_collector_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    # runsettings 也可能开启代码覆盖率，因此两种情况都追加收集器目录；
    # --testAdapterPath 可重复，与前面的适配器路径取并集
    if not (state.collecting_code_coverage or state.run_settings_enabled):
        return []
    if not config.trace_data_collector_directory_path:
        return []
    return ["--testAdapterPath:" + escape_arg(config.trace_data_collector_directory_path)]


def no_logo_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    return ["--nologo"] if config.no_logo else []


def artifacts_processing_mode_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    if config.artifacts_processing_mode.lower() == "collect":
        return ["--artifactsProcessingMode-collect"]
    return []


def session_correlation_id_rule(config: RunConfiguration, state: BuildState) -> list[str]:
    if not config.session_correlation_id:
        return []
    return ["--testSessionCorrelationId:" + escape_arg(config.session_correlation_id)]


EMISSION_RULES: tuple[EmissionRule, ...] = (
    settings_rule,
    adapter_path_rule,
    framework_rule,
    platform_rule,
    case_filter_rule,
    logger_rule,
    results_directory_rule,
    list_tests_rule,
    diag_rule,
    target_file_rule,
    console_verbosity_rule,
    blame_rule,
    collect_rule,
    trace_data_collector_rule,
    no_logo_rule,
    artifacts_processing_mode_rule,
    session_correlation_id_rule,
)


def run_settings_arguments(config: RunConfiguration) -> list[str]:
    """透传设置：一个 "--" 分隔符加上逐个转义的 token。"""
    if not config.cli_run_settings:
        return []
    return [RUN_SETTINGS_SEPARATOR, *(escape_arg(arg) for arg in config.cli_run_settings)]


# =============================================================================
# 构建器
# =============================================================================


class ArgumentBuilder:
    """按规则顺序构建 vstest.console 参数。

    配置错误通过 sink 以 error 级别报告，不抛异常，也不中断构建。

    Example:
        builder = ArgumentBuilder(sink=logging.getLogger("build"))
        tokens = builder.build(RunConfiguration(
            runner_version="17.8.0",
            package_cache_root="/home/me/.nuget/packages",
            test_file_full_path="/t/tests.dll",
        ))
    """

    def __init__(
        self,
        sink: LogSink | None = None,
        rules: Sequence[EmissionRule] = EMISSION_RULES,
    ) -> None:
        """初始化构建器。

        Args:
            sink: 日志输出目标，默认使用本模块 logger
            rules: 有序的参数规则
        """
        self._sink = sink or logger
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[EmissionRule, ...]:
        return self._rules

    def build(self, config: RunConfiguration) -> list[str]:
        """构建参数列表。

        Args:
            config: 运行配置

        Returns:
            有序的命令行 token 列表
        """
        tokens, _ = self.build_with_state(config)
        return tokens

    def build_with_state(self, config: RunConfiguration) -> tuple[list[str], BuildState]:
        """构建参数列表，同时返回派生状态（便于宿主和测试检查）。"""
        state = BuildState()
        tokens: list[str] = []

        for rule in self._rules:
            reported = len(state.errors)
            tokens.extend(rule(config, state))
            for error in state.errors[reported:]:
                self._sink.error(error)

        # 透传设置必须是最后的参数
        tokens.extend(run_settings_arguments(config))
        return tokens, state


def build_arguments(config: RunConfiguration, sink: LogSink | None = None) -> list[str]:
    """便捷函数：使用默认规则构建参数列表。"""
    return ArgumentBuilder(sink=sink).build(config)
