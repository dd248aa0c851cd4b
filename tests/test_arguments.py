"""参数构建模块测试。

测试覆盖：
- 每条规则的输出和顺序
- console logger / verbosity 推导
- blame 子参数
- 代码覆盖率与 trace 收集器目录
- 透传设置始终位于末尾
- 缺少测试文件时的错误报告
"""

from __future__ import annotations

import logging

import pytest

from run_vstest.vstest import (
    EMISSION_RULES,
    MISSING_TEST_FILE_ERROR,
    ArgumentBuilder,
    BuildState,
    build_arguments,
    resolve_console_verbosity,
)
from run_vstest.vstest.arguments import blame_rule, platform_rule


# =============================================================================
# verbosity 映射
# =============================================================================


class TestResolveConsoleVerbosity:
    """resolve_console_verbosity 测试。"""

    @pytest.mark.parametrize("value", ["n", "normal", "d", "detailed", "diag", "diagnostic", "DIAG", "Normal"])
    def test_normal(self, value: str):
        assert resolve_console_verbosity(value) == "normal"

    @pytest.mark.parametrize("value", ["q", "quiet", "Q", "QUIET"])
    def test_quiet(self, value: str):
        assert resolve_console_verbosity(value) == "quiet"

    @pytest.mark.parametrize("value", ["m", "minimal", "bogus"])
    def test_fallback_minimal(self, value: str):
        assert resolve_console_verbosity(value) == "minimal"


# =============================================================================
# 基本规则
# =============================================================================


class TestBasicRules:
    """单个字段到 token 的映射。"""

    def test_only_test_file(self, make_config):
        """只有测试文件时只输出一个位置参数。"""
        assert build_arguments(make_config(test_file_full_path="/t/tests.dll")) == ["/t/tests.dll"]

    def test_end_to_end_order(self, make_config):
        """设置、适配器、框架、测试文件、默认 console logger 的顺序。"""
        config = make_config(
            settings="run.settings",
            test_adapter_path=["/a"],
            framework="net6.0",
            test_file_full_path="/t/tests.dll",
            verbosity="detailed",
        )
        assert build_arguments(config) == [
            "--settings:run.settings",
            "--testAdapterPath:/a",
            "--framework:net6.0",
            "/t/tests.dll",
            "--logger:Console;Verbosity=normal",
        ]

    def test_full_order(self, make_config):
        """所有选项同时设置时的完整顺序。"""
        config = make_config(
            settings="run.settings",
            test_adapter_path=["/a", "/b"],
            framework="net8.0",
            platform="x64",
            test_case_filter="Priority=1",
            logger=["trx"],
            results_directory="/results",
            list_tests=True,
            diag="/diag.log",
            test_file_full_path="/t/tests.dll",
            verbosity="q",
            blame=True,
            collect=["XPlat Code Coverage"],
            trace_data_collector_directory_path="/trace",
            no_logo=True,
            artifacts_processing_mode="collect",
            session_correlation_id="abc-123",
            cli_run_settings=["MSTest.DeploymentEnabled=false"],
        )
        assert build_arguments(config) == [
            "--settings:run.settings",
            "--testAdapterPath:/a",
            "--testAdapterPath:/b",
            "--framework:net8.0",
            "--platform:x64",
            "--testCaseFilter:Priority=1",
            "--logger:trx",
            "--resultsDirectory:/results",
            "--listTests",
            "--Diag:/diag.log",
            "/t/tests.dll",
            "--logger:Console;Verbosity=quiet",
            "--Blame",
            '--collect:"XPlat Code Coverage"',
            "--testAdapterPath:/trace",
            "--nologo",
            "--artifactsProcessingMode-collect",
            "--testSessionCorrelationId:abc-123",
            "--",
            "MSTest.DeploymentEnabled=false",
        ]

    def test_values_are_escaped(self, make_config):
        """含空白的值被引号包裹。"""
        config = make_config(
            settings="/my dir/run.settings",
            test_file_full_path="/my dir/tests.dll",
        )
        assert build_arguments(config) == [
            '--settings:"/my dir/run.settings"',
            '"/my dir/tests.dll"',
        ]

    def test_platform_x64(self, make_config):
        assert "--platform:x64" in build_arguments(make_config(test_file_full_path="t.dll", platform="x64"))

    @pytest.mark.parametrize("platform", ["AnyCPU", "AnyCPU64"])
    def test_platform_anycpu_suppressed(self, make_config, platform: str):
        """包含 AnyCPU 的平台不输出 --platform。"""
        tokens = build_arguments(make_config(test_file_full_path="t.dll", platform=platform))
        assert not any(t.startswith("--platform") for t in tokens)
        assert platform_rule(make_config(platform=platform), BuildState()) == []

    def test_list_tests_flag_string(self, make_config):
        """标志类字段非空即视为设置。"""
        assert "--listTests" in build_arguments(make_config(test_file_full_path="t.dll", list_tests="true"))
        assert "--listTests" not in build_arguments(make_config(test_file_full_path="t.dll", list_tests=""))

    @pytest.mark.parametrize("mode,expected", [("collect", True), ("COLLECT", True), ("embed", False)])
    def test_artifacts_processing_mode(self, make_config, mode: str, expected: bool):
        tokens = build_arguments(make_config(test_file_full_path="t.dll", artifacts_processing_mode=mode))
        assert ("--artifactsProcessingMode-collect" in tokens) is expected


# =============================================================================
# logger / verbosity
# =============================================================================


class TestConsoleLogger:
    """默认 console logger 推导测试。"""

    @pytest.mark.parametrize("spec", ["console", "Console;Verbosity=detailed", "CONSOLE"])
    def test_user_console_logger_suppresses_default(self, make_config, spec: str):
        """用户指定了 console logger 时不再补默认 logger。"""
        config = make_config(test_file_full_path="t.dll", logger=["trx", spec], verbosity="diag")
        tokens = build_arguments(config)
        assert not any(t.startswith("--logger:Console;Verbosity=") for t in tokens)
        assert tokens.count("--logger:trx") == 1

    def test_diag_maps_to_normal(self, make_config):
        tokens = build_arguments(make_config(test_file_full_path="t.dll", verbosity="diag"))
        assert tokens.count("--logger:Console;Verbosity=normal") == 1

    def test_quiet(self, make_config):
        tokens = build_arguments(make_config(test_file_full_path="t.dll", verbosity="q"))
        assert "--logger:Console;Verbosity=quiet" in tokens

    def test_unknown_verbosity_is_minimal(self, make_config):
        tokens = build_arguments(make_config(test_file_full_path="t.dll", verbosity="bogus"))
        assert "--logger:Console;Verbosity=minimal" in tokens

    def test_no_verbosity_no_default_logger(self, make_config):
        tokens = build_arguments(make_config(test_file_full_path="t.dll"))
        assert not any(t.startswith("--logger") for t in tokens)

    def test_single_string_logger(self, make_config):
        """logger 传入单个字符串时只生成一个 --logger。"""
        tokens = build_arguments(make_config(test_file_full_path="t.dll", logger="trx"))
        assert [t for t in tokens if t.startswith("--logger")] == ["--logger:trx"]

    def test_state_flag(self, make_config):
        _, state = ArgumentBuilder().build_with_state(
            make_config(test_file_full_path="t.dll", logger=["Console"])
        )
        assert state.console_logger_specified_by_user is True


# =============================================================================
# blame
# =============================================================================


class TestBlame:
    """blame 参数测试。"""

    def test_no_blame_flags(self, make_config):
        tokens = build_arguments(make_config(test_file_full_path="t.dll", blame_crash_dump_type="full"))
        assert not any(t.startswith("--Blame") for t in tokens)

    def test_blame_only(self, make_config):
        assert blame_rule(make_config(blame="true"), BuildState()) == ["--Blame"]

    def test_crash_dump_type(self, make_config):
        tokens = build_arguments(
            make_config(test_file_full_path="t.dll", blame_crash=True, blame_crash_dump_type="full")
        )
        assert tokens.count('--Blame:"CollectDump;DumpType=full"') == 1
        assert len([t for t in tokens if t.startswith("--Blame")]) == 1

    @pytest.mark.parametrize("value", ["true", "false", "True"])
    def test_collect_always_reflects_emptiness(self, make_config, value: str):
        """CollectAlways 取值为"是否为空"，非空值一律输出 False。"""
        config = make_config(blame_crash="true", blame_crash_collect_always=value)
        assert blame_rule(config, BuildState()) == ['--Blame:"CollectDump;CollectAlways=False"']

    def test_collect_always_omitted_when_empty(self, make_config):
        config = make_config(blame_crash="true", blame_crash_collect_always="")
        assert blame_rule(config, BuildState()) == ['--Blame:"CollectDump"']

    def test_hang_dump(self, make_config):
        config = make_config(blame_hang=True, blame_hang_dump_type="mini", blame_hang_timeout="5min")
        assert blame_rule(config, BuildState()) == [
            '--Blame:"CollectHangDump;HangDumpType=mini;TestTimeout=5min"'
        ]

    def test_crash_and_hang_order(self, make_config):
        config = make_config(
            blame=True,
            blame_crash=True,
            blame_crash_collect_always="yes",
            blame_crash_dump_type="full",
            blame_hang=True,
            blame_hang_timeout="10s",
        )
        assert blame_rule(config, BuildState()) == [
            '--Blame:"CollectDump;CollectAlways=False;DumpType=full;CollectHangDump;TestTimeout=10s"'
        ]


# =============================================================================
# 代码覆盖率
# =============================================================================


class TestCodeCoverage:
    """--collect 和 trace 收集器目录测试。"""

    def test_code_coverage_with_options(self, make_config):
        """"Code Coverage;Format=Cobertura" 按第一个 token 匹配。"""
        config = make_config(
            test_file_full_path="t.dll",
            collect=["Code Coverage;Format=Cobertura"],
            trace_data_collector_directory_path="/trace",
        )
        tokens, state = ArgumentBuilder().build_with_state(config)
        assert state.collecting_code_coverage is True
        assert tokens[-2:] == ['--collect:"Code Coverage;Format=Cobertura"', "--testAdapterPath:/trace"]

    def test_code_coverage_case_insensitive(self, make_config):
        _, state = ArgumentBuilder().build_with_state(
            make_config(test_file_full_path="t.dll", collect=["code coverage"])
        )
        assert state.collecting_code_coverage is True

    def test_other_collector_no_trace_path(self, make_config):
        config = make_config(
            test_file_full_path="t.dll",
            collect=["XPlat Code Coverage"],
            trace_data_collector_directory_path="/trace",
        )
        tokens, state = ArgumentBuilder().build_with_state(config)
        assert state.collecting_code_coverage is False
        assert "--testAdapterPath:/trace" not in tokens

    def test_settings_enable_trace_path(self, make_config):
        """指定 runsettings 时也追加收集器目录，且不替换已有适配器路径。"""
        config = make_config(
            settings="run.settings",
            test_adapter_path=["/a"],
            test_file_full_path="t.dll",
            trace_data_collector_directory_path="/trace",
        )
        tokens = build_arguments(config)
        assert tokens.count("--testAdapterPath:/a") == 1
        assert tokens.count("--testAdapterPath:/trace") == 1

    def test_coverage_without_trace_path(self, make_config):
        tokens = build_arguments(make_config(test_file_full_path="t.dll", collect=["Code Coverage"]))
        assert not any(t.startswith("--testAdapterPath") for t in tokens)


# =============================================================================
# 透传设置
# =============================================================================


class TestRunSettingsPassThrough:
    """"--" 之后的透传设置测试。"""

    def test_pass_through_is_last(self, make_config):
        config = make_config(
            test_file_full_path="t.dll",
            cli_run_settings=["A=1", "B=two words"],
            no_logo=True,
            session_correlation_id="id",
        )
        tokens = build_arguments(config)
        assert tokens[-3:] == ["--", "A=1", '"B=two words"']
        assert tokens.count("--") == 1

    def test_pass_through_last_with_custom_rules(self, make_config):
        """即使规则顺序被替换，透传设置仍在最后。"""
        builder = ArgumentBuilder(rules=tuple(reversed(EMISSION_RULES)))
        tokens = builder.build(
            make_config(test_file_full_path="t.dll", settings="s", cli_run_settings=["X=1"])
        )
        assert tokens[-2:] == ["--", "X=1"]

    def test_no_separator_without_pass_through(self, make_config):
        assert "--" not in build_arguments(make_config(test_file_full_path="t.dll", no_logo=True))


# =============================================================================
# 错误报告
# =============================================================================


class TestMissingTestFile:
    """缺少测试文件路径的处理。"""

    def test_error_logged_and_build_continues(self, make_config, caplog):
        sink = logging.getLogger("test.sink")
        config = make_config(framework="net6.0", no_logo=True, verbosity="q")

        with caplog.at_level(logging.ERROR, logger="test.sink"):
            tokens, state = ArgumentBuilder(sink=sink).build_with_state(config)

        assert tokens == ["--framework:net6.0", "--logger:Console;Verbosity=quiet", "--nologo"]
        assert state.errors == [MISSING_TEST_FILE_ERROR]
        assert [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR] == [
            MISSING_TEST_FILE_ERROR
        ]

    def test_no_error_with_test_file(self, make_config, caplog):
        with caplog.at_level(logging.ERROR):
            build_arguments(make_config(test_file_full_path="t.dll"))
        assert not caplog.records
