"""vstest 运行配置类型定义。

run-vstest vstest v0.1.0

定义运行配置、宿主属性模型和 verbosity 映射等类型。
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

__all__ = [
    "CODE_COVERAGE",
    "NORMAL_VERBOSITY",
    "QUIET_VERBOSITY",
    "RunConfiguration",
    "RunProperties",
]

# 数据收集器名称：代码覆盖率
CODE_COVERAGE = "Code Coverage"

# 映射到 Console logger 的 normal / quiet 级别（忽略大小写）
NORMAL_VERBOSITY = frozenset({"n", "normal", "d", "detailed", "diag", "diagnostic"})
QUIET_VERBOSITY = frozenset({"q", "quiet"})

# 列表类字段
_LIST_FIELDS = frozenset({"test_adapter_path", "logger", "collect", "cli_run_settings"})


def _normalize_flag(value: Any) -> str:
    """宿主属性均为字符串；Python 调用方传入的 bool/None 统一转换。"""
    if value is None or value is False:
        return ""
    if value is True:
        return "True"
    return str(value)


@dataclass(frozen=True)
class RunConfiguration:
    """一次测试运行的全部输入（只读）。

    字符串字段为空表示"未设置"；标志类字段（list_tests、no_logo、blame 等）
    非空即视为已设置，与宿主属性的语义一致。

    Attributes:
        runner_version: runner 包版本（必需）
        package_cache_root: 包缓存根目录（必需）
        test_file_full_path: 目标测试程序集路径，为空时报告配置错误
        settings: runsettings 文件路径
        test_adapter_path: 测试适配器搜索路径
        framework: 目标框架
        platform: 目标平台
        test_case_filter: 测试用例筛选表达式
        logger: logger 配置列表
        results_directory: 结果目录
        list_tests: 只列出测试
        diag: 诊断日志路径
        verbosity: 输出详细程度
        blame: 启用 blame
        blame_crash: 崩溃时收集 dump
        blame_crash_collect_always: 总是收集崩溃 dump
        blame_crash_dump_type: 崩溃 dump 类型
        blame_hang: 挂起时收集 dump
        blame_hang_dump_type: 挂起 dump 类型
        blame_hang_timeout: 挂起超时
        collect: 数据收集器列表
        trace_data_collector_directory_path: trace 数据收集器所在目录
        no_logo: 不显示 logo
        artifacts_processing_mode: 产物处理模式
        session_correlation_id: 测试会话关联 ID
        cli_run_settings: 透传给 runner 的设置，始终位于命令行末尾
    """

    runner_version: str
    package_cache_root: str
    test_file_full_path: str = ""
    settings: str = ""
    test_adapter_path: tuple[str, ...] = ()
    framework: str = ""
    platform: str = ""
    test_case_filter: str = ""
    logger: tuple[str, ...] = ()
    results_directory: str = ""
    list_tests: str = ""
    diag: str = ""
    verbosity: str = ""
    blame: str = ""
    blame_crash: str = ""
    blame_crash_collect_always: str = ""
    blame_crash_dump_type: str = ""
    blame_hang: str = ""
    blame_hang_dump_type: str = ""
    blame_hang_timeout: str = ""
    collect: tuple[str, ...] = ()
    trace_data_collector_directory_path: str = ""
    no_logo: str = ""
    artifacts_processing_mode: str = ""
    session_correlation_id: str = ""
    cli_run_settings: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        """列表转为 tuple（单个字符串视为一个元素），bool/None/Path 转为字符串。"""
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _LIST_FIELDS:
                if isinstance(value, str):
                    value = (value,) if value else ()
                normalized: Any = tuple(str(v) for v in value or ())
            else:
                normalized = _normalize_flag(value)
            object.__setattr__(self, f.name, normalized)


class RunProperties(BaseModel):
    """宿主以属性名提供的运行参数。

    字段别名即宿主的属性名（TestFileFullPath、VSTestSetting 等）；
    列表属性传入单个字符串时视为只有一个元素。未知属性被忽略。
    """

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
    )

    runner_version: str = Field(default="", alias="VSTestRunnerVersion")
    package_cache_root: str = Field(default="", alias="NugetPath")
    test_file_full_path: str = Field(default="", alias="TestFileFullPath")
    settings: str = Field(default="", alias="VSTestSetting")
    test_adapter_path: list[str] = Field(default_factory=list, alias="VSTestTestAdapterPath")
    framework: str = Field(default="", alias="VSTestFramework")
    platform: str = Field(default="", alias="VSTestPlatform")
    test_case_filter: str = Field(default="", alias="VSTestTestCaseFilter")
    logger: list[str] = Field(default_factory=list, alias="VSTestLogger")
    results_directory: str = Field(default="", alias="VSTestResultsDirectory")
    list_tests: str = Field(default="", alias="VSTestListTests")
    diag: str = Field(default="", alias="VSTestDiag")
    verbosity: str = Field(default="", alias="VSTestVerbosity")
    blame: str = Field(default="", alias="VSTestBlame")
    blame_crash: str = Field(default="", alias="VSTestBlameCrash")
    blame_crash_collect_always: str = Field(default="", alias="VSTestBlameCrashCollectAlways")
    blame_crash_dump_type: str = Field(default="", alias="VSTestBlameCrashDumpType")
    blame_hang: str = Field(default="", alias="VSTestBlameHang")
    blame_hang_dump_type: str = Field(default="", alias="VSTestBlameHangDumpType")
    blame_hang_timeout: str = Field(default="", alias="VSTestBlameHangTimeout")
    collect: list[str] = Field(default_factory=list, alias="VSTestCollect")
    trace_data_collector_directory_path: str = Field(
        default="", alias="VSTestTraceDataCollectorDirectoryPath"
    )
    no_logo: str = Field(default="", alias="VSTestNoLogo")
    artifacts_processing_mode: str = Field(default="", alias="VSTestArtifactsProcessingMode")
    session_correlation_id: str = Field(default="", alias="VSTestSessionCorrelationId")
    cli_run_settings: list[str] = Field(default_factory=list, alias="VSTestCLIRunSettings")

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_property(cls, value: Any, info: ValidationInfo) -> Any:
        if info.field_name in _LIST_FIELDS:
            if value is None:
                return []
            if isinstance(value, str):
                return [value]
            return value
        return _normalize_flag(value)

    @classmethod
    def from_file(cls, path: Path | str) -> "RunProperties":
        """从 JSON 属性文件加载。

        Raises:
            OSError: 文件无法读取
            pydantic.ValidationError: 内容不合法
        """
        with open(path, encoding="utf-8") as f:
            return cls.model_validate(json.load(f))

    def to_run_configuration(self, **overrides: Any) -> RunConfiguration:
        """转换为 RunConfiguration，overrides 中的值优先。"""
        values = self.model_dump(by_alias=False)
        values.update(overrides)
        return RunConfiguration(**values)
