"""Runtime 模块异常类。

run-vstest runtime v0.1.0
"""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "ProcessError",
    "ProcessStartError",
]


class ProcessError(Exception):
    """子进程执行基础异常。"""
    pass


class ProcessStartError(ProcessError):
    """子进程启动失败（可执行文件不存在、无执行权限等），不重试。

    Attributes:
        executable: 尝试启动的可执行文件路径
        reason: 底层 OSError
    """

    def __init__(self, executable: Path | str, reason: OSError) -> None:
        self.executable = Path(executable)
        self.reason = reason
        super().__init__(f"Failed to start {self.executable}: {reason}")
