"""run-vstest - 通过 vstest.console 运行 .NET 测试。

环境变量:
    RVT_LOG_DEBUG: 日志写入临时文件并开启 DEBUG (默认 false)
    RVT_TERM_TIMEOUT: 清理时 SIGTERM 后等待秒数 (默认 2.0)
    RVT_KILL_TIMEOUT: 清理时 SIGKILL 后等待秒数 (默认 1.0)

用法:
    run-vstest --runner-version 17.8.0 --package-cache ~/.nuget/packages tests.dll
"""

__version__ = "0.1.0"

from .app import main

__all__ = ["__version__", "main"]
