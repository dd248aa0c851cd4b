"""命令行参数转义工具。

run-vstest v0.1.0

runner 在 Windows 上按 C 运行时规则解析命令行：
- 空白分隔参数，双引号内的空白不分隔
- 2n 个反斜杠 + 引号 → n 个反斜杠，引号切换引用状态
- 2n+1 个反斜杠 + 引号 → n 个反斜杠 + 字面引号
- 其他位置的反斜杠按字面处理

escape_arg() 是原始值进入命令行 token 的唯一途径；
split_command_line() 是它的逆过程，供非 Windows 平台还原 argv。

注意：escape_arg() 对已转义的 token 原样返回。原始值中若已含 \\" 且
没有裸引号和空白（例如 Name=\\"x\\"），会被当作已转义的 token，
runner 收到的是 Name="x"。需要字面 \\" 的调用方应自行转义后再传入。
"""

from __future__ import annotations

import re

__all__ = [
    "escape_arg",
    "is_escaped",
    "split_command_line",
]

_WHITESPACE = (" ", "\t", "\n")
_BACKSLASH_RUN = re.compile(r'(\\*)"')


def _contains_whitespace(arg: str) -> bool:
    return any(ch in arg for ch in _WHITESPACE)


def _is_surrounded_with_quotes(arg: str) -> bool:
    return len(arg) > 1 and arg[0] == '"' and arg[-1] == '"'


def _quotes_are_escaped(text: str) -> bool:
    """text 中每个引号前都有奇数个反斜杠。"""
    return all(len(m.group(1)) % 2 == 1 for m in _BACKSLASH_RUN.finditer(text))


def is_escaped(arg: str) -> bool:
    """判断 arg 是否已经是一个完整、合法的转义 token。

    两种形式：
    - 整体被引号包裹：内部引号均已转义，且闭合引号前的反斜杠为偶数个
    - 未包裹：不含空白，所有引号均已转义
    """
    if _is_surrounded_with_quotes(arg):
        inner = arg[1:-1]
        trailing = len(inner) - len(inner.rstrip("\\"))
        return _quotes_are_escaped(inner) and trailing % 2 == 0
    return not _contains_whitespace(arg) and _quotes_are_escaped(arg)


def escape_arg(arg: str) -> str:
    """转义单个参数值，使其经过 runner 的命令行解析后保持不变。

    已经转义过的值原样返回，因此重复调用不会二次转义。

    Args:
        arg: 原始参数值

    Returns:
        可直接拼接进命令行的 token
    """
    if not arg:
        return '""'
    if is_escaped(arg):
        return arg

    needs_quotes = _contains_whitespace(arg)
    parts: list[str] = ['"'] if needs_quotes else []

    i = 0
    length = len(arg)
    while i < length:
        backslashes = 0
        while i < length and arg[i] == "\\":
            backslashes += 1
            i += 1

        if i == length:
            # 末尾的反斜杠在引号包裹时需要加倍，避免吞掉闭合引号
            parts.append("\\" * (backslashes * 2 if needs_quotes else backslashes))
        elif arg[i] == '"':
            parts.append("\\" * (backslashes * 2 + 1) + '"')
            i += 1
        else:
            parts.append("\\" * backslashes + arg[i])
            i += 1

    if needs_quotes:
        parts.append('"')
    return "".join(parts)


def split_command_line(command_line: str) -> list[str]:
    """按 Windows C 运行时规则把命令行字符串拆分为 argv。

    Args:
        command_line: 由空格拼接的 token 字符串

    Returns:
        解析后的参数列表
    """
    args: list[str] = []
    current: list[str] = []
    in_quotes = False
    has_token = False

    i = 0
    length = len(command_line)
    while i < length:
        ch = command_line[i]

        if ch == "\\":
            start = i
            while i < length and command_line[i] == "\\":
                i += 1
            backslashes = i - start
            if i < length and command_line[i] == '"':
                current.append("\\" * (backslashes // 2))
                if backslashes % 2 == 1:
                    current.append('"')
                    i += 1
            else:
                current.append("\\" * backslashes)
            has_token = True
            continue

        if ch == '"':
            in_quotes = not in_quotes
            has_token = True
        elif ch in _WHITESPACE and not in_quotes:
            if has_token:
                args.append("".join(current))
                current = []
                has_token = False
        else:
            current.append(ch)
            has_token = True
        i += 1

    if has_token:
        args.append("".join(current))
    return args
