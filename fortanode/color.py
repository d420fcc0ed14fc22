"""Coloured terminal messages for command output."""

from __future__ import annotations

import enum
import os
import sys
from typing import Any, Iterable, TextIO

_ESCAPE = "\x1b["
_RESET = "\x1b[0m"


class Attr(enum.IntEnum):
    """ANSI SGR attributes."""

    RESET = 0
    BOLD = 1
    FAINT = 2
    ITALIC = 3
    UNDERLINE = 4
    FG_BLACK = 30
    FG_RED = 31
    FG_GREEN = 32
    FG_YELLOW = 33
    FG_BLUE = 34
    FG_MAGENTA = 35
    FG_CYAN = 36
    FG_WHITE = 37


def colorize(text: str, *args: Attr) -> str:
    """Wrap ``text`` in the escape sequence for the given attributes."""
    if not args:
        return text
    sequence = ";".join(str(int(attr)) for attr in args)
    return f"{_ESCAPE}{sequence}m{text}{_RESET}"


def _color_enabled(stream: TextIO) -> bool:
    if "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb":
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty is not None and isatty())


def _format(text: str, args: tuple) -> str:
    return text % args if args else text


def _emit(stream: TextIO, text: str, attrs: Iterable[Attr]) -> str:
    if _color_enabled(stream):
        text = colorize(text, *attrs)
    stream.write(text)
    stream.flush()
    return text


def yellow_bold(text: str, *args: Any) -> str:
    """Write a bold yellow message to stderr and return what was written."""
    return _emit(sys.stderr, _format(text, args), (Attr.BOLD, Attr.FG_YELLOW))


def green_bold(text: str, *args: Any) -> str:
    """Write a bold green message to stdout and return what was written."""
    return _emit(sys.stdout, _format(text, args), (Attr.BOLD, Attr.FG_GREEN))


def red_bold(text: str, *args: Any) -> str:
    """Write a bold red message to stderr and return what was written."""
    return _emit(sys.stderr, _format(text, args), (Attr.BOLD, Attr.FG_RED))


def white_bold(text: str, *args: Any) -> str:
    """Write a bold white message to stdout and return what was written."""
    return _emit(sys.stdout, _format(text, args), (Attr.BOLD, Attr.FG_WHITE))