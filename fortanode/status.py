"""Rendering of node health reports in several output formats."""

from __future__ import annotations

import csv
import enum
import io
import json
from dataclasses import dataclass
from typing import Dict, Iterable, List

from .color import Attr, colorize

FORMAT_PRETTY = "pretty"
FORMAT_ONELINE = "oneline"
FORMAT_JSON = "json"
FORMAT_CSV = "csv"

SHOW_SUMMARY = "summary"
SHOW_IMPORTANT = "important"
SHOW_ALL = "all"

BALL_PREFIX = "⬤ "


class Status(str, enum.Enum):
    """Health status of a report."""

    OK = "ok"
    DOWN = "down"
    FAILING = "failing"
    LAGGING = "lagging"
    INFO = "info"
    UNKNOWN = "unknown"


_BALL_COLORS: Dict[Status, Attr] = {
    Status.OK: Attr.FG_GREEN,
    Status.DOWN: Attr.FG_RED,
    Status.FAILING: Attr.FG_YELLOW,
    Status.LAGGING: Attr.FG_YELLOW,
    Status.INFO: Attr.FG_BLUE,
    Status.UNKNOWN: Attr.FAINT,
}


@dataclass(frozen=True)
class Report:
    """One named health report."""

    name: str
    status: Status
    details: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", Status(self.status))

    def _to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "status": self.status.value, "details": self.details}


class _Painter:
    def __init__(self, no_color: bool) -> None:
        self.no_color = no_color

    def paint(self, text: str, *attrs: Attr) -> str:
        return text if self.no_color else colorize(text, *attrs)

    def ball(self, status: Status) -> str:
        if self.no_color:
            return ""
        return colorize(BALL_PREFIX, _BALL_COLORS[status])

    def status(self, text: str) -> str:
        return self.paint(text, Attr.BOLD)

    def name(self, text: str) -> str:
        return self.paint(text, Attr.FG_WHITE, Attr.BOLD)

    def details(self, status: Status, text: str) -> str:
        if status in (Status.OK, Status.INFO):
            return self.paint(text, Attr.FAINT)
        return self.paint(text, Attr.FG_YELLOW)


def filter_reports(reports: Iterable[Report], show: str) -> List[Report]:
    """Reports sorted by name and selected by ``show``.

    ``summary`` keeps summary reports, ``important`` drops informational ones,
    ``all`` keeps everything; any other value keeps nothing.
    """
    selected = []
    for report in sorted(reports, key=lambda r: r.name):
        if show == SHOW_SUMMARY:
            include = "summary" in report.name
        elif show == SHOW_IMPORTANT:
            include = report.status != Status.INFO
        else:
            include = show == SHOW_ALL
        if include:
            selected.append(report)
    return selected


def format_pretty(reports: Iterable[Report], no_color: bool = False) -> str:
    """Reports as name lines followed by status lines."""
    painter = _Painter(no_color)
    parts = []
    for report in reports:
        parts.append(painter.name(report.name))
        parts.append("\n")
        parts.append(painter.ball(report.status))
        parts.append(painter.status(report.status.value))
        if report.details:
            parts.append(painter.status(": "))
            parts.append(painter.details(report.status, report.details))
        parts.append("\n\n")
    return "".join(parts)


def format_oneline(reports: Iterable[Report], no_color: bool = False) -> str:
    """Reports as one ``status | name | details`` line each."""
    painter = _Painter(no_color)
    parts = []
    for report in reports:
        parts.append(painter.ball(report.status))
        parts.append(painter.status(report.status.value))
        parts.append(" | ")
        parts.append(painter.name(report.name))
        if report.details:
            parts.append(" | ")
            parts.append(painter.details(report.status, report.details))
        parts.append("\n")
    return "".join(parts)


def format_json(reports: Iterable[Report]) -> str:
    """Reports as an indented JSON array; ``null`` when there are none."""
    items = [report._to_dict() for report in reports]
    return json.dumps(items or None, indent=2, ensure_ascii=False) + "\n"


def format_csv(reports: Iterable[Report]) -> str:
    """Reports as ``name,status,details`` CSV records."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for report in reports:
        writer.writerow([report.name, report.status.value, report.details])
    return buffer.getvalue()


def render_reports(
    reports: Iterable[Report],
    output_format: str = FORMAT_PRETTY,
    show: str = SHOW_SUMMARY,
    no_color: bool = False,
) -> str:
    """Select reports by ``show`` and render them in ``output_format``."""
    selected = filter_reports(reports, show)
    if output_format == FORMAT_PRETTY:
        return format_pretty(selected, no_color)
    if output_format == FORMAT_ONELINE:
        return format_oneline(selected, no_color)
    if output_format == FORMAT_JSON:
        return format_json(selected)
    if output_format == FORMAT_CSV:
        return format_csv(selected)
    raise ValueError(f"unknown format: {output_format}")