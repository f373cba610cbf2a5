from __future__ import annotations

import logging
from collections import Counter
from html import escape
from pathlib import Path
from typing import Sequence, Union

from azhealth.models import SEVERITIES, CollectionWarning, HealthRecord, Issue, Report


logger = logging.getLogger("azhealth.reporter")

REPORT_TITLE = "Azure Resource Health Report"

_STYLE = """
body { font-family: Segoe UI, Arial, sans-serif; margin: 24px; color: #222; }
h1 { margin-bottom: 4px; }
.meta { color: #666; font-size: 13px; margin: 2px 0; }
.summary span { display: inline-block; margin-right: 16px; }
.notice { background: #fff4ce; border: 1px solid #e0c36b; padding: 8px 12px; margin: 12px 0; }
table { border-collapse: collapse; width: 100%; margin: 12px 0 28px; }
th, td { border: 1px solid #ddd; padding: 6px 8px; text-align: left; font-size: 14px; }
th { background: #0078d4; color: #fff; }
tr:nth-child(even) { background: #f7f7f7; }
.high { color: #a80000; font-weight: bold; }
.medium { color: #b35c00; font-weight: bold; }
.low { color: #6b6b00; }
.available { color: #107c10; }
.degraded { color: #b35c00; }
.unavailable { color: #a80000; font-weight: bold; }
.unknown { color: #666; }
"""


def _e(value: object) -> str:
    return escape(str(value if value is not None else ""), quote=True)


def _css_key(value: str) -> str:
    return _e((value or "").strip().lower())


def _health_rows(records: Sequence[HealthRecord]) -> str:
    rows = []
    for record in records:
        rows.append(
            "<tr>"
            f"<td>{_e(record.resource_name)}</td>"
            f"<td>{_e(record.resource_type)}</td>"
            f'<td class="{_css_key(record.availability_state)}">{_e(record.availability_state)}</td>'
            f"<td>{_e(record.location)}</td>"
            "</tr>"
        )
    return "\n".join(rows)


def _issue_rows(issues: Sequence[Issue]) -> str:
    rows = []
    for issue in issues:
        rows.append(
            "<tr>"
            f"<td>{_e(issue.resource_name)}</td>"
            f"<td>{_e(issue.issue_type)}</td>"
            f'<td class="{_css_key(issue.severity)}">{_e(issue.severity)}</td>'
            f"<td>{_e(issue.description)}</td>"
            f"<td>{_e(issue.recommended_action)}</td>"
            "</tr>"
        )
    return "\n".join(rows)


def _summary(issues: Sequence[Issue]) -> str:
    counts = Counter(issue.severity for issue in issues)
    parts = [f"<span>Total issues: {len(issues)}</span>"]
    parts.extend(
        f'<span class="{_css_key(sev)}">{_e(sev)}: {counts.get(sev, 0)}</span>' for sev in SEVERITIES
    )
    return f'<p class="summary">{"".join(parts)}</p>'


def _notice(report: Report) -> str:
    if not (report.partial or report.warnings):
        return ""
    lines = []
    if report.partial:
        lines.append("<p><strong>Partial report:</strong> collection stopped before every resource was processed.</p>")
    if report.warnings:
        items = "\n".join(_warning_item(w) for w in report.warnings)
        lines.append(f"<p>{len(report.warnings)} collection warning(s):</p>\n<ul>\n{items}\n</ul>")
    return f'<div class="notice">\n{"".join(lines)}\n</div>'


def _warning_item(warning: CollectionWarning) -> str:
    return f"<li>{_e(warning.resource_name)} [{_e(warning.stage)}]: {_e(warning.message)}</li>"


def render_report_html(report: Report) -> str:
    generated = report.generated_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    scope_line = f'<p class="meta">Scope: {_e(report.scope)}</p>' if report.scope else ""

    if report.health_records:
        health_table = f"""<table>
<tr><th>Resource Name</th><th>Type</th><th>State</th><th>Location</th></tr>
{_health_rows(report.health_records)}
</table>"""
    else:
        health_table = '<p class="meta">No health records collected.</p>'

    if report.issues:
        issue_table = f"""<table>
<tr><th>Resource Name</th><th>Issue Type</th><th>Severity</th><th>Description</th><th>Recommended Action</th></tr>
{_issue_rows(report.issues)}
</table>"""
    else:
        issue_table = '<p class="meta">No issues detected.</p>'

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>{_e(REPORT_TITLE)}</title>
<style>{_STYLE}</style>
</head>
<body>
<h1>{_e(REPORT_TITLE)}</h1>
<p class="meta">Generated: {_e(generated)}</p>
{scope_line}
{_summary(report.issues)}
{_notice(report)}
<h2>Resource Health Status</h2>
{health_table}
<h2>Detected Issues</h2>
{issue_table}
</body>
</html>
"""


def write_report(report: Report, path: Union[str, Path]) -> Path:
    """Renders the whole document, then writes it as UTF-8, replacing any existing file."""
    document = render_report_html(report)
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(document, encoding="utf-8")
    logger.info(
        "Report written: path=%s health_records=%s issues=%s", target, len(report.health_records), len(report.issues)
    )
    return target
