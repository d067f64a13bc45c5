"""
Plain-text rendering of review reports for the terminal.
"""
from typing import List


def format_finding(finding: dict) -> str:
    line = finding.get("line", 0)
    where = "general" if not line else f"line {line}"
    return f"  [{finding.get('severity', '?')}] ({where}) {finding.get('description', '')}"


def format_report(report: dict) -> str:
    lines = ["Summary:", f"  {report.get('overall_summary', '')}", ""]

    groups = report.get("issues_by_category") or []
    if not groups:
        lines.append("No issues reported.")

    for group in groups:
        findings = group.get("findings") or []
        lines.append(f"{group.get('category', 'Uncategorized')} ({len(findings)})")
        if not findings:
            lines.append("  No findings.")
        lines.extend(format_finding(f) for f in findings)
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def format_history(items: List[dict]) -> str:
    if not items:
        return "No reviews yet.\n"

    lines = []
    for item in items:
        summary = (item.get("reviewReport") or {}).get("overall_summary", "")
        lines.append(f"{item.get('submissionDate', '')}  {item.get('id', '')}  [{item.get('language', '')}]")
        lines.append(f"  {summary}")
    return "\n".join(lines) + "\n"
