"""Human-readable renderings of capabilities, histories and test results."""

import platform
from datetime import datetime
from typing import Optional

from .capabilities import CapabilitySnapshot, missing_required, select_annotation_tool

STATUS_SYMBOLS = {
    "pass": "✓",
    "success": "✓",
    "warn": "⚠",
    "skip": "-",
    "fail": "✗",
    "failed": "✗",
}


def format_time(timestamp) -> str:
    """Local time for an epoch timestamp, or "never"."""
    if timestamp is None:
        return "never"
    try:
        return datetime.fromtimestamp(float(timestamp)).strftime("%Y-%m-%d %H:%M:%S")
    except (TypeError, ValueError, OverflowError, OSError):
        return str(timestamp)


def _symbol(status: str) -> str:
    return STATUS_SYMBOLS.get(status, "?")


def render_capability_report(snapshot: CapabilitySnapshot, annotation_preference: str = "auto") -> str:
    lines = [f"Capabilities (probed {format_time(snapshot.probed_at)})", ""]
    for name, record in sorted(snapshot.records.items()):
        if not record.available:
            lines.append(f"  ✗ {name}: not installed")
            continue
        version = record.version or "unknown version"
        lines.append(f"  ✓ {name} {version}")
        flags = record.enabled_flags()
        if flags:
            lines.append(f"      flags: {', '.join(flags)}")

    lines.append("")
    lines.append(f"Annotation tool: {select_annotation_tool(snapshot, annotation_preference)}")
    missing = missing_required(snapshot)
    if missing:
        lines.append(f"Missing required tools: {', '.join(missing)}")
    else:
        lines.append("All required tools installed")
    return "\n".join(lines)


def render_migration_history(history: list[dict]) -> str:
    if not history:
        return "No migrations recorded"
    lines = []
    for entry in history:
        lines.append(
            f"{_symbol(entry.get('status', ''))} {format_time(entry.get('timestamp'))} "
            f"{entry.get('tool', '?')}: {entry.get('old_version') or '?'} -> "
            f"{entry.get('new_version') or '?'} ({entry.get('status', 'unknown')})"
        )
    return "\n".join(lines)


def render_test_history(history: list[dict]) -> str:
    if not history:
        return "No compatibility tests recorded"
    lines = []
    for record in history:
        result = record.get("overall_result", "unknown")
        duration = record.get("duration")
        took = f" ({float(duration):.1f}s)" if isinstance(duration, (int, float)) else ""
        lines.append(f"{_symbol(result)} {result} {format_time(record.get('start_time'))}{took}")
    return "\n".join(lines)


def render_test_record(record: dict) -> str:
    """Render one test record as a component table plus verdict."""
    lines = [f"Compatibility test {format_time(record.get('start_time'))}"]
    for result in record.get("component_results", []):
        status = result.get("status", "?")
        marker = " (critical)" if result.get("critical") else ""
        detail = result.get("detail") or ""
        lines.append(f"  {_symbol(status)} {result.get('component', '?'):<12} {status:<5}{marker} {detail}".rstrip())
    overall = record.get("overall_result", "unknown")
    lines.append(f"Overall: {_symbol(overall)} {overall}")
    return "\n".join(lines)


def system_info() -> dict[str, str]:
    uname = platform.uname()
    return {
        "os": uname.system,
        "release": uname.release,
        "architecture": uname.machine,
        "python": platform.python_version(),
    }


def generate_report(
    snapshot: CapabilitySnapshot,
    ledger_document: dict,
    test_history: list[dict],
    annotation_preference: str = "auto",
    generated_at: Optional[float] = None,
) -> str:
    """Full compatibility report as plain text."""
    generated = datetime.fromtimestamp(generated_at) if generated_at is not None else datetime.now()
    info = system_info()
    sections = [
        "hyss compatibility report",
        "=" * 25,
        f"Generated: {generated.strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "System",
        "------",
        f"OS: {info['os']} {info['release']}",
        f"Architecture: {info['architecture']}",
        f"Python: {info['python']}",
        "",
        "Tool versions",
        "-------------",
    ]
    versions = snapshot.versions
    if versions:
        sections += [f"{tool}: {version or 'unknown'}" for tool, version in versions.items()]
    else:
        sections.append("No tools detected")

    sections += ["", render_capability_report(snapshot, annotation_preference), ""]

    sections += ["Latest test results", "-------------------"]
    if test_history:
        sections.append(render_test_record(test_history[-1]))
    else:
        sections.append("No compatibility tests recorded")

    sections += [
        "",
        "Migration history",
        "-----------------",
        f"Last check: {format_time(ledger_document.get('last_check'))}",
        render_migration_history(ledger_document.get("migration_history", [])),
        "",
        "Test history",
        "------------",
        render_test_history(test_history),
    ]
    return "\n".join(sections) + "\n"
