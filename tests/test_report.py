from conftest import make_snapshot

from hyss.report import (
    generate_report,
    render_capability_report,
    render_migration_history,
    render_test_history,
    render_test_record,
)

RECORD = {
    "start_time": 1_700_000_000.0,
    "end_time": 1_700_000_002.5,
    "duration": 2.5,
    "overall_result": "warn",
    "component_results": [
        {"component": "capture", "status": "pass", "detail": "1920x1080 image", "critical": True},
        {"component": "ocr", "status": "skip", "detail": "tesseract not installed", "critical": False},
    ],
    "tool_versions": {"grim": "1.4.1"},
}


def test_capability_report_lists_missing_tools():
    snapshot = make_snapshot({"grim": ("1.4.1", {"geometry": True}), "slurp": None})
    text = render_capability_report(snapshot)
    assert "✓ grim 1.4.1" in text
    assert "flags: geometry" in text
    assert "✗ slurp: not installed" in text
    assert "Annotation tool: none" in text
    assert "Missing required tools: slurp" in text


def test_history_renderings():
    assert render_migration_history([]) == "No migrations recorded"
    line = render_migration_history([
        {"tool": "satty", "old_version": "1.0.5", "new_version": "1.1.0",
         "timestamp": 1_700_000_000.0, "status": "success"},
    ])
    assert line.startswith("✓ ")
    assert "satty: 1.0.5 -> 1.1.0 (success)" in line

    assert render_test_history([]) == "No compatibility tests recorded"
    assert render_test_history([RECORD]).startswith("⚠ warn ")
    assert render_test_history([RECORD]).endswith("(2.5s)")


def test_render_test_record():
    text = render_test_record(RECORD)
    assert "✓ capture" in text
    assert "(critical)" in text
    assert "tesseract not installed" in text
    assert text.endswith("Overall: ⚠ warn")


def test_generate_report_sections():
    snapshot = make_snapshot({"grim": "1.4.1", "satty": "1.2.0"})
    ledger = {"last_check": None, "migration_history": []}
    text = generate_report(snapshot, ledger, [RECORD], generated_at=1_700_000_000.0)
    for heading in ("System", "Tool versions", "Latest test results", "Migration history", "Test history"):
        assert f"\n{heading}\n" in text
    assert "grim: 1.4.1" in text
    assert "Annotation tool: satty" in text
    assert "Last check: never" in text
    assert "Architecture: " in text
