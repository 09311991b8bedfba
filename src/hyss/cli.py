"""Command-line interface for hyss.

Entry point flow:
1. Parse arguments
2. Short-circuit introspection (event catalog, config commands, version)
3. Configure logging and events, take the instance lock
4. Route to the update, capture or OCR command
"""

import argparse
import atexit
import json
import logging
import signal
import sys
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from . import __version__
from .capabilities import CapabilitySnapshot
from .capture import CaptureError, frozen_screen, grab, grab_focused_output, select_area
from .clipboard import ClipboardError, copy_image, copy_text
from .config import (
    Config,
    config_defaults,
    config_schema,
    config_to_dict,
    dump_config,
    load_config,
    resolve_config_path,
    validate_config_file,
)
from .editor import AnnotationError, annotate
from .emit import EVENT_CATALOG, configure, emit
from .imaging import ImageError, enhance_for_ocr, recognize_text
from .instance import InstanceLock, LockBusyError
from .notify import notify_capture, notify_text
from .report import render_capability_report, render_migration_history, render_test_history, render_test_record
from .storage import StorageError, ensure_dir, write_atomic
from .updater import Updater

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
# sysexits.h EX_TEMPFAIL: another instance holds the lock, retry later
EXIT_BUSY = 75

CAPTURE_COMMANDS = ("area", "freeze", "screen", "monitor")


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hyss",
        description="Screenshot tooling for Hyprland with tool capability tracking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s area                       # Select a region and capture it
  %(prog)s freeze                     # Freeze the screen, then select
  %(prog)s screen --output eDP-1      # Capture one monitor
  %(prog)s monitor --annotate         # Capture the focused monitor, then annotate
  %(prog)s ocr                        # Select a region and copy its text
  %(prog)s update check               # Detect version changes and migrate configs
  %(prog)s update test                # Run the compatibility test battery
  %(prog)s update report -o report.txt
""",
    )
    parser.add_argument("--version", action="version", version=f"hyss {__version__}")
    parser.add_argument("--config", metavar="PATH", help="Path to config file (default: platform config dir)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--quiet", action="store_true", help="Only log warnings and disable the stderr event stream")
    parser.add_argument(
        "--print-event-catalog",
        action="store_true",
        help="Print event catalog as JSON and exit",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    # Capture
    commands.add_parser("area", help="Select a region with slurp and capture it")
    commands.add_parser("freeze", help="Freeze the screen, select a region and capture it")
    screen = commands.add_parser("screen", help="Capture the whole screen")
    screen.add_argument("--output", "-o", metavar="NAME", help="Capture one output (e.g. eDP-1)")
    commands.add_parser("monitor", help="Capture the focused monitor")
    for name in CAPTURE_COMMANDS:
        command = commands.choices[name]
        command.add_argument("--no-clipboard", action="store_true", help="Do not copy to clipboard")
        command.add_argument("--cursor", action="store_true", help="Include the cursor")
        command.add_argument("--annotate", action="store_true", help="Open the capture in satty or swappy")
        command.add_argument("--fullscreen", action="store_true", help="Open satty fullscreen when annotating")
    commands.add_parser("ocr", help="Select a region and copy the recognized text")

    # Update system
    update = commands.add_parser("update", help="Capability detection, migration and compatibility tests")
    actions = update.add_subparsers(dest="action", metavar="ACTION", required=True)
    actions.add_parser("check", help="Detect tool version changes and migrate configs")
    actions.add_parser("test", help="Run the compatibility test battery")
    report = actions.add_parser("report", help="Generate a compatibility report")
    report.add_argument("--output", "-o", metavar="PATH", help="Write the report to PATH")
    actions.add_parser("history", help="Show migration and test history")
    actions.add_parser("clean", help="Trim histories and delete expired backups")
    actions.add_parser("regenerate", help="Back up and regenerate every annotation tool config")
    capabilities = actions.add_parser("capabilities", help="Show detected tool capabilities")
    capabilities.add_argument("--refresh", action="store_true", help="Re-probe even if the cache is fresh")
    export = actions.add_parser("export", help="Export migration data as JSON")
    export.add_argument("path", metavar="PATH")

    # Configuration
    config = commands.add_parser("config", help="Inspect or initialize configuration")
    config_actions = config.add_subparsers(dest="action", metavar="ACTION", required=True)
    config_actions.add_parser("show", help="Print resolved configuration as JSON")
    config_actions.add_parser("path", help="Print the config file path")
    config_actions.add_parser("validate", help="Validate the config file")
    config_actions.add_parser("defaults", help="Print default configuration as JSON")
    config_actions.add_parser("schema", help="Print configuration schema as JSON")
    config_actions.add_parser("init", help="Write the default config file")

    commands.add_parser("version", help="Print version")

    return parser


def _emit_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _error(error_type: str, message: str, command: str) -> None:
    emit("error.handled", {"error_type": error_type, "message": message, "command": command})
    log.error(message)


def _on_sigterm(signum, frame):
    # Unwind through finally blocks so the lock and temp files are cleaned up
    sys.exit(128 + signum)


def handle_config(args: argparse.Namespace, config_path: Optional[Path]) -> int:
    if args.action == "defaults":
        _emit_json(config_defaults())
        return EXIT_OK

    if args.action == "schema":
        _emit_json(config_schema())
        return EXIT_OK

    if args.action == "path":
        print(resolve_config_path(config_path))
        return EXIT_OK

    if args.action == "validate":
        try:
            errors = validate_config_file(config_path)
        except ValueError as e:
            errors = [str(e)]
        if errors:
            for error in errors:
                print(error, file=sys.stderr)
            return EXIT_FAILURE
        print("Configuration is valid")
        return EXIT_OK

    if args.action == "show":
        _emit_json(config_to_dict(load_config(config_path=config_path)))
        return EXIT_OK

    if args.action == "init":
        path = resolve_config_path(config_path)
        if path.exists():
            backup = path.with_name(f"{path.name}.backup.{int(time.time() * 1000)}")
            write_atomic(backup, path.read_text())
            print(f"Existing config backed up to {backup}")
        write_atomic(path, dump_config(config_defaults()))
        print(f"Wrote default configuration to {path}")
        return EXIT_OK

    return EXIT_FAILURE


def _make_updater(config: Config) -> Updater:
    return Updater(config)


def handle_update(args: argparse.Namespace, config: Config) -> int:
    updater = _make_updater(config)
    updater.init()

    if args.action == "capabilities":
        snapshot = updater.detect_capabilities(force_refresh=args.refresh)
        print(render_capability_report(snapshot, config.annotation_tool))
        return EXIT_OK

    if args.action == "history":
        print("Migration history")
        print(render_migration_history(updater.ledger.history()))
        print()
        print("Test history")
        print(render_test_history(updater.history.records()))
        return EXIT_OK

    if args.action == "clean":
        result = updater.clean_old_data()
        print(f"Trimmed {result.migrations_trimmed} migration entries and {result.tests_trimmed} test records")
        print(f"Removed {len(result.backups_removed)} config backups and {len(result.snapshots_removed)} snapshots")
        return EXIT_OK

    if args.action == "export":
        print(updater.export_migration_data(Path(args.path).expanduser()))
        return EXIT_OK

    if args.action == "report":
        destination = Path(args.output).expanduser() if args.output else None
        text = updater.generate_report(destination)
        if destination is None:
            print(text, end="")
        else:
            print(f"Report written to {destination}")
        return EXIT_OK

    if args.action == "regenerate":
        result = updater.force_regenerate_all_configs()
        if result.backup_dir:
            print(f"Previous configs backed up to {result.backup_dir}")
        for tool, path in result.regenerated.items():
            print(f"✓ {tool}: {path}")
        for tool in result.skipped:
            print(f"- {tool}: not installed, skipped")
        return EXIT_OK

    if args.action == "check":
        outcome = updater.check_for_changes_and_migrate()
        if not outcome.changed:
            print("No tool version changes detected")
        for change in outcome.changes:
            print(f"{change.tool}: {change.old_version or '(new)'} -> {change.new_version or '(removed)'}")
        for result in outcome.results:
            mark = "✓" if result.succeeded else "✗"
            print(f"{mark} {result.tool} migration {result.status} ({result.action})")
        if outcome.failures:
            print(
                "Warning: some migrations failed: "
                + ", ".join(f"{r.tool} ({r.error})" for r in outcome.failures),
                file=sys.stderr,
            )
        return EXIT_OK

    if args.action == "test":
        record = updater.run_compatibility_tests()
        print(render_test_record(record.to_dict()))
        if record.overall_result == "fail":
            return EXIT_FAILURE
        if record.overall_result == "warn":
            degraded = [r.component for r in record.component_results if r.status != "pass"]
            print(f"Warning: degraded components: {', '.join(degraded)}", file=sys.stderr)
        return EXIT_OK

    return EXIT_FAILURE


def _output_path(config: Config) -> Path:
    return config.output_dir / datetime.now().strftime(config.filename_format)


def handle_capture(args: argparse.Namespace, config: Config) -> int:
    """Handle area, freeze, screen and monitor captures."""
    snapshot: CapabilitySnapshot = _make_updater(config).detect_capabilities()
    output_file = _output_path(config)
    ensure_dir(output_file.parent)

    try:
        if args.command == "freeze":
            with frozen_screen(snapshot, settle_ms=config.freeze_settle_ms):
                geometry = select_area(snapshot)
                grab(output_file, snapshot, geometry=geometry, cursor=args.cursor)
        elif args.command == "area":
            geometry = select_area(snapshot)
            grab(output_file, snapshot, geometry=geometry, cursor=args.cursor)
        elif args.command == "monitor":
            grab_focused_output(output_file, snapshot, cursor=args.cursor)
        else:
            grab(output_file, snapshot, output_name=args.output, cursor=args.cursor)
    except CaptureError as e:
        _error("CaptureError", f"Capture failed: {e}", args.command)
        return EXIT_FAILURE

    annotated = False
    if args.annotate:
        try:
            annotate(output_file, snapshot, config, fullscreen=args.fullscreen)
            annotated = True
        except (AnnotationError, StorageError) as e:
            emit("error.handled", {"error_type": type(e).__name__, "message": str(e), "command": args.command})
            log.warning("Saved without annotation: %s", e)

    print(output_file)
    copied = False
    if config.copy_to_clipboard and not args.no_clipboard:
        try:
            copy_image(output_file, snapshot)
            copied = True
        except ClipboardError as e:
            emit("error.handled", {"error_type": "ClipboardError", "message": str(e), "command": args.command})
            log.warning("Saved, but not copied to clipboard: %s", e)

    notify_capture(output_file, snapshot, config, copied)
    emit("capture.completed", {
        "mode": args.command,
        "path": str(output_file),
        "annotated": annotated,
        "copied": copied,
    })
    return EXIT_OK


def handle_ocr(args: argparse.Namespace, config: Config) -> int:
    """Select a region, recognize its text and copy it to the clipboard."""
    snapshot: CapabilitySnapshot = _make_updater(config).detect_capabilities()
    if not snapshot.available("tesseract"):
        _error("ImageError", "tesseract is required for OCR", args.command)
        return EXIT_FAILURE
    if not snapshot.has("tesseract", "eng"):
        _error("ImageError", "tesseract English language data not found", args.command)
        return EXIT_FAILURE

    with tempfile.TemporaryDirectory(prefix="hyss-ocr-") as tmp:
        image = Path(tmp) / "selection.png"
        try:
            geometry = select_area(snapshot)
            grab(image, snapshot, geometry=geometry)
        except CaptureError as e:
            _error("CaptureError", f"OCR capture failed: {e}", args.command)
            return EXIT_FAILURE

        if enhance_for_ocr(image, snapshot):
            log.debug("Image enhanced for OCR")
        try:
            text = recognize_text(image, snapshot).strip()
        except ImageError as e:
            _error("ImageError", str(e), args.command)
            return EXIT_FAILURE

    if not text:
        _error("ImageError", "No text could be extracted from the selected area", args.command)
        return EXIT_FAILURE

    copied = False
    try:
        copy_text(text, snapshot)
        copied = True
    except ClipboardError as e:
        emit("error.handled", {"error_type": "ClipboardError", "message": str(e), "command": args.command})
        log.warning("Text not copied to clipboard: %s", e)

    print(text)
    notify_text(text, snapshot, config)
    emit("ocr.completed", {"characters": len(text), "copied": copied})
    return EXIT_OK


def main(args: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_argument_parser()
    parsed_args = parser.parse_args(args)

    if parsed_args.print_event_catalog:
        _emit_json({"catalog": EVENT_CATALOG})
        return EXIT_OK

    if parsed_args.command is None:
        parser.print_help()
        return EXIT_FAILURE

    if parsed_args.command == "version":
        print(f"hyss {__version__}")
        return EXIT_OK

    config_path = Path(parsed_args.config).expanduser() if parsed_args.config else None

    if parsed_args.command == "config":
        try:
            return handle_config(parsed_args, config_path)
        except StorageError as e:
            log.error("%s", e)
            return EXIT_FAILURE

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.debug else logging.WARNING if parsed_args.quiet else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    configure("hyss", stderr=not parsed_args.quiet)
    atexit.register(lambda: emit("shutdown", {}))
    signal.signal(signal.SIGTERM, _on_sigterm)

    config = load_config(config_path=config_path)
    handlers = {"update": handle_update, "ocr": handle_ocr}
    handler = handlers.get(parsed_args.command, handle_capture)
    command = parsed_args.command
    if command == "update":
        command = f"update {parsed_args.action}"

    try:
        with InstanceLock(config.lock_file):
            return handler(parsed_args, config)
    except LockBusyError as e:
        _error("LockBusyError", str(e), command)
        return EXIT_BUSY
    except StorageError as e:
        _error("StorageError", str(e), command)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
