"""Clipboard access through wl-clipboard."""

import logging
import subprocess
from pathlib import Path
from typing import Optional

from .capabilities import CapabilitySnapshot
from .runner import ProcessRunner, get_runner

log = logging.getLogger(__name__)


class ClipboardError(Exception):
    """Raised when wl-copy or wl-paste fails."""
    pass


def _run(runner: ProcessRunner, argv: list[str], data=None, text: bool = True, capture: bool = True):
    try:
        result = runner.run(argv, input=data, timeout=5, text=text, capture=capture)
    except (OSError, subprocess.SubprocessError) as e:
        raise ClipboardError(f"{argv[0]} failed: {e}") from e
    if result.returncode != 0:
        raise ClipboardError(f"{argv[0]} exited with {result.returncode}: {result.stderr or ''}")
    return result


def copy_text(text: str, snapshot: CapabilitySnapshot, runner: Optional[ProcessRunner] = None) -> None:
    runner = runner or get_runner()
    if not snapshot.available("wl-copy"):
        raise ClipboardError("wl-copy is not available")
    _run(runner, [snapshot.binary("wl-copy")], data=text, capture=False)


def paste_text(snapshot: CapabilitySnapshot, runner: Optional[ProcessRunner] = None) -> str:
    runner = runner or get_runner()
    if not snapshot.available("wl-paste"):
        raise ClipboardError("wl-paste is not available")
    result = _run(runner, [snapshot.binary("wl-paste"), "--no-newline"])
    return result.stdout or ""


def copy_image(path: Path, snapshot: CapabilitySnapshot, runner: Optional[ProcessRunner] = None) -> None:
    """Copy a PNG file to the clipboard."""
    runner = runner or get_runner()
    if not snapshot.available("wl-copy"):
        raise ClipboardError("wl-copy is not available")
    argv = [snapshot.binary("wl-copy")]
    if snapshot.has("wl-copy", "type"):
        argv += ["--type", "image/png"]
    _run(runner, argv, data=path.read_bytes(), text=False, capture=False)
    log.debug("Copied %s to clipboard", path.name)
