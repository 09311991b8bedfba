"""Screen capture through grim and slurp.

Thin wrappers used by the capture commands and the compatibility battery.
Arguments are only added when the probed capabilities say the installed
grim supports them.
"""

import json
import logging
import subprocess
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .capabilities import CapabilitySnapshot
from .runner import ProcessRunner, get_runner

log = logging.getLogger(__name__)


class CaptureError(Exception):
    """Raised when capture fails."""
    pass


def grab(
    output_file: Path,
    snapshot: CapabilitySnapshot,
    geometry: Optional[str] = None,
    output_name: Optional[str] = None,
    cursor: bool = False,
    runner: Optional[ProcessRunner] = None,
) -> Path:
    """Capture the screen, a region, or one output into `output_file`.

    Args:
        output_file: Destination image path
        snapshot: Current capabilities
        geometry: Region in slurp format ("X,Y WxH")
        output_name: Output to capture (e.g. 'eDP-1')
        cursor: Include the cursor if grim supports it

    Returns:
        The written path

    Raises:
        CaptureError: If grim is missing, rejects the arguments, or writes nothing
    """
    runner = runner or get_runner()
    if not snapshot.available("grim"):
        raise CaptureError("grim is required for capture")

    argv = [snapshot.binary("grim")]
    if geometry:
        if not snapshot.has("grim", "geometry"):
            raise CaptureError("Installed grim does not support region capture (-g)")
        argv += ["-g", geometry]
    if output_name and snapshot.has("grim", "output"):
        argv += ["-o", output_name]
    if cursor and snapshot.has("grim", "cursor"):
        argv.append("-c")
    argv.append(str(output_file))

    try:
        result = runner.run(argv, timeout=10)
    except subprocess.TimeoutExpired:
        output_file.unlink(missing_ok=True)
        raise CaptureError("Screen capture timed out")
    except FileNotFoundError:
        raise CaptureError(f"grim not found: {argv[0]}")

    if result.returncode != 0:
        output_file.unlink(missing_ok=True)
        raise CaptureError(f"Screen capture failed: {result.stderr}")
    if not output_file.exists() or output_file.stat().st_size == 0:
        output_file.unlink(missing_ok=True)
        raise CaptureError("Screen capture produced an empty file")

    return output_file


def select_area(
    snapshot: CapabilitySnapshot,
    runner: Optional[ProcessRunner] = None,
) -> str:
    """Let the user drag a region with slurp.

    Returns:
        Geometry string in "X,Y WxH" form

    Raises:
        CaptureError: If slurp is missing or the selection was cancelled
    """
    runner = runner or get_runner()
    if not snapshot.available("slurp"):
        raise CaptureError("slurp is required for area selection")

    # No timeout: slurp waits for the user
    result = runner.run([snapshot.binary("slurp")], timeout=None)
    geometry = (result.stdout or "").strip()
    if result.returncode != 0 or not geometry:
        raise CaptureError("Area selection cancelled")
    return geometry


def _terminate(process: subprocess.Popen) -> None:
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()


@contextmanager
def frozen_screen(
    snapshot: CapabilitySnapshot,
    settle_ms: int = 200,
    runner: Optional[ProcessRunner] = None,
) -> Iterator[bool]:
    """Freeze the screen with hyprpicker for the duration of the block.

    Yields True when the screen is frozen, False when hyprpicker (or its
    freeze flag) is unavailable and selection proceeds on a live screen.
    The helper is terminated on every exit path.
    """
    runner = runner or get_runner()
    process = None
    if snapshot.has("hyprpicker", "freeze"):
        log.info("Freezing screen...")
        argv = [snapshot.binary("hyprpicker"), "-z"]
        if snapshot.has("hyprpicker", "raw"):
            argv.insert(1, "-r")
        process = runner.spawn(argv)
        time.sleep(settle_ms / 1000.0)
    else:
        log.info("Screen freeze not available, using regular selection")

    try:
        yield process is not None
    finally:
        if process is not None:
            _terminate(process)
            log.debug("Screen freeze released")


def focused_output(
    snapshot: CapabilitySnapshot,
    runner: Optional[ProcessRunner] = None,
) -> Optional[str]:
    """Name of the monitor Hyprland reports as focused, or None if unknown."""
    runner = runner or get_runner()
    if not snapshot.available("hyprctl"):
        return None
    try:
        result = runner.run([snapshot.binary("hyprctl"), "monitors", "-j"], timeout=5)
        monitors = json.loads(result.stdout or "[]")
    except (OSError, subprocess.SubprocessError, ValueError) as e:
        log.debug("Could not query monitors: %s", e)
        return None
    if result.returncode != 0 or not isinstance(monitors, list):
        return None
    for monitor in monitors:
        if isinstance(monitor, dict) and monitor.get("focused"):
            return monitor.get("name")
    return None


def grab_focused_output(
    output_file: Path,
    snapshot: CapabilitySnapshot,
    cursor: bool = False,
    runner: Optional[ProcessRunner] = None,
) -> Path:
    """Capture the focused monitor, or every output if it cannot be determined."""
    name = focused_output(snapshot, runner) if snapshot.has("grim", "output") else None
    if name is None:
        log.warning("Could not determine current monitor, capturing all outputs")
    return grab(output_file, snapshot, output_name=name, cursor=cursor, runner=runner)
