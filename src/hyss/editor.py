"""Launching satty or swappy on a captured image.

The editor edits the file in place. Arguments beyond the input file are
only passed when the probed capabilities say the installed version
accepts them.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional

from .annotation import render_satty_config, render_swappy_config, satty_config_path, swappy_config_path
from .capabilities import CapabilitySnapshot, select_annotation_tool
from .config import Config
from .runner import ProcessRunner, get_runner
from .storage import write_atomic

log = logging.getLogger(__name__)


class AnnotationError(Exception):
    """Raised when no editor can be launched or the editor fails."""
    pass


def satty_argv(image: Path, snapshot: CapabilitySnapshot, config: Config, fullscreen: bool = False) -> list[str]:
    if not snapshot.has("satty", "filename"):
        raise AnnotationError("Installed satty does not accept an input file")

    argv = [snapshot.binary("satty"), "--filename", str(image)]
    if snapshot.has("satty", "output-filename"):
        argv += ["--output-filename", str(image)]
    if snapshot.has("satty", "copy-command") and snapshot.available("wl-copy"):
        argv += ["--copy-command", snapshot.binary("wl-copy")]
    if snapshot.has("satty", "early-exit"):
        argv.append("--early-exit")
    if fullscreen and snapshot.has("satty", "fullscreen"):
        argv.append("--fullscreen")

    if snapshot.has("satty", "config"):
        path = satty_config_path(config.tool_config_dir)
        if not path.exists():
            write_atomic(path, render_satty_config(snapshot.version("satty")))
            log.info("Created satty configuration at %s", path)
        argv += ["--config", str(path)]
    return argv


def swappy_argv(image: Path, snapshot: CapabilitySnapshot, config: Config) -> list[str]:
    if not snapshot.has("swappy", "file"):
        raise AnnotationError("Installed swappy does not accept an input file")

    # save_dir must track the current output_dir
    path = swappy_config_path(config.tool_config_dir)
    write_atomic(path, render_swappy_config(config.output_dir, config.filename_format))

    argv = [snapshot.binary("swappy"), "-f", str(image)]
    if snapshot.has("swappy", "output"):
        argv += ["-o", str(image)]
    if snapshot.has("swappy", "config"):
        argv += ["-c", str(path)]
    return argv


def annotate(
    image: Path,
    snapshot: CapabilitySnapshot,
    config: Config,
    fullscreen: bool = False,
    runner: Optional[ProcessRunner] = None,
) -> str:
    """Open `image` in the configured annotation tool and wait for it to exit.

    Returns:
        Name of the tool that was used

    Raises:
        AnnotationError: If no tool is available or the editor fails
    """
    runner = runner or get_runner()
    if not image.exists():
        raise AnnotationError(f"Input file {image} not found")

    tool = select_annotation_tool(snapshot, config.annotation_tool)
    if tool == "none":
        raise AnnotationError("No annotation tool available")
    if not snapshot.available(tool):
        raise AnnotationError(f"{tool} is not installed")

    if tool == "satty":
        argv = satty_argv(image, snapshot, config, fullscreen=fullscreen)
    else:
        argv = swappy_argv(image, snapshot, config)

    log.info("Opening annotation tool (%s)...", tool)
    try:
        # No timeout: the editor waits for the user
        result = runner.run(argv, timeout=None, capture=False)
    except (OSError, subprocess.SubprocessError) as e:
        raise AnnotationError(f"{tool} failed: {e}") from e
    if result.returncode != 0:
        raise AnnotationError(f"{tool} exited with {result.returncode}")
    return tool
