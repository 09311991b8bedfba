"""Desktop notifications through notify-send.

Notifications are best effort: a missing notify-send, or one that fails,
never fails the command that asked for it. Icon, urgency and timeout are
only passed when the installed notify-send accepts them.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional

from .capabilities import CapabilitySnapshot
from .config import Config
from .runner import ProcessRunner, get_runner

log = logging.getLogger(__name__)

APP_NAME = "hyss"
PREVIEW_CHARS = 100


def notification_argv(
    summary: str,
    body: str,
    snapshot: CapabilitySnapshot,
    urgency: str = "normal",
    timeout_ms: int = 0,
    icon: Optional[str] = None,
) -> list[str]:
    argv = [snapshot.binary("notify-send"), "-a", APP_NAME]
    if urgency and snapshot.has("notify-send", "urgency"):
        argv += ["-u", urgency]
    if timeout_ms and snapshot.has("notify-send", "timeout"):
        argv += ["-t", str(timeout_ms)]
    if icon and snapshot.has("notify-send", "icon"):
        argv += ["-i", icon]
    return argv + [summary, body]


def notify(
    summary: str,
    body: str,
    snapshot: CapabilitySnapshot,
    config: Config,
    icon: Optional[str] = None,
    runner: Optional[ProcessRunner] = None,
) -> bool:
    """Show a notification.

    Returns:
        True if notify-send accepted it
    """
    if not config.notifications:
        return False
    if not snapshot.available("notify-send"):
        log.debug("notify-send not installed, skipping notification")
        return False

    runner = runner or get_runner()
    argv = notification_argv(
        summary,
        body,
        snapshot,
        urgency=config.notification_urgency,
        timeout_ms=config.notification_timeout_ms,
        icon=icon,
    )
    try:
        result = runner.run(argv, timeout=5)
    except (OSError, subprocess.SubprocessError) as e:
        log.debug("Could not show notification: %s", e)
        return False
    if result.returncode != 0:
        log.debug("notify-send exited with %d: %s", result.returncode, result.stderr)
        return False
    return True


def notify_capture(
    path: Path,
    snapshot: CapabilitySnapshot,
    config: Config,
    copied: bool,
    runner: Optional[ProcessRunner] = None,
) -> bool:
    body = f"Saved to {path.name}"
    if copied:
        body += "\nCopied to clipboard"
    return notify("Screenshot Captured", body, snapshot, config, icon=str(path), runner=runner)


def notify_text(
    text: str,
    snapshot: CapabilitySnapshot,
    config: Config,
    runner: Optional[ProcessRunner] = None,
) -> bool:
    preview = text.strip()
    if len(preview) > PREVIEW_CHARS:
        preview = preview[:PREVIEW_CHARS] + "..."
    return notify("OCR Text Extracted", preview, snapshot, config, runner=runner)
