"""Child-process seam for every external tool hyss talks to.

Probing, capture, clipboard and the compatibility battery all go through a
ProcessRunner so tests can substitute canned tool behavior.
"""

import logging
import shutil
import subprocess
from typing import Optional, Sequence, Union

log = logging.getLogger(__name__)


class ProcessRunner:
    """Runs external tools as blocking child processes."""

    def which(self, binary: str) -> Optional[str]:
        """Resolve a binary on PATH, or None if it is not installed."""
        return shutil.which(binary)

    def run(
        self,
        argv: Sequence[str],
        input: Optional[Union[str, bytes]] = None,
        timeout: Optional[float] = 10,
        text: bool = True,
        capture: bool = True,
    ) -> subprocess.CompletedProcess:
        """Run a command to completion and capture its output.

        With capture=False stdout and stderr are discarded. wl-copy needs
        this: its forked clipboard server would otherwise hold the pipes open.

        Raises:
            FileNotFoundError: If the binary does not exist
            subprocess.TimeoutExpired: If the command exceeds `timeout`
        """
        log.debug("Running: %s", " ".join(argv))
        if not capture:
            return subprocess.run(
                list(argv),
                input=input,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                text=text,
                timeout=timeout,
            )
        return subprocess.run(
            list(argv),
            input=input,
            capture_output=True,
            text=text,
            timeout=timeout,
        )

    def output(self, argv: Sequence[str], timeout: Optional[float] = 5) -> str:
        """Return combined stdout and stderr, or "" if the command cannot run.

        Used for read-only introspection (--help, --version) where a tool
        that fails to answer is treated the same as one that prints nothing.
        """
        try:
            result = self.run(argv, timeout=timeout)
        except (OSError, subprocess.SubprocessError) as e:
            log.debug("Introspection of %s failed: %s", argv[0], e)
            return ""
        return (result.stdout or "") + (result.stderr or "")

    def spawn(self, argv: Sequence[str]) -> subprocess.Popen:
        """Start a background helper process. The caller must terminate it."""
        log.debug("Spawning: %s", " ".join(argv))
        return subprocess.Popen(
            list(argv),
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )


_default_runner: Optional[ProcessRunner] = None


def get_runner() -> ProcessRunner:
    """Get the process-wide default runner."""
    global _default_runner
    if _default_runner is None:
        _default_runner = ProcessRunner()
    return _default_runner
