"""Capability probing.

Detection is best-effort: a tool is available when one of its
binaries resolves on PATH, and a feature is supported when one of its
patterns occurs in the tool's own help output. A feature documented
differently reads as unsupported. Probing only ever runs read-only
introspection (--help, --version, --list-langs).
"""

import logging
import re
import time
from typing import Callable, Optional

from .capabilities import CapabilityRecord, CapabilitySnapshot
from .runner import ProcessRunner, get_runner
from .tools import ToolRegistry, ToolSpec, default_registry

log = logging.getLogger(__name__)


def parse_version(output: str, pattern: str, first_line: bool = False) -> str:
    """Extract the first version-looking token from tool output.

    Returns:
        The version string, or "" if the output has none
    """
    if first_line:
        output = output.splitlines()[0] if output.strip() else ""
    match = re.search(pattern, output)
    return match.group(0) if match else ""


def probe_tool(
    spec: ToolSpec,
    runner: Optional[ProcessRunner] = None,
    timeout: float = 5.0,
) -> CapabilityRecord:
    """Detect availability, version and feature flags of a single tool."""
    runner = runner or get_runner()

    binary = next((name for name in spec.binaries if runner.which(name)), None)
    if binary is None:
        log.debug("%s not found on PATH", spec.name)
        return CapabilityRecord.unavailable(spec.name, spec.flags.keys())

    version = ""
    if spec.version_args:
        output = runner.output([binary, *spec.version_args], timeout=timeout)
        version = parse_version(output, spec.version_pattern, spec.version_first_line)

    outputs: dict[tuple[str, ...], str] = {}
    flags: dict[str, bool] = {}
    for flag, flag_probe in spec.flags.items():
        if flag_probe.args not in outputs:
            outputs[flag_probe.args] = runner.output([binary, *flag_probe.args], timeout=timeout)
        text = outputs[flag_probe.args]
        flags[flag] = any(pattern in text for pattern in flag_probe.patterns)

    log.debug("%s: binary=%s version=%r flags=%s", spec.name, binary, version, flags)
    return CapabilityRecord(
        tool=spec.name,
        available=True,
        version=version,
        flags=flags,
        binary=binary,
    )


def probe_all(
    registry: Optional[ToolRegistry] = None,
    runner: Optional[ProcessRunner] = None,
    timeout: float = 5.0,
    clock: Callable[[], float] = time.time,
) -> CapabilitySnapshot:
    """Probe every registered tool and return a fresh snapshot."""
    registry = registry or default_registry()
    records = {spec.name: probe_tool(spec, runner, timeout) for spec in registry}
    return CapabilitySnapshot(probed_at=clock(), records=records)
