"""Capability records and snapshots.

A CapabilitySnapshot is the immutable result of one probe cycle. It is
passed explicitly from the cache to the ledger, the migration engine and
the compatibility harness; nothing reads capabilities from global state.
"""

import time
from dataclasses import dataclass, field
from typing import Mapping, Optional

REQUIRED_TOOLS = ("grim", "slurp", "wl-copy", "imagemagick", "tesseract", "notify-send")
ANNOTATION_TOOLS = ("satty", "swappy")


@dataclass(frozen=True)
class CapabilityRecord:
    """Probe result for one tool.

    An unavailable tool never carries a true feature flag.
    """

    tool: str
    available: bool
    version: str = ""
    flags: Mapping[str, bool] = field(default_factory=dict)
    binary: str = ""

    def __post_init__(self):
        flags = {name: bool(value) for name, value in dict(self.flags).items()}
        if not self.available and any(flags.values()):
            raise ValueError(f"Unavailable tool {self.tool} cannot have enabled flags")
        object.__setattr__(self, "flags", flags)

    @classmethod
    def unavailable(cls, tool: str, flag_names=()) -> "CapabilityRecord":
        return cls(tool=tool, available=False, flags={name: False for name in flag_names})

    def has(self, flag: str) -> bool:
        return self.available and self.flags.get(flag, False)

    def enabled_flags(self) -> list[str]:
        return sorted(name for name, value in self.flags.items() if value)


@dataclass(frozen=True)
class CapabilitySnapshot:
    """Capabilities and versions of every tracked tool at one point in time."""

    probed_at: float
    records: Mapping[str, CapabilityRecord] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "records", dict(self.records))

    def get(self, tool: str) -> CapabilityRecord:
        record = self.records.get(tool)
        if record is None:
            return CapabilityRecord.unavailable(tool)
        return record

    def available(self, tool: str) -> bool:
        return self.get(tool).available

    def has(self, tool: str, flag: str) -> bool:
        return self.get(tool).has(flag)

    def version(self, tool: str) -> str:
        return self.get(tool).version

    def binary(self, tool: str) -> str:
        record = self.get(tool)
        return record.binary or tool

    @property
    def versions(self) -> dict[str, str]:
        """Versions of available tools; "" where a tool reports none."""
        return {
            name: record.version
            for name, record in sorted(self.records.items())
            if record.available
        }

    def age(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.time()) - self.probed_at


def missing_required(snapshot: CapabilitySnapshot) -> list[str]:
    """List essential tools that are not installed."""
    missing = [tool for tool in REQUIRED_TOOLS if not snapshot.available(tool)]
    if not any(snapshot.available(tool) for tool in ANNOTATION_TOOLS):
        missing.append("satty or swappy")
    return missing


def select_annotation_tool(snapshot: CapabilitySnapshot, preference: str = "auto") -> str:
    """Pick the annotation tool to use.

    An explicit preference wins; "auto" prefers satty over swappy.

    Returns:
        Tool name, or "none" if no annotation tool is available
    """
    if preference and preference != "auto":
        return preference
    for tool in ANNOTATION_TOOLS:
        if snapshot.available(tool):
            return tool
    return "none"
