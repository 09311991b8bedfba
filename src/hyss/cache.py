"""Capability cache.

Probe results are persisted with their probe time and reused until they
are older than the configured TTL (24 hours by default). The cache is
written as JSON, or as a degraded line-oriented text format when
`cache_format: text` is configured; both formats are read back
transparently and carry the same booleans and versions.

Text format:
    # hyss tool capabilities cache - generated 2024-01-01T00:00:00
    PROBED_AT=1704067200.0
    CAPABILITY_grim.available=true
    CAPABILITY_grim.geometry=true
    VERSION_satty=1.1.0
    BINARY_imagemagick=magick
"""

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .capabilities import CapabilityRecord, CapabilitySnapshot
from .config import Config, get_config
from .probe import probe_all
from .runner import ProcessRunner
from .storage import write_atomic
from .tools import ToolRegistry, default_registry

log = logging.getLogger(__name__)


def encode_json(snapshot: CapabilitySnapshot) -> str:
    capabilities = {}
    versions = {}
    binaries = {}
    for name, record in snapshot.records.items():
        capabilities[name] = {"available": record.available, **record.flags}
        if record.available:
            versions[name] = record.version
            binaries[name] = record.binary
    document = {
        "probed_at": snapshot.probed_at,
        "capabilities": capabilities,
        "versions": versions,
        "binaries": binaries,
    }
    return json.dumps(document, indent=2) + "\n"


def decode_json(text: str) -> CapabilitySnapshot:
    document = json.loads(text)
    versions = document.get("versions", {})
    binaries = document.get("binaries", {})
    records = {}
    for name, flags in document["capabilities"].items():
        if isinstance(flags, bool):
            flags = {"available": flags}
        flags = dict(flags)
        available = bool(flags.pop("available", False))
        records[name] = CapabilityRecord(
            tool=name,
            available=available,
            version=str(versions.get(name, "")),
            flags=flags,
            binary=str(binaries.get(name, "")),
        )
    return CapabilitySnapshot(probed_at=float(document["probed_at"]), records=records)


def encode_text(snapshot: CapabilitySnapshot) -> str:
    generated = datetime.fromtimestamp(snapshot.probed_at).isoformat(timespec="seconds")
    lines = [
        f"# hyss tool capabilities cache - generated {generated}",
        f"PROBED_AT={snapshot.probed_at}",
    ]
    for name, record in snapshot.records.items():
        lines.append(f"CAPABILITY_{name}.available={str(record.available).lower()}")
        for flag, value in record.flags.items():
            lines.append(f"CAPABILITY_{name}.{flag}={str(value).lower()}")
    for name, record in snapshot.records.items():
        if record.available:
            lines.append(f"VERSION_{name}={record.version}")
            lines.append(f"BINARY_{name}={record.binary}")
    return "\n".join(lines) + "\n"


def decode_text(text: str) -> CapabilitySnapshot:
    probed_at: Optional[float] = None
    flags: dict[str, dict[str, bool]] = {}
    versions: dict[str, str] = {}
    binaries: dict[str, str] = {}

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        if key == "PROBED_AT":
            probed_at = float(value)
        elif key.startswith("CAPABILITY_"):
            tool, _, flag = key[len("CAPABILITY_"):].partition(".")
            flags.setdefault(tool, {})[flag or "available"] = value == "true"
        elif key.startswith("VERSION_"):
            versions[key[len("VERSION_"):]] = value
        elif key.startswith("BINARY_"):
            binaries[key[len("BINARY_"):]] = value

    if probed_at is None:
        raise ValueError("missing PROBED_AT")

    records = {}
    for name, tool_flags in flags.items():
        available = tool_flags.pop("available", False)
        records[name] = CapabilityRecord(
            tool=name,
            available=available,
            version=versions.get(name, ""),
            flags=tool_flags,
            binary=binaries.get(name, ""),
        )
    return CapabilitySnapshot(probed_at=probed_at, records=records)


def decode(text: str) -> CapabilitySnapshot:
    """Decode either cache format."""
    if text.lstrip().startswith("{"):
        return decode_json(text)
    return decode_text(text)


class CapabilityCache:
    """Loads capabilities from disk or probes them when the cache is stale."""

    def __init__(
        self,
        config: Optional[Config] = None,
        registry: Optional[ToolRegistry] = None,
        runner: Optional[ProcessRunner] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or get_config()
        self.registry = registry or default_registry()
        self.runner = runner
        self.clock = clock
        self.last_source = "none"

    @property
    def path(self) -> Path:
        return self.config.capability_cache_file

    @property
    def ttl_seconds(self) -> float:
        return self.config.capability_ttl_hours * 3600

    def read(self) -> Optional[CapabilitySnapshot]:
        """Read the persisted snapshot, or None if missing or unreadable."""
        if not self.path.exists():
            return None
        try:
            return decode(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            log.warning("Ignoring unreadable capability cache %s: %s", self.path, e)
            return None

    def is_fresh(self, snapshot: CapabilitySnapshot) -> bool:
        age = snapshot.age(self.clock())
        if age < 0 or age >= self.ttl_seconds:
            return False
        # A tool added to the registry since the last probe forces a re-probe
        return all(name in snapshot.records for name in self.registry.names())

    def save(self, snapshot: CapabilitySnapshot) -> None:
        if self.config.cache_format == "text":
            text = encode_text(snapshot)
        else:
            text = encode_json(snapshot)
        write_atomic(self.path, text)

    def probe(self) -> CapabilitySnapshot:
        log.info("Detecting tool capabilities...")
        snapshot = probe_all(
            self.registry,
            self.runner,
            timeout=self.config.probe_timeout,
            clock=self.clock,
        )
        self.save(snapshot)
        self.last_source = "probe"
        return snapshot

    def load(self, force_refresh: bool = False) -> CapabilitySnapshot:
        """Return cached capabilities if fresh, otherwise probe and persist.

        Raises:
            StorageError: If a fresh snapshot cannot be persisted
        """
        if not force_refresh:
            snapshot = self.read()
            if snapshot is not None and self.is_fresh(snapshot):
                log.debug("Using cached capabilities from %s", self.path)
                self.last_source = "cache"
                return snapshot
        return self.probe()
