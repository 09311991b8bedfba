"""Version ledger: last-seen tool versions and migration history.

The ledger records what hyss last *saw*, not what it successfully migrated
to. It is rewritten after every comparison cycle with the just-probed
versions, whatever the outcome of the migrations in between.

Document layout:
    {
        "schema_version": "1.0",
        "created": 1704067200.0,
        "last_check": 1704067200.0,
        "tool_versions": {"satty": "1.1.0", "grim": ""},
        "migration_history": [
            {"tool": "satty", "old_version": "1.0.5", "new_version": "1.1.0",
             "timestamp": 1704067200.0, "status": "success"}
        ]
    }
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .capabilities import CapabilitySnapshot
from .storage import read_json, trim_by_timestamp, write_json

log = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class VersionChange:
    """A tool whose probed version differs from the ledger.

    `old_version` is None when the tool has never been recorded.
    """

    tool: str
    old_version: Optional[str]
    new_version: str

    @property
    def first_seen(self) -> bool:
        return self.old_version is None

    def to_dict(self) -> dict:
        return {
            "tool": self.tool,
            "old_version": self.old_version or "",
            "new_version": self.new_version,
        }


class VersionLedger:
    def __init__(
        self,
        path: Path,
        history_limit: int = 50,
        clock: Callable[[], float] = time.time,
    ):
        self.path = path
        self.history_limit = history_limit
        self.clock = clock

    def initial_document(self) -> dict:
        now = self.clock()
        return {
            "schema_version": SCHEMA_VERSION,
            "created": now,
            "last_check": now,
            "tool_versions": {},
            "migration_history": [],
        }

    def ensure(self) -> None:
        """Create the ledger document if it does not exist yet."""
        if not self.path.exists():
            write_json(self.path, self.initial_document())

    def load(self) -> dict:
        document = read_json(self.path, self.initial_document)
        if not isinstance(document.get("tool_versions"), dict):
            document["tool_versions"] = {}
        if not isinstance(document.get("migration_history"), list):
            document["migration_history"] = []
        return document

    def tool_versions(self) -> dict[str, str]:
        return dict(self.load()["tool_versions"])

    def history(self) -> list[dict]:
        return list(self.load()["migration_history"])

    def compare(self, snapshot: CapabilitySnapshot) -> list[VersionChange]:
        """List tools whose current version differs from the recorded one.

        A tool that is no longer installed shows up with new_version "".
        """
        stored = self.tool_versions()
        current = snapshot.versions
        changes = []
        for tool, version in current.items():
            old = stored.get(tool)
            if (old or "") != version:
                changes.append(VersionChange(tool, old, version))
        for tool, old in stored.items():
            if tool not in current and old:
                changes.append(VersionChange(tool, old, ""))
        return changes

    def update_versions(self, versions: dict[str, str]) -> None:
        """Replace the recorded versions and stamp last_check."""
        document = self.load()
        document["tool_versions"] = dict(sorted(versions.items()))
        document["last_check"] = self.clock()
        write_json(self.path, document)

    def record_migration(
        self,
        tool: str,
        old_version: str,
        new_version: str,
        status: str,
    ) -> dict:
        """Append a migration outcome, keeping only the most recent entries."""
        entry = {
            "tool": tool,
            "old_version": old_version,
            "new_version": new_version,
            "timestamp": self.clock(),
            "status": status,
        }
        document = self.load()
        history = document["migration_history"] + [entry]
        document["migration_history"] = trim_by_timestamp(history, self.history_limit, "timestamp")
        write_json(self.path, document)
        return entry

    def trim(self) -> int:
        """Trim history to the limit. Returns the number of entries dropped."""
        if not self.path.exists():
            return 0
        document = self.load()
        history = document["migration_history"]
        trimmed = trim_by_timestamp(history, self.history_limit, "timestamp")
        document["migration_history"] = trimmed
        write_json(self.path, document)
        return len(history) - len(trimmed)
