"""Update orchestration.

`Updater` wires the capability cache, the version ledger, the migration
engine and the compatibility battery together behind the operations the
CLI exposes. Capabilities are loaded once per Updater and passed to every
component as an explicit snapshot.
"""

import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .cache import CapabilityCache
from .capabilities import CapabilitySnapshot, missing_required
from .config import Config, get_config
from .emit import emit
from .harness import CompatibilityHarness, ImageValidator, TestRecord
from .history import TestHistory
from .ledger import VersionLedger
from .migration import MigrationEngine, RegenerationResult, UpdateOutcome
from .report import generate_report
from .runner import ProcessRunner, get_runner
from .storage import StorageError, ensure_dir, write_atomic, write_json
from .tools import ToolRegistry, default_registry

log = logging.getLogger(__name__)

DAY = 24 * 3600


@dataclass
class CleanupResult:
    migrations_trimmed: int = 0
    tests_trimmed: int = 0
    backups_removed: list[Path] = field(default_factory=list)
    snapshots_removed: list[Path] = field(default_factory=list)


class Updater:
    def __init__(
        self,
        config: Optional[Config] = None,
        runner: Optional[ProcessRunner] = None,
        registry: Optional[ToolRegistry] = None,
        image_validator: Optional[ImageValidator] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or get_config()
        self.runner = runner or get_runner()
        self.registry = registry or default_registry()
        self.clock = clock
        self.cache = CapabilityCache(self.config, self.registry, self.runner, clock)
        self.ledger = VersionLedger(
            self.config.ledger_file,
            history_limit=self.config.migration_history_limit,
            clock=clock,
        )
        self.history = TestHistory(
            self.config.test_history_file,
            limit=self.config.test_history_limit,
            clock=clock,
        )
        self.engine = MigrationEngine(self.config, self.ledger, self.registry, clock)
        self.harness = CompatibilityHarness(
            self.config, self.runner, self.history, image_validator, clock
        )
        self._snapshot: Optional[CapabilitySnapshot] = None

    def init(self) -> None:
        """Create the data directories and empty state documents.

        Raises:
            StorageError: If the data directory is not writable
        """
        ensure_dir(self.config.data_dir)
        ensure_dir(self.config.cache_dir)
        self.ledger.ensure()
        self.history.ensure()

    def detect_capabilities(self, force_refresh: bool = False) -> CapabilitySnapshot:
        snapshot = self.cache.load(force_refresh=force_refresh)
        self._snapshot = snapshot
        missing = missing_required(snapshot)
        if missing:
            log.warning("Missing required tools: %s", ", ".join(missing))
        emit("capabilities.detected", {
            "source": self.cache.last_source,
            "tools": {name: record.available for name, record in snapshot.records.items()},
            "missing_required": missing,
        })
        return snapshot

    @property
    def snapshot(self) -> CapabilitySnapshot:
        if self._snapshot is None:
            return self.detect_capabilities()
        return self._snapshot

    def check_for_changes_and_migrate(self) -> UpdateOutcome:
        outcome = self.engine.check_for_changes_and_migrate(self.snapshot)
        if not outcome.changed:
            log.info("No tool version changes detected")
        for failure in outcome.failures:
            log.warning("Migration of %s failed: %s", failure.tool, failure.error)
        return outcome

    def run_compatibility_tests(self) -> TestRecord:
        return self.harness.run(self.snapshot)

    def generate_report(self, destination: Optional[Path] = None) -> str:
        text = generate_report(
            self.snapshot,
            self.ledger.load(),
            self.history.records(),
            annotation_preference=self.config.annotation_tool,
            generated_at=self.clock(),
        )
        if destination is not None:
            write_atomic(destination, text)
            log.info("Report written to %s", destination)
        return text

    def force_regenerate_all_configs(self) -> RegenerationResult:
        return self.engine.force_regenerate_all_configs(self.snapshot)

    def export_migration_data(self, destination: Path) -> Path:
        write_json(destination, self.ledger.load())
        log.info("Migration data exported to %s", destination)
        return destination

    def _expired(self, path: Path, max_age_days: int) -> bool:
        try:
            return self.clock() - path.stat().st_mtime > max_age_days * DAY
        except OSError:
            return False

    def clean_old_data(self) -> CleanupResult:
        """Trim both histories and delete expired backups.

        Config backups (`<file>.backup.<ms>`) expire after
        `backup_retention_days`, regeneration snapshots
        (`backups/backup-<epoch>`) after `snapshot_retention_days`.
        """
        result = CleanupResult(
            migrations_trimmed=self.ledger.trim(),
            tests_trimmed=self.history.trim(),
        )

        for spec in self.registry.with_configs():
            directory = spec.config_path(self.config).parent
            if not directory.is_dir():
                continue
            for backup in sorted(directory.glob("*.backup.*")):
                if backup.is_file() and self._expired(backup, self.config.backup_retention_days):
                    try:
                        backup.unlink()
                    except OSError as e:
                        raise StorageError(f"Cannot remove {backup}: {e}") from e
                    result.backups_removed.append(backup)

        snapshot_dir = self.config.snapshot_dir
        if snapshot_dir.is_dir():
            for snapshot in sorted(snapshot_dir.glob("backup-*")):
                if snapshot.is_dir() and self._expired(snapshot, self.config.snapshot_retention_days):
                    try:
                        shutil.rmtree(snapshot)
                    except OSError as e:
                        raise StorageError(f"Cannot remove {snapshot}: {e}") from e
                    result.snapshots_removed.append(snapshot)

        log.info(
            "Cleanup: %d migration entries, %d test records, %d backups, %d snapshots removed",
            result.migrations_trimmed,
            result.tests_trimmed,
            len(result.backups_removed),
            len(result.snapshots_removed),
        )
        return result
