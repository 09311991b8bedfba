"""Configuration migration between tool versions.

The engine compares a fresh capability snapshot with the version ledger,
migrates the config of every tool whose version transition matches one of
its rules, records each outcome, and finally rewrites the ledger with the
versions it just saw.

A migration never mutates a config file without first copying it to
`<file>.backup.<epoch-ms>`. A failed migration is recorded and reported but
does not stop the other tools or the calling workflow.
"""

import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .capabilities import CapabilitySnapshot
from .config import Config, get_config
from .emit import emit
from .ledger import STATUS_FAILED, STATUS_SUCCESS, VersionChange, VersionLedger
from .rules import MigrationRule, find_rule
from .storage import StorageError, ensure_dir, write_atomic
from .tools import ToolRegistry, ToolSpec, default_registry

log = logging.getLogger(__name__)


@dataclass
class MigrationResult:
    tool: str
    old_version: str
    new_version: str
    status: str
    action: str = "none"
    backup: Optional[Path] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self) -> dict:
        return {
            "tool": self.tool,
            "old_version": self.old_version,
            "new_version": self.new_version,
            "status": self.status,
            "action": self.action,
            "backup": str(self.backup) if self.backup else None,
            "error": self.error,
        }


@dataclass
class UpdateOutcome:
    """Result of one check-and-migrate cycle."""

    changes: list[VersionChange] = field(default_factory=list)
    results: list[MigrationResult] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changes)

    @property
    def migrated(self) -> bool:
        return bool(self.results)

    @property
    def all_succeeded(self) -> bool:
        return all(result.succeeded for result in self.results)

    @property
    def failures(self) -> list[MigrationResult]:
        return [result for result in self.results if not result.succeeded]

    def to_dict(self) -> dict:
        return {
            "changed": self.changed,
            "migrated": self.migrated,
            "all_succeeded": self.all_succeeded,
            "changes": [change.to_dict() for change in self.changes],
            "results": [result.to_dict() for result in self.results],
        }


@dataclass
class RegenerationResult:
    backup_dir: Optional[Path]
    regenerated: dict[str, Path] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)


class MigrationEngine:
    def __init__(
        self,
        config: Optional[Config] = None,
        ledger: Optional[VersionLedger] = None,
        registry: Optional[ToolRegistry] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or get_config()
        self.registry = registry or default_registry()
        self.clock = clock
        self.ledger = ledger or VersionLedger(
            self.config.ledger_file,
            history_limit=self.config.migration_history_limit,
            clock=clock,
        )

    def requires_migration(self, tool: str, old_version: Optional[str], new_version: str) -> bool:
        # A tool seen for the first time has nothing to migrate from
        if not old_version:
            return False
        return find_rule(self.registry.rules_for(tool), old_version, new_version) is not None

    def backup_config(self, path: Path) -> Optional[Path]:
        """Copy `path` to a timestamped sibling. Returns None if it does not exist."""
        if not path.exists():
            return None
        backup = path.with_name(f"{path.name}.backup.{int(self.clock() * 1000)}")
        try:
            shutil.copy2(path, backup)
        except OSError as e:
            raise StorageError(f"Cannot back up {path}: {e}") from e
        log.info("Backed up %s config to %s", path.parent.name, backup)
        return backup

    def write_config(self, spec: ToolSpec, version: str) -> Path:
        """Regenerate a tool's config file from scratch for `version`."""
        path = spec.config_path(self.config)
        write_atomic(path, spec.render_config(self.config, version))
        log.info("Generated %s configuration for version %s at %s", spec.name, version or "unknown", path)
        return path

    def _apply(self, spec: ToolSpec, rule: Optional[MigrationRule], new_version: str) -> str:
        path = spec.config_path(self.config)
        if rule is not None and rule.transform is not None:
            if path.exists():
                original = path.read_text(encoding="utf-8")
                migrated = rule.transform(original)
                if migrated != original:
                    write_atomic(path, migrated)
                return f"targeted:{rule.name}"
            self.write_config(spec, new_version)
            return f"generated:{rule.name}"
        self.write_config(spec, new_version)
        return "regenerate"

    def migrate(self, tool: str, old_version: str, new_version: str) -> MigrationResult:
        """Migrate one tool's configuration and record the outcome.

        Uses the matching targeted transform when one exists and falls back
        to regenerating the config otherwise.
        """
        spec = self.registry.get(tool)
        result = MigrationResult(tool, old_version, new_version, STATUS_FAILED)

        if spec is None or not spec.has_config:
            result.error = f"No migration handler for {tool}"
            log.warning(result.error)
        else:
            rule = find_rule(spec.migration_rules, old_version, new_version)
            try:
                result.backup = self.backup_config(spec.config_path(self.config))
                result.action = self._apply(spec, rule, new_version)
                result.status = STATUS_SUCCESS
            except Exception as e:
                result.error = str(e) or type(e).__name__
                log.error("%s migration failed: %s", tool, result.error)

        self.ledger.record_migration(tool, old_version, new_version, result.status)
        emit("migration.completed", {
            "tool": tool,
            "old_version": old_version,
            "new_version": new_version,
            "status": result.status,
            "action": result.action,
            "backup": str(result.backup) if result.backup else None,
        })
        return result

    def check_for_changes_and_migrate(self, snapshot: CapabilitySnapshot) -> UpdateOutcome:
        """Compare versions, migrate where a rule says so, then update the ledger."""
        outcome = UpdateOutcome(changes=self.ledger.compare(snapshot))
        if outcome.changed:
            emit("versions.changed", {"changes": [change.to_dict() for change in outcome.changes]})
            for change in outcome.changes:
                log.info("%s: %s -> %s", change.tool, change.old_version or "(new)", change.new_version or "(removed)")

        try:
            for change in outcome.changes:
                if not self.requires_migration(change.tool, change.old_version, change.new_version):
                    continue
                log.info("Migration needed for %s", change.tool)
                outcome.results.append(
                    self.migrate(change.tool, change.old_version, change.new_version)
                )
        finally:
            self.ledger.update_versions(snapshot.versions)

        return outcome

    def force_regenerate_all_configs(self, snapshot: CapabilitySnapshot) -> RegenerationResult:
        """Back up every tool config directory, then regenerate each config.

        Tools that are not installed are skipped.
        """
        stamp = int(self.clock())
        backup_dir = self.config.snapshot_dir / f"backup-{stamp}"
        copied = False
        for spec in self.registry.with_configs():
            source = spec.config_path(self.config).parent
            if not source.is_dir():
                continue
            ensure_dir(backup_dir)
            try:
                shutil.copytree(source, backup_dir / source.name, dirs_exist_ok=True)
            except (OSError, shutil.Error) as e:
                raise StorageError(f"Cannot back up {source}: {e}") from e
            copied = True
        if copied:
            log.info("Configs backed up to %s", backup_dir)

        result = RegenerationResult(backup_dir=backup_dir if copied else None)
        for spec in self.registry.with_configs():
            if not snapshot.available(spec.name):
                result.skipped.append(spec.name)
                continue
            result.regenerated[spec.name] = self.write_config(spec, snapshot.version(spec.name))
        return result
