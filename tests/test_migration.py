import pytest
from conftest import make_snapshot

from hyss.annotation import satty_config_path, swappy_config_path
from hyss.ledger import STATUS_FAILED, STATUS_SUCCESS, VersionLedger
from hyss.migration import MigrationEngine
from hyss.rules import MigrationRule
from hyss.tools import ToolRegistry, ToolSpec, default_registry

SATTY_1_0_CONFIG = """\
[general]
fullscreen = false
save_on_copy = true
"""


@pytest.fixture
def ledger(config, clock):
    return VersionLedger(config.ledger_file, clock=clock)


@pytest.fixture
def engine(config, ledger, clock):
    return MigrationEngine(config, ledger, default_registry(), clock)


def _write_satty_config(config, text=SATTY_1_0_CONFIG):
    path = satty_config_path(config.tool_config_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_satty_upgrade_migrates_with_backup(config, ledger, engine, clock, events):
    ledger.update_versions({"satty": "1.0.5"})
    path = _write_satty_config(config)

    outcome = engine.check_for_changes_and_migrate(make_snapshot({"satty": "1.1.0"}))

    assert outcome.changed
    assert len(outcome.results) == 1
    result = outcome.results[0]
    assert result.status == STATUS_SUCCESS
    assert result.action == "targeted:satty-1.0-to-1.1"
    assert result.backup == path.with_name(f"config.toml.backup.{int(clock.now * 1000)}")
    assert result.backup.read_text() == SATTY_1_0_CONFIG

    migrated = path.read_text()
    assert "early-exit = true" in migrated
    assert "save-after-copy = true" in migrated

    history = ledger.history()
    assert len(history) == 1
    assert history[0]["tool"] == "satty"
    assert history[0]["old_version"] == "1.0.5"
    assert history[0]["new_version"] == "1.1.0"
    assert history[0]["status"] == STATUS_SUCCESS
    assert ledger.tool_versions()["satty"] == "1.1.0"

    kinds = [event["event_type"] for event in events]
    assert kinds == ["versions.changed", "migration.completed"]


def test_second_run_is_a_noop(config, ledger, engine):
    ledger.update_versions({"satty": "1.0.5"})
    _write_satty_config(config)
    snapshot = make_snapshot({"satty": "1.1.0"})
    engine.check_for_changes_and_migrate(snapshot)
    migrated = satty_config_path(config.tool_config_dir).read_text()

    outcome = engine.check_for_changes_and_migrate(snapshot)

    assert not outcome.changed
    assert outcome.results == []
    assert len(ledger.history()) == 1
    assert satty_config_path(config.tool_config_dir).read_text() == migrated


def test_version_change_without_rule_only_updates_ledger(config, ledger, clock):
    registry = ToolRegistry([ToolSpec(name="toolx", binaries=("toolx",))])
    engine = MigrationEngine(config, ledger, registry, clock)
    ledger.update_versions({"toolx": "2.0.0"})

    outcome = engine.check_for_changes_and_migrate(make_snapshot({"toolx": "9.9.9"}))

    assert outcome.changed
    assert not outcome.migrated
    assert ledger.history() == []
    assert ledger.tool_versions() == {"toolx": "9.9.9"}


def test_first_sighting_does_not_migrate(config, ledger, engine):
    path = _write_satty_config(config)
    outcome = engine.check_for_changes_and_migrate(make_snapshot({"satty": "1.1.0"}))
    assert outcome.changed
    assert outcome.results == []
    assert path.read_text() == SATTY_1_0_CONFIG
    assert ledger.tool_versions() == {"satty": "1.1.0"}


def test_regeneration_fallback(config, ledger, engine):
    ledger.update_versions({"satty": "1.1.2"})
    path = _write_satty_config(config)

    outcome = engine.check_for_changes_and_migrate(make_snapshot({"satty": "1.3.0"}))

    assert outcome.results[0].action == "regenerate"
    assert outcome.results[0].backup is not None
    assert path.read_text().endswith("# Configuration for current satty version\n")


def test_targeted_rule_without_config_generates_one(config, ledger, engine):
    ledger.update_versions({"satty": "1.1.0"})
    outcome = engine.check_for_changes_and_migrate(make_snapshot({"satty": "1.2.1"}))
    result = outcome.results[0]
    assert result.status == STATUS_SUCCESS
    assert result.backup is None
    assert result.action == "generated:satty-to-1.2"
    assert satty_config_path(config.tool_config_dir).exists()


def test_failed_migration_is_recorded_and_ledger_still_updated(config, ledger, clock):
    def broken(text):
        raise ValueError("unexpected config layout")

    spec = ToolSpec(
        name="satty",
        binaries=("satty",),
        migration_rules=(MigrationRule("1.0.*", "1.1.*", broken, "broken"),),
        config_path=lambda c: satty_config_path(c.tool_config_dir),
        render_config=lambda c, version: "",
    )
    engine = MigrationEngine(config, ledger, ToolRegistry([spec]), clock)
    ledger.update_versions({"satty": "1.0.0"})
    path = _write_satty_config(config)

    outcome = engine.check_for_changes_and_migrate(make_snapshot({"satty": "1.1.0"}))

    assert not outcome.all_succeeded
    assert outcome.failures[0].error == "unexpected config layout"
    assert path.read_text() == SATTY_1_0_CONFIG
    assert ledger.history()[0]["status"] == STATUS_FAILED
    assert ledger.tool_versions() == {"satty": "1.1.0"}


def test_one_tool_failing_does_not_block_the_next(config, ledger, clock):
    def missing_section(text):
        raise KeyError("palette")

    def add_marker(text):
        return text + "migrated = true\n"

    def spec(name, transform):
        return ToolSpec(
            name=name,
            binaries=(name,),
            migration_rules=(MigrationRule("1.*", "2.*", transform, f"{name}-1-to-2"),),
            config_path=lambda c: c.tool_config_dir / name / "config",
            render_config=lambda c, version: "",
        )

    registry = ToolRegistry([spec("aaa", missing_section), spec("bbb", add_marker)])
    engine = MigrationEngine(config, ledger, registry, clock)
    for name in ("aaa", "bbb"):
        path = config.tool_config_dir / name / "config"
        path.parent.mkdir(parents=True)
        path.write_text("[general]\n")
    ledger.update_versions({"aaa": "1.0.0", "bbb": "1.0.0"})

    outcome = engine.check_for_changes_and_migrate(make_snapshot({"aaa": "2.0.0", "bbb": "2.0.0"}))

    statuses = {result.tool: result.status for result in outcome.results}
    assert statuses == {"aaa": STATUS_FAILED, "bbb": STATUS_SUCCESS}
    assert "palette" in outcome.failures[0].error
    assert (config.tool_config_dir / "aaa" / "config").read_text() == "[general]\n"
    assert (config.tool_config_dir / "bbb" / "config").read_text() == "[general]\nmigrated = true\n"
    assert sorted(entry["tool"] for entry in ledger.history()) == ["aaa", "bbb"]
    assert ledger.tool_versions() == {"aaa": "2.0.0", "bbb": "2.0.0"}


def test_force_regenerate_backs_up_and_rewrites(config, engine, clock):
    satty = _write_satty_config(config, "old satty\n")
    swappy = swappy_config_path(config.tool_config_dir)
    swappy.parent.mkdir(parents=True)
    swappy.write_text("old swappy\n")

    result = engine.force_regenerate_all_configs(make_snapshot({"satty": "1.2.0"}))

    assert result.backup_dir == config.snapshot_dir / f"backup-{int(clock.now)}"
    assert (result.backup_dir / "satty" / "config.toml").read_text() == "old satty\n"
    assert (result.backup_dir / "swappy" / "config").read_text() == "old swappy\n"
    assert result.regenerated == {"satty": satty}
    assert result.skipped == ["swappy"]
    assert satty.read_text().startswith("[general]")
    assert swappy.read_text() == "old swappy\n"
