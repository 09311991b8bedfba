"""Registry of the external tools hyss wraps.

Each ToolSpec says how to detect the tool (binaries, version output,
help-text flag patterns), which version transitions need a config
migration, and how to generate the tool's config file if it has one.
Adding a tool means adding an entry here; the probe, the migration engine
and the reports iterate the registry instead of branching on tool names.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, Optional

from .annotation import (
    migrate_satty_1_0_to_1_1,
    migrate_satty_to_1_2,
    render_satty_config,
    render_swappy_config,
    satty_config_path,
    swappy_config_path,
)
from .config import Config
from .rules import MigrationRule

SEMVER = r"\d+\.\d+\.\d+"
SHORT_VERSION = r"\d+\.\d+(?:\.\d+)?"


@dataclass(frozen=True)
class FlagProbe:
    """A feature flag detected by substring match on introspection output."""

    patterns: tuple[str, ...]
    args: tuple[str, ...] = ("--help",)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    binaries: tuple[str, ...]
    version_args: tuple[str, ...] = ()
    version_pattern: str = SEMVER
    version_first_line: bool = False
    flags: Mapping[str, FlagProbe] = field(default_factory=dict)
    migration_rules: tuple[MigrationRule, ...] = ()
    config_path: Optional[Callable[[Config], Path]] = None
    render_config: Optional[Callable[[Config, str], str]] = None

    @property
    def has_config(self) -> bool:
        return self.config_path is not None and self.render_config is not None


SATTY_RULES = (
    MigrationRule("1.0.*", "1.1.*", migrate_satty_1_0_to_1_1, "satty-1.0-to-1.1"),
    MigrationRule("1.0.*", "1.2.*", migrate_satty_to_1_2, "satty-to-1.2"),
    MigrationRule("1.1.*", "1.2.*", migrate_satty_to_1_2, "satty-to-1.2"),
    # Config format changed across these; no targeted transform
    MigrationRule("1.0.*", "1.3.*"),
    MigrationRule("1.1.*", "1.3.*"),
)


def _help(*patterns: str, args: tuple[str, ...] = ("--help",)) -> FlagProbe:
    return FlagProbe(patterns=patterns, args=args)


DEFAULT_TOOLS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name="grim",
        binaries=("grim",),
        flags={
            "geometry": _help("-g", args=("-h",)),
            "output": _help("-o", args=("-h",)),
            "cursor": _help("-c", args=("-h",)),
            "scale": _help("-s", args=("-h",)),
            "stdout": _help("'-'", args=("-h",)),
        },
    ),
    ToolSpec(
        name="slurp",
        binaries=("slurp",),
        flags={
            "display": _help("-d", args=("-h",)),
            "border": _help("-b", args=("-h",)),
            "aspect": _help("-a", args=("-h",)),
        },
    ),
    ToolSpec(
        name="wl-copy",
        binaries=("wl-copy",),
        version_args=("--version",),
        flags={"type": _help("--type")},
    ),
    ToolSpec(
        name="wl-paste",
        binaries=("wl-paste",),
        version_args=("--version",),
    ),
    ToolSpec(
        name="satty",
        binaries=("satty",),
        version_args=("--version",),
        flags={
            "copy-command": _help("--copy-command"),
            "early-exit": _help("--early-exit"),
            "fullscreen": _help("--fullscreen"),
            "config": _help("--config"),
            "output-filename": _help("--output-filename", "--output", "-o"),
            "filename": _help("--filename", "-f"),
        },
        migration_rules=SATTY_RULES,
        config_path=lambda config: satty_config_path(config.tool_config_dir),
        render_config=lambda config, version: render_satty_config(version),
    ),
    ToolSpec(
        name="swappy",
        binaries=("swappy",),
        version_args=("--version",),
        flags={
            "file": _help("-f", "--file"),
            "output": _help("-o", "--output-file"),
            "config": _help("-c", "--config"),
        },
        # swappy's config is rewritten per session, it never needs migrating
        config_path=lambda config: swappy_config_path(config.tool_config_dir),
        render_config=lambda config, version: render_swappy_config(
            config.output_dir, config.filename_format
        ),
    ),
    ToolSpec(
        name="tesseract",
        binaries=("tesseract",),
        version_args=("--version",),
        version_first_line=True,
        flags={
            "eng": _help("eng", args=("--list-langs",)),
            "stdout": _help("stdout"),
        },
    ),
    ToolSpec(
        name="imagemagick",
        binaries=("magick", "convert"),
        version_args=("--version",),
        version_first_line=True,
    ),
    ToolSpec(
        name="notify-send",
        binaries=("notify-send",),
        version_args=("--version",),
        version_pattern=SHORT_VERSION,
        flags={
            "icon": _help("-i", "--icon"),
            "urgency": _help("-u", "--urgency"),
            "timeout": _help("-t", "--timeout"),
        },
    ),
    ToolSpec(
        name="hyprctl",
        binaries=("hyprctl",),
        version_args=("version",),
    ),
    ToolSpec(
        name="hyprpicker",
        binaries=("hyprpicker",),
        flags={
            "freeze": _help("-z", "--freeze"),
            "raw": _help("-r", "--raw"),
        },
    ),
)


class ToolRegistry:
    """Ordered mapping of tool name to ToolSpec."""

    def __init__(self, tools=DEFAULT_TOOLS):
        self._tools = {tool.name: tool for tool in tools}

    def __iter__(self):
        return iter(self._tools.values())

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def get(self, name: str) -> Optional[ToolSpec]:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def rules_for(self, name: str) -> tuple[MigrationRule, ...]:
        tool = self._tools.get(name)
        return tool.migration_rules if tool else ()

    def with_configs(self) -> list[ToolSpec]:
        return [tool for tool in self._tools.values() if tool.has_config]


def default_registry() -> ToolRegistry:
    return ToolRegistry(DEFAULT_TOOLS)
