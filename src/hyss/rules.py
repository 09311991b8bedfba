"""Declarative migration rules and version-pattern matching.

Rules are hand-authored per tool as literal data. A pattern such as
"1.0.*" is a dotted component prefix: the leading components must be
equal as strings and "*" accepts whatever follows. This is
not semantic-version ordering: "1.10.0" does not match "1.1.*", and there
are no ranges beyond what the listed prefixes spell out.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

Transform = Callable[[str], str]


@dataclass(frozen=True)
class MigrationRule:
    """A version transition that needs the tool's config to be migrated.

    `transform` rewrites existing config text for the new version. None
    means no targeted transform is known and the config is regenerated.
    """

    from_pattern: str
    to_pattern: str
    transform: Optional[Transform] = None
    name: str = "regenerate"

    def matches(self, old_version: str, new_version: str) -> bool:
        return version_matches(old_version, self.from_pattern) and version_matches(
            new_version, self.to_pattern
        )


def version_matches(version: str, pattern: str) -> bool:
    """Check a version string against a dotted prefix pattern."""
    if not version:
        return False
    if pattern == "*":
        return True

    wanted = pattern.split(".")
    wildcard = wanted[-1] == "*"
    if wildcard:
        wanted = wanted[:-1]

    parts = version.strip().split(".")
    if len(parts) < len(wanted):
        return False
    if not wildcard and len(parts) != len(wanted):
        return False
    return parts[: len(wanted)] == wanted


def find_rule(
    rules: Sequence[MigrationRule],
    old_version: str,
    new_version: str,
) -> Optional[MigrationRule]:
    """Return the first rule matching the transition, if any.

    A tool seen for the first time (no recorded old version) never matches.
    """
    if not old_version:
        return None
    for rule in rules:
        if rule.matches(old_version, new_version):
            return rule
    return None


def requires_migration(rules: Sequence[MigrationRule], old_version: str, new_version: str) -> bool:
    return find_rule(rules, old_version, new_version) is not None
