import pytest

from hyss.rules import MigrationRule, find_rule, requires_migration, version_matches
from hyss.tools import SATTY_RULES


@pytest.mark.parametrize(
    "version, pattern, expected",
    [
        ("1.0.5", "1.0.*", True),
        ("1.0", "1.0.*", True),
        ("1.1.0", "1.0.*", False),
        ("1.10.0", "1.1.*", False),
        ("1.1.3", "1.1.*", True),
        ("2.0.0", "*", True),
        ("1.2.0", "1.2.0", True),
        ("1.2.0.1", "1.2.0", False),
        ("", "*", False),
    ],
)
def test_version_matches(version, pattern, expected):
    assert version_matches(version, pattern) is expected


def test_satty_targeted_rule_is_selected():
    rule = find_rule(SATTY_RULES, "1.0.5", "1.1.0")
    assert rule is not None
    assert rule.name == "satty-1.0-to-1.1"
    assert rule.transform is not None


def test_satty_1_3_falls_back_to_regeneration():
    rule = find_rule(SATTY_RULES, "1.1.2", "1.3.0")
    assert rule is not None
    assert rule.transform is None


def test_no_rule_means_no_migration():
    assert not requires_migration(SATTY_RULES, "1.2.0", "1.4.0")
    assert not requires_migration((), "2.0.0", "9.9.9")


def test_first_sighting_never_matches():
    rules = (MigrationRule("*", "*"),)
    assert find_rule(rules, "", "1.0.0") is None
    assert find_rule(rules, None, "1.0.0") is None


def test_first_matching_rule_wins():
    first = MigrationRule("1.*", "2.*", name="first")
    second = MigrationRule("1.0.*", "2.0.*", name="second")
    assert find_rule((first, second), "1.0.1", "2.0.0") is first
