from conftest import FakeClock, FakeRunner

from hyss.probe import parse_version, probe_all, probe_tool
from hyss.tools import ToolRegistry, default_registry

GRIM_HELP = """\
Usage: grim [options...] [output-file]

  -h              Show help message and quit.
  -s <factor>     Set the output image scale factor.
  -g <geometry>   Set the region to capture.
  -o <output>     Set the output name to capture.
  -c              Include cursors in the screenshot.

If output-file is '-', output to standard output.
"""

SATTY_HELP = """\
Usage: satty [OPTIONS] --filename <FILENAME>

  -c, --config <CONFIG>
  -f, --filename <FILENAME>
      --fullscreen
  -o, --output-filename <OUTPUT_FILENAME>
      --early-exit
"""

TESSERACT_VERSION = """\
tesseract 5.3.4
 leptonica-1.84.1
  libgif 5.2.1 : libjpeg 8d
"""


def test_parse_version():
    assert parse_version("satty 0.12.3\n", r"\d+\.\d+\.\d+") == "0.12.3"
    assert parse_version("no digits here", r"\d+\.\d+\.\d+") == ""
    assert parse_version(TESSERACT_VERSION, r"\d+\.\d+\.\d+", first_line=True) == "5.3.4"
    assert parse_version("", r"\d+", first_line=True) == ""


def test_missing_tool_has_no_enabled_flags():
    spec = default_registry().get("grim")
    record = probe_tool(spec, FakeRunner())
    assert not record.available
    assert not any(record.flags.values())
    assert set(record.flags) == set(spec.flags)


def test_flags_from_help_output():
    runner = FakeRunner(installed={"grim"}, responses={("grim", "-h"): GRIM_HELP})
    record = probe_tool(default_registry().get("grim"), runner)
    assert record.available
    assert record.enabled_flags() == ["cursor", "geometry", "output", "scale", "stdout"]
    # one help invocation shared by every flag
    assert runner.calls == [["grim", "-h"]]


def test_unmatched_help_reads_as_unsupported():
    runner = FakeRunner(
        installed={"satty"},
        responses={("satty", "--version"): "satty 0.9.0\n", ("satty", "--help"): SATTY_HELP},
    )
    record = probe_tool(default_registry().get("satty"), runner)
    assert record.version == "0.9.0"
    assert record.has("early-exit")
    assert record.has("output-filename")
    assert not record.has("copy-command")


def test_imagemagick_falls_back_to_convert():
    runner = FakeRunner(
        installed={"convert"},
        responses={("convert", "--version"): "Version: ImageMagick 6.9.12-98 Q16\n"},
    )
    record = probe_tool(default_registry().get("imagemagick"), runner)
    assert record.available
    assert record.binary == "convert"
    assert record.version == "6.9.12"


def test_probe_all_covers_registry():
    registry = default_registry()
    snapshot = probe_all(registry, FakeRunner(installed={"grim"}), clock=FakeClock(42.0))
    assert snapshot.probed_at == 42.0
    assert set(snapshot.records) == set(registry.names())
    assert snapshot.available("grim")
    assert not snapshot.available("slurp")
    assert snapshot.versions == {"grim": ""}


def test_probe_all_with_custom_registry():
    registry = ToolRegistry([default_registry().get("slurp")])
    snapshot = probe_all(registry, FakeRunner(installed={"slurp"}))
    assert list(snapshot.records) == ["slurp"]
