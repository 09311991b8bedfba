import dataclasses
import subprocess

from conftest import FakeRunner, completed, make_snapshot

from hyss.notify import notify, notify_capture, notify_text

ALL_FLAGS = {"icon": True, "urgency": True, "timeout": True}


def test_supported_flags_are_passed(config, tmp_path):
    runner = FakeRunner(installed={"notify-send"})
    snapshot = make_snapshot({"notify-send": ("0.8", ALL_FLAGS)})
    shot = tmp_path / "shot.png"

    assert notify_capture(shot, snapshot, config, copied=True, runner=runner)

    assert runner.calls == [[
        "notify-send", "-a", "hyss",
        "-u", "normal",
        "-t", "5000",
        "-i", str(shot),
        "Screenshot Captured", "Saved to shot.png\nCopied to clipboard",
    ]]


def test_unsupported_flags_are_left_out(config):
    runner = FakeRunner(installed={"notify-send"})
    snapshot = make_snapshot({"notify-send": ("0.7", {"urgency": True})})

    notify("Title", "Body", snapshot, config, icon="camera-photo", runner=runner)

    assert runner.calls == [["notify-send", "-a", "hyss", "-u", "normal", "Title", "Body"]]


def test_disabled_or_missing_is_a_noop(config):
    runner = FakeRunner(installed={"notify-send"})
    quiet = dataclasses.replace(config, notifications=False)

    assert not notify("Title", "Body", make_snapshot({"notify-send": "0.8"}), quiet, runner=runner)
    assert not notify("Title", "Body", make_snapshot({}), config, runner=runner)
    assert runner.calls == []


def test_failures_are_not_raised(config):
    def timeout(argv, input=None):
        raise subprocess.TimeoutExpired(argv, 5)

    snapshot = make_snapshot({"notify-send": "0.8"})
    hanging = FakeRunner(installed={"notify-send"}, handlers={"notify-send": timeout})
    refused = FakeRunner(
        installed={"notify-send"},
        handlers={"notify-send": lambda argv, input=None: completed(argv, 1, stderr="no daemon")},
    )

    assert not notify("Title", "Body", snapshot, config, runner=hanging)
    assert not notify("Title", "Body", snapshot, config, runner=refused)


def test_text_preview_is_truncated(config):
    runner = FakeRunner(installed={"notify-send"})

    notify_text("x" * 150, make_snapshot({"notify-send": "0.8"}), config, runner=runner)

    summary, body = runner.calls[0][-2:]
    assert summary == "OCR Text Extracted"
    assert body == "x" * 100 + "..."
