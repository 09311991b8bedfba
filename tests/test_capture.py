import json

import pytest
from conftest import FakeRunner, completed, grim_writer, make_snapshot

from hyss.capture import CaptureError, focused_output, frozen_screen, grab, grab_focused_output, select_area
from hyss.clipboard import ClipboardError, copy_image, copy_text, paste_text


def test_grab_adds_supported_arguments(tmp_path):
    runner = FakeRunner(installed={"grim"}, handlers={"grim": grim_writer})
    snapshot = make_snapshot({"grim": ("1.4.1", {"geometry": True, "cursor": True, "output": False})})
    out = tmp_path / "shot.png"

    assert grab(out, snapshot, geometry="10,10 50x50", output_name="eDP-1", cursor=True, runner=runner) == out
    assert runner.calls == [["grim", "-g", "10,10 50x50", "-c", str(out)]]


def test_grab_without_geometry_support(tmp_path):
    snapshot = make_snapshot({"grim": ("1.0.0", {})})
    with pytest.raises(CaptureError):
        grab(tmp_path / "shot.png", snapshot, geometry="0,0 1x1", runner=FakeRunner(installed={"grim"}))


def test_grab_empty_output_is_an_error(tmp_path):
    runner = FakeRunner(installed={"grim"})
    with pytest.raises(CaptureError, match="empty"):
        grab(tmp_path / "shot.png", make_snapshot({"grim": "1.4.1"}), runner=runner)


def test_grab_requires_grim(tmp_path):
    with pytest.raises(CaptureError):
        grab(tmp_path / "shot.png", make_snapshot({}), runner=FakeRunner())


def test_select_area_cancelled():
    runner = FakeRunner(installed={"slurp"}, handlers={"slurp": lambda argv, input=None: completed(argv, 1)})
    with pytest.raises(CaptureError, match="cancelled"):
        select_area(make_snapshot({"slurp": "1.5.0"}), runner)


def test_select_area_returns_geometry():
    runner = FakeRunner(installed={"slurp"}, responses={("slurp",): "12,34 100x200\n"})
    assert select_area(make_snapshot({"slurp": "1.5.0"}), runner) == "12,34 100x200"


def test_frozen_screen_terminates_helper_on_error():
    runner = FakeRunner(installed={"hyprpicker"})
    snapshot = make_snapshot({"hyprpicker": ("0.4.0", {"freeze": True, "raw": True})})

    with pytest.raises(RuntimeError):
        with frozen_screen(snapshot, settle_ms=0, runner=runner) as frozen:
            assert frozen
            raise RuntimeError("selection crashed")

    (process,) = runner.spawned
    assert process.argv == ["hyprpicker", "-r", "-z"]
    assert process.terminated


def test_frozen_screen_without_hyprpicker():
    runner = FakeRunner()
    with frozen_screen(make_snapshot({}), settle_ms=0, runner=runner) as frozen:
        assert not frozen
    assert runner.spawned == []


def test_clipboard_round_trip():
    stored = {}

    def copy(argv, input=None):
        stored["data"] = input
        stored["argv"] = argv
        return completed(argv)

    runner = FakeRunner(
        installed={"wl-copy", "wl-paste"},
        handlers={
            "wl-copy": copy,
            "wl-paste": lambda argv, input=None: completed(argv, stdout=stored["data"]),
        },
    )
    snapshot = make_snapshot({"wl-copy": ("2.2.1", {"type": True}), "wl-paste": "2.2.1"})

    copy_text("hello", snapshot, runner)
    assert paste_text(snapshot, runner) == "hello"


def test_copy_image_sets_mime_type(tmp_path):
    image = tmp_path / "shot.png"
    image.write_bytes(b"png")
    runner = FakeRunner(installed={"wl-copy"})
    copy_image(image, make_snapshot({"wl-copy": ("2.2.1", {"type": True})}), runner)
    assert runner.calls == [["wl-copy", "--type", "image/png"]]


def test_clipboard_errors():
    failing = FakeRunner(
        installed={"wl-copy"},
        handlers={"wl-copy": lambda argv, input=None: completed(argv, 1, stderr="no display")},
    )
    with pytest.raises(ClipboardError):
        copy_text("x", make_snapshot({"wl-copy": "2.2.1"}), failing)
    with pytest.raises(ClipboardError):
        paste_text(make_snapshot({}), FakeRunner())


MONITORS = json.dumps([
    {"name": "eDP-1", "focused": False},
    {"name": "DP-2", "focused": True},
])


def test_focused_output_reads_hyprctl():
    runner = FakeRunner(installed={"hyprctl"}, responses={("hyprctl", "monitors", "-j"): MONITORS})
    assert focused_output(make_snapshot({"hyprctl": "0.41.2"}), runner) == "DP-2"


def test_focused_output_unknown():
    assert focused_output(make_snapshot({}), FakeRunner()) is None

    garbled = FakeRunner(installed={"hyprctl"}, responses={("hyprctl", "monitors", "-j"): "not json"})
    assert focused_output(make_snapshot({"hyprctl": "0.41.2"}), garbled) is None


def test_grab_focused_output_targets_monitor(tmp_path):
    runner = FakeRunner(
        installed={"grim", "hyprctl"},
        responses={("hyprctl", "monitors", "-j"): MONITORS},
        handlers={"grim": grim_writer},
    )
    snapshot = make_snapshot({"grim": ("1.4.1", {"output": True}), "hyprctl": "0.41.2"})
    out = tmp_path / "shot.png"

    grab_focused_output(out, snapshot, runner=runner)

    assert runner.calls[-1] == ["grim", "-o", "DP-2", str(out)]


def test_grab_focused_output_falls_back_to_all_outputs(tmp_path):
    runner = FakeRunner(installed={"grim"}, handlers={"grim": grim_writer})
    out = tmp_path / "shot.png"

    grab_focused_output(out, make_snapshot({"grim": ("1.4.1", {"output": True})}), runner=runner)

    assert runner.calls == [["grim", str(out)]]
