import struct
import subprocess
from pathlib import Path

import pytest

from hyss import emit
from hyss.capabilities import CapabilityRecord, CapabilitySnapshot
from hyss.config import Config
from hyss.runner import ProcessRunner

# Signature plus an IHDR chunk header for a 1920x1080 image
PNG_HEADER = (
    b"\x89PNG\r\n\x1a\n"
    + struct.pack(">I", 13)
    + b"IHDR"
    + struct.pack(">II", 1920, 1080)
    + b"\x08\x06\x00\x00\x00"
)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProcess:
    def __init__(self, argv):
        self.argv = list(argv)
        self.returncode = None
        self.terminated = False

    def poll(self):
        return self.returncode

    def terminate(self):
        self.terminated = True
        self.returncode = -15

    def kill(self):
        self.returncode = -9

    def wait(self, timeout=None):
        return self.returncode


class FakeRunner(ProcessRunner):
    """ProcessRunner with canned tool behavior.

    `responses` maps an argv tuple to stdout. `handlers` maps a binary to a
    callable(argv, input) returning a CompletedProcess, for tools whose
    behavior depends on arguments (grim writing its output file).
    """

    def __init__(self, installed=(), responses=None, handlers=None):
        self.installed = set(installed)
        self.responses = dict(responses or {})
        self.handlers = dict(handlers or {})
        self.calls: list[list[str]] = []
        self.spawned: list[FakeProcess] = []

    def which(self, binary):
        return f"/usr/bin/{binary}" if binary in self.installed else None

    def run(self, argv, input=None, timeout=10, text=True, capture=True):
        argv = list(argv)
        self.calls.append(argv)
        if argv[0] not in self.installed:
            raise FileNotFoundError(argv[0])
        handler = self.handlers.get(argv[0])
        if handler is not None:
            return handler(argv, input)
        return subprocess.CompletedProcess(argv, 0, self.responses.get(tuple(argv), ""), "")

    def spawn(self, argv):
        process = FakeProcess(argv)
        self.spawned.append(process)
        return process


def completed(argv, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(list(argv), returncode, stdout, stderr)


def grim_writer(argv, input=None):
    """Fake grim: answers -h, otherwise writes a PNG header to the last argument."""
    if argv[-1] == "-h":
        return completed(argv, stdout="-g <geometry>\n-c\n")
    Path(argv[-1]).write_bytes(PNG_HEADER)
    return completed(argv)


def make_snapshot(tools: dict, probed_at: float = 1_700_000_000.0) -> CapabilitySnapshot:
    """Build a snapshot from {tool: version} or {tool: (version, {flag: bool})}."""
    records = {}
    for name, value in tools.items():
        if value is None:
            records[name] = CapabilityRecord.unavailable(name)
            continue
        version, flags = value if isinstance(value, tuple) else (value, {})
        records[name] = CapabilityRecord(name, True, version, flags, name)
    return CapabilitySnapshot(probed_at=probed_at, records=records)


@pytest.fixture(autouse=True)
def quiet_events():
    emit.configure("hyss-test", stderr=False)
    yield
    emit.configure("hyss", stderr=True)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    return Config(
        data_dir=tmp_path / "data",
        cache_dir=tmp_path / "cache",
        tool_config_dir=tmp_path / "xdg",
        output_dir=tmp_path / "shots",
        lock_file=tmp_path / "run" / "hyss.lock",
    )


@pytest.fixture
def events(monkeypatch):
    captured = []
    monkeypatch.setattr(emit, "_handlers", [])
    emit.add_handler(captured.append)
    return captured
