"""Compatibility test battery.

Runs a fixed, ordered set of functional checks against the installed tools
and aggregates them into one verdict:

    capture      critical      grim writes a non-empty PNG that decodes
    selection    critical      slurp answers introspection
    clipboard    critical      wl-copy/wl-paste round-trip known text
    annotation                 satty or swappy answers introspection
    ocr                        tesseract reads a rendered "TEST" image
    integration  critical      grim accepts a literal geometry string

Overall result is "fail" if any critical check failed, "warn" if anything
else is not a pass, "pass" otherwise. Every run appends one record to the
test history.
"""

import logging
import subprocess
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .capabilities import CapabilitySnapshot, select_annotation_tool
from .capture import CaptureError, grab
from .clipboard import ClipboardError, copy_text, paste_text
from .config import Config, get_config
from .emit import emit
from .history import TestHistory
from .imaging import ImageError, recognize_text, render_text_image, validate_image
from .runner import ProcessRunner, get_runner

log = logging.getLogger(__name__)

PASS = "pass"
FAIL = "fail"
SKIP = "skip"
WARN = "warn"

CLIPBOARD_PROBE_TEXT = "hyss-clipboard-test"
OCR_PROBE_TEXT = "TEST"
INTEGRATION_GEOMETRY = "0,0 100x100"

ImageValidator = Callable[[Path], tuple[int, int]]

CHECK_ERRORS = (
    CaptureError,
    ClipboardError,
    ImageError,
    OSError,
    subprocess.SubprocessError,
)


@dataclass(frozen=True)
class ComponentResult:
    component: str
    status: str
    detail: str = ""
    critical: bool = False

    def to_dict(self) -> dict:
        return {
            "component": self.component,
            "status": self.status,
            "detail": self.detail,
            "critical": self.critical,
        }


@dataclass
class TestRecord:
    __test__ = False  # not a pytest test class

    start_time: float
    end_time: float
    overall_result: str
    component_results: list[ComponentResult] = field(default_factory=list)
    tool_versions: dict[str, str] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        return round(self.end_time - self.start_time, 3)

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "overall_result": self.overall_result,
            "component_results": [result.to_dict() for result in self.component_results],
            "tool_versions": dict(self.tool_versions),
        }


def aggregate(results: list[ComponentResult]) -> str:
    """Fold component results into the overall verdict."""
    if any(result.critical and result.status == FAIL for result in results):
        return FAIL
    if any(result.status != PASS for result in results):
        return WARN
    return PASS


class CompatibilityHarness:
    def __init__(
        self,
        config: Optional[Config] = None,
        runner: Optional[ProcessRunner] = None,
        history: Optional[TestHistory] = None,
        image_validator: Optional[ImageValidator] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or get_config()
        self.runner = runner or get_runner()
        self.clock = clock
        self.history = history or TestHistory(
            self.config.test_history_file,
            limit=self.config.test_history_limit,
            clock=clock,
        )
        self.image_validator = image_validator or validate_image

    def run(self, snapshot: CapabilitySnapshot) -> TestRecord:
        """Run the whole battery, record it, and return the record."""
        log.info("Running compatibility tests...")
        start = self.clock()
        with tempfile.TemporaryDirectory(prefix="hyss-compat-") as tmp:
            workdir = Path(tmp)
            checks = [
                lambda: self.check_capture(snapshot, workdir),
                lambda: self.check_selection(snapshot),
                lambda: self.check_clipboard(snapshot),
                lambda: self.check_annotation(snapshot),
                lambda: self.check_ocr(snapshot, workdir),
                lambda: self.check_integration(snapshot, workdir),
            ]
            results = [check() for check in checks]
        end = self.clock()

        record = TestRecord(
            start_time=start,
            end_time=end,
            overall_result=aggregate(results),
            component_results=results,
            tool_versions=snapshot.versions,
        )
        self.history.append(record.to_dict())

        for result in results:
            log.log(
                logging.WARNING if result.status == FAIL else logging.DEBUG,
                "%s: %s %s", result.component, result.status, result.detail,
            )
        log.info("Compatibility tests finished: %s", record.overall_result)
        emit("compat.completed", {
            "overall_result": record.overall_result,
            "duration": record.duration,
            "results": {result.component: result.status for result in results},
        })
        return record

    def _validate(self, component: str, image: Path, critical: bool) -> ComponentResult:
        try:
            width, height = self.image_validator(image)
        except ImageError as e:
            return ComponentResult(component, FAIL, str(e), critical)
        if width <= 0 or height <= 0:
            return ComponentResult(component, FAIL, f"empty image {width}x{height}", critical)
        return ComponentResult(component, PASS, f"{width}x{height} image", critical)

    def check_capture(self, snapshot: CapabilitySnapshot, workdir: Path) -> ComponentResult:
        if not snapshot.available("grim"):
            return ComponentResult("capture", SKIP, "grim not installed", critical=True)
        image = workdir / "capture.png"
        try:
            grab(image, snapshot, runner=self.runner)
            return self._validate("capture", image, critical=True)
        except CHECK_ERRORS as e:
            return ComponentResult("capture", FAIL, str(e), critical=True)

    def check_selection(self, snapshot: CapabilitySnapshot) -> ComponentResult:
        if not snapshot.available("slurp"):
            return ComponentResult("selection", SKIP, "slurp not installed", critical=True)
        # slurp is interactive, so only check that it answers
        if self.runner.output([snapshot.binary("slurp"), "-h"], timeout=self.config.probe_timeout).strip():
            return ComponentResult("selection", PASS, "slurp responds", critical=True)
        return ComponentResult("selection", FAIL, "slurp did not respond", critical=True)

    def check_clipboard(self, snapshot: CapabilitySnapshot) -> ComponentResult:
        if not snapshot.available("wl-copy"):
            return ComponentResult("clipboard", SKIP, "wl-copy not installed", critical=True)
        try:
            copy_text(CLIPBOARD_PROBE_TEXT, snapshot, runner=self.runner)
            if not snapshot.available("wl-paste"):
                return ComponentResult("clipboard", PASS, "read-back unsupported", critical=True)
            pasted = paste_text(snapshot, runner=self.runner)
        except CHECK_ERRORS as e:
            return ComponentResult("clipboard", FAIL, str(e), critical=True)
        if pasted.strip() != CLIPBOARD_PROBE_TEXT:
            return ComponentResult("clipboard", FAIL, f"read back {pasted.strip()!r}", critical=True)
        return ComponentResult("clipboard", PASS, "round-trip ok", critical=True)

    def check_annotation(self, snapshot: CapabilitySnapshot) -> ComponentResult:
        tool = select_annotation_tool(snapshot, self.config.annotation_tool)
        if tool == "none" or not snapshot.available(tool):
            return ComponentResult("annotation", SKIP, "no annotation tool installed")
        if self.runner.output([snapshot.binary(tool), "--help"], timeout=self.config.probe_timeout).strip():
            return ComponentResult("annotation", PASS, f"{tool} responds")
        return ComponentResult("annotation", FAIL, f"{tool} did not respond")

    def check_ocr(self, snapshot: CapabilitySnapshot, workdir: Path) -> ComponentResult:
        if not snapshot.available("tesseract"):
            return ComponentResult("ocr", SKIP, "tesseract not installed")
        if not snapshot.available("imagemagick"):
            return ComponentResult("ocr", SKIP, "imagemagick not installed, cannot render sample")
        try:
            sample = render_text_image(OCR_PROBE_TEXT, workdir / "ocr.png", snapshot, runner=self.runner)
            text = recognize_text(sample, snapshot, runner=self.runner)
        except CHECK_ERRORS as e:
            return ComponentResult("ocr", FAIL, str(e))
        if OCR_PROBE_TEXT in text.upper():
            return ComponentResult("ocr", PASS, "sample text recognized")
        return ComponentResult("ocr", FAIL, f"recognized {text.strip()!r}")

    def check_integration(self, snapshot: CapabilitySnapshot, workdir: Path) -> ComponentResult:
        if not (snapshot.available("grim") and snapshot.available("slurp")):
            return ComponentResult("integration", SKIP, "grim or slurp not installed", critical=True)
        if not snapshot.has("grim", "geometry"):
            return ComponentResult("integration", FAIL, "grim does not accept -g", critical=True)
        image = workdir / "region.png"
        try:
            grab(image, snapshot, geometry=INTEGRATION_GEOMETRY, runner=self.runner)
        except CHECK_ERRORS as e:
            return ComponentResult("integration", FAIL, str(e), critical=True)
        return ComponentResult("integration", PASS, f"region {INTEGRATION_GEOMETRY} captured", critical=True)
