"""Image checks and OCR helpers for the compatibility battery.

Captured images are validated by their PNG header, then decoded with
GdkPixbuf when PyGObject is installed. The synthetic OCR sample is
rendered with ImageMagick and read back with tesseract.
"""

import logging
import struct
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from .capabilities import CapabilitySnapshot
from .runner import ProcessRunner, get_runner

log = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class ImageError(Exception):
    """Raised when an image cannot be created, read or recognized."""
    pass


class ImagingUnavailable(ImageError):
    """Raised when GdkPixbuf cannot be imported."""
    pass


def image_size(path: Path) -> tuple[int, int]:
    """Load an image with GdkPixbuf and return (width, height).

    Raises:
        ImagingUnavailable: If PyGObject/GdkPixbuf is not installed
        ImageError: If the file is not a readable image
    """
    try:
        import gi
        gi.require_version("GdkPixbuf", "2.0")
        from gi.repository import GdkPixbuf
    except (ImportError, ValueError) as e:
        raise ImagingUnavailable(f"GdkPixbuf unavailable: {e}") from e

    try:
        pixbuf = GdkPixbuf.Pixbuf.new_from_file(str(path))
    except Exception as e:
        raise ImageError(f"{path.name} is not a valid image: {e}") from e
    return pixbuf.get_width(), pixbuf.get_height()


def png_size(path: Path) -> tuple[int, int]:
    """Read (width, height) from the IHDR chunk of a PNG file.

    Raises:
        ImageError: If the file is missing or not a PNG
    """
    try:
        with open(path, "rb") as f:
            header = f.read(24)
    except OSError as e:
        raise ImageError(f"Cannot read {path.name}: {e}") from e
    if len(header) < 24 or not header.startswith(PNG_SIGNATURE) or header[12:16] != b"IHDR":
        raise ImageError(f"{path.name} is not a PNG image")
    return struct.unpack(">II", header[16:24])


def validate_image(path: Path) -> tuple[int, int]:
    """Check that a capture is a PNG and, when GdkPixbuf is available, that it decodes."""
    size = png_size(path)
    try:
        return image_size(path)
    except ImagingUnavailable as e:
        log.debug("Skipping full decode of %s: %s", path.name, e)
        return size


def render_text_image(
    text: str,
    output_file: Path,
    snapshot: CapabilitySnapshot,
    runner: Optional[ProcessRunner] = None,
) -> Path:
    """Render black text centered on a 200x100 white canvas."""
    runner = runner or get_runner()
    argv = [
        snapshot.binary("imagemagick"),
        "-size", "200x100", "xc:white",
        "-pointsize", "20",
        "-gravity", "center",
        "-annotate", "+0+0", text,
        str(output_file),
    ]
    try:
        result = runner.run(argv, timeout=10)
    except (OSError, subprocess.SubprocessError) as e:
        raise ImageError(f"Could not render test image: {e}") from e
    if result.returncode != 0 or not output_file.exists():
        raise ImageError(f"Could not render test image: {result.stderr}")
    return output_file


def enhance_for_ocr(
    image: Path,
    snapshot: CapabilitySnapshot,
    runner: Optional[ProcessRunner] = None,
) -> bool:
    """Raise contrast in place so tesseract reads screen text more reliably.

    Returns:
        True if the image was enhanced, False if it was left as captured
    """
    if not snapshot.available("imagemagick"):
        return False
    runner = runner or get_runner()
    argv = [snapshot.binary("imagemagick"), str(image), "-sigmoidal-contrast", "10,50%", str(image)]
    try:
        result = runner.run(argv, timeout=10)
    except (OSError, subprocess.SubprocessError) as e:
        log.debug("Could not enhance %s: %s", image.name, e)
        return False
    return result.returncode == 0


def recognize_text(
    image: Path,
    snapshot: CapabilitySnapshot,
    runner: Optional[ProcessRunner] = None,
) -> str:
    """Run tesseract on an image and return the recognized text."""
    runner = runner or get_runner()
    binary = snapshot.binary("tesseract")
    try:
        if snapshot.has("tesseract", "stdout"):
            result = runner.run([binary, str(image), "-"], timeout=30)
            if result.returncode != 0:
                raise ImageError(f"tesseract failed: {result.stderr}")
            return result.stdout

        # Older tesseract writes <base>.txt instead of printing
        with tempfile.TemporaryDirectory(prefix="hyss-ocr-") as tmp:
            base = Path(tmp) / "ocr_output"
            result = runner.run([binary, str(image), str(base)], timeout=30)
            text_file = base.with_suffix(".txt")
            if result.returncode != 0 or not text_file.exists():
                raise ImageError(f"tesseract failed: {result.stderr}")
            return text_file.read_text(errors="replace")
    except (OSError, subprocess.SubprocessError) as e:
        raise ImageError(f"tesseract failed: {e}") from e
