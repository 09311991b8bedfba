"""HyprScreenShot (hyss) for Wayland compositors.

A stable command surface over grim, slurp, satty/swappy, wl-clipboard,
tesseract and ImageMagick with:
- Capability detection and caching per installed tool version
- Configuration migration when a tracked tool is upgraded
- A compatibility self-test battery with persisted history
"""

__version__ = "1.0.0"
