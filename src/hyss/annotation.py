"""Annotation tool configuration files.

satty reads a TOML file with [general], [font] and [color-palette]
sections; swappy reads an INI file with a single [Default] section. hyss
owns both files: it generates them, migrates them in place when satty is
upgraded, and regenerates them on request.

The migration transforms are plain text edits and must stay idempotent:
running one twice on the same content gives the same result as running it
once.
"""

import re
from pathlib import Path

SATTY_BASE_CONFIG = """\
[general]
# Start Satty in fullscreen mode
fullscreen = false

# Exit directly after copy/save action
early-exit = true

# Draw corners of rectangles round if the value is greater than 0
corner-roundness = 12

# Select the tool on startup
# Options: pointer, crop, line, arrow, rectangle, text, marker, blur, brush
initial-tool = "brush"

# Configure the command to be called on copy
copy-command = "wl-copy"

# Increase or decrease the size of the annotations
annotation-size-factor = 1.0

# Action to perform when the Enter key is pressed
# Options: save-to-clipboard, save-to-file
action-on-enter = "save-to-clipboard"

# After copying the screenshot, save it to a file as well
save-after-copy = false

# Hide toolbars by default
default-hide-toolbars = false

# The primary highlighter to use
# Options: block, freehand
primary-highlighter = "block"

# Disable notifications
disable-notifications = false

# Font to use for text annotations
[font]
family = "Sans"
style = "Bold"

# Custom colours for the colour palette
[color-palette]
palette = [
    "#dc143c",  # Crimson
    "#00bfff",  # Deep Sky Blue
    "#32cd32",  # Lime Green
    "#ffd700",  # Gold
    "#ff69b4",  # Hot Pink
    "#8a2be2",  # Blue Violet
    "#ff4500",  # Orange Red
    "#00ced1",  # Dark Turquoise
]
"""

SATTY_PALETTE_SECTION = """
# Custom colours for the colour palette
[color-palette]
palette = [
    "#dc143c",
    "#00bfff",
    "#32cd32",
    "#ffd700",
    "#ff69b4",
]
"""

SWAPPY_CONFIG = """\
[Default]
save_dir={save_dir}
save_filename_format={filename_format}
show_panel=true
line_size=5
text_size=20
text_font=Sans Bold
paint_mode=brush
early_exit=true
"""


def satty_config_path(tool_config_dir: Path) -> Path:
    return tool_config_dir / "satty" / "config.toml"


def swappy_config_path(tool_config_dir: Path) -> Path:
    return tool_config_dir / "swappy" / "config"


def render_satty_config(version: str) -> str:
    """Full satty configuration for a given satty version."""
    if version.startswith(("1.0.", "1.1.")):
        trailer = "# Configuration for older satty version"
    elif version.startswith(("1.2.", "1.3.", "1.4.")):
        trailer = "# Configuration for current satty version"
    else:
        trailer = f"# Configuration for satty version {version or 'unknown'}"
    return f"{SATTY_BASE_CONFIG}{trailer}\n"


def render_swappy_config(save_dir: Path, filename_format: str) -> str:
    return SWAPPY_CONFIG.format(save_dir=save_dir, filename_format=filename_format)


def insert_under_section(text: str, section: str, line: str, marker: str) -> str:
    """Insert `line` right after the `[section]` header unless `marker` is present.

    Returns the text unchanged when the marker already occurs anywhere or
    when the section header is missing.
    """
    if marker in text:
        return text
    header = re.compile(rf"^\[{re.escape(section)}\][ \t]*$", re.MULTILINE)
    match = header.search(text)
    if not match:
        return text
    end = match.end()
    return f"{text[:end]}\n{line}{text[end:]}"


def rename_key(text: str, old: str, new: str) -> str:
    """Rename every occurrence of a deprecated key."""
    return re.sub(rf"(?<![\w-]){re.escape(old)}(?![\w-])", new, text)


def migrate_satty_1_0_to_1_1(text: str) -> str:
    # 1.1 added early-exit and renamed save_on_copy
    text = insert_under_section(text, "general", "early-exit = true", "early-exit")
    return rename_key(text, "save_on_copy", "save-after-copy")


def migrate_satty_to_1_2(text: str) -> str:
    # 1.2 added the colour palette and renamed highlight_style
    if "color-palette" not in text:
        if not text.endswith("\n"):
            text += "\n"
        text += SATTY_PALETTE_SECTION
    return rename_key(text, "highlight_style", "primary-highlighter")
