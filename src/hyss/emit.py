"""
Structured event stream.

Every event goes to each registered handler. The stderr handler writes one
JSON line per event so the stream can be told apart from log lines; it is
registered by default and toggled with configure().

Event format:
    {"event_type": "...", "timestamp": "...", "source": {"tool": "hyss"}, "data": {...}}
"""

import json
import sys
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict], None]

EVENT_CATALOG = [
    {
        "event_type": "capabilities.detected",
        "data_fields": ["source", "tools", "missing_required"],
    },
    {
        "event_type": "versions.changed",
        "data_fields": ["changes"],
    },
    {
        "event_type": "migration.completed",
        "data_fields": ["tool", "old_version", "new_version", "status", "action", "backup"],
    },
    {
        "event_type": "compat.completed",
        "data_fields": ["overall_result", "duration", "results"],
    },
    {
        "event_type": "capture.completed",
        "data_fields": ["mode", "path", "annotated", "copied"],
    },
    {
        "event_type": "ocr.completed",
        "data_fields": ["characters", "copied"],
    },
    {
        "event_type": "error.handled",
        "data_fields": ["error_type", "message", "command"],
    },
    {
        "event_type": "shutdown",
        "data_fields": [],
    },
]


def write_stderr(event: dict) -> None:
    print(json.dumps(event, default=str), file=sys.stderr, flush=True)


_handlers: List[EventHandler] = [write_stderr]
_source: str = "hyss"


def add_handler(handler: EventHandler) -> None:
    """Register an event handler; registering one twice is a no-op."""
    if handler not in _handlers:
        _handlers.append(handler)


def configure(source: str, stderr: bool = True) -> None:
    """Set the event source name and whether events are mirrored to stderr.

    Args:
        source: Source identifier for events
        stderr: Whether to write events to stderr
    """
    global _source
    _source = source
    if stderr:
        add_handler(write_stderr)
    elif write_stderr in _handlers:
        _handlers.remove(write_stderr)


def emit(event_type: str, data: Dict[str, Any], source: Optional[str] = None) -> None:
    """Build an event and hand it to every handler.

    A failing handler is logged and skipped; the command that emitted the
    event carries on.
    """
    event = {
        "event_type": event_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "source": {"tool": source or _source},
        "data": data,
    }
    for handler in list(_handlers):
        try:
            handler(event)
        except Exception as exc:
            logger.debug("Event handler %r failed on %s: %s", handler, event_type, exc)
