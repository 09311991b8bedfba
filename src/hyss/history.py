"""Compatibility test history store.

Document layout:
    {
        "schema_version": "1.0",
        "created": 1704067200.0,
        "last_test": 1704067200.0,
        "test_history": [<TestRecord dict>, ...]
    }
"""

import time
from pathlib import Path
from typing import Callable, Optional

from .storage import read_json, trim_by_timestamp, write_json

SCHEMA_VERSION = "1.0"


class TestHistory:
    """Append-only store of test records, capped to the most recent runs."""

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        path: Path,
        limit: int = 20,
        clock: Callable[[], float] = time.time,
    ):
        self.path = path
        self.limit = limit
        self.clock = clock

    def initial_document(self) -> dict:
        return {
            "schema_version": SCHEMA_VERSION,
            "created": self.clock(),
            "last_test": None,
            "test_history": [],
        }

    def ensure(self) -> None:
        if not self.path.exists():
            write_json(self.path, self.initial_document())

    def load(self) -> dict:
        document = read_json(self.path, self.initial_document)
        if not isinstance(document.get("test_history"), list):
            document["test_history"] = []
        return document

    def records(self) -> list[dict]:
        return list(self.load()["test_history"])

    def latest(self) -> Optional[dict]:
        records = self.records()
        return records[-1] if records else None

    def append(self, record: dict) -> None:
        document = self.load()
        history = document["test_history"] + [record]
        document["test_history"] = trim_by_timestamp(history, self.limit, "start_time")
        document["last_test"] = record.get("start_time")
        write_json(self.path, document)

    def trim(self) -> int:
        """Trim history to the limit. Returns the number of records dropped."""
        if not self.path.exists():
            return 0
        document = self.load()
        history = document["test_history"]
        trimmed = trim_by_timestamp(history, self.limit, "start_time")
        document["test_history"] = trimmed
        write_json(self.path, document)
        return len(history) - len(trimmed)
