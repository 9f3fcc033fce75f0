"""
Common interface for the timetable source parsers.

Each parser turns one kind of payload (portal API JSON, DOM-extraction JSON,
raw page HTML) into RawSession rows. A parser never raises on bad content:
malformed rows are skipped and an unusable payload gives an empty list,
which tells the importer to try the next source.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Union

from .models import RawSession

log = logging.getLogger(__name__)

Payload = Union[str, bytes]


@dataclass(frozen=True)
class ExtractedTable:
    sessions: List[RawSession] = field(default_factory=list)
    # Number of periods per day the source table shows; 0 when unknown
    total_sections: int = 0


class ExtractionStrategy(ABC):
    """A way of pulling RawSession rows out of one payload shape."""

    name: str = ""

    @abstractmethod
    def extract(self, payload: Payload) -> List[RawSession]:
        """Return the rows found in ``payload``; empty if none."""

    def extract_table(self, payload: Payload) -> ExtractedTable:
        return ExtractedTable(self.extract(payload))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def decode_payload(payload: Payload) -> str | None:
    """Payload as text; None when bytes are not valid UTF-8."""
    if isinstance(payload, bytes):
        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError:
            log.debug("Payload is not valid UTF-8")
            return None
    if isinstance(payload, str):
        return payload
    return None


def load_json(payload: Payload) -> Any:
    """Parsed JSON value, or None when the payload is not JSON."""
    text = decode_payload(payload)
    if text is None:
        return None
    try:
        return json.loads(text)
    except ValueError:
        log.debug("Payload is not JSON")
        return None


def as_int(value: Any) -> int | None:
    """int for JSON integers and numeric strings ('3', ' 3 '); None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""
