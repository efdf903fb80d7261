"""Dataclass models for persisted scan history.

These are plain Python objects – not ORM models.  The history store
serialises them to the camelCase JSON shape kept in the ``slots`` table.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ScanRecord:
    url: str
    extracted_text: str
    analysis: str

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("ScanRecord.url must not be empty")

    def to_dict(self) -> dict[str, str]:
        """Return the persisted ``{url, extractedText, analysis}`` shape."""
        return {
            "url": self.url,
            "extractedText": self.extracted_text,
            "analysis": self.analysis,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional[ScanRecord]:
        """Build a record from a persisted entry; ``None`` if it is malformed."""
        if not isinstance(data, dict):
            return None
        url = data.get("url")
        if not isinstance(url, str) or not url:
            return None
        extracted = data.get("extractedText", "")
        analysis = data.get("analysis", "")
        return cls(
            url=url,
            extracted_text=extracted if isinstance(extracted, str) else "",
            analysis=analysis if isinstance(analysis, str) else "",
        )
