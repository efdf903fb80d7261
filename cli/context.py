"""Persistent state management for the COA scan CLI.

Tracks the last scanned url and the display mode for analysis text.
Stored in `~/.coascan_cli/context.json`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path

from coascan.config import settings

logger = logging.getLogger(__name__)

DISPLAY_MODES = ("structured", "plain")


@dataclass
class CliContext:
    last_url: str | None = None
    display_mode: str = "structured"

    @property
    def structured(self) -> bool:
        return self.display_mode != "plain"

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    @classmethod
    def from_json(cls, data: str) -> CliContext:
        try:
            raw = json.loads(data)
            return cls(**raw)
        except (json.JSONDecodeError, TypeError):
            return cls()


def _get_context_path() -> Path:
    """Return the path to the context JSON file."""
    return settings.cli_config_dir / "context.json"


def load_context() -> CliContext:
    """Load the CLI context from disk. Returns defaults if missing/corrupt."""
    path = _get_context_path()
    if not path.exists():
        return CliContext()
    try:
        return CliContext.from_json(path.read_text(encoding="utf-8"))
    except OSError as exc:
        logger.warning("Could not read CLI context %s: %s", path, exc)
        return CliContext()


def save_context(ctx: CliContext) -> None:
    """Save the CLI context to disk."""
    settings.cli_config_dir.mkdir(parents=True, exist_ok=True)
    _get_context_path().write_text(ctx.to_json(), encoding="utf-8")
