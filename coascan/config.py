"""Centralised settings for the COA scan backend.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


_DEFAULT_SYSTEM_PROMPT = (
    "You are a budtender who explains cannabis products to customers. "
    "You read Certificates of Analysis and summarise them in plain language."
)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("COASCAN_WORKSPACE", Path.home() / ".coascan_data")
        )
    )
    cli_config_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("CLI_CONFIG_DIR", Path.home() / ".coascan_cli")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "history.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    history_key: str = field(
        default_factory=lambda: os.environ.get("HISTORY_KEY", "scanHistoryV2")
    )
    # 0 disables the bound
    history_limit: int = field(
        default_factory=lambda: int(os.environ.get("HISTORY_LIMIT", "100"))
    )

    # ------------------------------------------------------------------
    # Scanning / retrieval
    # ------------------------------------------------------------------
    scan_cooldown: float = field(
        default_factory=lambda: float(os.environ.get("SCAN_COOLDOWN", "5.0"))
    )
    document_proxy_url: str = field(
        default_factory=lambda: os.environ.get(
            "DOCUMENT_PROXY_URL", "https://api.allorigins.win/raw?url="
        )
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------
    max_pages: int = field(
        default_factory=lambda: int(os.environ.get("MAX_PAGES", "5"))
    )
    max_chars: int = field(
        default_factory=lambda: int(os.environ.get("MAX_CHARS", "5000"))
    )

    # ------------------------------------------------------------------
    # Analysis service
    # ------------------------------------------------------------------
    openai_api_key: str = field(
        default_factory=lambda: os.environ.get("OPENAI_API_KEY", "")
    )
    analysis_base_url: str = field(
        default_factory=lambda: os.environ.get(
            "ANALYSIS_BASE_URL", "https://api.openai.com/v1"
        )
    )
    analysis_model: str = field(
        default_factory=lambda: os.environ.get("ANALYSIS_MODEL", "gpt-4.1-mini")
    )
    analysis_temperature: float = field(
        default_factory=lambda: float(os.environ.get("ANALYSIS_TEMPERATURE", "0.7"))
    )
    analysis_max_tokens: int = field(
        default_factory=lambda: int(os.environ.get("ANALYSIS_MAX_TOKENS", "1500"))
    )
    analysis_timeout: float = field(
        default_factory=lambda: float(os.environ.get("ANALYSIS_TIMEOUT", "60.0"))
    )
    analysis_system_prompt: str = field(
        default_factory=lambda: os.environ.get(
            "ANALYSIS_SYSTEM_PROMPT", _DEFAULT_SYSTEM_PROMPT
        )
    )
    prompt_template_path: str = field(
        default_factory=lambda: os.environ.get(
            "PROMPT_TEMPLATE_PATH",
            str(Path(__file__).resolve().parent / "analysis" / "prompts" / "coa_summary.txt"),
        )
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "WARNING")
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton; import this everywhere:
#   from coascan.config import settings
settings = Settings()
