"""Prompt template loading.

Templates are plain text addressed by path: a local file, or an ``http(s)``
URL fetched with ``httpx``.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import httpx

from coascan.config import settings
from coascan.errors import TemplateLoadError

logger = logging.getLogger(__name__)


def _read_file(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


class PromptTemplates:
    """Load prompt templates by path.

    Args:
        default_path: Path used when :meth:`load` is called without one.
            Defaults to ``settings.prompt_template_path``.
        timeout: Timeout in seconds for remote templates.
    """

    def __init__(
        self,
        default_path: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.default_path = default_path or settings.prompt_template_path
        self.timeout = settings.request_timeout if timeout is None else timeout
        self._transport = transport

    async def load(self, path: Optional[str] = None) -> str:
        """Return the template text at *path*.

        Raises:
            TemplateLoadError: If the resource cannot be read.
        """
        path = path or self.default_path
        if path.startswith(("http://", "https://")):
            return await self._load_remote(path)
        try:
            return await asyncio.to_thread(_read_file, path)
        except (OSError, UnicodeDecodeError) as exc:
            raise TemplateLoadError(path, str(exc)) from exc

    async def _load_remote(self, url: str) -> str:
        logger.debug("Fetching prompt template %s", url)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise TemplateLoadError(url, str(exc) or exc.__class__.__name__) from exc
        if not response.is_success:
            raise TemplateLoadError(url, f"HTTP {response.status_code}")
        return response.text
