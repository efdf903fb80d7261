"""Analysis of extracted document text through a chat-completions service.

Request shape (OpenAI-compatible ``/chat/completions``)::

    {
        "model": "gpt-4.1-mini",
        "messages": [
            {"role": "system", "content": "<persona>"},
            {"role": "user",   "content": "<template><extracted text>"}
        ],
        "temperature": 0.7,
        "max_tokens": 1500
    }

The reply text is ``choices[0].message.content``.  :meth:`AnalysisEngine.analyze`
never raises for service problems: each failure maps to one of the fixed
strings below, which then stands in for the analysis in the history record.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from coascan.config import settings
from coascan.errors import AnalysisError

logger = logging.getLogger(__name__)

ANALYSIS_REQUEST_FAILED = "Analysis request failed. The analysis service returned an error."
ANALYSIS_TRANSPORT_FAILED = "An error occurred while contacting the analysis service."
ANALYSIS_BAD_RESPONSE = "The analysis service returned an unexpected response."
NO_RESPONSE = "No response from the analysis service."


def compose_prompt(template: str, extracted_text: str) -> str:
    """Return the user prompt: *template* followed by *extracted_text*."""
    return f"{template}{extracted_text}"


def _reply_content(payload: Any) -> Optional[str]:
    """Return ``choices[0].message.content`` from *payload*.

    Raises:
        AnalysisError: If *payload* has no ``choices`` list at all.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("choices"), list):
        raise AnalysisError("response has no choices list")
    choices = payload["choices"]
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) and content else None


class AnalysisEngine:
    """Client for the external text-analysis service.

    All parameters default to the matching ``settings`` values.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system_prompt: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = settings.openai_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.analysis_base_url).rstrip("/")
        self.model = model or settings.analysis_model
        self.temperature = settings.analysis_temperature if temperature is None else temperature
        self.max_tokens = max_tokens or settings.analysis_max_tokens
        self.system_prompt = system_prompt or settings.analysis_system_prompt
        self.timeout = settings.analysis_timeout if timeout is None else timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def build_request(self, prompt: str) -> dict[str, Any]:
        """Return the JSON body sent for *prompt*."""
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    async def complete(self, prompt: str) -> Optional[str]:
        """Send *prompt* and return the reply text (``None`` if it is empty).

        Raises:
            AnalysisError: On a transport failure, a non-success status, or a
                response body without a ``choices`` list.
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.endpoint,
                    headers=headers,
                    json=self.build_request(prompt),
                )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise AnalysisError(f"transport failure: {exc}") from exc

        if not response.is_success:
            raise AnalysisError(
                f"service returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise AnalysisError("response body is not JSON") from exc
        return _reply_content(payload)

    async def analyze(self, extracted_text: str, template: str) -> str:
        """Return the analysis of *extracted_text*, or a fixed failure text."""
        prompt = compose_prompt(template, extracted_text)
        logger.info("Requesting analysis (%d prompt chars, model=%s)", len(prompt), self.model)
        try:
            reply = await self.complete(prompt)
        except AnalysisError as exc:
            logger.warning("Analysis failed: %s", exc)
            if exc.status_code is not None:
                return ANALYSIS_REQUEST_FAILED
            if isinstance(exc.__cause__, (httpx.HTTPError, httpx.InvalidURL)):
                return ANALYSIS_TRANSPORT_FAILED
            return ANALYSIS_BAD_RESPONSE
        if reply is None:
            logger.warning("Analysis service returned no message content")
            return NO_RESPONSE
        return reply
