"""Tests for the analysis package: prompt templates, service client and
result formatting.

The analysis service is mocked with ``respx``; no API key or network access
is needed.
"""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from coascan.analysis.engine import (
    ANALYSIS_BAD_RESPONSE,
    ANALYSIS_REQUEST_FAILED,
    ANALYSIS_TRANSPORT_FAILED,
    NO_RESPONSE,
    AnalysisEngine,
    compose_prompt,
)
from coascan.analysis.formatter import normalize, render
from coascan.analysis.templates import PromptTemplates
from coascan.config import settings
from coascan.errors import TemplateLoadError

_BASE = "https://llm.test/v1"
_ENDPOINT = f"{_BASE}/chat/completions"


def _engine(**kwargs) -> AnalysisEngine:
    return AnalysisEngine(api_key="sk-test", base_url=_BASE, **kwargs)


def _reply(content) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


# ---------------------------------------------------------------------------
# AnalysisEngine
# ---------------------------------------------------------------------------

class TestComposePrompt:
    def test_template_comes_first(self) -> None:
        assert compose_prompt("Summarise:\n\n", "--- Page 1 ---") == "Summarise:\n\n--- Page 1 ---"


class TestAnalysisEngine:
    async def test_success_returns_first_choice_content(self) -> None:
        with respx.mock:
            respx.post(_ENDPOINT).mock(return_value=httpx.Response(200, json=_reply("Summary X")))
            result = await _engine().analyze("doc text", "Template: ")
        assert result == "Summary X"

    async def test_request_shape(self) -> None:
        with respx.mock:
            route = respx.post(_ENDPOINT).mock(return_value=httpx.Response(200, json=_reply("ok")))
            await _engine(model="gpt-test", system_prompt="You are a budtender.").analyze(
                "doc text", "Template: "
            )

        request = route.calls.last.request
        body = json.loads(request.content)
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert body["model"] == "gpt-test"
        assert body["temperature"] == pytest.approx(0.7)
        assert body["max_tokens"] == settings.analysis_max_tokens
        assert body["messages"] == [
            {"role": "system", "content": "You are a budtender."},
            {"role": "user", "content": "Template: doc text"},
        ]

    async def test_no_auth_header_without_key(self) -> None:
        with respx.mock:
            route = respx.post(_ENDPOINT).mock(return_value=httpx.Response(200, json=_reply("ok")))
            await AnalysisEngine(api_key="", base_url=_BASE).analyze("t", "p")
        assert "Authorization" not in route.calls.last.request.headers

    async def test_non_success_status_maps_to_failure_text(self) -> None:
        with respx.mock:
            respx.post(_ENDPOINT).mock(
                return_value=httpx.Response(429, json={"error": {"message": "rate limited"}})
            )
            result = await _engine().analyze("t", "p")
        assert result == ANALYSIS_REQUEST_FAILED

    async def test_transport_failure_maps_to_failure_text(self) -> None:
        with respx.mock:
            respx.post(_ENDPOINT).mock(side_effect=httpx.ConnectTimeout("timed out"))
            result = await _engine().analyze("t", "p")
        assert result == ANALYSIS_TRANSPORT_FAILED

    async def test_malformed_base_url_maps_to_failure_text(self) -> None:
        engine = AnalysisEngine(api_key="sk-test", base_url="https://llm.test\x00/v1")
        assert await engine.analyze("t", "p") == ANALYSIS_TRANSPORT_FAILED

    @pytest.mark.parametrize(
        "payload",
        [{"error": "nope"}, ["not", "an", "object"], {"choices": "wrong"}],
    )
    async def test_unexpected_shape_maps_to_failure_text(self, payload) -> None:
        with respx.mock:
            respx.post(_ENDPOINT).mock(return_value=httpx.Response(200, json=payload))
            result = await _engine().analyze("t", "p")
        assert result == ANALYSIS_BAD_RESPONSE

    async def test_non_json_body_maps_to_failure_text(self) -> None:
        with respx.mock:
            respx.post(_ENDPOINT).mock(return_value=httpx.Response(200, text="<html>"))
            result = await _engine().analyze("t", "p")
        assert result == ANALYSIS_BAD_RESPONSE

    @pytest.mark.parametrize(
        "payload",
        [
            {"choices": []},
            {"choices": [{}]},
            {"choices": [{"message": {"content": None}}]},
            {"choices": [{"message": {"content": ""}}]},
        ],
    )
    async def test_missing_content_returns_placeholder(self, payload) -> None:
        with respx.mock:
            respx.post(_ENDPOINT).mock(return_value=httpx.Response(200, json=payload))
            result = await _engine().analyze("t", "p")
        assert result == NO_RESPONSE

    async def test_single_attempt_per_analysis(self) -> None:
        with respx.mock:
            route = respx.post(_ENDPOINT).mock(return_value=httpx.Response(503))
            await _engine().analyze("t", "p")
        assert route.call_count == 1


# ---------------------------------------------------------------------------
# PromptTemplates
# ---------------------------------------------------------------------------

class TestPromptTemplates:
    async def test_loads_local_file(self, template_file: str) -> None:
        assert await PromptTemplates().load(template_file) == "Summarise this COA:\n\n"

    async def test_default_path_used(self, template_file: str) -> None:
        assert await PromptTemplates(default_path=template_file).load() == "Summarise this COA:\n\n"

    async def test_bundled_template_loads(self) -> None:
        text = await PromptTemplates().load()
        assert "Certificate of Analysis" in text

    async def test_missing_file_raises(self, tmp_path) -> None:
        with pytest.raises(TemplateLoadError):
            await PromptTemplates().load(str(tmp_path / "missing.txt"))

    async def test_loads_remote_template(self) -> None:
        with respx.mock:
            respx.get("https://cdn.test/prompt.txt").mock(
                return_value=httpx.Response(200, text="Remote prompt: ")
            )
            text = await PromptTemplates().load("https://cdn.test/prompt.txt")
        assert text == "Remote prompt: "

    async def test_remote_error_raises(self) -> None:
        with respx.mock:
            respx.get("https://cdn.test/prompt.txt").mock(return_value=httpx.Response(404))
            with pytest.raises(TemplateLoadError):
                await PromptTemplates().load("https://cdn.test/prompt.txt")


# ---------------------------------------------------------------------------
# ResultFormatter
# ---------------------------------------------------------------------------

_SAMPLES = [
    "",
    "plain text",
    "a\n\n\n\nb",
    "a\r\n\r\n\r\nb\rc",
    "# Title\n\n\nBody",
    "###### Deep\n\n  \nBody",
    "####### Not a heading\n\n\nBody",
    "**Potency:**\n\n\n- THC 21%",
    "**Safety**:\n\nPassed",
    "  # Heading after spaces\n\nText  ",
    "\n\n\n## Product\n\n\n\nBlue Dream\n\n\n\n## Safety\n\nAll passed\n\n\n",
    "line\n \t\n\t \n \nline",
    "#NoSpace\n\n\nText",
]


class TestNormalize:
    @pytest.mark.parametrize("raw", _SAMPLES)
    def test_idempotent(self, raw: str) -> None:
        once = normalize(raw)
        assert normalize(once) == once

    def test_three_or_more_newlines_become_two(self) -> None:
        assert normalize("a\n\n\nb") == "a\n\nb"
        assert normalize("a\n\n\n\n\n\nb") == "a\n\nb"

    def test_single_blank_line_kept(self) -> None:
        assert normalize("a\n\nb") == "a\n\nb"

    def test_line_endings_normalised(self) -> None:
        assert normalize("a\r\nb\rc") == "a\nb\nc"

    def test_heading_followed_directly_by_content(self) -> None:
        assert normalize("## Cannabinoids\n\n\nTHC 21%") == "## Cannabinoids\nTHC 21%"

    def test_bold_label_followed_directly_by_content(self) -> None:
        assert normalize("**Terpenes:**\n\n- Myrcene") == "**Terpenes:**\n- Myrcene"
        assert normalize("**Terpenes**:\n\n- Myrcene") == "**Terpenes**:\n- Myrcene"

    def test_seven_hashes_is_not_a_heading(self) -> None:
        assert normalize("####### x\n\n\ny") == "####### x\n\ny"

    def test_hash_without_space_is_not_a_heading(self) -> None:
        assert normalize("#tag\n\ny") == "#tag\n\ny"

    def test_trims_whole_text(self) -> None:
        assert normalize("\n\n  hello  \n\n") == "hello"

    def test_full_reply(self) -> None:
        raw = (
            "## Product\r\n\r\nBlue Dream flower.\r\n\r\n\r\n\r\n"
            "## Safety\r\n\r\n\r\nPassed all panels.\r\n"
        )
        assert normalize(raw) == (
            "## Product\nBlue Dream flower.\n\n## Safety\nPassed all panels."
        )


class TestRender:
    def test_structured_normalises(self) -> None:
        assert render("# A\n\n\nB", structured=True) == "# A\nB"

    def test_plain_is_untouched(self) -> None:
        assert render("# A\n\n\nB", structured=False) == "# A\n\n\nB"
