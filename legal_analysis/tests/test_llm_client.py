"""
Tests for the inference provider client and JSON extraction
"""

import asyncio

import httpx
import pytest

from legal_analysis.config import Settings
from legal_analysis.errors import JSONExtractionError, ProviderError
from legal_analysis.llm_client import (
    DisabledProvider,
    LLMResponse,
    OpenRouterProvider,
    build_provider,
    complete_json,
    extract_json_object,
    safe_log_content,
)
from legal_analysis.orchestrator import LegalAnalysisOrchestrator
from legal_analysis.schemas import JobStatus, LLMMode


# =============================================================================
# JSON extraction
# =============================================================================

class TestExtractJsonObject:
    """First well-formed object from prose"""

    def test_plain_object(self):
        assert extract_json_object('{"issues": []}') == {"issues": []}

    def test_markdown_fence(self):
        content = 'Here you go:\n```json\n{"a": 1}\n```\nThanks'
        assert extract_json_object(content) == {"a": 1}

    def test_prose_around_object(self):
        content = 'Analysis follows. {"a": {"b": 2}} Let me know.'
        assert extract_json_object(content) == {"a": {"b": 2}}

    def test_braces_inside_strings(self):
        content = 'Result: {"text": "a } tricky { string", "n": 3}'
        assert extract_json_object(content) == {"text": "a } tricky { string", "n": 3}

    def test_skips_malformed_block(self):
        content = 'First {not json} then {"ok": true}'
        assert extract_json_object(content) == {"ok": True}

    @pytest.mark.parametrize("content", ["", "   ", None, "no json here", "[1, 2, 3]"])
    def test_raises_when_no_object(self, content):
        with pytest.raises(JSONExtractionError):
            extract_json_object(content)

    def test_extraction_error_is_provider_error(self):
        assert issubclass(JSONExtractionError, ProviderError)


class TestSafeLogContent:

    def test_empty(self):
        assert safe_log_content("") == "(empty)"

    def test_preview_truncated(self):
        text = "x" * 500
        logged = safe_log_content(text, max_chars=10)
        assert "len=500" in logged
        assert "preview='xxxxxxxxxx...'" in logged


# =============================================================================
# Providers
# =============================================================================

class TestDisabledProvider:

    @pytest.mark.asyncio
    async def test_always_raises(self):
        with pytest.raises(ProviderError):
            await DisabledProvider().complete("prompt")


def _openrouter_with(handler) -> OpenRouterProvider:
    provider = OpenRouterProvider(api_key="test-key", model="test/model", timeout=5)
    provider._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return provider


class TestOpenRouterProvider:
    """HTTP behaviour against a mocked transport"""

    @pytest.mark.asyncio
    async def test_successful_completion(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={
                "choices": [{"message": {"content": '{"ok": true}'}}],
                "usage": {"prompt_tokens": 120, "completion_tokens": 30},
            })

        provider = _openrouter_with(handler)
        response = await provider.complete("prompt", "system")
        await provider.close()

        assert response.content == '{"ok": true}'
        assert response.model == "test/model"
        assert response.tokens_used == 150
        assert seen["url"].endswith("/chat/completions")
        assert seen["auth"] == "Bearer test-key"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,retryable", [(429, True), (503, True), (400, False)])
    async def test_http_errors_map_to_provider_error(self, status, retryable):
        provider = _openrouter_with(lambda request: httpx.Response(status, text="nope"))
        with pytest.raises(ProviderError) as exc_info:
            await provider.complete("prompt")
        await provider.close()
        assert exc_info.value.retryable is retryable

    @pytest.mark.asyncio
    async def test_missing_content_raises(self):
        provider = _openrouter_with(lambda request: httpx.Response(200, json={"choices": []}))
        with pytest.raises(ProviderError):
            await provider.complete("prompt")
        await provider.close()

    @pytest.mark.asyncio
    async def test_list_content_raises_provider_error(self):
        provider = _openrouter_with(lambda request: httpx.Response(200, json={
            "choices": [{"message": {"content": [{"type": "text", "text": "{}"}]}}],
        }))
        with pytest.raises(ProviderError, match="non-text content"):
            await provider.complete("prompt")
        await provider.close()

    @pytest.mark.asyncio
    async def test_null_usage_counts_as_zero(self):
        provider = _openrouter_with(lambda request: httpx.Response(200, json={
            "choices": [{"message": {"content": '{"ok": true}'}}],
            "usage": {"prompt_tokens": None, "completion_tokens": 40},
        }))
        response = await provider.complete("prompt")
        await provider.close()
        assert response.tokens_used == 40

    @pytest.mark.asyncio
    async def test_list_content_falls_back_in_pipeline(self, store, contract_input):
        provider = _openrouter_with(lambda request: httpx.Response(200, json={
            "choices": [{"message": {"content": [{"type": "text", "text": "{}"}]}}],
        }))
        result = await LegalAnalysisOrchestrator(provider, store).run(contract_input)
        await provider.close()

        assert result.status == JobStatus.COMPLETED
        fallbacks = store.get_status(contract_input.case_id).metadata["fallbacks"]
        assert all(fallbacks.values())

    @pytest.mark.asyncio
    async def test_missing_api_key_raises(self):
        with pytest.raises(ProviderError):
            await OpenRouterProvider(api_key=None, model="m").complete("prompt")


class TestBuildProvider:

    def test_none_mode(self):
        provider = build_provider(Settings(llm_mode=LLMMode.NONE))
        assert isinstance(provider, DisabledProvider)
        assert provider.default_model == "rule-based"

    def test_openrouter_mode(self):
        provider = build_provider(Settings(llm_mode=LLMMode.OPENROUTER, openrouter_api_key="k"))
        assert isinstance(provider, OpenRouterProvider)
        assert provider.name == "openrouter"
        assert provider.default_model == "anthropic/claude-sonnet-4"

    def test_deepseek_mode(self):
        provider = build_provider(Settings(llm_mode=LLMMode.DEEPSEEK, deepseek_api_key="k"))
        assert provider.name == "deepseek"
        assert provider.default_model == "deepseek-chat"
        assert provider.base_url == "https://api.deepseek.com/v1"

    def test_missing_key_warning(self):
        warnings = Settings(llm_mode=LLMMode.OPENROUTER).validate_llm_config()
        assert any("OPENROUTER_API_KEY" in w for w in warnings)


# =============================================================================
# complete_json
# =============================================================================

class TestCompleteJson:

    @pytest.mark.asyncio
    async def test_returns_data_and_tokens(self, make_provider):
        data, tokens = await complete_json(make_provider([{"a": 1}]), "prompt")
        assert data == {"a": 1}
        assert tokens == 150

    @pytest.mark.asyncio
    async def test_unparsable_output_keeps_token_count(self, make_provider):
        with pytest.raises(JSONExtractionError) as exc_info:
            await complete_json(make_provider(["I cannot help with that."]), "prompt")
        assert exc_info.value.tokens_used == 150

    @pytest.mark.asyncio
    async def test_timeout_becomes_provider_error(self):
        class SlowProvider(DisabledProvider):
            async def complete(self, prompt, system_prompt=None, *, model=None, max_tokens=4096):
                await asyncio.sleep(1)
                return LLMResponse(content="{}", model="slow")

        with pytest.raises(ProviderError) as exc_info:
            await complete_json(SlowProvider(), "prompt", timeout=0.01)
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ConnectionError("reset by peer"), OSError("unreachable"), RuntimeError("boom")])
    async def test_other_failures_become_provider_error(self, make_provider, error):
        with pytest.raises(ProviderError) as exc_info:
            await complete_json(make_provider([error]), "prompt")
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, make_provider):
        with pytest.raises(asyncio.CancelledError):
            await complete_json(make_provider([asyncio.CancelledError()]), "prompt")

    @pytest.mark.asyncio
    async def test_non_text_content_is_extraction_error(self):
        class ListProvider(DisabledProvider):
            async def complete(self, prompt, system_prompt=None, *, model=None, max_tokens=4096):
                return LLMResponse(content=[{"type": "text"}], model="list", usage={"input_tokens": None})

        with pytest.raises(JSONExtractionError) as exc_info:
            await complete_json(ListProvider(), "prompt")
        assert exc_info.value.tokens_used == 0
