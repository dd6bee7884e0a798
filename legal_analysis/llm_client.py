"""
Inference Provider Client
=========================

Supports:
- OpenRouter (Claude, GPT, Mistral, etc.)
- DeepSeek (OpenAI-compatible API)
- Disabled mode (LLM_MODE=none): every call fails so the analyzers use
  their rule-based fallbacks

The provider handle is constructed explicitly and injected into the analyzers;
there is no module-level client singleton.
"""

import json
import logging
import httpx
import hashlib
import asyncio
from typing import List, Optional, Dict, Any, Tuple
from dataclasses import dataclass, field

from .config import Settings, get_settings
from .errors import ProviderError, JSONExtractionError
from .schemas import LLMMode

logger = logging.getLogger(__name__)


# =============================================================================
# Robust JSON Extraction
# =============================================================================

def _balanced_blocks(content: str) -> List[str]:
    """Top-level {...} blocks in order of appearance (string-literal aware)."""
    blocks = []
    depth = 0
    start_idx = None
    in_string = False
    escaped = False

    for i, char in enumerate(content):
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"' and depth > 0:
            in_string = True
        elif char == '{':
            if depth == 0:
                start_idx = i
            depth += 1
        elif char == '}' and depth > 0:
            depth -= 1
            if depth == 0 and start_idx is not None:
                blocks.append(content[start_idx:i + 1])
                start_idx = None

    return blocks


def extract_json_object(content: Optional[str]) -> Dict[str, Any]:
    """
    Extract the first well-formed JSON object from LLM output.

    Handles:
    - Empty content
    - Markdown code blocks (```json...```)
    - Prose before and after the object

    Args:
        content: Raw content from LLM

    Returns:
        Parsed dict

    Raises:
        JSONExtractionError: no JSON object could be parsed
    """
    if not isinstance(content, str) or not content.strip():
        raise JSONExtractionError("Empty content")

    content = content.strip()

    # Step 1: Remove markdown code blocks
    if "```json" in content:
        start = content.find("```json") + 7
        end = content.find("```", start)
        if end > start:
            content = content[start:end].strip()
    elif "```" in content:
        start = content.find("```") + 3
        end = content.find("```", start)
        if end > start:
            content = content[start:end].strip()

    # Step 2: Try direct parsing
    try:
        data = json.loads(content)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    # Step 3: First balanced {...} block that parses
    for block in _balanced_blocks(content):
        try:
            data = json.loads(block)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    raise JSONExtractionError(f"No JSON object found ({safe_log_content(content, 60)})")


def safe_log_content(content: str, max_chars: int = 120) -> str:
    """
    Create a safe log representation of content.

    Args:
        content: Content to log
        max_chars: Maximum characters to show

    Returns:
        Safe log string with length and hash
    """
    if not content:
        return "(empty)"

    content_hash = hashlib.sha256(content.encode()).hexdigest()[:12]
    preview = content[:max_chars].replace('\n', ' ')

    return f"len={len(content)} hash={content_hash} preview='{preview}...'"


def _token_count(value: Any) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


@dataclass
class LLMResponse:
    """Response from LLM"""
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    raw_response: Optional[Dict] = None

    @property
    def tokens_used(self) -> int:
        return _token_count(self.usage.get("input_tokens")) + _token_count(self.usage.get("output_tokens"))


# =============================================================================
# Providers
# =============================================================================

class InferenceProvider:
    """
    Text-completion interface used by every analysis phase.

    Implementations raise ProviderError on any failure; they never return None.
    """

    name = "base"
    default_model = "unknown"

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        *,
        model: Optional[str] = None,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        raise NotImplementedError

    async def close(self):
        """Release network resources (no-op by default)"""
        return None


class DisabledProvider(InferenceProvider):
    """Provider for LLM_MODE=none; always fails so fallbacks run."""

    name = "none"
    default_model = "rule-based"

    async def complete(self, prompt, system_prompt=None, *, model=None, max_tokens=4096) -> LLMResponse:
        raise ProviderError("LLM mode is NONE")


class OpenRouterProvider(InferenceProvider):
    """
    OpenAI-compatible chat completions over httpx.

    Used for OpenRouter and, with a different base URL and key, for DeepSeek.

    Usage:
        provider = OpenRouterProvider(api_key, "anthropic/claude-sonnet-4")
        response = await provider.complete("Analyze this case...")
    """

    name = "openrouter"

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: int = 60,
        app_name: str = "Legal Analysis Pipeline",
        temperature: float = 0.2,
    ):
        self.api_key = api_key
        self.default_model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.app_name = app_name
        self.temperature = temperature
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        *,
        model: Optional[str] = None,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """
        Make a chat completion call.

        Args:
            prompt: User prompt
            system_prompt: System prompt (optional)
            model: Override of the default model
            max_tokens: Maximum response tokens

        Returns:
            LLMResponse with content and token usage

        Raises:
            ProviderError: missing key, HTTP error, timeout, malformed response
        """
        if not self.api_key:
            raise ProviderError(f"{self.name}: API key not configured")

        model = model or self.default_model

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": max_tokens,
        }

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": self.app_name,
        }

        try:
            client = await self._get_client()
            response = await asyncio.wait_for(
                client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers),
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except asyncio.TimeoutError:
            raise ProviderError(f"{self.name}: request timed out after {self.timeout}s", retryable=True)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"{self.name} API error: {status}")
            raise ProviderError(
                f"HTTP {status}: {e.response.text[:200]}",
                retryable=status == 429 or status >= 500,
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"{self.name} request failed: {e}")
            raise ProviderError(f"{self.name} request failed: {e}", retryable=True)

        # Extract content - may be None or empty for some model responses
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"{self.name} response missing content: {e}")

        if content is None:
            logger.warning(f"{self.name} returned null content")
            content = ""
        elif not isinstance(content, str):
            raise ProviderError(f"{self.name} returned non-text content ({type(content).__name__})")

        usage = data.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        logger.debug(f"{self.name} response: {safe_log_content(content)}")

        return LLMResponse(
            content=content,
            model=model,
            usage={
                "input_tokens": _token_count(usage.get("prompt_tokens")),
                "output_tokens": _token_count(usage.get("completion_tokens")),
            },
            raw_response=data,
        )


def build_provider(settings: Optional[Settings] = None) -> InferenceProvider:
    """Select the provider for the configured LLM mode"""
    settings = settings or get_settings()

    for warning in settings.validate_llm_config():
        logger.warning(warning)

    if settings.llm_mode == LLMMode.OPENROUTER:
        return OpenRouterProvider(
            api_key=settings.openrouter_api_key,
            model=settings.analysis_model,
            base_url=settings.openrouter_base_url,
            timeout=settings.llm_timeout,
        )

    if settings.llm_mode == LLMMode.DEEPSEEK:
        provider = OpenRouterProvider(
            api_key=settings.deepseek_api_key,
            model=settings.deepseek_model,
            base_url=settings.deepseek_base_url,
            timeout=settings.llm_timeout,
        )
        provider.name = "deepseek"
        return provider

    return DisabledProvider()


async def complete_json(
    provider: InferenceProvider,
    prompt: str,
    system_prompt: Optional[str] = None,
    *,
    model: Optional[str] = None,
    max_tokens: int = 4096,
    timeout: Optional[float] = None,
) -> Tuple[Dict[str, Any], int]:
    """
    Call the provider and extract its JSON object.

    Returns:
        (data, tokens_used)

    Raises:
        ProviderError: call failed, timed out, or returned no JSON object
    """
    try:
        coro = provider.complete(prompt, system_prompt, model=model, max_tokens=max_tokens)
        if timeout:
            response = await asyncio.wait_for(coro, timeout=timeout)
        else:
            response = await coro
    except asyncio.TimeoutError:
        raise ProviderError(f"Provider call timed out after {timeout}s", retryable=True)
    except ProviderError:
        raise
    except Exception as e:
        logger.error(f"{provider.name} call failed: {type(e).__name__}: {e}")
        raise ProviderError(f"{provider.name} call failed: {e}", retryable=True) from e

    try:
        data = extract_json_object(response.content)
    except JSONExtractionError as e:
        e.tokens_used = response.tokens_used
        raise
    return data, response.tokens_used
