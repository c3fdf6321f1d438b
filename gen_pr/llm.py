"""
LLM request routing across providers.

Model ids use the `provider/model` form (e.g. `openai/o4-mini`,
`bedrock/us.anthropic.claude-sonnet-4-20250514-v1:0`). Each provider is a
small class with the same `generate` coroutine; `create_provider` picks one
and wires in credentials from Settings.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

import weave
from rich.console import Console

from gen_pr.config import Settings, redact_settings, resolve_settings
from gen_pr.errors import ConfigurationError, LlmError
from gen_pr.options import ReasoningEffort

console = Console()

Message = Dict[str, str]

SUPPORTED_PROVIDERS = (
    "openai",
    "anthropic",
    "google",
    "azure",
    "bedrock",
    "vertex",
    "openrouter",
    "ollama",
)

THINKING_BUDGETS = {"low": 1000, "medium": 8000, "high": 24000}
# Anthropic rejects thinking budgets below this, so "low" is raised from 1000 to 1024 there
ANTHROPIC_MIN_THINKING_BUDGET = 1024
ANTHROPIC_MAX_OUTPUT_TOKENS = 8192

_CLAUDE_THINKING = r"claude-(opus-4|sonnet-4|3-7-sonnet)"
REASONING_MODEL_PATTERNS = {
    "openai": re.compile(r"^o[134]"),
    "azure": re.compile(r"^o[134]"),
    "anthropic": re.compile(_CLAUDE_THINKING),
    "google": re.compile(r"^gemini-2\.5"),
    # With or without a cross-region inference prefix such as "us."
    "bedrock": re.compile(rf"^(\w+\.)?anthropic\.{_CLAUDE_THINKING}"),
    "vertex": re.compile(rf"^(gemini-2\.5|{_CLAUDE_THINKING})"),
    "ollama": re.compile(r"^(deepseek-r1|qwen3|magistral|gpt-oss)"),
}

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://github.com/WillBooster/gen-pr",
    "X-Title": "gen-pr",
}


def parse_model_id(model: str) -> Tuple[str, str]:
    """Split `provider/model` at the first slash; the model part may contain slashes"""
    if "/" not in model:
        raise ConfigurationError(f"Model must be in format 'provider/model'. Got: {model}")
    provider, model_name = model.split("/", 1)
    if provider not in SUPPORTED_PROVIDERS:
        raise ConfigurationError(
            f"Unsupported provider: {provider}. "
            f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    if not model_name:
        raise ConfigurationError(
            f"Invalid {provider} model format: {model}. Expected format: {provider}/model-name"
        )
    return provider, model_name


def supports_reasoning(provider: str, model_name: str) -> bool:
    """Check if a provider's model accepts a reasoning effort or thinking budget"""
    pattern = REASONING_MODEL_PATTERNS.get(provider)
    return bool(pattern and pattern.search(model_name))


def get_thinking_budget(reasoning_effort: str) -> int:
    return THINKING_BUDGETS[ReasoningEffort(reasoning_effort).value]


def _split_system(messages: List[Message]) -> Tuple[str, List[Message]]:
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    return system, [m for m in messages if m["role"] != "system"]


class LlmProvider(Protocol):
    async def generate(
        self, model_name: str, messages: List[Message], reasoning_effort: Optional[str]
    ) -> str: ...


@dataclass
class OpenAIChatProvider:
    """OpenAI chat completions; also serves Azure, OpenRouter and Ollama"""

    client: Any

    async def generate(
        self, model_name: str, messages: List[Message], reasoning_effort: Optional[str]
    ) -> str:
        request: Dict[str, Any] = {"model": model_name, "messages": messages}
        if reasoning_effort:
            request["reasoning_effort"] = reasoning_effort
        response = await self.client.chat.completions.create(**request)
        return response.choices[0].message.content or ""


@dataclass
class AnthropicProvider:
    """Anthropic messages API; also serves Claude on Bedrock and Vertex"""

    client: Any
    max_tokens: int = ANTHROPIC_MAX_OUTPUT_TOKENS

    async def generate(
        self, model_name: str, messages: List[Message], reasoning_effort: Optional[str]
    ) -> str:
        system, chat_messages = _split_system(messages)
        request: Dict[str, Any] = {
            "model": model_name,
            "max_tokens": self.max_tokens,
            "messages": chat_messages,
        }
        if system:
            request["system"] = system
        if reasoning_effort:
            budget = max(get_thinking_budget(reasoning_effort), ANTHROPIC_MIN_THINKING_BUDGET)
            request["thinking"] = {"type": "enabled", "budget_tokens": budget}
            request["max_tokens"] = self.max_tokens + budget
        response = await self.client.messages.create(**request)
        return "".join(block.text for block in response.content if block.type == "text")


@dataclass
class GeminiProvider:
    """Gemini through google-genai, on the Gemini API or Vertex AI"""

    client: Any

    async def generate(
        self, model_name: str, messages: List[Message], reasoning_effort: Optional[str]
    ) -> str:
        from google.genai import types

        system, chat_messages = _split_system(messages)
        config: Dict[str, Any] = {}
        if system:
            config["system_instruction"] = system
        if reasoning_effort:
            config["thinking_config"] = types.ThinkingConfig(
                thinking_budget=get_thinking_budget(reasoning_effort)
            )
        contents = [
            types.Content(
                role="model" if m["role"] == "assistant" else "user",
                parts=[types.Part(text=m["content"])],
            )
            for m in chat_messages
        ]
        response = await self.client.aio.models.generate_content(
            model=model_name,
            contents=contents,
            config=types.GenerateContentConfig(**config),
        )
        return response.text or ""


def _require(value: Optional[str], provider: str, *env_vars: str) -> str:
    if not value:
        raise ConfigurationError(f"Missing credentials for {provider}", list(env_vars))
    return value


def create_provider(provider: str, model_name: str, settings: Settings) -> LlmProvider:
    """Create the client for a provider, failing if its credentials are missing"""
    # Lazy imports to avoid loading SDKs that the chosen provider does not need
    if provider == "openai":
        from openai import AsyncOpenAI

        api_key = _require(settings.openai_api_key, provider, "OPENAI_API_KEY")
        return OpenAIChatProvider(AsyncOpenAI(api_key=api_key))

    if provider == "azure":
        from openai import AsyncAzureOpenAI

        api_key = _require(settings.azure_api_key, provider, "AZURE_API_KEY", "AZURE_OPENAI_API_KEY")
        endpoint = _require(
            settings.azure_endpoint, provider, "AZURE_OPENAI_ENDPOINT", "AZURE_RESOURCE_NAME"
        )
        return OpenAIChatProvider(
            AsyncAzureOpenAI(
                api_key=api_key,
                azure_endpoint=endpoint,
                api_version=settings.azure_api_version,
            )
        )

    if provider == "anthropic":
        from anthropic import AsyncAnthropic

        api_key = _require(settings.anthropic_api_key, provider, "ANTHROPIC_API_KEY")
        return AnthropicProvider(AsyncAnthropic(api_key=api_key))

    if provider == "google":
        from google import genai

        api_key = _require(
            settings.google_api_key, provider, "GOOGLE_GENERATIVE_AI_API_KEY", "GEMINI_API_KEY"
        )
        return GeminiProvider(genai.Client(api_key=api_key))

    if provider == "bedrock":
        from anthropic import AsyncAnthropicBedrock

        region = _require(settings.aws_region, provider, "AWS_REGION", "AWS_REGION_NAME")
        return AnthropicProvider(AsyncAnthropicBedrock(aws_region=region))

    if provider == "vertex":
        project = _require(
            settings.vertex_project, provider, "GOOGLE_VERTEX_PROJECT", "GOOGLE_CLOUD_PROJECT"
        )
        if model_name.startswith("claude"):
            from anthropic import AsyncAnthropicVertex

            return AnthropicProvider(
                AsyncAnthropicVertex(project_id=project, region=settings.vertex_location)
            )
        from google import genai

        return GeminiProvider(
            genai.Client(vertexai=True, project=project, location=settings.vertex_location)
        )

    if provider == "openrouter":
        from openai import AsyncOpenAI

        api_key = _require(settings.openrouter_api_key, provider, "OPENROUTER_API_KEY")
        return OpenAIChatProvider(
            AsyncOpenAI(
                api_key=api_key,
                base_url=OPENROUTER_BASE_URL,
                default_headers=OPENROUTER_HEADERS,
            )
        )

    if provider == "ollama":
        from openai import AsyncOpenAI

        return OpenAIChatProvider(
            AsyncOpenAI(
                # The OpenAI client needs some key even when Ollama does not check it
                api_key=settings.ollama_api_key or "ollama",
                base_url=f"{settings.ollama_base_url}/v1",
            )
        )

    raise ConfigurationError(
        f"Unsupported provider: {provider}. Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
    )


@weave.op(postprocess_inputs=redact_settings)
async def call_llm_api(
    model: str,
    messages: List[Message],
    reasoning_effort: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> str:
    """Generate text from messages with a `provider/model` id.

    A reasoning effort is only forwarded to models known to support it;
    for other models a warning is printed and the request goes out without it.
    Provider failures are raised as LlmError and never retried.
    """
    provider, model_name = parse_model_id(model)
    settings = settings or resolve_settings()

    effort = ReasoningEffort(reasoning_effort).value if reasoning_effort else None
    if effort and not supports_reasoning(provider, model_name):
        console.print(
            f"[yellow]Warning: {model} does not support reasoning effort; ignoring '{effort}'[/yellow]"
        )
        effort = None

    client = create_provider(provider, model_name, settings)
    try:
        text = await client.generate(model_name, messages, effort)
    except Exception as e:
        console.print(f"[red]LLM API error for model {model}:[/red] {e}")
        raise LlmError(f"LLM API error for model {model}: {e}") from e

    console.print(f"[blue]{model}:[/blue]")
    console.print(text, markup=False, highlight=False)
    return text
