"""
Configuration resolved from environment variables.

Settings are read once at startup into an immutable object. Alias pairs are
backfilled in both directions so that either spelling of a variable works,
and the same backfilled environment is handed to the coding tools.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

DEFAULT_AZURE_API_VERSION = "2024-12-01-preview"
DEFAULT_VERTEX_LOCATION = "us-central1"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"

# Variables that are interchangeable; a value set under one name fills the other
ENV_ALIASES: Tuple[Tuple[str, str], ...] = (
    ("AWS_REGION", "AWS_REGION_NAME"),
    ("GEMINI_API_KEY", "GOOGLE_GENERATIVE_AI_API_KEY"),
    ("AZURE_API_KEY", "AZURE_OPENAI_API_KEY"),
)


def backfill_aliases(environ: Mapping[str, str]) -> Dict[str, str]:
    """Return a copy of environ where each alias pair is set if either name is"""
    env = dict(environ)
    for first, second in ENV_ALIASES:
        if env.get(first) and not env.get(second):
            env[second] = env[first]
        elif env.get(second) and not env.get(first):
            env[first] = env[second]
    return env


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str] = None
    azure_api_key: Optional[str] = None
    azure_endpoint: Optional[str] = None
    azure_api_version: str = DEFAULT_AZURE_API_VERSION
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    aws_region: Optional[str] = None
    vertex_project: Optional[str] = None
    vertex_location: str = DEFAULT_VERTEX_LOCATION
    openrouter_api_key: Optional[str] = None
    ollama_base_url: str = DEFAULT_OLLAMA_BASE_URL
    ollama_api_key: Optional[str] = None
    weave_project: Optional[str] = None
    environ: Dict[str, str] = field(default_factory=dict, repr=False)

    def subprocess_env(self, **overrides: str) -> Dict[str, str]:
        """Environment for child processes, with aliases backfilled"""
        return {**self.environ, **overrides}


def _azure_endpoint(env: Mapping[str, str]) -> Optional[str]:
    if env.get("AZURE_OPENAI_ENDPOINT"):
        return env["AZURE_OPENAI_ENDPOINT"]
    if env.get("AZURE_RESOURCE_NAME"):
        return f"https://{env['AZURE_RESOURCE_NAME']}.openai.azure.com"
    return None


def resolve_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Resolve settings from environ (defaults to os.environ) without modifying it"""
    env = backfill_aliases(os.environ if environ is None else environ)
    return Settings(
        openai_api_key=env.get("OPENAI_API_KEY") or None,
        azure_api_key=env.get("AZURE_API_KEY") or None,
        azure_endpoint=_azure_endpoint(env),
        azure_api_version=env.get("AZURE_API_VERSION")
        or env.get("OPENAI_API_VERSION")
        or DEFAULT_AZURE_API_VERSION,
        anthropic_api_key=env.get("ANTHROPIC_API_KEY") or None,
        google_api_key=env.get("GOOGLE_GENERATIVE_AI_API_KEY") or None,
        aws_region=env.get("AWS_REGION") or None,
        vertex_project=env.get("GOOGLE_VERTEX_PROJECT")
        or env.get("GOOGLE_CLOUD_PROJECT")
        or None,
        vertex_location=env.get("GOOGLE_VERTEX_LOCATION") or DEFAULT_VERTEX_LOCATION,
        openrouter_api_key=env.get("OPENROUTER_API_KEY") or None,
        ollama_base_url=(env.get("OLLAMA_BASE_URL") or DEFAULT_OLLAMA_BASE_URL).rstrip("/"),
        ollama_api_key=env.get("OLLAMA_API_KEY") or None,
        weave_project=env.get("WEAVE_PROJECT") or None,
        environ=env,
    )


def redact_settings(inputs: Dict[str, Any]) -> Dict[str, Any]:
    """Drop Settings from weave op inputs; they carry API keys"""
    return {key: value for key, value in inputs.items() if key != "settings"}
