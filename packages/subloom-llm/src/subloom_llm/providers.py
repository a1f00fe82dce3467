"""Provider detection for OpenAI-compatible endpoints."""

from __future__ import annotations

import ipaddress
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field


class ProviderCapabilities(BaseModel):
    """Output-related capabilities for a specific provider.

    Attributes:
        name: Human-readable provider name.
        is_openrouter: Whether the provider is OpenRouter.
        supports_tool_output: Whether structured output via tool calls works.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(description="Human-readable provider name")
    is_openrouter: bool = Field(description="Whether the provider is OpenRouter")
    supports_tool_output: bool = Field(
        description="Whether structured output via tool calls works"
    )


OPENROUTER_CAPABILITIES = ProviderCapabilities(
    name="OpenRouter",
    is_openrouter=True,
    supports_tool_output=False,
)

OPENAI_CAPABILITIES = ProviderCapabilities(
    name="OpenAI",
    is_openrouter=False,
    supports_tool_output=True,
)

# Local/self-hosted endpoints (LM Studio, Ollama, etc.)
LOCAL_CAPABILITIES = ProviderCapabilities(
    name="Local",
    is_openrouter=False,
    supports_tool_output=True,
)

GENERIC_CAPABILITIES = ProviderCapabilities(
    name="Generic OpenAI-compatible",
    is_openrouter=False,
    supports_tool_output=True,
)


def normalize_base_url(base_url: str) -> str:
    """Normalize a base URL for consistent comparison.

    Args:
        base_url: The base URL to normalize.

    Returns:
        Normalized base URL string.
    """
    base_url_lower = base_url.lower()
    if not base_url_lower.startswith(("http://", "https://")):
        base_url = "https://" + base_url
    else:
        base_url = base_url_lower

    parsed = urlparse(base_url)
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path}".rstrip("/")


def _is_private_host(hostname: str) -> bool:
    if hostname in ("localhost", "127.0.0.1", "0.0.0.0", "::1"):
        return True
    if hostname.endswith((".local", ".localhost")):
        return True
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return ip.is_private or ip.is_loopback


def detect_provider(base_url: str) -> ProviderCapabilities:
    """Detect provider capabilities from base URL.

    Args:
        base_url: The API base URL.

    Returns:
        ProviderCapabilities for the detected provider.
    """
    normalized = normalize_base_url(base_url)
    if "openrouter.ai" in normalized:
        return OPENROUTER_CAPABILITIES
    if "api.openai.com" in normalized:
        return OPENAI_CAPABILITIES
    if _is_private_host(urlparse(normalized).hostname or ""):
        return LOCAL_CAPABILITIES
    return GENERIC_CAPABILITIES
