"""LLM runtime adapters and translator client for subloom."""

from subloom_llm.openai_runtime import OpenAICompatibleRuntime
from subloom_llm.providers import ProviderCapabilities, detect_provider
from subloom_llm.translator import LlmTranslatorClient, build_translator_client

__all__ = [
    "LlmTranslatorClient",
    "OpenAICompatibleRuntime",
    "ProviderCapabilities",
    "build_translator_client",
    "detect_provider",
]
