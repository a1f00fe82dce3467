"""OpenAI-compatible runtime adapter powered by pydantic-ai."""

from __future__ import annotations

import logging
from typing import cast

from pydantic_ai import Agent
from pydantic_ai.models.openai import OpenAIChatModel, OpenAIChatModelSettings
from pydantic_ai.output import PromptedOutput
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.providers.openrouter import OpenRouterProvider
from pydantic_ai.settings import ModelSettings

from subloom_core.ports.llm import LlmRuntimeProtocol
from subloom_llm.providers import detect_provider
from subloom_schemas.llm import LlmPromptRequest, LlmPromptResponse

DEFAULT_MAX_OUTPUT_TOKENS = 4096

logger = logging.getLogger(__name__)


class OpenAICompatibleRuntime(LlmRuntimeProtocol):
    """OpenAI-compatible runtime adapter for BYOK endpoints."""

    async def run_prompt(
        self, request: LlmPromptRequest, *, api_key: str
    ) -> LlmPromptResponse:
        """Execute a prompt using the OpenAI-compatible endpoint.

        Returns:
            LlmPromptResponse: Model output payload.
        """
        endpoint = request.runtime.endpoint
        settings = request.runtime.model
        capabilities = detect_provider(endpoint.base_url)

        if capabilities.is_openrouter:
            provider = OpenRouterProvider(api_key=api_key)
        else:
            provider = OpenAIProvider(base_url=endpoint.base_url, api_key=api_key)
        model = OpenAIChatModel(settings.model_id, provider=provider)

        model_settings: OpenAIChatModelSettings = {
            "temperature": settings.temperature,
            "top_p": settings.top_p,
            "timeout": endpoint.timeout_s,
            "max_tokens": settings.max_output_tokens or DEFAULT_MAX_OUTPUT_TOKENS,
        }
        if settings.seed is not None:
            model_settings["seed"] = settings.seed
        instructions = request.system_prompt or "Respond with one short sentence."
        logger.debug(
            "Calling %s model %s at %s",
            capabilities.name,
            settings.model_id,
            endpoint.base_url,
        )

        if request.result_schema is not None:
            output_spec = (
                PromptedOutput(request.result_schema)
                if not capabilities.supports_tool_output
                else request.result_schema
            )
            agent = Agent(model, output_type=output_spec, instructions=instructions)
            result = await agent.run(
                request.prompt,
                model_settings=cast(ModelSettings, model_settings),
            )
            return LlmPromptResponse(
                model_id=settings.model_id,
                output_text=str(result.output),
                structured_output=result.output,  # type: ignore[arg-type]
            )

        agent = Agent(model, instructions=instructions)
        result = await agent.run(
            request.prompt,
            model_settings=cast(ModelSettings, model_settings),
        )
        return LlmPromptResponse(
            model_id=settings.model_id,
            output_text=str(result.output),
        )
