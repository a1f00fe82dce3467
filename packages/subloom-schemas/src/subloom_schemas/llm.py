"""Schemas for LLM runtime operations."""

from __future__ import annotations

from pydantic import BaseModel, Field

from subloom_schemas.base import BaseSchema
from subloom_schemas.config import RetryConfig


class LlmEndpointTarget(BaseSchema):
    """Resolved endpoint settings for runtime calls."""

    provider_name: str = Field(..., min_length=1, description="Endpoint provider label")
    base_url: str = Field(..., min_length=1, description="Endpoint base URL")
    api_key_env: str = Field(
        ..., min_length=1, description="Environment variable for API key"
    )
    timeout_s: float = Field(..., gt=0, description="Request timeout in seconds")


class LlmModelSettings(BaseSchema):
    """LLM sampling settings for a single call."""

    model_id: str = Field(..., min_length=1, description="Model identifier")
    temperature: float = Field(..., ge=0, le=2, description="Sampling temperature")
    top_p: float = Field(..., ge=0, le=1, description="Top-p sampling")
    max_output_tokens: int | None = Field(
        None, ge=1, description="Maximum output tokens (None uses model default)"
    )
    seed: int | None = Field(None, ge=0, description="Deterministic sampling seed")


class LlmRuntimeSettings(BaseSchema):
    """Runtime settings for a single LLM invocation."""

    endpoint: LlmEndpointTarget = Field(..., description="Resolved endpoint settings")
    model: LlmModelSettings = Field(..., description="Model settings")
    retry: RetryConfig = Field(..., description="Retry policy")


class LlmPromptRequest(BaseSchema):
    """Prompt request for an LLM runtime call."""

    runtime: LlmRuntimeSettings = Field(..., description="Runtime settings")
    prompt: str = Field(..., min_length=1, description="Prompt text")
    system_prompt: str | None = Field(None, description="Optional system prompt")
    result_schema: type[BaseModel] | None = Field(
        None,
        description="Optional Pydantic schema type for structured output",
        exclude=True,
    )


class LlmPromptResponse(BaseSchema):
    """Response payload from an LLM runtime call."""

    model_id: str = Field(..., min_length=1, description="Model identifier")
    output_text: str = Field(..., description="Model output")
    structured_output: BaseModel | None = Field(
        None, description="Structured output when result_schema was provided"
    )
