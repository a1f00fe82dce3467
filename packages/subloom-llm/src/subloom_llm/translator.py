"""Translator client backed by an LLM runtime."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable

from pydantic import BaseModel
from pydantic_ai.exceptions import UnexpectedModelBehavior

from subloom_core.ports.llm import LlmRuntimeProtocol
from subloom_core.ports.translator import (
    TranslatorClientProtocol,
    TranslatorError,
    TranslatorErrorCode,
    TranslatorErrorDetails,
    TranslatorErrorInfo,
)
from subloom_llm.openai_runtime import OpenAICompatibleRuntime
from subloom_llm.prompts import (
    UNCHANGED_MARKER,
    build_analysis_prompt,
    build_retranslation_prompt,
    build_translation_prompt,
    retranslation_system_prompt,
    style_preset,
    translation_system_prompt,
    verification_system_prompt,
)
from subloom_schemas.config import RetryConfig, RunConfig
from subloom_schemas.llm import (
    LlmEndpointTarget,
    LlmModelSettings,
    LlmPromptRequest,
    LlmRuntimeSettings,
)
from subloom_schemas.translation import (
    AnalysisRequest,
    BatchTranslationOutput,
    RetranslationOutput,
    RetranslationRequest,
    TranslationRequest,
    TranslationResult,
)
from subloom_schemas.verification import DefectReport, VerificationReport

logger = logging.getLogger(__name__)


class LlmTranslatorClient(TranslatorClientProtocol):
    """Translator client that sends structured prompts through an LLM runtime.

    Transient failures are retried with exponential backoff. Output that does
    not match the expected schema is never retried.
    """

    def __init__(
        self,
        runtime: LlmRuntimeProtocol,
        *,
        endpoint: LlmEndpointTarget,
        model_id: str,
        api_key: str,
        retry: RetryConfig | None = None,
        max_output_tokens: int | None = None,
        verification_temperature: float = 0.1,
        verification_top_p: float = 0.9,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the translator client.

        Args:
            runtime: LLM runtime adapter.
            endpoint: Resolved endpoint settings.
            model_id: Model identifier.
            api_key: API key for the endpoint.
            retry: Retry policy for transient failures.
            max_output_tokens: Optional output token cap.
            verification_temperature: Sampling temperature for analysis.
            verification_top_p: Top-p for analysis.
            sleep: Awaitable sleep used for backoff.
        """
        self._runtime = runtime
        self._endpoint = endpoint
        self._model_id = model_id
        self._api_key = api_key
        self._retry = retry or RetryConfig()
        self._max_output_tokens = max_output_tokens
        self._verification_temperature = verification_temperature
        self._verification_top_p = verification_top_p
        self._sleep = sleep

    async def translate_batch(self, request: TranslationRequest) -> TranslationResult:
        """Translate one window of blocks.

        Returns:
            TranslationResult: One translation per requested block plus terms.

        Raises:
            TranslatorError: On upstream failure, malformed output, or a
                response missing any requested block.
        """
        preset = style_preset(request.style)
        output = await self._call(
            BatchTranslationOutput,
            prompt=build_translation_prompt(request),
            system_prompt=translation_system_prompt(
                request.target_language, request.style
            ),
            temperature=preset.temperature,
            top_p=preset.top_p,
            seed=request.seed,
        )
        requested = [block.number for block in request.blocks]
        members = set(requested)
        translations: dict[int, str] = {}
        for item in output.translations:
            text = item.text.strip()
            if item.number in members and text and item.number not in translations:
                translations[item.number] = text
        missing = [number for number in requested if number not in translations]
        if missing:
            raise TranslatorError(
                TranslatorErrorInfo(
                    code=TranslatorErrorCode.INCOMPLETE_RESPONSE,
                    message=f"Response is missing {len(missing)} requested blocks",
                    details=TranslatorErrorDetails(missing_blocks=missing),
                )
            )

        terms: dict[str, str] = {}
        for term in output.terms:
            terms.setdefault(term.source, term.target)
        return TranslationResult(translations=translations, terms=terms)

    async def analyze(self, request: AnalysisRequest) -> list[DefectReport]:
        """Report defects for a window of original/translated pairs.

        Returns:
            list[DefectReport]: Reports for blocks with at least one defect.
        """
        output = await self._call(
            VerificationReport,
            prompt=build_analysis_prompt(request.original, request.translated),
            system_prompt=verification_system_prompt(request.target_language),
            temperature=self._verification_temperature,
            top_p=self._verification_top_p,
            seed=None,
        )
        return [report for report in output.blocks if report.problem_types]

    async def retranslate(self, request: RetranslationRequest) -> dict[int, str]:
        """Re-translate an issue group.

        Returns:
            dict[int, str]: Improved text keyed by block number. Blocks marked
            unchanged or left empty are omitted.
        """
        preset = style_preset(request.style)
        output = await self._call(
            RetranslationOutput,
            prompt=build_retranslation_prompt(request),
            system_prompt=retranslation_system_prompt(
                request.target_language, request.style
            ),
            temperature=preset.temperature,
            top_p=preset.top_p,
            seed=request.seed,
        )
        members = {issue.block_number for issue in request.issues}
        improved: dict[int, str] = {}
        for block in output.blocks:
            text = block.text.strip()
            if block.number not in members or not text:
                continue
            if text.upper() == UNCHANGED_MARKER:
                continue
            improved.setdefault(block.number, text)
        return improved

    async def _call[OutputT: BaseModel](
        self,
        schema: type[OutputT],
        *,
        prompt: str,
        system_prompt: str,
        temperature: float,
        top_p: float,
        seed: int | None,
    ) -> OutputT:
        request = LlmPromptRequest(
            runtime=LlmRuntimeSettings(
                endpoint=self._endpoint,
                model=LlmModelSettings(
                    model_id=self._model_id,
                    temperature=temperature,
                    top_p=top_p,
                    max_output_tokens=self._max_output_tokens,
                    seed=seed,
                ),
                retry=self._retry,
            ),
            prompt=prompt,
            system_prompt=system_prompt,
            result_schema=schema,
        )
        max_attempts = self._retry.max_retries + 1
        for attempt in range(1, max_attempts + 1):
            try:
                response = await self._runtime.run_prompt(
                    request, api_key=self._api_key
                )
            except UnexpectedModelBehavior as exc:
                raise _malformed(f"Model produced invalid output: {exc}") from exc
            except Exception as exc:
                if attempt >= max_attempts:
                    raise TranslatorError(
                        TranslatorErrorInfo(
                            code=TranslatorErrorCode.UPSTREAM_FAILED,
                            message=f"Translator call failed: {exc}",
                            details=TranslatorErrorDetails(
                                attempts=attempt, reason=type(exc).__name__
                            ),
                        )
                    ) from exc
                delay = min(
                    self._retry.backoff_s * (2 ** (attempt - 1)),
                    self._retry.max_backoff_s,
                )
                logger.warning(
                    "Translator call failed (attempt %d/%d), retrying in %.1fs: %s",
                    attempt,
                    max_attempts,
                    delay,
                    exc,
                )
                await self._sleep(delay)
                continue

            output = response.structured_output
            if not isinstance(output, schema):
                raise _malformed(
                    f"Expected {schema.__name__}, got {type(output).__name__}"
                )
            return output
        raise AssertionError("retry loop exited without a result")


def _malformed(message: str) -> TranslatorError:
    return TranslatorError(
        TranslatorErrorInfo(
            code=TranslatorErrorCode.MALFORMED_RESPONSE,
            message=message,
            details=TranslatorErrorDetails(attempts=1),
        )
    )


def build_translator_client(
    config: RunConfig,
    *,
    runtime: LlmRuntimeProtocol | None = None,
    api_key: str | None = None,
) -> LlmTranslatorClient:
    """Build the translator client for a run configuration.

    Args:
        config: Loaded run configuration.
        runtime: Optional runtime adapter (defaults to OpenAI-compatible).
        api_key: Optional API key (defaults to the configured env variable).

    Returns:
        LlmTranslatorClient: Configured translator client.

    Raises:
        TranslatorError: If no API key is available.
    """
    endpoint = config.endpoint
    resolved_key = api_key if api_key is not None else os.getenv(endpoint.api_key_env)
    if not resolved_key:
        raise TranslatorError(
            TranslatorErrorInfo(
                code=TranslatorErrorCode.MISSING_API_KEY,
                message=f"Missing API key environment variable: {endpoint.api_key_env}",
                details=TranslatorErrorDetails(reason=endpoint.api_key_env),
            )
        )
    return LlmTranslatorClient(
        runtime or OpenAICompatibleRuntime(),
        endpoint=LlmEndpointTarget(
            provider_name=endpoint.provider_name,
            base_url=endpoint.base_url,
            api_key_env=endpoint.api_key_env,
            timeout_s=endpoint.timeout_s,
        ),
        model_id=config.model.model_id,
        api_key=resolved_key,
        retry=config.retry,
        max_output_tokens=config.model.max_output_tokens,
        verification_temperature=config.verification.temperature,
        verification_top_p=config.verification.top_p,
    )
