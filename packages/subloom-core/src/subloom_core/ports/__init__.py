"""Protocols, structured errors, and log builders shared across subloom."""

from subloom_core.ports.llm import LlmRuntimeProtocol
from subloom_core.ports.orchestrator import (
    JobCancelledError,
    JobControlError,
    JobControlErrorCode,
    JobControlErrorDetails,
    JobControlErrorInfo,
    LogSinkProtocol,
    ProgressSinkProtocol,
    VerificationError,
    VerificationErrorCode,
    VerificationErrorDetails,
    VerificationErrorInfo,
    job_control_error,
)
from subloom_core.ports.subtitles import (
    SubtitleFormatError,
    SubtitleFormatErrorCode,
    SubtitleFormatErrorDetails,
    SubtitleFormatErrorInfo,
    SubtitleFormatProtocol,
)
from subloom_core.ports.translator import (
    TranslatorClientProtocol,
    TranslatorError,
    TranslatorErrorCode,
    TranslatorErrorDetails,
    TranslatorErrorInfo,
)

__all__ = [
    "JobCancelledError",
    "JobControlError",
    "JobControlErrorCode",
    "JobControlErrorDetails",
    "JobControlErrorInfo",
    "LlmRuntimeProtocol",
    "LogSinkProtocol",
    "ProgressSinkProtocol",
    "SubtitleFormatError",
    "SubtitleFormatErrorCode",
    "SubtitleFormatErrorDetails",
    "SubtitleFormatErrorInfo",
    "SubtitleFormatProtocol",
    "TranslatorClientProtocol",
    "TranslatorError",
    "TranslatorErrorCode",
    "TranslatorErrorDetails",
    "TranslatorErrorInfo",
    "VerificationError",
    "VerificationErrorCode",
    "VerificationErrorDetails",
    "VerificationErrorInfo",
    "job_control_error",
]
