"""API entry point - thin adapter over subloom-core."""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager, suppress
from typing import Any
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from subloom_api.events import EventHub, is_terminal
from subloom_core import VERSION, SubtitleJobService, build_job_settings
from subloom_core.ports import JobControlError, SubtitleFormatError
from subloom_core.ports.orchestrator import JobControlErrorCode
from subloom_core.telemetry import utc_timestamp
from subloom_io import (
    SrtSubtitleFormat,
    build_log_sink,
    build_progress_sink,
    load_run_config,
    parse_srt_document,
)
from subloom_llm import build_translator_client
from subloom_schemas.config import RunConfig
from subloom_schemas.jobs import JobRunState
from subloom_schemas.primitives import JobId, JobStatus
from subloom_schemas.progress import ProgressUpdate
from subloom_schemas.responses import (
    ApiResponse,
    ErrorDetails,
    ErrorResponse,
    JobAccepted,
    JobCreateRequest,
    JobDocument,
    MetaInfo,
)
from subloom_schemas.validation import validate_approval_decision
from subloom_schemas.verification import ApprovalDecision

CONFIG_ENV = "SUBLOOM_CONFIG"
DEFAULT_CONFIG_PATH = "subloom.toml"

CONTROL_STATUS_CODES: dict[JobControlErrorCode, int] = {
    JobControlErrorCode.JOB_NOT_FOUND: 404,
    JobControlErrorCode.JOB_EXISTS: 409,
    JobControlErrorCode.JOB_FINISHED: 409,
    JobControlErrorCode.NO_PENDING_ISSUE: 409,
    JobControlErrorCode.DECISION_CONFLICT: 409,
    JobControlErrorCode.DOCUMENT_UNAVAILABLE: 409,
    JobControlErrorCode.INVALID_DECISION: 422,
}

_WS_POLICY_VIOLATION = 1008


def build_service(config: RunConfig, hub: EventHub) -> SubtitleJobService:
    """Build the job service for a loaded configuration.

    Args:
        config: Loaded run configuration.
        hub: Event hub receiving every job's progress.

    Returns:
        SubtitleJobService: Service wired to the configured translator.
    """
    return SubtitleJobService(
        build_translator_client(config),
        verification_config=config.verification,
        pacing_delay_s=config.translation.pacing_delay_s,
        log_sink=build_log_sink(config.logging),
        progress_sink=build_progress_sink(config.logging, downstream=hub),
        max_finished_jobs=config.api.retained_jobs,
    )


def create_app(
    *,
    config: RunConfig | None = None,
    service: SubtitleJobService | None = None,
    hub: EventHub | None = None,
) -> FastAPI:
    """Create the API application.

    The config is loaded from ``SUBLOOM_CONFIG`` at startup when not given.
    A service passed in must publish its progress to ``hub``.

    Args:
        config: Optional preloaded run configuration.
        service: Optional prebuilt job service.
        hub: Optional event hub shared with ``service``.

    Returns:
        FastAPI: Configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state = app.state
        if state.config is None:
            state.config = load_run_config(
                os.getenv(CONFIG_ENV, DEFAULT_CONFIG_PATH)
            )
        if state.service is None:
            state.service = build_service(state.config, state.hub)
        try:
            yield
        finally:
            await state.service.shutdown()

    app = FastAPI(
        title="subloom",
        description="Subtitle translation and review API",
        version=str(VERSION),
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.service = service
    app.state.hub = hub or EventHub()
    _register_error_handlers(app)
    _register_routes(app)
    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(JobControlError)
    async def job_control_error_handler(
        request: Request, exc: JobControlError
    ) -> JSONResponse:
        code = JobControlErrorCode(exc.info.code)
        return _error(exc.info.to_error_response(), CONTROL_STATUS_CODES[code])

    @app.exception_handler(SubtitleFormatError)
    async def subtitle_error_handler(
        request: Request, exc: SubtitleFormatError
    ) -> JSONResponse:
        return _error(exc.info.to_error_response(), 422)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _error(_validation_error(exc.errors()), 422)


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    async def health() -> ApiResponse[dict[str, str]]:
        """Health check endpoint.

        Returns:
            ApiResponse envelope containing status and version.
        """
        return ApiResponse[dict[str, str]](
            data={"status": "ok", "version": str(VERSION)},
            error=None,
            meta=_meta(),
        )

    @app.post("/jobs", status_code=202)
    async def create_job(request: Request, body: JobCreateRequest) -> JSONResponse:
        """Parse an SRT document and start a job for it."""
        blocks = parse_srt_document(body.content, source="<request>")
        settings = build_job_settings(
            request.app.state.config,
            target_language=body.target_language,
            style=body.style,
            seed=body.seed,
            verify=body.verify,
        )
        job_id = body.job_id or _new_job_id()
        _service(request).start_job(job_id, blocks, settings)
        accepted = JobAccepted(
            job_id=job_id, status=JobStatus.RUNNING, block_count=len(blocks)
        )
        return _ok(accepted, status_code=202)

    @app.get("/jobs/{job_id}")
    async def get_job(request: Request, job_id: str) -> JSONResponse:
        """Return the job snapshot."""
        return _ok(_service(request).snapshot(job_id))

    @app.get("/jobs/{job_id}/document")
    async def get_document(request: Request, job_id: str) -> JSONResponse:
        """Return the final SRT document of a finished job."""
        snapshot, blocks = _service(request).document(job_id)
        document = JobDocument(
            job_id=job_id,
            status=snapshot.status,
            content=SrtSubtitleFormat().serialize(blocks),
        )
        return _ok(document)

    @app.post("/jobs/{job_id}/pause")
    async def pause_job(request: Request, job_id: str) -> JSONResponse:
        """Pause a job at its next checkpoint."""
        return _ok(await _service(request).pause(job_id))

    @app.post("/jobs/{job_id}/resume")
    async def resume_job(request: Request, job_id: str) -> JSONResponse:
        """Resume a paused job."""
        return _ok(await _service(request).resume(job_id))

    @app.post("/jobs/{job_id}/cancel")
    async def cancel_job(request: Request, job_id: str) -> JSONResponse:
        """Cancel a job."""
        return _ok(await _service(request).cancel(job_id))

    @app.post("/jobs/{job_id}/decisions")
    async def submit_decision(
        request: Request, job_id: str, decision: ApprovalDecision
    ) -> JSONResponse:
        """Submit an approval decision for the job's pending issue."""
        _service(request).submit_decision(job_id, decision)
        return _ok(decision)

    @app.websocket("/jobs/{job_id}/events")
    async def job_events(websocket: WebSocket, job_id: str) -> None:
        """Stream progress updates and accept inbound control messages."""
        await websocket.accept()
        service: SubtitleJobService = websocket.app.state.service
        hub: EventHub = websocket.app.state.hub
        try:
            service.ensure_active(job_id)
        except JobControlError as exc:
            await _send_error(websocket, exc.info.to_error_response())
            await websocket.close(code=_WS_POLICY_VIOLATION)
            return

        queue = hub.subscribe(job_id)
        sender = asyncio.create_task(_forward_updates(websocket, queue))
        receiver = asyncio.create_task(_receive_controls(websocket, service, job_id))
        try:
            done, _ = await asyncio.wait(
                {sender, receiver}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            hub.unsubscribe(job_id, queue)
            for task in (sender, receiver):
                if not task.done():
                    task.cancel()
                    with suppress(asyncio.CancelledError):
                        await task
        if sender in done:
            sender.result()
            await websocket.close(code=1000)


async def _forward_updates(
    websocket: WebSocket, queue: asyncio.Queue[ProgressUpdate]
) -> None:
    while True:
        update = await queue.get()
        await websocket.send_text(update.model_dump_json(exclude_none=True))
        if is_terminal(update):
            return


async def _receive_controls(
    websocket: WebSocket, service: SubtitleJobService, job_id: JobId
) -> None:
    try:
        while True:
            message = await websocket.receive_json()
            await _handle_control(websocket, service, job_id, message)
    except WebSocketDisconnect:
        return


async def _handle_control(
    websocket: WebSocket,
    service: SubtitleJobService,
    job_id: JobId,
    message: object,
) -> None:
    action = message.get("type") if isinstance(message, dict) else None
    try:
        if action == "pause":
            state = await service.pause(job_id)
        elif action == "resume":
            state = await service.resume(job_id)
        elif action == "cancel":
            state = await service.cancel(job_id)
        elif action == "decision":
            payload = message.get("decision") if isinstance(message, dict) else None
            if not isinstance(payload, dict):
                raise ValueError("decision messages require a decision object")
            decision = validate_approval_decision(payload)
            service.submit_decision(job_id, decision)
            await websocket.send_json({
                "type": "ack",
                "action": action,
                "decision": decision.model_dump(mode="json", exclude_none=True),
            })
            return
        else:
            await _send_error(
                websocket,
                ErrorResponse(
                    code="invalid_message", message="unknown message type"
                ),
            )
            return
    except JobControlError as exc:
        await _send_error(websocket, exc.info.to_error_response())
        return
    except ValidationError as exc:
        await _send_error(websocket, _validation_error(exc.errors()))
        return
    except ValueError as exc:
        await _send_error(
            websocket,
            ErrorResponse(
                code=str(JobControlErrorCode.INVALID_DECISION), message=str(exc)
            ),
        )
        return
    await websocket.send_json(_run_state_ack(action, state))


def _run_state_ack(action: str, state: JobRunState) -> dict[str, object]:
    return {
        "type": "ack",
        "action": action,
        "run_state": state.model_dump(mode="json"),
    }


async def _send_error(websocket: WebSocket, error: ErrorResponse) -> None:
    await websocket.send_json({
        "type": "error",
        "error": error.model_dump(mode="json", exclude_none=True),
    })


def _service(request: Request) -> SubtitleJobService:
    return request.app.state.service


def _new_job_id() -> JobId:
    return f"job-{uuid4().hex}"


def _meta() -> MetaInfo:
    return MetaInfo(timestamp=utc_timestamp(), request_id=None)


def _ok(data: BaseModel, *, status_code: int = 200) -> JSONResponse:
    response = ApiResponse[type(data)](data=data, error=None, meta=_meta())
    return JSONResponse(response.model_dump(mode="json"), status_code=status_code)


def _error(error: ErrorResponse, status_code: int) -> JSONResponse:
    response = ApiResponse[None](data=None, error=error, meta=_meta())
    return JSONResponse(response.model_dump(mode="json"), status_code=status_code)


def _validation_error(errors: Sequence[Mapping[str, Any]]) -> ErrorResponse:
    if not errors:
        return ErrorResponse(code="validation_error", message="Invalid request")
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = str(first.get("msg", "Invalid value"))
    return ErrorResponse(
        code="validation_error",
        message=f"{location} - {message}" if location else message,
        details=ErrorDetails(
            field=location or None, provided=None, valid_options=None
        ),
    )


app = create_app()


def main() -> None:
    """Run the API server."""
    config = load_run_config(os.getenv(CONFIG_ENV, DEFAULT_CONFIG_PATH))
    uvicorn.run(
        create_app(config=config), host=config.api.host, port=config.api.port
    )


if __name__ == "__main__":
    main()
