"""Drive scan, re-translation, approval, and reconciliation for one job."""

from __future__ import annotations

from dataclasses import dataclass

from subloom_core.orchestrator import sort_blocks
from subloom_core.ports.orchestrator import (
    JobCancelledError,
    VerificationError,
    VerificationErrorCode,
    VerificationErrorDetails,
    VerificationErrorInfo,
    build_decision_applied_log,
    build_issue_published_log,
    build_retranslation_empty_log,
    build_verification_log,
)
from subloom_core.ports.translator import TranslatorClientProtocol
from subloom_core.run_control import RunControl
from subloom_core.telemetry import JobReporter
from subloom_core.verification.gate import ApprovalGate
from subloom_core.verification.grouping import group_issues
from subloom_core.verification.scanner import (
    SCAN_PERCENT_SPAN,
    SCAN_PERCENT_START,
    VerificationScanner,
)
from subloom_schemas.config import VerificationConfig
from subloom_schemas.events import JobEvent, ProgressEvent
from subloom_schemas.io import ContextBlock, SubtitleBlock
from subloom_schemas.jobs import JobSettings
from subloom_schemas.primitives import IssueStatus, JobStage, LogLevel, TranslationStyle
from subloom_schemas.progress import DecisionOutcome
from subloom_schemas.translation import RetranslationRequest
from subloom_schemas.verification import ApprovalDecision, TranslationIssue


@dataclass(slots=True)
class VerificationOutcome:
    """Result of a verification pass."""

    blocks: list[SubtitleBlock]
    issues_found: int
    decisions_applied: int


@dataclass(slots=True)
class _Document:
    """Mutable view of the output sequence during verification."""

    blocks: list[SubtitleBlock]
    originals: dict[int, SubtitleBlock]
    positions: dict[int, int]

    def percent_at(self, number: int) -> float:
        position = self.positions.get(number, 0) + 1
        return SCAN_PERCENT_START + SCAN_PERCENT_SPAN * position / len(self.blocks)

    def context(
        self, number: int, before: int, after: int
    ) -> tuple[list[ContextBlock], list[ContextBlock]]:
        position = self.positions[number]
        preceding = self.blocks[max(0, position - before) : position]
        following = self.blocks[position + 1 : position + 1 + after]
        return (
            [self._context_block(block) for block in preceding],
            [self._context_block(block) for block in following],
        )

    def _context_block(self, block: SubtitleBlock) -> ContextBlock:
        original = self.originals.get(block.number)
        return ContextBlock(
            number=block.number,
            original_text=original.text if original is not None else block.text,
            translated_text=block.text,
        )


def apply_decision(issue: TranslationIssue, decision: ApprovalDecision) -> None:
    """Move an issue to the decided status and record the decision's text.

    Args:
        issue: Pending issue.
        decision: Decision matched to the issue's block.
    """
    status = IssueStatus(decision.status)
    if status == IssueStatus.APPROVED and decision.text:
        issue.improved_translation = decision.text
    elif status == IssueStatus.MANUALLY_EDITED:
        issue.manual_translation = decision.text
    issue.status = status


class VerificationCoordinator:
    """Scan for issues, re-translate groups, and gate each change on a decision.

    Issues are processed in rounds. A round runs once ``round_size`` issues have
    accumulated, when an issue lands on the last block, and once more for
    whatever is left when the scan finishes.
    """

    def __init__(
        self,
        translator: TranslatorClientProtocol,
        config: VerificationConfig,
    ) -> None:
        """Initialize the coordinator.

        Args:
            translator: Translator client used for analysis and re-translation.
            config: Verification settings.
        """
        self._translator = translator
        self._config = config
        self._scanner = VerificationScanner(
            translator, window_size=config.window_size, overlap=config.overlap
        )

    async def verify(
        self,
        original: list[SubtitleBlock],
        translated: list[SubtitleBlock],
        *,
        settings: JobSettings,
        control: RunControl,
        gate: ApprovalGate,
        reporter: JobReporter,
    ) -> VerificationOutcome:
        """Run the verification workflow over a translated document.

        Args:
            original: Source blocks.
            translated: Translated blocks from the batch pass.
            settings: Resolved job settings.
            control: Run control for cancellation.
            gate: Approval gate of the job.
            reporter: Event reporter for the job.

        Returns:
            VerificationOutcome: Reconciled blocks and statistics.

        Raises:
            JobCancelledError: If the job is cancelled during verification.
            VerificationError: If scanning, re-translation, or the gate fails.
        """
        output = sort_blocks(translated)
        document = _Document(
            blocks=output,
            originals={block.number: block for block in original},
            positions={block.number: index for index, block in enumerate(output)},
        )
        await reporter.log(
            build_verification_log(
                reporter.now(),
                reporter.job_id,
                JobEvent.VERIFICATION_STARTED,
                "Verification started",
            )
        )
        await reporter.step("starting", "Preparing verification", 0.0)

        stream = self._scanner.scan(
            original,
            output,
            target_language=settings.target_language,
            reporter=reporter,
            control=control,
        )
        last_number = output[-1].number if output else None
        issues_found = 0
        decisions_applied = 0
        pending: list[TranslationIssue] = []
        try:
            async for issue in stream:
                issues_found += 1
                await reporter.progress(
                    ProgressEvent.ISSUE_DETECTED,
                    stage=JobStage.VERIFICATION,
                    issue=issue,
                )
                pending.append(issue)
                if (
                    len(pending) >= self._config.round_size
                    or issue.block_number == last_number
                ):
                    decisions_applied += await self._run_round(
                        pending, document, settings, control, gate, reporter
                    )
                    pending = []
            if pending:
                decisions_applied += await self._run_round(
                    pending, document, settings, control, gate, reporter
                )
        except JobCancelledError:
            gate.close_round()
            raise
        except VerificationError as exc:
            gate.close_round()
            await self._report_failure(exc.info, reporter)
            raise
        except Exception as exc:
            gate.close_round()
            info = VerificationErrorInfo(
                code=VerificationErrorCode.GATE_FAILED,
                message=f"Verification failed: {exc}",
                details=VerificationErrorDetails(reason=type(exc).__name__),
            )
            await self._report_failure(info, reporter)
            raise VerificationError(info) from exc
        finally:
            await stream.aclose()

        gate.close_round()
        await reporter.step("completed", "Verification complete", 100.0)
        await reporter.log(
            build_verification_log(
                reporter.now(),
                reporter.job_id,
                JobEvent.VERIFICATION_COMPLETED,
                f"Verification completed with {issues_found} issues",
            )
        )
        return VerificationOutcome(
            blocks=list(document.blocks),
            issues_found=issues_found,
            decisions_applied=decisions_applied,
        )

    async def _run_round(
        self,
        issues: list[TranslationIssue],
        document: _Document,
        settings: JobSettings,
        control: RunControl,
        gate: ApprovalGate,
        reporter: JobReporter,
    ) -> int:
        gate.open_round(issue.block_number for issue in issues)
        decided: list[TranslationIssue] = []
        for group in group_issues(issues, self._config.group_gap):
            await control.checkpoint()
            first, last = group[0].block_number, group[-1].block_number
            await reporter.step(
                "retranslating",
                f"Improving blocks {first}-{last}",
                document.percent_at(last),
            )
            improved = await self._retranslate(group, document, settings)
            await control.checkpoint()
            if not improved:
                gate.withdraw(issue.block_number for issue in group)
                await reporter.log(
                    build_retranslation_empty_log(
                        reporter.now(), reporter.job_id, first, last
                    )
                )
                continue

            for issue in group:
                issue.improved_translation = improved.get(
                    issue.block_number, issue.current_translation
                )
                before, after = document.context(
                    issue.block_number,
                    self._config.context_before,
                    self._config.context_after,
                )
                control.raise_if_cancelled()
                publication = gate.arm(
                    issue, context_before=before, context_after=after
                )
                await reporter.log(
                    build_issue_published_log(
                        reporter.now(),
                        reporter.job_id,
                        issue.block_number,
                        publication.token,
                        issue.problem_types,
                    )
                )
                await reporter.progress(
                    ProgressEvent.APPROVAL_REQUESTED,
                    stage=JobStage.VERIFICATION,
                    approval=publication,
                )
                await reporter.step(
                    "awaiting_approval",
                    f"Waiting for a decision on block {issue.block_number}",
                    document.percent_at(issue.block_number),
                )
                decision = await gate.wait()
                control.raise_if_cancelled()
                if decision is None:
                    continue
                apply_decision(issue, decision)
                decided.append(issue)

        gate.close_round()
        for issue in decided:
            await self._reconcile(issue, document, reporter)
        return len(decided)

    async def _retranslate(
        self,
        group: list[TranslationIssue],
        document: _Document,
        settings: JobSettings,
    ) -> dict[int, str]:
        first = document.positions[group[0].block_number]
        last = document.positions[group[-1].block_number]
        request = RetranslationRequest(
            issues=group,
            context_before=document.blocks[
                max(0, first - self._config.context_before) : first
            ],
            context_after=document.blocks[
                last + 1 : last + 1 + self._config.context_after
            ],
            target_language=settings.target_language,
            style=TranslationStyle(settings.style),
            seed=settings.seed,
        )
        try:
            return await self._translator.retranslate(request)
        except Exception as exc:
            first_number = group[0].block_number
            last_number = group[-1].block_number
            raise VerificationError(
                VerificationErrorInfo(
                    code=VerificationErrorCode.RETRANSLATION_FAILED,
                    message=(
                        f"Re-translating blocks {first_number}-{last_number} "
                        f"failed: {exc}"
                    ),
                    details=VerificationErrorDetails(
                        first_block=first_number,
                        last_block=last_number,
                        reason=str(exc),
                    ),
                )
            ) from exc

    async def _reconcile(
        self,
        issue: TranslationIssue,
        document: _Document,
        reporter: JobReporter,
    ) -> None:
        position = document.positions[issue.block_number]
        block = document.blocks[position]
        text = issue.final_text()
        changed = text is not None and text != block.text
        if changed:
            document.blocks[position] = block.model_copy(update={"text": text})
        status = IssueStatus(issue.status)
        await reporter.log(
            build_decision_applied_log(
                reporter.now(), reporter.job_id, issue.block_number, status, changed
            )
        )
        await reporter.progress(
            ProgressEvent.DECISION_APPLIED,
            stage=JobStage.VERIFICATION,
            decision=DecisionOutcome(
                block_number=issue.block_number,
                status=status,
                final_text=text,
            ),
        )

    async def _report_failure(
        self, info: VerificationErrorInfo, reporter: JobReporter
    ) -> None:
        error = info.to_error_response()
        await reporter.progress(
            ProgressEvent.VERIFICATION_ERROR,
            stage=JobStage.VERIFICATION,
            error=error,
            message=info.message,
        )
        await reporter.log(
            build_verification_log(
                reporter.now(),
                reporter.job_id,
                JobEvent.VERIFICATION_FAILED,
                info.message,
                level=LogLevel.ERROR,
                error=error,
            )
        )
