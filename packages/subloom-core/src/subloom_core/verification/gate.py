"""Approval gate: one pending decision per job, matched by block number."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from uuid import uuid4

from subloom_core.ports.orchestrator import JobControlErrorCode, job_control_error
from subloom_schemas.io import ContextBlock
from subloom_schemas.primitives import JobId
from subloom_schemas.verification import (
    ApprovalDecision,
    IssuePublication,
    TranslationIssue,
)

DEFAULT_MAX_QUEUED_DECISIONS = 64


def _new_token() -> str:
    return uuid4().hex


@dataclass(slots=True)
class _GateSlot:
    publication: IssuePublication
    future: asyncio.Future[ApprovalDecision | None]

    @property
    def block_number(self) -> int:
        return self.publication.issue.block_number


class ApprovalGate:
    """Single-slot rendezvous between a published issue and its decision.

    Each publication carries a unique token. Decisions are matched by block
    number; a decision for a block of the open round that has not been
    published yet is queued and consumed when that block is armed. Arming a
    new slot releases any unresolved previous one.
    """

    def __init__(
        self,
        job_id: JobId,
        *,
        max_queued: int = DEFAULT_MAX_QUEUED_DECISIONS,
        token_factory: Callable[[], str] = _new_token,
    ) -> None:
        """Initialize the gate.

        Args:
            job_id: Job the gate belongs to.
            max_queued: Maximum decisions held for not-yet-published blocks.
            token_factory: Generator for publication tokens.
        """
        self.job_id = job_id
        self._max_queued = max_queued
        self._token_factory = token_factory
        self._slot: _GateSlot | None = None
        self._round: set[int] = set()
        self._decided: set[int] = set()
        self._queued: dict[int, ApprovalDecision] = {}

    @property
    def pending(self) -> IssuePublication | None:
        """Return the publication currently awaiting a decision."""
        slot = self._slot
        if slot is None or slot.future.done():
            return None
        return slot.publication

    def open_round(self, block_numbers: Iterable[int]) -> None:
        """Start accepting decisions for a new set of issue blocks.

        Args:
            block_numbers: Blocks whose issues belong to the round.
        """
        self.release()
        self._round = set(block_numbers)
        self._decided = set()
        self._queued = {}

    def withdraw(self, block_numbers: Iterable[int]) -> None:
        """Stop accepting decisions for blocks that will not be published.

        Args:
            block_numbers: Blocks removed from the round.
        """
        for number in block_numbers:
            self._round.discard(number)
            self._queued.pop(number, None)

    def close_round(self) -> None:
        """Release any pending slot and forget the round."""
        self.open_round(())

    def arm(
        self,
        issue: TranslationIssue,
        *,
        context_before: list[ContextBlock],
        context_after: list[ContextBlock],
    ) -> IssuePublication:
        """Publish an issue into the gate slot.

        Args:
            issue: Issue awaiting a decision.
            context_before: Blocks preceding the issue.
            context_after: Blocks following the issue.

        Returns:
            IssuePublication: Publication with a fresh correlation token.

        Raises:
            ValueError: If the issue's block is not part of the open round.
        """
        if issue.block_number not in self._round:
            raise ValueError(f"Block {issue.block_number} is not in the open round")
        self.release()
        publication = IssuePublication(
            token=self._token_factory(),
            issue=issue,
            context_before=context_before,
            context_after=context_after,
        )
        slot = _GateSlot(
            publication=publication,
            future=asyncio.get_running_loop().create_future(),
        )
        self._slot = slot
        queued = self._queued.pop(issue.block_number, None)
        if queued is not None:
            slot.future.set_result(queued)
        return publication

    async def wait(self) -> ApprovalDecision | None:
        """Wait for the decision resolving the armed slot.

        Returns:
            ApprovalDecision | None: The decision, or None if the slot was
            released without one.
        """
        slot = self._slot
        if slot is None:
            return None
        try:
            return await slot.future
        finally:
            if self._slot is slot:
                self._slot = None

    def submit(self, decision: ApprovalDecision) -> None:
        """Resolve the gate (or queue the decision) by block number.

        Args:
            decision: Reviewer decision.

        Raises:
            JobControlError: If no round is open, the block is not part of the
                round, it was already decided, or the token is stale.
        """
        number = decision.block_number
        if not self._round:
            raise job_control_error(
                JobControlErrorCode.NO_PENDING_ISSUE,
                "No approval round is open",
                job_id=self.job_id,
                block_number=number,
            )
        if number not in self._round:
            raise job_control_error(
                JobControlErrorCode.INVALID_DECISION,
                f"Block {number} has no issue awaiting a decision",
                job_id=self.job_id,
                block_number=number,
            )
        if number in self._decided:
            raise job_control_error(
                JobControlErrorCode.DECISION_CONFLICT,
                f"Block {number} was already decided",
                job_id=self.job_id,
                block_number=number,
            )

        slot = self._slot
        if slot is not None and not slot.future.done() and slot.block_number == number:
            if decision.token is not None and decision.token != slot.publication.token:
                raise job_control_error(
                    JobControlErrorCode.DECISION_CONFLICT,
                    f"Stale token for block {number}",
                    job_id=self.job_id,
                    block_number=number,
                )
            self._decided.add(number)
            slot.future.set_result(decision)
            return

        if decision.token is not None:
            raise job_control_error(
                JobControlErrorCode.DECISION_CONFLICT,
                f"Stale token for block {number}",
                job_id=self.job_id,
                block_number=number,
            )
        if len(self._queued) >= self._max_queued:
            raise job_control_error(
                JobControlErrorCode.DECISION_CONFLICT,
                "Too many decisions queued ahead of publication",
                job_id=self.job_id,
                block_number=number,
            )
        self._decided.add(number)
        self._queued[number] = decision

    def release(self) -> None:
        """Resolve the pending slot with no decision."""
        slot = self._slot
        self._slot = None
        if slot is not None and not slot.future.done():
            slot.future.set_result(None)
