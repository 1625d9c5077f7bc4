# src/jobs/orchestrator.py — v1
"""Administrative source operations: start a job, poll it, report the outcome.

Every operation:
  1. optionally asks the operator to confirm
  2. starts the backend job with a client scoped to this operation
  3. polls it under a cancellable progress scope
  4. formats and shows one outcome message (nothing when cancelled)
  5. returns the terminal Job, or None when cancelled or declined

``reset_source`` chains an account reset and an entitlement reset; the
entitlement reset only runs when the account reset succeeded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from iscadmin.core.models import Job, JobKind, OutcomeCategory, OutcomeReport, Resource
from iscadmin.jobs.formatter import MessageTemplates, build_report
from iscadmin.jobs.poller import JobPoller, PollProgress
from iscadmin.logging.context import (
    clear_operation_context,
    set_job_context,
    set_operation_context,
)

if TYPE_CHECKING:
    from iscadmin.jobs.presenter import Presenter
    from iscadmin.session.tenant_session import TenantSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobOperation:
    """Static description of one administrative operation."""

    name: str
    kind: JobKind
    title: str
    templates: MessageTemplates
    confirm_question: str | None = None


ACCOUNT_AGGREGATION = JobOperation(
    name="aggregate-accounts",
    kind=JobKind.ACCOUNT_AGGREGATION,
    title="Aggregating accounts from {0}",
    templates=MessageTemplates(
        success="Source {0} successfully aggregated",
        warning="Warning during aggregation of {0}: {1}",
        failure="Aggregation of {0} failed: {1}: {2}",
    ),
)

ENTITLEMENT_AGGREGATION = JobOperation(
    name="aggregate-entitlements",
    kind=JobKind.ENTITLEMENT_AGGREGATION,
    title="Aggregating entitlements from {0}",
    templates=MessageTemplates(
        success="Source entitlements {0} successfully aggregated",
        warning="Warning during aggregation of {0}: {1}",
        failure="Aggregation of entitlements for {0} failed: {1}: {2}",
    ),
)

ACCOUNT_RESET = JobOperation(
    name="reset-accounts",
    kind=JobKind.ACCOUNT_RESET,
    title="Resetting accounts from {0}",
    templates=MessageTemplates(
        success="Accounts for {0} successfully reset",
        warning="Warning during account reset of {0}: {1}",
        failure="Reset of accounts for {0} failed: {1}: {2}",
    ),
    confirm_question="Are you sure you want to reset accounts for {0}?",
)

ENTITLEMENT_RESET = JobOperation(
    name="reset-entitlements",
    kind=JobKind.ENTITLEMENT_RESET,
    title="Resetting entitlements from {0}",
    templates=MessageTemplates(
        success="Entitlements for {0} successfully reset",
        warning="Warning during entitlement reset of {0}: {1}",
        failure="Reset of entitlements for {0} failed: {1}: {2}",
    ),
    confirm_question="Are you sure you want to reset entitlements for {0}?",
)

RESET_SOURCE_QUESTION = "Are you sure you want to reset the source {0}?"


@dataclass(frozen=True)
class OperationResult:
    report: OutcomeReport
    job: Job | None = None
    timed_out: bool = False


class SourceAdministrator:
    """Runs administrative jobs against the sources of one tenant session.

    Args:
        session: Open tenant session providing clients and settings.
        presenter: Operator seam (confirmation, progress, outcome display).
    """

    def __init__(self, session: TenantSession, presenter: Presenter) -> None:
        self._session = session
        self._presenter = presenter

    # --- Public operations ---

    async def aggregate_accounts(
        self, source: Resource, disable_optimization: bool = False
    ) -> Job | None:
        result = await self.run(
            ACCOUNT_AGGREGATION, source, disable_optimization=disable_optimization
        )
        return result.job if result else None

    async def aggregate_entitlements(self, source: Resource) -> Job | None:
        result = await self.run(ENTITLEMENT_AGGREGATION, source)
        return result.job if result else None

    async def reset_accounts(self, source: Resource, confirm: bool = True) -> Job | None:
        result = await self.run(ACCOUNT_RESET, source, confirm=confirm)
        return result.job if result else None

    async def reset_entitlements(self, source: Resource, confirm: bool = True) -> Job | None:
        result = await self.run(ENTITLEMENT_RESET, source, confirm=confirm)
        return result.job if result else None

    async def reset_source(self, source: Resource) -> Job | None:
        """Reset accounts, then entitlements if the account reset succeeded.

        Returns the entitlement-reset job, or None when the composite stopped
        early (declined, cancelled, or account reset not successful).
        """
        if not await self._presenter.confirm(RESET_SOURCE_QUESTION.format(source.name)):
            logger.info("Reset of source %s declined", source.name)
            return None

        accounts = await self.run(ACCOUNT_RESET, source, confirm=False)
        if accounts is None or accounts.report.category != OutcomeCategory.SUCCESS:
            category = accounts.report.category.value if accounts else "declined"
            logger.info(
                "Account reset of %s ended with %s, entitlement reset skipped",
                source.name, category,
            )
            return None

        entitlements = await self.run(ENTITLEMENT_RESET, source, confirm=False)
        return entitlements.job if entitlements else None

    # --- Core ---

    async def run(
        self,
        operation: JobOperation,
        source: Resource,
        confirm: bool = True,
        **options: Any,
    ) -> OperationResult | None:
        """Run one operation end to end.

        Returns None when the operator declines the confirmation. Fetch
        errors from job start or status polling propagate.
        """
        label = source.name
        if confirm and operation.confirm_question:
            question = operation.confirm_question.format(label)
            if not await self._presenter.confirm(question):
                logger.info("%s on %s declined", operation.name, label)
                return None

        settings = self._session.settings
        client = self._session.new_client()
        try:
            set_operation_context(operation.name)
            async with self._presenter.progress(operation.title.format(label)) as scope:
                job_id = await client.start_job(operation.kind, source.id, **options)
                set_job_context(job_id)

                def on_progress(progress: PollProgress) -> None:
                    scope.report(
                        f"{progress.job.status.value} ({progress.elapsed_s:.0f}s)"
                    )

                poller = JobPoller(
                    client.get_job_status,
                    interval_s=settings.poll_interval_s,
                    timeout_s=settings.poll_timeout_s,
                    on_progress=on_progress,
                )
                polled = await poller.poll(job_id, scope.token)
        finally:
            await client.close()
            clear_operation_context()

        job = polled.job
        if job is not None and job.kind is None:
            job = job.model_copy(
                update={"kind": operation.kind, "target_id": job.target_id or source.id}
            )

        report = build_report(polled.category, label, operation.templates, job)
        if polled.category == OutcomeCategory.CANCELLED:
            logger.info(
                "%s on %s cancelled, remote job %s left running", operation.name, label, job_id
            )
            return OperationResult(report, None)

        self._presenter.show(report)
        return OperationResult(report, job, polled.timed_out)
