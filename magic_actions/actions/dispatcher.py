"""Action dispatcher: the single entry point for running actions.

``dispatch`` validates once (eligibility, then context), records a queued
job and hands it to the execution channel for the requested mode. No job
record is written when validation fails.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional
from uuid import uuid4

import structlog

from magic_actions.actions.catalog import ActionCatalog
from magic_actions.actions.context import ContextResolver
from magic_actions.actions.eligibility import EligibilityChecker
from magic_actions.actions.errors import (
    ExecutionFailedError,
    MagicActionError,
    TargetNotFoundError,
)
from magic_actions.actions.targets import Asset, ContentRepository, Target
from magic_actions.jobs.channels import ExecutionChannel
from magic_actions.jobs.models import Job, JobContext, WorkRequest
from magic_actions.jobs.tracker import JobTracker
from magic_actions.jobs.types import JobStatus
from magic_actions.routers.metrics import record_dispatch, record_dispatch_rejected

logger = structlog.get_logger(__name__)


class DispatchMode(str, Enum):
    """How a dispatched job is executed."""

    ASYNC = "async"
    SYNC = "sync"


@dataclass
class DispatchOptions:
    """Caller-supplied prompt variables and an optional input asset reference."""

    variables: dict[str, Any] = field(default_factory=dict)
    asset_path: Optional[str] = None


@dataclass
class BulkItemOutcome:
    """Per-target result of a bulk dispatch."""

    target_id: str
    status: str  # queued | skipped | failed
    job_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_id": self.target_id,
            "status": self.status,
            "job_id": self.job_id,
            "error": self.error,
        }


@dataclass
class BulkDispatchResult:
    """Summary of a bulk dispatch."""

    batch_id: Optional[str]
    action: str
    items: list[BulkItemOutcome] = field(default_factory=list)

    @property
    def queued(self) -> int:
        return sum(1 for i in self.items if i.status == "queued")

    @property
    def skipped(self) -> int:
        return sum(1 for i in self.items if i.status == "skipped")

    @property
    def failed(self) -> int:
        return sum(1 for i in self.items if i.status == "failed")

    @property
    def job_ids(self) -> list[str]:
        return [i.job_id for i in self.items if i.job_id]


class ActionDispatcher:
    """Validates, records and hands off action runs."""

    def __init__(
        self,
        catalog: ActionCatalog,
        eligibility: EligibilityChecker,
        context_resolver: ContextResolver,
        repository: ContentRepository,
        tracker: JobTracker,
        async_channel: ExecutionChannel,
        sync_channel: ExecutionChannel,
    ):
        self._catalog = catalog
        self._eligibility = eligibility
        self._context = context_resolver
        self._repository = repository
        self._tracker = tracker
        self._channels = {
            DispatchMode.ASYNC: async_channel,
            DispatchMode.SYNC: sync_channel,
        }

    async def _resolve_asset(self, options: DispatchOptions) -> Optional[Asset]:
        if not options.asset_path:
            return None
        asset = await self._repository.find_asset_file(options.asset_path)
        if asset is None:
            raise TargetNotFoundError("asset", options.asset_path)
        return asset

    async def _prepare(
        self,
        action: str,
        target: Target,
        field_handle: str,
        options: DispatchOptions,
    ) -> WorkRequest:
        """Run every validation step and build the work request. Writes nothing."""
        asset = await self._resolve_asset(options)
        self._eligibility.assert_executable(action, target, field_handle, asset)

        descriptor = self._catalog.lookup(action)
        variables = await self._context.resolve(
            descriptor, target, field_handle, options.variables
        )

        return WorkRequest(
            job_id=str(uuid4()),
            action=action,
            context=JobContext(
                type=target.kind.value,
                id=target.id,
                field=field_handle,
                action=action,
            ),
            variables=variables,
            asset=self._eligibility.input_asset(target, asset),
        )

    async def dispatch(
        self,
        action: str,
        target: Target,
        field_handle: str,
        options: Optional[DispatchOptions] = None,
        mode: DispatchMode = DispatchMode.ASYNC,
    ) -> str:
        """
        Validate and dispatch an action run.

        Returns the job id. In sync mode the job has reached a terminal
        state when this returns.

        Raises:
            IneligibleError: Action not configured for the field, or unknown.
            UnsupportedFormatError: Input asset MIME type not accepted.
            InvalidContextError: Context variables could not be resolved.
            TargetNotFoundError: ``options.asset_path`` does not resolve.
        """
        options = options or DispatchOptions()
        log = logger.bind(
            action=action,
            target_type=target.kind.value,
            target_id=target.id,
            field=field_handle,
            mode=mode.value,
        )

        try:
            request = await self._prepare(action, target, field_handle, options)
        except MagicActionError as e:
            log.info("dispatch_rejected", error=str(e), error_type=e.error_type)
            record_dispatch_rejected(action, e.error_type)
            raise

        await self._submit(request, mode)
        log.info("job_dispatched", job_id=request.job_id)
        return request.job_id

    async def _submit(self, request: WorkRequest, mode: DispatchMode) -> None:
        """Record the queued job, then hand it to the channel for ``mode``."""
        await self._tracker.create_job(request.job_id, request.context)
        await self._channels[mode].submit(request)
        record_dispatch(request.action, mode.value)

    async def dispatch_async(
        self,
        action: str,
        target: Target,
        field_handle: str,
        options: Optional[DispatchOptions] = None,
    ) -> str:
        """Dispatch for background execution; returns the job id."""
        return await self.dispatch(action, target, field_handle, options, DispatchMode.ASYNC)

    async def dispatch_sync(
        self,
        action: str,
        target: Target,
        field_handle: str,
        options: Optional[DispatchOptions] = None,
    ) -> Any:
        """
        Run an action inline and return its result.

        Raises:
            ExecutionFailedError: The job ended in the failed state.
        """
        job = await self.run_inline(action, target, field_handle, options)
        return job.result

    async def run_inline(
        self,
        action: str,
        target: Target,
        field_handle: str,
        options: Optional[DispatchOptions] = None,
    ) -> Job:
        """Run an action inline and return the completed job record."""
        job_id = await self.dispatch(action, target, field_handle, options, DispatchMode.SYNC)
        job = await self._tracker.require_job(job_id)
        if job.status is JobStatus.FAILED:
            raise ExecutionFailedError(
                job.message or job.error or "Action execution failed.", job_id=job_id
            )
        return job

    async def dispatch_bulk(
        self,
        action: str,
        targets: Iterable[Target],
        field_handle: str,
        options: Optional[DispatchOptions] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> BulkDispatchResult:
        """
        Dispatch one action over many targets as a tracked batch.

        Targets the action is not configured for are ``skipped``; targets
        failing validation (format, context) are ``failed``. Neither counts
        toward the batch total. Every item is validated before the batch is
        created, and one item's failure never stops the others.
        """
        options = options or DispatchOptions()
        result = BulkDispatchResult(batch_id=None, action=action)

        prepared: list[tuple[Target, WorkRequest]] = []
        for target in targets:
            if action not in self._eligibility.available_actions(target, field_handle):
                result.items.append(
                    BulkItemOutcome(
                        target_id=target.id,
                        status="skipped",
                        error=f"Action '{action}' is not available for this {target.kind.value}",
                    )
                )
                continue
            try:
                request = await self._prepare(action, target, field_handle, options)
            except MagicActionError as e:
                record_dispatch_rejected(action, e.error_type)
                result.items.append(
                    BulkItemOutcome(target_id=target.id, status="failed", error=str(e))
                )
                continue
            prepared.append((target, request))

        if not prepared:
            logger.info(
                "bulk_dispatch_empty",
                action=action,
                skipped=result.skipped,
                failed=result.failed,
            )
            return result

        result.batch_id = await self._tracker.create_batch(
            action, len(prepared), metadata or {"source": "bulk"}
        )

        for target, request in prepared:
            try:
                await self._tracker.add_member(result.batch_id, request.job_id)
                await self._submit(request, DispatchMode.ASYNC)
            except Exception as e:
                logger.error(
                    "bulk_item_dispatch_failed",
                    action=action,
                    batch_id=result.batch_id,
                    target_id=target.id,
                    error=str(e),
                )
                result.items.append(
                    BulkItemOutcome(target_id=target.id, status="failed", error=str(e))
                )
                continue
            result.items.append(
                BulkItemOutcome(target_id=target.id, status="queued", job_id=request.job_id)
            )

        logger.info(
            "bulk_dispatched",
            action=action,
            batch_id=result.batch_id,
            queued=result.queued,
            skipped=result.skipped,
            failed=result.failed,
        )
        return result
