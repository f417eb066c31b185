"""Action endpoints: catalog listing, single and bulk dispatch."""

from typing import Union

import structlog
from fastapi import APIRouter, Depends, Query, Response, status

from magic_actions.actions.dispatcher import BulkItemOutcome, DispatchMode, DispatchOptions
from magic_actions.actions.errors import TargetNotFoundError
from magic_actions.core.engine import Engine, require_engine
from magic_actions.jobs.types import JobStatus, TargetType
from magic_actions.schemas import (
    ActionAcceptedResponse,
    ActionListResponse,
    ActionRequest,
    ActionSummary,
    AvailableActionsResponse,
    BulkActionRequest,
    BulkActionResponse,
    BulkItemResponse,
    ErrorResponse,
    JobResponse,
    TargetRef,
)

router = APIRouter(prefix="/actions", tags=["Actions"])
logger = structlog.get_logger(__name__)


@router.get("", response_model=ActionListResponse)
async def list_actions(
    bulk: bool = Query(False, description="Only actions that support bulk runs"),
    engine: Engine = Depends(require_engine),
) -> ActionListResponse:
    """List registered actions."""
    descriptors = (
        engine.catalog.bulk_descriptors() if bulk else engine.catalog.descriptors()
    )
    return ActionListResponse(
        actions=[ActionSummary(**d.to_summary()) for d in descriptors]
    )


@router.get(
    "/available",
    response_model=AvailableActionsResponse,
    responses={404: {"model": ErrorResponse, "description": "Target not found"}},
)
async def available_actions(
    type: TargetType = Query(..., description="Target kind"),
    id: str = Query(..., min_length=1, description="Target id"),
    field: str = Query(..., min_length=1, description="Field handle"),
    engine: Engine = Depends(require_engine),
) -> AvailableActionsResponse:
    """Actions configured and registered for a target's field."""
    target = await engine.repository.resolve(type.value, id)
    return AvailableActionsResponse(
        target=TargetRef(type=type, id=id),
        field=field,
        actions=engine.eligibility.available_actions(target, field),
    )


@router.post(
    "/{handle}",
    response_model=Union[ActionAcceptedResponse, JobResponse],
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        200: {"model": JobResponse, "description": "Sync run finished"},
        202: {"model": ActionAcceptedResponse, "description": "Job queued"},
        404: {"model": ErrorResponse, "description": "Target or asset not found"},
        422: {"model": ErrorResponse, "description": "Action cannot run on this target"},
        502: {"model": ErrorResponse, "description": "Sync run failed"},
    },
)
async def run_action(
    handle: str,
    request: ActionRequest,
    response: Response,
    sync: bool = Query(False, description="Run inline and return the finished job"),
    engine: Engine = Depends(require_engine),
) -> Union[ActionAcceptedResponse, JobResponse]:
    """
    Dispatch an action against a target field.

    By default the job is queued and its id returned; poll
    ``GET /jobs/{job_id}`` for the outcome. With ``sync=true`` the action
    runs before the response is sent.
    """
    target = await engine.repository.resolve(request.target.type.value, request.target.id)
    options = DispatchOptions(variables=request.variables, asset_path=request.asset_path)

    if not sync:
        job_id = await engine.dispatcher.dispatch(
            handle, target, request.field, options, DispatchMode.ASYNC
        )
        return ActionAcceptedResponse(job_id=job_id, status=JobStatus.QUEUED)

    job = await engine.dispatcher.run_inline(handle, target, request.field, options)
    response.status_code = status.HTTP_200_OK
    return JobResponse.from_job(job)


@router.post(
    "/{handle}/bulk",
    response_model=BulkActionResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={404: {"model": ErrorResponse, "description": "Unknown action"}},
)
async def run_bulk_action(
    handle: str,
    request: BulkActionRequest,
    engine: Engine = Depends(require_engine),
) -> BulkActionResponse:
    """
    Dispatch an action over many targets as one batch.

    Poll ``GET /batches/{batch_id}`` for aggregate progress.
    """
    engine.catalog.lookup(handle)

    targets = []
    unresolved: list[BulkItemOutcome] = []
    for ref in request.targets:
        try:
            targets.append(await engine.repository.resolve(ref.type.value, ref.id))
        except TargetNotFoundError as e:
            logger.info(
                "bulk_target_unresolved",
                action=handle,
                target_type=ref.type.value,
                target_id=ref.id,
            )
            unresolved.append(BulkItemOutcome(target_id=ref.id, status="failed", error=str(e)))

    result = await engine.dispatcher.dispatch_bulk(
        handle,
        targets,
        request.field,
        DispatchOptions(variables=request.variables),
        metadata={"source": "api", **request.metadata},
    )
    result.items.extend(unresolved)
    return BulkActionResponse(
        batch_id=result.batch_id,
        action=result.action,
        queued=result.queued,
        skipped=result.skipped,
        failed=result.failed,
        items=[BulkItemResponse(**item.to_dict()) for item in result.items],
    )
