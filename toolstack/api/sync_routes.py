"""
ToolStack Sync API Routes
=========================

Endpoints:
    POST /api/sync/tools/{tool_id}   - Apply one change event (always 200)
    POST /api/sync/full              - Bulk resync of both indexes
    POST /api/sync/full/{target}     - Bulk resync of one index (text|vector|all)
"""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from ..data.models import ChangeEvent
from ..errors import UpstreamServiceError
from ..factory import ServiceFactory
from ..sync.bulk import SyncTarget
from .dependencies import get_factory, verify_sync_token
from .models import (
    ChangeEventRequest,
    ErrorResponse,
    FullSyncErrorResponse,
    FullSyncResponse,
    IncrementalSyncResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/sync",
    tags=["Sync"],
    dependencies=[Depends(verify_sync_token)],
    responses={401: {"model": ErrorResponse, "description": "Missing or wrong X-Sync-Token"}},
)


@router.post("/tools/{tool_id}", response_model=IncrementalSyncResponse)
async def sync_tool(
    tool_id: str,
    request: ChangeEventRequest,
    factory: ServiceFactory = Depends(get_factory),
):
    """
    Apply one tool mutation to both indexes.

    Per-index failures are reported in the body; the status stays 200 so
    the change relay does not retry.
    """
    event = ChangeEvent(tool_id=tool_id, before=request.before, after=request.after)
    outcome = await factory.incremental_handler().handle(event)
    return IncrementalSyncResponse(**outcome.to_dict())


async def _run_full_sync(factory: ServiceFactory, target: SyncTarget, resume: bool):
    try:
        summary = await factory.bulk_orchestrator().run(target, resume=resume)
    except UpstreamServiceError as e:
        logger.error(f"Full sync ({target.value}) failed to start: {e}")
        return JSONResponse(
            status_code=500,
            content=FullSyncErrorResponse(error="Error during full sync").model_dump(),
        )

    return FullSyncResponse(
        success=summary.success,
        summary=summary.to_message(),
        details=summary.to_details(),
    )


@router.post(
    "/full",
    response_model=FullSyncResponse,
    responses={500: {"model": FullSyncErrorResponse}},
)
async def full_sync(
    resume: bool = Query(True, description="Continue an unfinished walk"),
    factory: ServiceFactory = Depends(get_factory),
):
    return await _run_full_sync(factory, SyncTarget.ALL, resume)


@router.post(
    "/full/{target}",
    response_model=FullSyncResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Unknown target"},
        500: {"model": FullSyncErrorResponse},
    },
)
async def full_sync_target(
    target: str,
    resume: bool = Query(True, description="Continue an unfinished walk"),
    factory: ServiceFactory = Depends(get_factory),
):
    return await _run_full_sync(factory, SyncTarget.parse(target), resume)
