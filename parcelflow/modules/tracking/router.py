"""Shipment tracking API routers: status updates, history, disputes, stats."""

import uuid

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.config import settings
from parcelflow.database.session import commit_or_fail, get_db
from parcelflow.middleware.rate_limit import limiter
from parcelflow.models.enums import DisputeResolutionStatus
from parcelflow.modules.identity.auth import AuthenticatedUser, get_current_user
from parcelflow.modules.tracking.constants import (
    ACTIVE_SHIPMENTS_DEFAULT_LIMIT,
    ACTIVE_SHIPMENTS_MAX_LIMIT,
)
from parcelflow.modules.tracking.dispute_service import DisputeService
from parcelflow.modules.tracking.schemas import (
    ActiveShipmentListResponse,
    ActiveShipmentResponse,
    DisputeCreate,
    DisputeCreatedResponse,
    DisputeListResponse,
    DisputeResponse,
    StatusOptionsResponse,
    StatusUpdateRequest,
    TrackingStatsResponse,
    TransitionResponse,
)
from parcelflow.modules.tracking.service import TrackingService

shipments_router = APIRouter(prefix="/shipments", tags=["shipments"])
tracking_router = APIRouter(prefix="/tracking", tags=["tracking"])
disputes_router = APIRouter(prefix="/disputes", tags=["disputes"])


# ---------------------------------------------------------------------------
# Shipment status
# ---------------------------------------------------------------------------


@shipments_router.put("/{shipment_id}/status", response_model=TransitionResponse)
@limiter.limit(settings.status_update_rate_limit)
async def update_status(
    request: Request,
    shipment_id: uuid.UUID,
    body: StatusUpdateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Advance a shipment to its next status."""
    svc = TrackingService(db)
    record = await svc.update_status(
        shipment_id,
        body.status,
        user.id,
        note=body.note,
        location=body.location,
        evidence_ref=body.evidence_ref,
    )
    response = TransitionResponse.model_validate(record)
    await commit_or_fail(db)
    return response


@shipments_router.get("/{shipment_id}/history", response_model=list[TransitionResponse])
async def get_history(
    shipment_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = TrackingService(db)
    records = await svc.get_history(shipment_id, user.id)
    return [TransitionResponse.model_validate(r) for r in records]


@shipments_router.get("/{shipment_id}/status-options", response_model=StatusOptionsResponse)
async def get_status_options(
    shipment_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Next statuses the caller may move this shipment to."""
    svc = TrackingService(db)
    return await svc.status_options(shipment_id, user.id)


@shipments_router.post(
    "/{shipment_id}/disputes",
    response_model=DisputeCreatedResponse,
    status_code=201,
)
@limiter.limit(settings.dispute_rate_limit)
async def file_dispute(
    request: Request,
    shipment_id: uuid.UUID,
    body: DisputeCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Report a problem with a shipment and move it to DISPUTED."""
    svc = DisputeService(db)
    dispute_id = await svc.file_dispute(
        shipment_id,
        user.id,
        reason=body.reason,
        description=body.description,
        evidence_refs=body.evidence_refs,
    )
    await commit_or_fail(db)
    return DisputeCreatedResponse(dispute_id=dispute_id)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@tracking_router.get("/stats", response_model=TrackingStatsResponse)
async def get_stats(
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = TrackingService(db)
    return await svc.stats(user.id)


# ---------------------------------------------------------------------------
# Disputes
# ---------------------------------------------------------------------------


@disputes_router.get("/", response_model=DisputeListResponse)
async def list_disputes(
    status: DisputeResolutionStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List disputes on shipments the caller is a party to."""
    svc = DisputeService(db)
    items, total = await svc.list_disputes(user.id, status=status, limit=limit, offset=offset)
    return DisputeListResponse(
        items=[DisputeResponse.model_validate(d) for d in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@disputes_router.get("/{dispute_id}", response_model=DisputeResponse)
async def get_dispute(
    dispute_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = DisputeService(db)
    dispute = await svc.get_dispute(dispute_id, user.id)
    return DisputeResponse.model_validate(dispute)


@tracking_router.get("/shipments/active", response_model=ActiveShipmentListResponse)
async def list_active_shipments(
    limit: int = Query(ACTIVE_SHIPMENTS_DEFAULT_LIMIT, ge=1, le=ACTIVE_SHIPMENTS_MAX_LIMIT),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Shipments the caller is a party to that are not yet delivered or disputed."""
    svc = TrackingService(db)
    items, total = await svc.active_shipments(user.id, limit=limit, offset=offset)
    return ActiveShipmentListResponse(
        items=[
            ActiveShipmentResponse(
                **{key: value for key, value in item.items() if key != "history"},
                history=[TransitionResponse.model_validate(r) for r in item["history"]],
            )
            for item in items
        ],
        total=total,
        limit=limit,
        offset=offset,
    )
