"""Push device registration and notification preference endpoints."""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.database.session import commit_or_fail, get_db
from parcelflow.exceptions import NotFoundException
from parcelflow.modules.identity.auth import AuthenticatedUser, get_current_user
from parcelflow.modules.notifications.device_service import DeviceTokenService
from parcelflow.modules.notifications.preference_service import NotificationPreferenceService
from parcelflow.modules.notifications.schemas import (
    DeviceTokenListResponse,
    DeviceTokenRegister,
    DeviceTokenResponse,
    DeviceTokenSummary,
    NotificationPreferences,
    NotificationPreferencesUpdate,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


# ---------------------------------------------------------------------------
# Devices
# ---------------------------------------------------------------------------


@router.post("/devices", response_model=DeviceTokenResponse, status_code=201)
async def register_device(
    body: DeviceTokenRegister,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Register (or reactivate) a push token for the calling user."""
    svc = DeviceTokenService(db)
    device = await svc.register_token(user.id, body.token, body.platform)
    response = DeviceTokenResponse.model_validate(device)
    await commit_or_fail(db)
    return response


@router.delete("/devices/{token}", status_code=204)
async def unregister_device(
    token: str,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = DeviceTokenService(db)
    if not await svc.unregister_token(user.id, token):
        raise NotFoundException("Device token not registered")
    await commit_or_fail(db)
    return Response(status_code=204)


@router.get("/tokens", response_model=DeviceTokenListResponse)
async def list_devices(
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active push registrations of the calling user."""
    svc = DeviceTokenService(db)
    devices = await svc.list_devices(user.id)
    return DeviceTokenListResponse(
        tokens=[DeviceTokenSummary.from_device(d) for d in devices]
    )


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


@router.get("/preferences", response_model=NotificationPreferences)
async def get_preferences(
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = NotificationPreferenceService(db)
    return NotificationPreferences(**await svc.get_preferences(user.id))


@router.put("/preferences", response_model=NotificationPreferences)
async def update_preferences(
    body: NotificationPreferencesUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Switch notification categories on or off; omitted fields are unchanged."""
    svc = NotificationPreferenceService(db)
    preferences = await svc.update_preferences(
        user.id, packages=body.packages, disputes=body.disputes
    )
    await commit_or_fail(db)
    return NotificationPreferences(**preferences)
