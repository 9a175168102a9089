"""Pydantic v2 schemas for push device registration and notification preferences."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from parcelflow.models.enums import DevicePlatform
from parcelflow.modules.notifications.constants import TOKEN_PREVIEW_LENGTH


class DeviceTokenRegister(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)
    platform: DevicePlatform = DevicePlatform.WEB


class DeviceTokenResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    token: str
    platform: DevicePlatform
    is_active: bool
    created_at: datetime
    updated_at: datetime


class DeviceTokenSummary(BaseModel):
    """A registered device, with the token itself shortened."""

    platform: DevicePlatform
    token_preview: str
    updated_at: datetime

    @classmethod
    def from_device(cls, device) -> DeviceTokenSummary:
        return cls(
            platform=device.platform,
            token_preview=f"{device.token[:TOKEN_PREVIEW_LENGTH]}...",
            updated_at=device.updated_at,
        )


class DeviceTokenListResponse(BaseModel):
    tokens: list[DeviceTokenSummary]


class NotificationPreferences(BaseModel):
    packages: bool
    disputes: bool


class NotificationPreferencesUpdate(BaseModel):
    packages: bool | None = None
    disputes: bool | None = None
