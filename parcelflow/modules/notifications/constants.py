"""Notification channel names, payload types and push gateway error codes."""

from __future__ import annotations

CHANNEL_PUSH = "push"
CHANNEL_LIVE_SOCKET = "live_socket"

EVENT_TYPE_STATUS_UPDATE = "shipment_status_update"

# Preference categories a recipient can switch off
CATEGORY_PACKAGES = "packages"
CATEGORY_DISPUTES = "disputes"

TOKEN_PREVIEW_LENGTH = 20

RESULT_OK = "ok"
RESULT_ERROR = "error"

# Gateway error codes meaning the device token will never work again
PUSH_RETIRABLE_ERRORS = frozenset({
    "NotRegistered",
    "InvalidRegistration",
    "MismatchSenderId",
})

PUSH_DEFAULT_ICON = "/icons/status.png"
