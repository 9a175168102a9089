"""Tracking module event types, limits and pagination defaults."""

from __future__ import annotations

# Outbox event types
EVENT_SHIPMENT_STATUS_CHANGED = "shipment.status_changed"

AGGREGATE_SHIPMENT = "shipment"

# Free-text limits on a status update
NOTE_MAX_LENGTH = 500
LOCATION_MAX_LENGTH = 255
EVIDENCE_REF_MAX_LENGTH = 500

# Dispute input limits
DISPUTE_REASON_MAX_LENGTH = 100
DISPUTE_DESCRIPTION_MAX_LENGTH = 1000
DISPUTE_MAX_EVIDENCE_REFS = 10
DISPUTE_NOTE_PREFIX = "Dispute filed: "

# Statuses counted as "active" in tracking stats
ACTIVE_STATUS_NAMES = ("IN_TRANSIT", "ARRIVED")

# Statuses after which a shipment no longer counts as under way
CLOSED_STATUS_NAMES = ("DELIVERED", "DISPUTED")

# Pagination of the active shipments listing
ACTIVE_SHIPMENTS_DEFAULT_LIMIT = 10
ACTIVE_SHIPMENTS_MAX_LIMIT = 50
