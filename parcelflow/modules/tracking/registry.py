"""Shipment status registry: transition graph, role gating, status messages.

Pure data and predicates; nothing here touches the database so the graph and
the permission matrix can be exercised in isolation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from parcelflow.models.enums import ShipmentStatus

ROLE_SENDER = "sender"
ROLE_CARRIER = "carrier"

# Valid status transitions: from_status -> set of allowed to_statuses
VALID_TRANSITIONS: dict[ShipmentStatus, frozenset[ShipmentStatus]] = {
    ShipmentStatus.REQUESTED: frozenset({ShipmentStatus.ACCEPTED, ShipmentStatus.DISPUTED}),
    ShipmentStatus.ACCEPTED: frozenset({ShipmentStatus.PICKED_UP, ShipmentStatus.DISPUTED}),
    ShipmentStatus.PICKED_UP: frozenset({ShipmentStatus.IN_TRANSIT, ShipmentStatus.DISPUTED}),
    ShipmentStatus.IN_TRANSIT: frozenset({ShipmentStatus.ARRIVED, ShipmentStatus.DISPUTED}),
    ShipmentStatus.ARRIVED: frozenset({ShipmentStatus.DELIVERED, ShipmentStatus.DISPUTED}),
    ShipmentStatus.DELIVERED: frozenset({ShipmentStatus.DISPUTED}),
    ShipmentStatus.DISPUTED: frozenset(),
}

# Which party may drive the shipment into each status
STATUS_ROLES: dict[ShipmentStatus, frozenset[str]] = {
    ShipmentStatus.REQUESTED: frozenset(),
    ShipmentStatus.ACCEPTED: frozenset({ROLE_CARRIER}),
    ShipmentStatus.PICKED_UP: frozenset({ROLE_CARRIER}),
    ShipmentStatus.IN_TRANSIT: frozenset({ROLE_CARRIER}),
    ShipmentStatus.ARRIVED: frozenset({ROLE_CARRIER}),
    # Delivery is confirmed by the sender, never self-certified by the carrier
    ShipmentStatus.DELIVERED: frozenset({ROLE_SENDER}),
    ShipmentStatus.DISPUTED: frozenset({ROLE_SENDER, ROLE_CARRIER}),
}

# Terminal statuses, no further transitions allowed
TERMINAL_STATUSES: frozenset[ShipmentStatus] = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)

# Statuses that can only be entered through the dispute sub-flow
DISPUTE_ONLY_STATUSES: frozenset[ShipmentStatus] = frozenset({ShipmentStatus.DISPUTED})

STATUS_MESSAGES: dict[ShipmentStatus, dict[str, str]] = {
    ShipmentStatus.REQUESTED: {
        "title": "Shipment requested",
        "description": "Your transport request has been created",
    },
    ShipmentStatus.ACCEPTED: {
        "title": "Shipment accepted",
        "description": "A carrier has agreed to transport your parcel",
    },
    ShipmentStatus.PICKED_UP: {
        "title": "Shipment picked up",
        "description": "The carrier has collected your parcel",
    },
    ShipmentStatus.IN_TRANSIT: {
        "title": "Shipment in transit",
        "description": "Your parcel is on its way",
    },
    ShipmentStatus.ARRIVED: {
        "title": "Shipment arrived",
        "description": "Your parcel has reached its destination",
    },
    ShipmentStatus.DELIVERED: {
        "title": "Shipment delivered",
        "description": "Delivery of the parcel has been confirmed",
    },
    ShipmentStatus.DISPUTED: {
        "title": "Dispute filed",
        "description": "A problem has been reported for this shipment",
    },
}


@dataclass(frozen=True)
class ShipmentParties:
    """The two identities attached to a shipment."""

    sender_id: uuid.UUID
    carrier_id: uuid.UUID | None


def allowed_next_states(current: ShipmentStatus) -> frozenset[ShipmentStatus]:
    """Statuses reachable from ``current`` in one step."""
    return VALID_TRANSITIONS[current]


def is_transition_allowed(current: ShipmentStatus, requested: ShipmentStatus) -> bool:
    return requested in VALID_TRANSITIONS[current]


def actor_role(parties: ShipmentParties, actor_id: uuid.UUID) -> str | None:
    """Return ``"sender"``, ``"carrier"`` or None for a non-party."""
    if actor_id == parties.sender_id:
        return ROLE_SENDER
    if parties.carrier_id is not None and actor_id == parties.carrier_id:
        return ROLE_CARRIER
    return None


def is_permitted(
    parties: ShipmentParties, actor_id: uuid.UUID, requested: ShipmentStatus
) -> bool:
    """True if ``actor_id`` may drive the shipment into ``requested``."""
    role = actor_role(parties, actor_id)
    if role is None:
        return False
    return role in STATUS_ROLES[requested]


def is_terminal(status: ShipmentStatus) -> bool:
    return status in TERMINAL_STATUSES


def status_message(status: ShipmentStatus) -> dict[str, str]:
    return STATUS_MESSAGES[status]
