"""Shipment lifecycle tables

Revision ID: 001
Revises:
Create Date: 2026-10-18

Creates: shipments, shipment_transitions, shipment_disputes, push_device_tokens,
         event_outbox, processed_events, notification_preferences
Enums: shipmentstatus, disputeresolutionstatus, deviceplatform, eventstatus
"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto";')

    # ── 1. Create enum types ──────────────────────────────────────────────
    op.execute("""
        CREATE TYPE shipmentstatus AS ENUM (
            'REQUESTED', 'ACCEPTED', 'PICKED_UP', 'IN_TRANSIT',
            'ARRIVED', 'DELIVERED', 'DISPUTED'
        );
    """)
    op.execute("""
        CREATE TYPE disputeresolutionstatus AS ENUM (
            'OPEN', 'INVESTIGATING', 'RESOLVED', 'CLOSED'
        );
    """)
    op.execute("CREATE TYPE deviceplatform AS ENUM ('WEB', 'ANDROID', 'IOS');")
    op.execute("""
        CREATE TYPE eventstatus AS ENUM (
            'PENDING', 'PROCESSING', 'COMPLETED', 'FAILED'
        );
    """)

    # ── 2. Create shipments table ─────────────────────────────────────────
    op.execute("""
        CREATE TABLE shipments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            title VARCHAR(255) NOT NULL DEFAULT '',
            sender_id UUID NOT NULL,
            carrier_id UUID,
            status shipmentstatus NOT NULL DEFAULT 'REQUESTED',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_shipments_sender_id ON shipments (sender_id);")
    op.execute("CREATE INDEX ix_shipments_carrier_id ON shipments (carrier_id);")
    op.execute("CREATE INDEX ix_shipments_status ON shipments (status);")

    # ── 3. Create shipment_transitions table (append-only) ────────────────
    op.execute("""
        CREATE TABLE shipment_transitions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            shipment_id UUID NOT NULL REFERENCES shipments(id) ON DELETE RESTRICT,
            sequence INTEGER NOT NULL,
            from_status shipmentstatus NOT NULL,
            status shipmentstatus NOT NULL,
            actor_id UUID NOT NULL,
            note TEXT,
            location VARCHAR(255),
            evidence_ref VARCHAR(500),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_shipment_transitions_sequence UNIQUE (shipment_id, sequence)
        );
    """)
    op.execute(
        "CREATE INDEX ix_shipment_transitions_shipment_id ON shipment_transitions (shipment_id);"
    )

    # ── 4. Create shipment_disputes table ─────────────────────────────────
    op.execute("""
        CREATE TABLE shipment_disputes (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            shipment_id UUID NOT NULL REFERENCES shipments(id) ON DELETE RESTRICT,
            reporter_id UUID NOT NULL,
            reason VARCHAR(100) NOT NULL,
            description TEXT NOT NULL,
            evidence_refs JSONB NOT NULL DEFAULT '[]',
            status disputeresolutionstatus NOT NULL DEFAULT 'OPEN',
            resolved_by UUID,
            resolution_notes TEXT,
            resolved_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_shipment_disputes_shipment_id ON shipment_disputes (shipment_id);")
    op.execute("CREATE INDEX ix_shipment_disputes_reporter_id ON shipment_disputes (reporter_id);")
    op.execute("CREATE INDEX ix_shipment_disputes_status ON shipment_disputes (status);")

    # ── 5. Create push_device_tokens table ────────────────────────────────
    op.execute("""
        CREATE TABLE push_device_tokens (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL,
            token VARCHAR(512) NOT NULL,
            platform deviceplatform NOT NULL DEFAULT 'WEB',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_push_device_tokens_user_token UNIQUE (user_id, token)
        );
    """)
    op.execute(
        "CREATE INDEX ix_push_device_tokens_user_active ON push_device_tokens (user_id, is_active);"
    )

    # ── 6. Create event_outbox table ──────────────────────────────────────
    op.execute("""
        CREATE TABLE event_outbox (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_type VARCHAR(255) NOT NULL,
            aggregate_type VARCHAR(255) NOT NULL,
            aggregate_id VARCHAR(255) NOT NULL,
            payload JSONB NOT NULL DEFAULT '{}',
            status eventstatus NOT NULL DEFAULT 'PENDING',
            retry_count INTEGER NOT NULL DEFAULT 0,
            max_retries INTEGER NOT NULL DEFAULT 3,
            last_error TEXT,
            claimed_at TIMESTAMPTZ,
            processed_at TIMESTAMPTZ,
            schema_version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_event_outbox_status ON event_outbox (status);")
    op.execute("CREATE INDEX ix_event_outbox_event_type ON event_outbox (event_type);")
    op.execute("CREATE INDEX ix_event_outbox_aggregate ON event_outbox (aggregate_type, aggregate_id);")
    op.execute("CREATE INDEX ix_event_outbox_pending ON event_outbox (created_at) WHERE status IN ('PENDING', 'PROCESSING');")

    # ── 7. Create processed_events table ──────────────────────────────────
    op.execute("""
        CREATE TABLE processed_events (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_id UUID NOT NULL,
            event_type VARCHAR(255) NOT NULL,
            handler_name VARCHAR(255) NOT NULL,
            processed_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            expires_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_processed_events_event_id UNIQUE (event_id)
        );
    """)
    op.execute("CREATE INDEX ix_processed_events_expires_at ON processed_events (expires_at);")

    # ── 8. Create notification_preferences table ──────────────────────────
    op.execute("""
        CREATE TABLE notification_preferences (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL,
            packages BOOLEAN NOT NULL DEFAULT true,
            disputes BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_notification_preferences_user_id UNIQUE (user_id)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notification_preferences;")
    op.execute("DROP TABLE IF EXISTS processed_events;")
    op.execute("DROP TABLE IF EXISTS event_outbox;")
    op.execute("DROP TABLE IF EXISTS push_device_tokens;")
    op.execute("DROP TABLE IF EXISTS shipment_disputes;")
    op.execute("DROP TABLE IF EXISTS shipment_transitions;")
    op.execute("DROP TABLE IF EXISTS shipments;")

    op.execute("DROP TYPE IF EXISTS eventstatus;")
    op.execute("DROP TYPE IF EXISTS deviceplatform;")
    op.execute("DROP TYPE IF EXISTS disputeresolutionstatus;")
    op.execute("DROP TYPE IF EXISTS shipmentstatus;")
