"""Initial schema: complaints table, indexes, and updated_at trigger.

Revision ID: 0001
Revises:     (none)
Create Date: 2026-10-19
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op


def upgrade() -> None:
    # ---------------------------------------------------------------------- #
    # Enable pgcrypto for gen_random_uuid()                                   #
    # ---------------------------------------------------------------------- #
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # ------------------------------------------------------------------ #
    # complaints                                                           #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE complaints (
            id                  UUID          NOT NULL DEFAULT gen_random_uuid(),
            registration_number VARCHAR(32)   NOT NULL,
            owner_id            VARCHAR(200)  NOT NULL,   -- identity-provider user id
            type                VARCHAR(20)   NOT NULL,
            description         TEXT          NOT NULL,
            location            JSONB         NOT NULL,   -- {lat, lng, address?}
            phone               VARCHAR(10),
            urgent              BOOLEAN       NOT NULL DEFAULT FALSE,
            files               JSONB         NOT NULL DEFAULT '[]'::jsonb,
            status              VARCHAR(20)   NOT NULL DEFAULT 'pending',
            assigned_to         VARCHAR(200),
            resolved_at         TIMESTAMP,
            rejection_reason    TEXT,
            resolution_photos   JSONB         NOT NULL DEFAULT '[]'::jsonb,
            admin_notes         JSONB         NOT NULL DEFAULT '[]'::jsonb,
            deleted             BOOLEAN       NOT NULL DEFAULT FALSE,
            deleted_at          TIMESTAMP,
            deleted_by          VARCHAR(200),
            version             INT           NOT NULL DEFAULT 1,
            created_at          TIMESTAMP     NOT NULL DEFAULT (NOW() AT TIME ZONE 'utc'),
            updated_at          TIMESTAMP     NOT NULL DEFAULT (NOW() AT TIME ZONE 'utc'),
            CONSTRAINT pk_complaints PRIMARY KEY (id),
            CONSTRAINT uq_complaints_registration_number UNIQUE (registration_number),
            CONSTRAINT chk_complaints_type CHECK (
                type IN ('potholes', 'rubbish-bins', 'streetlights', 'public-spaces', 'other')
            ),
            CONSTRAINT chk_complaints_status CHECK (
                status IN ('pending', 'in-progress', 'closed', 'rejected')
            ),
            CONSTRAINT chk_complaints_description CHECK (
                char_length(description) BETWEEN 20 AND 1000
            ),
            CONSTRAINT chk_complaints_phone CHECK (phone IS NULL OR phone ~ '^[0-9]{10}$'),
            CONSTRAINT chk_complaints_resolved_photos CHECK (
                status <> 'closed' OR jsonb_array_length(resolution_photos) > 0
            )
        )
    """)

    # ------------------------------------------------------------------ #
    # Indexes                                                              #
    # ------------------------------------------------------------------ #
    # single-column equality filters
    op.execute("CREATE INDEX ix_complaints_owner_id ON complaints (owner_id)")
    op.execute("CREATE INDEX ix_complaints_type ON complaints (type)")
    op.execute("CREATE INDEX ix_complaints_status ON complaints (status)")
    op.execute("CREATE INDEX ix_complaints_urgent ON complaints (urgent)")
    op.execute("CREATE INDEX ix_complaints_assigned_to ON complaints (assigned_to)")

    # default listing order
    op.execute("CREATE INDEX idx_complaints_created_at ON complaints (created_at DESC)")

    # "my complaints by status" and "type breakdown by status"
    op.execute("CREATE INDEX idx_complaints_owner_status ON complaints (owner_id, status)")
    op.execute("CREATE INDEX idx_complaints_type_status ON complaints (type, status)")

    # ------------------------------------------------------------------ #
    # updated_at auto-refresh trigger on complaints                        #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW() AT TIME ZONE 'utc';
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """)
    op.execute("""
        CREATE TRIGGER trg_complaints_updated_at
        BEFORE UPDATE ON complaints
        FOR EACH ROW EXECUTE FUNCTION update_updated_at_column()
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_complaints_updated_at ON complaints")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column")
    op.execute("DROP TABLE IF EXISTS complaints CASCADE")
