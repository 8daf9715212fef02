"""001 – Initial schema: directory, holidays, leave workflow, quotas, reminders.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-05 09:30:00.000000+00:00
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# Enum columns are VARCHAR + CHECK so new values need no ALTER TYPE
CHOICES: dict[str, list[str]] = {
    "user_role": ["employee", "direction", "dgpec", "dg", "admin"],
    "leave_category": ["annual", "sick", "bereavement", "maternity", "special"],
    "request_priority": ["urgent", "normal", "low"],
    "leave_status": [
        "pending",
        "validated_by_direction",
        "rejected_by_direction",
        "validated_by_dgpec",
        "rejected_by_dgpec",
        "validated_by_dg",
        "rejected_by_dg",
    ],
    "validation_stage": ["direction", "dgpec", "dg"],
    "decision": ["approve", "reject"],
    "action_kind": ["submission", "validation", "rejection", "modification", "comment"],
    "attachment_status": ["pending", "approved", "rejected"],
    "notification_type": ["info", "action_required", "approval", "reminder", "alert"],
}

TABLES = [
    "reminder_logs",
    "leave_attachments",
    "leave_quota_debits",
    "leave_quota_adjustments",
    "leave_quotas",
    "leave_request_actions",
    "validation_steps",
    "leave_requests",
    "notifications",
    "public_holidays",
    "employees",
]


def _in(column: str, choice: str) -> str:
    vals = ", ".join(f"'{v}'" for v in CHOICES[choice])
    return f"CHECK ({column} IN ({vals}))"


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE employees (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_code   VARCHAR(20) UNIQUE,
            full_name       VARCHAR(255) NOT NULL,
            email           VARCHAR(255) NOT NULL UNIQUE,
            department      VARCHAR(150),
            role            VARCHAR(20) NOT NULL DEFAULT 'employee' {_in("role", "user_role")},
            is_active       BOOLEAN DEFAULT TRUE,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_employees_department ON employees(department)")
    op.execute("CREATE INDEX ix_employees_role ON employees(role) WHERE is_active")

    # ── 2. public_holidays ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE public_holidays (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            date            DATE NOT NULL UNIQUE,
            description     VARCHAR(200) NOT NULL,
            recurring       BOOLEAN NOT NULL DEFAULT FALSE,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            created_by      UUID REFERENCES employees(id),
            updated_by      UUID REFERENCES employees(id)
        )
    """)

    # ── 3. notifications ──────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE notifications (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            recipient_id    UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            type            VARCHAR(20) DEFAULT 'info' {_in("type", "notification_type")},
            title           VARCHAR(200) NOT NULL,
            message         TEXT NOT NULL,
            action_url      VARCHAR(500),
            entity_type     VARCHAR(50),
            entity_id       UUID,
            is_read         BOOLEAN DEFAULT FALSE,
            read_at         TIMESTAMPTZ,
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_notifications_recipient_unread ON notifications(recipient_id, is_read)"
    )

    # ── 4. leave_requests ─────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE leave_requests (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id         UUID NOT NULL REFERENCES employees(id),
            leave_type          VARCHAR(32) NOT NULL {_in("leave_type", "leave_category")},
            start_date          DATE NOT NULL,
            end_date            DATE NOT NULL,
            total_days          INTEGER NOT NULL,
            reason              TEXT,
            priority            VARCHAR(32) DEFAULT 'normal' {_in("priority", "request_priority")},
            status              VARCHAR(32) DEFAULT 'pending' {_in("status", "leave_status")},
            stage_entered_at    TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            reminder_count      INTEGER DEFAULT 0,
            last_reminder_at    TIMESTAMPTZ,
            decided_at          TIMESTAMPTZ,
            version             INTEGER NOT NULL DEFAULT 1,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_requests_date_order CHECK (start_date <= end_date)
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_requests_employee_dates "
        "ON leave_requests(employee_id, start_date, end_date)"
    )
    op.execute(
        "CREATE INDEX ix_leave_requests_status_stage ON leave_requests(status, stage_entered_at)"
    )

    # ── 5. validation_steps ───────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE validation_steps (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            request_id          UUID NOT NULL REFERENCES leave_requests(id) ON DELETE CASCADE,
            stage               VARCHAR(32) NOT NULL {_in("stage", "validation_stage")},
            validator_id        UUID NOT NULL REFERENCES employees(id),
            outcome             VARCHAR(32) NOT NULL {_in("outcome", "decision")},
            comment             TEXT NOT NULL,
            stage_entered_at    TIMESTAMPTZ,
            decided_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_validation_step_stage UNIQUE (request_id, stage)
        )
    """)
    op.execute("CREATE INDEX ix_validation_steps_validator ON validation_steps(validator_id, decided_at)")

    # ── 6. leave_request_actions ──────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE leave_request_actions (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            request_id      UUID NOT NULL REFERENCES leave_requests(id) ON DELETE CASCADE,
            actor_id        UUID NOT NULL REFERENCES employees(id),
            kind            VARCHAR(32) NOT NULL {_in("kind", "action_kind")},
            comment         TEXT,
            details         JSONB,
            read_by         JSONB NOT NULL DEFAULT '[]'::jsonb,
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_request_actions_request "
        "ON leave_request_actions(request_id, created_at)"
    )

    # ── 7. leave_quotas ───────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE leave_quotas (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id     UUID NOT NULL REFERENCES employees(id),
            category        VARCHAR(32) NOT NULL {_in("category", "leave_category")},
            total_days      INTEGER NOT NULL DEFAULT 0,
            used_days       INTEGER NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            created_by      UUID REFERENCES employees(id),
            updated_by      UUID REFERENCES employees(id),
            CONSTRAINT uq_leave_quota_employee_category UNIQUE (employee_id, category),
            CONSTRAINT ck_leave_quotas_total_non_negative CHECK (total_days >= 0),
            CONSTRAINT ck_leave_quotas_used_non_negative CHECK (used_days >= 0)
        )
    """)

    # ── 8. leave_quota_adjustments ────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE leave_quota_adjustments (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            quota_id        UUID NOT NULL REFERENCES leave_quotas(id) ON DELETE CASCADE,
            employee_id     UUID NOT NULL REFERENCES employees(id),
            category        VARCHAR(32) NOT NULL {_in("category", "leave_category")},
            previous_total  INTEGER NOT NULL,
            new_total       INTEGER NOT NULL,
            previous_used   INTEGER NOT NULL,
            new_used        INTEGER NOT NULL,
            reason          TEXT NOT NULL,
            adjusted_by     UUID REFERENCES employees(id),
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_quota_adjustments_quota "
        "ON leave_quota_adjustments(quota_id, created_at)"
    )

    # ── 9. leave_quota_debits ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_quota_debits (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            quota_id        UUID NOT NULL REFERENCES leave_quotas(id) ON DELETE CASCADE,
            request_id      UUID NOT NULL UNIQUE REFERENCES leave_requests(id) ON DELETE CASCADE,
            days            INTEGER NOT NULL,
            reason          TEXT NOT NULL,
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 10. leave_attachments ─────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE leave_attachments (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            request_id      UUID NOT NULL REFERENCES leave_requests(id) ON DELETE CASCADE,
            file_name       VARCHAR(255) NOT NULL,
            file_path       VARCHAR(500) NOT NULL UNIQUE,
            file_type       VARCHAR(100),
            file_size       INTEGER NOT NULL,
            status          VARCHAR(20) DEFAULT 'pending' {_in("status", "attachment_status")},
            comments        TEXT,
            uploaded_by     UUID NOT NULL REFERENCES employees(id),
            reviewed_by     UUID REFERENCES employees(id),
            reviewed_at     TIMESTAMPTZ,
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_attachments_request_status "
        "ON leave_attachments(request_id, status)"
    )

    # ── 11. reminder_logs ─────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE reminder_logs (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            request_id          UUID NOT NULL REFERENCES leave_requests(id) ON DELETE CASCADE,
            stage               VARCHAR(32) NOT NULL {_in("stage", "validation_stage")},
            stage_entered_at    TIMESTAMPTZ NOT NULL,
            sequence            INTEGER NOT NULL,
            days_delayed        INTEGER NOT NULL,
            recipients          JSONB NOT NULL DEFAULT '[]'::jsonb,
            sent_at             TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_reminder_logs_claim UNIQUE (request_id, stage_entered_at, sequence)
        )
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    for table in TABLES:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
