"""Initial schema - associations, patients and conversation state.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-17

Schemas created:
- core: associations (tenant configuration)
- care: patients, conversation_states
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CORE_SCHEMA = "core"
CARE_SCHEMA = "care"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    """Create schemas and tables."""
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {CORE_SCHEMA}")
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {CARE_SCHEMA}")

    op.create_table(
        "associations",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
            comment="Unique association identifier",
        ),
        sa.Column("slug", sa.String(63), nullable=False, unique=True, comment="Routing key used as subdomain"),
        sa.Column("name", sa.String(255), nullable=False, comment="Association name"),
        sa.Column("public_display_name", sa.String(255), nullable=True, comment="Name shown to end users"),
        sa.Column("external_base_url", sa.String(500), nullable=True, comment="Base URL of the external system"),
        sa.Column("encrypted_credentials", sa.Text(), nullable=True, comment="Fernet-encrypted credentials JSON"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("prompt_context", sa.Text(), nullable=True),
        sa.Column("ai_directives", sa.Text(), nullable=True),
        sa.Column("ai_restrictions", sa.Text(), nullable=True),
        sa.Column("logo_url", sa.String(500), nullable=True),
        sa.Column("welcome_message", sa.Text(), nullable=True),
        *_timestamps(),
        schema=CORE_SCHEMA,
    )
    op.create_index("idx_associations_active", "associations", ["is_active"], schema=CORE_SCHEMA)

    op.create_table(
        "patients",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
            comment="Unique patient identifier",
        ),
        sa.Column(
            "association_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey(f"{CORE_SCHEMA}.associations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("phone", sa.String(20), nullable=False, comment="Normalized phone number (digits only)"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("national_id", sa.String(20), nullable=True),
        sa.Column("association_category", sa.String(50), nullable=True),
        sa.Column("responsible_name", sa.String(255), nullable=True),
        sa.Column("responsible_national_id", sa.String(20), nullable=True),
        sa.Column("membership_status", sa.String(10), nullable=False, server_default="LEAD"),
        sa.Column("external_id", sa.String(100), nullable=True),
        sa.Column("sync_status", sa.String(10), nullable=False, server_default="pending"),
        sa.Column("attributes", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("last_context_update", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("association_id", "phone", name="uq_patients_association_phone"),
        sa.CheckConstraint(
            "membership_status <> 'MEMBER' OR external_id IS NOT NULL",
            name="ck_patients_member_external_id",
        ),
        schema=CARE_SCHEMA,
    )
    op.create_index(
        "idx_patients_external_id",
        "patients",
        ["association_id", "external_id"],
        schema=CARE_SCHEMA,
    )

    op.create_table(
        "conversation_states",
        sa.Column("conversation_id", sa.String(100), primary_key=True),
        sa.Column("current_state", sa.String(50), nullable=False, server_default="greeting"),
        sa.Column("state_data", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        *_timestamps(),
        schema=CARE_SCHEMA,
    )


def downgrade() -> None:
    """Drop tables and schemas."""
    op.drop_table("conversation_states", schema=CARE_SCHEMA)
    op.drop_index("idx_patients_external_id", table_name="patients", schema=CARE_SCHEMA)
    op.drop_table("patients", schema=CARE_SCHEMA)
    op.drop_index("idx_associations_active", table_name="associations", schema=CORE_SCHEMA)
    op.drop_table("associations", schema=CORE_SCHEMA)
    op.execute(f"DROP SCHEMA IF EXISTS {CARE_SCHEMA}")
    op.execute(f"DROP SCHEMA IF EXISTS {CORE_SCHEMA}")
