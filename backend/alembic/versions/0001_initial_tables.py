"""Create dataset, captcha, commitment and pow_challenges tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "datasets",
        sa.Column("dataset_id", sa.String(64), primary_key=True),
        sa.Column("dataset_content_id", sa.String(64), unique=True, nullable=False),
        sa.Column("format", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "captchas",
        sa.Column("captcha_id", sa.String(64), primary_key=True),
        sa.Column("captcha_content_id", sa.String(64), nullable=False),
        sa.Column(
            "dataset_id",
            sa.String(64),
            sa.ForeignKey("datasets.dataset_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("target", sa.String(256), nullable=False),
        sa.Column("items", sa.JSON, nullable=False),
        sa.Column("solution", sa.JSON, nullable=False),
        sa.Column("salt", sa.String(64), nullable=False),
        sa.Column("proof", sa.JSON, nullable=False),
    )
    op.create_index("ix_captchas_captcha_content_id", "captchas", ["captcha_content_id"])
    op.create_index("ix_captchas_dataset_id", "captchas", ["dataset_id"])

    op.create_table(
        "pending_captcha_requests",
        sa.Column("request_hash", sa.String(64), primary_key=True),
        sa.Column("user", sa.String(64), nullable=False),
        sa.Column("dapp", sa.String(64), nullable=False),
        sa.Column("dataset_id", sa.String(64), nullable=False),
        sa.Column("salt", sa.String(64), nullable=False),
        sa.Column("captcha_ids", sa.JSON, nullable=False),
        sa.Column("deadline_timestamp", sa.BigInteger, nullable=False),
        sa.Column("requested_at_block", sa.Integer, nullable=False),
        sa.Column("pending", sa.Boolean, default=True, nullable=False),
    )
    op.create_index("ix_pending_captcha_requests_user", "pending_captcha_requests", ["user"])

    op.create_table(
        "image_commitments",
        sa.Column("commitment_id", sa.String(64), primary_key=True),
        sa.Column("user", sa.String(64), nullable=False),
        sa.Column("dapp", sa.String(64), nullable=False),
        sa.Column("dataset_id", sa.String(64), nullable=False),
        sa.Column("request_hash", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("requested_at_block", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("server_checked", sa.Boolean, default=False, nullable=False),
    )
    op.create_index("ix_image_commitments_user", "image_commitments", ["user"])

    op.create_table(
        "pow_challenges",
        sa.Column("challenge", sa.String(256), primary_key=True),
        sa.Column("user", sa.String(64), nullable=False),
        sa.Column("dapp", sa.String(64), nullable=False),
        sa.Column("difficulty", sa.Integer, nullable=False),
        sa.Column("timestamp", sa.BigInteger, nullable=False),
        sa.Column("provider_signature", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("checked", sa.Boolean, default=False, nullable=False),
        sa.Column("verified", sa.Boolean, default=False, nullable=False),
        sa.Column("server_checked", sa.Boolean, default=False, nullable=False),
    )
    op.create_index("ix_pow_challenges_user", "pow_challenges", ["user"])


def downgrade() -> None:
    op.drop_index("ix_pow_challenges_user", table_name="pow_challenges")
    op.drop_table("pow_challenges")

    op.drop_index("ix_image_commitments_user", table_name="image_commitments")
    op.drop_table("image_commitments")

    op.drop_index("ix_pending_captcha_requests_user", table_name="pending_captcha_requests")
    op.drop_table("pending_captcha_requests")

    op.drop_index("ix_captchas_dataset_id", table_name="captchas")
    op.drop_index("ix_captchas_captcha_content_id", table_name="captchas")
    op.drop_table("captchas")

    op.drop_table("datasets")
