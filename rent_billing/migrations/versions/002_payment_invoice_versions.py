"""Add optimistic version counters to payments and invoices.

Revision ID: 002_payment_invoice_versions
Revises: 001_initial_schema
Create Date: 2024-03-04 10:30:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "002_payment_invoice_versions"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Existing rows start at version 1, same as freshly inserted ones
    with op.batch_alter_table("payments") as batch_op:
        batch_op.add_column(sa.Column("version", sa.Integer(), nullable=False, server_default="1"))
    with op.batch_alter_table("invoices") as batch_op:
        batch_op.add_column(sa.Column("version", sa.Integer(), nullable=False, server_default="1"))


def downgrade() -> None:
    with op.batch_alter_table("invoices") as batch_op:
        batch_op.drop_column("version")
    with op.batch_alter_table("payments") as batch_op:
        batch_op.drop_column("version")
