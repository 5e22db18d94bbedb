"""invoices and notifications

Revision ID: 0001
Revises:
Create Date: 2025-01-15 10:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

invoice_estatus = sa.Enum("Pendiente", "Pagada", name="invoice_estatus")
notification_type = sa.Enum("success", "error", "info", "warning", name="notification_type")


def upgrade() -> None:
    op.create_table(
        "invoices",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("numero_comprobante", sa.String(length=100), nullable=False),
        sa.Column("paqueteria", sa.String(length=100), nullable=False),
        sa.Column("cliente", sa.String(length=200), nullable=False),
        sa.Column("rfc", sa.String(length=13), nullable=False),
        sa.Column("credito", sa.Integer(), nullable=False),
        sa.Column("fecha_creacion", sa.Date(), nullable=False),
        sa.Column("fecha_vencimiento", sa.Date(), nullable=True),
        sa.Column("total", sa.Numeric(15, 2), nullable=False),
        sa.Column("pago1", sa.Numeric(15, 2), nullable=False),
        sa.Column("fecha_pago1", sa.Date(), nullable=True),
        sa.Column("pago2", sa.Numeric(15, 2), nullable=False),
        sa.Column("fecha_pago2", sa.Date(), nullable=True),
        sa.Column("pago3", sa.Numeric(15, 2), nullable=False),
        sa.Column("fecha_pago3", sa.Date(), nullable=True),
        sa.Column("nc", sa.Numeric(15, 2), nullable=False),
        sa.Column("por_cobrar", sa.Numeric(15, 2), nullable=False),
        sa.Column("estatus", invoice_estatus, nullable=False),
        sa.Column("comentarios", sa.Text(), nullable=True),
        sa.Column("cfdi", sa.String(length=255), nullable=True),
        sa.Column("soporte", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("numero_comprobante", name="uq_invoice_numero_comprobante"),
    )
    op.create_index("ix_invoices_id", "invoices", ["id"])
    op.create_index("idx_invoices_estatus_vencimiento", "invoices", ["estatus", "fecha_vencimiento"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("idx_invoices_estatus_vencimiento", table_name="invoices")
    op.drop_index("ix_invoices_id", table_name="invoices")
    op.drop_table("invoices")
    notification_type.drop(op.get_bind(), checkfirst=True)
    invoice_estatus.drop(op.get_bind(), checkfirst=True)
