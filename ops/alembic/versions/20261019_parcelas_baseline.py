"""Installment store baseline: clientes, contratos, parcelas, controle_emails

Revision ID: 20261019_parcelas_baseline
Revises:
Create Date: 2026-10-19 09:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261019_parcelas_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "clientes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("nome", sa.String(), nullable=False),
        sa.Column("whatsapp", sa.String(), nullable=False),
        sa.Column("cpf", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
    )

    op.create_table(
        "contratos",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "cliente_id",
            sa.Integer(),
            sa.ForeignKey("clientes.id", ondelete="CASCADE"),
            nullable=False,
        ),
    )

    op.create_table(
        "parcelas",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("contrato_id", sa.Integer(), sa.ForeignKey("contratos.id"), nullable=False),
        sa.Column("numero_parcela", sa.Integer(), nullable=False),
        sa.Column("valor", sa.Numeric(10, 2), nullable=False),
        sa.Column("data_vencimento", sa.Date(), nullable=False),
        sa.Column("data_pagamento", sa.Date()),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pendente'")),
        sa.Column("valor_pago", sa.Numeric(10, 2)),
        sa.Column("forma_pagamento", sa.String(20)),
        sa.Column("payment_id", sa.String()),
        sa.Column("observacao", sa.Text()),
        sa.Column(
            "created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()")
        ),
        sa.Column(
            "updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()")
        ),
    )
    op.create_index(
        "ix_parcelas_vencimento_status", "parcelas", ["data_vencimento", "status"]
    )

    op.create_table(
        "controle_emails",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("cliente_id", sa.Integer(), nullable=False),
        sa.Column("data_envio", sa.Date(), nullable=False),
        sa.Column(
            "created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()")
        ),
        sa.UniqueConstraint(
            "cliente_id", "data_envio", name="uq_controle_emails_cliente_data"
        ),
    )


def downgrade() -> None:
    op.drop_table("controle_emails")
    op.drop_index("ix_parcelas_vencimento_status", table_name="parcelas")
    op.drop_table("parcelas")
    op.drop_table("contratos")
    op.drop_table("clientes")
