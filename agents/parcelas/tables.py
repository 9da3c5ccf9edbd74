"""Table definitions for the installment store.

The customer/contract/installment tables are owned by the provisioning
system; this agent only reads them and updates payment fields on
``parcelas``. ``controle_emails`` is the per-customer, per-day contact
ledger; its unique constraint is what makes the dedup gate hold across
concurrent scans and engine instances.
"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.sql import func

_METADATA = sa.MetaData()

CLIENTES_TABLE = sa.Table(
    "clientes",
    _METADATA,
    sa.Column("id", sa.Integer(), primary_key=True),
    sa.Column("nome", sa.String(), nullable=False),
    sa.Column("whatsapp", sa.String(), nullable=False),
    sa.Column("cpf", sa.String(), nullable=False),
    sa.Column("email", sa.String(), nullable=False),
    extend_existing=True,
)

CONTRATOS_TABLE = sa.Table(
    "contratos",
    _METADATA,
    sa.Column("id", sa.Integer(), primary_key=True),
    sa.Column(
        "cliente_id",
        sa.Integer(),
        sa.ForeignKey("clientes.id", ondelete="CASCADE"),
        nullable=False,
    ),
    extend_existing=True,
)

PARCELAS_TABLE = sa.Table(
    "parcelas",
    _METADATA,
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
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=func.now()),
    sa.Column(
        "updated_at", sa.DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    ),
    sa.Index("ix_parcelas_vencimento_status", "data_vencimento", "status"),
    extend_existing=True,
)

CONTROLE_EMAILS_TABLE = sa.Table(
    "controle_emails",
    _METADATA,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("cliente_id", sa.Integer(), nullable=False),
    sa.Column("data_envio", sa.Date(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=func.now()),
    sa.UniqueConstraint("cliente_id", "data_envio", name="uq_controle_emails_cliente_data"),
    extend_existing=True,
)


def create_all(engine: sa.engine.Engine) -> None:
    """Create the tables on a scratch database (tests, local runs)."""
    _METADATA.create_all(engine)


__all__ = [
    "CLIENTES_TABLE",
    "CONTRATOS_TABLE",
    "PARCELAS_TABLE",
    "CONTROLE_EMAILS_TABLE",
    "create_all",
]
