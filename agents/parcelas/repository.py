"""Store access for installments and the per-day contact ledger.

All queries use SQLAlchemy Core against the tables in
``agents.parcelas.tables``. Every read returns fresh DTOs; nothing is
cached between scans.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Iterator, Optional

from sqlalchemy import and_, func, insert, select, text, update
from sqlalchemy.engine import Connection, Engine

from agents.parcelas.dto import (
    ContactLogEntry,
    Contract,
    Customer,
    Installment,
    InstallmentStatus,
)
from agents.parcelas.tables import (
    CLIENTES_TABLE,
    CONTRATOS_TABLE,
    CONTROLE_EMAILS_TABLE,
    PARCELAS_TABLE,
)

logger = logging.getLogger(__name__)


def _installment_query():
    p, k, c = PARCELAS_TABLE, CONTRATOS_TABLE, CLIENTES_TABLE
    return select(
        p.c.id,
        p.c.contrato_id,
        p.c.numero_parcela,
        p.c.valor,
        p.c.data_vencimento,
        p.c.data_pagamento,
        p.c.status,
        p.c.valor_pago,
        p.c.forma_pagamento,
        p.c.payment_id,
        p.c.observacao,
        p.c.created_at,
        p.c.updated_at,
        c.c.id.label("cliente_id"),
        c.c.nome.label("cliente_nome"),
        c.c.whatsapp.label("cliente_whatsapp"),
        c.c.cpf.label("cliente_cpf"),
        c.c.email.label("cliente_email"),
    ).select_from(p.join(k, p.c.contrato_id == k.c.id).join(c, k.c.cliente_id == c.c.id))


def _to_installment(row) -> Installment:
    customer = Customer(
        id=row.cliente_id,
        name=row.cliente_nome,
        phone=row.cliente_whatsapp,
        tax_id=row.cliente_cpf,
        email=row.cliente_email,
    )
    return Installment(
        id=row.id,
        contract=Contract(id=row.contrato_id, customer=customer),
        number=row.numero_parcela,
        amount=Decimal(str(row.valor)),
        due_date=row.data_vencimento,
        status=InstallmentStatus(row.status),
        payment_date=row.data_pagamento,
        paid_amount=Decimal(str(row.valor_pago)) if row.valor_pago is not None else None,
        payment_method=row.forma_pagamento,
        payment_id=row.payment_id,
        note=row.observacao,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class InstallmentRepository:
    """Reads candidate installments and applies payment updates."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def _fetch(self, *criteria) -> list[Installment]:
        query = _installment_query().where(*criteria).order_by(
            PARCELAS_TABLE.c.data_vencimento, PARCELAS_TABLE.c.id
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_to_installment(row) for row in rows]

    def get(self, installment_id: int) -> Optional[Installment]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _installment_query().where(PARCELAS_TABLE.c.id == installment_id)
            ).fetchone()
        return _to_installment(row) if row else None

    def list_pending_with_payment(self) -> list[Installment]:
        """Pending installments that already carry a gateway reference."""
        return self._fetch(
            PARCELAS_TABLE.c.status == InstallmentStatus.PENDING.value,
            PARCELAS_TABLE.c.payment_id.is_not(None),
        )

    def list_due_on(self, day: date) -> list[Installment]:
        return self._fetch(
            PARCELAS_TABLE.c.status == InstallmentStatus.PENDING.value,
            PARCELAS_TABLE.c.data_vencimento == day,
        )

    def list_overdue(self, today: date) -> list[Installment]:
        return self._fetch(
            PARCELAS_TABLE.c.status == InstallmentStatus.PENDING.value,
            PARCELAS_TABLE.c.data_vencimento < today,
        )

    def attach_payment(self, installment_id: int, payment_id: str) -> None:
        """Persist the gateway reference in its own transaction.

        Runs outside the caller's dedup transaction so the reference
        survives a later rollback and is reused instead of recreated.
        """
        with self.engine.begin() as conn:
            conn.execute(
                update(PARCELAS_TABLE)
                .where(PARCELAS_TABLE.c.id == installment_id)
                .values(payment_id=payment_id)
            )
        logger.info(
            "payment_reference_persisted",
            extra={"installment_id": installment_id, "payment_id": payment_id},
        )

    def mark_paid(self, installment_id: int, payment_date: date, payment_method: str) -> bool:
        """Conditional pending -> paid transition.

        Returns True only when this call performed the transition; False when
        the installment was already paid (or does not exist).
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                update(PARCELAS_TABLE)
                .where(
                    and_(
                        PARCELAS_TABLE.c.id == installment_id,
                        PARCELAS_TABLE.c.status == InstallmentStatus.PENDING.value,
                    )
                )
                .values(
                    status=InstallmentStatus.PAID.value,
                    data_pagamento=payment_date,
                    valor_pago=PARCELAS_TABLE.c.valor,
                    forma_pagamento=payment_method,
                )
            )
        return result.rowcount == 1


class _KeyedLocks:
    """Process-local mutexes keyed by (customer_id, day), released when idle."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[tuple[int, date], list] = {}

    @contextmanager
    def hold(self, key: tuple[int, date]) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)


class ContactLogRepository:
    """Append-only ledger of (customer, day) contacts in controle_emails."""

    _locks = _KeyedLocks()

    def __init__(self, engine: Engine):
        self.engine = engine

    def exists(self, customer_id: int, day: date, conn: Optional[Connection] = None) -> bool:
        query = (
            select(func.count())
            .select_from(CONTROLE_EMAILS_TABLE)
            .where(CONTROLE_EMAILS_TABLE.c.cliente_id == customer_id)
            .where(CONTROLE_EMAILS_TABLE.c.data_envio == day)
        )
        if conn is not None:
            return conn.execute(query).scalar_one() > 0
        with self.engine.connect() as own:
            return own.execute(query).scalar_one() > 0

    def insert(self, conn: Connection, customer_id: int, day: date) -> None:
        """Insert the ledger row on the caller's transaction.

        Raises IntegrityError when another writer already holds (customer, day).
        """
        conn.execute(insert(CONTROLE_EMAILS_TABLE).values(cliente_id=customer_id, data_envio=day))

    def list_for_day(self, day: date) -> list[ContactLogEntry]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(CONTROLE_EMAILS_TABLE)
                .where(CONTROLE_EMAILS_TABLE.c.data_envio == day)
                .order_by(CONTROLE_EMAILS_TABLE.c.id)
            ).fetchall()
        return [
            ContactLogEntry(
                id=row.id,
                customer_id=row.cliente_id,
                contact_date=row.data_envio,
                created_at=row.created_at,
            )
            for row in rows
        ]

    @contextmanager
    def customer_day_lock(self, conn: Connection, customer_id: int, day: date) -> Iterator[None]:
        """Serialize dedup sections for one (customer, day).

        The process-local lock covers threads of this process; on PostgreSQL a
        transaction-scoped advisory lock covers other processes and is released
        when ``conn``'s transaction ends.
        """
        with self._locks.hold((customer_id, day)):
            if conn.dialect.name == "postgresql":
                conn.execute(
                    text("SELECT pg_advisory_xact_lock(:customer_id, :day)"),
                    {"customer_id": customer_id, "day": day.toordinal()},
                )
            yield


__all__ = ["InstallmentRepository", "ContactLogRepository"]
