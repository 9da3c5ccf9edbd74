from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from agents.parcelas.dto import InstallmentStatus
from agents.parcelas.repository import ContactLogRepository, InstallmentRepository

TODAY = date(2026, 10, 19)


@pytest.fixture
def installments(db_engine):
    return InstallmentRepository(db_engine)


@pytest.fixture
def contact_log(db_engine):
    return ContactLogRepository(db_engine)


def test_get_maps_customer_and_contract(installments, seed):
    seed(amount=Decimal("99.90"), payment_id="123")

    installment = installments.get(1)

    assert installment.contract.id == 10
    assert installment.customer.name == "Maria Silva Souza"
    assert installment.customer.tax_id == "529.982.247-25"
    assert installment.amount == Decimal("99.90")
    assert installment.status is InstallmentStatus.PENDING
    assert installment.payment_id == "123"
    assert installments.get(404) is None


def test_candidate_listings(installments, seed):
    seed(installment_id=1, due_date=TODAY)
    seed(installment_id=2, number=2, due_date=TODAY - timedelta(days=2))
    seed(installment_id=3, number=3, due_date=TODAY - timedelta(days=9), status="pago")
    seed(installment_id=4, number=4, due_date=TODAY + timedelta(days=30), payment_id="77")

    assert [i.id for i in installments.list_due_on(TODAY)] == [1]
    assert [i.id for i in installments.list_overdue(TODAY)] == [2]
    assert [i.id for i in installments.list_pending_with_payment()] == [4]


def test_attach_payment_persists(installments, seed):
    seed()

    installments.attach_payment(1, "abc")

    assert installments.get(1).payment_id == "abc"


def test_mark_paid_only_transitions_pending(installments, seed):
    seed(amount=Decimal("42.00"))

    assert installments.mark_paid(1, TODAY, "pix") is True
    assert installments.mark_paid(1, TODAY + timedelta(days=1), "pix") is False

    paid = installments.get(1)
    assert paid.is_paid
    assert paid.payment_date == TODAY
    assert paid.paid_amount == Decimal("42.00")
    assert paid.payment_method == "pix"


def test_contact_log_unique_per_customer_day(contact_log, db_engine):
    with db_engine.begin() as conn:
        contact_log.insert(conn, 1, TODAY)

    assert contact_log.exists(1, TODAY)
    assert not contact_log.exists(1, TODAY + timedelta(days=1))
    assert not contact_log.exists(2, TODAY)

    with pytest.raises(IntegrityError):
        with db_engine.begin() as conn:
            contact_log.insert(conn, 1, TODAY)

    entries = contact_log.list_for_day(TODAY)
    assert [(e.customer_id, e.contact_date) for e in entries] == [(1, TODAY)]


def test_exists_sees_uncommitted_insert_on_same_connection(contact_log, db_engine):
    with db_engine.connect() as conn:
        trans = conn.begin()
        contact_log.insert(conn, 5, TODAY)
        assert contact_log.exists(5, TODAY, conn=conn)
        trans.rollback()

    assert not contact_log.exists(5, TODAY)


def test_customer_day_lock_released_after_use(contact_log, db_engine):
    with db_engine.connect() as conn:
        with contact_log.customer_day_lock(conn, 1, TODAY):
            pass
        with contact_log.customer_day_lock(conn, 1, TODAY):
            pass

    assert ContactLogRepository._locks._locks == {}


def test_installment_to_dict_has_no_pii(installments, seed):
    seed()

    data = installments.get(1).to_dict()

    assert data["installment_id"] == 1
    assert data["amount"] == "150.00"
    assert "Maria" not in str(data)
